"""
gemini/orchestrator.py

Drives the generation call through a bounded retry/backoff loop.

The loop is an explicit state machine over ``GenerationState``::

    IDLE -> ATTEMPTING -> DELAYING -> ATTEMPTING -> ... -> SUCCEEDED | FAILED

Only failures whose message looks transient ("503", "overloaded",
"try again later") are retried, after a fixed delay and up to a fixed
attempt budget.  Delay and budget come from configuration and are never
derived from anything the service reports.
"""

from __future__ import annotations

import time
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence

from debug_trace import trace
from models import (
    DiagramDocument,
    GenerationProgress,
    GenerationRequest,
    GenerationResult,
    GenerationState,
    UploadedFile,
)


# ----------------------------
# Errors
# ----------------------------

class InputError(ValueError):
    """No usable input was supplied; raised before any service call."""


class ServiceError(RuntimeError):
    """Terminal generation failure.

    ``str(error)`` is the originating message, unchanged, so that callers
    can still see the words that classified it.
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class RetryableServiceError(ServiceError):
    """A transient failure that outlived the retry budget."""


class FatalServiceError(ServiceError):
    """A non-transient failure, or a success that carried no diagram."""


EMPTY_DIAGRAM_MESSAGE = "AI did not return a diagram. Try modifying your input or prompt."
UNKNOWN_ERROR_MESSAGE = "An unknown error occurred."

RETRYABLE_MARKERS = ("503", "overloaded", "try again later")


def is_retryable(message: Optional[str]) -> bool:
    """True if *message* names a transient service condition."""
    text = (message or "").lower()
    return any(marker in text for marker in RETRYABLE_MARKERS)


# ----------------------------
# State machine
# ----------------------------

S = GenerationState

TRANSITIONS: Dict[str, FrozenSet[str]] = {
    S.IDLE: frozenset({S.ATTEMPTING}),
    S.ATTEMPTING: frozenset({S.DELAYING, S.SUCCEEDED, S.FAILED}),
    S.DELAYING: frozenset({S.ATTEMPTING}),
    S.SUCCEEDED: frozenset(),
    S.FAILED: frozenset(),
}


def _default_sleep(delay_ms: int) -> None:
    time.sleep(delay_ms / 1000.0)


ServiceCall = Callable[[Sequence[UploadedFile]], GenerationResult]


class GenerationOrchestrator:
    """Runs one generation request at a time through the retry protocol.

    Args:
        call: The generation service, ``call(files) -> GenerationResult``.
            It may also raise; the exception text is classified the same
            way as an ``error`` result.
        max_attempts: Total calls allowed (initial call plus retries).
        retry_delay_ms: Fixed wait between a transient failure and the
            next attempt.
        sleep: ``sleep(delay_ms)``; injected so tests never really wait.
        on_progress: Called with a ``GenerationProgress`` before each delay.

    The orchestrator does not guard against overlapping submissions; the
    caller owns that (the main window keeps a busy flag).
    """

    def __init__(
        self,
        call: ServiceCall,
        max_attempts: int = 3,
        retry_delay_ms: int = 3000,
        sleep: Optional[Callable[[int], None]] = None,
        on_progress: Optional[Callable[[GenerationProgress], None]] = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if retry_delay_ms < 0:
            raise ValueError("retry_delay_ms must not be negative")
        self._call = call
        self.max_attempts = max_attempts
        self.retry_delay_ms = retry_delay_ms
        self._sleep = sleep or _default_sleep
        self._on_progress = on_progress
        self.request: Optional[GenerationRequest] = None
        self.tokens_used = 0

    @staticmethod
    def validate_input(files: Optional[Iterable[UploadedFile]]) -> List[UploadedFile]:
        """Return *files* as a list, or raise InputError if there are none."""
        items = list(files or [])
        if not items:
            raise InputError("Please enter some code or upload a file/folder to generate a diagram.")
        return items

    @property
    def state(self) -> str:
        return self.request.state if self.request else GenerationState.IDLE

    def _transition(self, new_state: str) -> None:
        req = self.request
        allowed = TRANSITIONS.get(req.state, frozenset())
        if new_state not in allowed:
            raise RuntimeError(f"Illegal generation transition {req.state} -> {new_state}")
        trace(f"{req.state} -> {new_state} (attempt {req.attempts})", "GEN")
        req.state = new_state
        req.history.append(new_state)

    def _attempt(self, files: List[UploadedFile]) -> GenerationResult:
        try:
            result = self._call(files)
        except Exception as e:
            return GenerationResult(error=str(e) or UNKNOWN_ERROR_MESSAGE)
        if result is None:
            return GenerationResult()
        return result

    def _fail(self, error: ServiceError) -> ServiceError:
        self.request.last_error = error.message
        self._transition(GenerationState.FAILED)
        trace(f"Generation failed: {error.message}", "GEN")
        return error

    def generate(self, files: Optional[Iterable[UploadedFile]]) -> DiagramDocument:
        """Run the attempt loop for *files*.

        Returns:
            The diagram produced by the first successful attempt.

        Raises:
            InputError: *files* is empty (no call is made).
            RetryableServiceError: every attempt failed transiently.
            FatalServiceError: a non-transient failure or an empty result.
        """
        items = self.validate_input(files)
        self.request = GenerationRequest(files=items)
        self.tokens_used = 0
        req = self.request

        while True:
            self._transition(GenerationState.ATTEMPTING)
            req.attempts += 1
            trace(f"Attempt {req.attempts}/{self.max_attempts} with {len(items)} file(s)", "GEN")
            result = self._attempt(items)
            self.tokens_used += result.tokens or 0

            if result.error:
                message = result.error
                req.last_error = message
                if not is_retryable(message):
                    raise self._fail(FatalServiceError(message))
                if req.attempts >= self.max_attempts:
                    raise self._fail(RetryableServiceError(message))

                self._transition(GenerationState.DELAYING)
                progress = GenerationProgress(
                    attempt=req.attempts,
                    max_attempts=self.max_attempts,
                    delay_ms=self.retry_delay_ms,
                    message=message,
                )
                trace(progress.describe(), "RETRY")
                if self._on_progress is not None:
                    self._on_progress(progress)
                self._sleep(self.retry_delay_ms)
                continue

            if not (result.diagram or "").strip():
                raise self._fail(FatalServiceError(EMPTY_DIAGRAM_MESSAGE))

            req.last_error = None
            self._transition(GenerationState.SUCCEEDED)
            trace(f"Generation succeeded after {req.attempts} attempt(s)", "GEN")
            return DiagramDocument(result.diagram)
