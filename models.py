"""
models.py

Data models and constants for CodeFlow.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


# ----------------------------
# Input model
# ----------------------------

@dataclass(frozen=True)
class UploadedFile:
    """One source file handed to the generation service.

    ``path`` always uses forward slashes and is relative to the folder the
    user opened (or a synthetic name such as ``input_code.txt``).
    """
    path: str
    content: str


# Path used when the editor text is analysed instead of a folder
SINGLE_FILE_PATH = "input_code.txt"

# Prefix of the editor placeholder written after a folder upload
FOLDER_SUMMARY_PREFIX = "Folder uploaded:"


# ----------------------------
# Generation request model
# ----------------------------

class GenerationState:
    """States of one generation request."""
    IDLE = "idle"
    ATTEMPTING = "attempting"
    DELAYING = "delaying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class GenerationRequest:
    """Book-keeping for a single ``generate()`` submission."""
    files: List[UploadedFile]
    attempts: int = 0
    state: str = GenerationState.IDLE
    last_error: Optional[str] = None
    # Sequence of visited states, handy for diagnostics
    history: List[str] = field(default_factory=lambda: [GenerationState.IDLE])


@dataclass(frozen=True)
class GenerationResult:
    """What the generation service returns for one call.

    Exactly one of ``diagram`` / ``error`` is meaningful.  A result with
    neither is a structurally empty success.
    """
    diagram: Optional[str] = None
    error: Optional[str] = None
    tokens: int = 0


@dataclass(frozen=True)
class GenerationProgress:
    """Transient notification emitted before a retry delay."""
    attempt: int        # 1-based number of the attempt that just failed
    max_attempts: int
    delay_ms: int
    message: str        # the error that triggered the retry

    def describe(self) -> str:
        """Human readable status line."""
        return (
            f"Attempt {self.attempt} failed (model overloaded). "
            f"Retrying in {self.delay_ms / 1000:g}s... "
            f"(attempt {self.attempt + 1}/{self.max_attempts})"
        )


# ----------------------------
# Diagram model
# ----------------------------

@dataclass(frozen=True)
class DiagramDocument:
    """Raw Mermaid text returned by a successful generation."""
    text: str


class ElementKind:
    """Kinds of interactive diagram elements."""
    NODE = "node"
    CLUSTER = "cluster"


@dataclass
class HighlightState:
    """The single current selection identity shared by both panels."""
    identity: Optional[str] = None
