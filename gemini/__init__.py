"""
gemini package

Gemini diagram generation and the retry/backoff orchestration around it.
"""

from gemini.orchestrator import (
    FatalServiceError,
    GenerationOrchestrator,
    InputError,
    RetryableServiceError,
    ServiceError,
    is_retryable,
)

__all__ = [
    "FatalServiceError",
    "GenerationOrchestrator",
    "InputError",
    "RetryableServiceError",
    "ServiceError",
    "is_retryable",
]
