"""Error taxonomy for extraction, sessions and persistence."""

from __future__ import annotations

__all__ = [
    "QuizError",
    "InputError",
    "EmptyFilterResult",
    "InvalidTransition",
    "ExtractionFailure",
    "EmptyResponse",
    "MalformedOutput",
    "SchemaViolation",
    "BackendError",
    "PersistenceReadFailure",
]


class QuizError(RuntimeError):
    """Base class for every recoverable doc-quizzer failure."""


class InputError(QuizError):
    """Invalid user input (missing document, empty retake set, bad edit)."""


class EmptyFilterResult(InputError):
    """A retake filter matched no questions."""


class InvalidTransition(QuizError):
    """The requested operation is not allowed in the current mode."""


class ExtractionFailure(QuizError):
    """The extraction backend could not produce a usable question set."""


class EmptyResponse(ExtractionFailure):
    """The backend replied without any content."""


class MalformedOutput(ExtractionFailure):
    """The reply could not be decoded as JSON after normalization."""


class SchemaViolation(ExtractionFailure):
    """The reply decoded but does not carry a ``questions`` sequence."""


class BackendError(ExtractionFailure):
    """The backend call itself failed (transport, auth, rate limit)."""


class PersistenceReadFailure(QuizError):
    """A stored snapshot is unreadable or structurally invalid."""
