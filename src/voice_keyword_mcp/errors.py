"""Exception hierarchy for keyword spotting.

Validation and capacity errors come from the keyword list and leave it
untouched. The remote-call failures are raised by providers; the session
turns them into a single user-facing message.
"""

from __future__ import annotations


class KeywordSpotterError(Exception):
    """Base exception.

    Attributes:
        message: Human-readable error message
        context: Additional context information
        recoverable: Whether the session can continue after this error
    """

    def __init__(
        self,
        message: str,
        context: dict | None = None,
        recoverable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        if self.context:
            return f"{self.message} (context: {self.context})"
        return self.message


class ValidationError(KeywordSpotterError):
    """Bad keyword text or audio input."""

    def __init__(self, message: str, context: dict | None = None):
        super().__init__(message, context, recoverable=True)


class DuplicateError(ValidationError):
    """Keyword text already present (case-insensitive)."""


class LengthError(ValidationError):
    """Keyword text longer than its character-set limit."""


class CapacityError(KeywordSpotterError):
    """Keyword list is full."""

    def __init__(self, message: str, context: dict | None = None):
        super().__init__(message, context, recoverable=True)


class TranscriptionFailure(KeywordSpotterError):
    """Remote transcription failed. Analysis is blocked until new audio."""

    def __init__(self, message: str, context: dict | None = None):
        super().__init__(message, context, recoverable=False)


class MatchServiceFailure(KeywordSpotterError):
    """Semantic-match call failed. Exact-pass results still stand."""

    def __init__(self, message: str, context: dict | None = None):
        super().__init__(message, context, recoverable=True)


class TranslationFailure(KeywordSpotterError):
    """Keyword translation failed. Matching falls back to original text."""

    def __init__(self, message: str, context: dict | None = None):
        super().__init__(message, context, recoverable=True)


class AnalysisInProgressError(KeywordSpotterError):
    """An analysis is already running for this session."""

    def __init__(self, message: str = "Analysis already in progress", context: dict | None = None):
        super().__init__(message, context, recoverable=True)
