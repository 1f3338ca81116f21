"""Abstract base for analysis providers."""

from abc import ABC, abstractmethod

from voice_keyword_mcp.models import MatchServiceResult, TranscriptionResult

EXACT_OPEN = "<exact>"
EXACT_CLOSE = "</exact>"
FUZZY_OPEN = "<fuzzy>"
FUZZY_CLOSE = "</fuzzy>"


class AnalysisProvider(ABC):
    """Remote transcription, translation and semantic-match service.

    Marked transcripts returned by ``match_keywords`` wrap exact spans in
    ``<exact>...</exact>`` and fuzzy spans in ``<fuzzy>...</fuzzy>``,
    never nested.
    """

    @abstractmethod
    async def transcribe(self, audio: bytes, mime_type: str) -> TranscriptionResult:
        """Transcribe audio verbatim and detect its language."""
        ...

    @abstractmethod
    async def translate(
        self, texts: list[str], target_language: str
    ) -> dict[str, str]:
        """Translate each text into *target_language*. Keys are the inputs."""
        ...

    @abstractmethod
    async def match_keywords(
        self, transcript: str, keywords: list[str]
    ) -> MatchServiceResult:
        """Find exact and fuzzy occurrences of *keywords* in *transcript*."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Clean up resources."""
        ...
