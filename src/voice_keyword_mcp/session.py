"""Session lifecycle: audio -> transcript -> keyword analysis.

Every accepted audio source (or cleared session) bumps ``Session.token``.
Async work remembers the token it started under and only writes its
results back if that token is still current.
"""

import asyncio
import logging

from pydantic import BaseModel

from voice_keyword_mcp.cache import TranslationCache
from voice_keyword_mcp.errors import (
    AnalysisInProgressError,
    TranscriptionFailure,
    ValidationError,
)
from voice_keyword_mcp.highlight import render
from voice_keyword_mcp.keywords import DEFAULT_KEYWORDS, KeywordStore, default_keywords
from voice_keyword_mcp.models import AudioClip, KeywordStats, Segment
from voice_keyword_mcp.providers.base import AnalysisProvider
from voice_keyword_mcp.reconciler import MatchReconciler, ReconcileResult
from voice_keyword_mcp.translation import TranslationBridge

logger = logging.getLogger(__name__)

PROCESS_ERROR = "Processing failed. Please check the audio and try again."
NO_KEYWORDS_ERROR = "Add at least one keyword before analyzing."
SUPPORTED_LANGUAGES = tuple(DEFAULT_KEYWORDS)


class Session(BaseModel):
    token: int = 0
    audio: AudioClip | None = None
    transcript: str | None = None
    marked_transcript: str | None = None
    audio_language: str | None = None
    is_transcribing: bool = False
    is_processing: bool = False
    has_analyzed: bool = False
    error: str | None = None


class SessionController:
    def __init__(
        self,
        provider: AnalysisProvider,
        store: KeywordStore | None = None,
        ui_language: str = "zh",
        reconciler: MatchReconciler | None = None,
        timeout: float = 60.0,
        max_audio_bytes: int = 20 * 1024 * 1024,
    ):
        self._provider = provider
        self._store = store if store is not None else KeywordStore(default_keywords(ui_language))
        self._ui_language = ui_language
        self._timeout = timeout
        self._max_audio_bytes = max_audio_bytes
        if reconciler is None:
            translator = TranslationBridge(provider, TranslationCache(), timeout=timeout)
            reconciler = MatchReconciler(provider, translator, timeout=timeout)
        self._reconciler = reconciler
        self._session = Session()

    @property
    def session(self) -> Session:
        return self._session

    @property
    def store(self) -> KeywordStore:
        return self._store

    @property
    def ui_language(self) -> str:
        return self._ui_language

    def _new_session(self, **fields) -> int:
        self._session = Session(token=self._session.token + 1, **fields)
        self._store.reset_matches()
        return self._session.token

    def accept_audio(self, clip: AudioClip) -> int:
        """Start a new session for *clip*. Returns the new token."""
        if not clip.data:
            raise ValidationError("Audio file is empty.")
        if len(clip.data) > self._max_audio_bytes:
            raise ValidationError(
                f"Audio file too large ({len(clip.data)} bytes, max {self._max_audio_bytes}).",
                {"size": len(clip.data)},
            )
        token = self._new_session(audio=clip)
        logger.info(f"Accepted audio from {clip.source} ({clip.mime_type}, {len(clip.data)} bytes)")
        return token

    def submit_transcript(self, text: str) -> int:
        """Start a new session from an already transcribed text.

        The language is assumed to be the UI language.
        """
        if not text.strip():
            raise ValidationError("Transcript cannot be empty.")
        return self._new_session(transcript=text, audio_language=self._ui_language)

    def clear(self) -> int:
        return self._new_session()

    async def transcribe(self) -> bool:
        """Transcribe the current audio. Returns False on failure or staleness."""
        session = self._session
        token = session.token
        if session.audio is None:
            raise ValidationError("No audio loaded.")

        session.is_transcribing = True
        session.error = None
        try:
            result = await asyncio.wait_for(
                self._provider.transcribe(session.audio.data, session.audio.mime_type),
                timeout=self._timeout,
            )
        except Exception as e:
            logger.warning(f"Transcription failed: {e!r}")
            if token == self._session.token:
                self._session.error = PROCESS_ERROR
            return False
        finally:
            if token == self._session.token:
                self._session.is_transcribing = False

        if token != self._session.token:
            logger.info(f"Discarding transcript for stale session {token}")
            return False

        self._session.transcript = result.text
        self._session.audio_language = result.language
        logger.info(f"Transcribed {len(result.text)} characters ({result.language})")
        return True

    async def analyze(self) -> ReconcileResult | None:
        """Run keyword reconciliation on the current transcript.

        Returns ``None`` when the session changed while the analysis ran.
        """
        session = self._session
        if session.is_processing:
            raise AnalysisInProgressError()
        if session.is_transcribing:
            raise ValidationError("Transcription still in progress.")
        if session.audio is None and session.transcript is None:
            raise ValidationError("No audio loaded.")
        if len(self._store) == 0:
            session.error = NO_KEYWORDS_ERROR
            raise ValidationError(NO_KEYWORDS_ERROR)
        if not session.transcript:
            session.error = PROCESS_ERROR
            raise TranscriptionFailure("No transcript available.")

        token = session.token
        session.is_processing = True
        session.error = None
        try:
            result = await self._reconciler.reconcile(
                session.transcript,
                self._store.keywords,
                session.audio_language,
                self._ui_language,
            )
        finally:
            if token == self._session.token:
                self._session.is_processing = False

        if token != self._session.token:
            logger.info(f"Discarding analysis for stale session {token}")
            return None

        self._store.apply_updates(result.updates)
        session.marked_transcript = result.marked_transcript
        session.has_analyzed = True
        session.error = result.error
        return result

    def reset_results(self) -> None:
        self._store.reset_matches()
        self._session.marked_transcript = None

    def set_language(self, language: str) -> bool:
        """Switch UI language. Returns True if the default keyword list was swapped."""
        language = language.strip().lower()
        if language not in SUPPORTED_LANGUAGES:
            raise ValidationError(
                f"Unsupported language: {language}",
                {"supported": list(SUPPORTED_LANGUAGES)},
            )
        swapped = False
        if language != self._ui_language and self._store.is_default_list(self._ui_language):
            self._store.replace_all(default_keywords(language))
            swapped = True
        self._ui_language = language
        return swapped

    def render(self) -> list[Segment]:
        if not self._session.transcript:
            return []
        return render(
            self._session.transcript,
            self._store.keywords,
            self._session.marked_transcript,
        )

    def stats(self) -> KeywordStats:
        return self._store.stats()
