"""Backend provider that calls a self-hosted analysis service."""

import base64
import logging

import httpx

from voice_keyword_mcp.errors import MatchServiceFailure, TranscriptionFailure, TranslationFailure
from voice_keyword_mcp.models import MatchServiceResult, TranscriptionResult
from .base import AnalysisProvider

logger = logging.getLogger(__name__)


class BackendProvider(AnalysisProvider):
    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 60.0,
        default_language: str = "en",
    ):
        self._base_url = base_url.rstrip("/")
        self._default_language = default_language
        self._headers = {}
        if api_key:
            self._headers["X-API-Key"] = api_key
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers,
            timeout=timeout,
        )

    async def transcribe(self, audio: bytes, mime_type: str) -> TranscriptionResult:
        try:
            resp = await self._client.post(
                "/transcribe",
                json={
                    "audio": base64.b64encode(audio).decode("ascii"),
                    "mime_type": mime_type,
                },
            )
            resp.raise_for_status()
            return TranscriptionResult.from_payload(resp.json(), self._default_language)
        except (httpx.HTTPError, ValueError) as e:
            raise TranscriptionFailure(f"Transcription request failed: {e}") from e

    async def translate(
        self, texts: list[str], target_language: str
    ) -> dict[str, str]:
        try:
            resp = await self._client.post(
                "/translate",
                json={"texts": texts, "target_language": target_language},
            )
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise TranslationFailure(f"Translation request failed: {e}") from e

        translations = data.get("translations") if isinstance(data, dict) else None
        if not isinstance(translations, dict):
            raise TranslationFailure("Translation response has no translations")
        return {
            src: dst
            for src, dst in translations.items()
            if isinstance(src, str) and isinstance(dst, str)
        }

    async def match_keywords(
        self, transcript: str, keywords: list[str]
    ) -> MatchServiceResult:
        try:
            resp = await self._client.post(
                "/match",
                json={"transcript": transcript, "keywords": keywords},
            )
            resp.raise_for_status()
            return MatchServiceResult.from_payload(resp.json())
        except (httpx.HTTPError, ValueError) as e:
            raise MatchServiceFailure(f"Keyword match request failed: {e}") from e

    async def close(self) -> None:
        await self._client.aclose()
