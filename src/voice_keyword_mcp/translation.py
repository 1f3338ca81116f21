"""Keyword translation for cross-language matching."""

import asyncio
import logging

from voice_keyword_mcp.cache import TranslationCache
from voice_keyword_mcp.providers.base import AnalysisProvider

logger = logging.getLogger(__name__)


class TranslationBridge:
    """Translates keyword texts, never raising.

    Callers treat a missing key as "use the original text". A total failure
    yields an empty mapping.
    """

    def __init__(
        self,
        provider: AnalysisProvider,
        cache: TranslationCache | None = None,
        timeout: float = 60.0,
    ):
        self._provider = provider
        self._cache = cache
        self._timeout = timeout

    async def translate(self, texts: list[str], target_language: str) -> dict[str, str]:
        unique = list(dict.fromkeys(t for t in texts if t))
        if not unique:
            return {}

        result: dict[str, str] = {}
        pending = []
        for text in unique:
            cached = self._cache.get(text, target_language) if self._cache else None
            if cached is not None:
                result[text] = cached
            else:
                pending.append(text)

        if pending:
            try:
                translated = await asyncio.wait_for(
                    self._provider.translate(pending, target_language),
                    timeout=self._timeout,
                )
            except Exception as e:
                logger.warning(f"Keyword translation to {target_language} failed: {e!r}")
                return result
            if not isinstance(translated, dict):
                logger.warning(f"Ignoring malformed translation response: {type(translated).__name__}")
                return result

            for text in pending:
                value = translated.get(text)
                if not isinstance(value, str) or not value.strip():
                    continue
                result[text] = value.strip()
                if self._cache:
                    self._cache.set(text, target_language, value.strip())

            missing = len(pending) - sum(1 for t in pending if t in result)
            if missing:
                logger.info(f"{missing} keyword(s) left untranslated for {target_language}")
            if self._cache:
                logger.debug(f"Translation cache: {self._cache.stats()}")

        return result
