"""Keyword match reconciliation.

Combines a local, case-insensitive containment pass with the remote
semantic-match service and merges both into one update per keyword id.

1. Cross-language gate: when the audio language differs from the UI
   language, keyword texts are translated into the audio language and the
   translations are used for matching.
2. Exact pass: presence test only, so ``match_count`` is 0 or 1.
3. Fuzzy pass: keywords the exact pass did not find go to the service in
   one batch. Its answer replaces the exact-pass result for those keywords.
4. If every keyword matched exactly there is no remote call and no marked
   transcript.
5. A failed or timed-out service call keeps the exact-pass results and
   reports a message in ``ReconcileResult.error``.
"""

import asyncio
import logging

from pydantic import BaseModel

from voice_keyword_mcp.models import Keyword, KeywordAnalysis, MatchUpdate
from voice_keyword_mcp.providers.base import AnalysisProvider
from voice_keyword_mcp.translation import TranslationBridge
from voice_keyword_mcp.utils import is_cross_language

logger = logging.getLogger(__name__)

MATCH_SERVICE_ERROR = "Semantic matching is unavailable; showing exact matches only."


class ReconcileResult(BaseModel):
    updates: dict[str, MatchUpdate] = {}
    marked_transcript: str | None = None
    translations: dict[str, str] = {}
    error: str | None = None


def exact_pass(transcript: str, search_texts: dict[str, str]) -> dict[str, bool]:
    """Case-insensitive containment test for each keyword id's search text."""
    haystack = transcript.lower()
    return {
        keyword_id: bool(text) and text.lower() in haystack
        for keyword_id, text in search_texts.items()
    }


def _update_from_analysis(base: MatchUpdate, entry: KeywordAnalysis) -> MatchUpdate:
    return base.model_copy(
        update={
            "detected": entry.absolute_pair > 0,
            "match_count": entry.absolute_pair,
            "fuzzy_count": entry.blur_pair,
            "fuzzy_segments": list(entry.fuzzy_segments),
        }
    )


class MatchReconciler:
    def __init__(
        self,
        provider: AnalysisProvider,
        translator: TranslationBridge,
        timeout: float = 60.0,
    ):
        self._provider = provider
        self._translator = translator
        self._timeout = timeout

    async def reconcile(
        self,
        transcript: str,
        keywords: list[Keyword],
        audio_language: str | None,
        ui_language: str,
    ) -> ReconcileResult:
        if not keywords:
            return ReconcileResult()

        translations: dict[str, str] = {}
        if is_cross_language(audio_language, ui_language):
            logger.info(
                f"Language mismatch (ui={ui_language}, audio={audio_language}); "
                f"translating {len(keywords)} keyword(s)"
            )
            translations = await self._translator.translate(
                [kw.text for kw in keywords], audio_language
            )

        search_texts = {kw.id: translations.get(kw.text, kw.text) for kw in keywords}
        found = exact_pass(transcript, search_texts)

        updates: dict[str, MatchUpdate] = {}
        for kw in keywords:
            detected = found[kw.id]
            updates[kw.id] = MatchUpdate(
                source_text=kw.text,
                detected=detected,
                match_count=1 if detected else 0,
                translated_text=translations.get(kw.text),
            )

        pending = [kw.id for kw in keywords if not found[kw.id]]
        if not pending:
            logger.info("All keywords matched exactly; skipping semantic match")
            return ReconcileResult(updates=updates, translations=translations)

        queries = list(dict.fromkeys(search_texts[kid] for kid in pending))
        try:
            service_result = await asyncio.wait_for(
                self._provider.match_keywords(transcript, queries),
                timeout=self._timeout,
            )
        except Exception as e:
            logger.warning(f"Semantic match failed, keeping exact matches: {e!r}")
            return ReconcileResult(
                updates=updates,
                translations=translations,
                error=MATCH_SERVICE_ERROR,
            )

        by_text: dict[str, list[str]] = {}
        for kid in pending:
            by_text.setdefault(search_texts[kid], []).append(kid)
        by_folded: dict[str, list[str]] = {}
        for text, ids in by_text.items():
            by_folded.setdefault(text.casefold(), []).extend(ids)

        for entry in service_result.analysis:
            targets = by_text.get(entry.object) or by_folded.get(entry.object.casefold(), [])
            for kid in targets:
                updates[kid] = _update_from_analysis(updates[kid], entry)

        return ReconcileResult(
            updates=updates,
            marked_transcript=service_result.marked_transcript,
            translations=translations,
        )
