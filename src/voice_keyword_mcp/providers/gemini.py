"""Gemini provider using the google-genai SDK directly."""

import asyncio
import json
import logging
from functools import partial

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from voice_keyword_mcp.errors import MatchServiceFailure, TranscriptionFailure, TranslationFailure
from voice_keyword_mcp.models import MatchServiceResult, TranscriptionResult
from .base import EXACT_CLOSE, EXACT_OPEN, FUZZY_CLOSE, FUZZY_OPEN, AnalysisProvider

logger = logging.getLogger(__name__)

TRANSCRIBE_PROMPT = """Provide a verbatim transcription of this audio.
The audio may contain Chinese, English, Japanese, or a mix of these languages.
Transcribe exactly what is spoken in the language used by the speaker. Do not translate.
Respond with a JSON object: {"text": "<transcription>", "language": "<ISO 639-1 code of the dominant language>"}"""

TRANSLATE_PROMPT = """Translate each of the following keywords into the language with ISO 639-1 code "{target}".
Keep each translation short, as a keyword would be written in that language.
Respond with a JSON object mapping every original keyword to its translation.

Keywords:
{keywords}"""

MATCH_PROMPT = """You check a transcript for keywords.

For every keyword report:
- "object": the keyword exactly as given
- "absolute_pair": how many times it appears verbatim (case-insensitive)
- "blur_pair": how many other passages express the same concept without the exact wording
- "fuzzy_segments": the literal transcript substrings counted in blur_pair

Also return "marked_transcript": the transcript unchanged except that every verbatim
occurrence is wrapped as {exact_open}...{exact_close} and every fuzzy passage as
{fuzzy_open}...{fuzzy_close}. Never nest tags and never alter any other character.

Respond with a JSON object: {{"analysis": [...], "marked_transcript": "..."}}

Keywords:
{keywords}

Transcript:
{transcript}"""


class GeminiProvider(AnalysisProvider):
    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        default_language: str = "en",
    ):
        self._client = genai.Client(api_key=api_key)
        self._model = model
        self._default_language = default_language

    async def transcribe(self, audio: bytes, mime_type: str) -> TranscriptionResult:
        parts = [
            types.Part.from_bytes(data=audio, mime_type=mime_type),
            types.Part.from_text(text=TRANSCRIBE_PROMPT),
        ]
        try:
            data = await self._generate_json(parts)
            return TranscriptionResult.from_payload(data, self._default_language)
        except (genai_errors.APIError, httpx.HTTPError, ValueError) as e:
            raise TranscriptionFailure(f"Gemini transcription failed: {e}") from e

    async def translate(
        self, texts: list[str], target_language: str
    ) -> dict[str, str]:
        prompt = TRANSLATE_PROMPT.format(
            target=target_language,
            keywords=json.dumps(texts, ensure_ascii=False),
        )
        try:
            data = await self._generate_json([types.Part.from_text(text=prompt)])
        except (genai_errors.APIError, httpx.HTTPError, ValueError) as e:
            raise TranslationFailure(f"Gemini translation failed: {e}") from e

        if not isinstance(data, dict):
            raise TranslationFailure("Gemini translation response is not an object")
        return {
            src: dst
            for src, dst in data.items()
            if isinstance(src, str) and isinstance(dst, str) and dst.strip()
        }

    async def match_keywords(
        self, transcript: str, keywords: list[str]
    ) -> MatchServiceResult:
        prompt = MATCH_PROMPT.format(
            exact_open=EXACT_OPEN,
            exact_close=EXACT_CLOSE,
            fuzzy_open=FUZZY_OPEN,
            fuzzy_close=FUZZY_CLOSE,
            keywords=json.dumps(keywords, ensure_ascii=False),
            transcript=transcript,
        )
        try:
            data = await self._generate_json([types.Part.from_text(text=prompt)])
            return MatchServiceResult.from_payload(data)
        except (genai_errors.APIError, httpx.HTTPError, ValueError) as e:
            raise MatchServiceFailure(f"Gemini keyword match failed: {e}") from e

    async def _generate_json(self, parts: list):
        loop = asyncio.get_event_loop()
        text = await loop.run_in_executor(None, partial(self._generate, parts))
        if not text:
            raise ValueError("Empty response from Gemini")
        return json.loads(text)

    def _generate(self, parts: list) -> str | None:
        """Synchronous generate call in executor."""
        response = self._client.models.generate_content(
            model=self._model,
            contents=[types.Content(role="user", parts=parts)],
            config=types.GenerateContentConfig(response_mime_type="application/json"),
        )
        return response.text

    async def close(self) -> None:
        pass
