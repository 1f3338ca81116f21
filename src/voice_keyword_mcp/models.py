"""Data models for keywords, service payloads and rendered transcripts."""

from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field, ValidationError, field_validator


def _new_id() -> str:
    return uuid4().hex


def _non_negative_int(value: Any) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return 0
    return max(number, 0)


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, str) and v.strip()]


class Keyword(BaseModel):
    id: str = Field(default_factory=_new_id)
    text: str
    detected: bool = False
    match_count: int = 0
    fuzzy_count: int = 0
    fuzzy_segments: list[str] = []
    translated_text: str | None = None

    def cleared(self, **changes: Any) -> "Keyword":
        """Copy with every match field back at its zero value."""
        update = {
            "detected": False,
            "match_count": 0,
            "fuzzy_count": 0,
            "fuzzy_segments": [],
            "translated_text": None,
        }
        update.update(changes)
        return self.model_copy(update=update)


class MatchUpdate(BaseModel):
    source_text: str
    detected: bool = False
    match_count: int = 0
    fuzzy_count: int = 0
    fuzzy_segments: list[str] = []
    translated_text: str | None = None

class KeywordStats(BaseModel):
    total: int = 0
    exact: int = 0
    fuzzy: int = 0
    combined: int = 0
    exact_rate: int = 0
    fuzzy_rate: int = 0
    combined_rate: int = 0


class AudioClip(BaseModel):
    data: bytes
    mime_type: str
    source: str = "upload"


class TranscriptionResult(BaseModel):
    text: str
    language: str

    @classmethod
    def from_payload(cls, data: Any, default_language: str) -> "TranscriptionResult":
        """Build from a decoded service response, filling missing fields."""
        if not isinstance(data, dict):
            raise ValueError("Transcription response is not an object")
        text = data.get("text")
        if not isinstance(text, str) or not text.strip():
            raise ValueError("Transcription response has no text")
        language = data.get("language")
        if not isinstance(language, str) or not language.strip():
            language = default_language
        return cls(text=text, language=language.strip().lower())


class KeywordAnalysis(BaseModel):
    object: str
    absolute_pair: int = 0
    blur_pair: int = 0
    fuzzy_segments: list[str] = []

    @field_validator("absolute_pair", "blur_pair", mode="before")
    @classmethod
    def coerce_count(cls, value: Any) -> int:
        return _non_negative_int(value)

    @field_validator("fuzzy_segments", mode="before")
    @classmethod
    def coerce_segments(cls, value: Any) -> list[str]:
        return _string_list(value)


class MatchServiceResult(BaseModel):
    analysis: list[KeywordAnalysis] = []
    marked_transcript: str | None = None

    @classmethod
    def from_payload(cls, data: Any) -> "MatchServiceResult":
        """Build from a decoded service response.

        Entries without a usable ``object`` are skipped rather than failing
        the whole response. A blank marked transcript becomes ``None``.
        """
        if not isinstance(data, dict):
            raise ValueError("Match response is not an object")

        analysis = []
        raw_items = data.get("analysis")
        for item in raw_items if isinstance(raw_items, list) else []:
            if not isinstance(item, dict) or not isinstance(item.get("object"), str):
                continue
            try:
                analysis.append(KeywordAnalysis(**item))
            except ValidationError:
                continue

        marked = data.get("marked_transcript")
        if not isinstance(marked, str) or not marked.strip():
            marked = None
        return cls(analysis=analysis, marked_transcript=marked)


class SegmentKind(str, Enum):
    PLAIN = "plain"
    EXACT = "exact"
    FUZZY = "fuzzy"


class Segment(BaseModel):
    kind: SegmentKind
    text: str
