"""Utility functions."""

import math
import mimetypes
import re

DEFAULT_AUDIO_MIME = "audio/webm"

_EXTRA_AUDIO_TYPES = {
    ".m4a": "audio/mp4",
    ".weba": "audio/webm",
    ".webm": "audio/webm",
    ".ogg": "audio/ogg",
    ".opus": "audio/ogg",
    ".flac": "audio/flac",
}


def primary_subtag(language: str | None) -> str | None:
    """Return the lower-cased primary subtag of a language tag (zh-CN -> zh)."""
    if not language:
        return None
    subtag = re.split(r"[-_]", language.strip(), maxsplit=1)[0].lower()
    return subtag or None


def is_cross_language(audio_language: str | None, ui_language: str) -> bool:
    """True when the audio language is known and differs from the UI language."""
    audio = primary_subtag(audio_language)
    if audio is None:
        return False
    return audio != primary_subtag(ui_language)


def guess_mime_type(filename: str) -> str:
    """Guess an audio MIME type from a file name."""
    lower = filename.lower()
    for ext, mime in _EXTRA_AUDIO_TYPES.items():
        if lower.endswith(ext):
            return mime
    mime, _ = mimetypes.guess_type(lower)
    if mime and (mime.startswith("audio/") or mime.startswith("video/")):
        return mime
    return DEFAULT_AUDIO_MIME


def percentage(part: int, total: int) -> int:
    """Whole percentage, halves rounded up."""
    if total <= 0:
        return 0
    return math.floor(part * 100 / total + 0.5)
