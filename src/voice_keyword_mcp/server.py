"""Voice Keyword Spotter MCP Server."""

import logging
import sys
import time
from collections import deque
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Annotated

from pydantic import Field
from mcp.server.fastmcp import FastMCP

from voice_keyword_mcp.cache import TranslationCache
from voice_keyword_mcp.config import Mode, Settings, Transport
from voice_keyword_mcp.errors import KeywordSpotterError
from voice_keyword_mcp.highlight import to_markdown
from voice_keyword_mcp.keywords import KeywordStore, default_keywords
from voice_keyword_mcp.models import AudioClip, Keyword, KeywordStats
from voice_keyword_mcp.providers.backend import BackendProvider
from voice_keyword_mcp.providers.gemini import GeminiProvider
from voice_keyword_mcp.reconciler import MatchReconciler
from voice_keyword_mcp.session import SessionController
from voice_keyword_mcp.translation import TranslationBridge
from voice_keyword_mcp.utils import guess_mime_type

# Logging to stderr (MCP convention)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger("voice-keyword-mcp")

# Module-level state
_provider = None
_controller = None
_settings = None
_rate_window = deque()

READ_ONLY_ANNOTATIONS = {
    "readOnlyHint": True,
    "destructiveHint": False,
    "openWorldHint": False,
}

LOCAL_ANNOTATIONS = {
    "readOnlyHint": False,
    "destructiveHint": False,
    "openWorldHint": False,
}

REMOTE_ANNOTATIONS = {
    "readOnlyHint": False,
    "destructiveHint": False,
    "openWorldHint": True,
}


@asynccontextmanager
async def app_lifespan(server: FastMCP):
    global _provider, _controller, _settings, _rate_window
    _settings = Settings()
    _rate_window = deque()

    if _settings.mode == Mode.BACKEND:
        _provider = BackendProvider(
            base_url=_settings.backend_url,
            api_key=_settings.backend_api_key,
            timeout=_settings.request_timeout_seconds,
            default_language=_settings.default_language,
        )
        logger.info(f"Backend mode: {_settings.backend_url}")
    else:
        _provider = GeminiProvider(
            api_key=_settings.gemini_api_key,
            model=_settings.gemini_model,
            default_language=_settings.default_language,
        )
        logger.info(f"Gemini mode: {_settings.gemini_model}")

    cache = TranslationCache(
        max_size=_settings.translation_cache_size,
        ttl=_settings.translation_cache_ttl_seconds,
    )
    translator = TranslationBridge(_provider, cache, timeout=_settings.request_timeout_seconds)
    _controller = SessionController(
        _provider,
        store=KeywordStore(
            default_keywords(_settings.ui_language),
            max_size=_settings.max_keywords,
        ),
        ui_language=_settings.ui_language,
        reconciler=MatchReconciler(
            _provider, translator, timeout=_settings.request_timeout_seconds
        ),
        timeout=_settings.request_timeout_seconds,
        max_audio_bytes=_settings.max_audio_bytes,
    )

    logger.info("Server started")
    yield

    if _provider:
        await _provider.close()
    logger.info("Server stopped")


mcp = FastMCP(
    "Voice Keyword Spotter",
    instructions="Transcribe audio and check the transcript against a keyword list",
    lifespan=app_lifespan,
)


def _check_rate_limit():
    """Sliding window rate limit."""
    now = time.time()
    limit = (_settings.rate_limit_per_minute if _settings else 30)
    while _rate_window and _rate_window[0] < now - 60:
        _rate_window.popleft()
    if len(_rate_window) >= limit:
        raise ValueError(
            f"Rate limit exceeded ({limit}/min). Try again in a few seconds."
        )
    _rate_window.append(now)


def _error_message(e: KeywordSpotterError) -> str:
    if e.recoverable:
        logger.info(f"Rejected: {e}")
    else:
        logger.error(f"Unrecoverable error: {e}")
    return f"Error: {e.message}"


def _keyword_line(kw: Keyword, show_matches: bool) -> str:
    if kw.detected:
        marker = "[x]"
    elif kw.fuzzy_count > 0:
        marker = "[~]"
    else:
        marker = "[ ]"
    line = f"- {marker} {kw.text} `{kw.id}`"
    if kw.translated_text and kw.translated_text != kw.text:
        line += f" (searched as: {kw.translated_text})"
    if show_matches and (kw.match_count > 0 or kw.fuzzy_count > 0):
        counts = []
        if kw.match_count > 0:
            counts.append(f"exact {kw.match_count}")
        if kw.fuzzy_count > 0:
            counts.append(f"fuzzy ~{kw.fuzzy_count}")
        line += f" | {', '.join(counts)}"
        if kw.fuzzy_segments:
            line += " | " + "; ".join(f'"{s}"' for s in kw.fuzzy_segments)
    return line


def _stats_to_markdown(stats: KeywordStats) -> str:
    return (
        f"**Exact:** {stats.exact}/{stats.total} ({stats.exact_rate}%) | "
        f"**Fuzzy:** {stats.fuzzy}/{stats.total} ({stats.fuzzy_rate}%) | "
        f"**Combined:** {stats.combined}/{stats.total} ({stats.combined_rate}%)"
    )


@mcp.tool(annotations=REMOTE_ANNOTATIONS)
async def load_audio(
    path: Annotated[str, Field(description="Path to a local audio file (webm, mp3, wav, m4a, ogg, flac)")],
) -> str:
    """Load an audio file, reset previous matches and transcribe it."""
    _check_rate_limit()

    audio_path = Path(path).expanduser()
    if not audio_path.is_file():
        return f"Error: Audio file not found: {path}"

    try:
        data = audio_path.read_bytes()
    except OSError as e:
        return f"Error reading audio file {path}: {e}"

    clip = AudioClip(
        data=data,
        mime_type=guess_mime_type(audio_path.name),
        source=audio_path.name,
    )
    try:
        _controller.accept_audio(clip)
        transcribed = await _controller.transcribe()
    except KeywordSpotterError as e:
        return _error_message(e)
    except Exception as e:
        logger.exception("Unexpected error while transcribing")
        return f"Error transcribing {audio_path.name}: {e}"

    if not transcribed:
        return f"Error: {_controller.session.error or 'Transcription discarded.'}"

    session = _controller.session
    return (
        f"## Transcript: {audio_path.name}\n"
        f"**Language:** {session.audio_language}\n\n{session.transcript}"
    )


@mcp.tool(annotations=LOCAL_ANNOTATIONS)
async def submit_transcript(
    text: Annotated[str, Field(description="Transcript text produced elsewhere (e.g. browser speech recognition), assumed to be in the current UI language")],
) -> str:
    """Start a new session from an existing transcript instead of audio."""
    try:
        _controller.submit_transcript(text)
    except KeywordSpotterError as e:
        return _error_message(e)
    return f"Transcript accepted ({len(text)} characters, language: {_controller.ui_language})."


@mcp.tool(annotations=READ_ONLY_ANNOTATIONS)
async def get_transcript() -> str:
    """Get the current transcript with exact matches in bold and fuzzy matches in italics."""
    session = _controller.session
    if session.is_transcribing:
        return "Transcription in progress."
    if not session.transcript:
        if session.error:
            return f"Error: {session.error}"
        return "No transcript. Use load_audio or submit_transcript first."

    header = f"## Transcript\n**Language:** {session.audio_language or 'unknown'}\n"
    return f"{header}\n{to_markdown(_controller.render())}"


@mcp.tool(annotations=READ_ONLY_ANNOTATIONS)
async def list_keywords() -> str:
    """List all keywords with their match status."""
    store = _controller.store
    header = f"## Keywords ({len(store)}/{store.max_size})\n"
    if len(store) == 0:
        return header + "\nNo keywords yet. Use add_keyword to create one."
    show = _controller.session.has_analyzed
    lines = [_keyword_line(kw, show) for kw in store]
    return header + "\n" + "\n".join(lines)


@mcp.tool(annotations=LOCAL_ANNOTATIONS)
async def add_keyword(
    text: Annotated[str, Field(description="Keyword text: up to 20 Latin characters or 10 characters of other scripts")],
) -> str:
    """Add a keyword to the front of the list."""
    try:
        keyword = _controller.store.add(text)
    except KeywordSpotterError as e:
        return _error_message(e)
    return f"Added keyword '{keyword.text}' (id: {keyword.id})."


@mcp.tool(annotations=LOCAL_ANNOTATIONS)
async def edit_keyword(
    keyword_id: Annotated[str, Field(description="Id of the keyword to edit, as shown by list_keywords")],
    text: Annotated[str, Field(description="New keyword text; blank cancels the edit")],
) -> str:
    """Change a keyword's text. Its match results are cleared."""
    try:
        keyword = _controller.store.edit(keyword_id, text)
    except KeywordSpotterError as e:
        return _error_message(e)
    if keyword is None:
        return "Edit cancelled."
    return f"Keyword updated to '{keyword.text}'."


@mcp.tool(annotations={**LOCAL_ANNOTATIONS, "destructiveHint": True})
async def remove_keyword(
    keyword_id: Annotated[str, Field(description="Id of the keyword to remove")],
) -> str:
    """Remove a keyword. Unknown ids are ignored."""
    _controller.store.remove(keyword_id)
    return f"Keyword {keyword_id} removed."


@mcp.tool(annotations=REMOTE_ANNOTATIONS)
async def analyze_keywords() -> str:
    """Check the transcript for every keyword: exact matches locally, fuzzy matches via the semantic service."""
    _check_rate_limit()

    try:
        result = await _controller.analyze()
    except KeywordSpotterError as e:
        return _error_message(e)
    except Exception as e:
        logger.exception("Unexpected error during analysis")
        return f"Error analyzing keywords: {e}"
    if result is None:
        return "Analysis discarded: the audio changed while it was running."

    parts = [
        "## Keyword Analysis",
        _stats_to_markdown(_controller.stats()),
    ]
    if result.error:
        parts.append(f"**Warning:** {result.error}")
    parts.append("\n".join(_keyword_line(kw, True) for kw in _controller.store))
    return "\n\n".join(parts)


@mcp.tool(annotations=READ_ONLY_ANNOTATIONS)
async def get_stats() -> str:
    """Get exact, fuzzy and combined hit rates for the last analysis."""
    if not _controller.session.has_analyzed:
        return "No analysis yet. Use analyze_keywords first."
    return f"## Analysis Overview\n{_stats_to_markdown(_controller.stats())}"


@mcp.tool(annotations=LOCAL_ANNOTATIONS)
async def reset_results() -> str:
    """Clear all match results, keeping the keyword list."""
    _controller.reset_results()
    return "Match results cleared."


@mcp.tool(annotations=LOCAL_ANNOTATIONS)
async def set_language(
    language: Annotated[str, Field(description="UI / keyword list language: zh, en or ja")],
) -> str:
    """Switch the keyword list language used for cross-language matching."""
    try:
        swapped = _controller.set_language(language)
    except KeywordSpotterError as e:
        return _error_message(e)
    msg = f"Language set to {_controller.ui_language}."
    if swapped:
        msg += " Default keywords replaced with this language's defaults."
    return msg


@mcp.tool(annotations={**LOCAL_ANNOTATIONS, "destructiveHint": True})
async def clear_audio() -> str:
    """Drop the current audio, transcript and match results."""
    _controller.clear()
    return "Audio cleared."


# -- MCP Prompts --


@mcp.prompt()
def spot_keywords(
    path: Annotated[str, Field(description="Path to the audio file to check")],
) -> str:
    """Transcribe an audio file and report which keywords were spoken."""
    return f"""Please use the load_audio tool to transcribe this file: {path}

Then call analyze_keywords and present:
1. Keywords found verbatim
2. Keywords only matched semantically, with the passages that matched
3. Keywords not mentioned at all
4. The highlighted transcript from get_transcript"""


# -- MCP Resources --


@mcp.resource("keywords://help")
def help_resource() -> str:
    """Usage guide for the Voice Keyword Spotter MCP server."""
    return """# Voice Keyword Spotter MCP Server - Help Guide

## Workflow
1. load_audio(path) or submit_transcript(text)
2. add_keyword / edit_keyword / remove_keyword to maintain the list (max 100)
3. analyze_keywords() to run exact + fuzzy matching
4. get_transcript() for the highlighted transcript, get_stats() for hit rates

## Matching
- Exact: case-insensitive substring check, done locally
- Fuzzy: keywords not found exactly are sent to the semantic service
- If the audio language differs from the UI language (set_language), keywords
  are translated into the audio language before matching

## Keyword rules
- Unique, case-insensitive
- Up to 20 characters when all characters are Latin-1, otherwise up to 10
"""


def main():
    settings = Settings()
    if settings.transport == Transport.STREAMABLE_HTTP:
        mcp.run(transport="streamable-http")
    else:
        mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
