"""Transcript highlighting.

Two strategies, picked per call:

- Server-marked: the service's ``<exact>``/``<fuzzy>`` tags are taken as
  authoritative. Tag content is not re-matched.
- Client fallback: detected keyword texts and all fuzzy segments become a
  deduplicated literal set, longest first, matched case-insensitively.

Either way the segment texts concatenate back to the visible transcript.
"""

import re

from voice_keyword_mcp.models import Keyword, Segment, SegmentKind
from voice_keyword_mcp.providers.base import EXACT_CLOSE, EXACT_OPEN, FUZZY_CLOSE, FUZZY_OPEN

MARKER_PATTERN = re.compile(
    f"{re.escape(EXACT_OPEN)}(?P<exact>.*?){re.escape(EXACT_CLOSE)}"
    f"|{re.escape(FUZZY_OPEN)}(?P<fuzzy>.*?){re.escape(FUZZY_CLOSE)}",
    re.DOTALL,
)


def _append(segments: list[Segment], kind: SegmentKind, text: str) -> None:
    if not text:
        return
    if kind == SegmentKind.PLAIN and segments and segments[-1].kind == SegmentKind.PLAIN:
        segments[-1] = Segment(kind=kind, text=segments[-1].text + text)
        return
    segments.append(Segment(kind=kind, text=text))


def render_marked(marked_transcript: str) -> list[Segment]:
    segments: list[Segment] = []
    pos = 0
    for match in MARKER_PATTERN.finditer(marked_transcript):
        _append(segments, SegmentKind.PLAIN, marked_transcript[pos:match.start()])
        if match.group("exact") is not None:
            _append(segments, SegmentKind.EXACT, match.group("exact"))
        else:
            _append(segments, SegmentKind.FUZZY, match.group("fuzzy"))
        pos = match.end()
    _append(segments, SegmentKind.PLAIN, marked_transcript[pos:])
    return segments


def strip_markers(marked_transcript: str) -> str:
    """Visible text of a marked transcript."""
    return "".join(seg.text for seg in render_marked(marked_transcript))


def highlight_terms(keywords: list[Keyword]) -> dict[str, SegmentKind]:
    """Literals for client-side matching, each mapped to its highlight kind.

    Deduplicated case-insensitively; a text that is both exact and fuzzy
    stays exact.
    """
    candidates: list[tuple[str, SegmentKind]] = []
    for kw in keywords:
        if kw.detected:
            candidates.append((kw.text, SegmentKind.EXACT))
            if kw.translated_text:
                candidates.append((kw.translated_text, SegmentKind.EXACT))
    for kw in keywords:
        candidates.extend((seg, SegmentKind.FUZZY) for seg in kw.fuzzy_segments)

    terms: dict[str, SegmentKind] = {}
    seen: set[str] = set()
    for literal, kind in candidates:
        key = literal.casefold()
        if not literal or key in seen:
            continue
        seen.add(key)
        terms[literal] = kind
    return terms


def longest_first(literals) -> list[str]:
    return sorted(literals, key=lambda s: (-len(s), s))


def build_matcher(literals: list[str]) -> re.Pattern | None:
    """One capturing group per literal, tried in the order given."""
    if not literals:
        return None
    return re.compile("|".join(f"({re.escape(s)})" for s in literals), re.IGNORECASE)


def render_client(transcript: str, keywords: list[Keyword]) -> list[Segment]:
    terms = highlight_terms(keywords)
    ordered = longest_first(terms)
    matcher = build_matcher(ordered)
    if matcher is None:
        return [Segment(kind=SegmentKind.PLAIN, text=transcript)] if transcript else []

    segments: list[Segment] = []
    pos = 0
    for match in matcher.finditer(transcript):
        piece = match.group(0)
        if not piece:
            continue
        _append(segments, SegmentKind.PLAIN, transcript[pos:match.start()])
        _append(segments, terms[ordered[match.lastindex - 1]], piece)
        pos = match.end()
    _append(segments, SegmentKind.PLAIN, transcript[pos:])
    return segments


def render(
    transcript: str,
    keywords: list[Keyword],
    marked_transcript: str | None = None,
) -> list[Segment]:
    if marked_transcript:
        return render_marked(marked_transcript)
    return render_client(transcript, keywords)


def to_markdown(segments: list[Segment]) -> str:
    parts = []
    for seg in segments:
        if seg.kind == SegmentKind.EXACT:
            parts.append(f"**{seg.text}**")
        elif seg.kind == SegmentKind.FUZZY:
            parts.append(f"_{seg.text}_")
        else:
            parts.append(seg.text)
    return "".join(parts)
