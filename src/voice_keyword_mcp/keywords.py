"""Keyword list with validation and match bookkeeping."""

import logging

from voice_keyword_mcp.errors import CapacityError, DuplicateError, LengthError, ValidationError
from voice_keyword_mcp.models import Keyword, KeywordStats, MatchUpdate
from voice_keyword_mcp.utils import percentage

logger = logging.getLogger(__name__)

MAX_KEYWORDS = 100
LATIN_CHAR_LIMIT = 20
WIDE_CHAR_LIMIT = 10

DEFAULT_KEYWORDS: dict[str, list[str]] = {
    "zh": [
        "数字化转型", "数据平台", "节能减排", "跨部门协同", "创新业务",
        "智能硬件", "智慧城市", "城市能耗预测", "绿色建筑", "被动式设计",
        "智能交通系统", "传感器", "空气污染", "工业革命", "能源分配",
        "城市基础设施", "城市更新", "城市可持续发展", "热岛效应", "地下交通系统",
        "互动展示技术", "城市人口密度", "能源管理平台", "气候适应型建筑", "城市排水系统",
        "公共交通效率", "数据可视化", "建筑材料科技", "城市声环境", "市政工程管理",
    ],
    "en": ["Hello", "Urgent", "Help", "Support"],
    "ja": ["こんにちは", "緊急", "助けて", "サポート"],
}


def char_limit(text: str) -> int:
    """Length limit for *text*: 20 if every code point is <= 0xFF, else 10."""
    if all(ord(ch) <= 0xFF for ch in text):
        return LATIN_CHAR_LIMIT
    return WIDE_CHAR_LIMIT


def default_keywords(language: str) -> list[Keyword]:
    return [
        Keyword(id=f"{language}-{i}", text=text)
        for i, text in enumerate(DEFAULT_KEYWORDS.get(language, []), start=1)
    ]


class KeywordStore:
    """Ordered keyword records, newest first.

    All mutations validate before touching the list, so a failed call
    never leaves partial state behind.
    """

    def __init__(self, keywords: list[Keyword] | None = None, max_size: int = MAX_KEYWORDS):
        self._keywords: list[Keyword] = list(keywords or [])
        self._max_size = max_size

    def __len__(self) -> int:
        return len(self._keywords)

    def __iter__(self):
        return iter(list(self._keywords))

    @property
    def keywords(self) -> list[Keyword]:
        return list(self._keywords)

    @property
    def max_size(self) -> int:
        return self._max_size

    def get(self, keyword_id: str) -> Keyword | None:
        for kw in self._keywords:
            if kw.id == keyword_id:
                return kw
        return None

    def _validate(self, text: str, exclude_id: str | None = None) -> None:
        lowered = text.lower()
        for kw in self._keywords:
            if kw.id != exclude_id and kw.text.lower() == lowered:
                raise DuplicateError(f"Keyword already exists: {text}", {"text": text})
        limit = char_limit(text)
        if len(text) > limit:
            raise LengthError(
                f"Keyword too long: {len(text)}/{limit} characters",
                {"text": text, "limit": limit},
            )

    def add(self, text: str) -> Keyword:
        """Validate and insert a new keyword at the front of the list."""
        trimmed = text.strip()
        if not trimmed:
            raise ValidationError("Keyword text cannot be empty.")
        if len(self._keywords) >= self._max_size:
            raise CapacityError(
                f"Keyword list is full ({self._max_size} max).",
                {"max": self._max_size},
            )
        self._validate(trimmed)

        keyword = Keyword(text=trimmed)
        self._keywords.insert(0, keyword)
        return keyword

    def edit(self, keyword_id: str, new_text: str) -> Keyword | None:
        """Replace a keyword's text and clear its match data.

        Blank *new_text* cancels the edit and returns ``None``.
        """
        trimmed = new_text.strip()
        if not trimmed:
            return None

        index = self._index(keyword_id)
        if index is None:
            raise ValidationError(f"Unknown keyword id: {keyword_id}", {"id": keyword_id})
        self._validate(trimmed, exclude_id=keyword_id)

        updated = self._keywords[index].cleared(text=trimmed)
        self._keywords[index] = updated
        return updated

    def remove(self, keyword_id: str) -> None:
        self._keywords = [kw for kw in self._keywords if kw.id != keyword_id]

    def reset_matches(self) -> None:
        self._keywords = [kw.cleared() for kw in self._keywords]

    def replace_all(self, keywords: list[Keyword]) -> None:
        self._keywords = list(keywords)

    def apply_updates(self, updates: dict[str, MatchUpdate]) -> int:
        """Write reconciled match data back onto the records.

        Updates for removed records, or for records whose text changed
        since the analysis started, are dropped. Returns the number applied.
        """
        applied = 0
        result = []
        for kw in self._keywords:
            update = updates.get(kw.id)
            if update is None or update.source_text != kw.text:
                result.append(kw)
                continue
            result.append(
                kw.model_copy(
                    update={
                        "detected": update.detected,
                        "match_count": update.match_count,
                        "fuzzy_count": update.fuzzy_count,
                        "fuzzy_segments": list(update.fuzzy_segments),
                        "translated_text": update.translated_text,
                    }
                )
            )
            applied += 1
        self._keywords = result
        if applied != len(updates):
            logger.info(f"Dropped {len(updates) - applied} stale keyword update(s)")
        return applied

    def stats(self) -> KeywordStats:
        total = len(self._keywords)
        exact = sum(1 for kw in self._keywords if kw.detected and kw.match_count > 0)
        fuzzy = sum(1 for kw in self._keywords if kw.fuzzy_count > 0)
        combined = sum(
            1
            for kw in self._keywords
            if (kw.detected and kw.match_count > 0) or kw.fuzzy_count > 0
        )
        return KeywordStats(
            total=total,
            exact=exact,
            fuzzy=fuzzy,
            combined=combined,
            exact_rate=percentage(exact, total),
            fuzzy_rate=percentage(fuzzy, total),
            combined_rate=percentage(combined, total),
        )

    def is_default_list(self, language: str) -> bool:
        """True when the texts equal *language*'s default list, in order."""
        defaults = DEFAULT_KEYWORDS.get(language, [])
        return [kw.text for kw in self._keywords] == defaults

    def _index(self, keyword_id: str) -> int | None:
        for i, kw in enumerate(self._keywords):
            if kw.id == keyword_id:
                return i
        return None
