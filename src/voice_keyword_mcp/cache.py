"""In-memory TTL cache for keyword translations."""

from cachetools import TTLCache


class TranslationCache:
    def __init__(self, max_size: int = 500, ttl: int = 3600):
        self._cache: TTLCache = TTLCache(maxsize=max_size, ttl=ttl)
        self._hits = 0
        self._misses = 0

    def _key(self, text: str, target_language: str) -> str:
        return f"{target_language}:{text}"

    def get(self, text: str, target_language: str) -> str | None:
        key = self._key(text, target_language)
        result = self._cache.get(key)
        if result is not None:
            self._hits += 1
        else:
            self._misses += 1
        return result

    def set(self, text: str, target_language: str, translated: str) -> None:
        key = self._key(text, target_language)
        self._cache[key] = translated

    def stats(self) -> dict:
        return {
            "size": len(self._cache),
            "max_size": self._cache.maxsize,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / max(self._hits + self._misses, 1) * 100, 1),
        }
