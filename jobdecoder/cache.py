"""
Match Cache — Bounded LRU Caches

Two in-memory LRU caches:
  - matches:     SHA-256(text + findings + options) → matches (500 entries)
  - similarity:  "len1:len2:s1:s2" → similarity score (2000 entries)

Capacities come from settings and can be overridden per instance, so
tests construct fresh caches instead of sharing the singleton.

No lock: the matching coroutines touch the cache synchronously between
yield points. Concurrent identical requests may both compute; the last
write wins with an identical value.

Usage:
    from jobdecoder.cache import match_cache
    key = match_cache.make_key(text, findings, options)
    cached = match_cache.matches.get(key)
"""

from __future__ import annotations

import hashlib
import json
from collections import OrderedDict
from typing import Any, Generic, Hashable, Iterable, Optional, TypeVar

from jobdecoder.config import settings
from jobdecoder.models import CacheStats

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class LRUCache(Generic[K, V]):
    """Least-recently-used cache backed by an OrderedDict."""

    def __init__(self, max_size: int):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._max_size = max_size
        self._data: OrderedDict[K, V] = OrderedDict()

    def get(self, key: K) -> Optional[V]:
        """Return the value and mark it most recently used, or None."""
        if key not in self._data:
            return None
        self._data.move_to_end(key)
        return self._data[key]

    def set(self, key: K, value: V) -> None:
        """Insert or refresh. Evicts the least recently used entry at capacity."""
        if key in self._data:
            self._data.move_to_end(key)
        elif len(self._data) >= self._max_size:
            self._data.popitem(last=False)
        self._data[key] = value

    def has(self, key: K) -> bool:
        """Membership test. Does not touch recency."""
        return key in self._data

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def clear(self) -> None:
        self._data.clear()

    def size(self) -> int:
        return len(self._data)

    def __len__(self) -> int:
        return len(self._data)

    @property
    def max_size(self) -> int:
        return self._max_size


class MatchCache:
    """The match-result and similarity caches with shared stats/clear."""

    def __init__(
        self,
        match_size: int = settings.MATCH_CACHE_SIZE,
        similarity_size: int = settings.SIMILARITY_CACHE_SIZE,
    ):
        self.matches: LRUCache[str, list] = LRUCache(match_size)
        self.similarity: LRUCache[str, float] = LRUCache(similarity_size)

    @staticmethod
    def make_key(text: str, findings: Iterable[Any], options: Any) -> str:
        """
        SHA-256 over the full request: text, every finding and the options.

        Findings may be Finding objects or plain dicts; options may be a
        MatchingOptions or anything JSON-serializable.
        """
        payload = [
            f.to_dict() if hasattr(f, "to_dict") else f
            for f in findings
        ]
        token = options.cache_token() if hasattr(options, "cache_token") else options
        raw = "||".join([
            text,
            json.dumps(payload, sort_keys=True, ensure_ascii=False, default=str),
            json.dumps(token, sort_keys=True, ensure_ascii=False, default=str),
        ])
        return hashlib.sha256(raw.encode("utf-8")).hexdigest()

    def stats(self) -> CacheStats:
        return CacheStats(
            match_cache_size=self.matches.size(),
            similarity_cache_size=self.similarity.size(),
            match_cache_max_size=self.matches.max_size,
            similarity_cache_max_size=self.similarity.max_size,
        )

    def clear(self) -> None:
        self.matches.clear()
        self.similarity.clear()


# Singleton — shared across the application
match_cache = MatchCache()
