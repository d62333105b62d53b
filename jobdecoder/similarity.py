"""
Similarity Scorer — Normalized Levenshtein Similarity

similarity = (max_len - distance) / max_len, in [0, 1].

Memory stays O(min(m, n)): the edit distance keeps two rolling rows with
the shorter string as the inner dimension. Inputs are truncated to
MAX_COMPARE_LENGTH, and pairs whose lengths differ by more than half the
longer one short-circuit to 0.0.
"""

from __future__ import annotations

from typing import Optional

from jobdecoder.cache import LRUCache

MAX_COMPARE_LENGTH = 100
# only short pairs are worth caching
CACHEABLE_LENGTH = 50
MAX_LENGTH_RATIO_GAP = 0.5


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance (insert/delete/substitute, unit cost)."""
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    current = [0] * (len(b) + 1)
    for i, ca in enumerate(a, 1):
        current[0] = i
        for j, cb in enumerate(b, 1):
            cost = 0 if ca == cb else 1
            current[j] = min(
                previous[j] + 1,         # deletion
                current[j - 1] + 1,      # insertion
                previous[j - 1] + cost,  # substitution
            )
        previous, current = current, previous
    return previous[len(b)]


def calculate_similarity(a: str, b: str, cache: Optional[LRUCache] = None) -> float:
    """
    Similarity of two strings, 1.0 for identical input.

    When a cache is supplied, results for pairs with combined length
    below CACHEABLE_LENGTH are stored under "len1:len2:s1:s2".
    """
    if a == b:
        return 1.0

    s1 = a[:MAX_COMPARE_LENGTH]
    s2 = b[:MAX_COMPARE_LENGTH]
    len1, len2 = len(s1), len(s2)

    if len1 == 0 and len2 == 0:
        return 1.0
    if len1 == 0 or len2 == 0:
        return 0.0

    max_len = max(len1, len2)
    if abs(len1 - len2) > max_len * MAX_LENGTH_RATIO_GAP:
        return 0.0

    key = None
    if cache is not None and len1 + len2 < CACHEABLE_LENGTH:
        key = f"{len1}:{len2}:{s1}:{s2}"
        cached = cache.get(key)
        if cached is not None:
            return cached

    similarity = (max_len - levenshtein_distance(s1, s2)) / max_len

    if key is not None:
        cache.set(key, similarity)
    return similarity
