"""
Text Normalizer — Width, Symbol and Whitespace Unification

Three normalization levels:
  - full:      width shift, symbol unification, whitespace collapse,
               sentence punctuation (、。) stripped
  - light:     width shift of digits and letters, whitespace collapse
  - flexible:  separators become spaces, lowercased (fuzzy search only)

Full and light normalization are computed by a single character walker,
so the same walk also yields a NormalizationMapping: for every original
index, the offset in the normalized text where that character lands.
Hits found in normalized space are mapped back to original spans by
binary search over that table.
"""

from __future__ import annotations

import re
from bisect import bisect_left
from dataclasses import dataclass
from typing import Any, Iterator, Optional


# ============================================================
# CHARACTER TABLES
# ============================================================

# Full-width ASCII block: U+FF01..U+FF5E sits at a fixed 0xFEE0 offset
WIDTH_OFFSET = 0xFEE0

_WIDTH_MAP: dict[str, str] = {}
for _lo, _hi in (("０", "９"), ("Ａ", "Ｚ"), ("ａ", "ｚ")):
    for _code in range(ord(_lo), ord(_hi) + 1):
        _WIDTH_MAP[chr(_code)] = chr(_code - WIDTH_OFFSET)

_SYMBOL_MAP: dict[str, str] = {
    "！": "!", "？": "?", "：": ":", "；": ";", "／": "/", "￥": "\\",
    "（": "(", "）": ")", "［": "[", "］": "]", "｛": "{", "｝": "}",
    "，": ",", "．": ".", "％": "%", "＆": "&", "＋": "+", "＝": "=",
    "＠": "@", "＃": "#", "＊": "*", "＜": "<", "＞": ">",
    # long-vowel variants
    "－": "ー", "―": "ー", "─": "ー",
    # sentence punctuation, stripped
    "、": "", "。": "",
}

FULL_MAP: dict[str, str] = {**_WIDTH_MAP, **_SYMBOL_MAP}
LIGHT_MAP: dict[str, str] = dict(_WIDTH_MAP)

# Zero-width space is not str.isspace() but renders as a gap in postings
_EXTRA_SPACES = frozenset("\u200b")

_FLEX_SEPARATORS_RE = re.compile(r"[\r\n/／、,。.]")
_SPACE_RE = re.compile(r"\s+")
_FLEX_TRANSLATION = str.maketrans({
    **_WIDTH_MAP,
    "（": "(", "）": ")", "：": ":", "！": "!", "？": "?",
})


def is_space(ch: str) -> bool:
    return ch.isspace() or ch in _EXTRA_SPACES


def _walk(text: str, char_map: dict[str, str]) -> Iterator[tuple[int, str]]:
    """
    Yield (original_index, emitted) for every character of text.

    Whitespace runs emit a single " ", and nothing before the first
    content character. Stripped characters (empty mapping) leave the
    current whitespace run open so "a 。 b" collapses to "a b".
    Trailing whitespace is emitted here and trimmed by the caller.
    """
    seen_content = False
    in_space = False
    for i, ch in enumerate(text):
        if is_space(ch):
            if seen_content and not in_space:
                in_space = True
                yield i, " "
            else:
                yield i, ""
            continue

        out = char_map.get(ch, ch)
        if out:
            seen_content = True
            in_space = False
        yield i, out


# ============================================================
# NORMALIZATION
# ============================================================

def normalize_text(text: Any) -> str:
    """
    Full normalization. Pure and idempotent; non-string input yields "".

        >>> normalize_text("年俸５００万円（税込み）、賞与あり。")
        '年俸500万円(税込み)賞与あり'
    """
    if not isinstance(text, str) or not text:
        return ""
    return "".join(out for _, out in _walk(text, FULL_MAP)).rstrip(" ")


def light_normalize_text(text: Any) -> str:
    """Width shift of digits and letters plus whitespace collapse only."""
    if not isinstance(text, str) or not text:
        return ""
    return "".join(out for _, out in _walk(text, LIGHT_MAP)).rstrip(" ")


def flexible_normalize_text(text: Any) -> str:
    """Loose form for fuzzy search: separators to spaces, lowercased."""
    if not isinstance(text, str) or not text:
        return ""
    text = _FLEX_SEPARATORS_RE.sub(" ", text)
    text = text.translate(_FLEX_TRANSLATION)
    text = _SPACE_RE.sub(" ", text).strip()
    return text.lower()


# ============================================================
# POSITION MAPPING
# ============================================================

@dataclass(frozen=True)
class NormalizationMapping:
    """
    Normalized text plus the offset table back to the original.

    positions[i] is the normalized offset at which original character i
    lands; positions[len(original)] is a sentinel. The table is
    non-decreasing, and a character that emits nothing has
    positions[i + 1] == positions[i].
    """
    original: str
    normalized: str
    positions: tuple[int, ...]

    def to_original(self, normalized_index: int, normalized_length: int) -> Optional[tuple[int, int]]:
        """Map a normalized range to an original [start, end) span, or None."""
        if normalized_length <= 0 or normalized_index < 0:
            return None
        if normalized_index + normalized_length > len(self.normalized):
            return None

        positions = self.positions
        n = len(self.original)

        start = bisect_left(positions, normalized_index, 0, n)
        # characters that produced nothing (leading space, collapsed runs, 、。)
        while start < n and positions[start + 1] == positions[start]:
            start += 1
        if start >= n or positions[start] != normalized_index:
            return None

        target_end = normalized_index + normalized_length
        end = bisect_left(positions, target_end, start + 1, n + 1)
        if end > n or positions[end] != target_end:
            return None

        return start, end


def build_normalization_mapping(text: str, light: bool = False) -> NormalizationMapping:
    """Walk text once, producing the normalized string and its offset table."""
    if not isinstance(text, str):
        text = ""
    char_map = LIGHT_MAP if light else FULL_MAP

    positions: list[int] = []
    parts: list[str] = []
    offset = 0
    for _, out in _walk(text, char_map):
        positions.append(offset)
        if out:
            parts.append(out)
            offset += len(out)
    positions.append(offset)

    return NormalizationMapping(
        original=text,
        normalized="".join(parts).rstrip(" "),
        positions=tuple(positions),
    )


def map_normalized_range_to_original(
    original: str,
    normalized_index: int,
    normalized_length: int,
    light: bool = False,
) -> Optional[tuple[int, int]]:
    """
    One-shot remap of a normalized range. Callers remapping many hits in
    the same text should build the mapping once and call to_original().
    """
    mapping = build_normalization_mapping(original, light=light)
    return mapping.to_original(normalized_index, normalized_length)


# ============================================================
# UTILITIES
# ============================================================

@dataclass(frozen=True)
class NormalizedHit:
    start_index: int
    end_index: int
    matched_text: str


def is_normalized_match(text1: Any, text2: Any, light: bool = False) -> bool:
    normalize = light_normalize_text if light else normalize_text
    return normalize(text1) == normalize(text2)


def find_normalized_matches(text: Any, phrase: Any, light: bool = False) -> list[NormalizedHit]:
    """All (overlapping) occurrences of phrase in text after normalization."""
    if not isinstance(text, str) or not isinstance(phrase, str) or not text or not phrase:
        return []

    mapping = build_normalization_mapping(text, light=light)
    needle = light_normalize_text(phrase) if light else normalize_text(phrase)
    if not needle:
        return []

    hits: list[NormalizedHit] = []
    haystack = mapping.normalized
    idx = haystack.find(needle)
    while idx != -1:
        span = mapping.to_original(idx, len(needle))
        if span is not None:
            start, end = span
            hits.append(NormalizedHit(start, end, text[start:end]))
        idx = haystack.find(needle, idx + 1)
    return hits


def get_normalization_stats(text: Any) -> dict:
    """Length change produced by full normalization."""
    original = text if isinstance(text, str) else ""
    normalized = normalize_text(original)
    return {
        "original_length": len(original),
        "normalized_length": len(normalized),
        "reduction_ratio": len(normalized) / len(original) if original else 1.0,
        "changed_characters": len(original) - len(normalized),
    }
