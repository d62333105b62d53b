"""
Match Finder — Per-Phrase Search Strategies

Locates one phrase in the original text. Strategies run in strict
priority and the first one that yields anything wins:

  1. exact:       literal occurrences (overlapping), confidence 1.0
  2. normalized:  occurrences after full normalization, remapped to
                  original spans, confidence 0.9
  3. fuzzy:       best window near a flexible-normalized hit, scored by
                  edit-distance similarity, confidence < 0.9

find_matches() never raises. Spans are returned without a finding or id;
the orchestrator attaches both.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional

from jobdecoder.cache import LRUCache
from jobdecoder.errors import safe_execute
from jobdecoder.logging import get_logger
from jobdecoder.models import (
    EnhancedPhraseMatch,
    MatchingOptions,
    EXACT_CONFIDENCE,
    FUZZY_CONFIDENCE_CEILING,
    NORMALIZED_CONFIDENCE,
)
from jobdecoder.normalization import (
    build_normalization_mapping,
    flexible_normalize_text,
    normalize_text,
)
from jobdecoder.similarity import calculate_similarity

logger = get_logger("finder")


# ============================================================
# TUNING CONSTANTS
# ============================================================

MIN_PHRASE_LENGTH = 2
MAX_FUZZY_ITERATIONS = 200
MAX_SEARCH_WINDOW = 50
PRECISE_WINDOW = 10
PRECISE_TARGET = 0.95
# cooperative yield cadence inside the fuzzy scan
YIELD_EVERY = 20


@dataclass
class _Window:
    start: int
    end: int
    similarity: float


# ============================================================
# EXACT
# ============================================================

def find_exact(text: str, phrase: str) -> list[EnhancedPhraseMatch]:
    """Every literal occurrence, overlapping ones included."""
    matches: list[EnhancedPhraseMatch] = []
    if not phrase:
        return matches

    idx = text.find(phrase)
    while idx != -1:
        matches.append(EnhancedPhraseMatch(
            start_index=idx,
            end_index=idx + len(phrase),
            phrase=phrase,
            original_phrase=phrase,
            match_type="exact",
            confidence=EXACT_CONFIDENCE,
        ))
        idx = text.find(phrase, idx + 1)
    return matches


# ============================================================
# NORMALIZED
# ============================================================

async def find_normalized(
    text: str,
    phrase: str,
    options: Optional[MatchingOptions] = None,
) -> list[EnhancedPhraseMatch]:
    """
    Occurrences after full normalization, mapped back to the original.

    The mapping table is built once per call. Hits that cannot be mapped
    to a consistent original span are dropped.
    """
    options = options or MatchingOptions()
    needle = normalize_text(phrase)
    if not needle:
        return []

    mapping = build_normalization_mapping(text)
    haystack = mapping.normalized

    matches: list[EnhancedPhraseMatch] = []
    idx = haystack.find(needle)
    while idx != -1:
        span = await safe_execute(
            lambda i=idx: mapping.to_original(i, len(needle)),
            "position_calculation",
            context={"phrase": phrase, "normalized_index": idx},
            options=options,
        )
        if span is None:
            logger.debug(
                "Dropped unmappable normalized hit",
                extra={"phrase": phrase, "start_index": idx},
            )
        else:
            start, end = span
            matches.append(EnhancedPhraseMatch(
                start_index=start,
                end_index=end,
                phrase=text[start:end],
                original_phrase=phrase,
                match_type="normalized",
                confidence=NORMALIZED_CONFIDENCE,
            ))
        idx = haystack.find(needle, idx + 1)
    return matches


# ============================================================
# FUZZY
# ============================================================

def _score(candidate: str, flex_phrase: str, cache: Optional[LRUCache]) -> float:
    return calculate_similarity(flexible_normalize_text(candidate), flex_phrase, cache)


def _precise_search(
    text: str,
    phrase: str,
    flex_phrase: str,
    center: int,
    threshold: float,
    cache: Optional[LRUCache],
) -> Optional[_Window]:
    """Step-1 rescan of ±min(PRECISE_WINDOW, len(phrase)) around center."""
    radius = min(PRECISE_WINDOW, len(phrase))
    lo = max(0, center - radius)
    hi = min(len(text) - len(phrase), center + radius)

    best: Optional[_Window] = None
    for start in range(lo, hi + 1):
        similarity = _score(text[start:start + len(phrase)], flex_phrase, cache)
        if similarity > threshold and (best is None or similarity > best.similarity):
            best = _Window(start, start + len(phrase), similarity)
    return best


async def find_fuzzy(
    text: str,
    phrase: str,
    options: Optional[MatchingOptions] = None,
    similarity_cache: Optional[LRUCache] = None,
) -> list[EnhancedPhraseMatch]:
    """
    Best approximate window for phrase, or nothing.

    The flexible-normalized phrase must occur in the flexible-normalized
    text; its relative position there estimates where to look in the
    original. A window of candidates around the estimate is scored, and
    the best one above the threshold is optionally refined by a precise
    step-1 rescan.
    """
    options = options or MatchingOptions()
    if len(phrase) < MIN_PHRASE_LENGTH or len(phrase) > len(text):
        return []

    flex_text = flexible_normalize_text(text)
    flex_phrase = flexible_normalize_text(phrase)
    if not flex_phrase or flex_phrase not in flex_text:
        return []

    cache = similarity_cache if options.enable_similarity_cache else None
    threshold = options.effective_fuzzy_threshold

    flex_index = flex_text.find(flex_phrase)
    estimated = int(flex_index / len(flex_text) * len(text))

    if options.enable_dynamic_window:
        window = max(options.effective_search_range, len(phrase) * 2)
    else:
        window = MAX_SEARCH_WINDOW

    search_start = max(0, estimated - window)
    search_end = min(len(text), estimated + window)
    max_iterations = min(MAX_FUZZY_ITERATIONS, search_end - search_start)
    if max_iterations <= 0:
        return []
    step = max(1, (search_end - search_start) // max_iterations)

    best: Optional[_Window] = None
    iterations = 0
    for start in range(search_start, search_end - len(phrase) + 1, step):
        if iterations >= max_iterations:
            break
        similarity = _score(text[start:start + len(phrase)], flex_phrase, cache)
        if similarity > threshold and (best is None or similarity > best.similarity):
            best = _Window(start, start + len(phrase), similarity)

        iterations += 1
        if iterations % YIELD_EVERY == 0:
            await asyncio.sleep(0)

    if best is None:
        return []

    if best.similarity < PRECISE_TARGET and options.enable_precise_fuzzy:
        refined = _precise_search(text, phrase, flex_phrase, best.start, threshold, cache)
        if refined is not None and refined.similarity > best.similarity:
            best = refined

    if options.debug:
        logger.info(
            "Fuzzy window selected",
            extra={
                "phrase": phrase,
                "start_index": best.start,
                "end_index": best.end,
                "confidence": round(best.similarity, 3),
            },
        )

    return [EnhancedPhraseMatch(
        start_index=best.start,
        end_index=best.end,
        phrase=text[best.start:best.end],
        original_phrase=phrase,
        match_type="fuzzy",
        confidence=min(best.similarity, FUZZY_CONFIDENCE_CEILING),
    )]


# ============================================================
# PIPELINE
# ============================================================

async def _find_matches(
    text: str,
    phrase: str,
    options: MatchingOptions,
    similarity_cache: Optional[LRUCache],
) -> list[EnhancedPhraseMatch]:
    if options.enable_exact_match:
        exact = find_exact(text, phrase)
        if exact:
            return exact

    if options.enable_normalization:
        normalized = await find_normalized(text, phrase, options)
        if normalized:
            return normalized

    if options.enable_fuzzy_matching:
        fuzzy = await safe_execute(
            lambda: find_fuzzy(text, phrase, options, similarity_cache),
            "fuzzy_matching",
            context={"phrase": phrase, "text_length": len(text)},
            options=options,
            default=[],
        )
        if fuzzy:
            return fuzzy

    return []


async def find_matches(
    text: str,
    phrase: str,
    options: Optional[MatchingOptions] = None,
    similarity_cache: Optional[LRUCache] = None,
) -> list[EnhancedPhraseMatch]:
    """
    Locate phrase in text. Never raises; failures log and yield [].

    Phrases are trimmed first; anything shorter than MIN_PHRASE_LENGTH
    is skipped.
    """
    options = MatchingOptions.coerce(options)
    if not isinstance(text, str) or not isinstance(phrase, str):
        return []
    phrase = phrase.strip()
    if len(phrase) < MIN_PHRASE_LENGTH or not text:
        return []

    return await safe_execute(
        lambda: _find_matches(text, phrase, options, similarity_cache),
        "phrase_processing",
        context={"phrase": phrase},
        options=options,
        default=[],
    )
