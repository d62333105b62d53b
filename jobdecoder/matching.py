"""
Matching — Finding-to-Span Orchestrator

For each finding, in order:
  1. search the primary phrase (original_phrase, trimmed)
  2. only if that found nothing, search each related keyword

Every hit gets the finding attached and a stable id:
  finding-{i}-main-{type}-{start}
  finding-{i}-related-{j}-{type}-{start}

All hits are then deduplicated into a sorted, non-overlapping list and
cached under a content hash of (text, findings, options).

Every public entry point is fail-open: on any internal failure it logs
and returns an empty result.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import replace
from typing import Any, Iterable, Optional

from jobdecoder.cache import MatchCache, match_cache
from jobdecoder.errors import safe_execute
from jobdecoder.finder import MIN_PHRASE_LENGTH, find_matches as find_phrase
from jobdecoder.logging import get_logger
from jobdecoder.models import (
    CacheStats,
    EnhancedPhraseMatch,
    Finding,
    LegacyPhraseMatch,
    MatchingOptions,
    MatchingStats,
    MATCH_TYPES,
)

logger = get_logger("matching")

# cooperative yield cadence
YIELD_EVERY_FINDINGS = 3
YIELD_EVERY_KEYWORDS = 5


# ============================================================
# DEDUPLICATION
# ============================================================

def deduplicate_matches(
    matches: Iterable[EnhancedPhraseMatch],
    text: str = "",
    options: Optional[MatchingOptions] = None,
) -> list[EnhancedPhraseMatch]:
    """
    Resolve overlaps in O(n log n).

    Sorted by (start, end, -confidence), then a single scan against the
    last kept match:
      - identical span:  the later one is dropped
      - overlap:         the longer span wins, ties go to higher
                         confidence; a winner replaces the last kept
    The result is ordered by start then end and contains no overlaps.
    """
    ordered = sorted(matches, key=lambda m: (m.start_index, m.end_index, -m.confidence))
    debug = bool(options and options.debug)

    kept: list[EnhancedPhraseMatch] = []
    for match in ordered:
        if not kept:
            kept.append(match)
            continue

        last = kept[-1]
        if match.start_index == last.start_index and match.end_index == last.end_index:
            dropped = match
        elif match.start_index < last.end_index:
            wins = (
                match.length > last.length
                or (match.length == last.length and match.confidence > last.confidence)
            )
            if wins:
                kept[-1] = match
                dropped = last
            else:
                dropped = match
        else:
            kept.append(match)
            continue

        if debug:
            logger.info(
                f"Dropped overlapping match {dropped.id or dropped.phrase!r}",
                extra={
                    "phrase": text[dropped.start_index:dropped.end_index] if text else dropped.phrase,
                    "start_index": dropped.start_index,
                    "end_index": dropped.end_index,
                    "match_type": dropped.match_type,
                },
            )

    return kept


# ============================================================
# ORCHESTRATOR
# ============================================================

class PhraseMatcher:
    """
    Finds spans for a batch of findings.

    Owns no state besides its cache; inject a fresh MatchCache to
    isolate callers (tests do).
    """

    def __init__(self, cache: Optional[MatchCache] = None):
        self.cache = cache if cache is not None else MatchCache()

    async def find_matches(
        self,
        text: Any,
        findings: Any,
        options: Any = None,
    ) -> list[EnhancedPhraseMatch]:
        """Deduplicated matches for every finding. Never raises."""
        options = MatchingOptions.coerce(options)
        if not isinstance(text, str):
            text = ""
        if not text or not findings:
            return []

        result = await safe_execute(
            lambda: self._find_matches(text, findings, options),
            "general",
            context={
                "text_length": len(text),
                "findings_count": len(findings) if hasattr(findings, "__len__") else None,
            },
            options=options,
            default=[],
        )
        return list(result or [])

    async def _find_matches(
        self,
        text: str,
        raw_findings: Iterable[Any],
        options: MatchingOptions,
    ) -> list[EnhancedPhraseMatch]:
        findings = [Finding.coerce(f) for f in raw_findings]

        key = self.cache.make_key(text, findings, options)
        cached = self.cache.matches.get(key)
        if cached is not None:
            return cached

        if options.debug:
            logger.info(
                "Phrase matching started",
                extra={"text_length": len(text), "findings_count": len(findings)},
            )
            for i, finding in enumerate(findings):
                logger.info(
                    f"Finding {i}: related_keywords={list(finding.related_keywords or ())}",
                    extra={"finding_index": i, "phrase": finding.original_phrase},
                )

        deadline = None
        if options.processing_timeout and options.processing_timeout > 0:
            deadline = time.perf_counter() + options.processing_timeout / 1000.0
        timed_out = False

        similarity_cache = self.cache.similarity
        all_matches: list[EnhancedPhraseMatch] = []

        for i, finding in enumerate(findings):
            if deadline is not None and time.perf_counter() > deadline:
                timed_out = True
                logger.warning(
                    f"Processing timeout after {i} of {len(findings)} findings; "
                    "returning partial matches",
                    extra={"finding_index": i, "findings_count": len(findings)},
                )
                break

            # one malformed finding only loses its own matches
            finding_matches = await safe_execute(
                lambda i=i, finding=finding: self._match_finding(
                    text, i, finding, options, similarity_cache,
                ),
                "phrase_processing",
                context={"finding_index": i},
                options=options,
                default=[],
            )
            all_matches.extend(finding_matches or [])

            if i % YIELD_EVERY_FINDINGS == 0:
                await asyncio.sleep(0)

        if options.debug:
            for m in all_matches:
                logger.info(
                    f"Before dedupe: {m.id}",
                    extra={
                        "phrase": m.phrase, "start_index": m.start_index,
                        "end_index": m.end_index, "match_type": m.match_type,
                    },
                )

        result = deduplicate_matches(all_matches, text, options)

        if options.debug:
            for m in result:
                logger.info(
                    f"Final: {m.id}",
                    extra={
                        "phrase": m.phrase, "start_index": m.start_index,
                        "end_index": m.end_index, "confidence": m.confidence,
                    },
                )
            logger.info("Phrase matching complete", extra={"matches_count": len(result)})

        # partial results are never cached
        if not timed_out:
            self.cache.matches.set(key, result)
        return result

    async def _match_finding(
        self,
        text: str,
        i: int,
        finding: Finding,
        options: MatchingOptions,
        similarity_cache,
    ) -> list[EnhancedPhraseMatch]:
        """Primary phrase first; related keywords only if it found nothing."""
        main_matches: list[EnhancedPhraseMatch] = []
        main_phrase = finding.original_phrase.strip() if isinstance(finding.original_phrase, str) else ""
        if len(main_phrase) >= MIN_PHRASE_LENGTH:
            hits = await find_phrase(text, main_phrase, options, similarity_cache)
            main_matches = [
                replace(m, finding=finding, id=f"finding-{i}-main-{m.match_type}-{m.start_index}")
                for m in hits
            ]
            if options.debug:
                self._log_hits(main_phrase, main_matches, i)

        if main_matches:
            if options.debug and finding.related_keywords:
                logger.info(
                    "Primary phrase matched; related keywords skipped",
                    extra={"finding_index": i},
                )
            return main_matches

        related_matches: list[EnhancedPhraseMatch] = []
        for j, keyword in enumerate(finding.related_keywords or ()):
            keyword = keyword.strip() if isinstance(keyword, str) else ""
            if len(keyword) >= MIN_PHRASE_LENGTH:
                hits = await find_phrase(text, keyword, options, similarity_cache)
                related = [
                    replace(
                        m, finding=finding,
                        id=f"finding-{i}-related-{j}-{m.match_type}-{m.start_index}",
                    )
                    for m in hits
                ]
                if options.debug:
                    self._log_hits(keyword, related, i, j)
                related_matches.extend(related)

            if j % YIELD_EVERY_KEYWORDS == 0:
                await asyncio.sleep(0)
        return related_matches

    @staticmethod
    def _log_hits(
        phrase: str,
        matches: list[EnhancedPhraseMatch],
        finding_index: int,
        phrase_index: Optional[int] = None,
    ) -> None:
        kind = "Primary phrase" if phrase_index is None else "Related keyword"
        logger.info(
            f"{kind} {phrase!r}: {len(matches)} match(es)",
            extra={
                "phrase": phrase,
                "finding_index": finding_index,
                "phrase_index": phrase_index,
                "matches_count": len(matches),
            },
        )

    async def find_legacy_matches(
        self,
        text: Any,
        findings: Any,
        options: Any = None,
    ) -> list[LegacyPhraseMatch]:
        """Same matches without confidence, match_type or id."""
        matches = await self.find_matches(text, findings, options)
        return [m.to_legacy() for m in matches]

    async def get_stats(
        self,
        text: Any,
        findings: Any,
        options: Any = None,
    ) -> MatchingStats:
        """Run matching and summarize: counts per type, mean confidence, time."""
        started = time.perf_counter()
        matches = await self.find_matches(text, findings, options)
        elapsed_ms = (time.perf_counter() - started) * 1000

        by_type = {t: 0 for t in MATCH_TYPES}
        for m in matches:
            by_type[m.match_type] = by_type.get(m.match_type, 0) + 1

        return MatchingStats(
            total_matches=len(matches),
            by_type=by_type,
            average_confidence=(
                sum(m.confidence for m in matches) / len(matches) if matches else 0.0
            ),
            processing_time=elapsed_ms,
        )

    def cache_stats(self) -> CacheStats:
        return self.cache.stats()

    def clear_cache(self) -> None:
        self.cache.clear()


# Singleton — shared across the application
phrase_matcher = PhraseMatcher(match_cache)


# ============================================================
# MODULE-LEVEL API
# ============================================================

async def find_enhanced_phrase_matches(
    text: Any,
    findings: Any,
    options: Any = None,
) -> list[EnhancedPhraseMatch]:
    return await phrase_matcher.find_matches(text, findings, options)


async def find_phrase_matches_legacy(
    text: Any,
    findings: Any,
    options: Any = None,
) -> list[LegacyPhraseMatch]:
    return await phrase_matcher.find_legacy_matches(text, findings, options)


async def get_matching_stats(
    text: Any,
    findings: Any,
    options: Any = None,
) -> MatchingStats:
    return await phrase_matcher.get_stats(text, findings, options)


def get_cache_stats() -> CacheStats:
    return phrase_matcher.cache_stats()


def clear_match_cache() -> None:
    phrase_matcher.clear_cache()
