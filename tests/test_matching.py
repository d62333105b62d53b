"""
Orchestrator Tests — Findings to Deduplicated Matches

Covers the end-to-end posting scenario, related-keyword fallback,
id formats, deduplication, caching, the processing timeout, the legacy
adapter and statistics. Every test uses its own MatchCache.
"""

from __future__ import annotations

import logging

import pytest
from unittest.mock import patch

from jobdecoder.cache import MatchCache
from jobdecoder.matching import PhraseMatcher, deduplicate_matches
from jobdecoder.models import (
    EnhancedPhraseMatch,
    Finding,
    FindingDetails,
    LegacyPhraseMatch,
    MatchingOptions,
)

POSTING = "職種：ＩＴエンジニア\n給与：年俸５００万円〜"


@pytest.fixture
def matcher():
    return PhraseMatcher(MatchCache())


def _finding(phrase, **extra):
    return {
        "original_phrase": phrase,
        "potential_realities": ["裏の意味"],
        "points_to_check": ["確認事項"],
        **extra,
    }


def _match(start, end, confidence=1.0, match_type="exact", id=""):
    return EnhancedPhraseMatch(
        start_index=start, end_index=end, phrase="x" * (end - start),
        original_phrase="x", match_type=match_type, confidence=confidence, id=id,
    )


def _assert_no_overlap(matches):
    for a, b in zip(matches, matches[1:]):
        assert a.end_index <= b.start_index


# ============================================================
# END TO END
# ============================================================

class TestEndToEnd:

    @pytest.mark.asyncio
    async def test_posting_scenario(self, matcher):
        findings = [_finding("ITエンジニア"), _finding("年俸500万円")]
        matches = await matcher.find_matches(POSTING, findings)

        assert len(matches) == 2
        assert [m.match_type for m in matches] == ["normalized", "normalized"]
        assert [m.phrase for m in matches] == ["ＩＴエンジニア", "年俸５００万円"]
        assert matches[0].finding.original_phrase == "ITエンジニア"
        assert matches[1].finding.original_phrase == "年俸500万円"
        for m in matches:
            assert POSTING[m.start_index:m.end_index] == m.phrase
        _assert_no_overlap(matches)

    @pytest.mark.asyncio
    async def test_main_ids(self, matcher):
        matches = await matcher.find_matches(POSTING, [_finding("ITエンジニア"), _finding("年俸500万円")])
        assert matches[0].id == "finding-0-main-normalized-3"
        assert matches[1].id == "finding-1-main-normalized-14"

    @pytest.mark.asyncio
    async def test_accepts_finding_objects(self, matcher):
        finding = Finding(original_phrase="ITエンジニア")
        matches = await matcher.find_matches(POSTING, [finding])
        assert len(matches) == 1
        assert matches[0].finding is finding

    @pytest.mark.asyncio
    async def test_option_dict_camel_case(self, matcher):
        matches = await matcher.find_matches(
            "当社はITエンジニアを募集",
            [_finding("itエンジニア")],
            {"enableFuzzyMatching": True},
        )
        assert [m.match_type for m in matches] == ["fuzzy"]


# ============================================================
# RELATED KEYWORDS
# ============================================================

class TestRelatedKeywords:

    @pytest.mark.asyncio
    async def test_fallback_when_main_misses(self, matcher):
        finding = _finding("アットホームな職場", related_keywords=["x", "年俸500万円"])
        matches = await matcher.find_matches(POSTING, [finding])
        assert len(matches) == 1
        assert matches[0].id == "finding-0-related-1-normalized-14"
        assert matches[0].finding.original_phrase == "アットホームな職場"

    @pytest.mark.asyncio
    async def test_suppressed_when_main_matches(self, matcher):
        finding = _finding("ITエンジニア", related_keywords=["年俸500万円"])
        matches = await matcher.find_matches(POSTING, [finding])
        assert [m.phrase for m in matches] == ["ＩＴエンジニア"]
        assert "-main-" in matches[0].id

    @pytest.mark.asyncio
    async def test_empty_main_phrase_uses_related(self, matcher):
        finding = _finding("", related_keywords=["ITエンジニア"])
        matches = await matcher.find_matches(POSTING, [finding])
        assert matches[0].id == "finding-0-related-0-normalized-3"


# ============================================================
# MALFORMED INPUT
# ============================================================

class TestMalformedInput:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", None, 42])
    async def test_empty_or_invalid_text(self, matcher, text):
        assert await matcher.find_matches(text, [_finding("年俸")]) == []

    @pytest.mark.asyncio
    async def test_no_findings(self, matcher):
        assert await matcher.find_matches(POSTING, []) == []
        assert await matcher.find_matches(POSTING, None) == []

    @pytest.mark.asyncio
    async def test_malformed_findings_do_not_raise(self, matcher):
        findings = [
            {"original_phrase": None},
            {"original_phrase": ""},
            {"original_phrase": 123, "related_keywords": "not-a-list"},
            "not-a-dict",
            _finding("年俸500万円"),
        ]
        matches = await matcher.find_matches(POSTING, findings)
        assert len(matches) == 1
        assert matches[0].id == "finding-4-main-normalized-14"

    @pytest.mark.asyncio
    async def test_non_iterable_findings(self, matcher):
        assert await matcher.find_matches(POSTING, 5) == []

    @pytest.mark.asyncio
    async def test_malformed_finding_objects_keep_batch(self, matcher):
        findings = [
            Finding("xx", details=FindingDetails(related_keywords=(None,))),
            {"original_phrase": "年俸500万円"},
            Finding(None, details=FindingDetails(related_keywords=None)),
        ]
        matches = await matcher.find_matches("年俸500万円です", findings)
        assert [m.id for m in matches] == ["finding-1-main-exact-0"]

    @pytest.mark.asyncio
    async def test_failing_finding_loses_only_its_own_matches(self, matcher):
        from jobdecoder.finder import find_matches as real_find

        async def flaky(text, phrase, *args):
            if phrase == "ITエンジニア":
                raise RuntimeError("boom")
            return await real_find(text, phrase, *args)

        findings = [_finding("ITエンジニア"), _finding("年俸500万円")]
        with patch("jobdecoder.matching.find_phrase", side_effect=flaky):
            matches = await matcher.find_matches(POSTING, findings)
        assert [m.id for m in matches] == ["finding-1-main-normalized-14"]

    @pytest.mark.asyncio
    async def test_internal_failure_returns_empty(self, matcher):
        with patch("jobdecoder.matching.find_phrase", side_effect=RuntimeError("boom")):
            assert await matcher.find_matches(POSTING, [_finding("年俸500万円")]) == []


# ============================================================
# DEDUPLICATION
# ============================================================

class TestDeduplicate:

    def test_identical_span_keeps_higher_confidence(self):
        result = deduplicate_matches([_match(0, 3, 0.9, "normalized"), _match(0, 3, 1.0)])
        assert len(result) == 1
        assert result[0].confidence == 1.0

    def test_longer_overlap_wins(self):
        result = deduplicate_matches([_match(0, 3), _match(1, 6, 0.9)])
        assert [(m.start_index, m.end_index) for m in result] == [(1, 6)]

    def test_shorter_overlap_dropped(self):
        result = deduplicate_matches([_match(0, 6, 0.9), _match(2, 4)])
        assert [(m.start_index, m.end_index) for m in result] == [(0, 6)]

    def test_equal_length_tie_goes_to_confidence(self):
        result = deduplicate_matches([_match(0, 4, 0.9), _match(2, 6, 1.0)])
        assert [(m.start_index, m.end_index) for m in result] == [(2, 6)]

    def test_adjacent_spans_both_kept(self):
        result = deduplicate_matches([_match(3, 5), _match(0, 3)])
        assert [(m.start_index, m.end_index) for m in result] == [(0, 3), (3, 5)]

    def test_output_sorted_without_overlap(self):
        matches = [_match(10, 12), _match(0, 4), _match(3, 8, 0.9), _match(11, 15), _match(20, 21)]
        result = deduplicate_matches(matches)
        _assert_no_overlap(result)
        starts = [m.start_index for m in result]
        assert starts == sorted(starts)

    def test_empty(self):
        assert deduplicate_matches([]) == []

    def test_debug_logs_dropped(self, caplog):
        with caplog.at_level(logging.INFO, logger="jobdecoder"):
            deduplicate_matches([_match(0, 3, id="a"), _match(0, 3, 0.9, id="b")],
                                options=MatchingOptions(debug=True))
        assert any("Dropped overlapping match" in r.message for r in caplog.records)

    @pytest.mark.asyncio
    async def test_overlapping_findings_resolved(self, matcher):
        text = "年俸500万円のITエンジニア"
        findings = [_finding("年俸500万円"), _finding("500万"), _finding("ITエンジニア")]
        matches = await matcher.find_matches(text, findings)
        assert [m.phrase for m in matches] == ["年俸500万円", "ITエンジニア"]
        _assert_no_overlap(matches)


# ============================================================
# CACHE
# ============================================================

class TestCaching:

    @pytest.mark.asyncio
    async def test_result_cached(self, matcher):
        findings = [_finding("年俸500万円")]
        first = await matcher.find_matches(POSTING, findings)
        assert matcher.cache_stats().match_cache_size == 1

        with patch("jobdecoder.matching.find_phrase", side_effect=AssertionError("not cached")):
            second = await matcher.find_matches(POSTING, findings)
        assert second == first

    @pytest.mark.asyncio
    async def test_same_length_texts_not_confused(self, matcher):
        findings = [_finding("年俸500万円")]
        await matcher.find_matches("年俸500万円です", findings)
        matches = await matcher.find_matches("賞与は年2回です", findings)
        assert matches == []

    @pytest.mark.asyncio
    async def test_returned_list_is_a_copy(self, matcher):
        findings = [_finding("年俸500万円")]
        first = await matcher.find_matches(POSTING, findings)
        first.clear()
        again = await matcher.find_matches(POSTING, findings)
        assert len(again) == 1

    @pytest.mark.asyncio
    async def test_cache_bounded(self):
        matcher = PhraseMatcher(MatchCache())
        findings = [_finding("年俸")]
        for i in range(520):
            await matcher.find_matches(f"年俸{i}", findings)
        assert matcher.cache_stats().match_cache_size == 500

    @pytest.mark.asyncio
    async def test_clear(self, matcher):
        await matcher.find_matches(POSTING, [_finding("年俸500万円")])
        matcher.clear_cache()
        assert matcher.cache_stats().match_cache_size == 0


# ============================================================
# TIMEOUT
# ============================================================

class TestTimeout:

    @pytest.mark.asyncio
    async def test_partial_result_not_cached(self, matcher):
        findings = [_finding("ITエンジニア"), _finding("年俸500万円")]
        options = MatchingOptions(processing_timeout=1000)
        # deadline set at t=0, first finding checked at t=0, second at t=5s
        with patch("jobdecoder.matching.time") as fake_time:
            fake_time.perf_counter.side_effect = [0.0, 0.0, 5.0]
            matches = await matcher.find_matches(POSTING, findings, options)

        assert [m.phrase for m in matches] == ["ＩＴエンジニア"]
        assert matcher.cache_stats().match_cache_size == 0

    @pytest.mark.asyncio
    async def test_generous_timeout_completes(self, matcher):
        options = MatchingOptions(processing_timeout=60_000)
        matches = await matcher.find_matches(
            POSTING, [_finding("ITエンジニア"), _finding("年俸500万円")], options,
        )
        assert len(matches) == 2
        assert matcher.cache_stats().match_cache_size == 1


# ============================================================
# SECONDARY OUTPUTS
# ============================================================

class TestLegacyAndStats:

    @pytest.mark.asyncio
    async def test_legacy_shape(self, matcher):
        legacy = await matcher.find_legacy_matches(POSTING, [_finding("年俸500万円")])
        assert len(legacy) == 1
        assert isinstance(legacy[0], LegacyPhraseMatch)
        assert legacy[0].phrase == "年俸５００万円"
        assert set(legacy[0].to_dict()) == {"start_index", "end_index", "phrase", "finding"}

    @pytest.mark.asyncio
    async def test_stats(self, matcher):
        stats = await matcher.get_stats(
            "年俸500万円のＩＴエンジニア", [_finding("年俸500万円"), _finding("ITエンジニア")],
        )
        assert stats.total_matches == 2
        assert stats.by_type == {"exact": 1, "normalized": 1, "partial": 0, "fuzzy": 0}
        assert stats.average_confidence == pytest.approx(0.95)
        assert stats.processing_time >= 0

    @pytest.mark.asyncio
    async def test_stats_zero_filled(self, matcher):
        stats = await matcher.get_stats(POSTING, [_finding("存在しない語句")])
        assert stats.total_matches == 0
        assert stats.by_type == {"exact": 0, "normalized": 0, "partial": 0, "fuzzy": 0}
        assert stats.average_confidence == 0.0


# ============================================================
# DEBUG MODE
# ============================================================

class TestDebugMode:

    @pytest.mark.asyncio
    async def test_debug_does_not_change_results(self, matcher, caplog):
        findings = [_finding("ITエンジニア"), _finding("年俸500万円")]
        plain = await PhraseMatcher(MatchCache()).find_matches(POSTING, findings)
        with caplog.at_level(logging.INFO, logger="jobdecoder"):
            debug = await matcher.find_matches(POSTING, findings, MatchingOptions(debug=True))
        assert debug == plain
        assert any("Phrase matching complete" in r.message for r in caplog.records)
