"""
Text Normalizer Tests

Covers the three normalization levels and, most importantly, the
position mapping: normalized hits must land on exactly the original
characters that produced them, across collapsed whitespace runs,
leading whitespace and stripped punctuation.
"""

from __future__ import annotations

import pytest

from jobdecoder.normalization import (
    build_normalization_mapping,
    find_normalized_matches,
    flexible_normalize_text,
    get_normalization_stats,
    is_normalized_match,
    light_normalize_text,
    map_normalized_range_to_original,
    normalize_text,
)


# ============================================================
# FULL NORMALIZATION
# ============================================================

class TestNormalizeText:

    def test_fullwidth_digits(self):
        assert normalize_text("１２３") == "123"

    def test_fullwidth_letters(self):
        assert normalize_text("ＩＴエンジニア") == "ITエンジニア"
        assert normalize_text("ａｂｃ") == "abc"

    def test_sentence_punctuation_stripped(self):
        assert normalize_text("こんにちは、世界。") == "こんにちは世界"

    def test_mixed_posting_line(self):
        assert normalize_text("年俸５００万円（税込み）、賞与あり。") == "年俸500万円(税込み)賞与あり"

    def test_whitespace_collapsed_and_trimmed(self):
        assert normalize_text("  複数  の  スペース  ") == "複数 の スペース"

    def test_whitespace_variants(self):
        text = "a\u3000b\u00a0c d\u200be f\tg\nh"
        assert normalize_text(text) == "a b c d e f g h"

    def test_symbols(self):
        assert normalize_text("！？：；／") == "!?:;/"
        assert normalize_text("［］｛｝＜＞") == "[]{}<>"
        assert normalize_text("％＆＋＝＠＃＊") == "%&+=@#*"
        assert normalize_text("￥") == "\\"

    def test_long_vowel_variants(self):
        assert normalize_text("サ－バ―ル─ム") == "サーバールーム"

    def test_non_string_input(self):
        assert normalize_text(None) == ""
        assert normalize_text(123) == ""
        assert normalize_text("") == ""

    @pytest.mark.parametrize("text", [
        "年俸５００万円（税込み）、賞与あり。",
        "  複数  の  スペース  ",
        "a 。 b",
        "、　先頭",
        "末尾　。",
        "ＩＴ\n\n\nエンジニア",
    ])
    def test_idempotent(self, text):
        once = normalize_text(text)
        assert normalize_text(once) == once

    def test_punctuation_between_spaces_collapses_to_one_space(self):
        assert normalize_text("a 。 b") == "a b"

    def test_only_punctuation_and_space(self):
        assert normalize_text(" 、 。 ") == ""


class TestLightAndFlexible:

    def test_light_shifts_width_only(self):
        assert light_normalize_text("ＩＴ　５００（税込み）、") == "IT 500（税込み）、"

    def test_light_non_string(self):
        assert light_normalize_text(None) == ""

    def test_flexible_lowercases_and_splits(self):
        assert flexible_normalize_text("ＩＴ／Ｗｅｂ、エンジニア。") == "it web エンジニア"

    def test_flexible_line_wrap(self):
        assert flexible_normalize_text("年俸\n500万円") == "年俸 500万円"

    def test_flexible_brackets(self):
        assert flexible_normalize_text("（税込み）：！？") == "(税込み):!?"


# ============================================================
# POSITION MAPPING
# ============================================================

class TestMapping:

    def test_positions_have_sentinel(self):
        mapping = build_normalization_mapping("ＩＴ")
        assert mapping.normalized == "IT"
        assert mapping.positions == (0, 1, 2)

    def test_collapsed_whitespace_run(self):
        # "東京　　大阪" normalizes to "東京 大阪"
        assert map_normalized_range_to_original("東京　　大阪", 1, 3) == (1, 5)

    def test_leading_whitespace(self):
        assert map_normalized_range_to_original("  ＩＴ", 0, 2) == (2, 4)

    def test_stripped_punctuation_before_match(self):
        text = "賞与、年2回"
        start, end = map_normalized_range_to_original(text, 2, 3)
        assert text[start:end] == "年2回"

    def test_stripped_punctuation_after_match_excluded(self):
        text = "賞与あり。です"
        start, end = map_normalized_range_to_original(text, 0, 4)
        assert text[start:end] == "賞与あり"

    def test_stripped_punctuation_inside_match_included(self):
        text = "年俸、５００万円"
        assert map_normalized_range_to_original(text, 0, 7) == (0, 8)

    def test_out_of_range_returns_none(self):
        assert map_normalized_range_to_original("ＩＴ", 1, 5) is None
        assert map_normalized_range_to_original("ＩＴ", 0, 0) is None
        assert map_normalized_range_to_original("", 0, 1) is None

    def test_light_mapping(self):
        text = "給与　　５００万円"
        mapping = build_normalization_mapping(text, light=True)
        idx = mapping.normalized.find("500")
        start, end = mapping.to_original(idx, 3)
        assert text[start:end] == "５００"


class TestFindNormalizedMatches:

    def test_finds_width_variant(self):
        hits = find_normalized_matches("職種：ＩＴエンジニア", "ITエンジニア")
        assert len(hits) == 1
        assert hits[0].matched_text == "ＩＴエンジニア"
        assert (hits[0].start_index, hits[0].end_index) == (3, 10)

    def test_overlapping_occurrences(self):
        hits = find_normalized_matches("ａａａ", "aa")
        assert [(h.start_index, h.end_index) for h in hits] == [(0, 2), (1, 3)]

    def test_empty_inputs(self):
        assert find_normalized_matches("", "a") == []
        assert find_normalized_matches("abc", "") == []
        assert find_normalized_matches(None, "a") == []

    def test_is_normalized_match(self):
        assert is_normalized_match("ＩＴ エンジニア。", "IT エンジニア")
        assert not is_normalized_match("（税込み）", "(税込み)", light=True)


class TestStats:

    def test_stats(self):
        stats = get_normalization_stats("こんにちは、世界。")
        assert stats["original_length"] == 9
        assert stats["normalized_length"] == 7
        assert stats["changed_characters"] == 2
        assert stats["reduction_ratio"] == pytest.approx(7 / 9)

    def test_stats_empty(self):
        stats = get_normalization_stats("")
        assert stats["original_length"] == 0
        assert stats["reduction_ratio"] == 1.0
