"""
jobdecoder — Phrase Matching for Japanese Job Postings

Locates the character spans of a job posting that LLM findings refer to,
despite full-width/half-width variation, punctuation differences and
inexact phrasing.

Public API:
  - find_enhanced_phrase_matches: Findings → deduplicated, typed matches
  - PhraseMatcher:       Orchestrator bound to an explicit MatchCache
  - find_matches:        Exact → normalized → fuzzy search for one phrase
  - normalize_text:      Full normalization (plus light/flexible variants)
  - calculate_similarity: Normalized Levenshtein similarity
  - deduplicate_matches: Overlap resolution into a non-overlapping list
  - get_matching_stats:  Counts per match type, mean confidence, timing
  - find_phrase_matches_legacy: Matches in the legacy shape
  - get_cache_stats / clear_match_cache: Process-wide cache control

Usage:
    from jobdecoder import find_enhanced_phrase_matches, MatchingOptions
    matches = await find_enhanced_phrase_matches(text, findings, MatchingOptions())
"""

__version__ = "1.0.0"

from jobdecoder.models import (
    Finding,
    FindingDetails,
    MatchingOptions,
    EnhancedPhraseMatch,
    LegacyPhraseMatch,
    MatchingStats,
    CacheStats,
    MATCH_TYPES,
)
from jobdecoder.normalization import (
    normalize_text,
    light_normalize_text,
    flexible_normalize_text,
    map_normalized_range_to_original,
    build_normalization_mapping,
    is_normalized_match,
    find_normalized_matches,
    get_normalization_stats,
)
from jobdecoder.similarity import calculate_similarity, levenshtein_distance
from jobdecoder.cache import LRUCache, MatchCache, match_cache
from jobdecoder.errors import MatchingError, safe_execute
from jobdecoder.finder import find_matches
from jobdecoder.matching import (
    PhraseMatcher,
    phrase_matcher,
    deduplicate_matches,
    find_enhanced_phrase_matches,
    find_phrase_matches_legacy,
    get_matching_stats,
    get_cache_stats,
    clear_match_cache,
)

__all__ = [
    "Finding",
    "FindingDetails",
    "MatchingOptions",
    "EnhancedPhraseMatch",
    "LegacyPhraseMatch",
    "MatchingStats",
    "CacheStats",
    "MATCH_TYPES",
    "normalize_text",
    "light_normalize_text",
    "flexible_normalize_text",
    "map_normalized_range_to_original",
    "build_normalization_mapping",
    "is_normalized_match",
    "find_normalized_matches",
    "get_normalization_stats",
    "calculate_similarity",
    "levenshtein_distance",
    "LRUCache",
    "MatchCache",
    "match_cache",
    "MatchingError",
    "safe_execute",
    "find_matches",
    "PhraseMatcher",
    "phrase_matcher",
    "deduplicate_matches",
    "find_enhanced_phrase_matches",
    "find_phrase_matches_legacy",
    "get_matching_stats",
    "get_cache_stats",
    "clear_match_cache",
]
