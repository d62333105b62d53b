"""
Models — Core Data Structures

Findings arrive from the upstream LLM analysis; matches are what the
engine hands to the presentation layer. A Finding is a base record plus
an optional FindingDetails extension (present when the analysis returned
severity, category, confidence or keyword fields).

All parsing here is total: malformed input collapses to empty values
instead of raising, so one bad finding never aborts a batch.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, asdict
from typing import Any, Literal, Optional


# ============================================================
# MATCH TYPES
# ============================================================

MatchType = Literal["exact", "normalized", "partial", "fuzzy"]

# "partial" is reserved; no strategy currently produces it
MATCH_TYPES: tuple[str, ...] = ("exact", "normalized", "partial", "fuzzy")

EXACT_CONFIDENCE = 1.0
NORMALIZED_CONFIDENCE = 0.9

# fuzzy hits never outrank a normalized one
FUZZY_CONFIDENCE_CEILING = 0.89

DEFAULT_FUZZY_THRESHOLD = 0.7
DEFAULT_SEARCH_RANGE = 50

_EXTENSION_KEYS = (
    "severity", "category", "confidence", "related_keywords", "suggested_questions",
)


def _as_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _as_str_tuple(value: Any) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(v for v in value if isinstance(v, str))


# ============================================================
# FINDINGS
# ============================================================

@dataclass(frozen=True)
class FindingDetails:
    """Extended analysis fields attached to a finding."""
    severity: Optional[str] = None       # "high", "medium", "low"
    category: Optional[str] = None       # "compensation", "worklife", "culture", "growth", "other"
    confidence: Optional[float] = None   # 0.0 to 1.0
    related_keywords: tuple[str, ...] = ()
    suggested_questions: tuple[str, ...] = ()


@dataclass(frozen=True)
class Finding:
    """A single LLM observation anchored to a phrase of the posting."""
    original_phrase: str
    potential_realities: tuple[str, ...] = ()
    points_to_check: tuple[str, ...] = ()
    details: Optional[FindingDetails] = None

    @property
    def related_keywords(self) -> tuple[str, ...]:
        return self.details.related_keywords if self.details else ()

    @property
    def is_enhanced(self) -> bool:
        return self.details is not None

    @classmethod
    def from_dict(cls, data: Any) -> "Finding":
        """Parse a raw finding dict. Never raises."""
        if not isinstance(data, dict):
            return cls(original_phrase="")

        details = None
        if any(key in data for key in _EXTENSION_KEYS):
            confidence = data.get("confidence")
            try:
                confidence = float(confidence) if confidence is not None else None
            except (TypeError, ValueError):
                confidence = None
            if confidence is not None:
                confidence = max(0.0, min(1.0, confidence))

            details = FindingDetails(
                severity=data.get("severity") if isinstance(data.get("severity"), str) else None,
                category=data.get("category") if isinstance(data.get("category"), str) else None,
                confidence=confidence,
                related_keywords=_as_str_tuple(data.get("related_keywords")),
                suggested_questions=_as_str_tuple(data.get("suggested_questions")),
            )

        return cls(
            original_phrase=_as_str(data.get("original_phrase")),
            potential_realities=_as_str_tuple(data.get("potential_realities")),
            points_to_check=_as_str_tuple(data.get("points_to_check")),
            details=details,
        )

    @classmethod
    def coerce(cls, value: Any) -> "Finding":
        """Accept a Finding or a raw dict."""
        if isinstance(value, Finding):
            return value
        return cls.from_dict(value)

    def to_dict(self) -> dict:
        result = {
            "original_phrase": self.original_phrase,
            "potential_realities": list(self.potential_realities or ()),
            "points_to_check": list(self.points_to_check or ()),
        }
        if self.details:
            result.update({
                "severity": self.details.severity,
                "category": self.details.category,
                "confidence": self.details.confidence,
                "related_keywords": list(self.details.related_keywords or ()),
                "suggested_questions": list(self.details.suggested_questions or ()),
            })
        return result


# ============================================================
# OPTIONS
# ============================================================

# camelCase keys sent by the web client
_CAMEL_KEYS = {
    "enableExactMatch": "enable_exact_match",
    "enableNormalization": "enable_normalization",
    "enablePartialMatch": "enable_partial_match",
    "enableFuzzyMatching": "enable_fuzzy_matching",
    "fuzzyThreshold": "fuzzy_threshold",
    "showConfidence": "show_confidence",
    "errorLogLevel": "error_log_level",
    "enablePreciseFuzzy": "enable_precise_fuzzy",
    "enableDynamicWindow": "enable_dynamic_window",
    "enableSimilarityCache": "enable_similarity_cache",
    "maxSearchRange": "max_search_range",
    "processingTimeout": "processing_timeout",
}


@dataclass(frozen=True)
class MatchingOptions:
    """Knobs for the matching pipeline."""
    enable_exact_match: bool = True
    enable_normalization: bool = True
    enable_partial_match: bool = False   # reserved
    enable_fuzzy_matching: bool = False
    fuzzy_threshold: float = DEFAULT_FUZZY_THRESHOLD
    show_confidence: bool = False        # UI hint only
    debug: bool = False
    error_log_level: str = "minimal"     # "minimal" or "detailed"
    enable_precise_fuzzy: bool = True
    enable_dynamic_window: bool = True
    enable_similarity_cache: bool = True
    max_search_range: int = DEFAULT_SEARCH_RANGE
    processing_timeout: Optional[float] = None  # milliseconds

    @property
    def effective_fuzzy_threshold(self) -> float:
        """
        Threshold actually applied.

        Out-of-range values fall back to the default. Values above the
        fuzzy confidence ceiling are lowered to it, so a reported fuzzy
        confidence is never below the threshold that admitted it.
        """
        threshold = self.fuzzy_threshold
        if isinstance(threshold, (int, float)) and 0 < threshold <= 1:
            return min(float(threshold), FUZZY_CONFIDENCE_CEILING)
        return DEFAULT_FUZZY_THRESHOLD

    @property
    def effective_search_range(self) -> int:
        if isinstance(self.max_search_range, int) and self.max_search_range > 0:
            return self.max_search_range
        return DEFAULT_SEARCH_RANGE

    @classmethod
    def from_dict(cls, data: Any) -> "MatchingOptions":
        """Build options from a dict, ignoring unknown keys. Never raises."""
        if not isinstance(data, dict):
            return cls()
        known = cls.__dataclass_fields__
        values = {}
        for key, value in data.items():
            key = _CAMEL_KEYS.get(key, key)
            if key in known and value is not None:
                values[key] = value
        return cls(**values)

    @classmethod
    def coerce(cls, value: Any) -> "MatchingOptions":
        if isinstance(value, MatchingOptions):
            return value
        return cls.from_dict(value)

    def cache_token(self) -> str:
        """Deterministic serialization used in cache keys."""
        return json.dumps(asdict(self), sort_keys=True, default=str)


# ============================================================
# MATCHES
# ============================================================

@dataclass(frozen=True)
class EnhancedPhraseMatch:
    """
    A located span of the original text.

    The Match Finder emits these without a finding; the orchestrator
    attaches the finding and a stable id.
    """
    start_index: int
    end_index: int              # exclusive
    phrase: str                 # original_text[start_index:end_index]
    original_phrase: str        # the search phrase as supplied
    match_type: str             # one of MATCH_TYPES
    confidence: float           # (0, 1]
    finding: Optional[Finding] = field(default=None, compare=False)
    id: str = ""

    @property
    def length(self) -> int:
        return self.end_index - self.start_index

    def overlaps(self, other: "EnhancedPhraseMatch") -> bool:
        return self.start_index < other.end_index and other.start_index < self.end_index

    def to_legacy(self) -> "LegacyPhraseMatch":
        return LegacyPhraseMatch(
            start_index=self.start_index,
            end_index=self.end_index,
            finding=self.finding,
            phrase=self.phrase,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "start_index": self.start_index,
            "end_index": self.end_index,
            "phrase": self.phrase,
            "original_phrase": self.original_phrase,
            "match_type": self.match_type,
            "confidence": self.confidence,
            "finding": self.finding.to_dict() if self.finding else None,
        }


@dataclass(frozen=True)
class LegacyPhraseMatch:
    """Match shape for older call sites (no confidence, type or id)."""
    start_index: int
    end_index: int
    finding: Optional[Finding]
    phrase: str

    def to_dict(self) -> dict:
        return {
            "start_index": self.start_index,
            "end_index": self.end_index,
            "phrase": self.phrase,
            "finding": self.finding.to_dict() if self.finding else None,
        }


# ============================================================
# STATISTICS
# ============================================================

@dataclass
class MatchingStats:
    """Summary of one matching run."""
    total_matches: int
    by_type: dict[str, int]
    average_confidence: float
    processing_time: float      # milliseconds


@dataclass
class CacheStats:
    match_cache_size: int
    similarity_cache_size: int
    match_cache_max_size: int
    similarity_cache_max_size: int
