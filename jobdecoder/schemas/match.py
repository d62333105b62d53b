"""
API Schemas — Request and Response Models

Pydantic models for the jobdecoder matching API.
"""

from __future__ import annotations

from typing import Optional
from pydantic import BaseModel, Field

from jobdecoder.models import MatchingOptions


# ============================================================
# REQUEST
# ============================================================

class FindingIn(BaseModel):
    """One LLM finding. Everything except the phrase is optional."""
    original_phrase: Optional[str] = Field(None, description="Phrase quoted from the posting.")
    potential_realities: list[str] = Field(default_factory=list)
    points_to_check: list[str] = Field(default_factory=list)

    # extended analysis fields
    severity: Optional[str] = Field(None, pattern="^(high|medium|low)$")
    category: Optional[str] = Field(
        None, pattern="^(compensation|worklife|culture|growth|other)$",
    )
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)
    related_keywords: Optional[list[str]] = None
    suggested_questions: Optional[list[str]] = None

    def to_finding_dict(self) -> dict:
        """Raw dict for Finding.from_dict; unset extension fields are omitted."""
        return self.model_dump(exclude_none=True)


class MatchingOptionsIn(BaseModel):
    enable_exact_match: bool = True
    enable_normalization: bool = True
    enable_partial_match: bool = False
    enable_fuzzy_matching: bool = False
    fuzzy_threshold: float = Field(0.7, gt=0.0, le=1.0)
    show_confidence: bool = False
    debug: bool = False
    error_log_level: str = Field("minimal", pattern="^(minimal|detailed)$")
    enable_precise_fuzzy: bool = True
    enable_dynamic_window: bool = True
    enable_similarity_cache: bool = True
    max_search_range: int = Field(50, ge=1, le=1000)
    processing_timeout: Optional[float] = Field(
        None, gt=0, description="Milliseconds before remaining findings are skipped.",
    )

    def to_options(self) -> MatchingOptions:
        return MatchingOptions(**self.model_dump())


class MatchRequest(BaseModel):
    """POST /match request body."""
    text: str = Field(..., min_length=1, max_length=50_000,
                      description="The job posting (1-50,000 characters).")
    findings: list[FindingIn] = Field(..., max_length=200)
    options: MatchingOptionsIn = Field(default_factory=MatchingOptionsIn)

    model_config = {"json_schema_extra": {"examples": [
        {
            "text": "職種：ＩＴエンジニア\n給与：年俸５００万円〜",
            "findings": [{
                "original_phrase": "年俸500万円",
                "potential_realities": ["残業代込みの可能性"],
                "points_to_check": ["みなし残業の有無"],
            }],
        },
    ]}}


# ============================================================
# RESPONSE
# ============================================================

class MatchItem(BaseModel):
    id: str
    start_index: int
    end_index: int
    phrase: str
    original_phrase: str
    match_type: str
    confidence: float
    finding: Optional[dict] = None


class MatchResponse(BaseModel):
    """POST /match response body."""
    matches: list[MatchItem]
    total: int
    processing_time_ms: float


class LegacyMatchItem(BaseModel):
    start_index: int
    end_index: int
    phrase: str
    finding: Optional[dict] = None


class LegacyMatchResponse(BaseModel):
    """POST /match/legacy response body."""
    matches: list[LegacyMatchItem]
    total: int


class StatsResponse(BaseModel):
    """POST /match/stats response body."""
    total_matches: int
    by_type: dict[str, int]
    average_confidence: float
    processing_time: float


class CacheStatsResponse(BaseModel):
    match_cache_size: int
    similarity_cache_size: int
    match_cache_max_size: int
    similarity_cache_max_size: int


class HealthResponse(BaseModel):
    status: str
    core_version: str
    api_version: str
