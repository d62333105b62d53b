"""
jobdecoder API — Main Application

POST /match         — Locate finding phrases in a job posting
POST /match/legacy  — Same, legacy match shape (no confidence/type/id)
POST /match/stats   — Match statistics (counts per type, timing)
GET  /cache/stats   — Match and similarity cache sizes
POST /cache/clear   — Drop both caches
GET  /health        — Health check
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.requests import Request

from jobdecoder import __version__
from jobdecoder.config import settings
from jobdecoder.logging import setup_logging, get_logger
from jobdecoder.matching import phrase_matcher
from jobdecoder.schemas.match import (
    MatchRequest,
    MatchResponse,
    LegacyMatchResponse,
    StatsResponse,
    CacheStatsResponse,
    HealthResponse,
)

logger = get_logger("api")


# ============================================================
# STARTUP / SHUTDOWN
# ============================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info(
        f"jobdecoder API starting (core {settings.CORE_VERSION}, "
        f"match cache {settings.MATCH_CACHE_SIZE}, similarity cache {settings.SIMILARITY_CACHE_SIZE})"
    )
    yield
    logger.info("jobdecoder API shutting down")


app = FastAPI(
    title="jobdecoder API",
    description="Phrase matching and text normalization for Japanese job postings",
    version=f"{__version__} (core {settings.CORE_VERSION})",
    lifespan=lifespan,
)

# CORS — set JOBDECODER_CORS_ORIGINS in production
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",")],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    allow_credentials=False,
)


# ============================================================
# GLOBAL ERROR HANDLER
# ============================================================

@app.exception_handler(Exception)
async def global_error_handler(request: Request, exc: Exception):
    """Catch unhandled exceptions — return structured error, don't leak internals."""
    logger.error(
        f"Unhandled exception: {type(exc).__name__}",
        extra={"error": str(exc), "path": request.url.path, "method": request.method},
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error. Matching could not be completed.",
        },
    )


def _request_args(request: MatchRequest):
    findings = [f.to_finding_dict() for f in request.findings]
    return request.text, findings, request.options.to_options()


# ============================================================
# ROUTES
# ============================================================

@app.post("/match", response_model=MatchResponse)
async def match(request: MatchRequest):
    """Locate every finding's phrase in the posting."""
    start = time.perf_counter()
    text, findings, options = _request_args(request)

    matches = await phrase_matcher.find_matches(text, findings, options)

    duration_ms = round((time.perf_counter() - start) * 1000, 2)
    logger.info(
        f"Match complete: {len(matches)} match(es)",
        extra={
            "text_length": len(text),
            "findings_count": len(findings),
            "matches_count": len(matches),
            "duration_ms": duration_ms,
        },
    )

    return {
        "matches": [m.to_dict() for m in matches],
        "total": len(matches),
        "processing_time_ms": duration_ms,
    }


@app.post("/match/legacy", response_model=LegacyMatchResponse)
async def match_legacy(request: MatchRequest):
    """Matches in the legacy shape for older clients."""
    text, findings, options = _request_args(request)
    matches = await phrase_matcher.find_legacy_matches(text, findings, options)
    return {
        "matches": [m.to_dict() for m in matches],
        "total": len(matches),
    }


@app.post("/match/stats", response_model=StatsResponse)
async def match_stats(request: MatchRequest):
    text, findings, options = _request_args(request)
    stats = await phrase_matcher.get_stats(text, findings, options)
    return {
        "total_matches": stats.total_matches,
        "by_type": stats.by_type,
        "average_confidence": stats.average_confidence,
        "processing_time": stats.processing_time,
    }


@app.get("/cache/stats", response_model=CacheStatsResponse)
async def cache_stats():
    stats = phrase_matcher.cache_stats()
    return {
        "match_cache_size": stats.match_cache_size,
        "similarity_cache_size": stats.similarity_cache_size,
        "match_cache_max_size": stats.match_cache_max_size,
        "similarity_cache_max_size": stats.similarity_cache_max_size,
    }


@app.post("/cache/clear")
async def cache_clear():
    phrase_matcher.clear_cache()
    logger.info("Match caches cleared")
    return {"status": "cleared"}


@app.get("/health", response_model=HealthResponse)
async def health():
    """Health check."""
    return {
        "status": "operational",
        "core_version": settings.CORE_VERSION,
        "api_version": settings.API_VERSION,
    }


# --- Version Headers Middleware ---
@app.middleware("http")
async def add_version_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Jobdecoder-Version"] = __version__
    response.headers["X-Core-Version"] = settings.CORE_VERSION
    response.headers["X-Content-Type-Options"] = "nosniff"
    return response


# --- Body Size Limit Middleware ---
# 50,000 characters of Japanese is ~150 KB of UTF-8; findings add the rest
_MAX_BODY_BYTES = 1_048_576  # 1 MB


@app.middleware("http")
async def enforce_body_size_limit(request: Request, call_next):
    """Reject requests exceeding 1MB — guards both Content-Length and chunked bodies."""
    content_length = request.headers.get("content-length")
    if content_length:
        try:
            if int(content_length) > _MAX_BODY_BYTES:
                return JSONResponse(
                    status_code=413,
                    content={"detail": "Request body too large."},
                )
        except ValueError:
            pass  # Malformed content-length; let the framework handle it

    if request.method in ("POST", "PUT", "PATCH"):
        body = await request.body()
        if len(body) > _MAX_BODY_BYTES:
            return JSONResponse(
                status_code=413,
                content={"detail": "Request body too large."},
            )

    return await call_next(request)


# --- Request Logging Middleware ---
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every API request with method, path, status, duration."""
    path = request.url.path
    if path == "/health":
        return await call_next(request)

    start = time.time()
    response = await call_next(request)
    duration_ms = round((time.time() - start) * 1000, 1)

    logger.info(
        f"{request.method} {path} → {response.status_code} ({duration_ms}ms)",
        extra={
            "method": request.method,
            "path": path,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        },
    )
    return response


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api.main:app", host=settings.HOST, port=settings.PORT)
