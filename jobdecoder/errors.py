"""
Errors — Matching Failure Taxonomy

The matching engine is fail-open: every entry point returns an empty
result instead of raising. Failures are wrapped in MatchingError,
logged through the structured logger, and swallowed at the boundary
by safe_execute().

Error types:
  - phrase_processing:     a single phrase search failed
  - position_calculation:  a normalized hit could not be remapped
  - fuzzy_matching:        the fuzzy window scan failed
  - general:               anything at the orchestrator level
"""

from __future__ import annotations

import inspect
from typing import Any, Awaitable, Callable, Literal, Optional, TypeVar, Union

from jobdecoder.logging import get_logger

logger = get_logger("errors")

ErrorType = Literal["phrase_processing", "position_calculation", "fuzzy_matching", "general"]

T = TypeVar("T")


class MatchingError(Exception):
    """A classified failure inside the matching pipeline."""

    def __init__(
        self,
        error_type: str,
        message: str,
        phrase: Optional[str] = None,
        context: Optional[dict] = None,
        original_error: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.error_type = error_type
        self.message = message
        self.phrase = phrase
        self.context = context or {}
        self.original_error = original_error

    def __str__(self) -> str:
        return f"[{self.error_type}] {self.message}"


def log_matching_error(error: MatchingError, options: Any = None) -> None:
    """
    Log a MatchingError at the verbosity the caller asked for.

    debug or error_log_level="detailed" emits a full ERROR record with
    phrase, context and traceback. Otherwise a single WARNING line.
    """
    detailed = bool(
        options is not None
        and (getattr(options, "debug", False)
             or getattr(options, "error_log_level", "minimal") == "detailed")
    )

    if detailed:
        exc = error.original_error
        logger.error(
            f"Phrase matching error [{error.error_type}]: {error.message}",
            extra={
                "error_type": error.error_type,
                "error": error.message,
                "phrase": error.phrase,
                "context": error.context or None,
            },
            exc_info=(type(exc), exc, exc.__traceback__) if exc is not None else None,
        )
    else:
        logger.warning(f"Phrase matching error [{error.error_type}]: {error.message}")


async def safe_execute(
    operation: Callable[[], Union[T, Awaitable[T]]],
    error_type: str,
    context: Optional[dict] = None,
    options: Any = None,
    default: Optional[T] = None,
) -> Optional[T]:
    """
    Run operation() and return its result, or `default` on any failure.

    Accepts both plain and async callables. The phrase (if any) is read
    from context["phrase"] for the log record.
    """
    context = context or {}
    try:
        result = operation()
        if inspect.isawaitable(result):
            result = await result
        return result
    except Exception as e:
        if isinstance(e, MatchingError):
            error = e
        else:
            error = MatchingError(
                error_type=error_type,
                message=str(e) or type(e).__name__,
                phrase=context.get("phrase"),
                context=context,
                original_error=e,
            )
        log_matching_error(error, options)
        return default
