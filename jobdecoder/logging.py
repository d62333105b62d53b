"""
Logging — Structured Match Diagnostics

Every engine module logs under the "jobdecoder" namespace. Records carry
match context as `extra=` fields (finding index, span, match type,
confidence), which the JSON formatter lifts into top-level keys and the
text formatter renders as a trailing span tag.

Phrases and error contexts quote posting text, and a posting may be tens
of thousands of characters. Quoted text is clipped to LOG_PHRASE_MAX
characters; the entry keeps the full length alongside.

Usage:
    from jobdecoder.logging import get_logger
    logger = get_logger("matching")
    logger.info("Primary phrase matched", extra={"phrase": "年俸500万円", "finding_index": 0})
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Optional


LOG_LEVEL = os.getenv("JOBDECODER_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.getenv("JOBDECODER_LOG_FORMAT", "json")  # "json" or "text"
LOG_PHRASE_MAX = int(os.getenv("JOBDECODER_LOG_PHRASE_MAX", "80"))

# Match context lifted from a record into the entry
MATCH_FIELDS = (
    "finding_index", "phrase_index", "match_type", "start_index", "end_index",
    "confidence", "matches_count", "text_length", "findings_count",
)
# Request and failure context
SERVICE_FIELDS = (
    "error", "error_type", "duration_ms", "status_code", "method", "path",
)


def clip(value: Any, limit: int = LOG_PHRASE_MAX) -> Any:
    """Shorten strings longer than limit, marking the cut with "…"."""
    if isinstance(value, str) and limit > 0 and len(value) > limit:
        return value[:limit] + "…"
    return value


def span_tag(record: logging.LogRecord) -> str:
    """Span tag such as "[finding 1 14:21 normalized]", built from the match fields present."""
    parts = []
    finding_index = getattr(record, "finding_index", None)
    if finding_index is not None:
        label = f"finding {finding_index}"
        phrase_index = getattr(record, "phrase_index", None)
        if phrase_index is not None:
            label += f".{phrase_index}"
        parts.append(label)

    start = getattr(record, "start_index", None)
    end = getattr(record, "end_index", None)
    if start is not None and end is not None:
        parts.append(f"{start}:{end}")

    match_type = getattr(record, "match_type", None)
    if match_type:
        parts.append(str(match_type))

    return f"[{' '.join(parts)}]" if parts else ""


class JSONFormatter(logging.Formatter):
    """One JSON line per record. Japanese text stays unescaped."""

    def __init__(self, phrase_max: int = LOG_PHRASE_MAX):
        super().__init__()
        self.phrase_max = phrase_max

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in MATCH_FIELDS + SERVICE_FIELDS:
            val = getattr(record, key, None)
            if val is not None:
                entry[key] = val

        phrase = getattr(record, "phrase", None)
        if isinstance(phrase, str):
            entry["phrase"] = clip(phrase, self.phrase_max)
            if len(phrase) > self.phrase_max:
                entry["phrase_length"] = len(phrase)

        context = getattr(record, "context", None)
        if isinstance(context, dict):
            entry["context"] = {k: clip(v, self.phrase_max) for k, v in context.items()}

        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Development format: the message followed by its span tag."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        tag = span_tag(record)
        return f"{line} {tag}" if tag else line


def setup_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> logging.Logger:
    """
    Configure the jobdecoder logger. Call once at app startup.

    level and fmt default to JOBDECODER_LOG_LEVEL / JOBDECODER_LOG_FORMAT.
    Repeated calls replace the handler rather than stacking another.
    """
    root = logging.getLogger("jobdecoder")
    root.setLevel(getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    if (fmt or LOG_FORMAT) == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(TextFormatter())
    root.addHandler(handler)

    # access lines duplicate the request middleware's entries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    return root


def get_logger(name: str) -> logging.Logger:
    """Logger under the jobdecoder namespace, e.g. "jobdecoder.finder"."""
    return logging.getLogger(f"jobdecoder.{name}")
