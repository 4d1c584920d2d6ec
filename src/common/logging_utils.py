"""Centralized logging helpers.

Every module logs through ``logging.getLogger(__name__)``; this module only
configures the root logger once and provides the small helpers used to attach
structured context to records (``extra=extra_context(...)``) without paying
for it when DEBUG is off.
"""
from __future__ import annotations

import logging
import os
import re
import time
from typing import Any, Dict, Optional
from urllib.parse import urlsplit, urlunsplit, parse_qsl, urlencode

from constants import Constants

ENV_LOG_LEVEL = "LICENSEWALK_LOG_LEVEL"

_SENSITIVE_KEYS = ("token", "key", "secret", "password", "auth", "signature")
_REDACTED = "[REDACTED]"
_TOKEN_PATTERN = re.compile(r"(gh[pousr]_[A-Za-z0-9]{20,}|Bearer\s+[A-Za-z0-9._-]+)")


class _ContextFormatter(logging.Formatter):
    """Append structured context fields to the message when present."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        ctx = getattr(record, "context", None)
        if not ctx:
            return base
        pairs = " ".join(f"{k}={v}" for k, v in ctx.items() if v is not None)
        return f"{base} [{pairs}]" if pairs else base


def configure_logging(log_file: Optional[str] = None) -> None:
    """Configure the root logger from the environment.

    Args:
        log_file: Optional path; when set, records also go to this file.
    """
    level_name = os.environ.get(ENV_LOG_LEVEL, "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    formatter = _ContextFormatter(Constants.LOG_FORMAT)
    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)
    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(
            _ContextFormatter("%(asctime)s %(name)s " + Constants.LOG_FORMAT)
        )
        root.addHandler(file_handler)
    root.setLevel(level)


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Cheap guard so DEBUG payloads are only built when they will be emitted."""
    return logger.isEnabledFor(logging.DEBUG)


def extra_context(**fields: Any) -> Dict[str, Any]:
    """Build the ``extra`` mapping for a structured log call."""
    return {"context": {k: v for k, v in fields.items() if v is not None}}


def redact(text: Optional[str]) -> Optional[str]:
    """Mask tokens that look like credentials."""
    if text is None:
        return None
    return _TOKEN_PATTERN.sub(_REDACTED, str(text))


def safe_url(url: str) -> str:
    """Return the URL with credentials and sensitive query values masked."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return redact(url) or ""
    netloc = parts.netloc
    if "@" in netloc:
        netloc = f"{_REDACTED}@{netloc.rsplit('@', 1)[1]}"
    query = parts.query
    if query:
        pairs = [
            (k, _REDACTED if any(s in k.lower() for s in _SENSITIVE_KEYS) else v)
            for k, v in parse_qsl(query, keep_blank_values=True)
        ]
        query = urlencode(pairs, safe="[]")
    return urlunsplit((parts.scheme, netloc, parts.path, query, parts.fragment))


class Timer:
    """Context manager measuring wall-clock duration."""

    def __init__(self) -> None:
        self._start = 0.0
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        self._end = None
        return self

    def __exit__(self, *exc: Any) -> None:
        self._end = time.perf_counter()

    def duration_ms(self) -> float:
        end = self._end if self._end is not None else time.perf_counter()
        return round((end - self._start) * 1000.0, 2)
