"""Shared HTTP helpers used by the registry resolvers.

Encapsulates common request/timeout error handling so resolvers avoid
duplicating try/except blocks. Failures never raise: callers receive a
status code of 0 and a diagnostic text, and decide how to surface it. The
memo cache is shared by all worker threads and guarded by a lock.
"""
from __future__ import annotations

import logging
import threading
import time
import json
from typing import Any, Optional, Dict, Tuple

import requests

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer

logger = logging.getLogger(__name__)


# Simple in-memory cache for HTTP responses
_http_cache: Dict[str, Tuple[Any, float]] = {}
_http_cache_lock = threading.Lock()


def _get_cache_key(method: str, url: str, headers: Optional[Dict[str, str]] = None) -> str:
    """Generate cache key from request parameters."""
    headers_str = str(sorted(headers.items())) if headers else ""
    return f"{method}:{url}:{headers_str}"


def _is_cache_valid(cache_entry: Tuple[Any, float]) -> bool:
    """Check if cache entry is still valid."""
    _, cached_time = cache_entry
    return time.time() - cached_time < Constants.HTTP_CACHE_TTL_SEC


def clear_cache() -> None:
    """Drop every memoized response."""
    with _http_cache_lock:
        _http_cache.clear()


def _default_headers(headers: Optional[Dict[str, str]]) -> Dict[str, str]:
    merged = {"User-Agent": Constants.USER_AGENT}
    if headers:
        merged.update(headers)
    return merged


def _trace(message: str, **fields: Any) -> None:
    """DEBUG record tagged with the http_client component."""
    if is_debug_enabled(logger):
        logger.debug(message, extra=extra_context(component="http_client", **fields))


def _backoff(attempt: int) -> None:
    if attempt:
        time.sleep(Constants.HTTP_RETRY_BASE_DELAY_SEC * (2 ** (attempt - 1)))


def robust_get(
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    timeout: Optional[float] = None,
    **kwargs: Any
) -> Tuple[int, Dict[str, str], str]:
    """GET with retries on network errors and 5xx, memoized for HTTP_CACHE_TTL_SEC.

    Returns:
        Tuple of (status_code, headers_dict, text). ``status_code`` is 0 when
        every attempt failed; ``text`` then carries the last error.
    """
    cache_key = _get_cache_key('GET', url, headers)
    target = safe_url(url)

    with _http_cache_lock:
        entry = _http_cache.get(cache_key)
    if entry is not None and _is_cache_valid(entry):
        _trace("HTTP cache hit", event="cache_hit", action="GET", target=target)
        return entry[0]

    failure = "no attempt made"
    for attempt in range(Constants.HTTP_RETRY_MAX):
        _backoff(attempt)
        _trace("HTTP request", event="http_request", action="GET", target=target, attempt=attempt + 1)
        with Timer() as t:
            try:
                response = requests.get(
                    url,
                    timeout=timeout or Constants.REQUEST_TIMEOUT,
                    headers=_default_headers(headers),
                    **kwargs
                )
            except requests.RequestException as exc:
                outcome = "timeout" if isinstance(exc, requests.Timeout) else "request_exception"
                failure = outcome if outcome == "timeout" else str(exc)
                _trace("HTTP request failed", event="http_exception", action="GET",
                       outcome=outcome, attempt=attempt + 1, target=target)
                continue

        if response.status_code >= 500:
            failure = f"server error {response.status_code}"
            continue

        result = (response.status_code, dict(response.headers), response.text)
        with _http_cache_lock:
            _http_cache[cache_key] = (result, time.time())
        _trace("HTTP response", event="http_response", action="GET", outcome="success",
               status_code=response.status_code, duration_ms=t.duration_ms(), target=target)
        return result

    return 0, {}, f"Request failed after {Constants.HTTP_RETRY_MAX} attempts: {failure}"


def get_json(
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    **kwargs: Any
) -> Tuple[int, Dict[str, str], Optional[Any]]:
    """Like robust_get, but the body is decoded JSON (None unless a 200 parses)."""
    status_code, response_headers, text = robust_get(url, headers=headers, **kwargs)
    if status_code != 200 or not text:
        return status_code, response_headers, None
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        _trace("JSON decode error", event="parse", action="get_json",
               outcome="json_decode_error", status_code=status_code, target=safe_url(url))
        return status_code, response_headers, None
    return status_code, response_headers, parsed


def get_bytes(url: str, *, max_bytes: Optional[int] = None) -> Tuple[int, bytes]:
    """Download a binary payload (archives). Not memoized.

    Returns:
        Tuple of (status_code, body). ``status_code`` is 0 on network failure
        or when the body exceeds ``max_bytes``.
    """
    limit = max_bytes or Constants.MAX_ARCHIVE_BYTES
    safe_target = safe_url(url)
    last_exception = None
    for attempt in range(Constants.HTTP_RETRY_MAX):
        _backoff(attempt)
        try:
            with requests.get(
                url,
                timeout=Constants.REQUEST_TIMEOUT,
                headers=_default_headers(None),
                stream=True,
            ) as response:
                if response.status_code != 200:
                    return response.status_code, b""
                chunks = []
                size = 0
                for chunk in response.iter_content(chunk_size=65536):
                    size += len(chunk)
                    if size > limit:
                        logger.warning("Download of %s exceeds %d bytes, aborting", safe_target, limit)
                        return 0, b""
                    chunks.append(chunk)
                return response.status_code, b"".join(chunks)
        except requests.RequestException as exc:
            last_exception = exc
            _trace("HTTP download failed", event="http_exception", action="GET",
                   outcome="request_exception", attempt=attempt + 1, target=safe_target)
    logger.debug("Download of %s failed: %s", safe_target, last_exception)
    return 0, b""
