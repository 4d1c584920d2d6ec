"""Content-addressed record cache, persisted across runs.

Keys are canonical identity hashes. Every entry is an immutable JSON blob:
a put replaces the whole file through a same-directory temporary file and
``os.replace``, so a concurrent reader sees either the old or the new
record, never a partial one. Cache failures are logged and reported as a
miss (``get``) or ``False`` (``put``); they never propagate.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

from common.logging_utils import extra_context, is_debug_enabled
from engine.models import PackageRecord

logger = logging.getLogger(__name__)


@dataclass
class CacheStats:
    """Counters for one cache instance."""

    hits: int = 0
    misses: int = 0
    writes: int = 0
    errors: int = 0

    def as_dict(self) -> Dict[str, int]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "writes": self.writes,
            "errors": self.errors,
        }


class _BaseCache:
    def __init__(self) -> None:
        self._stats = CacheStats()
        self._stats_lock = threading.Lock()

    def _count(self, name: str) -> None:
        with self._stats_lock:
            setattr(self._stats, name, getattr(self._stats, name) + 1)

    def stats(self) -> Dict[str, int]:
        """Get cache statistics."""
        with self._stats_lock:
            return self._stats.as_dict()


class DiskCache(_BaseCache):
    """Directory of ``<key>.json`` files, one per canonical hash."""

    SUFFIX = ".json"

    def __init__(self, directory: Union[str, Path]):
        """Initialize the disk cache.

        Args:
            directory: Cache directory; created lazily and idempotently.
        """
        super().__init__()
        self._dir = Path(directory)

    @property
    def directory(self) -> Path:
        return self._dir

    def ensure_dir(self) -> bool:
        """Create the cache directory; losing a creation race is not an error."""
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            return True
        except OSError as exc:
            logger.warning("Failed to initialize cache directory %s: %s", self._dir, exc)
            return False

    def _path_for(self, key: str) -> Path:
        if not key or os.sep in key or (os.altsep and os.altsep in key) or key.startswith("."):
            raise ValueError(f"Invalid cache key: {key!r}")
        return self._dir / f"{key}{self.SUFFIX}"

    def get(self, key: str) -> Optional[PackageRecord]:
        """Get a cached record.

        Args:
            key: Canonical identity hash.

        Returns:
            The cached record with ``retry_for_unknown`` reset, or None when
            absent or unreadable.
        """
        try:
            path = self._path_for(key)
        except ValueError as exc:
            logger.warning("%s", exc)
            self._count("errors")
            return None
        try:
            with open(path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except FileNotFoundError:
            self._count("misses")
            return None
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable cache entry %s: %s", path.name, exc)
            self._count("errors")
            return None
        if not isinstance(data, dict):
            logger.warning("Ignoring malformed cache entry %s", path.name)
            self._count("errors")
            return None

        try:
            record = PackageRecord.from_dict(data)
        except (TypeError, AttributeError, ValueError) as exc:
            logger.warning("Ignoring malformed cache entry %s: %s", path.name, exc)
            self._count("errors")
            return None
        # The retry marker is decided by the caller on every run.
        record.retry_for_unknown = False
        self._count("hits")
        if is_debug_enabled(logger):
            logger.debug(
                "Cache hit",
                extra=extra_context(event="cache_hit", component="cache", action="get", target=record.node_id),
            )
        return record

    def put(self, key: str, record: PackageRecord) -> bool:
        """Cache a record, replacing any previous entry for ``key``.

        Returns:
            True when the entry was written.
        """
        tmp_name = None
        try:
            path = self._path_for(key)
            if not self.ensure_dir():
                self._count("errors")
                return False
            payload = json.dumps(record.to_dict(), ensure_ascii=False)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{key[:16]}-", suffix=".tmp", dir=self._dir)
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.replace(tmp_name, path)
            tmp_name = None
        except (OSError, TypeError, ValueError) as exc:
            logger.warning("Failed to save %s to cache: %s", record.node_id, exc)
            self._count("errors")
            return False
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass
        self._count("writes")
        if is_debug_enabled(logger):
            logger.debug(
                "Cache write",
                extra=extra_context(event="cache_write", component="cache", action="put", target=record.node_id),
            )
        return True


class MemoryCache(_BaseCache):
    """In-process cache with the same contract, for tests and ``--no-cache`` runs."""

    def __init__(self, initial: Optional[Dict[str, PackageRecord]] = None):
        super().__init__()
        self._lock = threading.Lock()
        self._entries: Dict[str, Dict[str, Any]] = {}
        for key, record in (initial or {}).items():
            self._entries[key] = record.to_dict()

    def get(self, key: str) -> Optional[PackageRecord]:
        with self._lock:
            data = self._entries.get(key)
        if data is None:
            self._count("misses")
            return None
        record = PackageRecord.from_dict(data)
        record.retry_for_unknown = False
        self._count("hits")
        return record

    def put(self, key: str, record: PackageRecord) -> bool:
        data = record.to_dict()
        with self._lock:
            self._entries[key] = data
        self._count("writes")
        return True

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
