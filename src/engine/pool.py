"""Concurrent resolution engine.

A fixed pool of worker threads drains a shared :class:`WorkQueue` of
package identities. Each identity is resolved at most once per canonical
hash (from the cache when possible, otherwise through the injected
resolver); every dependency discovered on the way is pushed back onto the
queue until the reachable graph is exhausted.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Protocol

from constants import Constants, Registries
from common.logging_utils import extra_context, is_debug_enabled, Timer
from engine.hashing import package_hash
from engine.models import PackageIdentity, PackageRecord, default_registry
from engine.state import EdgeRecorder, ProcessedSet, ResultsCollector, WorkQueue

logger = logging.getLogger(__name__)

Resolver = Callable[[PackageIdentity], PackageRecord]


class RecordCache(Protocol):
    def get(self, key: str) -> Optional[PackageRecord]: ...

    def put(self, key: str, record: PackageRecord) -> bool: ...


def is_local_package(identity: PackageIdentity) -> bool:
    """Workspace packages carry a local pseudo-version and are never resolved."""
    return Constants.LOCAL_VERSION_MARKER in identity.version


@dataclass
class EngineConfig:
    """Run-level switches threaded into the pool."""
    workers: int = 4
    retry_unknown: bool = False
    track_edges: bool = False

    def __post_init__(self) -> None:
        if self.workers < 1:
            raise ValueError("workers must be >= 1")


@dataclass
class EngineStats:
    """Per-run counters, updated under the pool's stats lock."""
    cache_hits: int = 0
    resolved: int = 0
    failed: int = 0
    retried: int = 0
    ignored: int = 0
    duplicates: int = 0
    cache_read_errors: int = 0
    cache_write_errors: int = 0

    def as_dict(self) -> Dict[str, int]:
        return dict(self.__dict__)


@dataclass
class EngineResult:
    """Output handed to the reporting layer."""
    records: List[PackageRecord]
    edges: Dict[str, List[str]] = field(default_factory=dict)
    processed_count: int = 0
    stats: Dict[str, int] = field(default_factory=dict)


def _placeholder_url(identity: PackageIdentity, registry: str) -> str:
    name = identity.name
    if registry == Registries.GITHUB.value:
        marker = Constants.REPOSITORY_MARKER
        resolution = identity.resolution
        index = resolution.lower().find(marker)
        if index != -1:
            repo_path = resolution[index + len(marker):].split("#", 1)[0]
            return f"{Constants.GITHUB_URL}{repo_path}"
        if name.lower().startswith(marker):
            name = name[len(marker):]
        return f"{Constants.GITHUB_URL}{name}"
    if registry == Registries.PYPI.value:
        return f"{Constants.PACKAGE_URL_PYPI}{name}/"
    if registry == Registries.NUGET.value:
        return f"{Constants.PACKAGE_URL_NUGET}{name}/{identity.version}"
    return f"{Constants.PACKAGE_URL_NPM}{name}"


def error_record(identity: PackageIdentity, error: object) -> PackageRecord:
    """Build the UNKNOWN placeholder recorded for a failed resolution."""
    registry = default_registry(identity)
    return PackageRecord.with_error(
        identity,
        registry,
        _placeholder_url(identity, registry),
        f"Error processing package: {error}",
    )


class ResolutionEngine:
    """Worker pool that resolves a lazily discovered dependency graph.

    Everything shared by the workers is created per run and injected, so a
    test can drive the engine with a fake resolver and a :class:`MemoryCache`.
    """

    def __init__(
        self,
        resolver: Resolver,
        cache: Optional[RecordCache] = None,
        config: Optional[EngineConfig] = None,
        ignore: Callable[[PackageIdentity], bool] = is_local_package,
    ):
        self._resolver = resolver
        self._cache = cache
        self._config = config or EngineConfig()
        self._ignore = ignore

        self.queue = WorkQueue()
        self.processed = ProcessedSet()
        self.results = ResultsCollector()
        self.edges = EdgeRecorder()

        self._stats = EngineStats()
        self._stats_lock = threading.Lock()

    @property
    def config(self) -> EngineConfig:
        return self._config

    def _bump(self, name: str) -> None:
        with self._stats_lock:
            setattr(self._stats, name, getattr(self._stats, name) + 1)

    def run(self, identities: Iterable[PackageIdentity]) -> EngineResult:
        """Resolve ``identities`` and everything reachable from them.

        Blocks until the whole graph is processed.
        """
        self.queue.extend(identities)
        workers = [
            threading.Thread(
                target=self._worker_loop,
                name=f"licensewalk-worker-{index}",
                daemon=True,
            )
            for index in range(self._config.workers)
        ]
        with Timer() as timer:
            for worker in workers:
                worker.start()
            for worker in workers:
                worker.join()

        with self._stats_lock:
            stats = self._stats.as_dict()
        logger.info(
            "Resolved %d packages with %d workers in %.0f ms",
            len(self.results),
            self._config.workers,
            timer.duration_ms(),
            extra=extra_context(event="engine_done", component="engine", action="run", **stats),
        )
        return EngineResult(
            records=self.results.snapshot(),
            edges=self.edges.snapshot() if self._config.track_edges else {},
            processed_count=self.processed.added_count,
            stats=stats,
        )

    def _worker_loop(self) -> None:
        while True:
            identity = self.queue.pop()
            if identity is None:
                return
            try:
                self._process(identity)
            finally:
                self.queue.task_done()

    def _cached_record(self, key: str, identity: PackageIdentity) -> Optional[PackageRecord]:
        """Cache lookup; any cache failure is logged and treated as a miss."""
        try:
            return self._cache.get(key)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.warning("Cache read failed for %s, resolving without cache: %s", identity.name, exc)
            self._bump("cache_read_errors")
            return None

    def _process(self, identity: PackageIdentity) -> None:
        if self._ignore(identity):
            logger.debug("Ignoring local package: %s", identity.name)
            self._bump("ignored")
            return

        key = package_hash(identity)
        if not self.processed.claim(key):
            self._bump("duplicates")
            return

        skip_cache = self._config.retry_unknown and identity.retry_for_unknown
        cached = None
        if not skip_cache and self._cache is not None:
            cached = self._cached_record(key, identity)
        if cached is not None:
            logger.debug("CACHE HIT: Using cached data for %s", identity.name)
            if not (self._config.retry_unknown and cached.is_unknown):
                self._bump("cache_hits")
                self._commit(key, cached)
                return
            # Stale UNKNOWN entry: bypass it and resolve again.
            logger.debug("RETRY: Ignoring cached result with UNKNOWN license for %s", identity.name)
            self._bump("retried")
            identity = identity.marked_for_retry()
        self._resolve_and_commit(identity, key)

    def _resolve_and_commit(self, identity: PackageIdentity, key: str) -> None:
        try:
            record = self._resolver(identity)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.warning("Error processing package %s: %s", identity.name, exc)
            self._bump("failed")
            self._commit(key, error_record(identity, exc))
            return

        record.processed = True
        record.retry_for_unknown = identity.retry_for_unknown
        if self._cache is not None:
            if self._cache.put(key, record):
                logger.debug("CACHE: Saved %s to cache", identity.name)
            else:
                logger.warning("Failed to save %s to cache", identity.name)
                self._bump("cache_write_errors")
        self._bump("resolved")
        if is_debug_enabled(logger):
            logger.debug(
                "Resolved package",
                extra=extra_context(
                    event="resolved",
                    component="engine",
                    action="resolve",
                    target=record.node_id,
                    outcome=record.license or Constants.UNKNOWN_LICENSE,
                    dependencies=len(record.dependencies),
                ),
            )
        self._commit(key, record)

    def _commit(self, key: str, record: PackageRecord) -> None:
        """Publish the final record for ``key`` and seed its dependencies."""
        if not self.processed.add(key):
            return
        self.results.append(record)
        if not record.dependencies:
            return
        if self._config.track_edges:
            self.edges.record(record.node_id, (dep.node_id for dep in record.dependencies))
        pending = [dep for dep in record.dependencies if not self.processed.is_known(package_hash(dep))]
        if pending:
            self.queue.extend(pending)


def resolve_all(
    identities: Iterable[PackageIdentity],
    resolver: Resolver,
    cache: Optional[RecordCache] = None,
    workers: int = 4,
    retry_unknown: bool = False,
    track_edges: bool = False,
) -> EngineResult:
    """Convenience wrapper running one engine to exhaustion."""
    engine = ResolutionEngine(
        resolver,
        cache=cache,
        config=EngineConfig(workers=workers, retry_unknown=retry_unknown, track_edges=track_edges),
    )
    return engine.run(identities)
