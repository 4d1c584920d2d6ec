"""Concurrent dependency resolution engine.

- models.py: PackageIdentity / PackageRecord
- hashing.py: canonical identity hash used for dedup and cache keys
- cache.py: content-addressed record cache (disk and in-memory)
- state.py: work queue, processed set, results collector, edge recorder
- pool.py: worker pool, retry policy and termination protocol
"""

from .models import PackageIdentity, PackageRecord
from .hashing import package_hash, canonical_id
from .cache import DiskCache, MemoryCache
from .state import WorkQueue, ProcessedSet, ResultsCollector, EdgeRecorder, find_roots
from .pool import EngineConfig, EngineResult, ResolutionEngine, resolve_all, is_local_package

__all__ = [
    "PackageIdentity",
    "PackageRecord",
    "package_hash",
    "canonical_id",
    "DiskCache",
    "MemoryCache",
    "WorkQueue",
    "ProcessedSet",
    "ResultsCollector",
    "EdgeRecorder",
    "find_roots",
    "EngineConfig",
    "EngineResult",
    "ResolutionEngine",
    "resolve_all",
    "is_local_package",
]
