"""Shared mutable state of one resolution run.

Each container guards itself with its own short critical section. None of
them is ever held while a resolver or the cache performs I/O.
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Deque, Dict, Iterable, List, Optional, Set

from engine.models import PackageIdentity, PackageRecord


class WorkQueue:
    """FIFO of pending identities with an in-flight counter.

    ``pop`` hands out an item and counts it as in flight until the worker
    calls ``task_done``. The run is over only when the queue is empty and
    nothing is in flight; both are checked under the same lock, so children
    pushed by a finishing worker are always seen before anyone gives up.
    """

    def __init__(self, items: Optional[Iterable[PackageIdentity]] = None):
        self._items: Deque[PackageIdentity] = deque(items or ())
        self._cond = threading.Condition(threading.Lock())
        self._in_flight = 0

    def push(self, identity: PackageIdentity) -> None:
        with self._cond:
            self._items.append(identity)
            self._cond.notify()

    def extend(self, identities: Iterable[PackageIdentity]) -> None:
        with self._cond:
            before = len(self._items)
            self._items.extend(identities)
            added = len(self._items) - before
            if added:
                self._cond.notify(added)

    def try_pop(self) -> Optional[PackageIdentity]:
        """Non-blocking pop; the item counts as in flight when returned."""
        with self._cond:
            if not self._items:
                return None
            self._in_flight += 1
            return self._items.popleft()

    def pop(self, timeout: Optional[float] = None) -> Optional[PackageIdentity]:
        """Block until an item is available or the run has drained.

        Returns:
            The next identity, or None once the queue is empty and no item is
            in flight (global completion). With ``timeout`` set, also None
            when the wait expires; check ``is_drained`` to tell them apart.
        """
        with self._cond:
            while not self._items:
                if self._in_flight == 0:
                    # Wake siblings so they observe completion too.
                    self._cond.notify_all()
                    return None
                if not self._cond.wait(timeout):
                    return None
            self._in_flight += 1
            return self._items.popleft()

    def task_done(self) -> None:
        """Mark one popped item fully processed, children included."""
        with self._cond:
            if self._in_flight <= 0:
                raise ValueError("task_done() called more times than items were popped")
            self._in_flight -= 1
            if self._in_flight == 0 and not self._items:
                self._cond.notify_all()

    def is_drained(self) -> bool:
        with self._cond:
            return not self._items and self._in_flight == 0

    @property
    def in_flight(self) -> int:
        with self._cond:
            return self._in_flight

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)


class ProcessedSet:
    """Hashes whose identity has completed; entries are never removed.

    ``claim`` reserves a hash for the calling worker before it consults the
    cache or the resolver, so duplicate identities popped by two workers at
    once cannot both be processed.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._done: Set[str] = set()
        self._claimed: Set[str] = set()
        self._added = 0

    def claim(self, key: str) -> bool:
        with self._lock:
            if key in self._done or key in self._claimed:
                return False
            self._claimed.add(key)
            return True

    def add(self, key: str) -> bool:
        """Commit ``key``; returns False when it was already committed."""
        with self._lock:
            self._claimed.discard(key)
            if key in self._done:
                return False
            self._done.add(key)
            self._added += 1
            return True

    def is_known(self, key: str) -> bool:
        """True when ``key`` is committed or currently claimed."""
        with self._lock:
            return key in self._done or key in self._claimed

    @property
    def added_count(self) -> int:
        with self._lock:
            return self._added

    def snapshot(self) -> Set[str]:
        with self._lock:
            return set(self._done)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._done

    def __len__(self) -> int:
        with self._lock:
            return len(self._done)


class ResultsCollector:
    """Append-only list of final records."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: List[PackageRecord] = []

    def append(self, record: PackageRecord) -> None:
        with self._lock:
            self._records.append(record)

    def snapshot(self) -> List[PackageRecord]:
        with self._lock:
            return list(self._records)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class EdgeRecorder:
    """Adjacency map from resolved parent node ids to child node ids."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._edges: Dict[str, List[str]] = {}

    def record(self, parent_id: str, child_ids: Iterable[str]) -> None:
        children = list(child_ids)
        if not children:
            return
        with self._lock:
            self._edges.setdefault(parent_id, []).extend(children)

    def snapshot(self) -> Dict[str, List[str]]:
        with self._lock:
            return {parent: list(children) for parent, children in self._edges.items()}

    def roots(self) -> Set[str]:
        """Parents that never appear as anybody's child."""
        return find_roots(self.snapshot())

    def __len__(self) -> int:
        with self._lock:
            return len(self._edges)


def find_roots(edges: Dict[str, List[str]]) -> Set[str]:
    children = {child for kids in edges.values() for child in kids}
    return {parent for parent in edges if parent not in children}
