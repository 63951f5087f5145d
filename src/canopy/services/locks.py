"""Per-node locks serializing writes to one node's attachment bundle."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from threading import Lock
from weakref import WeakValueDictionary

__all__ = ["NodeLockRegistry", "node_locks"]


class NodeLockRegistry:
    """Hand out one lock per node id.

    Locks are created on first use and dropped once no thread holds or waits
    on them, so the registry only tracks nodes that are being written. Two
    callers asking for the same id while either still references the lock
    always get the same object.

    These locks serialize recomputation within one process. Isolation between
    transactions comes from the row lock taken by ``NodeRepository.lock_node``.
    """

    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: WeakValueDictionary[int, Lock] = WeakValueDictionary()

    def __len__(self) -> int:
        return len(self._locks)

    def lock_for(self, node_id: int) -> Lock:
        """Return the lock owned by ``node_id``."""
        with self._guard:
            lock = self._locks.get(node_id)
            if lock is None:
                lock = Lock()
                self._locks[node_id] = lock
            return lock

    @contextmanager
    def hold(self, node_id: int) -> Iterator[None]:
        """Hold the node's lock for the duration of the block."""
        lock = self.lock_for(node_id)
        with lock:
            yield


# Process-wide registry shared by every engine instance.
node_locks = NodeLockRegistry()
