"""Tests for the per-node lock registry."""

import gc
import threading

from canopy.services.locks import NodeLockRegistry


def test_same_node_shares_one_lock() -> None:
    registry = NodeLockRegistry()

    lock = registry.lock_for(1)

    assert registry.lock_for(1) is lock
    assert registry.lock_for(2) is not lock


def test_released_locks_are_forgotten() -> None:
    registry = NodeLockRegistry()

    with registry.hold(3):
        assert len(registry) == 1
    for node_id in range(100, 150):
        with registry.hold(node_id):
            pass
    gc.collect()

    assert len(registry) == 0


def test_hold_serializes_writers_per_node() -> None:
    registry = NodeLockRegistry()
    entered = threading.Event()
    release = threading.Event()
    order: list[str] = []

    def first() -> None:
        with registry.hold(7):
            entered.set()
            release.wait(timeout=5)
            order.append("first")

    def second() -> None:
        entered.wait(timeout=5)
        with registry.hold(7):
            order.append("second")

    threads = [threading.Thread(target=first), threading.Thread(target=second)]
    for thread in threads:
        thread.start()
    entered.wait(timeout=5)
    # A different node is not blocked by node 7.
    with registry.hold(8):
        order.append("other")
    release.set()
    for thread in threads:
        thread.join(timeout=5)

    assert order == ["other", "first", "second"]
