"""
Centralized lock factory for dependency injection.

Every Agent and Collaboration aggregate is guarded by its own lock so that
admission control, health checks and message handling never interleave a
read-modify-write. Locks are created through this factory so tests can
swap in no-op locks.

Usage:
    from agentmesh.utils.lock_factory import create_lock

    self._locks[agent.id] = create_lock()

    # Single-threaded tests:
    with using_factory(NoOpLock):
        registry = AgentRegistry()
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Union

# threading.Lock and threading.RLock are factory functions, not types.
LockType = Union[threading._RLock, "threading.Lock", "NoOpLock"]

_factory: Callable[[], LockType] = threading.RLock

def create_lock() -> LockType:
    """Create a lock using the current factory.

    Returns a re-entrant lock by default so an operation holding an
    aggregate's lock may call helpers that take it again.
    """
    return _factory()

def set_factory(factory: Callable[[], LockType]) -> None:
    """Override the global lock factory."""
    global _factory
    _factory = factory

def reset_factory() -> None:
    """Restore the default lock factory (threading.RLock)."""
    global _factory
    _factory = threading.RLock

@contextmanager
def using_factory(factory: Callable[[], LockType]) -> Iterator[None]:
    """Swap the factory for the duration of a block, then restore the previous one."""
    previous = _factory
    set_factory(factory)
    try:
        yield
    finally:
        set_factory(previous)

class NoOpLock:
    """A no-op lock for use in single-threaded test environments."""

    def acquire(self, blocking: bool = True, timeout: float = -1) -> bool:
        return True

    def release(self) -> None:
        pass

    def __enter__(self) -> NoOpLock:
        return self

    def __exit__(self, *args: object) -> None:
        pass
