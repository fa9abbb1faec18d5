"""Keyed mutual exclusion for allocation and review writers."""
from contextlib import contextmanager
from threading import Lock, RLock
from typing import Dict, Iterable, Iterator, Optional
from yatra.core.config import settings


GLOBAL_KEY = "*"


def registration_key(registration_id: str) -> str:
    return f"registration:{registration_id}"


def hotel_key(hotel_id: str) -> str:
    return f"hotel:{hotel_id}"


class KeyedLockRegistry:
    """
    Hands out one re-entrant lock per key.

    In ``hotel`` scope a writer holds the locks of its registration and of
    every hotel it touches; in ``global`` scope every writer shares one lock.
    Keys are always acquired in sorted order so two writers can never wait on
    each other in a cycle.
    """

    def __init__(self, scope: str = "hotel"):
        if scope not in ("hotel", "global"):
            raise ValueError(f"Unknown lock scope {scope!r}")
        self.scope = scope
        self._guard = Lock()
        self._locks: Dict[str, RLock] = {}

    def _lock_for(self, key: str) -> RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = RLock()
            return lock

    @contextmanager
    def hold(self, keys: Iterable[str]) -> Iterator[None]:
        """Hold every lock in ``keys`` for the duration of the block."""
        ordered = [GLOBAL_KEY] if self.scope == "global" else sorted(set(keys))
        acquired = []
        try:
            for key in ordered:
                lock = self._lock_for(key)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()


_registries: Dict[str, KeyedLockRegistry] = {}
_registries_guard = Lock()


def get_lock_registry(scope: Optional[str] = None) -> KeyedLockRegistry:
    """Process-wide registry shared by every engine and review service of a scope."""
    scope = scope or settings.lock_scope
    with _registries_guard:
        registry = _registries.get(scope)
        if registry is None:
            registry = _registries[scope] = KeyedLockRegistry(scope)
        return registry
