"""Thread-based concurrency primitives used at the orchestration boundary."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator


@dataclass(slots=True)
class _KeyEntry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    holders: int = 0


class KeyedLock:
    """Per-key mutual exclusion; distinct keys never contend.

    Entries are reference-counted and dropped once no thread holds or waits on them, so
    the registry does not grow with the number of keys ever seen.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: dict[str, _KeyEntry] = {}

    @contextmanager
    def hold(self, key: str, *, timeout: float | None = None) -> Iterator[None]:
        if not isinstance(key, str) or not key:
            raise ValueError("key must be a non-empty string")
        if timeout is not None and timeout <= 0:
            raise ValueError("timeout must be > 0")

        with self._guard:
            entry = self._entries.setdefault(key, _KeyEntry())
            entry.holders += 1

        acquired = entry.lock.acquire(timeout=-1 if timeout is None else timeout)
        try:
            if not acquired:
                raise TimeoutError(f"timed out after {timeout} seconds waiting for {key!r}")
            yield
        finally:
            if acquired:
                entry.lock.release()
            with self._guard:
                entry.holders -= 1
                if entry.holders == 0:
                    self._entries.pop(key, None)

    def is_held(self, key: str) -> bool:
        with self._guard:
            entry = self._entries.get(key)
            return entry is not None and entry.lock.locked()

    def snapshot(self) -> dict[str, int]:
        """Current holder/waiter count per key."""
        with self._guard:
            return {key: entry.holders for key, entry in sorted(self._entries.items())}


__all__ = ["KeyedLock"]
