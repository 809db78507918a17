"""Room-scoped lock arena used to serialize state transitions per room."""

from __future__ import annotations

from contextlib import contextmanager
from threading import Lock
from typing import Iterator


class RoomLockArena:
    """Hands out one lock per room id, created on first use.

    Operations on different rooms never wait on each other; only callers
    touching the same room are serialized.
    """

    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: dict[int, Lock] = {}

    def lock_for(self, room_id: int) -> Lock:
        with self._guard:
            lock = self._locks.get(room_id)
            if lock is None:
                lock = Lock()
                self._locks[room_id] = lock
            return lock

    @contextmanager
    def hold(self, room_id: int) -> Iterator[None]:
        lock = self.lock_for(room_id)
        with lock:
            yield

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
