"""Fixed-size pool of reusable browser tabs handed out round-robin."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Generic, TypeVar

T = TypeVar("T")


class SessionPool(Generic[T]):
    """Index-addressable sessions; ``next()`` rotates and skips sessions still in use."""

    def __init__(self, sessions: Sequence[T]) -> None:
        if not sessions:
            raise ValueError("SessionPool needs at least one session")
        self._sessions = list(sessions)
        self._cursor = 0
        self._busy: set[int] = set()

    def __len__(self) -> int:
        return len(self._sessions)

    def __getitem__(self, index: int) -> T:
        return self._sessions[index]

    def __iter__(self):
        return iter(self._sessions)

    @property
    def busy(self) -> int:
        return len(self._busy)

    def next(self) -> tuple[int, T]:
        size = len(self._sessions)
        for offset in range(size):
            index = (self._cursor + offset) % size
            if index not in self._busy:
                self._busy.add(index)
                self._cursor = (index + 1) % size
                return index, self._sessions[index]
        raise RuntimeError("all sessions are busy")

    def release(self, index: int) -> None:
        self._busy.discard(index)


__all__ = ["SessionPool"]
