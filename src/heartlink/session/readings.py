"""Bounded, most-recent-first log of heart rate readings."""

from __future__ import annotations

from collections import deque
from datetime import datetime

DEFAULT_CAPACITY = 10


def format_reading(bpm: int, received_at: datetime) -> str:
    """Render a reading in the peripheral-local wall clock."""

    local = received_at.astimezone() if received_at.tzinfo else received_at
    return f"HR: {bpm}bpm - {local.strftime('%H:%M:%S')}"


class ReadingsLog:
    __slots__ = ("_entries",)

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._entries: deque[str] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        assert self._entries.maxlen is not None
        return self._entries.maxlen

    def push(self, entry: str) -> None:
        # appendleft on a full deque evicts from the right, i.e. the oldest.
        self._entries.appendleft(entry)

    def clear(self) -> None:
        self._entries.clear()

    def entries(self) -> tuple[str, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
