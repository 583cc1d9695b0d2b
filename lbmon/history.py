"""Rolling window of recent samples for one live metric."""

from __future__ import annotations

from collections import deque

HISTORY_CAPACITY = 20


def push(
    history: tuple[float, ...],
    sample: float,
    capacity: int = HISTORY_CAPACITY,
) -> tuple[float, ...]:
    """Return a new window with *sample* appended, keeping the newest *capacity*."""
    return tuple(deque((*history, sample), maxlen=capacity))


def reset() -> tuple[float, ...]:
    return ()
