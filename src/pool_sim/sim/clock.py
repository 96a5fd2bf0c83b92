# sim/clock.py
from __future__ import annotations

from datetime import UTC, datetime, timedelta

MS = 1
SEC = 1000 * MS
MIN = 60 * SEC


def seconds(x: float) -> int:
    return int(round(x * SEC))


def to_seconds(ms: float) -> float:
    return ms / SEC


class TickClock:
    """
    Simulated time in integer milliseconds, advanced by a fixed tick.

    Simulated time only moves inside `advance`, so pausing the driver freezes
    it and everything scheduled against it.
    """

    def __init__(self, tick_ms: int = 250, epoch: datetime | None = None):
        if tick_ms <= 0:
            raise ValueError(f"tick_ms must be positive, got {tick_ms}")
        self.tick_ms = tick_ms
        self.epoch = epoch or datetime(2025, 1, 1, tzinfo=UTC)
        self.tick = 0
        self.now_ms = 0

    @property
    def tick_s(self) -> float:
        return to_seconds(self.tick_ms)

    def advance(self) -> int:
        self.tick += 1
        self.now_ms += self.tick_ms
        return self.now_ms

    def reset(self) -> None:
        self.tick = 0
        self.now_ms = 0

    # sim ms -> wall
    def to_wall(self, t_ms: float) -> datetime:
        return self.epoch + timedelta(milliseconds=t_ms)
