# sim/scheduler.py
import heapq
from dataclasses import dataclass


@dataclass(frozen=True)
class DriverRelease:
    """Deferred "driver becomes available again" effect."""

    fire_at_ms: int
    driver_id: int
    task_id: int  # assignment version at scheduling time; stale if the driver moved on


class DeferredQueue:
    """
    Time-ordered queue of deferred effects, drained at the start of a tick.

    Entries at the same time fire in scheduling order. `reset` empties the
    queue and bumps the generation so that anything held by a caller across
    a reset is recognisably stale.
    """

    def __init__(self):
        self._q: list[tuple[int, int, int, DriverRelease]] = []
        self._seq = 0
        self.generation = 0

    def __len__(self) -> int:
        return len(self._q)

    def schedule(self, ev: DriverRelease, *, now_ms: int) -> None:
        if ev.fire_at_ms < now_ms:
            raise RuntimeError(f"scheduled past effect at {ev.fire_at_ms} < now {now_ms}")
        self._seq += 1
        heapq.heappush(self._q, (ev.fire_at_ms, self._seq, self.generation, ev))

    def due(self, now_ms: int) -> list[DriverRelease]:
        out: list[DriverRelease] = []
        while self._q and self._q[0][0] <= now_ms:
            _, _, gen, ev = heapq.heappop(self._q)
            if gen == self.generation:
                out.append(ev)
        return out

    def reset(self) -> None:
        self._q.clear()
        self._seq = 0
        self.generation += 1
