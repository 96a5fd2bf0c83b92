# pool_sim/domain/state.py
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass

import numpy as np

from pool_sim.domain.entities.driver import Driver, DriverStatus
from pool_sim.domain.entities.geography import Bounds, Point, distance, step_toward
from pool_sim.domain.entities.match import Match
from pool_sim.domain.entities.request import Request, RequestStatus
from pool_sim.domain.grid import CellId
from pool_sim.policy.assign import Assignment
from pool_sim.sim.metrics import Counters


@dataclass(frozen=True)
class Pickup:
    driver_id: int
    request_id: int
    match_id: int
    task_id: int


class Registry:
    """
    Sole owner and writer of requests, drivers, matches and cumulative counters.

    Collections are insertion ordered; driver truncation removes from the end.
    Stale ids are skipped rather than raised: forward progress of the
    simulation wins over strict failure signalling.
    """

    def __init__(self):
        self.requests: dict[int, Request] = {}
        self.drivers: dict[int, Driver] = {}
        self.matches: dict[int, Match] = {}
        self.counters = Counters()
        self._next_id = 0
        self._match_by_driver: dict[int, int] = {}  # driver_id -> match_id

    def next_id(self) -> int:
        i = self._next_id
        self._next_id += 1
        return i

    # ------------- entities --------------------------

    def create_request(self, location: Point, cell: CellId, now_ms: int) -> Request:
        r = Request(id=self.next_id(), location=location, created_at_ms=now_ms, cell=cell)
        self.requests[r.id] = r
        self.counters.total_requests_created += 1
        return r

    def add_driver(self, location: Point) -> Driver:
        d = Driver(id=self.next_id(), location=location)
        self.drivers[d.id] = d
        return d

    def resize_drivers(self, target: int, sample_point: Callable[[], Point]) -> list[Driver]:
        """Converge the fleet to `target`; returns the drivers dropped by truncation."""
        target = max(0, target)
        while len(self.drivers) < target:
            self.add_driver(sample_point())
        removed: list[Driver] = []
        while len(self.drivers) > target:
            _, d = self.drivers.popitem()  # LIFO: newest first, whatever its state
            removed.append(d)
        return removed

    def pending(self, request_ids: Iterable[int]) -> list[Request]:
        out = []
        for rid in request_ids:
            r = self.requests.get(rid)
            if r is not None and r.pending:
                out.append(r)
        return out

    def available_drivers(self) -> list[Driver]:
        return [d for d in self.drivers.values() if d.available]

    # ------------- transitions --------------------------

    def apply_assignments(
        self,
        requests: Sequence[Request],
        drivers: Sequence[Driver],
        assignments: Iterable[Assignment],
        now_ms: int,
    ) -> list[Match]:
        claimed_r: set[int] = set()
        claimed_d: set[int] = set()
        out: list[Match] = []
        for a in assignments:
            if not (0 <= a.request_index < len(requests) and 0 <= a.driver_index < len(drivers)):
                continue
            r, d = requests[a.request_index], drivers[a.driver_index]
            if r.id in claimed_r or d.id in claimed_d:
                continue
            # both must still be live and free
            if self.requests.get(r.id) is not r or not r.pending:
                continue
            if self.drivers.get(d.id) is not d or not d.available:
                continue
            claimed_r.add(r.id)
            claimed_d.add(d.id)

            m = Match(
                id=self.next_id(),
                request_id=r.id,
                driver_id=d.id,
                request_location=r.location,
                driver_location=d.location,
                created_at_ms=now_ms,
            )
            r.status = RequestStatus.MATCHED
            d.dispatch(r.location)
            self.matches[m.id] = m
            self._match_by_driver[d.id] = m.id
            self.counters.record_match((now_ms - r.created_at_ms) / 1000)
            out.append(m)
        return out

    def advance_drivers(
        self, step: float, rng: np.random.Generator, bounds: Bounds
    ) -> list[Pickup]:
        pickups: list[Pickup] = []
        for d in self.drivers.values():
            if d.status is DriverStatus.EN_ROUTE_TO_PICKUP and d.target is not None:
                if distance(d.location, d.target) <= step:
                    pickup = self._arrive(d)
                    if pickup:
                        pickups.append(pickup)
                else:
                    d.location = bounds.clip(step_toward(d.location, d.target, 2 * step))
            elif d.status is DriverStatus.AVAILABLE:
                dx, dy = ((rng.random(2) - 0.5) * step).tolist()
                d.location = bounds.clip(Point(d.location.x + dx, d.location.y + dy))
        return pickups

    def _arrive(self, d: Driver) -> Pickup | None:
        d.arrive()
        mid = self._match_by_driver.pop(d.id, None)
        m = self.matches.pop(mid, None) if mid is not None else None
        if m is None:
            # nothing to pick up any more: straight back to the fleet
            d.release()
            return None
        r = self.requests.get(m.request_id)
        if r is not None:
            r.status = RequestStatus.COMPLETED
        self.counters.completed_pickups += 1
        return Pickup(driver_id=d.id, request_id=m.request_id, match_id=m.id, task_id=d.task_id)

    def release_driver(self, driver_id: int, task_id: int) -> bool:
        d = self.drivers.get(driver_id)
        if d is None or d.task_id != task_id or d.status is not DriverStatus.BUSY:
            return False
        d.release()
        return True

    def prune_completed(self) -> int:
        done = [rid for rid, r in self.requests.items() if r.status is RequestStatus.COMPLETED]
        for rid in done:
            del self.requests[rid]
        return len(done)

    def mark_requeued(self, requests: Iterable[Request]) -> int:
        n = 0
        for r in requests:
            r.requeues += 1
            n += 1
        self.counters.requeued_requests += n
        return n

    def drop_orphaned_matches(self) -> list[Match]:
        """Remove matches whose driver no longer exists, together with their request."""
        orphans = [m for m in self.matches.values() if m.driver_id not in self.drivers]
        for m in orphans:
            del self.matches[m.id]
            self._match_by_driver.pop(m.driver_id, None)
            self.requests.pop(m.request_id, None)
            self.counters.orphaned_matches += 1
        return orphans

    def reset(self) -> None:
        self.requests.clear()
        self.drivers.clear()
        self.matches.clear()
        self._match_by_driver.clear()
        self.counters = Counters()
        self._next_id = 0
