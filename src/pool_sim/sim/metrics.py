# pool_sim/sim/metrics.py
from collections.abc import Iterable
from dataclasses import dataclass

from pool_sim.domain.entities.driver import Driver, DriverStatus
from pool_sim.domain.entities.request import Request, RequestStatus


@dataclass
class Counters:
    """Cumulative counters; the registry is their only writer."""

    total_requests_created: int = 0
    total_matches: int = 0
    matched_count: int = 0
    total_wait_time_s: float = 0.0
    completed_pickups: int = 0
    requeued_requests: int = 0
    orphaned_matches: int = 0

    def record_match(self, wait_s: float) -> None:
        self.total_matches += 1
        self.matched_count += 1
        self.total_wait_time_s += wait_s


@dataclass(frozen=True)
class Metrics:
    active_requests: int = 0
    available_drivers: int = 0
    total_matches: int = 0
    average_wait_time_s: float = 0.0
    match_rate: float = 0.0  # percent of created requests that were matched
    total_wait_time_s: float = 0.0
    matched_count: int = 0
    total_requests_created: int = 0
    completed_pickups: int = 0
    requeued_requests: int = 0
    orphaned_matches: int = 0
    driver_utilization: float = 0.0  # percent of drivers not available


def _ratio(num: float, den: float) -> float:
    return num / den if den > 0 else 0.0


def aggregate(c: Counters, requests: Iterable[Request], drivers: Iterable[Driver]) -> Metrics:
    active = sum(1 for r in requests if r.status is RequestStatus.PENDING)
    n_drivers = 0
    available = 0
    for d in drivers:
        n_drivers += 1
        if d.status is DriverStatus.AVAILABLE:
            available += 1
    return Metrics(
        active_requests=active,
        available_drivers=available,
        total_matches=c.total_matches,
        average_wait_time_s=_ratio(c.total_wait_time_s, c.matched_count),
        match_rate=_ratio(c.matched_count, c.total_requests_created) * 100,
        total_wait_time_s=c.total_wait_time_s,
        matched_count=c.matched_count,
        total_requests_created=c.total_requests_created,
        completed_pickups=c.completed_pickups,
        requeued_requests=c.requeued_requests,
        orphaned_matches=c.orphaned_matches,
        driver_utilization=_ratio(n_drivers - available, n_drivers) * 100,
    )
