# pool_sim/policy/pooling.py
from collections.abc import Sequence

from pool_sim.app.protocols import PoolingPolicy
from pool_sim.domain.entities.pool import Pool
from pool_sim.domain.entities.request import Request


class FixedWindowPolicy(PoolingPolicy):
    """Every pending member is eligible, regardless of when it arrived."""

    name = "FixedWindow"

    def eligible(
        self, pool: Pool, members: Sequence[Request], pooling_time_s: float
    ) -> list[Request]:
        return [r for r in members if r.pending]


class FlexibleWindowPolicy(PoolingPolicy):
    """Only members that arrived within the first `cutoff_frac` of the window."""

    name = "FlexibleWindow"

    def __init__(self, cutoff_frac: float = 0.8):
        if not 0.0 < cutoff_frac <= 1.0:
            raise ValueError(f"cutoff_frac must be in (0, 1], got {cutoff_frac}")
        self.cutoff_frac = cutoff_frac

    def cutoff_ms(self, pool: Pool, pooling_time_s: float) -> float:
        return pool.created_at_ms + pooling_time_s * 1000 * self.cutoff_frac

    def eligible(
        self, pool: Pool, members: Sequence[Request], pooling_time_s: float
    ) -> list[Request]:
        cutoff = self.cutoff_ms(pool, pooling_time_s)
        return [r for r in members if r.pending and r.created_at_ms <= cutoff]


def oldest_first(requests: Sequence[Request], capacity: int) -> list[Request]:
    """Keep the `capacity` oldest requests (ties by id), preserving their relative order."""
    if capacity >= len(requests):
        return list(requests)
    keep = {r.id for r in sorted(requests, key=lambda r: (r.created_at_ms, r.id))[:capacity]}
    return [r for r in requests if r.id in keep]
