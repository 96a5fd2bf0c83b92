from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from pool_sim.domain.entities.driver import Driver
from pool_sim.domain.entities.pool import Pool
from pool_sim.domain.entities.request import Request

# --------------- Policies -------------------------


@runtime_checkable
class PoolingPolicy(Protocol):
    """
    Responsibilities:
      • Decide which pending members of an expired pool are offered to the solver.
      • Must not mutate the pool or the requests.
    """

    name: str

    def eligible(
        self, pool: Pool, members: Sequence[Request], pooling_time_s: float
    ) -> list[Request]: ...


# --------------- External services -------------------------


@runtime_checkable
class CostOracle(Protocol):
    """
    External cost provider that may replace the distance-based cost matrix.
    Must return exactly len(requests) rows of len(drivers) positive numbers.
    Implementations may block; they are only ever called off the tick path.
    """

    def cost_matrix(
        self, requests: Sequence[Request], drivers: Sequence[Driver]
    ) -> Sequence[Sequence[float]]: ...
