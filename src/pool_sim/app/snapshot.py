# pool_sim/app/snapshot.py
"""Immutable per-tick view of the simulation handed to presentation code."""
from collections.abc import Iterable
from dataclasses import asdict, dataclass
from typing import Literal

from pool_sim.domain.entities.driver import Driver
from pool_sim.domain.entities.geography import Point
from pool_sim.domain.entities.match import Match
from pool_sim.domain.entities.pool import Pool
from pool_sim.domain.entities.request import Request
from pool_sim.sim.metrics import Metrics

Status = Literal["stopped", "running", "paused"]


@dataclass(frozen=True)
class RequestView:
    id: int
    location: Point
    status: str
    created_at_ms: int
    pool_id: str
    requeues: int

    @classmethod
    def of(cls, r: Request) -> "RequestView":
        return cls(r.id, r.location, r.status.value, r.created_at_ms, str(r.cell), r.requeues)


@dataclass(frozen=True)
class DriverView:
    id: int
    location: Point
    status: str
    target: Point | None

    @classmethod
    def of(cls, d: Driver) -> "DriverView":
        return cls(d.id, d.location, d.status.value, d.target)


@dataclass(frozen=True)
class PoolView:
    id: str
    row: int
    col: int
    request_count: int
    created_at_ms: int


@dataclass(frozen=True)
class Snapshot:
    status: Status
    tick: int
    now_ms: int
    requests: tuple[RequestView, ...]
    drivers: tuple[DriverView, ...]
    matches: tuple[Match, ...]
    metrics: Metrics
    pool_visualizations: tuple[PoolView, ...]
    logs: tuple[str, ...]

    def to_dict(self) -> dict:
        return asdict(self)


def pool_views(pools: Iterable[Pool], pending_count) -> tuple[PoolView, ...]:
    """Cells with at least one pending member; `pending_count(pool)` counts them."""
    out = []
    for p in pools:
        n = pending_count(p)
        if n > 0:
            out.append(PoolView(str(p.cell), p.cell.row, p.cell.col, n, p.created_at_ms))
    return tuple(out)
