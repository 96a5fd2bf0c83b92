# pool_sim/services/cost_oracle.py
"""
Boundary to an optional external cost provider.

The tick never waits on the oracle: `OracleBridge.prefetch` hands a copy of a
pool's current requests and the available drivers to a worker thread, and a
later tick asks `take` for whatever finished. Anything short of a complete,
well-formed matrix for the exact ids being matched means "use distance".
"""
import copy
import queue
import threading
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from pool_sim.app.protocols import CostOracle
from pool_sim.domain.entities.driver import Driver
from pool_sim.domain.entities.request import Request
from pool_sim.domain.grid import CellId
from pool_sim.policy.assign import distance_matrix
from pool_sim.sim.rng import RNGRegistry


class OracleError(ValueError):
    pass


def validate_cost_matrix(matrix, n_requests: int, n_drivers: int) -> np.ndarray:
    try:
        arr = np.asarray(matrix, dtype=float)
    except (TypeError, ValueError) as exc:
        raise OracleError(f"cost matrix is not numeric: {exc}") from exc
    if arr.shape != (n_requests, n_drivers):
        raise OracleError(f"expected shape {(n_requests, n_drivers)}, got {arr.shape}")
    if not np.isfinite(arr).all():
        raise OracleError("cost matrix contains non-finite entries")
    if (arr <= 0).any():
        raise OracleError("cost matrix entries must be positive")
    return arr


class NoisyDistanceOracle(CostOracle):
    """Local stand-in for a remote optimizer: distance scaled by a random factor per pair."""

    def __init__(self, rng: RNGRegistry, spread: float = 0.2, floor: float = 1e-6, stream: str = "oracle"):
        self.registry = rng
        self.stream = stream
        self.spread = spread
        self.floor = floor

    def cost_matrix(self, requests: Sequence[Request], drivers: Sequence[Driver]):
        base = distance_matrix(requests, drivers)
        # looked up per call so a registry reset replays the oracle too
        rng = self.registry.stream(self.stream)
        factor = 1.0 + rng.uniform(0.0, self.spread, size=base.shape)
        return np.maximum(base * factor, self.floor).tolist()


@dataclass(frozen=True)
class OracleResult:
    cell: CellId
    request_ids: tuple[int, ...]
    driver_ids: tuple[int, ...]
    costs: np.ndarray
    generation: int
    tick: int  # tick that submitted the job


@dataclass(frozen=True)
class OracleFailure:
    cell: CellId
    reason: str


@dataclass(frozen=True)
class _Job:
    cell: CellId
    requests: tuple[Request, ...]
    drivers: tuple[Driver, ...]
    generation: int
    tick: int

    @property
    def key(self) -> tuple[tuple[int, ...], tuple[int, ...]]:
        return tuple(r.id for r in self.requests), tuple(d.id for d in self.drivers)


class OracleBridge:
    _STOP = object()

    def __init__(self, oracle: CostOracle, maxsize: int = 64):
        self.oracle = oracle
        self.q: queue.Queue = queue.Queue(maxsize=maxsize)
        self.dropped = 0
        self._lock = threading.Lock()
        self._results: dict[CellId, OracleResult] = {}
        self._failures: list[OracleFailure] = []
        self._in_flight: set[CellId] = set()
        self._submitted: dict[CellId, tuple] = {}
        self._generation = 0
        self._t = threading.Thread(target=self._run, name="cost-oracle", daemon=True)
        self._t.start()

    # ------------- tick side (never blocks) --------------------------

    def prefetch(
        self, cell: CellId, requests: Sequence[Request], drivers: Sequence[Driver], *, tick: int
    ) -> bool:
        if not requests or not drivers:
            return False
        # copies: the worker must never read entities the tick is mutating
        job = _Job(
            cell=cell,
            requests=tuple(copy.copy(r) for r in requests),
            drivers=tuple(copy.copy(d) for d in drivers),
            generation=self._generation,
            tick=tick,
        )
        with self._lock:
            if cell in self._in_flight or self._submitted.get(cell) == job.key:
                return False
            try:
                self.q.put_nowait(job)
            except queue.Full:
                self.dropped += 1
                return False
            self._in_flight.add(cell)
            self._submitted[cell] = job.key
        return True

    def take(
        self, cell: CellId, requests: Sequence[Request], drivers: Sequence[Driver], *, tick: int
    ) -> np.ndarray | None:
        """
        Costs for exactly these requests x drivers, or None when the last result can't cover them.

        Results are only handed to a later tick than the one that requested
        them; a result from `tick` itself stays cached.
        """
        with self._lock:
            res = self._results.get(cell)
            if res is not None and res.tick >= tick:
                return None
            self._results.pop(cell, None)
            self._submitted.pop(cell, None)
        if res is None or res.generation != self._generation:
            return None
        rows = {rid: i for i, rid in enumerate(res.request_ids)}
        cols = {did: j for j, did in enumerate(res.driver_ids)}
        try:
            ri = [rows[r.id] for r in requests]
            ci = [cols[d.id] for d in drivers]
        except KeyError:
            return None
        return res.costs[np.ix_(ri, ci)]

    def failures(self) -> list[OracleFailure]:
        with self._lock:
            out, self._failures = self._failures, []
        return out

    def reset(self) -> None:
        with self._lock:
            self._generation += 1
            self._results.clear()
            self._failures.clear()
            self._submitted.clear()

    # ------------- worker side --------------------------

    def _run(self):
        while True:
            job = self.q.get()
            try:
                if job is self._STOP:
                    return
                self._solve(job)
            finally:
                self.q.task_done()

    def _solve(self, job: _Job) -> None:
        try:
            raw = self.oracle.cost_matrix(job.requests, job.drivers)
            costs = validate_cost_matrix(raw, len(job.requests), len(job.drivers))
        except Exception as exc:  # any oracle failure degrades to distance costs
            with self._lock:
                self._in_flight.discard(job.cell)
                if job.generation == self._generation:
                    self._failures.append(OracleFailure(job.cell, f"{type(exc).__name__}: {exc}"))
            return
        req_ids, drv_ids = job.key
        with self._lock:
            self._in_flight.discard(job.cell)
            if job.generation == self._generation:
                self._results[job.cell] = OracleResult(
                    job.cell, req_ids, drv_ids, costs, job.generation, job.tick
                )

    def wait_idle(self) -> None:
        """Block until every submitted job has finished (headless runs and tests)."""
        self.q.join()

    def close(self, timeout: float = 1.0) -> None:
        self.q.put(self._STOP)
        self._t.join(timeout=timeout)
