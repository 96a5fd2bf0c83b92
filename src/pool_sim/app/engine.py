# pool_sim/app/engine.py
import time

from pool_sim.app.protocols import PoolingPolicy
from pool_sim.app.snapshot import DriverView, RequestView, Snapshot, Status, pool_views
from pool_sim.config.models import EngineModel, SimulationParams
from pool_sim.domain.entities.driver import Driver
from pool_sim.domain.entities.geography import Bounds, Point
from pool_sim.domain.entities.pool import Pool
from pool_sim.domain.entities.request import Request
from pool_sim.domain.grid import CellId, Grid
from pool_sim.domain.pools import PoolManager
from pool_sim.domain.state import Registry
from pool_sim.io.business_events import (
    MatchOrphanedBiz,
    PickupCompletedBiz,
    PoolActivatedBiz,
    PoolRequeuedBiz,
    RequestCreatedBiz,
    TripMatchedBiz,
)
from pool_sim.io.event_log import EventLog
from pool_sim.policy.assign import solve
from pool_sim.policy.pooling import oldest_first
from pool_sim.runtime.policy_factory import make_pooling_policy
from pool_sim.services.cost_oracle import OracleBridge
from pool_sim.sim.clock import TickClock
from pool_sim.sim.hooks import EngineHooks, NoopHooks
from pool_sim.sim.metrics import aggregate
from pool_sim.sim.rng import RNGRegistry
from pool_sim.sim.scheduler import DeferredQueue, DriverRelease


class Simulation:
    """
    Tick-driven dispatch simulation.

    Each `step` is one tick and runs, strictly in order: deferred releases
    that came due, request generation, fleet resizing, driver movement,
    pruning of completed requests, matching of expired pools, and finally
    publication of an immutable snapshot. All mutation happens inside
    `step` and the lifecycle methods; nothing else writes to the registry.
    """

    def __init__(
        self,
        params: SimulationParams,
        *,
        rng: RNGRegistry,
        engine: EngineModel | None = None,
        hooks: EngineHooks | None = None,
        oracle: OracleBridge | None = None,
        run_id: str = "local",
    ):
        self.params = params
        self.cfg = engine or EngineModel()
        self.rng = rng
        self.hooks = hooks or NoopHooks()
        self.oracle = oracle
        self.run_id = run_id

        self.clock = TickClock(self.cfg.tick_ms)
        self.registry = Registry()
        self.pools = PoolManager(on_activate=self._on_pool_activated)
        self.deferred = DeferredQueue()
        self.log = EventLog(cap=self.cfg.log_cap)
        self.status: Status = "stopped"

        self._pooling: PoolingPolicy | None = None
        self._bind_streams()
        self._snapshot = self._build_snapshot()

    def _bind_streams(self) -> None:
        self._demand = self.rng.stream("demand")
        self._supply = self.rng.stream("supply")
        self._walk = self.rng.stream("walk")
        self._trips = self.rng.stream("trips")

    # ------------- derived configuration --------------------------

    @property
    def bounds(self) -> Bounds:
        a = self.params.area_dimensions
        return Bounds(a.width, a.height)

    @property
    def grid(self) -> Grid:
        g = self.params.grid_resolution
        return Grid(self.bounds, rows=g.rows, cols=g.cols)

    @property
    def pooling(self) -> PoolingPolicy:
        if self._pooling is None or self._pooling.name != self.params.pooling_strategy:
            self._pooling = make_pooling_policy(
                self.params.pooling_strategy, cutoff_frac=self.cfg.flexible_cutoff
            )
        return self._pooling

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    def update_params(self, params: SimulationParams) -> None:
        # validation (ranges, running-state restrictions) belongs to the control surface
        self.params = params

    def random_point(self, rng) -> Point:
        b = self.bounds
        return Point(float(rng.uniform(0.0, b.width)), float(rng.uniform(0.0, b.height)))

    # ------------- lifecycle --------------------------

    def begin(self) -> None:
        if self.status == "running":
            return
        if self.status == "stopped":
            self.registry.resize_drivers(
                self.params.driver_supply, lambda: self.random_point(self._supply)
            )
            self._lifecycle("started", "Simulation started.")
        else:
            self._lifecycle("resumed", "Simulation resumed.")
        self.status = "running"
        self._snapshot = self._build_snapshot()

    def halt(self) -> None:
        if self.status != "running":
            return
        self.status = "paused"
        self._lifecycle("paused", "Simulation paused.")
        self._snapshot = self._build_snapshot()

    def reset(self) -> None:
        self.status = "stopped"
        self.registry.reset()
        self.pools.reset()
        self.deferred.reset()  # anything still scheduled can no longer fire
        self.clock.reset()
        self.rng.reset()
        self._bind_streams()
        if self.oracle:
            self.oracle.reset()
        self.hooks.lifecycle(status="reset", now_ms=0)
        self.log.restart("Simulation reset.")
        self._snapshot = self._build_snapshot()

    def _lifecycle(self, status: str, message: str) -> None:
        self.hooks.lifecycle(status=status, now_ms=self.clock.now_ms)
        self.log.add(message)

    # ------------- scripted injection --------------------------

    def inject_request(self, location: Point) -> Request:
        return self._admit_request(self.bounds.clip(location), self.clock.now_ms)

    def inject_driver(self, location: Point) -> Driver:
        return self.registry.add_driver(self.bounds.clip(location))

    # ------------- tick --------------------------

    def step(self) -> Snapshot:
        t0 = time.perf_counter()
        now = self.clock.advance()
        self.hooks.tick_start(tick=self.clock.tick, now_ms=now)

        self._fire_deferred(now)
        self._generate(now)
        self._resize_fleet(now)
        self._move_drivers(now)
        self.registry.prune_completed()
        self._match(now)
        self._prefetch_costs()  # results are for later ticks only
        self._report_oracle_failures(now)

        self._snapshot = self._build_snapshot()
        self.hooks.tick_end(
            tick=self.clock.tick,
            now_ms=now,
            wall_ms=(time.perf_counter() - t0) * 1000,
            requests=len(self.registry.requests),
            drivers=len(self.registry.drivers),
            matches=len(self.registry.matches),
            pools=len(self.pools),
        )
        return self._snapshot

    def run(self, ticks: int) -> Snapshot:
        for _ in range(ticks):
            self.step()
        return self._snapshot

    def _fire_deferred(self, now: int) -> None:
        for ev in self.deferred.due(now):
            # False means the driver is gone or was reassigned: nothing to do
            self.registry.release_driver(ev.driver_id, ev.task_id)

    def _generate(self, now: int) -> None:
        p = self.params.request_rate / 60 * self.clock.tick_s
        if self._demand.random() < p:
            self._admit_request(self.random_point(self._demand), now)

    def _admit_request(self, location: Point, now: int) -> Request:
        cell = self.grid.cell_of(location)
        r = self.registry.create_request(location, cell, now)
        self.pools.admit(r.id, cell, now)
        self.log.add(f"New request #{r.id} in pool {cell}.")
        self._biz(RequestCreatedBiz, now, request_id=r.id, location=(location.x, location.y), cell=str(cell))
        return r

    def _on_pool_activated(self, pool: Pool) -> None:
        self.log.add(f"New pool activated in grid cell [{pool.cell.row}, {pool.cell.col}].")
        self._biz(PoolActivatedBiz, pool.created_at_ms, cell=str(pool.cell))

    def _resize_fleet(self, now: int) -> None:
        self.registry.resize_drivers(self.params.driver_supply, lambda: self.random_point(self._supply))
        for m in self.registry.drop_orphaned_matches():
            self.log.add(f"Driver {m.driver_id} left the fleet; match {m.id} for Rider {m.request_id} dropped.")
            self._biz(MatchOrphanedBiz, now, match_id=m.id, request_id=m.request_id, driver_id=m.driver_id)

    def _move_drivers(self, now: int) -> None:
        pickups = self.registry.advance_drivers(self.cfg.step_distance, self._walk, self.bounds)
        lo, hi = self.cfg.release_delay_ms
        for p in pickups:
            fire_at = now + int(self._trips.integers(lo, hi, endpoint=True))
            self.deferred.schedule(
                DriverRelease(fire_at_ms=fire_at, driver_id=p.driver_id, task_id=p.task_id), now_ms=now
            )
            self.log.add(f"Driver {p.driver_id} picked up Rider {p.request_id}.")
            self._biz(
                PickupCompletedBiz, now, request_id=p.request_id, driver_id=p.driver_id, release_at_ms=fire_at
            )

    # ------------- matching --------------------------

    def _prefetch_costs(self) -> None:
        if self.oracle is None:
            return
        drivers = self.registry.available_drivers()
        for pool in self.pools:
            self.oracle.prefetch(
                pool.cell, self.registry.pending(pool.request_ids), drivers, tick=self.clock.tick
            )

    def _costs(self, cell: CellId, requests, drivers):
        if self.oracle is not None:
            costs = self.oracle.take(cell, requests, drivers, tick=self.clock.tick)
            if costs is not None:
                return costs, "oracle"
        return None, "distance"

    def _match(self, now: int) -> None:
        window_s = self.params.pooling_time
        for pool in self.pools.expired_pools(now, window_s):
            members = self.registry.pending(pool.request_ids)
            candidates = self.pooling.eligible(pool, members, window_s)
            drivers = self.registry.available_drivers()
            if self.params.age_priority:
                candidates = oldest_first(candidates, len(drivers))

            matched: set[int] = set()
            if candidates and drivers:
                costs, source = self._costs(pool.cell, candidates, drivers)
                assignments = solve(candidates, drivers, costs)
                if assignments:
                    self.log.add(
                        f"Pool {pool.cell}: Matching for {len(candidates)} requests, "
                        f"found {len(assignments)} pairs."
                    )
                cost_of = {candidates[a.request_index].id: a.cost for a in assignments}
                for m in self.registry.apply_assignments(candidates, drivers, assignments, now):
                    matched.add(m.request_id)
                    wait_s = (now - self.registry.requests[m.request_id].created_at_ms) / 1000
                    self.log.add(f"Match: Rider {m.request_id} <> Driver {m.driver_id}. Wait: {wait_s:.1f}s")
                    self._biz(
                        TripMatchedBiz,
                        now,
                        request_id=m.request_id,
                        driver_id=m.driver_id,
                        match_id=m.id,
                        cell=str(pool.cell),
                        cost=cost_of[m.request_id],
                        wait_s=wait_s,
                        cost_source=source,
                    )

            # every unmatched pending member, eligible or not, starts a fresh window
            leftovers = [r for r in members if r.id not in matched]
            self.pools.requeue(pool.cell, [r.id for r in leftovers], now)
            if leftovers:
                self.registry.mark_requeued(leftovers)
                self.log.add(f"Pool {pool.cell}: Re-queuing {len(leftovers)} request(s) for the next cycle.")
                self._biz(
                    PoolRequeuedBiz,
                    now,
                    cell=str(pool.cell),
                    request_ids=[r.id for r in leftovers],
                    considered=len(candidates),
                    matched=len(matched),
                )

    def _report_oracle_failures(self, now: int) -> None:
        if self.oracle is None:
            return
        for f in self.oracle.failures():
            self.log.add(f"Pool {f.cell}: oracle costs rejected, using distance.")
            self.hooks.error(reason="oracle_fallback", cell=str(f.cell), detail=f.reason, t_ms=now)

    # ------------- reporting --------------------------

    def _biz(self, cls, t_ms: int, **fields) -> None:
        name = cls.__name__.removesuffix("Biz")
        self.hooks.biz(cls(run_id=self.run_id, t_ms=t_ms, tick=self.clock.tick, name=name, **fields))

    def _build_snapshot(self) -> Snapshot:
        reg = self.registry
        return Snapshot(
            status=self.status,
            tick=self.clock.tick,
            now_ms=self.clock.now_ms,
            requests=tuple(RequestView.of(r) for r in reg.requests.values()),
            drivers=tuple(DriverView.of(d) for d in reg.drivers.values()),
            matches=tuple(reg.matches.values()),
            metrics=aggregate(reg.counters, reg.requests.values(), reg.drivers.values()),
            pool_visualizations=pool_views(self.pools, lambda p: len(reg.pending(p.request_ids))),
            logs=self.log.entries(),
        )
