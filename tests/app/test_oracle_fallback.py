# tests/app/test_oracle_fallback.py
import pytest

from pool_sim.app.engine import Simulation
from pool_sim.config.models import SimulationParams
from pool_sim.domain.entities.geography import Point
from pool_sim.services.cost_oracle import OracleBridge
from pool_sim.sim.hooks import NoopHooks
from pool_sim.sim.rng import RNGRegistry


class Trace(NoopHooks):
    def __init__(self):
        self.events = []
        self.errors = []

    def biz(self, ev):
        self.events.append(ev)

    def error(self, *, reason, **kw):
        self.errors.append((reason, kw))


class FixedOracle:
    def __init__(self, table):
        self.table = table

    def cost_matrix(self, requests, drivers):
        return self.table


@pytest.fixture
def run_with_oracle():
    bridges = []

    def run(table):
        bridge = OracleBridge(FixedOracle(table))
        bridges.append(bridge)
        sim = Simulation(
            SimulationParams(request_rate=0, driver_supply=2, pooling_time=1),
            rng=RNGRegistry(3, scenario="oracle"),
            hooks=Trace(),
            oracle=bridge,
        )
        near = sim.inject_driver(Point(1.0, 1.0))
        far = sim.inject_driver(Point(20.0, 20.0))
        req = sim.inject_request(Point(0.0, 0.0))
        sim.step()  # submits the pool to the worker
        bridge.wait_idle()
        for _ in range(3):
            sim.step()
        (matched,) = [e for e in sim.hooks.events if e.name == "TripMatched"]
        return sim, matched, near, far, req

    yield run
    for b in bridges:
        b.close()


def test_ready_oracle_costs_drive_the_match(run_with_oracle):
    # the oracle prefers the far driver
    sim, matched, near, far, req = run_with_oracle([[100.0, 1.0]])
    assert matched.cost_source == "oracle"
    assert (matched.request_id, matched.driver_id) == (req.id, far.id)
    assert matched.cost == 1.0
    assert sim.hooks.errors == []


@pytest.mark.parametrize("table", [[[1.0]], [[0.0, 1.0]], [[float("inf"), 1.0]]])
def test_malformed_oracle_falls_back_to_distance(run_with_oracle, table):
    sim, matched, near, far, req = run_with_oracle(table)
    assert matched.cost_source == "distance"
    assert matched.driver_id == near.id
    assert [reason for reason, _ in sim.hooks.errors] == ["oracle_fallback"]
    assert sim.hooks.errors[0][1]["cell"] == "cell-0-0"
    assert "Pool cell-0-0: oracle costs rejected, using distance." in sim.snapshot.logs


class PreferNewestDriver:
    """Cheapest cost for the highest driver id; calls are counted."""

    def __init__(self):
        self.calls = 0

    def cost_matrix(self, requests, drivers):
        self.calls += 1
        newest = max(d.id for d in drivers)
        return [[1.0 if d.id == newest else 100.0 for d in drivers] for _ in requests]


def test_fleet_change_on_expiry_tick_uses_distance():
    oracle = PreferNewestDriver()
    bridge = OracleBridge(oracle)
    try:
        sim = Simulation(
            SimulationParams(request_rate=0, driver_supply=1, pooling_time=1),
            rng=RNGRegistry(3, scenario="oracle"),
            hooks=Trace(),
            oracle=bridge,
        )
        sim.inject_driver(Point(1.0, 1.0))
        sim.inject_request(Point(0.0, 0.0))
        for _ in range(3):
            sim.step()
            bridge.wait_idle()
        # a driver joins on the tick the pool expires; no earlier result covers it
        sim.update_params(sim.params.model_copy(update={"driver_supply": 2}))
        sim.step()
        bridge.wait_idle()
        (matched,) = [e for e in sim.hooks.events if e.name == "TripMatched"]
        assert matched.t_ms == 1_000
        assert matched.cost_source == "distance"
        assert oracle.calls == 1
    finally:
        bridge.close()
