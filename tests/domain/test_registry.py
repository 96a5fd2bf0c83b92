# tests/domain/test_registry.py
import numpy as np
import pytest

from pool_sim.domain.entities.driver import DriverStatus
from pool_sim.domain.entities.geography import Bounds, Point
from pool_sim.domain.entities.request import RequestStatus
from pool_sim.domain.grid import CellId
from pool_sim.domain.state import Registry
from pool_sim.policy.assign import Assignment, solve

CELL = CellId(0, 0)
BOUNDS = Bounds(100.0, 100.0)


@pytest.fixture
def reg():
    return Registry()


@pytest.fixture
def rng():
    return np.random.default_rng(0)


def test_ids_are_shared_and_monotonic(reg):
    r = reg.create_request(Point(1.0, 1.0), CELL, 0)
    d = reg.add_driver(Point(2.0, 2.0))
    r2 = reg.create_request(Point(3.0, 3.0), CELL, 0)
    assert (r.id, d.id, r2.id) == (0, 1, 2)
    assert reg.counters.total_requests_created == 2


def test_resize_grows_then_truncates_newest(reg):
    pts = iter([Point(float(i), 0.0) for i in range(5)])
    reg.resize_drivers(3, lambda: next(pts))
    ids = list(reg.drivers)
    removed = reg.resize_drivers(1, lambda: next(pts))
    assert [d.id for d in removed] == [ids[2], ids[1]]
    assert list(reg.drivers) == [ids[0]]
    assert reg.resize_drivers(-4, lambda: next(pts))
    assert reg.drivers == {}


def test_apply_assignments_sets_states_and_counters(reg):
    r = reg.create_request(Point(0.0, 0.0), CELL, 0)
    d = reg.add_driver(Point(10.0, 10.0))
    matches = reg.apply_assignments([r], [d], solve([r], [d]), now_ms=1_500)
    assert len(matches) == 1
    m = matches[0]
    assert (m.request_id, m.driver_id, m.created_at_ms) == (r.id, d.id, 1_500)
    assert r.status is RequestStatus.MATCHED
    assert d.status is DriverStatus.EN_ROUTE_TO_PICKUP and d.target == r.location
    assert d.task_id == 1
    assert reg.counters.total_wait_time_s == pytest.approx(1.5)


def test_apply_assignments_skips_stale_and_duplicates(reg):
    r1 = reg.create_request(Point(0.0, 0.0), CELL, 0)
    r2 = reg.create_request(Point(1.0, 0.0), CELL, 0)
    d1 = reg.add_driver(Point(5.0, 5.0))
    d2 = reg.add_driver(Point(6.0, 6.0))
    reg.drivers.pop(d2.id)  # gone before the result is applied
    out = reg.apply_assignments(
        [r1, r2],
        [d1, d2],
        [
            Assignment(0, 0, 1.0),
            Assignment(1, 0, 1.0),  # d1 already claimed
            Assignment(1, 1, 1.0),  # d2 no longer registered
            Assignment(5, 0, 1.0),  # out of range
        ],
        now_ms=0,
    )
    assert [m.request_id for m in out] == [r1.id]
    assert r2.status is RequestStatus.PENDING
    assert reg.counters.total_matches == 1


def test_driver_drives_to_pickup_and_completes(reg, rng):
    r = reg.create_request(Point(0.0, 0.0), CELL, 0)
    d = reg.add_driver(Point(3.0, 0.0))
    reg.apply_assignments([r], [d], solve([r], [d]), now_ms=0)
    pickups = []
    for _ in range(10):
        pickups += reg.advance_drivers(0.5, rng, BOUNDS)
        if pickups:
            break
    assert len(pickups) == 1
    p = pickups[0]
    assert (p.driver_id, p.request_id, p.task_id) == (d.id, r.id, d.task_id)
    assert d.status is DriverStatus.BUSY and d.location == r.location
    assert r.status is RequestStatus.COMPLETED
    assert reg.matches == {}
    assert reg.counters.completed_pickups == 1
    assert reg.prune_completed() == 1
    assert r.id not in reg.requests


def test_available_drivers_random_walk_within_bounds(reg, rng):
    d = reg.add_driver(Point(0.0, 100.0))
    for _ in range(50):
        reg.advance_drivers(0.5, rng, BOUNDS)
        assert BOUNDS.contains(d.location)
    assert d.status is DriverStatus.AVAILABLE


def test_stale_release_is_noop(reg):
    d = reg.add_driver(Point(0.0, 0.0))
    d.dispatch(Point(1.0, 1.0))
    d.arrive()
    assert not reg.release_driver(d.id, d.task_id - 1)
    assert d.status is DriverStatus.BUSY
    assert not reg.release_driver(999, d.task_id)
    assert reg.release_driver(d.id, d.task_id)
    assert d.status is DriverStatus.AVAILABLE
    assert not reg.release_driver(d.id, d.task_id)  # already available


def test_orphaned_match_is_dropped_with_request(reg):
    r = reg.create_request(Point(0.0, 0.0), CELL, 0)
    d = reg.add_driver(Point(50.0, 50.0))
    reg.apply_assignments([r], [d], solve([r], [d]), now_ms=0)
    reg.resize_drivers(0, lambda: Point(0.0, 0.0))
    orphans = reg.drop_orphaned_matches()
    assert [m.request_id for m in orphans] == [r.id]
    assert reg.matches == {} and reg.requests == {}
    assert reg.counters.orphaned_matches == 1


def test_mark_requeued(reg):
    rs = [reg.create_request(Point(0.0, 0.0), CELL, 0) for _ in range(3)]
    assert reg.mark_requeued(rs[:2]) == 2
    assert [r.requeues for r in rs] == [1, 1, 0]
    assert reg.counters.requeued_requests == 2


def test_reset_restarts_ids(reg):
    reg.create_request(Point(0.0, 0.0), CELL, 0)
    reg.add_driver(Point(0.0, 0.0))
    reg.reset()
    assert reg.requests == {} and reg.drivers == {}
    assert reg.counters.total_requests_created == 0
    assert reg.next_id() == 0


@pytest.mark.parametrize("start_x", [2.5, 1.5, 2.0, 1.75])
def test_en_route_driver_never_orbits_the_pickup(reg, rng, start_x):
    r = reg.create_request(Point(1.0, 50.0), CELL, 0)
    d = reg.add_driver(Point(start_x, 50.0))
    reg.apply_assignments([r], [d], solve([r], [d]), now_ms=0)
    for _ in range(5):
        if reg.advance_drivers(0.5, rng, BOUNDS):
            break
    assert d.status is DriverStatus.BUSY
    assert d.location == Point(1.0, 50.0)
    assert r.status is RequestStatus.COMPLETED
