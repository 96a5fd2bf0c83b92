# tests/policy/test_pooling.py
import pytest

from pool_sim.app.protocols import PoolingPolicy
from pool_sim.domain.entities.geography import Point
from pool_sim.domain.entities.pool import Pool
from pool_sim.domain.entities.request import Request, RequestStatus
from pool_sim.domain.grid import CellId
from pool_sim.policy.pooling import FixedWindowPolicy, FlexibleWindowPolicy, oldest_first
from pool_sim.runtime.policy_factory import make_pooling_policy

CELL = CellId(0, 0)


def req(rid, created_at_ms, status=RequestStatus.PENDING):
    return Request(id=rid, location=Point(1.0, 1.0), created_at_ms=created_at_ms, cell=CELL, status=status)


@pytest.fixture
def pool():
    return Pool(cell=CELL, created_at_ms=0, request_ids=[1, 2, 3])


def test_fixed_window_takes_every_pending_member(pool):
    members = [req(1, 0), req(2, 9_000), req(3, 500, RequestStatus.MATCHED)]
    out = FixedWindowPolicy().eligible(pool, members, 10)
    assert [r.id for r in out] == [1, 2]


def test_flexible_window_excludes_late_arrivals(pool):
    members = [req(1, 0), req(2, 8_000), req(3, 9_000)]
    out = FlexibleWindowPolicy().eligible(pool, members, 10)
    # cutoff at 80% of 10s: 8s is still in, 9s is out
    assert [r.id for r in out] == [1, 2]


def test_flexible_cutoff_fraction_is_validated():
    with pytest.raises(ValueError):
        FlexibleWindowPolicy(cutoff_frac=0.0)
    with pytest.raises(ValueError):
        FlexibleWindowPolicy(cutoff_frac=1.5)


def test_factory_builds_by_name():
    fixed = make_pooling_policy("FixedWindow")
    flex = make_pooling_policy("FlexibleWindow", cutoff_frac=0.5)
    assert isinstance(fixed, PoolingPolicy) and fixed.name == "FixedWindow"
    assert isinstance(flex, FlexibleWindowPolicy) and flex.cutoff_frac == 0.5
    with pytest.raises(TypeError):
        make_pooling_policy("Nope")


def test_oldest_first_keeps_order_and_capacity():
    rs = [req(5, 300), req(6, 100), req(7, 200), req(8, 100)]
    assert [r.id for r in oldest_first(rs, 2)] == [6, 8]
    assert [r.id for r in oldest_first(rs, 3)] == [6, 7, 8]
    assert oldest_first(rs, 10) == rs
    assert oldest_first(rs, 0) == []
