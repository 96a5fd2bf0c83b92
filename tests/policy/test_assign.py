# tests/policy/test_assign.py
from dataclasses import dataclass

import numpy as np
import pytest

from pool_sim.domain.entities.geography import Point
from pool_sim.policy.assign import distance_matrix, solve


@dataclass
class Item:
    location: Point


def items(*xy):
    return [Item(Point(x, y)) for x, y in xy]


def test_empty_inputs_yield_no_assignments():
    assert solve([], items((0, 0))) == []
    assert solve(items((0, 0)), []) == []
    assert solve([], []) == []


def test_closest_pairs_win():
    reqs = items((0, 0), (10, 0))
    drvs = items((9, 0), (1, 0))
    out = solve(reqs, drvs)
    pairs = {(a.request_index, a.driver_index) for a in out}
    assert pairs == {(0, 1), (1, 0)}
    assert [a.cost for a in out] == [1.0, 1.0]


def test_greedy_is_not_optimal():
    # r0 grabs d0 at cost 1 and leaves r1 the 100; the optimum would total 4
    reqs = items((0, 0), (0, 0))
    drvs = items((0, 0), (0, 0))
    out = solve(reqs, drvs, [[1.0, 2.0], [2.0, 100.0]])
    assert [(a.request_index, a.driver_index) for a in out] == [(0, 0), (1, 1)]
    assert sum(a.cost for a in out) == pytest.approx(101.0)


@pytest.mark.parametrize("n,m", [(3, 5), (5, 3), (4, 4), (1, 7)])
def test_count_is_min_of_sides_and_indices_unique(n, m):
    rng = np.random.default_rng(7)
    reqs = items(*rng.uniform(0, 100, size=(n, 2)).tolist())
    drvs = items(*rng.uniform(0, 100, size=(m, 2)).tolist())
    out = solve(reqs, drvs)
    assert len(out) == min(n, m)
    assert len({a.request_index for a in out}) == len(out)
    assert len({a.driver_index for a in out}) == len(out)
    assert all(0 <= a.request_index < n and 0 <= a.driver_index < m for a in out)


def test_all_zero_matrix_still_assigns_in_row_major_order():
    reqs = items((0, 0), (0, 0), (0, 0))
    drvs = items((0, 0), (0, 0))
    out = solve(reqs, drvs, np.zeros((3, 2)))
    assert [(a.request_index, a.driver_index) for a in out] == [(0, 0), (1, 1)]


def test_explicit_cost_matrix_overrides_distance():
    reqs = items((0, 0))
    drvs = items((1, 0), (50, 0))
    out = solve(reqs, drvs, [[9.0, 2.0]])
    assert out[0].driver_index == 1
    assert out[0].cost == 2.0


def test_wrong_shape_raises():
    with pytest.raises(ValueError):
        solve(items((0, 0)), items((1, 1), (2, 2)), [[1.0]])


def test_distance_matrix_shape_and_values():
    m = distance_matrix(items((0, 0), (3, 4)), items((0, 0)))
    assert m.shape == (2, 1)
    assert m[1, 0] == pytest.approx(5.0)
    assert distance_matrix([], items((1, 1))).shape == (0, 1)
