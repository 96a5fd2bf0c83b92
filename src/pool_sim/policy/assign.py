# pool_sim/policy/assign.py
"""
Greedy cost-minimizing assignment between requests (rows) and drivers (columns).

This is a heuristic for bipartite minimum-cost matching, not the optimal
(Hungarian) solution: every (request, driver) candidate is sorted once by
cost and accepted greedily, which is O(n*m*log(n*m)) and reproducible.
Equal costs keep row-major enumeration order (stable sort).
"""
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

import numpy as np

from pool_sim.domain.entities.geography import Point


class Located(Protocol):
    location: Point


@dataclass(frozen=True)
class Assignment:
    request_index: int
    driver_index: int
    cost: float


def _points(items: Sequence[Located]) -> np.ndarray:
    return np.array([(it.location.x, it.location.y) for it in items], dtype=float)


def distance_matrix(requests: Sequence[Located], drivers: Sequence[Located]) -> np.ndarray:
    """cost[i, j] = Euclidean distance from requests[i] to drivers[j]."""
    if not requests or not drivers:
        return np.zeros((len(requests), len(drivers)))
    r, d = _points(requests), _points(drivers)
    return np.hypot(r[:, None, 0] - d[None, :, 0], r[:, None, 1] - d[None, :, 1])


def solve(
    requests: Sequence[Located],
    drivers: Sequence[Located],
    cost_matrix: Sequence[Sequence[float]] | np.ndarray | None = None,
) -> list[Assignment]:
    n, m = len(requests), len(drivers)
    if n == 0 or m == 0:
        return []

    if cost_matrix is None:
        costs = distance_matrix(requests, drivers)
    else:
        costs = np.asarray(cost_matrix, dtype=float)
        if costs.shape != (n, m):
            raise ValueError(f"cost matrix must have shape {(n, m)}, got {costs.shape}")

    flat = costs.ravel()  # row-major: index k -> (k // m, k % m)
    order = np.argsort(flat, kind="stable")

    limit = min(n, m)
    taken_r: set[int] = set()
    taken_d: set[int] = set()
    out: list[Assignment] = []
    for k in order:
        i, j = divmod(int(k), m)
        if i in taken_r or j in taken_d:
            continue
        taken_r.add(i)
        taken_d.add(j)
        out.append(Assignment(request_index=i, driver_index=j, cost=float(flat[k])))
        if len(out) >= limit:
            break
    return out
