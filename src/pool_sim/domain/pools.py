# pool_sim/domain/pools.py
from collections.abc import Callable, Iterable

from pool_sim.domain.entities.pool import Pool
from pool_sim.domain.grid import CellId

PoolListener = Callable[[Pool], None]


class PoolManager:
    """
    Active pools keyed by grid cell; at most one pool per cell.

    Per cell: empty -> active -> cleared, where a cleared pool either stays
    empty or is re-admitted with its leftovers and a fresh timestamp.
    """

    def __init__(self, on_activate: PoolListener | None = None):
        self._pools: dict[CellId, Pool] = {}
        self._on_activate = on_activate

    def __len__(self) -> int:
        return len(self._pools)

    def __contains__(self, cell: CellId) -> bool:
        return cell in self._pools

    def __iter__(self):
        return iter(list(self._pools.values()))

    def get(self, cell: CellId) -> Pool | None:
        return self._pools.get(cell)

    def admit(self, request_id: int, cell: CellId, now_ms: int) -> Pool:
        pool = self._pools.get(cell)
        if pool is None:
            pool = Pool(cell=cell, created_at_ms=now_ms)
            self._pools[cell] = pool
            if self._on_activate:
                self._on_activate(pool)
        if request_id not in pool.request_ids:
            pool.request_ids.append(request_id)
        return pool

    def expired_pools(self, now_ms: int, pooling_time_s: float) -> list[Pool]:
        # pure query: calling it twice at the same time yields the same pools
        return [p for p in self._pools.values() if p.expired(now_ms, pooling_time_s)]

    def clear(self, cell: CellId) -> Pool | None:
        return self._pools.pop(cell, None)

    def requeue(self, cell: CellId, request_ids: Iterable[int], now_ms: int) -> Pool | None:
        """Clear the cell and re-admit leftovers as a fresh pool stamped `now_ms`."""
        self.clear(cell)
        ids = list(dict.fromkeys(request_ids))
        if not ids:
            return None
        pool = Pool(cell=cell, created_at_ms=now_ms, request_ids=ids)
        self._pools[cell] = pool
        return pool

    def reset(self) -> None:
        self._pools.clear()
