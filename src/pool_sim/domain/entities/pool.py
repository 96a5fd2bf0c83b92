# domain/entities/pool.py
from dataclasses import dataclass, field

from pool_sim.domain.grid import CellId


@dataclass
class Pool:
    cell: CellId
    created_at_ms: int
    request_ids: list[int] = field(default_factory=list)

    def age_ms(self, now_ms: int) -> int:
        return now_ms - self.created_at_ms

    def expired(self, now_ms: int, pooling_time_s: float) -> bool:
        return self.age_ms(now_ms) >= pooling_time_s * 1000
