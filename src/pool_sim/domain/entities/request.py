# domain/entities/request.py
from dataclasses import dataclass
from enum import Enum

from pool_sim.domain.entities.geography import Point
from pool_sim.domain.grid import CellId


class RequestStatus(Enum):
    PENDING = "pending"
    MATCHED = "matched"
    COMPLETED = "completed"


@dataclass
class Request:
    id: int
    location: Point
    created_at_ms: int
    cell: CellId  # fixed at creation, even if the grid changes later
    status: RequestStatus = RequestStatus.PENDING
    requeues: int = 0

    @property
    def pending(self) -> bool:
        return self.status is RequestStatus.PENDING
