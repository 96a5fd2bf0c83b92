# domain/entities/driver.py
from dataclasses import dataclass
from enum import Enum

from pool_sim.domain.entities.geography import Point


class DriverStatus(Enum):
    AVAILABLE = "available"
    EN_ROUTE_TO_PICKUP = "en-route-to-pickup"
    BUSY = "busy"


@dataclass
class Driver:
    id: int
    location: Point
    status: DriverStatus = DriverStatus.AVAILABLE
    target: Point | None = None
    task_id: int = 0  # bumped on every assignment; makes stale deferred effects harmless

    @property
    def available(self) -> bool:
        return self.status is DriverStatus.AVAILABLE

    def dispatch(self, target: Point) -> None:
        self.task_id += 1
        self.status = DriverStatus.EN_ROUTE_TO_PICKUP
        self.target = target

    def arrive(self) -> None:
        self.location = self.target or self.location
        self.status = DriverStatus.BUSY
        self.target = None

    def release(self) -> None:
        self.status = DriverStatus.AVAILABLE
        self.target = None
