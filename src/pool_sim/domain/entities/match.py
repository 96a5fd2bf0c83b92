# domain/entities/match.py
from dataclasses import dataclass

from pool_sim.domain.entities.geography import Point


@dataclass(frozen=True)
class Match:
    id: int
    request_id: int
    driver_id: int
    request_location: Point
    driver_location: Point  # where the driver was when the pairing was made
    created_at_ms: int
