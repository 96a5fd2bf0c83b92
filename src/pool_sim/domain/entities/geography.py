# pool_sim/domain/entities/geography.py
import math
from dataclasses import dataclass


# Core geometry types shared by the registry, pools and solver
@dataclass(frozen=True)
class Point:
    x: float  # area units, origin at the lower-left corner
    y: float


@dataclass(frozen=True)
class Bounds:
    width: float
    height: float

    def clip(self, p: Point) -> Point:
        return Point(min(max(p.x, 0.0), self.width), min(max(p.y, 0.0), self.height))

    def contains(self, p: Point) -> bool:
        return 0.0 <= p.x <= self.width and 0.0 <= p.y <= self.height


def distance(a: Point, b: Point) -> float:
    return math.hypot(b.x - a.x, b.y - a.y)


def step_toward(a: Point, b: Point, step: float) -> Point:
    """Move from a toward b by `step`, stopping on b rather than passing it."""
    d = distance(a, b)
    if d <= step:
        return b
    f = step / d
    return Point(a.x + f * (b.x - a.x), a.y + f * (b.y - a.y))
