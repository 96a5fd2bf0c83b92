# pool_sim/domain/grid.py
import math
from dataclasses import dataclass

from pool_sim.domain.entities.geography import Bounds, Point


@dataclass(frozen=True, order=True)
class CellId:
    row: int
    col: int

    def __str__(self) -> str:
        # string form is only for the presentation boundary and logs
        return f"cell-{self.row}-{self.col}"


@dataclass(frozen=True)
class Grid:
    bounds: Bounds
    rows: int
    cols: int

    @property
    def cell_width(self) -> float:
        return self.bounds.width / self.cols

    @property
    def cell_height(self) -> float:
        return self.bounds.height / self.rows

    def cell_of(self, p: Point) -> CellId:
        # points on the far edge belong to the last row/column
        col = min(self.cols - 1, max(0, math.floor(p.x / self.cell_width)))
        row = min(self.rows - 1, max(0, math.floor(p.y / self.cell_height)))
        return CellId(row, col)
