"""Level-of-detail policy for the fog overlay.

Decides from the zoom and the number of visible cells how much work the
renderer does per frame: everything, a bucketed subset, or nothing at all.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from fogtrail.records import ExploredCellRecord


class DetailLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class LodPolicy:
    """Stateless level-of-detail decisions."""

    low_threshold: int = 50
    medium_threshold: int = 200
    high_threshold: int = 500

    # Resolution-9 cells are sub-pixel below this zoom
    min_render_zoom: int = 12

    # Bucket edge in degrees, coarse below zoom 12
    coarse_bucket_deg: float = 0.01
    fine_bucket_deg: float = 0.005

    def detail_level(self, zoom: int) -> DetailLevel:
        if zoom >= 16:
            return DetailLevel.HIGH
        if zoom >= 12:
            return DetailLevel.MEDIUM
        return DetailLevel.LOW

    def threshold(self, zoom: int) -> int:
        level = self.detail_level(zoom)
        if level is DetailLevel.LOW:
            return self.low_threshold
        if level is DetailLevel.MEDIUM:
            return self.medium_threshold
        return self.high_threshold

    def should_simplify(self, zoom: int, cell_count: int) -> bool:
        return cell_count > self.threshold(zoom)

    def simplify(
        self, cells: Sequence[ExploredCellRecord], zoom: int
    ) -> list[ExploredCellRecord]:
        """Keep one representative cell per coarse lat/lng bucket.

        A lossy visual approximation: cells are bucketed by their first
        boundary vertex and the first cell seen in each bucket wins.
        Returns the cells unchanged when simplification does not apply.
        """
        if not self.should_simplify(zoom, len(cells)):
            return list(cells)

        size = self.coarse_bucket_deg if zoom < 12 else self.fine_bucket_deg
        buckets: dict[tuple[int, int], ExploredCellRecord] = {}
        for cell in cells:
            if not cell.boundary:
                continue
            anchor = cell.boundary[0]
            key = (int(anchor.longitude // size), int(anchor.latitude // size))
            buckets.setdefault(key, cell)
        return list(buckets.values())

    def below_render_threshold(self, zoom: int) -> bool:
        return zoom < self.min_render_zoom
