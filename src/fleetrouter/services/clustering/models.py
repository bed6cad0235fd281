"""Clustering result models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from ...models.domain import PickupPoint


@dataclass(slots=True)
class Cluster:
    """Pickup points seated in one vehicle."""

    cluster_id: int
    centroid: tuple[float, float]
    capacity: int
    points: List[PickupPoint] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.points)

    @property
    def overflow(self) -> bool:
        """True when the cluster was force-filled beyond vehicle capacity."""
        return self.size > self.capacity

    def point_ids(self) -> list[str]:
        return [point.point_id for point in self.points]
