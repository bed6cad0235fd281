"""Capacity-constrained K-Means grouping of pickups into vehicles."""

from __future__ import annotations

import logging
import math
from typing import Sequence

import numpy as np

from ...config import settings
from ...models.domain import PickupPoint
from .fleet_size import recommend_vehicle_count
from .models import Cluster

logger = logging.getLogger(__name__)


class CapacityConstrainedKMeans:
    """Lloyd-style K-Means in raw lat/lon space with a hard seat limit per cluster.

    Features:
    - Centroids are seeded by sampling the pickups through an injectable
      ``numpy.random.Generator`` so tests can pin the outcome
    - Overfull clusters shed their most recently added points to the nearest
      cluster with a free seat, opening a new vehicle while under the cap
    - When every vehicle is full the point is forced into the smallest cluster,
      which is then reported through ``Cluster.overflow``
    """

    def __init__(
        self,
        *,
        capacity: int | None = None,
        max_iterations: int | None = None,
        tolerance: float | None = None,
        seed: int | None = None,
        rng: np.random.Generator | None = None,
    ) -> None:
        self.capacity = capacity if capacity is not None else settings.max_per_vehicle
        self.max_iterations = max_iterations if max_iterations is not None else settings.clustering_max_iterations
        self.tolerance = tolerance if tolerance is not None else settings.clustering_tolerance
        if rng is None:
            rng = np.random.default_rng(seed if seed is not None else settings.clustering_seed)
        self.rng = rng

    def cluster(
        self,
        points: Sequence[PickupPoint],
        max_vehicles: int,
        *,
        target_clusters: int | None = None,
    ) -> list[Cluster]:
        if max_vehicles < 1:
            raise ValueError("max_vehicles must be >= 1")
        if self.capacity < 1:
            raise ValueError("capacity must be >= 1")

        if not points:
            return []

        if len(points) <= max_vehicles:
            return [
                Cluster(cluster_id=index, centroid=point.as_tuple(), capacity=self.capacity, points=[point])
                for index, point in enumerate(points, start=1)
            ]

        desired = target_clusters or recommend_vehicle_count(points, max_vehicles)
        desired = max(desired, math.ceil(len(points) / self.capacity))
        k = max(1, min(max_vehicles, desired))

        coordinates = np.array([point.as_tuple() for point in points], dtype=float)
        seeds = self.rng.choice(len(points), size=k, replace=False)
        centroids = coordinates[np.sort(seeds)].copy()

        members: list[list[int]] = []
        for iteration in range(self.max_iterations):
            members, centroids = self._assign(coordinates, centroids, max_vehicles)
            updated = self._recompute_centroids(coordinates, members, centroids)
            shift = float(np.max(np.abs(updated - centroids)))
            centroids = updated
            if shift < self.tolerance:
                logger.debug(f"K-Means converged after {iteration + 1} iterations (k={len(centroids)})")
                break
        else:
            logger.debug(f"K-Means stopped at iteration limit {self.max_iterations}")

        clusters: list[Cluster] = []
        for index, member_indices in enumerate(members):
            if not member_indices:
                continue
            clusters.append(
                Cluster(
                    cluster_id=len(clusters) + 1,
                    centroid=(float(centroids[index][0]), float(centroids[index][1])),
                    capacity=self.capacity,
                    points=[points[i] for i in member_indices],
                )
            )

        overflowing = [cluster.cluster_id for cluster in clusters if cluster.overflow]
        if overflowing:
            logger.warning(
                f"Capacity exhausted with {max_vehicles} vehicles of {self.capacity} seats: "
                f"clusters {overflowing} exceed capacity"
            )
        return clusters

    def _assign(
        self,
        coordinates: np.ndarray,
        centroids: np.ndarray,
        max_vehicles: int,
    ) -> tuple[list[list[int]], np.ndarray]:
        centroid_list = [centroid for centroid in centroids]
        distances = np.linalg.norm(coordinates[:, None, :] - centroids[None, :, :], axis=2)
        members: list[list[int]] = [[] for _ in centroid_list]
        for point_index, label in enumerate(np.argmin(distances, axis=1)):
            members[int(label)].append(point_index)

        cluster_index = 0
        while cluster_index < len(members):
            while len(members[cluster_index]) > self.capacity:
                point_index = members[cluster_index].pop()
                target = self._nearest_with_room(coordinates[point_index], centroid_list, members, cluster_index)
                if target is not None:
                    members[target].append(point_index)
                elif len(members) < max_vehicles:
                    centroid_list.append(coordinates[point_index].copy())
                    members.append([point_index])
                else:
                    target = self._smallest_other(members, cluster_index)
                    if target is None:
                        members[cluster_index].append(point_index)
                        break
                    members[target].append(point_index)
            cluster_index += 1

        return members, np.array(centroid_list, dtype=float)

    def _nearest_with_room(
        self,
        coordinate: np.ndarray,
        centroids: list[np.ndarray],
        members: list[list[int]],
        exclude: int,
    ) -> int | None:
        best_index = None
        best_distance = math.inf
        for index, centroid in enumerate(centroids):
            if index == exclude or len(members[index]) >= self.capacity:
                continue
            distance = float(np.linalg.norm(coordinate - centroid))
            if distance < best_distance:
                best_distance = distance
                best_index = index
        return best_index

    @staticmethod
    def _smallest_other(members: list[list[int]], exclude: int) -> int | None:
        candidates = [index for index in range(len(members)) if index != exclude]
        if not candidates:
            return None
        return min(candidates, key=lambda index: len(members[index]))

    @staticmethod
    def _recompute_centroids(
        coordinates: np.ndarray,
        members: list[list[int]],
        centroids: np.ndarray,
    ) -> np.ndarray:
        updated = centroids.copy()
        for index, member_indices in enumerate(members):
            if member_indices:
                updated[index] = coordinates[member_indices].mean(axis=0)
        return updated


def cluster_pickups(
    points: Sequence[PickupPoint],
    max_vehicles: int,
    *,
    capacity: int | None = None,
    rng: np.random.Generator | None = None,
    target_clusters: int | None = None,
) -> list[Cluster]:
    """Partition pickups into at most ``max_vehicles`` seat-limited groups."""
    engine = CapacityConstrainedKMeans(capacity=capacity, rng=rng)
    return engine.cluster(points, max_vehicles, target_clusters=target_clusters)
