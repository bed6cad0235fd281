"""Fleet plan result model."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from ..clustering.models import Cluster
from ..routing.models import VehicleRoute


@dataclass(slots=True)
class FleetPlan:
    plan_id: str
    routes: List[VehicleRoute]
    clusters: List[Cluster]
    warnings: List[str] = field(default_factory=list)
    metadata: dict = field(default_factory=dict)
