"""Fleet planning endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from ...schemas.routing import ClusterRequest, ClusterResponse, FleetPlanRequest, FleetPlanResponse
from ...services.planning.service import plan_fleet, preview_clusters

router = APIRouter(prefix="/routes", tags=["routes"])

logger = logging.getLogger(__name__)


@router.post("/plan", response_model=FleetPlanResponse, status_code=status.HTTP_200_OK)
def plan(payload: FleetPlanRequest) -> FleetPlanResponse:
    try:
        return plan_fleet(payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception(f"Error planning fleet routes: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to plan routes: {str(exc)}",
        ) from exc


@router.post("/cluster", response_model=ClusterResponse, status_code=status.HTTP_200_OK)
def cluster(payload: ClusterRequest) -> ClusterResponse:
    """Preview how pickups would be grouped into vehicles."""
    try:
        return preview_clusters(payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
