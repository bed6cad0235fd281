"""Route registration and driver assignment endpoints."""

from __future__ import annotations

import dataclasses

from fastapi import APIRouter, HTTPException, status

from ...models.domain import RouteRecord
from ...schemas.assignment import AssignmentRequest, AssignmentResultModel, RouteRecordCreate, RouteRecordModel
from ...services.assignment.scheduler import get_scheduler

router = APIRouter(prefix="/assignments", tags=["assignments"])


@router.post("/routes", response_model=RouteRecordModel, status_code=status.HTTP_201_CREATED)
def register_route(payload: RouteRecordCreate) -> RouteRecordModel:
    try:
        record = get_scheduler().register_route(RouteRecord(**payload.model_dump()))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return RouteRecordModel(**dataclasses.asdict(record))


@router.post("", response_model=AssignmentResultModel, status_code=status.HTTP_200_OK)
def assign_route(payload: AssignmentRequest) -> AssignmentResultModel:
    """Bind a registered route to the least loaded available driver.

    A route with no eligible driver is not an error: the result carries
    ``success=False`` and the reason.
    """
    scheduler = get_scheduler()
    if scheduler.get_route(payload.route_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Route '{payload.route_id}' not found.")
    result = scheduler.assign_route(payload.route_id)
    return AssignmentResultModel(success=result.success, message=result.message, driver_id=result.driver_id)
