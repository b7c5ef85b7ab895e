"""Operation endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from cluster_manager.api.v1.deps import get_control_plane
from cluster_manager.api.v1.endpoints.clusters import WaitSeconds
from cluster_manager.core.control_plane import ControlPlane
from cluster_manager.core.names import location_path, operation_path
from cluster_manager.schemas.operation import ListOperationsResponse, Operation

router = APIRouter()


@router.get("", response_model=ListOperationsResponse)
async def list_operations(
    project: str,
    location: str,
    control_plane: ControlPlane = Depends(get_control_plane),
) -> ListOperationsResponse:
    """List operations; ``-`` as location lists every location."""
    return await control_plane.operations.list_operations(location_path(project, location))


@router.get("/{operation}", response_model=Operation)
async def get_operation(
    project: str,
    location: str,
    operation: str,
    wait_seconds: Optional[float] = WaitSeconds,
    control_plane: ControlPlane = Depends(get_control_plane),
) -> Operation:
    """Get an operation, optionally waiting for it to finish."""
    name = operation_path(project, location, operation)
    if wait_seconds:
        return await control_plane.operations.wait_operation(name, wait_seconds)
    return await control_plane.operations.get_operation(name)


@router.post("/{operation}/cancel", response_model=Operation)
async def cancel_operation(
    project: str,
    location: str,
    operation: str,
    control_plane: ControlPlane = Depends(get_control_plane),
) -> Operation:
    return await control_plane.operations.cancel_operation(
        operation_path(project, location, operation)
    )
