"""Node pool management endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, status

from cluster_manager.api.v1.deps import get_control_plane, settle
from cluster_manager.api.v1.endpoints.clusters import WaitSeconds
from cluster_manager.core.control_plane import ControlPlane
from cluster_manager.core.names import cluster_path, node_pool_path
from cluster_manager.schemas.node_pool import NodePool
from cluster_manager.schemas.operation import Admission
from cluster_manager.schemas.requests import (
    CreateNodePoolRequest,
    SetNodePoolAutoscalingRequest,
    SetNodePoolManagementRequest,
    SetNodePoolSizeRequest,
    UpdateNodePoolRequest,
)
from cluster_manager.schemas.server import ListNodePoolsResponse

router = APIRouter()


@router.get("", response_model=ListNodePoolsResponse)
async def list_node_pools(
    project: str,
    location: str,
    cluster: str,
    page_size: int = 0,
    page_token: str = "",
    filter: str = "",
    control_plane: ControlPlane = Depends(get_control_plane),
) -> ListNodePoolsResponse:
    """List the node pools of a cluster."""
    return await control_plane.node_pools.list_node_pools(
        cluster_path(project, location, cluster), page_size, page_token, filter
    )


@router.post("", response_model=Admission, status_code=status.HTTP_202_ACCEPTED)
async def create_node_pool(
    project: str,
    location: str,
    cluster: str,
    request: CreateNodePoolRequest,
    wait_seconds: Optional[float] = WaitSeconds,
    control_plane: ControlPlane = Depends(get_control_plane),
) -> Admission:
    """Add a node pool to a cluster."""
    admission = await control_plane.node_pools.create_node_pool(
        cluster_path(project, location, cluster), request
    )
    return await settle(control_plane, admission, wait_seconds)


@router.get("/{node_pool}", response_model=NodePool)
async def get_node_pool(
    project: str,
    location: str,
    cluster: str,
    node_pool: str,
    control_plane: ControlPlane = Depends(get_control_plane),
) -> NodePool:
    return await control_plane.node_pools.get_node_pool(
        node_pool_path(project, location, cluster, node_pool)
    )


@router.put("/{node_pool}", response_model=Admission)
async def update_node_pool(
    project: str,
    location: str,
    cluster: str,
    node_pool: str,
    request: UpdateNodePoolRequest,
    wait_seconds: Optional[float] = WaitSeconds,
    control_plane: ControlPlane = Depends(get_control_plane),
) -> Admission:
    """Upgrade nodes or change image type and locations."""
    admission = await control_plane.node_pools.update_node_pool(
        node_pool_path(project, location, cluster, node_pool), request
    )
    return await settle(control_plane, admission, wait_seconds)


@router.delete("/{node_pool}", response_model=Admission)
async def delete_node_pool(
    project: str,
    location: str,
    cluster: str,
    node_pool: str,
    wait_seconds: Optional[float] = WaitSeconds,
    control_plane: ControlPlane = Depends(get_control_plane),
) -> Admission:
    admission = await control_plane.node_pools.delete_node_pool(
        node_pool_path(project, location, cluster, node_pool)
    )
    return await settle(control_plane, admission, wait_seconds)


@router.post("/{node_pool}/setAutoscaling", response_model=Admission)
async def set_node_pool_autoscaling(
    project: str,
    location: str,
    cluster: str,
    node_pool: str,
    request: SetNodePoolAutoscalingRequest,
    wait_seconds: Optional[float] = WaitSeconds,
    control_plane: ControlPlane = Depends(get_control_plane),
) -> Admission:
    admission = await control_plane.node_pools.set_node_pool_autoscaling(
        node_pool_path(project, location, cluster, node_pool), request
    )
    return await settle(control_plane, admission, wait_seconds)


@router.post("/{node_pool}/setManagement", response_model=Admission)
async def set_node_pool_management(
    project: str,
    location: str,
    cluster: str,
    node_pool: str,
    request: SetNodePoolManagementRequest,
    wait_seconds: Optional[float] = WaitSeconds,
    control_plane: ControlPlane = Depends(get_control_plane),
) -> Admission:
    admission = await control_plane.node_pools.set_node_pool_management(
        node_pool_path(project, location, cluster, node_pool), request
    )
    return await settle(control_plane, admission, wait_seconds)


@router.post("/{node_pool}/setSize", response_model=Admission)
async def set_node_pool_size(
    project: str,
    location: str,
    cluster: str,
    node_pool: str,
    request: SetNodePoolSizeRequest,
    wait_seconds: Optional[float] = WaitSeconds,
    control_plane: ControlPlane = Depends(get_control_plane),
) -> Admission:
    admission = await control_plane.node_pools.set_node_pool_size(
        node_pool_path(project, location, cluster, node_pool), request
    )
    return await settle(control_plane, admission, wait_seconds)


@router.post("/{node_pool}/rollback", response_model=Admission)
async def rollback_node_pool_upgrade(
    project: str,
    location: str,
    cluster: str,
    node_pool: str,
    wait_seconds: Optional[float] = WaitSeconds,
    control_plane: ControlPlane = Depends(get_control_plane),
) -> Admission:
    """Return the node pool to its version before the last upgrade."""
    admission = await control_plane.node_pools.rollback_node_pool_upgrade(
        node_pool_path(project, location, cluster, node_pool)
    )
    return await settle(control_plane, admission, wait_seconds)
