"""Project and location level endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from cluster_manager.api.v1.deps import get_control_plane
from cluster_manager.core.control_plane import ControlPlane
from cluster_manager.core.names import location_path, project_path
from cluster_manager.schemas.server import ListUsableSubnetworksResponse, ServerConfig

router = APIRouter()


@router.get("/locations/{location}/serverConfig", response_model=ServerConfig)
async def get_server_config(
    project: str,
    location: str,
    control_plane: ControlPlane = Depends(get_control_plane),
) -> ServerConfig:
    """Versions and image types offered in a location."""
    return await control_plane.clusters.get_server_config(location_path(project, location))


@router.get("/aggregated/usableSubnetworks", response_model=ListUsableSubnetworksResponse)
async def list_usable_subnetworks(
    project: str,
    filter: str = "",
    page_size: int = 0,
    page_token: str = "",
    control_plane: ControlPlane = Depends(get_control_plane),
) -> ListUsableSubnetworksResponse:
    """Subnetworks the project may place clusters in."""
    return await control_plane.clusters.list_usable_subnetworks(
        project_path(project), filter, page_size, page_token
    )
