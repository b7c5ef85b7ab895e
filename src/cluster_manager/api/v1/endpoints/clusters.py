"""Cluster management endpoints."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from cluster_manager.api.v1.deps import get_control_plane, settle
from cluster_manager.core.control_plane import ControlPlane
from cluster_manager.core.names import cluster_path, location_path
from cluster_manager.schemas.cluster import Cluster
from cluster_manager.schemas.operation import Admission
from cluster_manager.schemas.requests import (
    CreateClusterRequest,
    SetAddonsConfigRequest,
    SetLabelsRequest,
    SetLegacyAbacRequest,
    SetLocationsRequest,
    SetLoggingServiceRequest,
    SetMaintenancePolicyRequest,
    SetMasterAuthRequest,
    SetMonitoringServiceRequest,
    SetNetworkPolicyRequest,
    UpdateClusterRequest,
    UpdateMasterRequest,
)
from cluster_manager.schemas.server import JsonWebKeys, ListClustersResponse

router = APIRouter()

WaitSeconds = Query(None, ge=0, le=600, description="Wait up to this long for the operation")


@router.get("", response_model=ListClustersResponse)
async def list_clusters(
    project: str,
    location: str,
    page_size: int = 0,
    page_token: str = "",
    filter: str = "",
    control_plane: ControlPlane = Depends(get_control_plane),
) -> ListClustersResponse:
    """List clusters; ``-`` as location lists every location."""
    return await control_plane.clusters.list_clusters(
        location_path(project, location), page_size, page_token, filter
    )


@router.post("", response_model=Admission, status_code=status.HTTP_202_ACCEPTED)
async def create_cluster(
    project: str,
    location: str,
    request: CreateClusterRequest,
    wait_seconds: Optional[float] = WaitSeconds,
    control_plane: ControlPlane = Depends(get_control_plane),
) -> Admission:
    """Create a cluster."""
    admission = await control_plane.clusters.create_cluster(
        location_path(project, location), request
    )
    return await settle(control_plane, admission, wait_seconds)


@router.get("/{cluster}", response_model=Cluster)
async def get_cluster(
    project: str,
    location: str,
    cluster: str,
    control_plane: ControlPlane = Depends(get_control_plane),
) -> Cluster:
    """Get a specific cluster."""
    return await control_plane.clusters.get_cluster(cluster_path(project, location, cluster))


@router.put("/{cluster}", response_model=Admission)
async def update_cluster(
    project: str,
    location: str,
    cluster: str,
    request: UpdateClusterRequest,
    wait_seconds: Optional[float] = WaitSeconds,
    control_plane: ControlPlane = Depends(get_control_plane),
) -> Admission:
    """Upgrade the master or change the description."""
    admission = await control_plane.clusters.update_cluster(
        cluster_path(project, location, cluster), request
    )
    return await settle(control_plane, admission, wait_seconds)


@router.delete("/{cluster}", response_model=Admission)
async def delete_cluster(
    project: str,
    location: str,
    cluster: str,
    wait_seconds: Optional[float] = WaitSeconds,
    control_plane: ControlPlane = Depends(get_control_plane),
) -> Admission:
    """Delete a cluster and its node pools."""
    admission = await control_plane.clusters.delete_cluster(
        cluster_path(project, location, cluster)
    )
    return await settle(control_plane, admission, wait_seconds)


@router.post("/{cluster}/setNetworkPolicy", response_model=Admission)
async def set_network_policy(
    project: str,
    location: str,
    cluster: str,
    request: SetNetworkPolicyRequest,
    wait_seconds: Optional[float] = WaitSeconds,
    control_plane: ControlPlane = Depends(get_control_plane),
) -> Admission:
    admission = await control_plane.clusters.set_network_policy(
        cluster_path(project, location, cluster), request
    )
    return await settle(control_plane, admission, wait_seconds)


@router.post("/{cluster}/setLabels", response_model=Admission)
async def set_labels(
    project: str,
    location: str,
    cluster: str,
    request: SetLabelsRequest,
    wait_seconds: Optional[float] = WaitSeconds,
    control_plane: ControlPlane = Depends(get_control_plane),
) -> Admission:
    admission = await control_plane.clusters.set_labels(
        cluster_path(project, location, cluster), request
    )
    return await settle(control_plane, admission, wait_seconds)


@router.post("/{cluster}/setLoggingService", response_model=Admission)
async def set_logging_service(
    project: str,
    location: str,
    cluster: str,
    request: SetLoggingServiceRequest,
    wait_seconds: Optional[float] = WaitSeconds,
    control_plane: ControlPlane = Depends(get_control_plane),
) -> Admission:
    admission = await control_plane.clusters.set_logging_service(
        cluster_path(project, location, cluster), request
    )
    return await settle(control_plane, admission, wait_seconds)


@router.post("/{cluster}/setMonitoringService", response_model=Admission)
async def set_monitoring_service(
    project: str,
    location: str,
    cluster: str,
    request: SetMonitoringServiceRequest,
    wait_seconds: Optional[float] = WaitSeconds,
    control_plane: ControlPlane = Depends(get_control_plane),
) -> Admission:
    admission = await control_plane.clusters.set_monitoring_service(
        cluster_path(project, location, cluster), request
    )
    return await settle(control_plane, admission, wait_seconds)


@router.post("/{cluster}/setMaintenancePolicy", response_model=Admission)
async def set_maintenance_policy(
    project: str,
    location: str,
    cluster: str,
    request: SetMaintenancePolicyRequest,
    wait_seconds: Optional[float] = WaitSeconds,
    control_plane: ControlPlane = Depends(get_control_plane),
) -> Admission:
    admission = await control_plane.clusters.set_maintenance_policy(
        cluster_path(project, location, cluster), request
    )
    return await settle(control_plane, admission, wait_seconds)


@router.post("/{cluster}/updateMaster", response_model=Admission)
async def update_master(
    project: str,
    location: str,
    cluster: str,
    request: UpdateMasterRequest,
    wait_seconds: Optional[float] = WaitSeconds,
    control_plane: ControlPlane = Depends(get_control_plane),
) -> Admission:
    """Upgrade the master to a version or alias."""
    admission = await control_plane.clusters.update_master(
        cluster_path(project, location, cluster), request
    )
    return await settle(control_plane, admission, wait_seconds)


@router.post("/{cluster}/setAddons", response_model=Admission)
async def set_addons_config(
    project: str,
    location: str,
    cluster: str,
    request: SetAddonsConfigRequest,
    wait_seconds: Optional[float] = WaitSeconds,
    control_plane: ControlPlane = Depends(get_control_plane),
) -> Admission:
    admission = await control_plane.clusters.set_addons_config(
        cluster_path(project, location, cluster), request
    )
    return await settle(control_plane, admission, wait_seconds)


@router.post("/{cluster}/setLegacyAbac", response_model=Admission)
async def set_legacy_abac(
    project: str,
    location: str,
    cluster: str,
    request: SetLegacyAbacRequest,
    wait_seconds: Optional[float] = WaitSeconds,
    control_plane: ControlPlane = Depends(get_control_plane),
) -> Admission:
    admission = await control_plane.clusters.set_legacy_abac(
        cluster_path(project, location, cluster), request
    )
    return await settle(control_plane, admission, wait_seconds)


@router.post("/{cluster}/setLocations", response_model=Admission)
async def set_locations(
    project: str,
    location: str,
    cluster: str,
    request: SetLocationsRequest,
    wait_seconds: Optional[float] = WaitSeconds,
    control_plane: ControlPlane = Depends(get_control_plane),
) -> Admission:
    """Replace the zones the cluster's nodes run in."""
    admission = await control_plane.clusters.set_locations(
        cluster_path(project, location, cluster), request
    )
    return await settle(control_plane, admission, wait_seconds)


@router.post("/{cluster}/setMasterAuth", response_model=Admission)
async def set_master_auth(
    project: str,
    location: str,
    cluster: str,
    request: SetMasterAuthRequest,
    wait_seconds: Optional[float] = WaitSeconds,
    control_plane: ControlPlane = Depends(get_control_plane),
) -> Admission:
    admission = await control_plane.clusters.set_master_auth(
        cluster_path(project, location, cluster), request
    )
    return await settle(control_plane, admission, wait_seconds)


@router.post("/{cluster}/startKeyRotation", response_model=Admission)
async def start_key_rotation(
    project: str,
    location: str,
    cluster: str,
    wait_seconds: Optional[float] = WaitSeconds,
    control_plane: ControlPlane = Depends(get_control_plane),
) -> Admission:
    """Add a new signing key alongside the current ones."""
    admission = await control_plane.clusters.start_key_rotation(
        cluster_path(project, location, cluster)
    )
    return await settle(control_plane, admission, wait_seconds)


@router.post("/{cluster}/completeKeyRotation", response_model=Admission)
async def complete_key_rotation(
    project: str,
    location: str,
    cluster: str,
    wait_seconds: Optional[float] = WaitSeconds,
    control_plane: ControlPlane = Depends(get_control_plane),
) -> Admission:
    """Retire every signing key but the newest."""
    admission = await control_plane.clusters.complete_key_rotation(
        cluster_path(project, location, cluster)
    )
    return await settle(control_plane, admission, wait_seconds)


@router.get("/{cluster}/jwks", response_model=JsonWebKeys)
async def get_json_web_keys(
    project: str,
    location: str,
    cluster: str,
    control_plane: ControlPlane = Depends(get_control_plane),
) -> JsonWebKeys:
    """Public keys for verifying tokens issued by the cluster."""
    return await control_plane.clusters.get_json_web_keys(
        cluster_path(project, location, cluster)
    )
