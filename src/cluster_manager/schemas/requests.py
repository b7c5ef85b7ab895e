"""Request schemas for the admission API."""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from cluster_manager.schemas.cluster import (
    AddonsConfig,
    LegacyAbac,
    MaintenancePolicy,
    MasterAuth,
    MasterAuthAction,
    NetworkPolicy,
)
from cluster_manager.schemas.node_pool import NodeManagement, NodePoolAutoscaling


class MutationRequest(BaseModel):
    """Base for mutations; ``expected_version`` enables optimistic concurrency."""
    expected_version: Optional[int] = Field(None, ge=0)


class NodePoolTemplate(BaseModel):
    """Node pool settings shared by cluster and node pool creation."""
    node_pool_id: str = Field(..., min_length=1, max_length=40)
    machine_type: str = ""
    disk_size_gb: int = Field(100, ge=10)
    image_type: str = ""
    version: str = ""
    initial_node_count: int = Field(3, ge=0)
    autoscaling: NodePoolAutoscaling = Field(default_factory=NodePoolAutoscaling)
    management: NodeManagement = Field(default_factory=NodeManagement)
    locations: List[str] = Field(default_factory=list)


class CreateClusterRequest(BaseModel):
    cluster_id: str = Field(..., min_length=1, max_length=40)
    description: str = Field("", max_length=500)
    master_version: str = ""
    network: str = "default"
    subnetwork: str = ""
    network_policy: NetworkPolicy = Field(default_factory=NetworkPolicy)
    node_pools: List[NodePoolTemplate] = Field(default_factory=list)
    resource_labels: Dict[str, str] = Field(default_factory=dict)
    logging_service: Optional[str] = None
    monitoring_service: Optional[str] = None
    maintenance_policy: MaintenancePolicy = Field(default_factory=MaintenancePolicy)
    addons_config: AddonsConfig = Field(default_factory=AddonsConfig)
    legacy_abac: LegacyAbac = Field(default_factory=LegacyAbac)
    locations: List[str] = Field(default_factory=list)
    master_auth: MasterAuth = Field(default_factory=MasterAuth)


class UpdateClusterRequest(MutationRequest):
    desired_master_version: Optional[str] = None
    description: Optional[str] = Field(None, max_length=500)


class SetNetworkPolicyRequest(MutationRequest):
    network_policy: NetworkPolicy


class SetLabelsRequest(MutationRequest):
    resource_labels: Dict[str, str]


class SetLoggingServiceRequest(MutationRequest):
    logging_service: str


class SetMonitoringServiceRequest(MutationRequest):
    monitoring_service: str


class SetMaintenancePolicyRequest(MutationRequest):
    maintenance_policy: MaintenancePolicy


class UpdateMasterRequest(MutationRequest):
    master_version: str


class SetAddonsConfigRequest(MutationRequest):
    addons_config: AddonsConfig


class SetLegacyAbacRequest(MutationRequest):
    enabled: bool


class SetLocationsRequest(MutationRequest):
    locations: List[str] = Field(..., min_length=1)


class SetMasterAuthRequest(MutationRequest):
    action: MasterAuthAction
    update: MasterAuth = Field(default_factory=MasterAuth)


class CreateNodePoolRequest(NodePoolTemplate):
    pass


class UpdateNodePoolRequest(MutationRequest):
    node_version: Optional[str] = None
    image_type: Optional[str] = None
    locations: Optional[List[str]] = None


class SetNodePoolAutoscalingRequest(MutationRequest):
    autoscaling: NodePoolAutoscaling


class SetNodePoolManagementRequest(MutationRequest):
    management: NodeManagement


class SetNodePoolSizeRequest(MutationRequest):
    node_count: int = Field(..., ge=0)
