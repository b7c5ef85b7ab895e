"""Cluster schemas."""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from cluster_manager.schemas.resource import ResourceDocument


class ClusterStatus(str, Enum):
    PROVISIONING = "PROVISIONING"
    RUNNING = "RUNNING"
    RECONCILING = "RECONCILING"
    STOPPING = "STOPPING"
    ERROR = "ERROR"


class NetworkPolicyProvider(str, Enum):
    PROVIDER_UNSPECIFIED = "PROVIDER_UNSPECIFIED"
    CALICO = "CALICO"


class NetworkPolicy(BaseModel):
    """Network policy enforcement for the cluster."""
    model_config = ConfigDict(frozen=True)

    provider: NetworkPolicyProvider = NetworkPolicyProvider.PROVIDER_UNSPECIFIED
    enabled: bool = False


class MaintenancePolicy(BaseModel):
    """Daily maintenance window, ``HH:MM`` in UTC."""
    model_config = ConfigDict(frozen=True)

    daily_start_time: Optional[str] = Field(None, pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    duration_hours: int = Field(4, ge=4, le=24)


class AddonsConfig(BaseModel):
    """Cluster add-ons; each flag says whether the add-on runs."""
    model_config = ConfigDict(frozen=True)

    http_load_balancing: bool = True
    horizontal_pod_autoscaling: bool = True
    kubernetes_dashboard: bool = False
    network_policy_config: bool = False


class LegacyAbac(BaseModel):
    """Attribute-based access control alongside RBAC."""
    model_config = ConfigDict(frozen=True)

    enabled: bool = False


class MasterAuth(BaseModel):
    """Basic-auth credentials for the cluster endpoint.

    An empty username disables basic auth.
    """
    model_config = ConfigDict(frozen=True)

    username: str = Field("", max_length=64)
    password: str = Field("", max_length=128)


class MasterAuthAction(str, Enum):
    UNKNOWN = "UNKNOWN"
    SET_PASSWORD = "SET_PASSWORD"
    GENERATE_PASSWORD = "GENERATE_PASSWORD"
    SET_USERNAME = "SET_USERNAME"


class JsonWebKey(BaseModel):
    """Public signing key in JWK form."""
    model_config = ConfigDict(frozen=True)

    kty: str = "RSA"
    alg: str = "RS256"
    use: str = "sig"
    kid: str
    n: str
    e: str


class KeyRotationState(str, Enum):
    IDLE = "IDLE"
    ROTATING = "ROTATING"


class ClusterSpec(BaseModel):
    """Desired cluster state."""
    model_config = ConfigDict(frozen=True)

    description: str = Field("", max_length=500)
    master_version: str
    network: str = "default"
    subnetwork: str = ""
    network_policy: NetworkPolicy = Field(default_factory=NetworkPolicy)
    addons_config: AddonsConfig = Field(default_factory=AddonsConfig)
    legacy_abac: LegacyAbac = Field(default_factory=LegacyAbac)
    locations: List[str] = Field(default_factory=list)
    master_auth: MasterAuth = Field(default_factory=MasterAuth)
    resource_labels: Dict[str, str] = Field(default_factory=dict)
    logging_service: str = "logging.googleapis.com/kubernetes"
    monitoring_service: str = "monitoring.googleapis.com/kubernetes"
    maintenance_policy: MaintenancePolicy = Field(default_factory=MaintenancePolicy)
    signing_keys: List[JsonWebKey] = Field(default_factory=list)
    key_rotation: KeyRotationState = KeyRotationState.IDLE


class Cluster(ResourceDocument):
    """A cluster as held by the resource store."""
    kind: Literal["cluster"] = "cluster"
    spec: ClusterSpec
    observed: Optional[ClusterSpec] = None
    status: ClusterStatus = ClusterStatus.PROVISIONING
    node_pools: List[str] = Field(
        default_factory=list, description="Names of child node pools, kept by the store"
    )


class ClusterSummary(BaseModel):
    """Summary schema for cluster listings."""
    name: str
    status: ClusterStatus
    master_version: str
    node_pools: List[str]
    version: int
