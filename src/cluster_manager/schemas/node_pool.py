"""Node pool schemas."""

from __future__ import annotations

from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from cluster_manager.schemas.resource import ResourceDocument


class NodePoolStatus(str, Enum):
    PROVISIONING = "PROVISIONING"
    RUNNING = "RUNNING"
    RECONCILING = "RECONCILING"
    DELETING = "DELETING"
    ERROR = "ERROR"


class NodePoolAutoscaling(BaseModel):
    """Autoscaling bounds. Cross-field rules are checked at admission."""
    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    min_node_count: int = Field(0, ge=0)
    max_node_count: int = Field(0, ge=0)


class NodeManagement(BaseModel):
    """Automatic node repair and upgrade flags."""
    model_config = ConfigDict(frozen=True)

    auto_repair: bool = True
    auto_upgrade: bool = True


class NodePoolSpec(BaseModel):
    """Desired node pool state."""
    model_config = ConfigDict(frozen=True)

    machine_type: str
    disk_size_gb: int = Field(100, ge=10)
    image_type: str
    version: str
    node_count: int = Field(3, ge=0)
    autoscaling: NodePoolAutoscaling = Field(default_factory=NodePoolAutoscaling)
    management: NodeManagement = Field(default_factory=NodeManagement)
    locations: List[str] = Field(default_factory=list)


class NodePool(ResourceDocument):
    """A node pool as held by the resource store."""
    kind: Literal["node_pool"] = "node_pool"
    spec: NodePoolSpec
    observed: Optional[NodePoolSpec] = None
    status: NodePoolStatus = NodePoolStatus.PROVISIONING
    previous_version: Optional[str] = None
