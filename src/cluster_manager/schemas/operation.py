"""Operation schemas."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, List, Optional, Union

from pydantic import BaseModel, Field

from cluster_manager.schemas.cluster import Cluster
from cluster_manager.schemas.node_pool import NodePool
from cluster_manager.schemas.resource import utcnow

Resource = Annotated[Union[Cluster, NodePool], Field(discriminator="kind")]


class OperationKind(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    SET_AUTOSCALING = "SET_AUTOSCALING"
    SET_NETWORK_POLICY = "SET_NETWORK_POLICY"
    SET_MANAGEMENT = "SET_MANAGEMENT"
    SET_SIZE = "SET_SIZE"
    SET_LABELS = "SET_LABELS"
    SET_LOGGING_SERVICE = "SET_LOGGING_SERVICE"
    SET_MONITORING_SERVICE = "SET_MONITORING_SERVICE"
    SET_MAINTENANCE_POLICY = "SET_MAINTENANCE_POLICY"
    ROLLBACK = "ROLLBACK"
    START_KEY_ROTATION = "START_KEY_ROTATION"
    COMPLETE_KEY_ROTATION = "COMPLETE_KEY_ROTATION"
    SET_ADDONS_CONFIG = "SET_ADDONS_CONFIG"
    SET_LEGACY_ABAC = "SET_LEGACY_ABAC"
    SET_LOCATIONS = "SET_LOCATIONS"
    SET_MASTER_AUTH = "SET_MASTER_AUTH"
    UPGRADE_MASTER = "UPGRADE_MASTER"
    RECONCILE = "RECONCILE"


class OperationState(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    DONE = "DONE"
    ABORTED = "ABORTED"

    @property
    def terminal(self) -> bool:
        return self in (OperationState.DONE, OperationState.ABORTED)


class OperationError(BaseModel):
    """Why an operation was aborted."""
    code: str
    message: str


class Operation(BaseModel):
    """A tracked asynchronous mutation."""
    name: str
    kind: OperationKind
    target: str
    target_version: int = 0
    state: OperationState = OperationState.PENDING
    status_message: str = ""
    error: Optional[OperationError] = None
    attempts: int = 0
    cancel_requested: bool = False
    start_time: datetime = Field(default_factory=utcnow)
    end_time: Optional[datetime] = None

    @property
    def done(self) -> bool:
        return self.state.terminal


class Admission(BaseModel):
    """Result of admitting a mutation.

    ``operation`` is set when work was queued; an idempotent no-op returns
    the current ``resource`` snapshot instead.
    """
    operation: Optional[Operation] = None
    resource: Optional[Resource] = None

    @property
    def noop(self) -> bool:
        return self.operation is None


class ListOperationsResponse(BaseModel):
    operations: List[Operation]
