"""Status lifecycle shared by admission and reconciliation."""

from __future__ import annotations

from typing import Union

from cluster_manager.schemas.cluster import Cluster, ClusterStatus
from cluster_manager.schemas.node_pool import NodePool, NodePoolStatus
from cluster_manager.schemas.operation import OperationKind

ClusterOrNodePool = Union[Cluster, NodePool]
AnyStatus = Union[ClusterStatus, NodePoolStatus]


def steady_status(resource: ClusterOrNodePool) -> AnyStatus:
    return ClusterStatus.RUNNING if isinstance(resource, Cluster) else NodePoolStatus.RUNNING


def error_status(resource: ClusterOrNodePool) -> AnyStatus:
    return ClusterStatus.ERROR if isinstance(resource, Cluster) else NodePoolStatus.ERROR


def deleting_status(resource: ClusterOrNodePool) -> AnyStatus:
    return ClusterStatus.STOPPING if isinstance(resource, Cluster) else NodePoolStatus.DELETING


def is_deleting(resource: ClusterOrNodePool) -> bool:
    return resource.status in (ClusterStatus.STOPPING, NodePoolStatus.DELETING)


def is_error(resource: ClusterOrNodePool) -> bool:
    return resource.status in (ClusterStatus.ERROR, NodePoolStatus.ERROR)


def is_running(resource: ClusterOrNodePool) -> bool:
    return resource.status in (ClusterStatus.RUNNING, NodePoolStatus.RUNNING)


def admitted_status(resource: ClusterOrNodePool, kind: OperationKind) -> AnyStatus:
    """Status a resource shows while an admitted ``kind`` operation is pending."""
    if kind == OperationKind.DELETE:
        return deleting_status(resource)
    if kind == OperationKind.CREATE or resource.observed is None:
        return ClusterStatus.PROVISIONING if isinstance(resource, Cluster) else NodePoolStatus.PROVISIONING
    return ClusterStatus.RECONCILING if isinstance(resource, Cluster) else NodePoolStatus.RECONCILING
