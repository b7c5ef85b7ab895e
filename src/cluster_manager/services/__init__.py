"""Service layer: admission and the public cluster, node pool and operation calls."""

from __future__ import annotations

from cluster_manager.services.cluster_service import ClusterService
from cluster_manager.services.node_pool_service import NodePoolService
from cluster_manager.services.operation_service import OperationService
from cluster_manager.services.router import RequestRouter
from cluster_manager.services.validator import RequestValidator

__all__ = [
    "ClusterService",
    "NodePoolService",
    "OperationService",
    "RequestRouter",
    "RequestValidator",
]
