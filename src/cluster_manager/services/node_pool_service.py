"""Node pool service for managing node pool operations."""

from __future__ import annotations

from typing import Callable, Optional

import structlog

from cluster_manager.core.names import cluster_path, node_pool_path
from cluster_manager.core.versions import VersionCatalog
from cluster_manager.errors import FailedPrecondition, InvalidArgument
from cluster_manager.schemas.cluster import Cluster
from cluster_manager.schemas.node_pool import NodePool, NodePoolAutoscaling, NodePoolSpec
from cluster_manager.schemas.operation import Admission, OperationKind
from cluster_manager.schemas.requests import (
    CreateNodePoolRequest,
    NodePoolTemplate,
    SetNodePoolAutoscalingRequest,
    SetNodePoolManagementRequest,
    SetNodePoolSizeRequest,
    UpdateNodePoolRequest,
)
from cluster_manager.schemas.server import ListNodePoolsResponse
from cluster_manager.services.router import RequestRouter
from cluster_manager.services.validator import RequestValidator
from cluster_manager.store.resource_store import ResourceStore

logger = structlog.get_logger(__name__)


def clamp_node_count(count: int, autoscaling: NodePoolAutoscaling) -> int:
    """Pull ``count`` into the autoscaling bounds when autoscaling is enabled."""
    if not autoscaling.enabled:
        return count
    return max(autoscaling.min_node_count, min(autoscaling.max_node_count, count))


def build_node_pool(
    name: str,
    template: NodePoolTemplate,
    master_version: Optional[str],
    validator: RequestValidator,
    versions: VersionCatalog,
) -> NodePool:
    """Validate a node pool template and turn it into a new document."""
    validator.node_pool_name(name)
    validator.autoscaling(template.autoscaling)
    validator.node_count(template.initial_node_count, template.autoscaling)

    image_type = template.image_type or versions.config.default_image_type
    validator.image_type(image_type)

    spec = NodePoolSpec(
        machine_type=template.machine_type or versions.config.default_machine_type,
        disk_size_gb=template.disk_size_gb,
        image_type=image_type,
        version=versions.resolve_node(template.version, master_version),
        node_count=template.initial_node_count,
        autoscaling=template.autoscaling,
        management=template.management,
        locations=list(template.locations),
    )
    return NodePool(name=name, spec=spec)


class NodePoolService:
    """Service for managing node pools."""

    def __init__(
        self,
        store: ResourceStore,
        router: RequestRouter,
        validator: RequestValidator,
        versions: VersionCatalog,
    ) -> None:
        self.store = store
        self.router = router
        self.validator = validator
        self.versions = versions

    async def list_node_pools(
        self,
        parent: str,
        page_size: int = 0,
        page_token: str = "",
        filter_expr: str = "",
    ) -> ListNodePoolsResponse:
        """List node pools of a cluster."""
        self.validator.cluster_name(parent)
        self.validator.require_cluster(parent)
        node_pools, next_token = self.store.list(parent, page_token, page_size, filter_expr)
        return ListNodePoolsResponse(node_pools=node_pools, next_page_token=next_token)

    async def get_node_pool(self, name: str) -> NodePool:
        """Get a node pool by name."""
        self.validator.node_pool_name(name)
        return self.validator.require_node_pool(name)

    async def create_node_pool(self, parent: str, request: CreateNodePoolRequest) -> Admission:
        """Add a node pool to a provisioned cluster."""
        cluster_name = self.validator.cluster_name(parent)
        cluster = self.validator.node_pool_parent(parent)
        name = node_pool_path(
            cluster_name.project,
            cluster_name.location,
            cluster_name.cluster,
            request.node_pool_id,
        )
        node_pool = build_node_pool(
            name, request, cluster.spec.master_version, self.validator, self.versions
        )
        admission = self.router.admit_create([node_pool])
        logger.info("Node pool creation admitted", node_pool=name)
        return admission

    async def update_node_pool(self, name: str, request: UpdateNodePoolRequest) -> Admission:
        """Change the node version, image type or locations."""
        if request.node_version is None and request.image_type is None and request.locations is None:
            raise InvalidArgument("update_node_pool requires at least one field to change")
        cluster = self._parent_for(name)
        if request.image_type is not None:
            self.validator.image_type(request.image_type)
        node_version = None
        if request.node_version is not None:
            node_version = self.versions.resolve_node(
                request.node_version, cluster.spec.master_version
            )

        def mutate(node_pool: NodePool) -> NodePool:
            update = {}
            if node_version is not None and node_version != node_pool.spec.version:
                node_pool.previous_version = node_pool.spec.version
                update["version"] = node_version
            if request.image_type is not None:
                update["image_type"] = request.image_type
            if request.locations is not None:
                update["locations"] = list(request.locations)
            node_pool.spec = node_pool.spec.model_copy(update=update)
            return node_pool

        return self.router.admit(name, OperationKind.UPDATE, mutate, request.expected_version)

    async def delete_node_pool(self, name: str) -> Admission:
        """Delete a node pool."""
        self._parent_for(name)
        return self.router.admit(name, OperationKind.DELETE, lambda node_pool: node_pool)

    async def set_node_pool_autoscaling(
        self, name: str, request: SetNodePoolAutoscalingRequest
    ) -> Admission:
        """Replace the autoscaling settings.

        Enabling autoscaling pulls the desired node count into the new bounds.
        """
        self.validator.autoscaling(request.autoscaling)
        self._parent_for(name)

        def mutate(node_pool: NodePool) -> NodePool:
            node_pool.spec = node_pool.spec.model_copy(
                update={
                    "autoscaling": request.autoscaling,
                    "node_count": clamp_node_count(node_pool.spec.node_count, request.autoscaling),
                }
            )
            return node_pool

        return self.router.admit(
            name, OperationKind.SET_AUTOSCALING, mutate, request.expected_version
        )

    async def set_node_pool_management(
        self, name: str, request: SetNodePoolManagementRequest
    ) -> Admission:
        self._parent_for(name)
        return self._admit_spec(
            name,
            OperationKind.SET_MANAGEMENT,
            lambda spec: spec.model_copy(update={"management": request.management}),
            request.expected_version,
        )

    async def set_node_pool_size(self, name: str, request: SetNodePoolSizeRequest) -> Admission:
        """Set the desired node count; it must respect enabled autoscaling bounds."""
        self._parent_for(name)

        def resize(spec: NodePoolSpec) -> NodePoolSpec:
            self.validator.node_count(request.node_count, spec.autoscaling)
            return spec.model_copy(update={"node_count": request.node_count})

        return self._admit_spec(name, OperationKind.SET_SIZE, resize, request.expected_version)

    async def rollback_node_pool_upgrade(self, name: str) -> Admission:
        """Return the node pool to the version it ran before its last upgrade."""
        self._parent_for(name)

        def mutate(node_pool: NodePool) -> NodePool:
            if node_pool.previous_version is None:
                raise FailedPrecondition(f"Node pool {name} has no upgrade to roll back")
            node_pool.spec = node_pool.spec.model_copy(
                update={"version": node_pool.previous_version}
            )
            node_pool.previous_version = None
            return node_pool

        return self.router.admit(name, OperationKind.ROLLBACK, mutate)

    def _parent_for(self, name: str) -> Cluster:
        parsed = self.validator.node_pool_name(name)
        self.validator.require_node_pool(name)
        return self.validator.node_pool_parent(
            cluster_path(parsed.project, parsed.location, parsed.cluster)
        )

    def _admit_spec(
        self,
        name: str,
        kind: OperationKind,
        change: Callable[[NodePoolSpec], NodePoolSpec],
        expected_version: Optional[int],
    ) -> Admission:
        def mutate(node_pool: NodePool) -> NodePool:
            node_pool.spec = change(node_pool.spec)
            return node_pool

        return self.router.admit(name, kind, mutate, expected_version)
