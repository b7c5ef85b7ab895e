"""Cluster service for managing cluster operations."""

from __future__ import annotations

import secrets
from typing import List

import structlog

from cluster_manager.config.models import SubnetworkConfig
from cluster_manager.core.keys import KeyGenerator, completed_keys, rotated_keys
from cluster_manager.core.names import cluster_path, node_pool_path
from cluster_manager.core.versions import VersionCatalog, version_key
from cluster_manager.errors import FailedPrecondition, InvalidArgument
from cluster_manager.schemas.cluster import (
    Cluster,
    ClusterSpec,
    KeyRotationState,
    LegacyAbac,
    MasterAuth,
    MasterAuthAction,
    NetworkPolicy,
    NetworkPolicyProvider,
)
from cluster_manager.schemas.node_pool import NodePool
from cluster_manager.schemas.operation import Admission, OperationKind
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
from cluster_manager.schemas.server import (
    JsonWebKeys,
    ListClustersResponse,
    ListUsableSubnetworksResponse,
    ServerConfig,
    UsableSubnetwork,
)
from cluster_manager.services.node_pool_service import build_node_pool
from cluster_manager.services.router import RequestRouter
from cluster_manager.services.validator import (
    LOGGING_SERVICES,
    MONITORING_SERVICES,
    RequestValidator,
    is_zone,
)
from cluster_manager.store.query import paginate, parse_filter, query_scope
from cluster_manager.store.resource_store import ResourceStore

logger = structlog.get_logger(__name__)

GENERATED_PASSWORD_BYTES = 12


def _normalized_policy(policy: NetworkPolicy) -> NetworkPolicy:
    if policy.enabled and policy.provider == NetworkPolicyProvider.PROVIDER_UNSPECIFIED:
        return policy.model_copy(update={"provider": NetworkPolicyProvider.CALICO})
    return policy


def _generate_password() -> str:
    return secrets.token_urlsafe(GENERATED_PASSWORD_BYTES)


class ClusterService:
    """Service for managing clusters."""

    def __init__(
        self,
        store: ResourceStore,
        router: RequestRouter,
        validator: RequestValidator,
        versions: VersionCatalog,
        keys: KeyGenerator,
        subnetworks: List[SubnetworkConfig],
    ) -> None:
        self.store = store
        self.router = router
        self.validator = validator
        self.versions = versions
        self.keys = keys
        self.subnetworks = subnetworks

    async def list_clusters(
        self,
        parent: str,
        page_size: int = 0,
        page_token: str = "",
        filter_expr: str = "",
    ) -> ListClustersResponse:
        """List clusters in a location (``-`` for every location)."""
        self.validator.location(parent, allow_wildcard=True)
        clusters, next_token = self.store.list(parent, page_token, page_size, filter_expr)
        return ListClustersResponse(clusters=clusters, next_page_token=next_token)

    async def get_cluster(self, name: str) -> Cluster:
        """Get a cluster by name."""
        self.validator.cluster_name(name)
        return self.validator.require_cluster(name)

    async def create_cluster(self, parent: str, request: CreateClusterRequest) -> Admission:
        """Create a cluster and its initial node pools."""
        location = self.validator.location(parent)
        name = cluster_path(location.project, location.location, request.cluster_id)
        self.validator.cluster_name(name)
        self.validator.labels(request.resource_labels)
        master_version = self.versions.resolve_master(request.master_version)
        locations = self._default_locations(location.location, request.locations)

        spec = ClusterSpec(
            description=request.description,
            master_version=master_version,
            network=request.network,
            subnetwork=request.subnetwork,
            network_policy=_normalized_policy(request.network_policy),
            resource_labels=request.resource_labels,
            maintenance_policy=request.maintenance_policy,
            addons_config=request.addons_config,
            legacy_abac=request.legacy_abac,
            locations=locations,
            master_auth=request.master_auth,
            signing_keys=[self.keys.generate()],
            **{
                field: value
                for field, value in (
                    ("logging_service", request.logging_service),
                    ("monitoring_service", request.monitoring_service),
                )
                if value is not None
            },
        )
        self.validator.service(spec.logging_service, LOGGING_SERVICES, "logging service")
        self.validator.service(spec.monitoring_service, MONITORING_SERVICES, "monitoring service")

        node_pools: List[NodePool] = []
        seen = set()
        for template in request.node_pools:
            if template.node_pool_id in seen:
                raise InvalidArgument(f"Duplicate node pool id {template.node_pool_id!r}")
            seen.add(template.node_pool_id)
            pool_name = node_pool_path(
                location.project, location.location, request.cluster_id, template.node_pool_id
            )
            node_pools.append(
                build_node_pool(pool_name, template, master_version, self.validator, self.versions)
            )

        cluster = Cluster(name=name, spec=spec)
        admission = self.router.admit_create([cluster, *node_pools])
        logger.info("Cluster creation admitted", cluster=name, node_pools=len(node_pools))
        return admission

    async def update_cluster(self, name: str, request: UpdateClusterRequest) -> Admission:
        """Update master version and/or description."""
        self.validator.cluster_name(name)
        cluster = self.validator.require_cluster(name)
        if request.desired_master_version is None and request.description is None:
            raise InvalidArgument("update_cluster requires at least one field to change")

        update = {}
        if request.desired_master_version is not None:
            update["master_version"] = self._master_upgrade(cluster, request.desired_master_version)
        if request.description is not None:
            update["description"] = request.description

        return self._admit_spec(name, OperationKind.UPDATE, update, request.expected_version)

    async def update_master(self, name: str, request: UpdateMasterRequest) -> Admission:
        """Upgrade the master; accepts the same version aliases as ``update_cluster``."""
        self.validator.cluster_name(name)
        cluster = self.validator.require_cluster(name)
        return self._admit_spec(
            name,
            OperationKind.UPGRADE_MASTER,
            {"master_version": self._master_upgrade(cluster, request.master_version)},
            request.expected_version,
        )

    async def delete_cluster(self, name: str) -> Admission:
        """Delete a cluster and all of its node pools."""
        self.validator.cluster_name(name)
        cluster = self.validator.require_cluster(name)
        self.validator.cluster_deletable(cluster)
        return self.router.admit(name, OperationKind.DELETE, lambda resource: resource)

    async def set_network_policy(self, name: str, request: SetNetworkPolicyRequest) -> Admission:
        self.validator.cluster_name(name)
        return self._admit_spec(
            name,
            OperationKind.SET_NETWORK_POLICY,
            {"network_policy": _normalized_policy(request.network_policy)},
            request.expected_version,
        )

    async def set_labels(self, name: str, request: SetLabelsRequest) -> Admission:
        self.validator.cluster_name(name)
        self.validator.labels(request.resource_labels)
        return self._admit_spec(
            name,
            OperationKind.SET_LABELS,
            {"resource_labels": dict(request.resource_labels)},
            request.expected_version,
        )

    async def set_logging_service(self, name: str, request: SetLoggingServiceRequest) -> Admission:
        self.validator.cluster_name(name)
        self.validator.service(request.logging_service, LOGGING_SERVICES, "logging service")
        return self._admit_spec(
            name,
            OperationKind.SET_LOGGING_SERVICE,
            {"logging_service": request.logging_service},
            request.expected_version,
        )

    async def set_monitoring_service(
        self, name: str, request: SetMonitoringServiceRequest
    ) -> Admission:
        self.validator.cluster_name(name)
        self.validator.service(request.monitoring_service, MONITORING_SERVICES, "monitoring service")
        return self._admit_spec(
            name,
            OperationKind.SET_MONITORING_SERVICE,
            {"monitoring_service": request.monitoring_service},
            request.expected_version,
        )

    async def set_maintenance_policy(
        self, name: str, request: SetMaintenancePolicyRequest
    ) -> Admission:
        self.validator.cluster_name(name)
        return self._admit_spec(
            name,
            OperationKind.SET_MAINTENANCE_POLICY,
            {"maintenance_policy": request.maintenance_policy},
            request.expected_version,
        )

    async def set_addons_config(self, name: str, request: SetAddonsConfigRequest) -> Admission:
        self.validator.cluster_name(name)
        return self._admit_spec(
            name,
            OperationKind.SET_ADDONS_CONFIG,
            {"addons_config": request.addons_config},
            request.expected_version,
        )

    async def set_legacy_abac(self, name: str, request: SetLegacyAbacRequest) -> Admission:
        self.validator.cluster_name(name)
        return self._admit_spec(
            name,
            OperationKind.SET_LEGACY_ABAC,
            {"legacy_abac": LegacyAbac(enabled=request.enabled)},
            request.expected_version,
        )

    async def set_locations(self, name: str, request: SetLocationsRequest) -> Admission:
        """Replace the zones the cluster's nodes run in."""
        parsed = self.validator.cluster_name(name)
        locations = self.validator.cluster_locations(parsed.location, request.locations)
        return self._admit_spec(
            name,
            OperationKind.SET_LOCATIONS,
            {"locations": locations},
            request.expected_version,
        )

    async def set_master_auth(self, name: str, request: SetMasterAuthRequest) -> Admission:
        """Change basic-auth credentials.

        ``SET_USERNAME`` with an empty username disables basic auth; with a
        non-empty one it enables it using the given password, or a generated
        one when none is given.
        """
        self.validator.cluster_name(name)
        cluster = self.validator.require_cluster(name)
        current = cluster.spec.master_auth
        action = request.action

        if action == MasterAuthAction.SET_USERNAME:
            if request.update.username:
                auth = MasterAuth(
                    username=request.update.username,
                    password=request.update.password or _generate_password(),
                )
            else:
                auth = MasterAuth()
        elif action in (MasterAuthAction.SET_PASSWORD, MasterAuthAction.GENERATE_PASSWORD):
            if not current.username:
                raise FailedPrecondition(f"Basic auth is disabled on {name}; set a username first")
            if action == MasterAuthAction.SET_PASSWORD:
                if not request.update.password:
                    raise InvalidArgument("SET_PASSWORD requires a non-empty password")
                password = request.update.password
            else:
                password = _generate_password()
            auth = current.model_copy(update={"password": password})
        else:
            raise InvalidArgument(f"Unsupported master auth action {action.value}")

        logger.info("Master auth change requested", cluster=name, action=action.value)
        return self._admit_spec(
            name,
            OperationKind.SET_MASTER_AUTH,
            {"master_auth": auth},
            request.expected_version,
        )

    async def start_key_rotation(self, name: str) -> Admission:
        """Add a new signing key; old and new keys are both served until completion."""
        self.validator.cluster_name(name)
        cluster = self.validator.require_cluster(name)
        if cluster.spec.key_rotation == KeyRotationState.ROTATING:
            raise FailedPrecondition(f"Key rotation is already in progress on {name}")

        def mutate(resource: Cluster) -> Cluster:
            resource.spec = resource.spec.model_copy(
                update={
                    "signing_keys": rotated_keys(resource.spec.signing_keys, self.keys.generate()),
                    "key_rotation": KeyRotationState.ROTATING,
                }
            )
            return resource

        return self.router.admit(name, OperationKind.START_KEY_ROTATION, mutate)

    async def complete_key_rotation(self, name: str) -> Admission:
        """Retire every signing key except the newest."""
        self.validator.cluster_name(name)
        cluster = self.validator.require_cluster(name)
        if cluster.spec.key_rotation != KeyRotationState.ROTATING:
            raise FailedPrecondition(f"No key rotation is in progress on {name}")

        def mutate(resource: Cluster) -> Cluster:
            resource.spec = resource.spec.model_copy(
                update={
                    "signing_keys": completed_keys(resource.spec.signing_keys),
                    "key_rotation": KeyRotationState.IDLE,
                }
            )
            return resource

        return self.router.admit(name, OperationKind.COMPLETE_KEY_ROTATION, mutate)

    async def get_json_web_keys(self, name: str) -> JsonWebKeys:
        """Public keys that verify tokens issued by the cluster."""
        self.validator.cluster_name(name)
        cluster = self.validator.require_cluster(name)
        return JsonWebKeys(keys=list(cluster.spec.signing_keys))

    async def get_server_config(self, name: str) -> ServerConfig:
        """Versions and image types offered in a location."""
        self.validator.location(name)
        config = self.versions.config
        return ServerConfig(
            default_cluster_version=self.versions.default_version,
            valid_master_versions=self.versions.master_versions,
            valid_node_versions=self.versions.node_versions,
            default_image_type=config.default_image_type,
            valid_image_types=list(config.valid_image_types),
        )

    async def list_usable_subnetworks(
        self,
        parent: str,
        filter_expr: str = "",
        page_size: int = 0,
        page_token: str = "",
    ) -> ListUsableSubnetworksResponse:
        """Subnetworks the project may use, filtered by ``networkProjectId``.

        Without a filter, only subnetworks owned by the parent project are
        listed.
        """
        project = self.validator.project(parent).project
        predicate = parse_filter(filter_expr, ("networkProjectId",))
        network_project = predicate[1] if predicate else project

        indexed = [
            (index + 1, subnet)
            for index, subnet in enumerate(self.subnetworks)
            if subnet.project == project and subnet.network_project == network_project
        ]
        page, next_token = paginate(
            indexed,
            seq_of=lambda item: item[0],
            page_size=page_size,
            page_token=page_token,
            scope=query_scope(parent, filter_expr or ""),
            high_water=len(self.subnetworks),
        )
        return ListUsableSubnetworksResponse(
            subnetworks=[
                UsableSubnetwork(
                    subnetwork=subnet.subnetwork,
                    network=subnet.network,
                    ip_cidr_range=subnet.ip_cidr_range,
                    network_project=subnet.network_project,
                )
                for _, subnet in page
            ],
            next_page_token=next_token,
        )

    def _master_upgrade(self, cluster: Cluster, requested: str) -> str:
        master_version = self.versions.resolve_master(requested)
        if version_key(master_version) < version_key(cluster.spec.master_version):
            raise InvalidArgument(
                f"Master version cannot be downgraded from "
                f"{cluster.spec.master_version} to {master_version}"
            )
        return master_version

    def _default_locations(self, primary: str, requested: List[str]) -> List[str]:
        if requested:
            return self.validator.cluster_locations(primary, requested)
        # no zones listed: a regional cluster spans the whole region
        return [primary] if is_zone(primary) else []

    def _admit_spec(
        self,
        name: str,
        kind: OperationKind,
        update: dict,
        expected_version: int | None,
    ) -> Admission:
        self.validator.require_cluster(name)

        def mutate(resource: Cluster) -> Cluster:
            resource.spec = resource.spec.model_copy(update=update)
            return resource

        return self.router.admit(name, kind, mutate, expected_version)
