"""Tests for admission through the cluster, node pool and operation services."""

from __future__ import annotations

import asyncio

import pytest

from cluster_manager.core.control_plane import ControlPlane
from cluster_manager.errors import (
    AlreadyExists,
    FailedPrecondition,
    InvalidArgument,
    NotFound,
    VersionConflict,
)
from cluster_manager.reconciler.backend import SimulatedBackend
from cluster_manager.schemas.cluster import (
    AddonsConfig,
    ClusterStatus,
    KeyRotationState,
    MasterAuth,
    MasterAuthAction,
    NetworkPolicy,
    NetworkPolicyProvider,
)
from cluster_manager.schemas.node_pool import NodePoolAutoscaling, NodePoolStatus
from cluster_manager.schemas.operation import OperationKind, OperationState
from cluster_manager.schemas.requests import (
    CreateNodePoolRequest,
    NodePoolTemplate,
    SetAddonsConfigRequest,
    SetLabelsRequest,
    SetLegacyAbacRequest,
    SetLocationsRequest,
    SetLoggingServiceRequest,
    SetMasterAuthRequest,
    SetNetworkPolicyRequest,
    SetNodePoolAutoscalingRequest,
    SetNodePoolSizeRequest,
    UpdateClusterRequest,
    UpdateMasterRequest,
    UpdateNodePoolRequest,
)
from tests.conftest import (
    LOCATION,
    PARENT,
    PROJECT,
    cluster_name,
    cluster_request,
    create_running_cluster,
    node_pool_name,
)


class TestClusterAdmission:
    """Cluster creation and cluster-level mutations."""

    async def test_create_writes_cluster_and_pools_atomically(
        self, control_plane: ControlPlane
    ) -> None:
        admission = await control_plane.clusters.create_cluster(PARENT, cluster_request())

        assert admission.operation is not None
        assert admission.operation.kind == OperationKind.CREATE
        cluster = await control_plane.clusters.get_cluster(cluster_name())
        assert cluster.status == ClusterStatus.PROVISIONING
        assert cluster.spec.master_version == "1.28.9-gke.1000"
        assert len(cluster.spec.signing_keys) == 1
        assert cluster.node_pools == [node_pool_name()]
        pool = await control_plane.node_pools.get_node_pool(node_pool_name())
        assert pool.spec.version == cluster.spec.master_version
        assert pool.spec.image_type == "COS_CONTAINERD"

    async def test_duplicate_cluster_is_already_exists(
        self, control_plane: ControlPlane, running_cluster: str
    ) -> None:
        with pytest.raises(AlreadyExists):
            await control_plane.clusters.create_cluster(PARENT, cluster_request())

    async def test_duplicate_node_pool_ids_rejected(self, control_plane: ControlPlane) -> None:
        templates = [NodePoolTemplate(node_pool_id="pool"), NodePoolTemplate(node_pool_id="pool")]
        with pytest.raises(InvalidArgument):
            await control_plane.clusters.create_cluster(PARENT, cluster_request(node_pools=templates))

        assert control_plane.store.all() == []

    async def test_create_requires_concrete_location(self, control_plane: ControlPlane) -> None:
        with pytest.raises(InvalidArgument):
            await control_plane.clusters.create_cluster(
                f"projects/{PROJECT}/locations/-", cluster_request()
            )

    async def test_get_missing_cluster(self, control_plane: ControlPlane) -> None:
        with pytest.raises(NotFound):
            await control_plane.clusters.get_cluster(cluster_name("missing"))

    async def test_master_downgrade_rejected(
        self, control_plane: ControlPlane, running_cluster: str
    ) -> None:
        with pytest.raises(InvalidArgument):
            await control_plane.clusters.update_cluster(
                running_cluster, UpdateClusterRequest(desired_master_version="1.27")
            )

    async def test_master_upgrade_to_latest(
        self, control_plane: ControlPlane, running_cluster: str
    ) -> None:
        admission = await control_plane.clusters.update_cluster(
            running_cluster, UpdateClusterRequest(desired_master_version="latest")
        )
        assert admission.operation is not None
        await control_plane.engine.run_pending()

        cluster = await control_plane.clusters.get_cluster(running_cluster)
        assert cluster.spec.master_version == "1.29.4-gke.1043"
        assert cluster.status == ClusterStatus.RUNNING

    async def test_empty_update_rejected(
        self, control_plane: ControlPlane, running_cluster: str
    ) -> None:
        with pytest.raises(InvalidArgument):
            await control_plane.clusters.update_cluster(running_cluster, UpdateClusterRequest())

    async def test_invalid_labels_rejected(
        self, control_plane: ControlPlane, running_cluster: str
    ) -> None:
        version = control_plane.store.get(running_cluster).version
        with pytest.raises(InvalidArgument):
            await control_plane.clusters.set_labels(
                running_cluster, SetLabelsRequest(resource_labels={"Team": "core"})
            )
        assert control_plane.store.get(running_cluster).version == version

    async def test_unknown_logging_service_rejected(
        self, control_plane: ControlPlane, running_cluster: str
    ) -> None:
        with pytest.raises(InvalidArgument):
            await control_plane.clusters.set_logging_service(
                running_cluster, SetLoggingServiceRequest(logging_service="syslog")
            )

    async def test_enabling_network_policy_defaults_provider(
        self, control_plane: ControlPlane, running_cluster: str
    ) -> None:
        await control_plane.clusters.set_network_policy(
            running_cluster,
            SetNetworkPolicyRequest(network_policy=NetworkPolicy(enabled=True)),
        )

        cluster = control_plane.store.get(running_cluster)
        assert cluster.spec.network_policy.provider == NetworkPolicyProvider.CALICO
        assert cluster.status == ClusterStatus.RECONCILING

    async def test_stale_expected_version_conflicts(
        self, control_plane: ControlPlane, running_cluster: str
    ) -> None:
        version = control_plane.store.get(running_cluster).version
        with pytest.raises(VersionConflict) as exc_info:
            await control_plane.clusters.set_labels(
                running_cluster,
                SetLabelsRequest(resource_labels={"team": "core"}, expected_version=version + 1),
            )

        assert exc_info.value.code == "ABORTED"
        assert control_plane.store.get(running_cluster).version == version

    async def test_delete_refused_while_node_pool_busy(
        self, control_plane: ControlPlane, running_cluster: str
    ) -> None:
        await control_plane.node_pools.set_node_pool_size(
            node_pool_name(), SetNodePoolSizeRequest(node_count=4)
        )

        with pytest.raises(FailedPrecondition):
            await control_plane.clusters.delete_cluster(running_cluster)
        assert control_plane.store.get(running_cluster).status == ClusterStatus.RUNNING

    async def test_list_clusters_pages(self, control_plane: ControlPlane) -> None:
        await create_running_cluster(control_plane, "alpha")
        await create_running_cluster(control_plane, "beta")

        first = await control_plane.clusters.list_clusters(PARENT, page_size=1)
        assert [c.name for c in first.clusters] == [cluster_name("alpha")]
        second = await control_plane.clusters.list_clusters(
            PARENT, page_size=1, page_token=first.next_page_token
        )
        assert [c.name for c in second.clusters] == [cluster_name("beta")]
        assert second.next_page_token == ""

    async def test_list_clusters_page_size_limit(self, control_plane: ControlPlane) -> None:
        with pytest.raises(InvalidArgument):
            await control_plane.clusters.list_clusters(PARENT, page_size=501)


class TestClusterSettings:
    """Add-ons, legacy ABAC, locations, master auth and master upgrades."""

    async def test_update_master_accepts_aliases(
        self, control_plane: ControlPlane, running_cluster: str
    ) -> None:
        admission = await control_plane.clusters.update_master(
            running_cluster, UpdateMasterRequest(master_version="latest")
        )

        assert admission.operation is not None
        assert admission.operation.kind == OperationKind.UPGRADE_MASTER
        await control_plane.engine.run_pending()
        cluster = control_plane.store.get(running_cluster)
        assert cluster.spec.master_version == "1.29.4-gke.1043"
        assert cluster.converged

    async def test_update_master_rejects_downgrade(
        self, control_plane: ControlPlane, running_cluster: str
    ) -> None:
        with pytest.raises(InvalidArgument):
            await control_plane.clusters.update_master(
                running_cluster, UpdateMasterRequest(master_version="1.27")
            )
        assert control_plane.tracker.holder(running_cluster) is None

    async def test_set_addons_config(
        self, control_plane: ControlPlane, running_cluster: str
    ) -> None:
        addons = AddonsConfig(http_load_balancing=False, network_policy_config=True)

        admission = await control_plane.clusters.set_addons_config(
            running_cluster, SetAddonsConfigRequest(addons_config=addons)
        )

        assert admission.operation is not None
        assert admission.operation.kind == OperationKind.SET_ADDONS_CONFIG
        assert control_plane.store.get(running_cluster).spec.addons_config == addons

    async def test_legacy_abac_toggle_and_repeat(
        self, control_plane: ControlPlane, running_cluster: str
    ) -> None:
        enabled = await control_plane.clusters.set_legacy_abac(
            running_cluster, SetLegacyAbacRequest(enabled=True)
        )
        assert enabled.operation is not None
        assert enabled.operation.kind == OperationKind.SET_LEGACY_ABAC
        await control_plane.engine.run_pending()

        repeated = await control_plane.clusters.set_legacy_abac(
            running_cluster, SetLegacyAbacRequest(enabled=True)
        )

        assert repeated.noop
        assert control_plane.store.get(running_cluster).spec.legacy_abac.enabled

    async def test_locations_default_to_primary_zone(
        self, control_plane: ControlPlane, running_cluster: str
    ) -> None:
        assert control_plane.store.get(running_cluster).spec.locations == [LOCATION]

    async def test_set_locations(
        self, control_plane: ControlPlane, running_cluster: str
    ) -> None:
        zones = [LOCATION, "us-central1-b"]

        admission = await control_plane.clusters.set_locations(
            running_cluster, SetLocationsRequest(locations=zones)
        )

        assert admission.operation is not None
        assert admission.operation.kind == OperationKind.SET_LOCATIONS
        assert control_plane.store.get(running_cluster).spec.locations == zones

    @pytest.mark.parametrize(
        "zones",
        [
            ["us-central1-b"],
            [LOCATION, LOCATION],
            [LOCATION, "us-central1"],
        ],
    )
    async def test_invalid_locations_rejected(
        self, control_plane: ControlPlane, running_cluster: str, zones: list
    ) -> None:
        version = control_plane.store.get(running_cluster).version
        with pytest.raises(InvalidArgument):
            await control_plane.clusters.set_locations(
                running_cluster, SetLocationsRequest(locations=zones)
            )
        assert control_plane.store.get(running_cluster).version == version

    async def test_set_username_generates_password(
        self, control_plane: ControlPlane, running_cluster: str
    ) -> None:
        await control_plane.clusters.set_master_auth(
            running_cluster,
            SetMasterAuthRequest(
                action=MasterAuthAction.SET_USERNAME, update=MasterAuth(username="admin")
            ),
        )

        auth = control_plane.store.get(running_cluster).spec.master_auth
        assert auth.username == "admin"
        assert len(auth.password) >= 16

    async def test_set_and_generate_password(self, control_plane: ControlPlane) -> None:
        await create_running_cluster(
            control_plane, "beta", master_auth=MasterAuth(username="admin", password="s3cret")
        )
        name = cluster_name("beta")

        await control_plane.clusters.set_master_auth(
            name,
            SetMasterAuthRequest(
                action=MasterAuthAction.SET_PASSWORD, update=MasterAuth(password="changed")
            ),
        )
        assert control_plane.store.get(name).spec.master_auth == MasterAuth(
            username="admin", password="changed"
        )
        await control_plane.engine.run_pending()

        await control_plane.clusters.set_master_auth(
            name, SetMasterAuthRequest(action=MasterAuthAction.GENERATE_PASSWORD)
        )
        auth = control_plane.store.get(name).spec.master_auth
        assert auth.username == "admin"
        assert auth.password not in ("", "changed")

    async def test_empty_username_disables_basic_auth(self, control_plane: ControlPlane) -> None:
        name = await create_running_cluster(
            control_plane, master_auth=MasterAuth(username="admin", password="s3cret")
        )

        await control_plane.clusters.set_master_auth(
            name, SetMasterAuthRequest(action=MasterAuthAction.SET_USERNAME)
        )

        assert control_plane.store.get(name).spec.master_auth == MasterAuth()

    async def test_password_needs_basic_auth(
        self, control_plane: ControlPlane, running_cluster: str
    ) -> None:
        with pytest.raises(FailedPrecondition):
            await control_plane.clusters.set_master_auth(
                running_cluster, SetMasterAuthRequest(action=MasterAuthAction.GENERATE_PASSWORD)
            )

    async def test_unknown_master_auth_action_rejected(
        self, control_plane: ControlPlane, running_cluster: str
    ) -> None:
        with pytest.raises(InvalidArgument):
            await control_plane.clusters.set_master_auth(
                running_cluster, SetMasterAuthRequest(action=MasterAuthAction.UNKNOWN)
            )


class TestKeyRotation:
    async def test_rotation_serves_both_keys_until_completed(
        self, control_plane: ControlPlane, running_cluster: str
    ) -> None:
        [original] = (await control_plane.clusters.get_json_web_keys(running_cluster)).keys

        await control_plane.clusters.start_key_rotation(running_cluster)
        await control_plane.engine.run_pending()
        rotating = (await control_plane.clusters.get_json_web_keys(running_cluster)).keys
        assert len(rotating) == 2
        assert rotating[0] == original

        await control_plane.clusters.complete_key_rotation(running_cluster)
        await control_plane.engine.run_pending()
        [current] = (await control_plane.clusters.get_json_web_keys(running_cluster)).keys
        assert current == rotating[1]
        assert control_plane.store.get(running_cluster).spec.key_rotation == KeyRotationState.IDLE

    async def test_start_twice_fails(
        self, control_plane: ControlPlane, running_cluster: str
    ) -> None:
        await control_plane.clusters.start_key_rotation(running_cluster)
        await control_plane.engine.run_pending()

        with pytest.raises(FailedPrecondition):
            await control_plane.clusters.start_key_rotation(running_cluster)

    async def test_complete_without_rotation_fails(
        self, control_plane: ControlPlane, running_cluster: str
    ) -> None:
        with pytest.raises(FailedPrecondition):
            await control_plane.clusters.complete_key_rotation(running_cluster)


class TestNodePoolAdmission:
    """Node pool mutations, bounds and locking."""

    async def test_inverted_autoscaling_bounds_leave_no_trace(
        self, control_plane: ControlPlane, running_cluster: str
    ) -> None:
        pool = control_plane.store.get(node_pool_name())
        operations_before = len(control_plane.tracker.list(PARENT))

        with pytest.raises(InvalidArgument):
            await control_plane.node_pools.set_node_pool_autoscaling(
                pool.name,
                SetNodePoolAutoscalingRequest(
                    autoscaling=NodePoolAutoscaling(
                        enabled=True, min_node_count=5, max_node_count=2
                    )
                ),
            )

        after = control_plane.store.get(pool.name)
        assert after.version == pool.version
        assert after.spec == pool.spec
        assert len(control_plane.tracker.list(PARENT)) == operations_before
        assert control_plane.tracker.holder(pool.name) is None

    async def test_enabling_autoscaling_clamps_node_count(
        self, control_plane: ControlPlane, running_cluster: str
    ) -> None:
        await control_plane.node_pools.set_node_pool_autoscaling(
            node_pool_name(),
            SetNodePoolAutoscalingRequest(
                autoscaling=NodePoolAutoscaling(enabled=True, min_node_count=1, max_node_count=2)
            ),
        )

        assert control_plane.store.get(node_pool_name()).spec.node_count == 2

    async def test_repeated_request_is_a_noop(
        self,
        control_plane: ControlPlane,
        backend: SimulatedBackend,
        running_cluster: str,
    ) -> None:
        request = SetNodePoolAutoscalingRequest(
            autoscaling=NodePoolAutoscaling(enabled=True, min_node_count=1, max_node_count=5)
        )
        first = await control_plane.node_pools.set_node_pool_autoscaling(node_pool_name(), request)
        assert not first.noop
        await control_plane.engine.run_pending()
        calls = len(backend.calls)
        version = control_plane.store.get(node_pool_name()).version

        second = await control_plane.node_pools.set_node_pool_autoscaling(
            node_pool_name(), request
        )

        assert second.noop
        assert second.resource is not None
        assert second.resource.name == node_pool_name()
        assert control_plane.store.get(node_pool_name()).version == version
        assert len(backend.calls) == calls

    async def test_size_outside_autoscaling_bounds_rejected(
        self, control_plane: ControlPlane, autoscaled_cluster: str
    ) -> None:
        with pytest.raises(InvalidArgument):
            await control_plane.node_pools.set_node_pool_size(
                node_pool_name(), SetNodePoolSizeRequest(node_count=10)
            )
        assert control_plane.store.get(node_pool_name()).spec.node_count == 2

    async def test_concurrent_mutations_admit_exactly_one(
        self, control_plane: ControlPlane, running_cluster: str
    ) -> None:
        results = await asyncio.gather(
            control_plane.node_pools.set_node_pool_size(
                node_pool_name(), SetNodePoolSizeRequest(node_count=4)
            ),
            control_plane.node_pools.set_node_pool_size(
                node_pool_name(), SetNodePoolSizeRequest(node_count=5)
            ),
            return_exceptions=True,
        )

        admitted = [r for r in results if not isinstance(r, Exception)]
        rejected = [r for r in results if isinstance(r, Exception)]
        assert len(admitted) == 1
        assert len(rejected) == 1
        assert isinstance(rejected[0], FailedPrecondition)
        assert control_plane.store.get(node_pool_name()).spec.node_count == 4

    async def test_delete_of_deleting_pool_fails(
        self, control_plane: ControlPlane, running_cluster: str
    ) -> None:
        await control_plane.node_pools.delete_node_pool(node_pool_name())
        assert control_plane.store.get(node_pool_name()).status == NodePoolStatus.DELETING

        with pytest.raises(FailedPrecondition):
            await control_plane.node_pools.delete_node_pool(node_pool_name())

        await control_plane.engine.run_pending()
        assert not control_plane.store.exists(node_pool_name())
        assert control_plane.store.get(running_cluster).node_pools == []

    async def test_create_node_pool_needs_provisioned_cluster(
        self, control_plane: ControlPlane
    ) -> None:
        await control_plane.clusters.create_cluster(PARENT, cluster_request(node_pools=[]))

        with pytest.raises(FailedPrecondition):
            await control_plane.node_pools.create_node_pool(
                cluster_name(), CreateNodePoolRequest(node_pool_id="extra")
            )

    async def test_create_node_pool_on_running_cluster(
        self, control_plane: ControlPlane, running_cluster: str
    ) -> None:
        admission = await control_plane.node_pools.create_node_pool(
            running_cluster, CreateNodePoolRequest(node_pool_id="extra", initial_node_count=1)
        )
        assert admission.operation is not None
        await control_plane.engine.run_pending()

        listed = await control_plane.node_pools.list_node_pools(running_cluster)
        assert [p.name for p in listed.node_pools] == [
            node_pool_name(),
            node_pool_name(node_pool_id="extra"),
        ]
        assert all(p.status == NodePoolStatus.RUNNING for p in listed.node_pools)

    async def test_node_version_newer_than_master_rejected(
        self, control_plane: ControlPlane, running_cluster: str
    ) -> None:
        with pytest.raises(InvalidArgument):
            await control_plane.node_pools.update_node_pool(
                node_pool_name(), UpdateNodePoolRequest(node_version="1.29.4-gke.1043")
            )

    async def test_rollback_without_upgrade_fails(
        self, control_plane: ControlPlane, running_cluster: str
    ) -> None:
        with pytest.raises(FailedPrecondition):
            await control_plane.node_pools.rollback_node_pool_upgrade(node_pool_name())
        assert control_plane.tracker.holder(node_pool_name()) is None

    async def test_rollback_restores_previous_version(
        self, control_plane: ControlPlane, running_cluster: str
    ) -> None:
        await control_plane.node_pools.update_node_pool(
            node_pool_name(), UpdateNodePoolRequest(node_version="1.28.7")
        )
        await control_plane.engine.run_pending()
        pool = control_plane.store.get(node_pool_name())
        assert pool.spec.version == "1.28.7-gke.1026"
        assert pool.previous_version == "1.28.9-gke.1000"

        await control_plane.node_pools.rollback_node_pool_upgrade(node_pool_name())
        await control_plane.engine.run_pending()

        pool = control_plane.store.get(node_pool_name())
        assert pool.spec.version == "1.28.9-gke.1000"
        assert pool.previous_version is None


class TestOperationsAndServerInfo:
    async def test_wait_times_out_with_current_state(
        self, control_plane: ControlPlane
    ) -> None:
        admission = await control_plane.clusters.create_cluster(PARENT, cluster_request())
        assert admission.operation is not None

        operation = await control_plane.operations.wait_operation(
            admission.operation.name, timeout=0.01
        )
        assert operation.state == OperationState.PENDING

    async def test_wait_timeout_limit(self, control_plane: ControlPlane) -> None:
        admission = await control_plane.clusters.create_cluster(PARENT, cluster_request())
        assert admission.operation is not None

        with pytest.raises(InvalidArgument):
            await control_plane.operations.wait_operation(admission.operation.name, timeout=601)

    async def test_list_operations_across_locations(
        self, control_plane: ControlPlane, running_cluster: str
    ) -> None:
        listed = await control_plane.operations.list_operations(f"projects/{PROJECT}/locations/-")
        assert [op.kind for op in listed.operations] == [OperationKind.CREATE]

    async def test_server_config(self, control_plane: ControlPlane) -> None:
        config = await control_plane.clusters.get_server_config(PARENT)

        assert config.default_cluster_version == "1.28.9-gke.1000"
        assert config.valid_master_versions[0] == "1.29.4-gke.1043"
        assert "UBUNTU_CONTAINERD" in config.valid_image_types

    async def test_usable_subnetworks_default_to_own_project(
        self, control_plane: ControlPlane
    ) -> None:
        listed = await control_plane.clusters.list_usable_subnetworks(f"projects/{PROJECT}")
        assert [s.subnetwork for s in listed.subnetworks] == ["default-us-central1"]

    async def test_usable_subnetworks_filter_by_network_project(
        self, control_plane: ControlPlane
    ) -> None:
        listed = await control_plane.clusters.list_usable_subnetworks(
            f"projects/{PROJECT}", filter_expr="networkProjectId=shared-vpc-host"
        )
        assert [s.network for s in listed.subnetworks] == ["shared"]
        assert listed.subnetworks[0].network_project == "shared-vpc-host"
