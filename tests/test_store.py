"""Tests for the resource store, paging and persistence."""

from __future__ import annotations

from pathlib import Path

import pytest

from cluster_manager.errors import AlreadyExists, InvalidArgument, NotFound, VersionConflict
from cluster_manager.schemas.cluster import Cluster, ClusterSpec, ClusterStatus
from cluster_manager.schemas.node_pool import NodePool, NodePoolSpec, NodePoolStatus
from cluster_manager.store import JsonStatePersistence, ResourceStore
from cluster_manager.store.query import (
    PageCursor,
    decode_page_token,
    encode_page_token,
    normalize_page_size,
    parse_filter,
)

PARENT = "projects/p1/locations/l1"


def make_cluster(cluster_id: str, parent: str = PARENT, network: str = "default") -> Cluster:
    return Cluster(
        name=f"{parent}/clusters/{cluster_id}",
        spec=ClusterSpec(master_version="1.28.9-gke.1000", network=network),
    )


def make_node_pool(cluster_id: str, node_pool_id: str, node_count: int = 3) -> NodePool:
    return NodePool(
        name=f"{PARENT}/clusters/{cluster_id}/nodePools/{node_pool_id}",
        spec=NodePoolSpec(
            machine_type="e2-medium",
            image_type="COS_CONTAINERD",
            version="1.28.9-gke.1000",
            node_count=node_count,
        ),
    )


@pytest.fixture
def store() -> ResourceStore:
    return ResourceStore()


def test_create_assigns_version_and_order(store: ResourceStore) -> None:
    first = store.create(make_cluster("a"))
    second = store.create(make_cluster("b"))

    assert first.version == 1
    assert first.create_seq < second.create_seq
    assert store.high_water == second.create_seq


def test_create_duplicate_is_already_exists(store: ResourceStore) -> None:
    store.create(make_cluster("a"))
    with pytest.raises(AlreadyExists):
        store.create(make_cluster("a"))


def test_get_returns_private_copy(store: ResourceStore) -> None:
    store.create(make_cluster("a"))
    copy = store.get(f"{PARENT}/clusters/a")
    copy.status_message = "tampered"

    assert store.get(f"{PARENT}/clusters/a").status_message == ""


def test_get_missing_is_not_found(store: ResourceStore) -> None:
    with pytest.raises(NotFound):
        store.get(f"{PARENT}/clusters/missing")


def test_put_bumps_version_once(store: ResourceStore) -> None:
    cluster = store.create(make_cluster("a"))
    cluster.spec = cluster.spec.model_copy(update={"description": "v2"})

    assert store.put(cluster, expected_version=1) == 2
    stored = store.get(cluster.name)
    assert stored.version == 2
    assert stored.spec.description == "v2"
    assert stored.create_seq == cluster.create_seq


def test_stale_put_never_mutates(store: ResourceStore) -> None:
    cluster = store.create(make_cluster("a"))
    store.put(cluster, expected_version=1)

    stale = cluster.model_copy(deep=True)
    stale.spec = stale.spec.model_copy(update={"description": "stale"})
    with pytest.raises(VersionConflict) as exc_info:
        store.put(stale, expected_version=1)

    assert exc_info.value.actual == 2
    assert store.get(cluster.name).spec.description == ""


def test_update_status_does_not_bump_version(store: ResourceStore) -> None:
    cluster = store.create(make_cluster("a"))

    updated = store.update_status(cluster.name, ClusterStatus.RUNNING, converged=True)

    assert updated.version == 1
    assert updated.observed == updated.spec
    assert updated.observed_version == 1
    assert updated.converged


def test_restore_spec_bumps_version(store: ResourceStore) -> None:
    pool = store.create(make_node_pool("a", "pool-1"))
    store.update_status(pool.name, NodePoolStatus.RUNNING, converged=True)
    resized = pool.model_copy(deep=True)
    resized.spec = resized.spec.model_copy(update={"node_count": 7})
    store.put(resized, expected_version=1)

    restored = store.restore_spec(
        pool.name, pool.spec, NodePoolStatus.RUNNING, "Operation cancelled"
    )

    assert restored.version == 3
    assert restored.spec.node_count == 3
    assert restored.observed_version == 3
    assert restored.converged
    # a write based on the rolled-back read is rejected
    with pytest.raises(VersionConflict):
        store.put(resized, expected_version=2)


def test_node_pool_refs_follow_create_and_delete(store: ResourceStore) -> None:
    store.create(make_cluster("a"))
    pool = store.create(make_node_pool("a", "pool-1"))

    assert store.get(f"{PARENT}/clusters/a").node_pools == [pool.name]

    store.delete(pool.name)
    assert store.get(f"{PARENT}/clusters/a").node_pools == []


def test_children_are_direct_only(store: ResourceStore) -> None:
    store.create(make_cluster("a"))
    store.create(make_node_pool("a", "pool-1"))

    assert [r.name for r in store.children(PARENT)] == [f"{PARENT}/clusters/a"]
    assert [r.name for r in store.children(f"{PARENT}/clusters/a")] == [
        f"{PARENT}/clusters/a/nodePools/pool-1"
    ]


def test_list_wildcard_location(store: ResourceStore) -> None:
    store.create(make_cluster("a"))
    store.create(make_cluster("b", parent="projects/p1/locations/l2"))
    store.create(make_cluster("c", parent="projects/p2/locations/l1"))

    page, token = store.list("projects/p1/locations/-")

    assert [r.name for r in page] == [
        f"{PARENT}/clusters/a",
        "projects/p1/locations/l2/clusters/b",
    ]
    assert token == ""


def test_paging_excludes_items_created_mid_iteration(store: ResourceStore) -> None:
    for cluster_id in ("a", "b", "c"):
        store.create(make_cluster(cluster_id))

    first, token = store.list(PARENT, page_size=2)
    assert [r.name.rsplit("/", 1)[-1] for r in first] == ["a", "b"]
    assert token

    store.create(make_cluster("d"))
    second, token = store.list(PARENT, page_token=token, page_size=2)

    assert [r.name.rsplit("/", 1)[-1] for r in second] == ["c"]
    assert token == ""


def test_page_token_bound_to_parent(store: ResourceStore) -> None:
    for cluster_id in ("a", "b"):
        store.create(make_cluster(cluster_id))
    _, token = store.list(PARENT, page_size=1)

    with pytest.raises(InvalidArgument):
        store.list("projects/p1/locations/l2", page_token=token, page_size=1)
    with pytest.raises(InvalidArgument):
        store.list(PARENT, page_token=token, page_size=1, filter_expr="network=default")


def test_malformed_page_token(store: ResourceStore) -> None:
    with pytest.raises(InvalidArgument):
        store.list(PARENT, page_token="not-a-token!")


def test_list_filter(store: ResourceStore) -> None:
    store.create(make_cluster("a", network="default"))
    store.create(make_cluster("b", network="shared"))

    page, _ = store.list(PARENT, filter_expr="network=shared")
    assert [r.name for r in page] == [f"{PARENT}/clusters/b"]

    page, _ = store.list(PARENT, filter_expr="status=PROVISIONING")
    assert len(page) == 2


def test_node_pool_filter_fields(store: ResourceStore) -> None:
    store.create(make_cluster("a"))
    store.create(make_node_pool("a", "pool-1"))
    store.update_status(f"{PARENT}/clusters/a/nodePools/pool-1", NodePoolStatus.RUNNING)

    page, _ = store.list(f"{PARENT}/clusters/a", filter_expr="status=RUNNING")
    assert len(page) == 1
    with pytest.raises(InvalidArgument):
        store.list(f"{PARENT}/clusters/a", filter_expr="network=default")


@pytest.mark.parametrize("page_size", [-1, 501])
def test_page_size_out_of_range(page_size: int) -> None:
    with pytest.raises(InvalidArgument):
        normalize_page_size(page_size)


def test_page_size_zero_means_default() -> None:
    assert normalize_page_size(0) == 500
    assert normalize_page_size(500) == 500


@pytest.mark.parametrize("expression", ["status", "=RUNNING", "status=", "a=b=c", "color=red"])
def test_bad_filters(expression: str) -> None:
    with pytest.raises(InvalidArgument):
        parse_filter(expression, ("status",))


def test_filter_accepts_quoted_value() -> None:
    assert parse_filter('status="RUNNING"', ("status",)) == ("status", "RUNNING")
    assert parse_filter("  ", ("status",)) is None


def test_page_token_encoding() -> None:
    cursor = PageCursor(after_seq=7, high_water=12, scope="abc")
    assert decode_page_token(encode_page_token(cursor)) == cursor


def test_persistence_restores_store(tmp_path: Path) -> None:
    state_file = tmp_path / "state" / "resources.json"
    store = ResourceStore(JsonStatePersistence(state_file))
    store.create(make_cluster("a"))
    store.create(make_node_pool("a", "pool-1", node_count=5))

    restored = ResourceStore(JsonStatePersistence(state_file))

    assert restored.high_water == store.high_water
    pool = restored.get(f"{PARENT}/clusters/a/nodePools/pool-1")
    assert isinstance(pool, NodePool)
    assert pool.spec.node_count == 5
    assert restored.get(f"{PARENT}/clusters/a").node_pools == [pool.name]


def test_persistence_corrupt_file_starts_empty(tmp_path: Path) -> None:
    state_file = tmp_path / "resources.json"
    state_file.write_text("{not json")

    store = ResourceStore(JsonStatePersistence(state_file))

    assert store.all() == []
    assert store.high_water == 0
