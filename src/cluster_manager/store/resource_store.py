"""Versioned resource store with optimistic concurrency."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

import structlog

from cluster_manager.core.names import parent_matches, parse_name
from cluster_manager.errors import AlreadyExists, NotFound, VersionConflict
from cluster_manager.schemas.cluster import Cluster
from cluster_manager.schemas.node_pool import NodePool
from cluster_manager.schemas.operation import Resource
from cluster_manager.schemas.resource import utcnow
from cluster_manager.store.persistence import JsonStatePersistence
from cluster_manager.store.query import paginate, parse_filter, query_scope

logger = structlog.get_logger(__name__)

CLUSTER_FILTER_FIELDS = ("status", "network", "master_version")
NODE_POOL_FILTER_FIELDS = ("status", "machine_type", "version")


def _filter_value(resource: Resource, field: str) -> str:
    if field == "status":
        return resource.status.value
    return str(getattr(resource.spec, field))


class ResourceStore:
    """Maps resource names to versioned cluster and node pool documents.

    Every read returns a deep copy and every write stores one, so callers
    never share mutable state with the store. Methods do not yield to the
    event loop; each call is atomic with respect to other coroutines.
    """

    def __init__(self, persistence: Optional[JsonStatePersistence] = None) -> None:
        self._resources: Dict[str, Resource] = {}
        self._last_seq = 0
        self._persistence = persistence
        if persistence is not None:
            resources, self._last_seq = persistence.load()
            self._resources = {r.name: r for r in resources}

    @property
    def high_water(self) -> int:
        """Creation sequence of the most recently created resource."""
        return self._last_seq

    def get(self, name: str) -> Resource:
        resource = self._resources.get(name)
        if resource is None:
            raise NotFound(f"Resource {name} not found")
        return resource.model_copy(deep=True)

    def find(self, name: str) -> Optional[Resource]:
        resource = self._resources.get(name)
        return resource.model_copy(deep=True) if resource is not None else None

    def exists(self, name: str) -> bool:
        return name in self._resources

    def create(self, resource: Resource) -> Resource:
        """Insert a new resource at version 1."""
        if resource.name in self._resources:
            raise AlreadyExists(f"Resource {resource.name} already exists")
        self._last_seq += 1
        now = utcnow()
        stored = resource.model_copy(
            deep=True,
            update={
                "version": 1,
                "create_seq": self._last_seq,
                "create_time": now,
                "update_time": now,
            },
        )
        self._resources[stored.name] = stored
        if isinstance(stored, NodePool):
            self._link_node_pool(stored.name, add=True)
        self._save()
        logger.debug("Resource created", resource=stored.name, seq=stored.create_seq)
        return stored.model_copy(deep=True)

    def put(self, resource: Resource, expected_version: int) -> int:
        """Replace a resource if ``expected_version`` is current.

        Returns:
            The new version.

        Raises:
            NotFound: the resource does not exist
            VersionConflict: ``expected_version`` is stale; nothing is written
        """
        current = self._resources.get(resource.name)
        if current is None:
            raise NotFound(f"Resource {resource.name} not found")
        if current.version != expected_version:
            raise VersionConflict(resource.name, expected_version, current.version)

        new_version = current.version + 1
        update: Dict[str, Any] = {
            "version": new_version,
            "create_seq": current.create_seq,
            "create_time": current.create_time,
            "update_time": utcnow(),
        }
        if isinstance(current, Cluster):
            update["node_pools"] = list(current.node_pools)
        self._resources[resource.name] = resource.model_copy(deep=True, update=update)
        self._save()
        logger.debug("Resource updated", resource=resource.name, version=new_version)
        return new_version

    def update_status(
        self,
        name: str,
        status: Any,
        message: str = "",
        converged: bool = False,
    ) -> Resource:
        """Record reconciler observations without bumping the version.

        With ``converged`` the current spec is recorded as observed.
        """
        current = self._resources.get(name)
        if current is None:
            raise NotFound(f"Resource {name} not found")
        update: Dict[str, Any] = {"status": status, "status_message": message}
        if converged:
            update["observed"] = current.spec
            update["observed_version"] = current.version
        updated = current.model_copy(update=update)
        self._resources[name] = updated
        self._save()
        return updated.model_copy(deep=True)

    def restore_spec(self, name: str, spec: Any, status: Any, message: str = "") -> Resource:
        """Roll the desired spec back after a cancelled mutation.

        This is a desired-state write, so the version is bumped.
        """
        current = self._resources.get(name)
        if current is None:
            raise NotFound(f"Resource {name} not found")
        new_version = current.version + 1
        update: Dict[str, Any] = {
            "spec": spec,
            "status": status,
            "status_message": message,
            "version": new_version,
            "update_time": utcnow(),
        }
        if spec == current.observed:
            update["observed_version"] = new_version
        updated = current.model_copy(update=update)
        self._resources[name] = updated
        self._save()
        logger.debug("Resource spec restored", resource=name, version=new_version)
        return updated.model_copy(deep=True)

    def delete(self, name: str) -> None:
        removed = self._resources.pop(name, None)
        if removed is None:
            raise NotFound(f"Resource {name} not found")
        if isinstance(removed, NodePool):
            self._link_node_pool(name, add=False)
        self._save()
        logger.debug("Resource deleted", resource=name)

    def all(self) -> List[Resource]:
        """Every resource in creation order."""
        return [
            r.model_copy(deep=True)
            for r in sorted(self._resources.values(), key=lambda r: r.create_seq)
        ]

    def clusters(self) -> List[Cluster]:
        return [r for r in self.all() if isinstance(r, Cluster)]

    def node_pools(self) -> List[NodePool]:
        return [r for r in self.all() if isinstance(r, NodePool)]

    def children(self, parent: str) -> List[Resource]:
        """Direct children of ``parent`` in creation order."""
        return [
            r for r in self.all()
            if parent_matches(parent, parse_name(r.name).parent or "")
        ]

    def list(
        self,
        parent: str,
        page_token: str = "",
        page_size: int = 0,
        filter_expr: str = "",
    ) -> Tuple[List[Resource], str]:
        """List direct children of ``parent`` one page at a time."""
        kind = parse_name(parent).kind
        allowed = CLUSTER_FILTER_FIELDS if kind == "location" else NODE_POOL_FILTER_FIELDS
        predicate = parse_filter(filter_expr, allowed)

        items = self.children(parent)
        if predicate is not None:
            field, value = predicate
            items = [r for r in items if _filter_value(r, field) == value]

        return paginate(
            items,
            seq_of=lambda r: r.create_seq,
            page_size=page_size,
            page_token=page_token,
            scope=query_scope(parent, filter_expr or ""),
            high_water=self._last_seq,
        )

    def _link_node_pool(self, name: str, add: bool) -> None:
        parent = self._resources.get(parse_name(name).parent or "")
        if not isinstance(parent, Cluster):
            return
        refs = [ref for ref in parent.node_pools if ref != name]
        if add:
            refs.append(name)
        self._resources[parent.name] = parent.model_copy(update={"node_pools": refs})

    def _save(self) -> None:
        if self._persistence is not None:
            self._persistence.save(self.all(), self._last_seq)
