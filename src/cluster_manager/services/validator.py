"""Admission checks.

Every check either returns normally or raises ``InvalidArgument`` /
``FailedPrecondition``; none of them writes anything.
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, List

from cluster_manager.config.models import VersionConfig
from cluster_manager.core.lifecycle import ClusterOrNodePool, is_deleting
from cluster_manager.core.names import ALL_LOCATIONS, ResourceName, parse_kind
from cluster_manager.errors import FailedPrecondition, InvalidArgument, NotFound
from cluster_manager.operations.tracker import OperationTracker
from cluster_manager.schemas.cluster import Cluster
from cluster_manager.schemas.node_pool import NodePool, NodePoolAutoscaling
from cluster_manager.store.resource_store import ResourceStore

MAX_NODES_PER_POOL = 1000
MAX_LABELS = 64

_LABEL_KEY = re.compile(r"^[a-z][-_a-z0-9]{0,62}$")
_LABEL_VALUE = re.compile(r"^[-_a-z0-9]{0,63}$")
_ZONE = re.compile(r"^[a-z]+-[a-z]+\d+-[a-z]$")

LOGGING_SERVICES = ("logging.googleapis.com/kubernetes", "none")
MONITORING_SERVICES = ("monitoring.googleapis.com/kubernetes", "none")


def is_zone(location: str) -> bool:
    """Whether ``location`` names a zone rather than a region."""
    return bool(_ZONE.match(location))


class RequestValidator:
    """Validates requests against field rules and current resource state."""

    def __init__(
        self,
        store: ResourceStore,
        tracker: OperationTracker,
        versions: VersionConfig,
    ) -> None:
        self.store = store
        self.tracker = tracker
        self.versions = versions

    # Names

    def location(self, name: str, allow_wildcard: bool = False) -> ResourceName:
        parsed = parse_kind(name, "location")
        if parsed.location == ALL_LOCATIONS and not allow_wildcard:
            raise InvalidArgument(f"A concrete location is required, got {name!r}")
        return parsed

    def project(self, name: str) -> ResourceName:
        return parse_kind(name, "project")

    def cluster_name(self, name: str) -> ResourceName:
        return parse_kind(name, "cluster")

    def node_pool_name(self, name: str) -> ResourceName:
        return parse_kind(name, "node_pool")

    def operation_name(self, name: str) -> ResourceName:
        return parse_kind(name, "operation")

    # Fields

    def autoscaling(self, autoscaling: NodePoolAutoscaling) -> None:
        if autoscaling.min_node_count > autoscaling.max_node_count:
            raise InvalidArgument(
                f"Autoscaling min_node_count ({autoscaling.min_node_count}) must not exceed "
                f"max_node_count ({autoscaling.max_node_count})"
            )
        if autoscaling.max_node_count > MAX_NODES_PER_POOL:
            raise InvalidArgument(
                f"Autoscaling max_node_count must be at most {MAX_NODES_PER_POOL}"
            )
        if autoscaling.enabled and autoscaling.max_node_count < 1:
            raise InvalidArgument("Autoscaling max_node_count must be at least 1 when enabled")

    def node_count(self, count: int, autoscaling: NodePoolAutoscaling) -> None:
        if count < 0 or count > MAX_NODES_PER_POOL:
            raise InvalidArgument(
                f"node_count must be between 0 and {MAX_NODES_PER_POOL}, got {count}"
            )
        if autoscaling.enabled and not (
            autoscaling.min_node_count <= count <= autoscaling.max_node_count
        ):
            raise InvalidArgument(
                f"node_count {count} is outside the autoscaling bounds "
                f"[{autoscaling.min_node_count}, {autoscaling.max_node_count}]"
            )

    def image_type(self, image_type: str) -> None:
        if image_type not in self.versions.valid_image_types:
            raise InvalidArgument(
                f"Unsupported image type {image_type!r}; expected one of "
                f"{', '.join(self.versions.valid_image_types)}"
            )

    def labels(self, labels: Dict[str, str]) -> None:
        if len(labels) > MAX_LABELS:
            raise InvalidArgument(f"At most {MAX_LABELS} labels are allowed")
        for key, value in labels.items():
            if not _LABEL_KEY.match(key):
                raise InvalidArgument(f"Invalid label key {key!r}")
            if not _LABEL_VALUE.match(value):
                raise InvalidArgument(f"Invalid label value {value!r} for key {key!r}")

    def cluster_locations(self, primary: str, locations: Iterable[str]) -> List[str]:
        """Zones a cluster's nodes may run in.

        A zonal cluster must keep its own zone; a regional cluster may only
        use zones inside its region.
        """
        zones = list(locations)
        for zone in zones:
            if not is_zone(zone):
                raise InvalidArgument(f"Invalid zone {zone!r}")
        if len(set(zones)) != len(zones):
            raise InvalidArgument("Cluster locations must not repeat")
        if is_zone(primary):
            if primary not in zones:
                raise InvalidArgument(f"Cluster locations must include the primary zone {primary}")
        else:
            outside = [zone for zone in zones if not zone.startswith(f"{primary}-")]
            if outside:
                raise InvalidArgument(
                    f"Zones {', '.join(outside)} are outside region {primary}"
                )
        return zones

    def service(self, value: str, allowed: Iterable[str], label: str) -> None:
        allowed = tuple(allowed)
        if value not in allowed:
            raise InvalidArgument(
                f"Unsupported {label} {value!r}; expected one of {', '.join(allowed)}"
            )

    # State

    def mutable(self, resource: ClusterOrNodePool) -> None:
        if is_deleting(resource):
            raise FailedPrecondition(f"{resource.name} is being deleted")

    def node_pool_parent(self, cluster_name: str) -> Cluster:
        """The parent cluster, if it can accept node pool mutations."""
        parent = self.store.find(cluster_name)
        if not isinstance(parent, Cluster):
            raise NotFound(f"Cluster {cluster_name} not found")
        if is_deleting(parent):
            raise FailedPrecondition(f"Cluster {cluster_name} is being deleted")
        if parent.observed is None:
            raise FailedPrecondition(f"Cluster {cluster_name} has not finished provisioning")
        self.tracker.check_unlocked(cluster_name)
        return parent

    def cluster_deletable(self, cluster: Cluster) -> None:
        for node_pool in cluster.node_pools:
            holder = self.tracker.holder(node_pool)
            if holder is not None:
                raise FailedPrecondition(
                    f"Operation {holder} is in progress on node pool {node_pool}"
                )

    def require_node_pool(self, name: str) -> NodePool:
        resource = self.store.find(name)
        if not isinstance(resource, NodePool):
            raise NotFound(f"Node pool {name} not found")
        return resource

    def require_cluster(self, name: str) -> Cluster:
        resource = self.store.find(name)
        if not isinstance(resource, Cluster):
            raise NotFound(f"Cluster {name} not found")
        return resource
