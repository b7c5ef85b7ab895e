"""Canonical resource names.

Resources are addressed by hierarchical names::

    projects/{project}/locations/{location}
    projects/{project}/locations/{location}/clusters/{cluster}
    projects/{project}/locations/{location}/clusters/{cluster}/nodePools/{node_pool}
    projects/{project}/locations/{location}/operations/{operation}

A location of ``-`` in a parent matches every location when listing.
"""

from __future__ import annotations

import re
from typing import NamedTuple, Optional

from cluster_manager.errors import InvalidArgument

ALL_LOCATIONS = "-"

_RESOURCE_ID = re.compile(r"^[a-z](?:[-a-z0-9]{0,38}[a-z0-9])?$")
_PROJECT_ID = re.compile(r"^[a-z0-9][-a-z0-9]{0,61}$")
_LOCATION_ID = re.compile(r"^(?:-|[a-z0-9][-a-z0-9]*)$")
_OPERATION_ID = re.compile(r"^[a-z0-9][-a-z0-9]*$")


class ResourceName(NamedTuple):
    """Parsed resource name. Unused segments are ``None``."""

    project: str
    location: Optional[str] = None
    cluster: Optional[str] = None
    node_pool: Optional[str] = None
    operation: Optional[str] = None

    @property
    def kind(self) -> str:
        if self.node_pool is not None:
            return "node_pool"
        if self.cluster is not None:
            return "cluster"
        if self.operation is not None:
            return "operation"
        if self.location is not None:
            return "location"
        return "project"

    @property
    def parent(self) -> Optional[str]:
        """Name of the enclosing resource."""
        if self.kind == "node_pool":
            return cluster_path(self.project, self.location, self.cluster)
        if self.kind in ("cluster", "operation"):
            return location_path(self.project, self.location)
        if self.kind == "location":
            return project_path(self.project)
        return None

    def __str__(self) -> str:
        if self.kind == "node_pool":
            return node_pool_path(self.project, self.location, self.cluster, self.node_pool)
        if self.kind == "cluster":
            return cluster_path(self.project, self.location, self.cluster)
        if self.kind == "operation":
            return operation_path(self.project, self.location, self.operation)
        if self.kind == "location":
            return location_path(self.project, self.location)
        return project_path(self.project)


def project_path(project: str) -> str:
    return f"projects/{project}"


def location_path(project: str, location: str) -> str:
    return f"projects/{project}/locations/{location}"


def cluster_path(project: str, location: str, cluster: str) -> str:
    return f"projects/{project}/locations/{location}/clusters/{cluster}"


def node_pool_path(project: str, location: str, cluster: str, node_pool: str) -> str:
    return f"{cluster_path(project, location, cluster)}/nodePools/{node_pool}"


def operation_path(project: str, location: str, operation: str) -> str:
    return f"projects/{project}/locations/{location}/operations/{operation}"


def parse_name(name: str) -> ResourceName:
    """Parse any supported resource name.

    Raises:
        InvalidArgument: if the name is not one of the supported shapes
    """
    parts = name.split("/") if name else []
    if len(parts) < 2 or len(parts) % 2 != 0 or parts[0] != "projects":
        raise InvalidArgument(f"Malformed resource name: {name!r}")

    _check(_PROJECT_ID, parts[1], "project", name)
    if len(parts) == 2:
        return ResourceName(project=parts[1])

    if parts[2] != "locations":
        raise InvalidArgument(f"Malformed resource name: {name!r}")
    _check(_LOCATION_ID, parts[3], "location", name)
    if len(parts) == 4:
        return ResourceName(project=parts[1], location=parts[3])

    collection, ident = parts[4], parts[5]
    if collection == "operations" and len(parts) == 6:
        _check(_OPERATION_ID, ident, "operation", name)
        return ResourceName(project=parts[1], location=parts[3], operation=ident)
    if collection != "clusters":
        raise InvalidArgument(f"Malformed resource name: {name!r}")
    _check(_RESOURCE_ID, ident, "cluster", name)
    if len(parts) == 6:
        return ResourceName(project=parts[1], location=parts[3], cluster=ident)

    if len(parts) != 8 or parts[6] != "nodePools":
        raise InvalidArgument(f"Malformed resource name: {name!r}")
    _check(_RESOURCE_ID, parts[7], "node pool", name)
    return ResourceName(
        project=parts[1], location=parts[3], cluster=ident, node_pool=parts[7]
    )


def parse_kind(name: str, kind: str) -> ResourceName:
    """Parse ``name`` and require it to address a resource of ``kind``."""
    parsed = parse_name(name)
    if parsed.kind != kind:
        raise InvalidArgument(
            f"Expected a {kind.replace('_', ' ')} name, got {name!r}"
        )
    if kind not in ("location", "project") and parsed.location == ALL_LOCATIONS:
        raise InvalidArgument(f"Location wildcard is only valid in parents: {name!r}")
    return parsed


def parent_matches(parent: str, candidate_parent: str) -> bool:
    """Whether ``candidate_parent`` is ``parent``, honoring the location wildcard."""
    if parent == candidate_parent:
        return True
    wanted = parse_name(parent)
    if wanted.location != ALL_LOCATIONS:
        return False
    have = parse_name(candidate_parent)
    return wanted._replace(location=have.location) == have


def _check(pattern: re.Pattern[str], value: str, label: str, name: str) -> None:
    if not pattern.match(value):
        raise InvalidArgument(f"Invalid {label} id {value!r} in {name!r}")
