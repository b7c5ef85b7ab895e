"""Read-only response schemas."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel

from cluster_manager.schemas.cluster import Cluster, JsonWebKey
from cluster_manager.schemas.node_pool import NodePool


class ServerConfig(BaseModel):
    """Versions and image types offered in a location."""
    default_cluster_version: str
    valid_master_versions: List[str]
    valid_node_versions: List[str]
    default_image_type: str
    valid_image_types: List[str]


class JsonWebKeys(BaseModel):
    keys: List[JsonWebKey]


class UsableSubnetwork(BaseModel):
    subnetwork: str
    network: str
    ip_cidr_range: str
    network_project: str


class ListUsableSubnetworksResponse(BaseModel):
    subnetworks: List[UsableSubnetwork]
    next_page_token: str = ""


class ListClustersResponse(BaseModel):
    clusters: List[Cluster]
    next_page_token: str = ""


class ListNodePoolsResponse(BaseModel):
    node_pools: List[NodePool]
    next_page_token: str = ""
