"""Core control-plane components."""

from cluster_manager.core.keys import KeyGenerator
from cluster_manager.core.names import ResourceName, parse_name
from cluster_manager.core.versions import VersionCatalog

__all__ = ["KeyGenerator", "ResourceName", "parse_name", "VersionCatalog"]
