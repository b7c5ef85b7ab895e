"""Resource storage."""

from cluster_manager.store.persistence import JsonStatePersistence
from cluster_manager.store.resource_store import ResourceStore

__all__ = ["JsonStatePersistence", "ResourceStore"]
