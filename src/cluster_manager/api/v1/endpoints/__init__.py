"""API endpoints package."""

from __future__ import annotations

from cluster_manager.api.v1.endpoints import clusters, health, node_pools, operations, projects

__all__ = ["clusters", "health", "node_pools", "operations", "projects"]
