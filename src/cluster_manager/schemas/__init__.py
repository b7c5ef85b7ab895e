"""Pydantic schemas for resources, operations and requests."""

from __future__ import annotations

from cluster_manager.schemas import cluster, node_pool, operation, requests, server

__all__ = ["cluster", "node_pool", "operation", "requests", "server"]
