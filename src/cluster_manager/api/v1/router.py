"""API v1 endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from cluster_manager.api.v1.endpoints import clusters, health, node_pools, operations, projects

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(
    clusters.router,
    prefix="/projects/{project}/locations/{location}/clusters",
    tags=["clusters"],
)
api_router.include_router(
    node_pools.router,
    prefix="/projects/{project}/locations/{location}/clusters/{cluster}/nodePools",
    tags=["node pools"],
)
api_router.include_router(
    operations.router,
    prefix="/projects/{project}/locations/{location}/operations",
    tags=["operations"],
)
api_router.include_router(projects.router, prefix="/projects/{project}", tags=["projects"])
