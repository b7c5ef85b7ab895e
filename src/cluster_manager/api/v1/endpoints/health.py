"""Health check endpoints."""

from __future__ import annotations

from datetime import datetime, UTC
from typing import Dict

from fastapi import APIRouter, Depends

from cluster_manager import __version__
from cluster_manager.api.v1.deps import get_control_plane
from cluster_manager.core.control_plane import ControlPlane

router = APIRouter()


@router.get("/")
async def health_check() -> Dict[str, str]:
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "service": "cluster-manager",
    }


@router.get("/detailed")
async def detailed_health_check(
    control_plane: ControlPlane = Depends(get_control_plane),
) -> Dict[str, object]:
    """Health check with reconciler and autoscaler status."""
    engine = control_plane.engine
    return {
        "status": "healthy" if engine.running else "degraded",
        "timestamp": datetime.now(UTC).isoformat(),
        "service": "cluster-manager",
        "version": __version__,
        "components": {
            "reconciler": "running" if engine.running else "stopped",
            "autoscaler": "running" if control_plane.autoscaler.running else "stopped",
        },
        "queue_depth": engine.queue_depth,
        "active_operations": len(control_plane.tracker.active()),
        "resources": len(control_plane.store.all()),
    }
