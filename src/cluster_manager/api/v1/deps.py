"""Shared endpoint dependencies."""

from __future__ import annotations

from typing import Optional

from fastapi import Request

from cluster_manager.core.control_plane import ControlPlane
from cluster_manager.schemas.operation import Admission


def get_control_plane(request: Request) -> ControlPlane:
    """The control plane attached to the application."""
    return request.app.state.control_plane


async def settle(
    control_plane: ControlPlane,
    admission: Admission,
    wait_seconds: Optional[float],
) -> Admission:
    """Optionally wait for an admitted operation before responding."""
    if not wait_seconds or admission.operation is None:
        return admission
    operation = await control_plane.operations.wait_operation(
        admission.operation.name, wait_seconds
    )
    return Admission(operation=operation)
