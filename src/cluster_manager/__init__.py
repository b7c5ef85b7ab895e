"""Cluster Manager - control plane for managed Kubernetes clusters."""

__version__ = "0.1.0"

# Errors
from cluster_manager.errors import (
    AlreadyExists,
    ControlPlaneError,
    FailedPrecondition,
    InvalidArgument,
    NotFound,
    VersionConflict,
)

# Configuration
from cluster_manager.config import ControlPlaneConfig, Settings

# Core
from cluster_manager.core.control_plane import ControlPlane

# API layer
from cluster_manager.api import api_router

# Web API
from cluster_manager.web import create_app

__all__ = [
    # Version info
    "__version__",
    # Errors
    "AlreadyExists",
    "ControlPlaneError",
    "FailedPrecondition",
    "InvalidArgument",
    "NotFound",
    "VersionConflict",
    # Configuration
    "ControlPlaneConfig",
    "Settings",
    # Core
    "ControlPlane",
    # API
    "api_router",
    # Web
    "create_app",
]
