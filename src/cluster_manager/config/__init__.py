"""Configuration management for the cluster control plane."""

from cluster_manager.config.models import (
    AutoscalerConfig,
    ControlPlaneConfig,
    KeyConfig,
    LoggingConfig,
    ReconcilerConfig,
    StoreConfig,
    SubnetworkConfig,
    VersionConfig,
)
from cluster_manager.config.settings import Settings

__all__ = [
    "AutoscalerConfig",
    "ControlPlaneConfig",
    "KeyConfig",
    "LoggingConfig",
    "ReconcilerConfig",
    "StoreConfig",
    "SubnetworkConfig",
    "VersionConfig",
    "Settings",
]
