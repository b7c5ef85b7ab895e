"""Utility functions and helpers."""

from cluster_manager.utils.logging import setup_logging, get_logger
from cluster_manager.utils.metrics import ControlPlaneMetrics, MetricPoint
from cluster_manager.utils.retry import (
    retry_async,
    RetryAborted,
    RetryConfig,
    RetryError,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "ControlPlaneMetrics",
    "MetricPoint",
    "retry_async",
    "RetryAborted",
    "RetryConfig",
    "RetryError",
]
