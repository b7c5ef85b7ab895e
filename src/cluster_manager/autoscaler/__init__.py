"""Autoscaler policy evaluation."""

from cluster_manager.autoscaler.evaluator import AutoscalerEvaluator, ScalingDecision
from cluster_manager.autoscaler.signals import (
    LoadSignalSource,
    StaticLoadSignal,
    UtilizationLoadSignal,
)

__all__ = [
    "AutoscalerEvaluator",
    "ScalingDecision",
    "LoadSignalSource",
    "StaticLoadSignal",
    "UtilizationLoadSignal",
]
