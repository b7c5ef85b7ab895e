"""Background reconciliation of desired state against infrastructure."""

from cluster_manager.reconciler.backend import (
    BackendCall,
    InfraBackend,
    SimulatedBackend,
)
from cluster_manager.reconciler.engine import ReconciliationEngine

__all__ = [
    "BackendCall",
    "InfraBackend",
    "SimulatedBackend",
    "ReconciliationEngine",
]
