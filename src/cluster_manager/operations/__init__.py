"""Long-running operation tracking."""

from cluster_manager.operations.tracker import OperationTracker

__all__ = ["OperationTracker"]
