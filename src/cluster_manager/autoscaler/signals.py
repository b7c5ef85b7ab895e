"""Load signals consumed by the autoscaler."""

from __future__ import annotations

import math
from typing import Dict, Optional, Protocol

from cluster_manager.schemas.node_pool import NodePool


class LoadSignalSource(Protocol):
    """Reports how many nodes a node pool needs right now.

    ``None`` means no data; the evaluator leaves the pool alone.
    """

    def required_nodes(self, node_pool: NodePool) -> Optional[int]: ...


class StaticLoadSignal:
    """Fixed node requirements, keyed by node pool name."""

    def __init__(self, requirements: Optional[Dict[str, int]] = None) -> None:
        self.requirements: Dict[str, int] = dict(requirements or {})

    def set(self, node_pool: str, nodes: int) -> None:
        self.requirements[node_pool] = nodes

    def required_nodes(self, node_pool: NodePool) -> Optional[int]:
        return self.requirements.get(node_pool.name)


class UtilizationLoadSignal:
    """Sizes a pool so its observed utilization lands on a target.

    With utilization ``u`` on ``n`` nodes and target ``t`` the pool needs
    ``ceil(n * u / t)`` nodes.
    """

    def __init__(self, target_utilization: float = 0.7) -> None:
        if not 0 < target_utilization <= 1:
            raise ValueError("target_utilization must be in (0, 1]")
        self.target_utilization = target_utilization
        self._utilization: Dict[str, float] = {}

    def report(self, node_pool: str, utilization: float) -> None:
        """Record the latest average utilization (0.0 to 1.0) for a pool."""
        self._utilization[node_pool] = max(0.0, utilization)

    def required_nodes(self, node_pool: NodePool) -> Optional[int]:
        utilization = self._utilization.get(node_pool.name)
        if utilization is None:
            return None
        current = node_pool.spec.node_count
        return math.ceil(current * utilization / self.target_utilization)
