"""Autoscaler policy evaluator.

Periodically compares each autoscaled node pool's desired size with what
its load signal asks for and resizes it through the regular admission
path, so autoscaler changes obey the same locks and version rules as
external callers.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import List, Optional

import structlog

from cluster_manager.autoscaler.signals import LoadSignalSource
from cluster_manager.config.models import AutoscalerConfig
from cluster_manager.core.lifecycle import is_running
from cluster_manager.errors import FailedPrecondition, NotFound, VersionConflict
from cluster_manager.operations.tracker import OperationTracker
from cluster_manager.schemas.requests import SetNodePoolSizeRequest
from cluster_manager.services.node_pool_service import NodePoolService, clamp_node_count
from cluster_manager.store.resource_store import ResourceStore
from cluster_manager.utils.metrics import ControlPlaneMetrics

logger = structlog.get_logger(__name__)


@dataclass
class ScalingDecision:
    """Outcome of evaluating one node pool."""
    node_pool: str
    current: int
    target: int
    decision: str
    operation: Optional[str] = None


class AutoscalerEvaluator:
    """Resizes autoscaled node pools toward their load signal."""

    def __init__(
        self,
        store: ResourceStore,
        tracker: OperationTracker,
        node_pools: NodePoolService,
        signal: LoadSignalSource,
        config: Optional[AutoscalerConfig] = None,
        metrics: Optional[ControlPlaneMetrics] = None,
    ) -> None:
        self.store = store
        self.tracker = tracker
        self.node_pools = node_pools
        self.signal = signal
        self.config = config or AutoscalerConfig()
        self._metrics = metrics
        self._task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def tick(self) -> List[ScalingDecision]:
        """Evaluate every eligible node pool once."""
        decisions = []
        for node_pool in self.store.node_pools():
            autoscaling = node_pool.spec.autoscaling
            if not autoscaling.enabled or not is_running(node_pool):
                continue
            if self.tracker.holder(node_pool.name) is not None:
                continue

            required = self.signal.required_nodes(node_pool)
            if required is None:
                continue
            current = node_pool.spec.node_count
            target = clamp_node_count(required, autoscaling)
            if target == current:
                decisions.append(self._decide(node_pool.name, current, target, "hold"))
                continue

            try:
                admission = await self.node_pools.set_node_pool_size(
                    node_pool.name,
                    SetNodePoolSizeRequest(node_count=target, expected_version=node_pool.version),
                )
            except (FailedPrecondition, VersionConflict, NotFound) as e:
                logger.info(
                    "Autoscaler resize skipped",
                    node_pool=node_pool.name,
                    target=target,
                    reason=e.message,
                )
                decisions.append(self._decide(node_pool.name, current, target, "skipped"))
                continue

            decision = "scale_up" if target > current else "scale_down"
            operation = admission.operation.name if admission.operation else None
            logger.info(
                "Autoscaler resized node pool",
                node_pool=node_pool.name,
                current=current,
                target=target,
                operation=operation,
            )
            decisions.append(self._decide(node_pool.name, current, target, decision, operation))
        return decisions

    async def start(self) -> None:
        """Start the evaluation loop."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop(), name="autoscaler")
        logger.info("Autoscaler started", interval=self.config.interval)

    async def stop(self) -> None:
        """Stop the evaluation loop."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Autoscaler stopped")

    def _decide(
        self,
        node_pool: str,
        current: int,
        target: int,
        decision: str,
        operation: Optional[str] = None,
    ) -> ScalingDecision:
        if self._metrics is not None:
            self._metrics.record_autoscaler_decision(decision)
        return ScalingDecision(node_pool, current, target, decision, operation)

    async def _loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.config.interval)
                await self.tick()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Error in autoscaler loop", error=str(e))
