"""Control plane facade wiring the store, tracker, engine and services together."""

from __future__ import annotations

from typing import Optional

import structlog

from cluster_manager.autoscaler.evaluator import AutoscalerEvaluator
from cluster_manager.autoscaler.signals import LoadSignalSource, UtilizationLoadSignal
from cluster_manager.config.models import ControlPlaneConfig
from cluster_manager.core.keys import KeyGenerator
from cluster_manager.core.versions import VersionCatalog
from cluster_manager.operations.tracker import OperationTracker
from cluster_manager.reconciler.backend import InfraBackend, SimulatedBackend
from cluster_manager.reconciler.engine import ReconciliationEngine
from cluster_manager.services.cluster_service import ClusterService
from cluster_manager.services.node_pool_service import NodePoolService
from cluster_manager.services.operation_service import OperationService
from cluster_manager.services.router import RequestRouter
from cluster_manager.services.validator import RequestValidator
from cluster_manager.store.persistence import JsonStatePersistence
from cluster_manager.store.resource_store import ResourceStore
from cluster_manager.utils.metrics import ControlPlaneMetrics

logger = structlog.get_logger(__name__)


class ControlPlane:
    """Owns every control-plane component and their background tasks.

    Args:
        config: control-plane configuration; defaults apply when omitted
        backend: infrastructure backend; a ``SimulatedBackend`` by default
        signal: autoscaler load signal; utilization based by default
        metrics: metrics sink shared by all components
    """

    def __init__(
        self,
        config: Optional[ControlPlaneConfig] = None,
        backend: Optional[InfraBackend] = None,
        signal: Optional[LoadSignalSource] = None,
        metrics: Optional[ControlPlaneMetrics] = None,
    ) -> None:
        self.config = config or ControlPlaneConfig()
        self.metrics = metrics or ControlPlaneMetrics()
        self.backend = backend or SimulatedBackend()
        self.signal = signal or UtilizationLoadSignal(self.config.autoscaler.target_utilization)

        persistence = None
        if self.config.store.state_file is not None:
            persistence = JsonStatePersistence(self.config.store.state_file)
        self.store = ResourceStore(persistence)
        self.tracker = OperationTracker(
            history_size=self.config.reconciler.operation_history,
            metrics=self.metrics,
        )
        self.engine = ReconciliationEngine(
            self.store,
            self.tracker,
            self.backend,
            config=self.config.reconciler,
            metrics=self.metrics,
        )

        self.versions = VersionCatalog(self.config.versions)
        self.keys = KeyGenerator(self.config.keys.key_size)
        self.validator = RequestValidator(self.store, self.tracker, self.config.versions)
        self.router = RequestRouter(self.store, self.tracker, self.engine.submit)

        self.clusters = ClusterService(
            self.store,
            self.router,
            self.validator,
            self.versions,
            self.keys,
            self.config.subnetworks,
        )
        self.node_pools = NodePoolService(self.store, self.router, self.validator, self.versions)
        self.operations = OperationService(self.tracker, self.validator, self.engine)
        self.autoscaler = AutoscalerEvaluator(
            self.store,
            self.tracker,
            self.node_pools,
            self.signal,
            config=self.config.autoscaler,
            metrics=self.metrics,
        )

    async def start(self) -> None:
        """Start reconciliation and, when enabled, the autoscaler.

        Resources restored from the state file that never converged are
        picked up by an immediate drift scan.
        """
        await self.engine.start()
        await self.engine.scan()
        if self.config.autoscaler.enabled:
            await self.autoscaler.start()
        logger.info(
            "Control plane started",
            resources=len(self.store.all()),
            autoscaler=self.config.autoscaler.enabled,
        )

    async def shutdown(self) -> None:
        """Stop background tasks; pending operations stay PENDING."""
        await self.autoscaler.stop()
        await self.engine.stop()
        logger.info("Control plane stopped")
