"""Reconciliation engine.

Drives infrastructure toward the desired state recorded in the resource
store, one operation per resource at a time. Operations arrive on a queue
from admission (``submit``) or from the periodic drift scan.
"""

from __future__ import annotations

import asyncio
from typing import List, Optional

import structlog

from cluster_manager.config.models import ReconcilerConfig
from cluster_manager.core.lifecycle import (
    ClusterOrNodePool,
    error_status,
    is_deleting,
    is_error,
    is_running,
    steady_status,
)
from cluster_manager.core.names import parse_name
from cluster_manager.errors import (
    ControlPlaneError,
    FatalBackendError,
    TransientBackendError,
)
from cluster_manager.operations.tracker import OperationTracker
from cluster_manager.reconciler.backend import InfraBackend
from cluster_manager.schemas.cluster import Cluster
from cluster_manager.schemas.node_pool import NodePool
from cluster_manager.schemas.operation import (
    Operation,
    OperationError,
    OperationKind,
    OperationState,
)
from cluster_manager.store.resource_store import ResourceStore
from cluster_manager.utils.metrics import ControlPlaneMetrics
from cluster_manager.utils.retry import RetryAborted, RetryError, retry_async

logger = structlog.get_logger(__name__)

_CONVERGING_KINDS = (OperationKind.CREATE, OperationKind.RECONCILE)


class ReconciliationEngine:
    """Worker pool that claims operations and drives the backend."""

    def __init__(
        self,
        store: ResourceStore,
        tracker: OperationTracker,
        backend: InfraBackend,
        config: Optional[ReconcilerConfig] = None,
        metrics: Optional[ControlPlaneMetrics] = None,
    ) -> None:
        self.store = store
        self.tracker = tracker
        self.backend = backend
        self.config = config or ReconcilerConfig()
        self._retry = self.config.retry_config()
        self._metrics = metrics
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._workers: List[asyncio.Task] = []
        self._scan_task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def queue_depth(self) -> int:
        return self._queue.qsize()

    def submit(self, operation_name: str) -> None:
        """Queue an operation for a worker."""
        self._queue.put_nowait(operation_name)

    async def start(self) -> None:
        """Start the workers and the drift scan loop."""
        if self._running:
            return
        self._running = True
        self._workers = [
            asyncio.create_task(self._worker(index), name=f"reconciler-{index}")
            for index in range(self.config.workers)
        ]
        self._scan_task = asyncio.create_task(self._scan_loop(), name="reconciler-scan")
        logger.info("Reconciliation engine started", workers=self.config.workers)

    async def stop(self) -> None:
        """Stop the workers; queued operations stay PENDING."""
        self._running = False
        tasks = [*self._workers, *([self._scan_task] if self._scan_task else [])]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._workers = []
        self._scan_task = None
        logger.info("Reconciliation engine stopped")

    async def run_pending(self) -> List[Operation]:
        """Process everything queued so far in the calling task."""
        processed = []
        while not self._queue.empty():
            name = self._queue.get_nowait()
            try:
                processed.append(await self.process(name))
            finally:
                self._queue.task_done()
        return processed

    async def scan(self) -> List[Operation]:
        """Issue operations for resources that drifted from their desired state.

        Resources in ERROR are left alone until a caller corrects them.
        """
        issued = []
        for resource in self.store.all():
            if self.tracker.holder(resource.name) is not None or is_error(resource):
                continue
            if isinstance(resource, NodePool) and not self._parent_ready(resource):
                continue

            if is_deleting(resource):
                kind = OperationKind.DELETE
            elif not resource.converged:
                kind = OperationKind.RECONCILE
            else:
                continue

            operation = self.tracker.create(kind, resource.name, resource.version)
            self.submit(operation.name)
            issued.append(operation)

        if issued:
            logger.info("Drift scan issued operations", count=len(issued))
        return issued

    async def process(self, name: str) -> Operation:
        """Drive one operation to a terminal state."""
        operation = self.tracker.get(name)
        if operation.done:
            return operation
        log = logger.bind(operation=name, resource=operation.target, kind=operation.kind.value)

        if operation.cancel_requested:
            return self._cancel(operation)

        operation = self.tracker.advance(name, OperationState.RUNNING, message="Reconciling")
        resource = self.store.find(operation.target)
        if resource is None:
            return self.tracker.advance(
                name,
                OperationState.ABORTED,
                OperationError(code="NOT_FOUND", message=f"{operation.target} no longer exists"),
            )

        try:
            if operation.kind == OperationKind.DELETE:
                await self._delete(operation, resource)
            else:
                await self._converge(operation, resource)
        except RetryAborted:
            return self._cancel(operation)
        except RetryError as e:
            return self._fail(
                operation,
                "UNAVAILABLE",
                f"Backend unavailable after {e.attempts} attempts: {e.last_exception}",
            )
        except FatalBackendError as e:
            return self._fail(operation, "INTERNAL", f"Backend failed: {e}")
        except ControlPlaneError as e:
            return self._fail(operation, e.code, e.message)
        except Exception as e:
            log.exception("Unexpected reconciliation failure")
            return self._fail(operation, "INTERNAL", f"Unexpected failure: {e}")

        log.info("Operation converged")
        return self.tracker.advance(name, OperationState.DONE, message="Done")

    async def _converge(self, operation: Operation, resource: ClusterOrNodePool) -> None:
        if resource.converged:
            logger.info(
                "Desired spec already applied, skipping backend",
                operation=operation.name,
                resource=resource.name,
            )
        else:
            await self._call_with_retry(operation, "apply", resource)
        self.store.update_status(resource.name, steady_status(resource), converged=True)

        if isinstance(resource, Cluster) and operation.kind in _CONVERGING_KINDS:
            for child in self.store.children(resource.name):
                if isinstance(child, NodePool) and not child.converged and not is_deleting(child):
                    await self._call_with_retry(operation, "apply", child)
                    self.store.update_status(child.name, steady_status(child), converged=True)

    async def _delete(self, operation: Operation, resource: ClusterOrNodePool) -> None:
        if isinstance(resource, Cluster):
            for child in self.store.children(resource.name):
                await self._call_with_retry(operation, "delete", child)
                self.store.delete(child.name)
        await self._call_with_retry(operation, "delete", resource)
        self.store.delete(resource.name)

    async def _call_with_retry(
        self,
        operation: Operation,
        action: str,
        resource: ClusterOrNodePool,
    ) -> None:
        await retry_async(
            self._call_backend,
            action,
            resource,
            config=self._retry,
            should_abort=lambda: self.tracker.cancel_requested(operation.name),
            on_attempt=lambda _attempt: self.tracker.record_attempt(operation.name),
        )

    async def _call_backend(self, action: str, resource: ClusterOrNodePool) -> None:
        try:
            if action == "delete":
                await self.backend.delete(resource)
            else:
                await self.backend.apply(resource)
        except TransientBackendError:
            self._record_attempt(action, "transient")
            raise
        except FatalBackendError:
            self._record_attempt(action, "fatal")
            raise
        self._record_attempt(action, "success")

    def cancel(self, name: str) -> Operation:
        """Cancel an operation.

        A PENDING operation is rolled back and aborted at once. A RUNNING one
        is flagged and aborts at its next retry checkpoint.
        """
        operation = self.tracker.get(name)
        if operation.state == OperationState.PENDING:
            return self._cancel(operation)
        return self.tracker.request_cancel(name)

    def _cancel(self, operation: Operation) -> Operation:
        """Abort a cancelled operation and return the resource to its last stable state."""
        resource = self.store.find(operation.target)
        if resource is not None:
            if operation.kind == OperationKind.DELETE or resource.converged:
                status = steady_status(resource) if resource.observed is not None else error_status(resource)
                self.store.update_status(resource.name, status, "Operation cancelled")
            elif resource.observed is not None:
                self.store.restore_spec(
                    resource.name,
                    resource.observed,
                    steady_status(resource),
                    "Operation cancelled",
                )
            else:
                self.store.update_status(
                    resource.name,
                    error_status(resource),
                    "Operation cancelled before the resource was provisioned",
                )

        logger.info("Operation cancelled", operation=operation.name, resource=operation.target)
        return self.tracker.advance(
            operation.name,
            OperationState.ABORTED,
            OperationError(code="CANCELLED", message="Operation cancelled"),
            message="Cancelled",
        )

    def _fail(self, operation: Operation, code: str, message: str) -> Operation:
        if self.store.exists(operation.target):
            resource = self.store.get(operation.target)
            self.store.update_status(resource.name, error_status(resource), message)
        logger.error(
            "Operation aborted",
            operation=operation.name,
            resource=operation.target,
            code=code,
            error=message,
        )
        return self.tracker.advance(
            operation.name,
            OperationState.ABORTED,
            OperationError(code=code, message=message),
            message=message,
        )

    def _parent_ready(self, node_pool: NodePool) -> bool:
        parent_name = parse_name(node_pool.name).parent or ""
        if self.tracker.holder(parent_name) is not None:
            return False
        parent = self.store.find(parent_name)
        return parent is not None and is_running(parent)

    def _record_attempt(self, action: str, outcome: str) -> None:
        if self._metrics is not None:
            self._metrics.record_backend_attempt(action, outcome)

    async def _worker(self, index: int) -> None:
        while True:
            name = await self._queue.get()
            try:
                await self.process(name)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Reconciliation worker error", worker=index, operation=name, error=str(e))
            finally:
                self._queue.task_done()

    async def _scan_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.config.scan_interval)
                await self.scan()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Error in drift scan loop", error=str(e))
