"""Operation tracking and per-resource mutation locks."""

from __future__ import annotations

import asyncio
import time
import uuid
from typing import Dict, List, Optional

import structlog

from cluster_manager.core.names import operation_path, parent_matches, parse_name
from cluster_manager.errors import FailedPrecondition, NotFound
from cluster_manager.schemas.operation import (
    Operation,
    OperationError,
    OperationKind,
    OperationState,
)
from cluster_manager.schemas.resource import utcnow
from cluster_manager.utils.metrics import ControlPlaneMetrics

logger = structlog.get_logger(__name__)

_TRANSITIONS = {
    OperationState.PENDING: {OperationState.RUNNING, OperationState.ABORTED},
    OperationState.RUNNING: {OperationState.DONE, OperationState.ABORTED},
    OperationState.DONE: set(),
    OperationState.ABORTED: set(),
}


def _new_operation_id() -> str:
    return f"operation-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


class OperationTracker:
    """Tracks long-running operations and serializes mutations per resource.

    Creating an operation takes the lock on its target; advancing it to
    DONE or ABORTED releases the lock. At most one non-terminal operation
    targets a resource at any time.
    """

    def __init__(
        self,
        history_size: int = 1000,
        metrics: Optional[ControlPlaneMetrics] = None,
    ) -> None:
        self.history_size = history_size
        self._metrics = metrics
        self._operations: Dict[str, Operation] = {}
        self._locks: Dict[str, str] = {}
        self._finished: Dict[str, asyncio.Event] = {}

    def holder(self, target: str) -> Optional[str]:
        """Name of the operation holding the lock on ``target``, if any."""
        return self._locks.get(target)

    def check_unlocked(self, target: str) -> None:
        holder = self._locks.get(target)
        if holder is not None:
            raise FailedPrecondition(
                f"Operation {holder} is already in progress on {target}"
            )

    def create(
        self,
        kind: OperationKind,
        target: str,
        target_version: int = 0,
    ) -> Operation:
        """Issue a PENDING operation and lock ``target``."""
        self.check_unlocked(target)
        parsed = parse_name(target)
        operation = Operation(
            name=operation_path(parsed.project, parsed.location, _new_operation_id()),
            kind=kind,
            target=target,
            target_version=target_version,
        )
        self._operations[operation.name] = operation
        self._locks[target] = operation.name
        self._finished[operation.name] = asyncio.Event()
        self._record(operation)
        logger.info(
            "Operation created",
            operation=operation.name,
            kind=kind.value,
            resource=target,
        )
        return operation.model_copy()

    def advance(
        self,
        name: str,
        state: OperationState,
        error: Optional[OperationError] = None,
        message: str = "",
    ) -> Operation:
        """Move an operation forward; terminal states release the lock."""
        operation = self._require(name)
        if state not in _TRANSITIONS[operation.state]:
            raise FailedPrecondition(
                f"Operation {name} cannot move from {operation.state.value} to {state.value}"
            )

        operation.state = state
        operation.status_message = message or operation.status_message
        if state.terminal:
            operation.error = error
            operation.end_time = utcnow()
            if self._locks.get(operation.target) == name:
                del self._locks[operation.target]
            self._finished[name].set()
            self._prune()

        self._record(operation)
        logger.info(
            "Operation advanced",
            operation=name,
            state=state.value,
            error=error.code if error else None,
        )
        return operation.model_copy()

    def record_attempt(self, name: str) -> None:
        """Count one backend attempt made on behalf of the operation."""
        self._require(name).attempts += 1

    def request_cancel(self, name: str) -> Operation:
        """Flag an operation for cooperative cancellation."""
        operation = self._require(name)
        if operation.done:
            raise FailedPrecondition(
                f"Operation {name} is already {operation.state.value}"
            )
        operation.cancel_requested = True
        logger.info("Operation cancellation requested", operation=name)
        return operation.model_copy()

    def cancel_requested(self, name: str) -> bool:
        return self._require(name).cancel_requested

    def get(self, name: str) -> Operation:
        return self._require(name).model_copy()

    def list(self, parent: str) -> List[Operation]:
        """Operations in a location (``-`` for all), oldest first."""
        return [
            op.model_copy()
            for op in self._operations.values()
            if parent_matches(parent, parse_name(op.name).parent or "")
        ]

    def active(self) -> List[Operation]:
        return [op.model_copy() for op in self._operations.values() if not op.done]

    async def wait(self, name: str, timeout: Optional[float] = None) -> Operation:
        """Block until the operation is terminal or ``timeout`` elapses.

        A timeout returns the last known state and changes nothing.
        """
        operation = self._require(name)
        finished = self._finished[name]
        if not operation.done:
            try:
                await asyncio.wait_for(finished.wait(), timeout)
            except asyncio.TimeoutError:
                pass
        return operation.model_copy()

    def _require(self, name: str) -> Operation:
        operation = self._operations.get(name)
        if operation is None:
            raise NotFound(f"Operation {name} not found")
        return operation

    def _record(self, operation: Operation) -> None:
        if self._metrics is None:
            return
        self._metrics.record_operation(operation.kind.value, operation.state.value)
        self._metrics.set_active_operations(len(self._locks))

    def _prune(self) -> None:
        finished = [op.name for op in self._operations.values() if op.done]
        for name in finished[: max(0, len(finished) - self.history_size)]:
            del self._operations[name]
            del self._finished[name]
