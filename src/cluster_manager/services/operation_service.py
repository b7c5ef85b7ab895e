"""Operation service for polling, waiting on and cancelling operations."""

from __future__ import annotations

from typing import Optional

import structlog

from cluster_manager.errors import InvalidArgument
from cluster_manager.operations.tracker import OperationTracker
from cluster_manager.reconciler.engine import ReconciliationEngine
from cluster_manager.schemas.operation import ListOperationsResponse, Operation
from cluster_manager.services.validator import RequestValidator

logger = structlog.get_logger(__name__)

MAX_WAIT_SECONDS = 600.0


class OperationService:
    """Service for managing operations."""

    def __init__(
        self,
        tracker: OperationTracker,
        validator: RequestValidator,
        engine: ReconciliationEngine,
    ) -> None:
        self.tracker = tracker
        self.validator = validator
        self.engine = engine

    async def get_operation(self, name: str) -> Operation:
        """Get an operation by name."""
        self.validator.operation_name(name)
        return self.tracker.get(name)

    async def list_operations(self, parent: str) -> ListOperationsResponse:
        """List operations in a location (``-`` for every location)."""
        self.validator.location(parent, allow_wildcard=True)
        return ListOperationsResponse(operations=self.tracker.list(parent))

    async def wait_operation(self, name: str, timeout: Optional[float] = None) -> Operation:
        """Wait for an operation to finish.

        Returns the operation as it stands when it reaches a terminal state
        or when ``timeout`` seconds elapse, whichever comes first.
        """
        self.validator.operation_name(name)
        if timeout is not None and (timeout < 0 or timeout > MAX_WAIT_SECONDS):
            raise InvalidArgument(
                f"timeout must be between 0 and {MAX_WAIT_SECONDS:g} seconds, got {timeout}"
            )
        return await self.tracker.wait(name, timeout)

    async def cancel_operation(self, name: str) -> Operation:
        """Cancel an operation.

        PENDING operations abort immediately and release their resource;
        RUNNING ones abort at the next retry checkpoint.
        """
        self.validator.operation_name(name)
        operation = self.engine.cancel(name)
        logger.info(
            "Cancellation requested",
            operation=name,
            resource=operation.target,
            state=operation.state.value,
        )
        return operation
