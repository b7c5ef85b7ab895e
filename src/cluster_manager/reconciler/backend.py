"""Infrastructure backends driven by the reconciliation engine."""

from __future__ import annotations

import asyncio
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Optional, Protocol

import structlog

from cluster_manager.schemas.operation import Resource

logger = structlog.get_logger(__name__)


@dataclass
class BackendCall:
    """A recorded backend invocation."""
    action: str
    resource: str
    version: int


class InfraBackend(Protocol):
    """Provisions the compute behind clusters and node pools.

    Implementations raise ``TransientBackendError`` for failures worth
    retrying and ``FatalBackendError`` for the rest.
    """

    async def apply(self, resource: Resource) -> None: ...

    async def delete(self, resource: Resource) -> None: ...


class SimulatedBackend:
    """In-process backend that records calls and replays scripted failures."""

    def __init__(self, latency: float = 0.0) -> None:
        self.latency = latency
        self.calls: List[BackendCall] = []
        self._failures: Dict[str, Deque[Exception]] = defaultdict(deque)

    def fail_next(self, name: str, error: Exception, times: int = 1) -> None:
        """Make the next ``times`` calls for ``name`` raise ``error``."""
        self._failures[name].extend([error] * times)

    def calls_for(self, name: str, action: Optional[str] = None) -> List[BackendCall]:
        return [
            call for call in self.calls
            if call.resource == name and (action is None or call.action == action)
        ]

    async def apply(self, resource: Resource) -> None:
        await self._call("apply", resource)

    async def delete(self, resource: Resource) -> None:
        await self._call("delete", resource)

    async def _call(self, action: str, resource: Resource) -> None:
        self.calls.append(BackendCall(action=action, resource=resource.name, version=resource.version))
        if self.latency:
            await asyncio.sleep(self.latency)
        pending = self._failures.get(resource.name)
        if pending:
            error = pending.popleft()
            logger.debug("Simulated backend failure", action=action, resource=resource.name, error=str(error))
            raise error
