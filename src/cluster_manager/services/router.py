"""Admission of mutations.

Admission never awaits: reading the resource, checking its status and
lock, writing the new spec and taking the lock happen in one uninterrupted
step, so concurrent callers cannot interleave and a rejected request
leaves no trace.
"""

from __future__ import annotations

from typing import Callable, List, Optional

import structlog

from cluster_manager.core.lifecycle import (
    ClusterOrNodePool,
    admitted_status,
    is_deleting,
    is_running,
)
from cluster_manager.errors import AlreadyExists, FailedPrecondition, VersionConflict
from cluster_manager.operations.tracker import OperationTracker
from cluster_manager.schemas.operation import Admission, OperationKind
from cluster_manager.store.resource_store import ResourceStore

logger = structlog.get_logger(__name__)

Mutation = Callable[[ClusterOrNodePool], ClusterOrNodePool]


class RequestRouter:
    """Admits mutations and hands the resulting operations to the engine."""

    def __init__(
        self,
        store: ResourceStore,
        tracker: OperationTracker,
        submit: Callable[[str], None],
    ) -> None:
        self.store = store
        self.tracker = tracker
        self._submit = submit

    def admit(
        self,
        name: str,
        kind: OperationKind,
        mutate: Mutation,
        expected_version: Optional[int] = None,
    ) -> Admission:
        """Admit a mutation of an existing resource.

        ``mutate`` receives a private copy of the current document and
        returns the desired one; it may raise to reject the request.

        Returns:
            An admission carrying the new operation, or the unchanged
            resource when the request would not change a converged resource.
        """
        resource = self.store.get(name)
        if is_deleting(resource):
            raise FailedPrecondition(f"{name} is being deleted")
        self.tracker.check_unlocked(name)
        if expected_version is not None and expected_version != resource.version:
            raise VersionConflict(name, expected_version, resource.version)

        desired = mutate(resource.model_copy(deep=True))

        if (
            kind != OperationKind.DELETE
            and desired.spec == resource.spec
            and resource.converged
            and is_running(resource)
        ):
            logger.info("Mutation is a no-op", resource=name, kind=kind.value)
            return Admission(resource=resource)

        desired.status = admitted_status(desired, kind)
        desired.status_message = ""
        new_version = self.store.put(desired, resource.version)

        operation = self.tracker.create(kind, name, new_version)
        self._submit(operation.name)
        return Admission(operation=operation)

    def admit_create(self, resources: List[ClusterOrNodePool]) -> Admission:
        """Admit creation of ``resources``; the first one is the operation target.

        Nothing is written unless every name is free.
        """
        for resource in resources:
            if self.store.exists(resource.name):
                raise AlreadyExists(f"Resource {resource.name} already exists")
        target = resources[0]
        self.tracker.check_unlocked(target.name)

        created = [
            self.store.create(
                resource.model_copy(
                    update={"status": admitted_status(resource, OperationKind.CREATE)}
                )
            )
            for resource in resources
        ]
        operation = self.tracker.create(OperationKind.CREATE, target.name, created[0].version)
        self._submit(operation.name)
        return Admission(operation=operation)
