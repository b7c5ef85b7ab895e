"""Error taxonomy for the cluster control plane.

Every failure that crosses the service boundary is a ``ControlPlaneError``
carrying a canonical ``code`` and the HTTP status the API reports it with.
"""

from __future__ import annotations

from typing import Any, Dict


class ControlPlaneError(Exception):
    """Base class for errors surfaced to callers."""

    code: str = "UNKNOWN"
    http_status: int = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Structured form returned by the API."""
        return {"code": self.code, "message": self.message}


class InvalidArgument(ControlPlaneError):
    """Malformed or out-of-range input."""

    code = "INVALID_ARGUMENT"
    http_status = 400


class FailedPrecondition(ControlPlaneError):
    """Valid request, but the resource is in an incompatible state."""

    code = "FAILED_PRECONDITION"
    http_status = 400


class NotFound(ControlPlaneError):
    """Unknown resource or operation."""

    code = "NOT_FOUND"
    http_status = 404


class AlreadyExists(ControlPlaneError):
    """A resource with the requested name already exists."""

    code = "ALREADY_EXISTS"
    http_status = 409


class VersionConflict(ControlPlaneError):
    """Optimistic-concurrency collision; re-read and retry."""

    code = "ABORTED"
    http_status = 409

    def __init__(self, name: str, expected: int, actual: int) -> None:
        self.name = name
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Version conflict on {name}: expected {expected}, current is {actual}"
        )


class BackendError(Exception):
    """Raised by infrastructure backends."""


class TransientBackendError(BackendError):
    """A backend failure worth retrying (timeouts, throttling)."""


class FatalBackendError(BackendError):
    """A backend failure that retrying cannot fix."""
