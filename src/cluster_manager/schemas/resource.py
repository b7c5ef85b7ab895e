"""Fields shared by every stored resource document."""

from __future__ import annotations

from datetime import datetime, UTC
from typing import Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(UTC)


class ResourceDocument(BaseModel):
    """Versioned resource document held by the resource store.

    ``spec`` is the desired state and ``observed`` the last spec the
    reconciler converged; subclasses narrow both types and ``status``.
    """

    name: str
    status_message: str = ""
    version: int = Field(0, ge=0, description="Bumped once per admitted mutation")
    observed_version: int = Field(0, ge=0, description="Version of the last converged spec")
    create_time: datetime = Field(default_factory=utcnow)
    update_time: datetime = Field(default_factory=utcnow)
    create_seq: int = Field(0, ge=0, description="Store-assigned creation order")

    @property
    def converged(self) -> bool:
        """Whether the desired spec has been applied."""
        observed = getattr(self, "observed", None)
        return observed is not None and observed == getattr(self, "spec")
