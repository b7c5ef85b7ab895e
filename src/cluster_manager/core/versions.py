"""Kubernetes version catalog and alias resolution."""

from __future__ import annotations

import re
from typing import List, Optional, Tuple

from cluster_manager.config.models import VersionConfig
from cluster_manager.errors import InvalidArgument

_FULL_VERSION = re.compile(r"^(\d+)\.(\d+)\.(\d+)-gke\.(\d+)$")
_PARTIAL_VERSION = re.compile(r"^(\d+)\.(\d+)(?:\.(\d+))?$")

MASTER_ALIAS = "-"
LATEST_ALIAS = "latest"


def version_key(version: str) -> Tuple[int, int, int, int]:
    """Sort key for a full ``1.X.Y-gke.N`` version."""
    match = _FULL_VERSION.match(version)
    if not match:
        raise InvalidArgument(f"Malformed version {version!r}")
    return tuple(int(part) for part in match.groups())  # type: ignore[return-value]


class VersionCatalog:
    """Resolves requested versions against the versions the service offers.

    Accepted forms:

    - ``latest``: the highest valid version
    - ``1.X``: the highest valid version in the ``1.X`` minor
    - ``1.X.Y``: the highest valid ``gke.N`` build of ``1.X.Y``
    - ``1.X.Y-gke.N``: exactly that version
    - ``-``: the cluster's master version (node pools only)
    - empty: the default version (the master version for node pools)
    """

    def __init__(self, config: VersionConfig) -> None:
        self.config = config
        self._master = sorted(config.valid_master_versions, key=version_key, reverse=True)
        self._node = sorted(config.valid_node_versions, key=version_key, reverse=True)

    @property
    def default_version(self) -> str:
        return self.config.default_version

    @property
    def master_versions(self) -> List[str]:
        return list(self._master)

    @property
    def node_versions(self) -> List[str]:
        return list(self._node)

    def resolve_master(self, requested: str) -> str:
        """Resolve a requested master version."""
        if requested == MASTER_ALIAS:
            raise InvalidArgument("The '-' alias is only valid for node versions")
        return self._resolve(requested, self._master, "master")

    def resolve_node(self, requested: str, master_version: Optional[str]) -> str:
        """Resolve a requested node version; never newer than the master.

        An empty request follows the master version when there is one.
        """
        if not requested and master_version:
            requested = MASTER_ALIAS
        if requested == MASTER_ALIAS:
            if not master_version:
                raise InvalidArgument("No master version to resolve '-' against")
            resolved = master_version
        else:
            candidates = self._node
            if master_version:
                ceiling = version_key(master_version)
                candidates = [v for v in self._node if version_key(v) <= ceiling]
            resolved = self._resolve(requested, candidates, "node")

        if master_version and version_key(resolved) > version_key(master_version):
            raise InvalidArgument(
                f"Node version {resolved} is newer than master version {master_version}"
            )
        return resolved

    def _resolve(self, requested: str, candidates: List[str], label: str) -> str:
        if not requested:
            return self.default_version
        if requested == LATEST_ALIAS:
            if not candidates:
                raise InvalidArgument(f"No valid {label} versions available")
            return candidates[0]
        if _FULL_VERSION.match(requested):
            if requested not in candidates:
                raise InvalidArgument(f"Unsupported {label} version {requested!r}")
            return requested

        match = _PARTIAL_VERSION.match(requested)
        if not match:
            raise InvalidArgument(f"Malformed {label} version {requested!r}")
        wanted = tuple(int(part) for part in match.groups() if part is not None)
        for version in candidates:
            if version_key(version)[: len(wanted)] == wanted:
                return version
        raise InvalidArgument(f"No {label} version matches {requested!r}")
