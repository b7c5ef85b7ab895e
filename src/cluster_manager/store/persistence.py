"""JSON file persistence for the resource store.

The whole store is rewritten after every change; the file is replaced
atomically so a crash never leaves a half-written state file.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import List, Tuple

import structlog
from pydantic import TypeAdapter, ValidationError

from cluster_manager.schemas.operation import Resource

logger = structlog.get_logger(__name__)

_resources_adapter = TypeAdapter(List[Resource])


class JsonStatePersistence:
    """Persists resource documents to a JSON state file."""

    def __init__(self, state_file: Path) -> None:
        self.state_file = Path(state_file)

    def save(self, resources: List[Resource], last_seq: int) -> None:
        """Write the state file."""
        self.state_file.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "last_seq": last_seq,
            "resources": _resources_adapter.dump_python(resources, mode="json"),
        }
        tmp_path = self.state_file.with_suffix(self.state_file.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data, indent=2))
        os.replace(tmp_path, self.state_file)

    def load(self) -> Tuple[List[Resource], int]:
        """Read the state file; a missing or unreadable file yields an empty store."""
        if not self.state_file.exists():
            return [], 0
        try:
            data = json.loads(self.state_file.read_text())
            resources = _resources_adapter.validate_python(data.get("resources", []))
            last_seq = int(data.get("last_seq", 0))
        except (json.JSONDecodeError, ValidationError, ValueError, TypeError) as e:
            logger.warning(
                "Failed to load state file, starting empty",
                path=str(self.state_file),
                error=str(e),
            )
            return [], 0
        logger.info("Loaded state file", path=str(self.state_file), resources=len(resources))
        return resources, max(last_seq, max((r.create_seq for r in resources), default=0))
