"""Configuration models for the cluster control plane."""

from __future__ import annotations

from pathlib import Path
from typing import Any, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from cluster_manager.utils.retry import RetryConfig
from cluster_manager.errors import TransientBackendError


class ReconcilerConfig(BaseModel):
    """Configuration for the reconciliation engine."""

    workers: int = Field(4, ge=1, description="Concurrent reconciliation workers")
    max_attempts: int = Field(3, ge=1, description="Backend attempts per operation")
    base_delay: float = Field(0.5, ge=0, description="First retry delay in seconds")
    max_delay: float = Field(30.0, ge=0, description="Retry delay ceiling in seconds")
    exponential_base: float = Field(2.0, ge=1, description="Backoff multiplier")
    jitter: bool = Field(True, description="Randomize retry delays")
    scan_interval: float = Field(30.0, gt=0, description="Drift scan interval in seconds")
    operation_history: int = Field(1000, ge=1, description="Terminal operations retained")

    def retry_config(self) -> RetryConfig:
        """Backoff settings for backend calls."""
        return RetryConfig(
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            exponential_base=self.exponential_base,
            jitter=self.jitter,
            retry_on=(TransientBackendError,),
        )


class AutoscalerConfig(BaseModel):
    """Configuration for the autoscaler policy evaluator."""

    enabled: bool = Field(True, description="Run the autoscaler loop")
    interval: float = Field(60.0, gt=0, description="Evaluation tick in seconds")
    target_utilization: float = Field(
        0.7, gt=0, le=1, description="Utilization the utilization signal aims for"
    )


class StoreConfig(BaseModel):
    """Configuration for the resource store."""

    state_file: Optional[Path] = Field(None, description="JSON state file; in-memory when unset")

    @field_validator("state_file", mode="before")
    @classmethod
    def expand_home(cls, v: Any) -> Optional[Path]:
        """Expand ``~`` in the state file path."""
        if v is None or v == "":
            return None
        return Path(v).expanduser()


class VersionConfig(BaseModel):
    """Kubernetes versions and image types the service offers."""

    valid_master_versions: List[str] = Field(
        default_factory=lambda: [
            "1.29.4-gke.1043",
            "1.29.1-gke.1589",
            "1.28.9-gke.1000",
            "1.28.7-gke.1026",
            "1.27.13-gke.1000",
        ],
        min_length=1,
    )
    valid_node_versions: List[str] = Field(
        default_factory=lambda: [
            "1.29.4-gke.1043",
            "1.29.1-gke.1589",
            "1.28.9-gke.1000",
            "1.28.7-gke.1026",
            "1.27.13-gke.1000",
            "1.27.11-gke.1062",
        ],
        min_length=1,
    )
    default_version: str = Field("1.28.9-gke.1000")
    valid_image_types: List[str] = Field(
        default_factory=lambda: ["COS_CONTAINERD", "UBUNTU_CONTAINERD"],
        min_length=1,
    )
    default_image_type: str = Field("COS_CONTAINERD")
    default_machine_type: str = Field("e2-medium")


class SubnetworkConfig(BaseModel):
    """A subnetwork that clusters in a project may use."""

    project: str = Field(..., description="Project allowed to use the subnetwork")
    network_project: str = Field(..., description="Project owning the network")
    network: str
    subnetwork: str
    ip_cidr_range: str


class KeyConfig(BaseModel):
    """Signing key settings."""

    key_size: int = Field(2048, ge=1024, description="RSA modulus size in bits")


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = Field("INFO", description="Log level")
    format: str = Field("json", description="Log format (json or text)")
    file_path: Optional[Path] = Field(None, description="Log file path")


class ControlPlaneConfig(BaseModel):
    """Main control-plane configuration."""

    reconciler: ReconcilerConfig = Field(default_factory=ReconcilerConfig)
    autoscaler: AutoscalerConfig = Field(default_factory=AutoscalerConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    versions: VersionConfig = Field(default_factory=VersionConfig)
    keys: KeyConfig = Field(default_factory=KeyConfig)
    subnetworks: List[SubnetworkConfig] = Field(default_factory=list)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> ControlPlaneConfig:
        """Load configuration from YAML file."""
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)

    def to_yaml(self, path: Path) -> None:
        """Save configuration to YAML file."""
        with open(path, "w") as f:
            yaml.dump(self.model_dump(mode="json"), f, default_flow_style=False, indent=2)
