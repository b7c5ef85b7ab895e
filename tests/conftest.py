"""Pytest configuration and fixtures."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
import yaml

from cluster_manager.autoscaler.signals import StaticLoadSignal
from cluster_manager.config import (
    AutoscalerConfig,
    ControlPlaneConfig,
    KeyConfig,
    ReconcilerConfig,
    SubnetworkConfig,
)
from cluster_manager.core.control_plane import ControlPlane
from cluster_manager.reconciler.backend import SimulatedBackend
from cluster_manager.schemas.node_pool import NodePoolAutoscaling
from cluster_manager.schemas.requests import CreateClusterRequest, NodePoolTemplate
from cluster_manager.utils.logging import setup_logging
from cluster_manager.utils.metrics import ControlPlaneMetrics

PROJECT = "test-project"
LOCATION = "us-central1-a"
PARENT = f"projects/{PROJECT}/locations/{LOCATION}"


def cluster_name(cluster_id: str = "alpha") -> str:
    return f"{PARENT}/clusters/{cluster_id}"


def node_pool_name(cluster_id: str = "alpha", node_pool_id: str = "default-pool") -> str:
    return f"{cluster_name(cluster_id)}/nodePools/{node_pool_id}"


def make_config(**overrides: Any) -> ControlPlaneConfig:
    """Config with instant retries, no background autoscaler and small keys."""
    data: Dict[str, Any] = {
        "reconciler": ReconcilerConfig(
            workers=2,
            max_attempts=3,
            base_delay=0.0,
            jitter=False,
            scan_interval=3600,
        ),
        "autoscaler": AutoscalerConfig(enabled=False, interval=3600),
        "keys": KeyConfig(key_size=1024),
        "subnetworks": [
            SubnetworkConfig(
                project=PROJECT,
                network_project=PROJECT,
                network="default",
                subnetwork="default-us-central1",
                ip_cidr_range="10.128.0.0/20",
            ),
            SubnetworkConfig(
                project=PROJECT,
                network_project="shared-vpc-host",
                network="shared",
                subnetwork="shared-us-central1",
                ip_cidr_range="10.10.0.0/16",
            ),
        ],
    }
    data.update(overrides)
    return ControlPlaneConfig(**data)


@pytest.fixture(autouse=True)
def setup_test_logging() -> None:
    """Setup logging for tests."""
    setup_logging(level="DEBUG", format_type="text")


@pytest.fixture
def config() -> ControlPlaneConfig:
    return make_config()


@pytest.fixture
def backend() -> SimulatedBackend:
    return SimulatedBackend()


@pytest.fixture
def load_signal() -> StaticLoadSignal:
    return StaticLoadSignal()


@pytest.fixture
def control_plane(
    config: ControlPlaneConfig,
    backend: SimulatedBackend,
    load_signal: StaticLoadSignal,
) -> ControlPlane:
    """A control plane whose engine is driven by the test via ``run_pending``."""
    return ControlPlane(config, backend=backend, signal=load_signal, metrics=ControlPlaneMetrics())


def cluster_request(
    cluster_id: str = "alpha",
    node_pools: Optional[List[NodePoolTemplate]] = None,
    **fields: Any,
) -> CreateClusterRequest:
    if node_pools is None:
        node_pools = [NodePoolTemplate(node_pool_id="default-pool", initial_node_count=3)]
    return CreateClusterRequest(cluster_id=cluster_id, node_pools=node_pools, **fields)


async def create_running_cluster(
    control_plane: ControlPlane,
    cluster_id: str = "alpha",
    node_pools: Optional[List[NodePoolTemplate]] = None,
    **fields: Any,
) -> str:
    """Create a cluster and reconcile it to RUNNING."""
    await control_plane.clusters.create_cluster(
        PARENT, cluster_request(cluster_id, node_pools, **fields)
    )
    await control_plane.engine.run_pending()
    return cluster_name(cluster_id)


@pytest.fixture
async def running_cluster(control_plane: ControlPlane) -> str:
    """A RUNNING cluster with one RUNNING three-node pool."""
    return await create_running_cluster(control_plane)


@pytest.fixture
async def autoscaled_cluster(control_plane: ControlPlane) -> str:
    """A RUNNING cluster whose pool autoscales between 1 and 3 nodes."""
    return await create_running_cluster(
        control_plane,
        node_pools=[
            NodePoolTemplate(
                node_pool_id="default-pool",
                initial_node_count=2,
                autoscaling=NodePoolAutoscaling(enabled=True, min_node_count=1, max_node_count=3),
            )
        ],
    )


@pytest.fixture
def sample_config_data() -> Dict[str, Any]:
    """Sample control-plane configuration data."""
    return {
        "reconciler": {
            "workers": 2,
            "max_attempts": 5,
            "base_delay": 0.1,
            "scan_interval": 10,
        },
        "autoscaler": {"enabled": True, "interval": 15, "target_utilization": 0.6},
        "store": {"state_file": "~/cluster-manager/state.json"},
        "subnetworks": [
            {
                "project": PROJECT,
                "network_project": PROJECT,
                "network": "default",
                "subnetwork": "default-us-central1",
                "ip_cidr_range": "10.128.0.0/20",
            }
        ],
        "logging": {"level": "DEBUG", "format": "text"},
    }


@pytest.fixture
def temp_config_file(tmp_path: Path, sample_config_data: Dict[str, Any]) -> Path:
    """Create a temporary configuration file."""
    config_path = tmp_path / "test_config.yaml"
    with open(config_path, "w") as f:
        yaml.dump(sample_config_data, f)
    return config_path


@pytest.fixture
def invalid_config_data() -> Dict[str, Any]:
    """Invalid configuration data for testing validation."""
    return {
        "reconciler": {
            "workers": 0,  # At least one worker
            "max_attempts": 0,  # At least one attempt
        },
        "autoscaler": {"target_utilization": 1.5},  # Above 1
    }
