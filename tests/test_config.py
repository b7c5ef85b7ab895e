"""Tests for configuration models."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import pytest
from pydantic import ValidationError

from cluster_manager.config import (
    AutoscalerConfig,
    ControlPlaneConfig,
    ReconcilerConfig,
    Settings,
    StoreConfig,
    VersionConfig,
)
from cluster_manager.errors import TransientBackendError


def test_reconciler_config_defaults() -> None:
    """Test reconciler configuration default values."""
    config = ReconcilerConfig()
    assert config.workers == 4
    assert config.max_attempts == 3
    assert config.base_delay == 0.5
    assert config.max_delay == 30.0
    assert config.jitter is True


def test_reconciler_retry_config() -> None:
    """Only transient backend errors are retried."""
    retry = ReconcilerConfig(max_attempts=5, base_delay=0.2).retry_config()
    assert retry.max_attempts == 5
    assert retry.base_delay == 0.2
    assert retry.retry_on == (TransientBackendError,)


def test_store_config_expands_home() -> None:
    config = StoreConfig(state_file="~/cluster-manager/state.json")
    assert config.state_file is not None
    assert "~" not in str(config.state_file)
    assert str(config.state_file).endswith("cluster-manager/state.json")


def test_store_config_empty_path_means_in_memory() -> None:
    assert StoreConfig(state_file="").state_file is None


def test_version_config_defaults_are_consistent() -> None:
    config = VersionConfig()
    assert config.default_version in config.valid_master_versions
    assert config.default_image_type in config.valid_image_types


def test_autoscaler_config_validation() -> None:
    with pytest.raises(ValidationError):
        AutoscalerConfig(target_utilization=0)

    with pytest.raises(ValidationError):
        AutoscalerConfig(interval=-1)


def test_control_plane_config_from_yaml(temp_config_file: Path) -> None:
    """Test loading configuration from YAML file."""
    config = ControlPlaneConfig.from_yaml(temp_config_file)
    assert config.reconciler.workers == 2
    assert config.reconciler.max_attempts == 5
    assert config.autoscaler.target_utilization == 0.6
    assert config.store.state_file is not None
    assert len(config.subnetworks) == 1
    assert config.logging.format == "text"


def test_control_plane_config_yaml_round_trip(
    tmp_path: Path,
    sample_config_data: Dict[str, Any],
) -> None:
    """Test saving configuration to YAML and loading it back."""
    config = ControlPlaneConfig(**sample_config_data)
    path = tmp_path / "saved.yaml"

    config.to_yaml(path)
    loaded = ControlPlaneConfig.from_yaml(path)

    assert loaded == config


def test_control_plane_config_validation(invalid_config_data: Dict[str, Any]) -> None:
    with pytest.raises(ValidationError):
        ControlPlaneConfig(**invalid_config_data)


def test_empty_yaml_gives_defaults(tmp_path: Path) -> None:
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert ControlPlaneConfig.from_yaml(path) == ControlPlaneConfig()


def test_settings_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CLUSTER_MANAGER_CONFIG", "/etc/cluster-manager.yaml")
    monkeypatch.setenv("METRICS_PORT", "9200")
    monkeypatch.setenv("API_PORT", "9001")
    monkeypatch.setenv("API_RELOAD", "true")

    settings = Settings()

    assert settings.config_path == "/etc/cluster-manager.yaml"
    assert settings.metrics_port == 9200
    assert settings.api.port == 9001
    assert settings.api.reload is True
