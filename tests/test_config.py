"""
Tests for IterationConfig.
"""

import os
import tempfile

import pytest
import yaml

from job_iteration.config import CONFIG_PATH_ENV, IterationConfig
from job_iteration.models import ConfigurationError


def write_yaml(data) -> str:
    with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
        yaml.dump(data, f)
        return f.name


@pytest.mark.unit
class TestIterationConfig:
    """Tests for configuration values and validation."""

    def test_defaults(self):
        """Test default settings."""
        config = IterationConfig()

        assert config.max_job_runtime is None
        assert config.default_retry_backoff is None
        assert config.enforce_serializable_cursors is True
        assert config.queue_adapter == "inline"
        assert config.default_batch_size == 100

    @pytest.mark.parametrize("settings", [
        {"max_job_runtime": 0},
        {"default_retry_backoff": -1},
        {"default_batch_size": 0},
        {"queue_adapter": ""},
    ])
    def test_invalid_values(self, settings):
        """Test that invalid values raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            IterationConfig(**settings)

    def test_from_dict_rejects_unknown_keys(self):
        """Test that typos in settings are reported."""
        with pytest.raises(ConfigurationError, match="max_runtime"):
            IterationConfig.from_dict({"max_runtime": 10})

    def test_round_trip_dict(self):
        """Test to_dict and from_dict."""
        config = IterationConfig(max_job_runtime=300, queue_adapter="signal")

        assert IterationConfig.from_dict(config.to_dict()) == config

    def test_resolve_max_job_runtime(self):
        """Test that a job may only narrow the global limit."""
        config = IterationConfig(max_job_runtime=60)

        assert config.resolve_max_job_runtime(None) == 60
        assert config.resolve_max_job_runtime(30) == 30
        with pytest.raises(ConfigurationError, match="may only decrease"):
            config.resolve_max_job_runtime(90, "slow_job")

    def test_resolve_without_global_limit(self):
        """Test that any positive limit is allowed without a global one."""
        assert IterationConfig().resolve_max_job_runtime(3600) == 3600


@pytest.mark.unit
class TestConfigLoading:
    """Tests for loading configuration from YAML."""

    def test_from_yaml(self):
        """Test reading the iteration section."""
        path = write_yaml({"iteration": {"max_job_runtime": 120, "queue_adapter": "signal"}, "other": {"x": 1}})
        try:
            config = IterationConfig.from_yaml(path)
        finally:
            os.unlink(path)

        assert config.max_job_runtime == 120
        assert config.queue_adapter == "signal"

    def test_from_yaml_without_section(self):
        """Test that a file without an iteration section yields defaults."""
        path = write_yaml({"other": {}})
        try:
            assert IterationConfig.from_yaml(path) == IterationConfig()
        finally:
            os.unlink(path)

    def test_invalid_yaml(self):
        """Test that malformed YAML raises ConfigurationError."""
        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            f.write("iteration: [unclosed")
        try:
            with pytest.raises(ConfigurationError):
                IterationConfig.from_yaml(f.name)
        finally:
            os.unlink(f.name)

    def test_load_from_environment(self, monkeypatch):
        """Test that the config path comes from the environment."""
        path = write_yaml({"iteration": {"default_retry_backoff": 15}})
        monkeypatch.setenv(CONFIG_PATH_ENV, path)
        try:
            config = IterationConfig.load()
        finally:
            os.unlink(path)

        assert config.default_retry_backoff == 15

    def test_load_missing_file_uses_defaults(self, monkeypatch, tmp_path):
        """Test that a missing file falls back to defaults."""
        monkeypatch.setenv(CONFIG_PATH_ENV, str(tmp_path / "missing.yaml"))

        assert IterationConfig.load() == IterationConfig()

    def test_load_without_path(self, monkeypatch):
        """Test defaults when no path is configured."""
        monkeypatch.delenv(CONFIG_PATH_ENV, raising=False)

        assert IterationConfig.load() == IterationConfig()
