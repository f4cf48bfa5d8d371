"""
Configuration for the iteration engine.

Values are loaded from the ``iteration`` section of a YAML file. The file path
comes from the JOB_ITERATION_CONFIG_PATH environment variable when not given
explicitly.

Example::

    iteration:
      max_job_runtime: 300        # seconds, omit for no limit
      default_retry_backoff: 10   # seconds, omit to resume immediately
      enforce_serializable_cursors: true
      queue_adapter: signal
      default_batch_size: 100
"""

import logging
import os
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Dict, Any, Optional

import yaml

from .models import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "JOB_ITERATION_CONFIG_PATH"


@dataclass(frozen=True)
class IterationConfig:
    """Engine-wide settings threaded through every IterationDriver."""
    max_job_runtime: Optional[float] = None
    default_retry_backoff: Optional[float] = None
    enforce_serializable_cursors: bool = True
    queue_adapter: str = "inline"
    default_batch_size: int = 100

    def __post_init__(self):
        """Validate configuration values."""
        if self.max_job_runtime is not None and self.max_job_runtime <= 0:
            raise ConfigurationError(f"max_job_runtime must be positive, got {self.max_job_runtime}")
        if self.default_retry_backoff is not None and self.default_retry_backoff < 0:
            raise ConfigurationError(
                f"default_retry_backoff must be non-negative, got {self.default_retry_backoff}"
            )
        if self.default_batch_size < 1:
            raise ConfigurationError(f"default_batch_size must be at least 1, got {self.default_batch_size}")
        if not self.queue_adapter:
            raise ConfigurationError("queue_adapter must be a non-empty name")

    def resolve_max_job_runtime(self, override: Optional[float], job_name: str = "job") -> Optional[float]:
        """
        Combine the global runtime limit with a per-job override.

        A job may only narrow the global limit. Passing None inherits it.

        Args:
            override: Per-job limit in seconds, or None
            job_name: Name used in the error message

        Returns:
            Effective limit in seconds, or None for no limit

        Raises:
            ConfigurationError: If the override would widen the global limit
        """
        if override is None:
            return self.max_job_runtime
        if override <= 0:
            raise ConfigurationError(f"max_job_runtime for {job_name} must be positive, got {override}")
        if self.max_job_runtime is not None and override > self.max_job_runtime:
            raise ConfigurationError(
                f"max_job_runtime may only decrease; {job_name} tried to increase it "
                f"from {self.max_job_runtime!r} to {override!r}"
            )
        return override

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'IterationConfig':
        """
        Create configuration from a dictionary.

        Args:
            data: Settings; unknown keys are rejected

        Raises:
            ConfigurationError: If a key is unknown or a value is invalid
        """
        data = dict(data or {})
        known = set(cls.__dataclass_fields__)
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"Unknown iteration settings: {', '.join(unknown)}")
        try:
            return cls(**data)
        except TypeError as e:
            raise ConfigurationError(f"Invalid iteration settings: {e}") from e

    @classmethod
    def from_yaml(cls, path: str) -> 'IterationConfig':
        """
        Load configuration from the ``iteration`` section of a YAML file.

        Args:
            path: Path to the YAML file

        Raises:
            ConfigurationError: If the file cannot be parsed
        """
        try:
            with open(path, 'r') as f:
                document = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

        if not isinstance(document, dict):
            raise ConfigurationError(f"Configuration file {path} must contain a mapping")

        section = document.get('iteration', {})
        if not isinstance(section, dict):
            raise ConfigurationError(f"'iteration' section in {path} must be a mapping")

        logger.debug(f"Loaded iteration configuration from {path}")
        return cls.from_dict(section)

    @classmethod
    def load(cls, path: Optional[str] = None) -> 'IterationConfig':
        """
        Load configuration from an explicit path, the environment, or defaults.

        Args:
            path: Optional path overriding JOB_ITERATION_CONFIG_PATH
        """
        config_path = path or os.environ.get(CONFIG_PATH_ENV)
        if config_path and Path(config_path).exists():
            return cls.from_yaml(config_path)
        if config_path:
            logger.warning(f"Iteration config file not found: {config_path}; using defaults")
        return cls()
