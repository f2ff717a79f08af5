"""Tick configuration loading and validation."""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Self

from ticktrack.core.constants import (
    DEFAULT_LOCK_POLL_INTERVAL_MS,
    DEFAULT_LOCK_TIMEOUT_MS,
    DEFAULT_LOG_LEVEL,
    LOCK_TIMEOUT_ENV,
    get_config_path,
)
from ticktrack.core.exceptions import ConfigurationError

_LOG_LEVELS = ("debug", "info", "warning", "error", "critical")


@dataclass(frozen=True)
class LockConfig:
    """Lock acquisition configuration."""

    timeout_ms: int = DEFAULT_LOCK_TIMEOUT_MS
    poll_interval_ms: int = DEFAULT_LOCK_POLL_INTERVAL_MS

    def __post_init__(self) -> None:
        if self.timeout_ms < 0:
            raise ValueError(f"lock timeout_ms must be >= 0, got {self.timeout_ms}")
        if self.poll_interval_ms <= 0:
            raise ValueError(
                f"lock poll_interval_ms must be > 0, got {self.poll_interval_ms}"
            )

    @property
    def timeout(self) -> float:
        """Get timeout in seconds."""
        return self.timeout_ms / 1000.0

    @property
    def poll_interval(self) -> float:
        """Get poll interval in seconds."""
        return self.poll_interval_ms / 1000.0


@dataclass(frozen=True)
class ValidationConfig:
    """Mutation validation configuration."""

    reject_dependency_cycles: bool = True


@dataclass(frozen=True)
class LoggingConfig:
    """Logging configuration."""

    level: str = DEFAULT_LOG_LEVEL

    def __post_init__(self) -> None:
        if self.level.lower() not in _LOG_LEVELS:
            raise ValueError(f"unknown log level: {self.level}")


@dataclass(frozen=True)
class TickConfig:
    """Complete tick configuration."""

    lock: LockConfig = field(default_factory=LockConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create config from dictionary."""
        lock_data = dict(data.get("lock", {}))
        env_timeout = os.environ.get(LOCK_TIMEOUT_ENV)
        if env_timeout:
            lock_data["timeout_ms"] = int(env_timeout)
        return cls(
            lock=LockConfig(**lock_data),
            validation=ValidationConfig(**data.get("validation", {})),
            logging=LoggingConfig(**data.get("logging", {})),
        )

    @classmethod
    def load(cls, tick_dir: Path) -> Self:
        """Load configuration from the tick directory or use defaults."""
        config_path = get_config_path(tick_dir)

        try:
            if not config_path.exists():
                return cls.from_dict({})
            with open(config_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ConfigurationError(
                    "Config file must contain a JSON object",
                    details={"path": str(config_path)},
                )
            return cls.from_dict(data)
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f"Invalid JSON in config file: {e}",
                details={"path": str(config_path)},
            ) from e
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                f"Invalid configuration values: {e}",
                details={"path": str(config_path)},
            ) from e

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary."""
        return {
            "lock": {
                "timeout_ms": self.lock.timeout_ms,
                "poll_interval_ms": self.lock.poll_interval_ms,
            },
            "validation": {
                "reject_dependency_cycles": self.validation.reject_dependency_cycles,
            },
            "logging": {
                "level": self.logging.level,
            },
        }

    def save(self, tick_dir: Path) -> None:
        """Save configuration to the tick directory."""
        config_path = get_config_path(tick_dir)
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)
