"""
Configuration dataclasses for the archival service.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml


@dataclass
class CircuitBreakerConfig:
    """Circuit breaker configuration."""

    failure_threshold: int = 10
    recovery_time: float = 10.0


@dataclass
class PostgresConfig:
    """PostgreSQL configuration for the hot store."""

    host: str
    port: int
    user: str
    password: str
    database: str
    min_pool_size: int = 1
    max_pool_size: int = 10
    threshold_ms: int = 1000
    command_timeout: float = 60.0
    retries: int = 3
    retry_delay: float = 0.5
    retry_max_delay: float | None = None
    retry_jitter: float = 0.0
    circuit_breaker: CircuitBreakerConfig = field(default_factory=CircuitBreakerConfig)


@dataclass
class ArchiveConfig:
    """Archival run settings."""

    archive_dir: str = "data-archives"
    default_months: int = 1
    compression_level: int = 9
    timezone: str = "UTC"
    max_duration_seconds: float = 300.0

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


@dataclass
class SecurityConfig:
    """Security configuration."""

    api_key: str = ""


@dataclass
class LoggingConfig:
    """Logging configuration with component-level control."""

    level: str = "INFO"
    component_levels: Dict[str, str] = field(default_factory=dict)
    logs_dir: str = "logs"
    rotate_mb: int = 50
    backup_count: int = 10
    sentry_dsn: Optional[str] = None
    aggregator_host: Optional[str] = None
    aggregator_port: Optional[int] = None


@dataclass
class AppConfig:
    """Complete application configuration."""

    postgres: PostgresConfig
    archive: ArchiveConfig = field(default_factory=ArchiveConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _resolve_path(default: str) -> str:
    """Resolve configuration file path."""
    env_path = os.getenv("APP_CONFIG")
    if not env_path:
        env = os.getenv("APP_ENV")
        if env:
            candidate = f"config.{env}.yaml"
            if Path(candidate).exists():
                env_path = candidate
    return env_path or default


def validate_config(cfg: AppConfig) -> None:
    """Validate configuration consistency and required fields."""
    if not cfg.postgres.host:
        raise ValueError("PostgreSQL host is required")
    if not cfg.archive.archive_dir:
        raise ValueError("Archive directory must be configured")
    if cfg.archive.default_months < 0:
        raise ValueError("Default retention months must be >= 0")
    if not 1 <= cfg.archive.compression_level <= 9:
        raise ValueError("Compression level must be between 1 and 9")
    if cfg.archive.max_duration_seconds <= 0:
        raise ValueError("Maximum run duration must be positive")
    try:
        cfg.archive.tzinfo
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown archive timezone: {cfg.archive.timezone}")


def load_config(path: str = "config.yaml") -> AppConfig:
    """Load configuration from YAML file."""
    path = _resolve_path(path)

    try:
        with open(path, "r") as f:
            data: Dict[str, Any] = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise FileNotFoundError(f"Configuration file not found: {path}")
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in configuration file: {e}")

    data = _substitute_env_vars(data)

    pg_data = data.get("postgresql", {}).copy()
    circuit_breaker_data = pg_data.pop("circuit_breaker", {})
    pg = PostgresConfig(
        circuit_breaker=CircuitBreakerConfig(**circuit_breaker_data), **pg_data
    )

    archive_cfg = ArchiveConfig(**data.get("archive", {}))
    sec = SecurityConfig(**data.get("security", {}))

    logging_data = data.get("logging", {})
    logging_cfg = LoggingConfig(
        level=logging_data.get("level", "INFO"),
        component_levels=logging_data.get("component_levels", {}),
        logs_dir=logging_data.get("logs_dir", "logs"),
        rotate_mb=logging_data.get("rotate_mb", 50),
        backup_count=logging_data.get("backup_count", 10),
        sentry_dsn=logging_data.get("sentry_dsn"),
        aggregator_host=logging_data.get("aggregator_host"),
        aggregator_port=logging_data.get("aggregator_port"),
    )

    env_archive_dir = os.getenv("ARCHIVE_PATH")
    if env_archive_dir:
        archive_cfg.archive_dir = env_archive_dir

    cfg = AppConfig(
        postgres=pg,
        archive=archive_cfg,
        security=sec,
        logging=logging_cfg,
    )

    validate_config(cfg)

    return cfg


# Keys whose substituted values stay strings even when they look numeric.
STRING_FIELDS = {
    ("postgresql", "host"),
    ("postgresql", "user"),
    ("postgresql", "password"),
    ("postgresql", "database"),
    ("archive", "archive_dir"),
    ("archive", "timezone"),
    ("security", "api_key"),
    ("logging", "logs_dir"),
    ("logging", "sentry_dsn"),
    ("logging", "aggregator_host"),
}


def _substitute_env_vars(data: Any, path: Tuple[str, ...] = ()) -> Any:
    """Recursively substitute environment variables in configuration data."""
    if isinstance(data, dict):
        return {
            key: _substitute_env_vars(value, path + (key,))
            for key, value in data.items()
        }
    elif isinstance(data, list):
        return [_substitute_env_vars(item, path) for item in data]
    elif isinstance(data, str) and data.startswith("${") and data.endswith("}"):
        env_var = data[2:-1]
        default_value = None

        # ${VAR_NAME:default_value}
        if ":" in env_var:
            env_var, default_value = env_var.split(":", 1)

        value = os.getenv(env_var, default_value)
        if value is None:
            raise ValueError(
                f"Environment variable '{env_var}' is required but not set"
            )

        if path in STRING_FIELDS:
            return value

        if value.lower() in ("true", "false"):
            return value.lower() == "true"
        elif value.isdigit():
            return int(value)
        else:
            try:
                return float(value)
            except ValueError:
                return value
    else:
        return data


def create_default_config() -> AppConfig:
    """Create a default configuration for testing or initial setup."""
    return AppConfig(
        postgres=PostgresConfig(
            host="localhost",
            port=5432,
            user="ops_user",
            password="password",
            database="ops_hot_store",
        ),
        archive=ArchiveConfig(),
        security=SecurityConfig(api_key="test-api-key"),
        logging=LoggingConfig(),
    )
