"""Configuration for feed_ingest.

Settings are resolved in three layers: built-in defaults, an optional YAML
file, then environment variables.

Config file location: ~/.feed_ingest/config.yaml (or FEED_INGEST_CONFIG env var)
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


def _default_db_path() -> Path:
    return Path.home() / ".feed_ingest" / "feed_ingest.db"


@dataclass
class ServerConfig:
    """Runtime settings for the server and the ingestion loop."""

    name: str = "feed_ingest"
    log_level: str = "INFO"
    log_file: Optional[str] = None
    db_path: Path = field(default_factory=_default_db_path)
    pool_size: int = 5
    fetch_interval_seconds: float = 300
    fetch_timeout_seconds: float = 30
    user_agent: str = "FeedIngest/1.0 (RSS Feed Ingestion)"
    abort_cycle_on_fetch_error: bool = False

    def __post_init__(self) -> None:
        self.db_path = Path(self.db_path).expanduser()
        self.log_level = str(self.log_level).upper()

        if self.pool_size < 1:
            raise ValueError(f"pool_size must be positive, got {self.pool_size}")
        if self.fetch_interval_seconds <= 0:
            raise ValueError(
                f"fetch_interval_seconds must be positive, got {self.fetch_interval_seconds}"
            )
        if self.fetch_timeout_seconds <= 0:
            raise ValueError(
                f"fetch_timeout_seconds must be positive, got {self.fetch_timeout_seconds}"
            )


# Environment variable -> (field name, converter)
ENV_OVERRIDES = {
    "FEED_INGEST_DB_PATH": ("db_path", Path),
    "FEED_INGEST_LOG_LEVEL": ("log_level", str),
    "FEED_INGEST_POOL_SIZE": ("pool_size", int),
    "FEED_INGEST_INTERVAL": ("fetch_interval_seconds", float),
    "FEED_INGEST_TIMEOUT": ("fetch_timeout_seconds", float),
}


def _get_config_path(path: Optional[Path] = None) -> Path:
    """Get the config file path, respecting FEED_INGEST_CONFIG env var."""
    if path is not None:
        return Path(path)
    env_path = os.environ.get("FEED_INGEST_CONFIG")
    if env_path:
        return Path(env_path)
    return Path.home() / ".feed_ingest" / "config.yaml"


def _read_yaml(config_path: Path) -> Dict[str, Any]:
    try:
        with open(config_path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in config file {config_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping")
    return data


def load_config(path: Optional[Path] = None) -> ServerConfig:
    """Load configuration from defaults, YAML file and environment.

    Args:
        path: Optional explicit config file path

    Returns:
        A validated ServerConfig

    Raises:
        ValueError: If the file is invalid, contains unknown keys, or a value
            is out of range
    """
    values: Dict[str, Any] = {}

    config_path = _get_config_path(path)
    if config_path.exists():
        values.update(_read_yaml(config_path))

    known = {f.name for f in fields(ServerConfig)}
    unknown = set(values) - known
    if unknown:
        raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")

    for env_name, (field_name, convert) in ENV_OVERRIDES.items():
        raw = os.environ.get(env_name)
        if raw:
            try:
                values[field_name] = convert(raw)
            except ValueError as e:
                raise ValueError(f"Invalid value for {env_name}: {raw!r}") from e

    return ServerConfig(**values)


_config: Optional[ServerConfig] = None


def get_config() -> ServerConfig:
    """Get or create the process-wide configuration."""
    global _config

    if _config is None:
        _config = load_config()

    return _config
