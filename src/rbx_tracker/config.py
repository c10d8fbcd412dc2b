"""
Configuration management for the Roblox game analytics tracker.

Configuration is loaded from multiple sources with layered precedence:
1. Built-in defaults (Pydantic model defaults)
2. YAML config file (/etc/rbx-tracker/config.yml or --config path)
3. Environment variables (RBX_TRACKER_* prefix, __ for nesting)
4. The PORT environment variable (listen port only)
5. Command-line arguments (highest precedence)
"""

from __future__ import annotations

import argparse
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

DEFAULT_CONFIG_PATH = Path("/etc/rbx-tracker/config.yml")
DEFAULT_ENV_PREFIX = "RBX_TRACKER_"
PORT_ENV_VAR = "PORT"

ROBLOX_GAMES_API_URL = "https://games.roblox.com/v1/games"

VALID_LOG_LEVELS = frozenset({"debug", "info", "warn", "warning", "error", "critical"})


def _normalize_log_level(v: str) -> str:
    """Validate a log level name; lowercase it and map warn to warning."""
    v_lower = v.lower()
    if v_lower not in VALID_LOG_LEVELS:
        raise ValueError(
            f"Invalid log level: {v}. Must be one of: {', '.join(sorted(VALID_LOG_LEVELS))}"
        )
    if v_lower == "warn":
        return "warning"
    return v_lower


# =============================================================================
# Server Configuration
# =============================================================================


class ServerConfig(BaseModel):
    """HTTP server settings.

    Attributes:
        listen: Listen address and port (e.g., "0.0.0.0:3000").
        log_level: Initial application log level.
    """

    listen: str = Field(
        default="0.0.0.0:3000",
        description="Listen address and port (e.g., '127.0.0.1:3000' or '0.0.0.0:3000')",
    )
    log_level: str = Field(
        default="info",
        description="Log level: debug, info, warn, error",
    )

    @field_validator("listen")
    @classmethod
    def validate_listen(cls, v: str) -> str:
        """Validate that listen is HOST:PORT with a usable port."""
        host, sep, port = v.rpartition(":")
        if not sep or not host or not port.isdigit():
            raise ValueError(f"Invalid listen address: {v}. Expected HOST:PORT")
        if not 0 < int(port) < 65536:
            raise ValueError(f"Invalid listen port: {port}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        return _normalize_log_level(v)

    @property
    def host(self) -> str:
        """Host part of the listen address."""
        return self.listen.rpartition(":")[0]

    @property
    def port(self) -> int:
        """Port part of the listen address."""
        return int(self.listen.rpartition(":")[2])


# =============================================================================
# Tracker Configuration
# =============================================================================


class TrackerConfig(BaseModel):
    """Polling configuration.

    Attributes:
        universe_ids: Roblox universe IDs to track, fixed for the process lifetime.
        fetch_interval_minutes: Interval between polls of each universe.
        api_url: Roblox Games API endpoint.
        request_timeout_seconds: Upper bound on a single API request.
    """

    universe_ids: list[int] = Field(
        default_factory=lambda: [6705549208, 7436755782],
        description="Roblox universe IDs to track",
    )
    fetch_interval_minutes: float = Field(
        default=10,
        gt=0,
        description="Polling interval in minutes",
    )
    api_url: str = Field(
        default=ROBLOX_GAMES_API_URL,
        description="Roblox Games API endpoint (queried with ?universeIds=<id>)",
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for a single Games API request in seconds",
    )

    @field_validator("universe_ids", mode="before")
    @classmethod
    def coerce_universe_ids(cls, v: Any) -> Any:
        """Accept a single id or a comma-separated string as well as a list."""
        if isinstance(v, bool):
            return v
        if isinstance(v, int):
            return [v]
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("universe_ids")
    @classmethod
    def validate_universe_ids(cls, v: list[int]) -> list[int]:
        """Require positive ids and drop duplicates, keeping the first occurrence."""
        invalid = [uid for uid in v if uid <= 0]
        if invalid:
            raise ValueError(f"Universe IDs must be positive integers: {invalid}")
        return list(dict.fromkeys(v))

    @property
    def interval_seconds(self) -> float:
        """Polling interval in seconds."""
        return self.fetch_interval_minutes * 60


# =============================================================================
# Storage Configuration
# =============================================================================


class StorageConfig(BaseModel):
    """Sample storage configuration.

    Attributes:
        data_dir: Directory holding one <universe_id>.json file per universe.
    """

    data_dir: str = Field(
        default="data",
        description="Directory for per-universe JSON sample files",
    )


# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level.
        log_to_stdout: Whether to log to stdout.
        json_format: Emit JSON lines instead of plain text.
    """

    level: str = Field(
        default="info",
        description="Log level",
    )
    log_to_stdout: bool = Field(
        default=True,
        description="Whether to log to stdout",
    )
    json_format: bool = Field(
        default=True,
        description="Emit one JSON object per log line",
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        return _normalize_log_level(v)


# =============================================================================
# Main Application Configuration
# =============================================================================


class AppConfig(BaseModel):
    """
    Main application configuration model.

    Attributes:
        server: HTTP server settings.
        tracker: Polling settings.
        storage: Sample storage settings.
        logging: Logging configuration.
    """

    server: ServerConfig = Field(
        default_factory=ServerConfig,
        description="HTTP server settings",
    )
    tracker: TrackerConfig = Field(
        default_factory=TrackerConfig,
        description="Polling settings",
    )
    storage: StorageConfig = Field(
        default_factory=StorageConfig,
        description="Sample storage settings",
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging configuration",
    )


# =============================================================================
# Configuration Loading Functions
# =============================================================================


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Args:
        base: The base dictionary.
        override: The dictionary with values to override.

    Returns:
        A new dictionary with merged values.
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_yaml_config(config_path: Path) -> dict[str, Any]:
    """
    Load configuration from a YAML file.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        yaml.YAMLError: If the YAML is invalid.
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        return yaml.safe_load(f) or {}


def _parse_env_value(value: str) -> Any:
    """
    Parse an environment variable value to appropriate Python type.

    Args:
        value: String value from environment variable.

    Returns:
        Parsed value (bool, int, float, list, or string).
    """
    if value.lower() in ("true", "yes", "on"):
        return True
    if value.lower() in ("false", "no", "off"):
        return False

    try:
        return int(value)
    except ValueError:
        pass

    try:
        return float(value)
    except ValueError:
        pass

    if "," in value:
        items = [item.strip() for item in value.split(",") if item.strip()]
        return [_parse_env_value(item) for item in items]

    return value


def _load_env_config(prefix: str = DEFAULT_ENV_PREFIX) -> dict[str, Any]:
    """
    Load configuration from environment variables.

    - Prefix: RBX_TRACKER_ (configurable)
    - Nested keys: Double underscore (__) separator
    - Example: RBX_TRACKER_TRACKER__UNIVERSE_IDS=6705549208,7436755782

    Args:
        prefix: Environment variable prefix.

    Returns:
        Dictionary with configuration values.
    """
    result: dict[str, Any] = {}

    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue

        config_key = key[len(prefix) :].lower()
        parts = config_key.split("__")

        current = result
        for part in parts[:-1]:
            if part not in current:
                current[part] = {}
            current = current[part]

        current[parts[-1]] = _parse_env_value(value)

    return result


def _parse_cli_args(args: list[str] | None = None) -> dict[str, Any]:
    """
    Parse command-line arguments.

    Args:
        args: Command-line arguments. If None, uses sys.argv.

    Returns:
        Dictionary with parsed arguments. The listen port is returned under
        the private "_port" key and applied by load_config.
    """
    parser = argparse.ArgumentParser(
        description="Roblox game analytics tracker",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--config",
        "-c",
        type=str,
        help="Path to configuration file",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["debug", "info", "warning", "error"],
        help="Override log level",
    )

    parser.add_argument(
        "--port",
        type=int,
        help="Override the listen port",
    )

    parser.add_argument(
        "--data-dir",
        type=str,
        help="Directory for per-universe sample files",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    parsed = parser.parse_args(args)

    result: dict[str, Any] = {}

    if parsed.config:
        result["_config_path"] = parsed.config

    if parsed.port is not None:
        result["_port"] = parsed.port

    if parsed.data_dir:
        result["storage"] = {"data_dir": parsed.data_dir}

    log_level = "debug" if parsed.debug else parsed.log_level
    if log_level:
        result["server"] = {"log_level": log_level}
        result["logging"] = {"level": log_level}

    return result


def _with_port(config_dict: dict[str, Any], port: int | str) -> dict[str, Any]:
    """Return config_dict with the port of server.listen replaced."""
    listen = str(
        config_dict.get("server", {}).get("listen", ServerConfig().listen)
    )
    host = listen.rpartition(":")[0] or ServerConfig().host
    return _deep_merge(config_dict, {"server": {"listen": f"{host}:{port}"}})


def load_config(
    config_path: Path | str | None = None,
    env_prefix: str = DEFAULT_ENV_PREFIX,
    cli_args: list[str] | None = None,
) -> AppConfig:
    """
    Load configuration from all sources with layered precedence.

    Later sources override earlier ones: defaults, YAML file, RBX_TRACKER_*
    environment variables, PORT environment variable, command-line arguments.

    Args:
        config_path: Path to YAML configuration file. If None, uses the CLI
            --config argument or the default path when it exists.
        env_prefix: Prefix for environment variables.
        cli_args: Command-line arguments. If None, uses sys.argv.

    Returns:
        Fully configured AppConfig instance.

    Raises:
        FileNotFoundError: If specified config file doesn't exist.
        ValidationError: If configuration is invalid.

    Example:
        >>> config = load_config(cli_args=["--port", "8080"])
        >>> config.server.port
        8080
    """
    config_dict: dict[str, Any] = {}

    cli_config = _parse_cli_args(cli_args)
    cli_path = cli_config.pop("_config_path", None)
    cli_port = cli_config.pop("_port", None)

    if config_path is None:
        if cli_path is not None:
            config_path = Path(cli_path)
        elif DEFAULT_CONFIG_PATH.exists():
            config_path = DEFAULT_CONFIG_PATH
    elif isinstance(config_path, str):
        config_path = Path(config_path)

    if config_path is not None:
        config_dict = _deep_merge(config_dict, _load_yaml_config(config_path))

    config_dict = _deep_merge(config_dict, _load_env_config(env_prefix))

    env_port = os.environ.get(PORT_ENV_VAR)
    if env_port:
        config_dict = _with_port(config_dict, env_port)

    config_dict = _deep_merge(config_dict, cli_config)
    if cli_port is not None:
        config_dict = _with_port(config_dict, cli_port)

    return AppConfig(**config_dict)
