"""Module for working with configuration files."""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import tomli
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .exceptions import ConfigError

CONFIG_SECTION = "miglock"
DEFAULT_FORMAT = "markdown"


class Config(BaseModel):
    """Configuration for miglock."""

    # Exclusions
    exclude: Optional[List[str]] = Field(default=None, description="Patterns for excluding files")

    # Output format
    format: Optional[str] = Field(default=None, description="Output format (markdown, json)")

    # Analysis
    pg_version: Optional[int] = Field(
        default=None, ge=9, description="Target PostgreSQL major version; unset means 11 or later"
    )
    dialect: Optional[str] = Field(default=None, description="Force a dialect for every file")
    workers: Optional[int] = Field(default=None, ge=1, description="Files analyzed in parallel")

    # Output options
    verbose: Optional[bool] = Field(default=None, description="Verbose output")

    # Exit code
    exit_code: Optional[bool] = Field(default=None, description="Return non-zero code on critical results")

    model_config = ConfigDict(extra="ignore")  # Ignore additional fields


def load_config(config_path: Path) -> Config:
    """
    Loads configuration from a file.

    Supports formats:
    - JSON (.json)
    - TOML (.toml), either a [miglock] table or root-level keys

    Args:
        config_path: Path to the configuration file

    Returns:
        Config object with settings

    Raises:
        ConfigError: If the file is missing, its format is not supported or it is invalid
    """
    if not config_path.is_file():
        raise ConfigError(f"Configuration file not found: {config_path}")

    suffix = config_path.suffix.lower()

    if suffix == ".json":
        return _load_json_config(config_path)
    elif suffix == ".toml":
        return _load_toml_config(config_path)
    else:
        raise ConfigError(f"Unsupported configuration file format: {suffix}. Supported: .json, .toml")


def _build_config(data: Any, config_path: Path) -> Config:
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration in {config_path} must be a table of settings")
    try:
        return Config(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {config_path}: {e}") from e


def _load_json_config(config_path: Path) -> Config:
    """Loads configuration from a JSON file."""
    try:
        with open(config_path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"JSON parsing error in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Error reading configuration from {config_path}: {e}") from e
    return _build_config(data, config_path)


def _load_toml_config(config_path: Path) -> Config:
    """Loads configuration from a TOML file."""
    try:
        with open(config_path, "rb") as f:
            data = tomli.load(f)
    except tomli.TOMLDecodeError as e:
        raise ConfigError(f"TOML parsing error in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Error reading configuration from {config_path}: {e}") from e

    # Extract [miglock] section if it exists, otherwise use root level
    return _build_config(data.get(CONFIG_SECTION, data), config_path)


def apply_config_to_cli_params(config: Config, cli_params: Dict[str, Any]) -> Dict[str, Any]:
    """
    Applies settings from configuration to CLI parameters.

    CLI parameters take precedence over configuration: a config value is
    used only where the CLI value is unset (None, empty, or the default).

    Args:
        config: Configuration object
        cli_params: Dictionary of CLI parameters

    Returns:
        Updated dictionary of parameters; ``_applied_from_config`` lists the
        keys taken from the configuration
    """
    result = cli_params.copy()
    applied = []

    if config.exclude is not None and not result.get("exclude"):
        result["exclude"] = tuple(config.exclude)
        applied.append("exclude")

    if config.format is not None and result.get("output_format") in (None, DEFAULT_FORMAT):
        result["output_format"] = config.format
        applied.append("output_format")

    for key in ("pg_version", "dialect", "workers"):
        value = getattr(config, key)
        if value is not None and result.get(key) is None:
            result[key] = value
            applied.append(key)

    # Flags can only be switched on from config
    for key in ("verbose", "exit_code"):
        value = getattr(config, key)
        if value is not None and not result.get(key):
            result[key] = value
            applied.append(key)

    result["_applied_from_config"] = applied
    return result
