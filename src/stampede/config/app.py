"""
Configuration management for the stampede entrypoint.

Provides YAML-based configuration with CLI overrides,
configuration hierarchy (CLI > YAML > Defaults), and validation.
"""

from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from stampede.config.logging import LoggingSettings
from stampede.config.workers import WorkersConfig
from stampede.errors import ConfigError

# Dotted Python module path, e.g. "app.app" or "hy"
MODULE_PATH_PATTERN = re.compile(r"^[A-Za-z_]\w*(\.[A-Za-z_]\w*)*$")

# Application target: "module" or "module:attribute"
APP_TARGET_PATTERN = re.compile(r"^[A-Za-z_]\w*(\.[A-Za-z_]\w*)*(:[A-Za-z_]\w*(\.[A-Za-z_]\w*)*)?$")


def get_stampede_home() -> Path:
    """Get stampede home directory, respecting STAMPEDE_HOME env var."""
    stampede_home = os.environ.get("STAMPEDE_HOME")
    if stampede_home:
        return Path(stampede_home)
    return Path.home() / ".stampede"


def default_config_path() -> Path:
    """Default config file location inside the stampede home directory."""
    return get_stampede_home() / "config.yaml"


class EntrypointConfig(BaseModel):
    """
    Main configuration for the stampede entrypoint.

    Configuration is loaded with the following priority:
    1. CLI arguments (highest)
    2. YAML file ($STAMPEDE_HOME/config.yaml)
    3. Defaults (lowest)
    """

    model_config = {"populate_by_name": True}

    app: str = Field(
        default="app.app",
        description="Application to delegate to: 'module' (self-starting) or 'module:callable'",
    )
    app_dir: str = Field(
        default=".",
        description="Directory placed at the front of sys.path before the application is imported",
    )
    loaders: list[str] = Field(
        default_factory=list,
        description="Loader extension modules imported before the application (e.g. 'hy')",
    )
    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Console logging configuration",
    )
    workers: WorkersConfig = Field(
        default_factory=WorkersConfig,
        description="Sibling worker process configuration",
    )

    @field_validator("app")
    @classmethod
    def validate_app(cls, v: str) -> str:
        """Validate the application target is 'module' or 'module:callable'."""
        if not APP_TARGET_PATTERN.match(v):
            raise ValueError(f"app must look like 'package.module' or 'package.module:callable', got: {v!r}")
        return v

    @field_validator("loaders")
    @classmethod
    def validate_loaders(cls, v: list[str]) -> list[str]:
        """Validate every loader is a dotted module path."""
        for name in v:
            if not MODULE_PATH_PATTERN.match(name):
                raise ValueError(f"loader must be a dotted module path, got: {name!r}")
        return v

    def get_logging_config(self) -> LoggingSettings:
        """Get logging configuration."""
        return self.logging

    def get_workers_config(self) -> WorkersConfig:
        """Get workers configuration."""
        return self.workers


def load_yaml(config_file: str) -> dict[str, Any]:
    """
    Load YAML or JSON configuration file.

    Args:
        config_file: Path to YAML or JSON configuration file

    Returns:
        Dictionary with parsed YAML/JSON content, empty if the file is missing

    Raises:
        ConfigError: If YAML/JSON is invalid or file format is wrong
    """
    config_path = Path(config_file).expanduser()

    if not config_path.exists():
        return {}

    # Validate file extension matches format
    file_ext = config_path.suffix.lower()
    if file_ext not in [".yaml", ".yml", ".json"]:
        raise ConfigError(
            f"Config file must have .yaml, .yml, or .json extension, got: {file_ext}\n"
            f"File: {config_path}",
            config_file=config_file,
        )

    try:
        with open(config_path, encoding="utf-8") as f:
            content = f.read()

        if file_ext == ".json":
            data = json.loads(content) if content.strip() else {}
        else:
            data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file: {e}", config_file=config_file) from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in config file: {e}", config_file=config_file) from e
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Cannot read config file {config_path}: {e}", config_file=config_file) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"Config file must contain a mapping at the top level, got {type(data).__name__}",
            config_file=config_file,
        )
    return data


def apply_cli_overrides(
    config_dict: dict[str, Any],
    cli_overrides: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Apply CLI argument overrides to config dictionary.

    Args:
        config_dict: Configuration dictionary
        cli_overrides: Dictionary of CLI overrides; keys may be dotted ("workers.count")

    Returns:
        Configuration dictionary with CLI overrides applied
    """
    if cli_overrides is None:
        return config_dict

    for key, value in cli_overrides.items():
        if "." in key:
            parts = key.split(".")
            current = config_dict
            for part in parts[:-1]:
                if not isinstance(current.get(part), dict):
                    current[part] = {}
                current = current[part]
            current[parts[-1]] = value
        else:
            config_dict[key] = value

    return config_dict


def generate_default_config(config_file: str) -> None:
    """
    Generate default configuration file from Pydantic model defaults.

    Args:
        config_file: Path where to create the config file
    """
    save_config(EntrypointConfig(), config_file)


def load_config(
    config_file: str | None = None,
    cli_overrides: dict[str, Any] | None = None,
    create_default: bool = False,
) -> EntrypointConfig:
    """
    Load configuration with hierarchy: CLI > YAML > Defaults.

    Args:
        config_file: Path to YAML config file (default: $STAMPEDE_HOME/config.yaml)
        cli_overrides: Dictionary of CLI argument overrides
        create_default: Create default config file if it doesn't exist

    Returns:
        Validated EntrypointConfig instance

    Raises:
        ConfigError: If configuration is invalid
    """
    if config_file is None:
        config_file = str(default_config_path())

    config_path = Path(config_file).expanduser()

    if create_default and not config_path.exists():
        generate_default_config(config_file)

    config_dict = load_yaml(config_file)
    config_dict = apply_cli_overrides(config_dict, cli_overrides)

    try:
        return EntrypointConfig(**config_dict)
    except ValidationError as e:
        raise ConfigError(
            f"Configuration validation failed: {e}\n"
            f"Please check your configuration file at {config_file}",
            config_file=config_file,
        ) from e


def save_config(config: EntrypointConfig, config_file: str | None = None) -> None:
    """
    Save configuration to YAML file.

    Args:
        config: EntrypointConfig instance to save
        config_file: Path to YAML config file (default: $STAMPEDE_HOME/config.yaml)

    Raises:
        OSError: If file operations fail
    """
    if config_file is None:
        config_file = str(default_config_path())

    config_path = Path(config_file).expanduser()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    config_dict = config.model_dump(mode="python", exclude_none=True)

    with open(config_path, "w") as f:
        yaml.safe_dump(config_dict, f, default_flow_style=False, sort_keys=False)

    # Set restrictive permissions (owner read/write only)
    config_path.chmod(0o600)
