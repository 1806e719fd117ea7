"""
Configuration package for the stampede entrypoint.

Module structure:
- app.py: EntrypointConfig, file loading and CLI overrides
- logging.py: LoggingSettings
- workers.py: WorkersConfig
"""

from stampede.config.app import (
    EntrypointConfig,
    apply_cli_overrides,
    default_config_path,
    generate_default_config,
    get_stampede_home,
    load_config,
    load_yaml,
    save_config,
)
from stampede.config.logging import LoggingSettings
from stampede.config.workers import WorkersConfig

__all__ = [
    "EntrypointConfig",
    "LoggingSettings",
    "WorkersConfig",
    "apply_cli_overrides",
    "default_config_path",
    "generate_default_config",
    "get_stampede_home",
    "load_config",
    "load_yaml",
    "save_config",
]
