"""
Process entrypoint.

Started directly by a process supervisor (``python -m stampede`` in a
systemd unit, a container CMD). Configures timestamped console logging,
registers loader extensions, then hands the process to the application.
"""

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Any

from stampede.application import delegate
from stampede.config.app import EntrypointConfig, load_config
from stampede.errors import ApplicationLoadError, StartupError
from stampede.loaders import register_loaders
from stampede.utils.logging import LogContext, setup_console_logging
from stampede.workers import WorkerPool, get_worker_id

logger = logging.getLogger(__name__)


class EntrypointRunner:
    """Runner for the stampede entrypoint."""

    def __init__(
        self,
        config_path: Path | None = None,
        verbose: bool = False,
        overrides: dict[str, Any] | None = None,
        config: EntrypointConfig | None = None,
    ):
        if config is None:
            config_file = str(config_path) if config_path else None
            config = load_config(config_file, cli_overrides=overrides)
        self.config = config
        self.config_path = config_path
        self.verbose = verbose
        self.worker_id = get_worker_id()

        # Installed before anything else gets a chance to log
        self.log_context: LogContext = setup_console_logging(self.config.logging, verbose=verbose)

    @property
    def fan_out(self) -> bool:
        """True when this process should start workers instead of the application."""
        return self.config.workers.count > 1 and self.worker_id is None

    def run(self) -> int:
        if self.fan_out:
            return WorkerPool(self.config, verbose=self.verbose).run()

        worker = f", worker {self.worker_id}" if self.worker_id is not None else ""
        logger.info(f"Starting {self.config.app} (pid {os.getpid()}{worker})")

        register_loaders(self.config.loaders)
        return delegate(self.config.app, self.log_context, app_dir=self.config.app_dir)


def _status_from_exit(code: object) -> int:
    """Exit status for a SystemExit code, following the interpreter's rules."""
    if code is None:
        return 0
    if isinstance(code, int):
        return code
    logger.error(str(code))
    return 1


def run_entrypoint(
    config_path: Path | None = None,
    verbose: bool = False,
    overrides: dict[str, Any] | None = None,
    config: EntrypointConfig | None = None,
) -> int:
    """
    Run the entrypoint and return the process exit status.

    Returns:
        The application's status, 0 on KeyboardInterrupt, 1 on startup failure
    """
    try:
        runner = EntrypointRunner(config_path=config_path, verbose=verbose, overrides=overrides, config=config)
    except StartupError as e:
        # Config failed before logging was set up: log with defaults
        setup_console_logging(verbose=verbose)
        logger.error(f"Startup failed: {e}")
        return 1
    except Exception as e:
        setup_console_logging(verbose=verbose)
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1

    try:
        return runner.run()
    except SystemExit as e:
        return _status_from_exit(e.code)
    except KeyboardInterrupt:
        return 0
    except StartupError as e:
        logger.error(f"Startup failed: {e}", exc_info=isinstance(e, ApplicationLoadError))
        return 1
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1


def main(
    config_path: Path | None = None,
    verbose: bool = False,
    overrides: dict[str, Any] | None = None,
) -> None:
    sys.exit(run_entrypoint(config_path=config_path, verbose=verbose, overrides=overrides))


def run_from_argv(argv: list[str] | None = None) -> None:
    """Bare argparse entry used by ``python -m stampede``."""
    parser = argparse.ArgumentParser(description="Run the stampede entrypoint")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("--config", type=Path, help="Path to config file")

    args = parser.parse_args(argv)
    main(config_path=args.config, verbose=args.verbose)


if __name__ == "__main__":
    run_from_argv()
