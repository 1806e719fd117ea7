"""Startup exceptions for the stampede entrypoint."""

from __future__ import annotations


class StartupError(Exception):
    """Base exception for anything that stops the entrypoint from starting."""

    pass


class ConfigError(StartupError, ValueError):
    """Raised when the configuration file or an override is invalid."""

    def __init__(self, message: str, config_file: str | None = None) -> None:
        self.config_file = config_file
        super().__init__(message)


class LoaderError(StartupError):
    """Raised when a loader extension cannot be imported."""

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason
        super().__init__(f"Failed to load loader extension '{name}': {reason}")


class ApplicationNotFoundError(StartupError):
    """Raised when the application target is malformed or cannot be found."""

    def __init__(self, target: str, reason: str) -> None:
        self.target = target
        self.reason = reason
        super().__init__(f"Application '{target}' not found: {reason}")


class ApplicationLoadError(StartupError):
    """Raised when the application module fails while loading or running."""

    def __init__(self, target: str, reason: str) -> None:
        self.target = target
        self.reason = reason
        super().__init__(f"Application '{target}' failed: {reason}")
