"""
Application delegation.

The entrypoint hands the rest of the process's life to an application
target. A plain module target is self-starting: importing it runs the
application. A ``module:callable`` target is imported and then called,
receiving the LogContext when it takes an argument.
"""

from __future__ import annotations

import asyncio
import importlib
import inspect
import logging
import sys
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import Any

from stampede.config.app import APP_TARGET_PATTERN
from stampede.errors import ApplicationLoadError, ApplicationNotFoundError
from stampede.utils.logging import LogContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApplicationTarget:
    """A parsed 'module' or 'module:attribute' application target."""

    module: str
    attribute: str | None = None

    @classmethod
    def parse(cls, target: str) -> ApplicationTarget:
        """
        Parse an application target string.

        Raises:
            ApplicationNotFoundError: If the string is malformed
        """
        if not APP_TARGET_PATTERN.match(target):
            raise ApplicationNotFoundError(target, "expected 'package.module' or 'package.module:callable'")
        module, _, attribute = target.partition(":")
        return cls(module=module, attribute=attribute or None)

    def __str__(self) -> str:
        if self.attribute:
            return f"{self.module}:{self.attribute}"
        return self.module


def prepare_path(app_dir: str | Path) -> Path:
    """Put the application directory at the front of sys.path."""
    path = Path(app_dir).expanduser().resolve()
    entry = str(path)
    if entry in sys.path:
        sys.path.remove(entry)
    sys.path.insert(0, entry)
    return path


def import_application(target: ApplicationTarget) -> ModuleType:
    """
    Import the application module.

    For a self-starting module this runs the application.

    Raises:
        ApplicationNotFoundError: If the module itself does not exist
        ApplicationLoadError: If importing it raises
    """
    try:
        return importlib.import_module(target.module)
    except ModuleNotFoundError as e:
        # Only the target (or one of its parent packages) missing counts as not found;
        # a missing dependency inside the application is a load failure.
        if e.name and (target.module == e.name or target.module.startswith(e.name + ".")):
            raise ApplicationNotFoundError(str(target), str(e)) from e
        raise ApplicationLoadError(str(target), f"{type(e).__name__}: {e}") from e
    except Exception as e:
        raise ApplicationLoadError(str(target), f"{type(e).__name__}: {e}") from e


def resolve_callable(module: ModuleType, target: ApplicationTarget) -> Callable[..., Any]:
    """Look up the (possibly dotted) attribute named by the target."""
    obj: Any = module
    for part in (target.attribute or "").split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError as e:
            raise ApplicationNotFoundError(str(target), f"no attribute '{part}'") from e
    if not callable(obj):
        raise ApplicationNotFoundError(str(target), f"'{target.attribute}' is not callable")
    return obj


def _accepts_context(func: Callable[..., Any]) -> bool:
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        return False
    positional = (
        inspect.Parameter.POSITIONAL_ONLY,
        inspect.Parameter.POSITIONAL_OR_KEYWORD,
        inspect.Parameter.VAR_POSITIONAL,
    )
    return any(p.kind in positional for p in signature.parameters.values())


def call_application(func: Callable[..., Any], context: LogContext, target: str) -> int:
    """
    Call the application callable and turn its result into an exit status.

    Coroutine functions are driven with asyncio.run(). An int return value is
    the exit status; anything else means 0.
    """
    args = (context,) if _accepts_context(func) else ()
    try:
        result = func(*args)
        if inspect.iscoroutine(result):
            result = asyncio.run(result)
    except Exception as e:
        raise ApplicationLoadError(target, f"{type(e).__name__}: {e}") from e

    if isinstance(result, int) and not isinstance(result, bool):
        return result
    return 0


def delegate(target: str, context: LogContext, app_dir: str | Path | None = None) -> int:
    """
    Transfer control to the application.

    Args:
        target: "package.module" or "package.module:callable"
        context: Installed logging context, passed to callable targets
        app_dir: Directory to import the application from (default: leave sys.path alone)

    Returns:
        Exit status for the process

    Raises:
        ApplicationNotFoundError: If the target cannot be found
        ApplicationLoadError: If the application fails
    """
    parsed = ApplicationTarget.parse(target)
    if app_dir is not None:
        prepare_path(app_dir)

    logger.debug(f"Importing application module {parsed.module}")
    module = import_application(parsed)

    if parsed.attribute is None:
        return 0

    func = resolve_callable(module, parsed)
    logger.debug(f"Calling application {parsed}")
    return call_application(func, context, str(parsed))
