"""
Loader extensions.

A loader extension is a module whose import registers an import hook for
another source dialect (importing ``hy`` lets ``import app.app`` find
``app/app.hy``). They are imported once, before the application.
"""

from __future__ import annotations

import importlib
import logging
import sys
from collections.abc import Iterable
from types import ModuleType

from stampede.config.app import MODULE_PATH_PATTERN
from stampede.errors import LoaderError

logger = logging.getLogger(__name__)


def registered_finders() -> list[str]:
    """Names of the finders currently on sys.meta_path."""
    return [getattr(finder, "__name__", type(finder).__name__) for finder in sys.meta_path]


def load_loader(name: str) -> ModuleType:
    """
    Import a single loader extension.

    Args:
        name: Dotted module path of the extension

    Returns:
        The imported module

    Raises:
        LoaderError: If the name is invalid or the import fails
    """
    if not MODULE_PATH_PATTERN.match(name):
        raise LoaderError(name, "not a dotted module path")

    if name in sys.modules:
        logger.debug(f"Loader extension already registered: {name}")
        return sys.modules[name]

    try:
        module = importlib.import_module(name)
    except ImportError as e:
        raise LoaderError(name, str(e)) from e
    except Exception as e:
        raise LoaderError(name, f"{type(e).__name__}: {e}") from e

    logger.debug(f"Loaded loader extension: {name}")
    return module


def register_loaders(names: Iterable[str]) -> list[ModuleType]:
    """
    Import every configured loader extension, in order.

    Args:
        names: Dotted module paths; empty is a no-op

    Returns:
        The imported modules, in the same order

    Raises:
        LoaderError: On the first extension that fails to import
    """
    modules = [load_loader(name) for name in names]
    if modules:
        logger.info(f"Registered {len(modules)} loader extension(s): {', '.join(m.__name__ for m in modules)}")
        logger.debug(f"Import finders: {registered_finders()}")
    return modules
