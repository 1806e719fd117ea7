"""Pytest configuration and shared fixtures for stampede tests."""

import importlib
import io
import sys
import tempfile
import textwrap
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from stampede.config.app import EntrypointConfig
from stampede.config.logging import LoggingSettings
from stampede.utils.logging import LogContext

# Every application package written by tests uses this prefix so it can be
# dropped from sys.modules afterwards.
APP_PREFIX = "stampede_testapp"


@pytest.fixture
def temp_dir() -> Iterator[Path]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def default_config() -> EntrypointConfig:
    """Create a default EntrypointConfig for testing."""
    return EntrypointConfig()


@pytest.fixture
def streams() -> tuple[io.StringIO, io.StringIO]:
    """Stand-ins for the process stdout and stderr."""
    return io.StringIO(), io.StringIO()


@pytest.fixture
def log_context(streams: tuple[io.StringIO, io.StringIO]) -> Iterator[LogContext]:
    """
    An installed LogContext writing to in-memory streams.

    Handlers only: pytest swaps sys.stdout between setup and call, so tests
    that need print() stamped install their own context in the test body.
    """
    stdout, stderr = streams
    with LogContext(LoggingSettings(stamp_streams=False), stdout=stdout, stderr=stderr) as context:
        yield context


@pytest.fixture
def app_dir(temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Directory for throwaway application packages, importable for the test."""
    monkeypatch.setattr(sys, "path", [str(temp_dir), *sys.path])
    monkeypatch.setattr(sys, "meta_path", list(sys.meta_path))
    yield temp_dir
    for name in [m for m in sys.modules if m == APP_PREFIX or m.startswith(APP_PREFIX + ".")]:
        del sys.modules[name]


@pytest.fixture
def write_app(app_dir: Path) -> Callable[[str, str], str]:
    """
    Write a module under the test application package.

    Returns a function taking (module_name, source) and returning the dotted
    module path, e.g. write_app("app", "...") -> "stampede_testapp.app".
    """

    def _write(module_name: str, source: str) -> str:
        package_dir = app_dir / APP_PREFIX
        package_dir.mkdir(exist_ok=True)
        (package_dir / "__init__.py").touch()
        (package_dir / f"{module_name}.py").write_text(textwrap.dedent(source))
        importlib.invalidate_caches()
        return f"{APP_PREFIX}.{module_name}"

    return _write
