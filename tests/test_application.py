"""Tests for application delegation."""

import re
import sys
from collections.abc import Callable
from pathlib import Path

import pytest

from stampede.application import (
    ApplicationTarget,
    call_application,
    delegate,
    prepare_path,
)
from stampede.errors import ApplicationLoadError, ApplicationNotFoundError
from stampede.utils.logging import LogContext

pytestmark = pytest.mark.unit

ISO_UTC_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z ")


class TestApplicationTarget:
    def test_module_only(self) -> None:
        target = ApplicationTarget.parse("app.app")
        assert target == ApplicationTarget(module="app.app", attribute=None)
        assert str(target) == "app.app"

    def test_module_and_callable(self) -> None:
        target = ApplicationTarget.parse("svc.server:Server.serve")
        assert target.module == "svc.server"
        assert target.attribute == "Server.serve"
        assert str(target) == "svc.server:Server.serve"

    @pytest.mark.parametrize("value", ["", "./app/app", "svc:", ":main"])
    def test_malformed(self, value: str) -> None:
        with pytest.raises(ApplicationNotFoundError) as exc_info:
            ApplicationTarget.parse(value)
        assert exc_info.value.target == value


class TestPreparePath:
    def test_inserts_first(self, temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "path", ["/somewhere", str(temp_dir.resolve())])
        assert prepare_path(temp_dir) == temp_dir.resolve()
        assert sys.path == [str(temp_dir.resolve()), "/somewhere"]


class TestDelegateModule:
    def test_self_starting_module_runs_on_import(self, write_app: Callable[[str, str], str], streams) -> None:
        stdout, stderr = streams
        target = write_app(
            "app",
            """
            import logging

            print("application up")
            logging.getLogger("myapp").info("serving")
            """,
        )

        with LogContext(stdout=stdout, stderr=stderr) as context:
            assert delegate(target, context) == 0

        lines = stdout.getvalue().splitlines()
        assert len(lines) == 2
        assert all(ISO_UTC_PREFIX.match(line) for line in lines)
        assert lines[0].endswith(" application up")
        assert lines[1].endswith("INFO myapp: serving")

    def test_app_dir_used_for_import(self, temp_dir: Path, log_context: LogContext, monkeypatch) -> None:
        monkeypatch.setattr(sys, "path", list(sys.path))
        package = temp_dir / "stampede_dirapp"
        package.mkdir()
        (package / "__init__.py").write_text("")
        (package / "app.py").write_text("STARTED = True\n")
        try:
            assert delegate("stampede_dirapp.app", log_context, app_dir=temp_dir) == 0
            assert sys.modules["stampede_dirapp.app"].STARTED is True
        finally:
            sys.modules.pop("stampede_dirapp.app", None)
            sys.modules.pop("stampede_dirapp", None)

    def test_missing_module(self, app_dir: Path, log_context: LogContext) -> None:
        with pytest.raises(ApplicationNotFoundError) as exc_info:
            delegate("stampede_testapp.nothing_here", log_context)
        assert exc_info.value.target == "stampede_testapp.nothing_here"

    def test_missing_dependency_is_load_error(
        self, write_app: Callable[[str, str], str], log_context: LogContext
    ) -> None:
        target = write_app("app", "import stampede_absent_dependency\n")
        with pytest.raises(ApplicationLoadError, match="stampede_absent_dependency"):
            delegate(target, log_context)

    def test_import_failure(self, write_app: Callable[[str, str], str], log_context: LogContext) -> None:
        target = write_app("app", "raise RuntimeError('database unreachable')\n")
        with pytest.raises(ApplicationLoadError, match="database unreachable") as exc_info:
            delegate(target, log_context)
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_system_exit_passes_through(
        self, write_app: Callable[[str, str], str], log_context: LogContext
    ) -> None:
        target = write_app("app", "raise SystemExit(4)\n")
        with pytest.raises(SystemExit) as exc_info:
            delegate(target, log_context)
        assert exc_info.value.code == 4


class TestDelegateCallable:
    def test_receives_log_context(self, write_app: Callable[[str, str], str], log_context: LogContext) -> None:
        target = write_app(
            "app",
            """
            RECEIVED = []

            def main(context):
                RECEIVED.append(context)
            """,
        )
        assert delegate(f"{target}:main", log_context) == 0
        assert sys.modules[target].RECEIVED == [log_context]

    def test_no_argument_callable(self, write_app: Callable[[str, str], str], log_context: LogContext) -> None:
        target = write_app("app", "def main():\n    return 7\n")
        assert delegate(f"{target}:main", log_context) == 7

    def test_nested_attribute(self, write_app: Callable[[str, str], str], log_context: LogContext) -> None:
        target = write_app(
            "app",
            """
            class Server:
                @staticmethod
                def serve():
                    return 0
            """,
        )
        assert delegate(f"{target}:Server.serve", log_context) == 0

    def test_coroutine_function(self, write_app: Callable[[str, str], str], log_context: LogContext) -> None:
        target = write_app(
            "app",
            """
            import asyncio

            async def main(context):
                await asyncio.sleep(0)
                return 2
            """,
        )
        assert delegate(f"{target}:main", log_context) == 2

    def test_missing_attribute(self, write_app: Callable[[str, str], str], log_context: LogContext) -> None:
        target = write_app("app", "")
        with pytest.raises(ApplicationNotFoundError, match="no attribute 'main'"):
            delegate(f"{target}:main", log_context)

    def test_not_callable(self, write_app: Callable[[str, str], str], log_context: LogContext) -> None:
        target = write_app("app", "main = 42\n")
        with pytest.raises(ApplicationNotFoundError, match="not callable"):
            delegate(f"{target}:main", log_context)

    def test_callable_raises(self, write_app: Callable[[str, str], str], log_context: LogContext) -> None:
        target = write_app("app", "def main():\n    raise KeyError('config')\n")
        with pytest.raises(ApplicationLoadError, match="KeyError") as exc_info:
            delegate(f"{target}:main", log_context)
        assert exc_info.value.target == f"{target}:main"


class TestCallApplication:
    @pytest.mark.parametrize("result", [None, "done", True, 0])
    def test_non_int_results_are_success(self, result: object, log_context: LogContext) -> None:
        assert call_application(lambda: result, log_context, "x:y") == 0

    def test_varargs_receive_context(self, log_context: LogContext) -> None:
        received = []
        call_application(lambda *args: received.extend(args), log_context, "x:y")
        assert received == [log_context]

    def test_keyboard_interrupt_not_wrapped(self, log_context: LogContext) -> None:
        def main() -> None:
            raise KeyboardInterrupt

        with pytest.raises(KeyboardInterrupt):
            call_application(main, log_context, "x:main")
