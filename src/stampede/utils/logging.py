"""
Timestamped console logging.

Every line the process writes to the console starts with a timestamp:
log records go through TimestampFormatter, plain writes to stdout/stderr
(print, uncaught tracebacks) go through TimestampedStream. LogContext owns
both and is handed to the application instead of living in module globals.
"""

from __future__ import annotations

import logging
import re
import sys
import threading
from collections.abc import Callable
from datetime import UTC, datetime
from typing import IO, Any

from stampede.config.logging import LoggingSettings

DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

NOISY_LOGGERS = ("httpx", "httpcore", "asyncio")

_LINE_RE = re.compile(r"[^\n]*\n|[^\n]+")
_DIRECTIVE_RE = re.compile(r"%(.)")


def format_timestamp(pattern: str, when: datetime | None = None) -> str:
    """
    Render a timestamp prefix.

    Args:
        pattern: "iso_utc", "iso_utc_seconds", "iso_local", or a strftime
            pattern rendered in UTC where %L expands to milliseconds
        when: Aware datetime to render (default: now)

    Returns:
        Rendered timestamp, e.g. "2026-10-19T08:15:02.117Z" for iso_utc
    """
    if when is None:
        when = datetime.now(UTC)
    utc = when.astimezone(UTC)
    millis = f"{utc.microsecond // 1000:03d}"

    if pattern == "iso_utc":
        return f"{utc.strftime('%Y-%m-%dT%H:%M:%S')}.{millis}Z"
    if pattern == "iso_utc_seconds":
        return utc.strftime("%Y-%m-%dT%H:%M:%SZ")
    if pattern == "iso_local":
        return when.astimezone().isoformat(timespec="milliseconds")
    # %L is milliseconds; %%L stays a literal "%L"
    expanded = _DIRECTIVE_RE.sub(lambda m: millis if m.group(1) == "L" else m.group(0), pattern)
    return utc.strftime(expanded)


class TimestampFormatter(logging.Formatter):
    """Formatter that prefixes every line of a record with its timestamp."""

    def __init__(self, pattern: str = "iso_utc", fmt: str = DEFAULT_FORMAT):
        super().__init__(fmt=fmt)
        self.pattern = pattern

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:  # noqa: N802
        return format_timestamp(self.pattern, datetime.fromtimestamp(record.created, UTC))

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        if "\n" not in text:
            return text
        # Tracebacks and multi-line messages: stamp the continuation lines too
        stamp = self.formatTime(record)
        first, *rest = text.split("\n")
        return "\n".join([first, *(f"{stamp} {line}" for line in rest)])


class _BelowLevelFilter(logging.Filter):
    """Pass only records strictly below a level (stdout gets info, stderr gets warnings)."""

    def __init__(self, level: int):
        super().__init__()
        self.level = level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < self.level


class TimestampedStream:
    """
    Text stream wrapper that stamps the start of every line.

    Partial writes are tracked, so print("a", "b") stamps once and a line
    written in several chunks carries one prefix.
    """

    def __init__(
        self,
        stream: IO[str],
        pattern: str = "iso_utc",
        clock: Callable[[], datetime] | None = None,
    ):
        self.stream = stream
        self.pattern = pattern
        self._clock = clock
        self._at_line_start = True
        self._lock = threading.Lock()

    def _stamp(self) -> str:
        when = self._clock() if self._clock else None
        return format_timestamp(self.pattern, when)

    def write(self, text: str) -> int:
        if not text:
            return 0
        with self._lock:
            out = []
            for line in _LINE_RE.findall(text):
                if self._at_line_start:
                    out.append(f"{self._stamp()} ")
                out.append(line)
                self._at_line_start = line.endswith("\n")
            self.stream.write("".join(out))
        return len(text)

    def write_stamped(self, text: str) -> None:
        """Write text that already carries its timestamps, ending any partial line first."""
        with self._lock:
            if not self._at_line_start:
                text = "\n" + text
            self.stream.write(text)
            self._at_line_start = text.endswith("\n")

    def writelines(self, lines: list[str]) -> None:
        for line in lines:
            self.write(line)

    def flush(self) -> None:
        self.stream.flush()

    def __getattr__(self, name: str) -> Any:
        # encoding, fileno, isatty, buffer, ...
        return getattr(self.stream, name)


class _LineAwareHandler(logging.StreamHandler):
    """
    StreamHandler that writes through a TimestampedStream.

    Records are already stamped by the formatter, so they bypass stamping but
    share the wrapper's line state: a record never lands on the tail of a
    partial print, and the next print after a record is stamped.
    """

    def __init__(self, line_stream: TimestampedStream):
        super().__init__(line_stream.stream)
        self.line_stream = line_stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            self.line_stream.write_stamped(msg + self.terminator)
            self.flush()
        except RecursionError:
            raise
        except Exception:
            self.handleError(record)


class LogContext:
    """
    Process logging handle.

    Built once at startup from LoggingSettings, installed on the root logger
    and the standard streams, and passed to the application.
    """

    def __init__(
        self,
        settings: LoggingSettings | None = None,
        verbose: bool = False,
        stdout: IO[str] | None = None,
        stderr: IO[str] | None = None,
    ):
        self.settings = settings or LoggingSettings()
        self.verbose = verbose
        self.level = logging.DEBUG if verbose else getattr(logging, self.settings.level.upper())
        self.formatter = TimestampFormatter(self.settings.timestamp_pattern)

        self._raw_stdout = stdout if stdout is not None else sys.stdout
        self._raw_stderr = stderr if stderr is not None else sys.stderr
        self._handlers: list[logging.Handler] = []
        self._saved_streams: tuple[Any, Any] | None = None
        self._saved_level: int | None = None
        self._installed = False

    @property
    def installed(self) -> bool:
        return self._installed

    @property
    def pattern(self) -> str:
        return self.settings.timestamp_pattern

    def stamp(self, when: datetime | None = None) -> str:
        """Render a timestamp with this context's pattern."""
        return format_timestamp(self.pattern, when)

    def get_logger(self, name: str) -> logging.Logger:
        return logging.getLogger(name)

    def install(self) -> LogContext:
        """Attach console handlers to the root logger and wrap the standard streams."""
        if self._installed:
            return self

        # One line tracker per sink, shared by the handler and the stream wrapper
        out_stream = TimestampedStream(self._raw_stdout, self.pattern)
        err_stream = TimestampedStream(self._raw_stderr, self.pattern)

        out_handler = _LineAwareHandler(out_stream)
        out_handler.addFilter(_BelowLevelFilter(logging.WARNING))
        err_handler = _LineAwareHandler(err_stream)
        err_handler.setLevel(logging.WARNING)
        for handler in (out_handler, err_handler):
            handler.setFormatter(self.formatter)
        self._handlers = [out_handler, err_handler]

        root = logging.getLogger()
        self._saved_level = root.level
        root.setLevel(self.level)
        for handler in self._handlers:
            root.addHandler(handler)

        # Silence noisy third-party loggers
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

        if self.settings.stamp_streams:
            self._saved_streams = (sys.stdout, sys.stderr)
            sys.stdout = out_stream  # type: ignore[assignment]
            sys.stderr = err_stream  # type: ignore[assignment]

        self._installed = True
        return self

    def uninstall(self) -> None:
        """Undo install(); used when stampede is embedded or under test."""
        if not self._installed:
            return

        root = logging.getLogger()
        for handler in self._handlers:
            root.removeHandler(handler)
            handler.close()
        self._handlers = []
        if self._saved_level is not None:
            root.setLevel(self._saved_level)

        if self._saved_streams is not None:
            sys.stdout, sys.stderr = self._saved_streams
            self._saved_streams = None

        self._installed = False

    def __enter__(self) -> LogContext:
        return self.install()

    def __exit__(self, *exc_info: object) -> None:
        self.uninstall()


def setup_console_logging(settings: LoggingSettings | None = None, verbose: bool = False) -> LogContext:
    """
    Configure timestamped console logging for the process.

    Args:
        settings: Logging settings (default: LoggingSettings())
        verbose: If True, force DEBUG level

    Returns:
        The installed LogContext
    """
    return LogContext(settings, verbose=verbose).install()
