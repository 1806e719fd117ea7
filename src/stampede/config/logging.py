"""
Logging configuration module.

Contains the console logging config model:
- LoggingSettings: log level, timestamp pattern, stream stamping
"""

from typing import Literal

from pydantic import BaseModel, Field, field_validator

__all__ = ["LoggingSettings", "TIMESTAMP_PRESETS"]

# Named timestamp patterns understood by the console formatter.
TIMESTAMP_PRESETS = ("iso_utc", "iso_utc_seconds", "iso_local")


class LoggingSettings(BaseModel):
    """Console logging configuration."""

    level: Literal["debug", "info", "warning", "error"] = Field(
        default="info",
        description="Log level",
    )
    timestamp_pattern: str = Field(
        default="iso_utc",
        description=(
            "Timestamp prefix for every console line: one of "
            f"{', '.join(TIMESTAMP_PRESETS)}, or a strftime pattern rendered in UTC "
            "(%L expands to milliseconds)"
        ),
    )
    stamp_streams: bool = Field(
        default=True,
        description="Also timestamp plain writes to stdout/stderr (print, tracebacks)",
    )

    @field_validator("timestamp_pattern")
    @classmethod
    def validate_timestamp_pattern(cls, v: str) -> str:
        """Validate the pattern is a known preset or a strftime pattern."""
        if v in TIMESTAMP_PRESETS or "%" in v:
            return v
        raise ValueError(
            f"timestamp_pattern must be one of {', '.join(TIMESTAMP_PRESETS)} "
            f"or a strftime pattern, got: {v!r}"
        )
