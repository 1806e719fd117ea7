"""
Workers configuration module.

Contains configuration for fanning the entrypoint out into sibling
worker processes.
"""

from typing import Literal

from pydantic import BaseModel, Field

__all__ = ["WorkersConfig"]


class WorkersConfig(BaseModel):
    """Configuration for sibling worker processes."""

    count: int = Field(
        default=1,
        ge=1,
        le=64,
        description="Number of worker processes; 1 runs the application in-process",
    )
    start_method: Literal["spawn", "fork", "forkserver"] = Field(
        default="spawn",
        description="multiprocessing start method used for workers",
    )
    shutdown_timeout: float = Field(
        default=10.0,
        ge=0.5,
        le=300.0,
        description="Seconds to wait for workers to exit before terminating them",
    )
