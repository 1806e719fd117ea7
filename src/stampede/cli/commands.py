"""
Entrypoint commands.
"""

from pathlib import Path
from typing import Any

import click

from stampede.runner import run_entrypoint


@click.command()
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose debug output",
)
@click.option(
    "--app",
    "app_target",
    help="Application to run: 'package.module' or 'package.module:callable'",
)
@click.option(
    "--app-dir",
    type=click.Path(file_okay=False),
    help="Directory to import the application from",
)
@click.option(
    "--workers",
    "-w",
    type=click.IntRange(1, 64),
    help="Number of worker processes",
)
@click.option(
    "--loader",
    "loaders",
    multiple=True,
    help="Loader extension module to import first (repeatable)",
)
@click.pass_context
def run(
    ctx: click.Context,
    verbose: bool,
    app_target: str | None,
    app_dir: str | None,
    workers: int | None,
    loaders: tuple[str, ...],
) -> None:
    """Run the entrypoint in the foreground."""
    overrides: dict[str, Any] = {}
    if app_target:
        overrides["app"] = app_target
    if app_dir:
        overrides["app_dir"] = app_dir
    if workers is not None:
        overrides["workers.count"] = workers
    if loaders:
        overrides["loaders"] = list(loaders)

    config_path = ctx.obj.get("config_path")
    status = run_entrypoint(
        config_path=Path(config_path) if config_path else None,
        verbose=verbose,
        overrides=overrides or None,
    )
    ctx.exit(status)
