"""
stampede CLI entry point.
"""

import click

from .commands import run
from .configure import config


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    help="Path to custom configuration file",
)
@click.pass_context
def cli(ctx: click.Context, config_path: str | None) -> None:
    """stampede - timestamped process entrypoint."""
    # Store config path in context for subcommands
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


cli.add_command(run)
cli.add_command(config)
