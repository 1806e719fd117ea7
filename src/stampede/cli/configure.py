"""
Configuration commands.
"""

from pathlib import Path

import click
import yaml

from stampede.config.app import default_config_path, generate_default_config, load_config
from stampede.errors import ConfigError


def _config_file(ctx: click.Context) -> str:
    config_path = ctx.obj.get("config_path")
    return config_path or str(default_config_path())


@click.group()
def config() -> None:
    """Manage the entrypoint configuration."""
    pass


@config.command("init")
@click.option("--force", is_flag=True, help="Overwrite an existing config file")
@click.pass_context
def init(ctx: click.Context, force: bool) -> None:
    """Write the default configuration file."""
    config_file = _config_file(ctx)
    path = Path(config_file).expanduser()

    if path.exists() and not force:
        click.echo(f"Config file already exists: {path} (use --force to overwrite)", err=True)
        ctx.exit(1)

    generate_default_config(config_file)
    click.echo(f"Wrote default config to {path}")


@config.command("show")
@click.pass_context
def show(ctx: click.Context) -> None:
    """Print the effective configuration as YAML."""
    try:
        loaded = load_config(_config_file(ctx))
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)
        return

    click.echo(yaml.safe_dump(loaded.model_dump(mode="python"), default_flow_style=False, sort_keys=False), nl=False)
