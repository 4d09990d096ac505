"""Click CLI definitions - main entry point."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from deepresearch.commands.config_cmd import config_group
from deepresearch.commands.history_cmd import history_group
from deepresearch.commands.research_cmd import research_command


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option(
    "--config", "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    envvar="DEEPRESEARCH_CONFIG",
    help="Config file (default: ~/.config/deepresearch/config.toml)",
)
@click.pass_context
def cli(ctx, debug: bool, config_path: Path | None) -> None:
    """deepresearch - recursive web research with streamed reports."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if debug else logging.WARNING)
    ctx.obj = {"debug": debug, "config_path": config_path}


cli.add_command(research_command)
cli.add_command(history_group)
cli.add_command(config_group)


if __name__ == "__main__":
    cli()
