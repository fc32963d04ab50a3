"""CLI entry point for shiplog.

Commands:
  delta  compute the release delta for a deploy workflow run
  scope  show how a workflow's path filters scope a monorepo app
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from shiplog_cli.commands.delta import delta_cmd
from shiplog_cli.commands.scope import scope_cmd


def _configure_logging(verbose: int) -> None:
    level = {0: logging.WARNING, 1: logging.INFO}.get(verbose, logging.DEBUG)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


@click.group()
@click.version_option(
    version=importlib.metadata.version("shiplog"),
    prog_name="shiplog",
)
@click.option(
    "--config",
    "config_path",
    default=".shiplog.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="SHIPLOG_CONFIG",
)
@click.option("--verbose", "-v", count=True, help="Log progress to stderr (-vv for debug output).")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: int):
    """Work out what a monorepo deploy actually shipped."""
    from shiplog_core.config import load_config

    _configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["config"] = load_config(config_path)


main.add_command(delta_cmd)
main.add_command(scope_cmd)
