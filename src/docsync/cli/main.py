"""docsync CLI - docsync command."""

import click

from docsync.cli.query import search_command, stats_command
from docsync.cli.up import up_command
from docsync.core.logging import configure_logging


@click.group()
@click.version_option(version="0.1.0", prog_name="docsync")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """docsync - Keep a semantic index of watched directories in sync."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    configure_logging(level="DEBUG" if verbose else "INFO")


cli.add_command(up_command, name="up")
cli.add_command(search_command, name="search")
cli.add_command(stats_command, name="stats")


if __name__ == "__main__":
    cli()
