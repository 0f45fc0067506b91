"""docsync up command - watch and index in the foreground."""

import asyncio
from pathlib import Path

import click
from rich.console import Console

from docsync.config.loader import load_config
from docsync.core.errors import DocSyncError
from docsync.core.logging import configure_logging
from docsync.daemon.lifecycle import run_service


@click.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML config file (default: ~/.config/docsync/config.yaml)",
)
@click.pass_context
def up_command(ctx: click.Context, config_path: Path | None) -> None:
    """Watch the configured directories and keep the index in sync.

    Runs until interrupted (Ctrl+C or SIGTERM).
    """
    try:
        config = load_config(config_path)
    except DocSyncError as e:
        raise click.ClickException(str(e)) from e

    logging_config = config.logging
    if ctx.obj and ctx.obj.get("verbose"):
        logging_config = logging_config.model_copy(update={"level": "DEBUG"})
    configure_logging(config=logging_config)

    console = Console(stderr=True)
    console.print("[bold cyan]docsync[/bold cyan] indexing, press Ctrl+C to stop", highlight=False)
    console.print(f"  index: {config.index.persist_dir}", style="dim", highlight=False)

    try:
        asyncio.run(run_service(config))
    except DocSyncError as e:
        raise click.ClickException(str(e)) from e
