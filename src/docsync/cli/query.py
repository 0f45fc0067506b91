"""docsync search / stats commands - query the persisted index."""

import asyncio
import json
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from docsync.config.constants import SEARCH_DEFAULT_LIMIT, SEARCH_MAX_LIMIT
from docsync.config.loader import load_config
from docsync.config.models import DocSyncConfig
from docsync.core.errors import DocSyncError
from docsync.index._internal.embedding import FastEmbedEmbedder
from docsync.index.ops import SearchService
from docsync.index.store import IndexStore

_config_option = click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML config file (default: ~/.config/docsync/config.yaml)",
)


async def _open_service(config: DocSyncConfig) -> SearchService:
    store = IndexStore(
        FastEmbedEmbedder(config.index.embedding_model),
        config.index.persist_dir,
        save_delay=config.index.save_delay_sec,
    )
    await store.load()
    return SearchService(store)


@click.command()
@click.argument("query")
@click.option(
    "-n",
    "--limit",
    type=click.IntRange(1, SEARCH_MAX_LIMIT),
    default=SEARCH_DEFAULT_LIMIT,
    show_default=True,
)
@click.option("--folder", help="Only return files under this folder")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@_config_option
def search_command(
    query: str,
    limit: int,
    folder: str | None,
    as_json: bool,
    config_path: Path | None,
) -> None:
    """Semantic search over the persisted index."""

    async def run() -> list[dict[str, object]]:
        service = await _open_service(load_config(config_path))
        hits = await service.search(query, limit=limit, folder=folder)
        return [hit.to_dict() for hit in hits]

    try:
        results = asyncio.run(run())
    except DocSyncError as e:
        raise click.ClickException(str(e)) from e

    if as_json:
        click.echo(json.dumps(results, indent=2))
        return

    console = Console()
    if not results:
        console.print("No results.")
        return
    for i, result in enumerate(results, 1):
        console.print(
            f"[bold]{i}.[/bold] [cyan]{result['source']}[/cyan] "
            f"[dim]({result['fileType']}, score {result['score']:.3f}, "
            f"modified {result['lastModifiedDate']})[/dim]",
            highlight=False,
        )
        console.print(str(result["content"]).strip()[:400], highlight=False)
        console.print()


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@_config_option
def stats_command(as_json: bool, config_path: Path | None) -> None:
    """Show document counts from the persisted index."""

    async def run() -> dict[str, object]:
        service = await _open_service(load_config(config_path))
        return service.get_stats().to_dict()

    try:
        stats = asyncio.run(run())
    except DocSyncError as e:
        raise click.ClickException(str(e)) from e

    if as_json:
        click.echo(json.dumps(stats, indent=2))
        return

    console = Console()
    console.print(f"Total documents: [bold]{stats['totalDocuments']}[/bold]")
    by_type = stats["documentsByType"]
    if isinstance(by_type, dict) and by_type:
        table = Table("File type", "Chunks")
        for file_type, count in sorted(by_type.items()):
            table.add_row(file_type, str(count))
        console.print(table)
    for directory in stats["watchedDirectories"]:  # type: ignore[attr-defined]
        console.print(f"Watching: {directory}", style="dim", highlight=False)
