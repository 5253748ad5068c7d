"""Content store inspection command for CLI."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from packstash.adapters.store import FileContentStore
from packstash.cli.formatting import format_size
from packstash.cli.main import app, exit_with_error, load_cli_settings
from packstash.core.exceptions import PackstashError


@app.command()
def store(
    ctx: typer.Context,
    stats: bool = typer.Option(
        False,
        "--stats",
        "-s",
        help="Show store size instead of the resource list.",
    ),
) -> None:
    """List resources in the content store."""
    settings = load_cli_settings(ctx)
    content_store = FileContentStore(settings.store_dir)

    if stats:
        statistics = content_store.statistics()
        typer.echo(f"Store: {settings.store_dir}")
        typer.echo(f"Resources: {statistics['resource_count']}")
        typer.echo(f"Total size: {format_size(statistics['total_size'])}")
        return

    try:
        resources = content_store.list_resources()
    except PackstashError as e:
        exit_with_error(e)

    if not resources:
        typer.echo("The store is empty. Run 'packstash install' to add files.")
        return

    table = Table()
    table.add_column("SHA-1")
    table.add_column("Domain")
    table.add_column("File")
    table.add_column("Size", justify="right")
    for resource in resources:
        size = resource.path.stat().st_size if resource.path.exists() else 0
        table.add_row(
            resource.sha1[:10], resource.domain.value, resource.file_name, format_size(size)
        )

    console = Console(force_terminal=True)
    console.print(table)
