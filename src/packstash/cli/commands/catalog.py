"""Catalog browsing commands for CLI."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from packstash.cli.formatting import game_versions, parse_loader
from packstash.cli.main import app, exit_with_error, load_cli_settings, open_pipeline
from packstash.core.exceptions import PackstashError
from packstash.core.models import LoaderType, SearchOptions


@app.command()
def search(
    ctx: typer.Context,
    query: str = typer.Argument(help="Text to search for."),
    game_version: str = typer.Option("", "--game-version", "-g", help="Game version filter."),
    loader: str | None = typer.Option(None, "--loader", "-l", help="Mod loader filter."),
    limit: int = typer.Option(20, "--limit", "-n", min=1, max=50, help="Maximum results."),
) -> None:
    """Search catalog projects."""
    options = SearchOptions(
        search_filter=query,
        game_version=game_version,
        loader_type=parse_loader(loader) or LoaderType.ANY,
        page_size=limit,
    )
    settings = load_cli_settings(ctx)

    with open_pipeline(settings) as pipeline:
        try:
            projects = pipeline.search_projects(options)
        except PackstashError as e:
            exit_with_error(e)

    if not projects:
        typer.echo(f"No projects match '{query}'.")
        return

    table = Table()
    table.add_column("ID", justify="right")
    table.add_column("Name")
    table.add_column("Summary")
    for project in projects:
        table.add_row(str(project.id), project.name, project.summary)

    console = Console(force_terminal=True)
    console.print(table)


@app.command()
def files(
    ctx: typer.Context,
    project_id: int = typer.Argument(help="Catalog project id."),
    game_version: str | None = typer.Option(
        None, "--game-version", "-g", help="Game version filter."
    ),
    loader: str | None = typer.Option(None, "--loader", "-l", help="Mod loader filter."),
    limit: int = typer.Option(20, "--limit", "-n", min=1, max=50, help="Maximum results."),
) -> None:
    """List the files of a project, newest first."""
    loader_type = parse_loader(loader)
    settings = load_cli_settings(ctx)

    with open_pipeline(settings) as pipeline:
        try:
            page = pipeline.fetch_project_files(
                project_id,
                game_version=game_version,
                loader_type=loader_type,
                page_size=limit,
            )
        except PackstashError as e:
            exit_with_error(e)

    if not page.data:
        typer.echo(f"No files found for project {project_id}.")
        return

    table = Table()
    table.add_column("File ID", justify="right")
    table.add_column("Name")
    table.add_column("Versions")
    for file in page.data:
        table.add_row(str(file.id), file.display_name, game_versions(file))

    console = Console(force_terminal=True)
    console.print(table)
    if page.total_count > len(page.data):
        typer.echo(f"Showing {len(page.data)} of {page.total_count} files.")


@app.command()
def categories(ctx: typer.Context) -> None:
    """List catalog classes and categories."""
    settings = load_cli_settings(ctx)

    with open_pipeline(settings) as pipeline:
        try:
            all_categories = pipeline.fetch_categories()
        except PackstashError as e:
            exit_with_error(e)

    table = Table()
    table.add_column("ID", justify="right")
    table.add_column("Name")
    table.add_column("Slug")
    # Classes first, then categories grouped by class
    for category in sorted(
        all_categories, key=lambda c: (not c.is_class, c.class_id or 0, c.name)
    ):
        name = f"[bold]{category.name}[/bold]" if category.is_class else category.name
        table.add_row(str(category.id), name, category.slug)

    console = Console(force_terminal=True)
    console.print(table)
