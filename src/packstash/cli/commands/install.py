"""Install and dependency commands for CLI."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from packstash.cli.formatting import result_lines
from packstash.cli.main import app, exit_with_error, load_cli_settings, open_pipeline
from packstash.core.cancellation import CancelToken
from packstash.core.exceptions import PackstashError
from packstash.core.models import InstallCategory, InstallRequest
from packstash.progress import RichProgressReporter


@app.command()
def install(
    ctx: typer.Context,
    project_id: int = typer.Argument(help="Catalog project id."),
    file_id: int = typer.Argument(help="Catalog file id."),
    category: InstallCategory = typer.Option(
        InstallCategory.MOD,
        "--category",
        "-c",
        help="Install category. Only modpacks install their dependencies.",
    ),
    workspace: Path | None = typer.Option(
        None,
        "--workspace",
        "-w",
        help="Game instance directory to link the installed files into.",
    ),
    ignore_dependencies: bool = typer.Option(
        False,
        "--ignore-dependencies",
        help="Install only the file itself.",
    ),
) -> None:
    """Install a catalog file and its dependencies into the store."""
    settings = load_cli_settings(ctx)
    token = CancelToken()

    with RichProgressReporter(Console(stderr=True)) as reporter:
        with open_pipeline(settings, progress=reporter, listeners=[reporter]) as pipeline:
            try:
                file = pipeline.fetch_project_file(project_id, file_id)
                result = pipeline.install_file(
                    InstallRequest(
                        file=file,
                        category=category,
                        workspace_path=workspace,
                        ignore_dependencies=ignore_dependencies,
                    ),
                    cancel_token=token,
                )
            except KeyboardInterrupt:
                token.cancel()
                typer.echo("Install cancelled.", err=True)
                raise typer.Exit(130) from None
            except PackstashError as e:
                exit_with_error(e)

    for line in result_lines(result):
        typer.echo(line)
    installed = len(result.walk())
    typer.echo(f"Installed {installed} file(s).")


@app.command()
def deps(
    ctx: typer.Context,
    project_id: int = typer.Argument(help="Catalog project id."),
    file_id: int = typer.Argument(help="Catalog file id."),
) -> None:
    """Show the resolved dependency closure of a file."""
    settings = load_cli_settings(ctx)

    with open_pipeline(settings) as pipeline:
        try:
            file = pipeline.fetch_project_file(project_id, file_id)
            closure = pipeline.resolve_file_dependencies(file)
        except PackstashError as e:
            exit_with_error(e)

    if not closure:
        typer.echo(f"{file.display_name} has no dependencies.")
        return
    typer.echo(f"{file.display_name} depends on:")
    for dep in closure:
        typer.echo(f"  {dep.project_id}/{dep.id}  {dep.display_name}")
