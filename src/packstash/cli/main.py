"""CLI application and shared command plumbing for packstash."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, NoReturn

import typer

from packstash.core.exceptions import PackstashError


if TYPE_CHECKING:
    from collections.abc import Sequence

    from packstash.config import Settings
    from packstash.core.ports import InstallListener, ProgressReporter
    from packstash.core.services import InstallationPipeline


app = typer.Typer(
    name="packstash",
    help="Install mods, resource packs and modpacks with their dependencies.",
    no_args_is_help=True,
)


@app.callback()
def configure(
    ctx: typer.Context,
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show debug logging.",
    ),
    store_dir: Path | None = typer.Option(
        None,
        "--store-dir",
        help="Content store directory. Overrides configuration.",
    ),
    api_key: str | None = typer.Option(
        None,
        "--api-key",
        envvar="CURSEFORGE_API_KEY",
        help="Catalog API key.",
        show_envvar=True,
    ),
) -> None:
    """Install mods, resource packs and modpacks with their dependencies."""
    from packstash.logging_setup import configure_logging

    configure_logging(verbose)
    ctx.obj = {"store_dir": store_dir, "api_key": api_key}


def load_cli_settings(ctx: typer.Context) -> Settings:
    """Load settings for the current directory with the global overrides."""
    from packstash.config import load_settings

    overrides = ctx.obj or {}
    try:
        return load_settings(**overrides)
    except PackstashError as e:
        exit_with_error(e)


def open_pipeline(
    settings: Settings,
    *,
    progress: ProgressReporter | None = None,
    listeners: Sequence[InstallListener] = (),
) -> InstallationPipeline:
    """Create the installation pipeline used by the commands."""
    from packstash.core.services import InstallationPipeline

    return InstallationPipeline.from_settings(
        settings, progress=progress, listeners=listeners
    )


def exit_with_error(error: PackstashError) -> NoReturn:
    """Print an error and its recovery hint to stderr and exit with code 1."""
    typer.echo(f"Error: {error}", err=True)
    if error.recovery_hint:
        typer.echo(f"Hint: {error.recovery_hint}", err=True)
    raise typer.Exit(1) from None


def main() -> None:
    """Entry point for the CLI."""
    app()
