"""Shared formatting helpers for CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING

import typer

from packstash.core.models import LoaderType


if TYPE_CHECKING:
    from packstash.core.models import InstallResult, PackageFile


def format_size(size_bytes: int) -> str:
    """Format a byte count with a binary unit.

    Example:
        >>> format_size(1536)
        '1.5 KiB'
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    size = size_bytes / 1024
    for unit in ("KiB", "MiB"):
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GiB"


def parse_loader(name: str | None) -> LoaderType | None:
    """Parse a ``--loader`` value such as "forge" or "NeoForge".

    Raises:
        typer.BadParameter: If the name is not a known loader.
    """
    if not name:
        return None
    try:
        return LoaderType[name.upper()]
    except KeyError:
        choices = ", ".join(t.name.lower() for t in LoaderType)
        raise typer.BadParameter(f"Unknown loader '{name}'. Choose from: {choices}") from None


def game_versions(file: PackageFile) -> str:
    """Comma separated compatibility tags of a file."""
    names = [tag.game_version or tag.game_version_name for tag in file.game_versions]
    return ", ".join(name for name in names if name)


def result_lines(result: InstallResult, depth: int = 0) -> list[str]:
    """Render an install result tree, one indented line per file."""
    marker = "" if depth == 0 else "+ "
    lines = [
        f"{'  ' * depth}{marker}{result.file.display_name} ({result.file.id}) "
        f"-> {result.resource.path}"
    ]
    for child in result.dependencies:
        lines.extend(result_lines(child, depth + 1))
    return lines
