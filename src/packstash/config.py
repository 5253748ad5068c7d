"""Configuration utilities for packstash.

Settings are layered: built-in defaults, then ``.packstash/config.toml`` at
the project root, then environment variables, then explicit overrides.
"""

from __future__ import annotations

import os
import tempfile
import tomllib
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

from packstash.core.exceptions import ConfigurationError


DEFAULT_API_URL = "https://api.curseforge.com"

_ENV_VARS = {
    "CURSEFORGE_API_KEY": "api_key",
    "PACKSTASH_API_URL": "api_base_url",
    "PACKSTASH_STORE_DIR": "store_dir",
    "PACKSTASH_TEMP_DIR": "temp_dir",
    "PACKSTASH_MAX_WORKERS": "max_workers",
    "PACKSTASH_MAX_DOWNLOADS": "max_downloads",
}


def find_project_root(start: Path | None = None) -> Path:
    """Find the project root directory by walking up from start directory.

    Searches for marker files in the following priority order:
    1. .packstash - Explicit project marker
    2. pyproject.toml - Python project root
    3. .git - Version control root

    Args:
        start: Directory to start searching from. If None, uses current directory.

    Returns:
        Path to project root directory. Returns start directory if no markers found.

    Example:
        >>> from packstash.config import find_project_root
        >>> root = find_project_root()
        >>> store_dir = root / ".packstash" / "store"
    """
    if start is None:
        start = Path.cwd()

    markers = [".packstash", "pyproject.toml", ".git"]
    current = start.resolve()

    for parent in [current, *current.parents]:
        for marker in markers:
            if (parent / marker).exists():
                return parent

    return start.resolve()


@dataclass(frozen=True, slots=True)
class Settings:
    """Runtime configuration.

    Attributes:
        api_key: Catalog API key, sent as ``x-api-key``.
        api_base_url: Catalog base URL.
        store_dir: Root directory of the content store.
        temp_dir: Directory for downloads awaiting import.
        max_workers: Threads for dependency fan-out.
        max_downloads: Threads for concurrent downloads.
        timeout: Network timeout in seconds.
        retries: Attempts per request on transient errors.
    """

    api_key: str = ""
    api_base_url: str = DEFAULT_API_URL
    store_dir: Path = Path(".packstash/store")
    temp_dir: Path = Path(tempfile.gettempdir()) / "packstash"
    max_workers: int = 8
    max_downloads: int = 4
    timeout: float = 7.0
    retries: int = 3

    def __post_init__(self) -> None:
        """Validate numeric settings."""
        if self.max_workers < 1 or self.max_downloads < 1:
            raise ConfigurationError("max_workers and max_downloads must be at least 1")
        if self.timeout <= 0:
            raise ConfigurationError("timeout must be positive")
        if self.retries < 1:
            raise ConfigurationError("retries must be at least 1")


def _coerce(name: str, value: Any) -> Any:
    """Convert a raw config value to the type of the Settings field."""
    field_types = {f.name: f.type for f in fields(Settings)}
    if name not in field_types:
        raise ConfigurationError(f"Unknown setting '{name}'")
    kind = field_types[name]
    try:
        if kind == "Path":
            return Path(value).expanduser()
        if kind == "int":
            return int(value)
        if kind == "float":
            return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid value for '{name}': {value!r}") from e
    return str(value)


def read_config_file(path: Path) -> dict[str, Any]:
    """Read the ``[packstash]`` table of a TOML config file.

    Raises:
        ConfigurationError: If the file is not valid TOML.
    """
    try:
        with path.open("rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid config file {path}: {e}") from e
    table = data.get("packstash", {})
    if not isinstance(table, dict):
        raise ConfigurationError(f"[packstash] in {path} must be a table")
    return table


def load_settings(directory: Path | None = None, **overrides: Any) -> Settings:
    """Load settings for the project containing directory.

    Args:
        directory: Start directory for root discovery (defaults to cwd).
        **overrides: Explicit values that win over every other source.

    Returns:
        Settings with relative paths resolved against the project root.

    Raises:
        ConfigurationError: If a value is malformed.
    """
    root = find_project_root(directory)
    values: dict[str, Any] = {}

    config_file = root / ".packstash" / "config.toml"
    if config_file.is_file():
        for name, value in read_config_file(config_file).items():
            values[name] = _coerce(name, value)

    for var, name in _ENV_VARS.items():
        raw = os.environ.get(var)
        if raw:
            values[name] = _coerce(name, raw)

    for name, value in overrides.items():
        if value is not None:
            values[name] = _coerce(name, value)

    settings = replace(Settings(), **values)
    for name in ("store_dir", "temp_dir"):
        path = getattr(settings, name)
        if not path.is_absolute():
            settings = replace(settings, **{name: root / path})
    return settings
