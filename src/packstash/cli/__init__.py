"""CLI for packstash."""

# Import commands to register them with the app
# These imports have side effects (registering commands with @app.command())
from packstash.cli.commands import catalog as _catalog_module  # noqa: F401
from packstash.cli.commands import install as _install_module  # noqa: F401
from packstash.cli.commands import store as _store_module  # noqa: F401
from packstash.cli.main import app, main


__all__ = ["app", "main"]
