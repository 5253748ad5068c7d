"""CLI command modules, registered on import."""
