"""Content store adapters for installed artifacts."""

from packstash.adapters.store.file_store import FileContentStore


__all__ = ["FileContentStore"]
