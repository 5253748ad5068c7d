"""Catalog adapters for querying projects and files."""

from packstash.adapters.catalog.curseforge import MINECRAFT_GAME_ID, CurseForgeClient
from packstash.adapters.catalog.dedup import DedupingCatalog


__all__ = ["MINECRAFT_GAME_ID", "CurseForgeClient", "DedupingCatalog"]
