# beauty_bot/data_fetchers/__init__.py
"""
Catalog data access. The chat pipeline only reads from the index; upsert and
fetch exist for the catalog sync job.
"""

from __future__ import annotations

from .catalog_index import CatalogIndex, CatalogIndexError, get_catalog_index

__all__ = ["CatalogIndex", "CatalogIndexError", "get_catalog_index"]
