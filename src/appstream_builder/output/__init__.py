"""Output writers for the catalog and icon bundle."""

from .writer import Catalog, CatalogError, CatalogWriter, catalog_path, icons_path, read_catalog

__all__ = [
    "Catalog",
    "CatalogError",
    "CatalogWriter",
    "catalog_path",
    "icons_path",
    "read_catalog",
]
