from .connection import create_catalog_engine, normalize_url
from .reader import EXCLUDED_SCHEMAS, PostgresCatalogReader, fetch_schema_data

__all__ = [
    "EXCLUDED_SCHEMAS",
    "PostgresCatalogReader",
    "create_catalog_engine",
    "fetch_schema_data",
    "normalize_url",
]
