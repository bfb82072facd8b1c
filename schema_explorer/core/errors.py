from __future__ import annotations

from typing import Optional


class SchemaExplorerError(Exception):
    """Base class for errors surfaced to the CLI."""


class CatalogReadError(SchemaExplorerError):
    def __init__(self, message: str, collection: Optional[str] = None):
        self.collection = collection
        if collection:
            message = f"failed to read {collection}: {message}"
        super().__init__(message)


class ConnectionConfigError(SchemaExplorerError):
    pass


class DatabaseNotFoundError(SchemaExplorerError):
    def __init__(self, db_id: Optional[str] = None):
        self.db_id = db_id
        if db_id:
            super().__init__(f"No database with id '{db_id}'")
        else:
            super().__init__("No databases configured. Add one with 'schema-explorer db add'.")


class UnsupportedDatabaseError(SchemaExplorerError):
    def __init__(self, db_type: str, supported: tuple):
        self.db_type = db_type
        super().__init__(f"Unsupported database type '{db_type}'. Supported: {', '.join(supported)}")
