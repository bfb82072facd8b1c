from __future__ import annotations

from abc import ABC, abstractmethod

from schema_explorer.core.ir import SchemaSnapshot


class CatalogReader(ABC):
    @abstractmethod
    def fetch_schema_data(self, connection) -> SchemaSnapshot:  # pragma: no cover - interface
        """Read every catalog row collection over an open connection, or raise CatalogReadError."""
