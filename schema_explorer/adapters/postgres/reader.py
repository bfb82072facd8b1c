from __future__ import annotations

import logging
from typing import Dict, List, Sequence, Tuple, Type

from pydantic import BaseModel, ValidationError
from sqlalchemy import bindparam, text
from sqlalchemy.exc import SQLAlchemyError

from schema_explorer.adapters.base import CatalogReader
from schema_explorer.core.errors import CatalogReadError
from schema_explorer.core.ir import (
    ColumnRow,
    EnumTypeRow,
    ForeignKeyRow,
    IndexRow,
    PrimaryKeyRow,
    SchemaSnapshot,
    TableRow,
    UniqueRow,
)

logger = logging.getLogger(__name__)

EXCLUDED_SCHEMAS: Tuple[str, ...] = ("pg_catalog", "information_schema", "pg_toast")

TABLES_QUERY = """
    SELECT table_schema, table_name, table_type
    FROM information_schema.tables
    WHERE table_schema NOT IN :excluded
      AND table_type IN ('BASE TABLE', 'VIEW')
    ORDER BY table_schema, table_name
"""

COLUMNS_QUERY = """
    SELECT table_schema, table_name, column_name, ordinal_position,
           data_type, udt_schema, udt_name, is_nullable, column_default,
           character_maximum_length, numeric_precision, numeric_scale
    FROM information_schema.columns
    WHERE table_schema NOT IN :excluded
    ORDER BY table_schema, table_name, ordinal_position
"""

ENUMS_QUERY = """
    SELECT n.nspname AS nspname, t.typname AS typname,
           e.enumlabel AS enumlabel, e.enumsortorder AS enumsortorder
    FROM pg_catalog.pg_type t
    JOIN pg_catalog.pg_enum e ON e.enumtypid = t.oid
    JOIN pg_catalog.pg_namespace n ON n.oid = t.typnamespace
    WHERE t.typtype = 'e'
      AND n.nspname NOT IN :excluded
    ORDER BY n.nspname, t.typname, e.enumsortorder
"""

PRIMARY_KEYS_QUERY = """
    SELECT tc.table_schema, tc.table_name, tc.constraint_name,
           kcu.column_name, kcu.ordinal_position
    FROM information_schema.table_constraints tc
    JOIN information_schema.key_column_usage kcu
      ON tc.constraint_name = kcu.constraint_name
     AND tc.table_schema = kcu.table_schema
     AND tc.table_name = kcu.table_name
    WHERE tc.constraint_type = 'PRIMARY KEY'
      AND tc.table_schema NOT IN :excluded
    ORDER BY tc.table_schema, tc.table_name, kcu.ordinal_position
"""

UNIQUES_QUERY = """
    SELECT tc.table_schema, tc.table_name, tc.constraint_name,
           kcu.column_name, kcu.ordinal_position
    FROM information_schema.table_constraints tc
    JOIN information_schema.key_column_usage kcu
      ON tc.constraint_name = kcu.constraint_name
     AND tc.table_schema = kcu.table_schema
     AND tc.table_name = kcu.table_name
    WHERE tc.constraint_type = 'UNIQUE'
      AND tc.table_schema NOT IN :excluded
    ORDER BY tc.table_schema, tc.table_name, tc.constraint_name, kcu.ordinal_position
"""

# The referenced side joins on position_in_unique_constraint so a composite
# key yields one row per local column rather than a cross product.
FOREIGN_KEYS_QUERY = """
    SELECT fk.table_schema AS table_schema,
           fk.table_name AS table_name,
           fk.column_name AS column_name,
           fk.ordinal_position AS ordinal_position,
           rc.constraint_name AS constraint_name,
           pk.table_schema AS ref_table_schema,
           pk.table_name AS ref_table_name,
           pk.column_name AS ref_column_name
    FROM information_schema.referential_constraints rc
    JOIN information_schema.key_column_usage fk
      ON rc.constraint_catalog = fk.constraint_catalog
     AND rc.constraint_schema = fk.constraint_schema
     AND rc.constraint_name = fk.constraint_name
    JOIN information_schema.key_column_usage pk
      ON rc.unique_constraint_catalog = pk.constraint_catalog
     AND rc.unique_constraint_schema = pk.constraint_schema
     AND rc.unique_constraint_name = pk.constraint_name
     AND pk.ordinal_position = fk.position_in_unique_constraint
    WHERE fk.table_schema NOT IN :excluded
    ORDER BY fk.table_schema, fk.table_name, rc.constraint_name, fk.ordinal_position
"""

INDEXES_QUERY = """
    SELECT schemaname, tablename, indexname, indexdef
    FROM pg_catalog.pg_indexes
    WHERE schemaname NOT IN :excluded
    ORDER BY schemaname, tablename, indexname
"""

# snapshot field, query, row model
COLLECTIONS: Sequence[Tuple[str, str, Type[BaseModel]]] = (
    ("tables", TABLES_QUERY, TableRow),
    ("columns", COLUMNS_QUERY, ColumnRow),
    ("enums", ENUMS_QUERY, EnumTypeRow),
    ("primary_keys", PRIMARY_KEYS_QUERY, PrimaryKeyRow),
    ("uniques", UNIQUES_QUERY, UniqueRow),
    ("foreign_keys", FOREIGN_KEYS_QUERY, ForeignKeyRow),
    ("indexes", INDEXES_QUERY, IndexRow),
)


class PostgresCatalogReader(CatalogReader):
    def __init__(self, excluded_schemas: Sequence[str] = EXCLUDED_SCHEMAS):
        self.excluded_schemas = tuple(excluded_schemas)

    def fetch_schema_data(self, connection) -> SchemaSnapshot:
        collections: Dict[str, List[BaseModel]] = {}
        for name, query, model in COLLECTIONS:
            collections[name] = self._read(connection, name, query, model)
        return SchemaSnapshot(**collections)

    def _read(self, connection, name: str, query: str, model: Type[BaseModel]) -> List[BaseModel]:
        stmt = text(query).bindparams(bindparam("excluded", expanding=True))
        try:
            result = connection.execute(stmt, {"excluded": list(self.excluded_schemas)})
            rows = [model.model_validate(dict(row)) for row in result.mappings()]
        except (SQLAlchemyError, ValidationError) as e:
            logger.error(f"Catalog query for {name} failed: {e}")
            raise CatalogReadError(str(e), collection=name) from e
        logger.debug(f"Read {len(rows)} {name} rows")
        return rows


def fetch_schema_data(connection) -> SchemaSnapshot:
    return PostgresCatalogReader().fetch_schema_data(connection)
