from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError

from schema_explorer.core.ddl import build_enum_ddl, build_schema_ddl
from schema_explorer.core.errors import CatalogReadError, ConnectionConfigError, UnsupportedDatabaseError
from schema_explorer.core.registry import DatabaseTypeRegistry
from schema_explorer.policy.config import AppConfig
from schema_explorer.storage.cache import SchemaCache, cache_from_ddl, write_schema_cache
from schema_explorer.storage.registry import StoredDatabase, update_database

logger = logging.getLogger(__name__)


def sync_database(db: StoredDatabase, config: AppConfig) -> SchemaCache:
    """Introspect one database and replace its cached DDL.

    Nothing is written unless the whole catalog read succeeds.
    """
    reader_factory = DatabaseTypeRegistry.get_reader(db.type)
    engine_factory = DatabaseTypeRegistry.get_engine_factory(db.type)
    if not reader_factory or not engine_factory:
        raise UnsupportedDatabaseError(db.type, DatabaseTypeRegistry.names())
    if not db.connection_string.strip():
        raise ConnectionConfigError(f"Database '{db.name}' has no connection string")

    logger.info(f"Syncing schema for '{db.name}' ({db.id})")
    engine = engine_factory(db.connection_string, connect_timeout=config.connect_timeout)
    try:
        with engine.connect() as conn:
            snapshot = reader_factory().fetch_schema_data(conn)
    except SQLAlchemyError as e:
        raise CatalogReadError(f"could not connect to '{db.name}': {e}") from e
    finally:
        engine.dispose()

    result = build_schema_ddl(snapshot)
    synced_at = datetime.now(timezone.utc).isoformat()
    cache = cache_from_ddl(result, enums=build_enum_ddl(snapshot), synced_at=synced_at)
    write_schema_cache(config.support_dir, db.id, cache)
    update_database(config.support_dir, db.id, last_synced_at=synced_at)
    logger.info(f"Cached {len(cache.tables)} relations for '{db.name}'")
    return cache
