from __future__ import annotations

from typing import Callable, Dict, Optional, Tuple

from sqlalchemy.engine import Engine

# Readers turn an open connection into a SchemaSnapshot
ReaderFactory = Callable[[], object]

# (connection_string, connect_timeout) -> Engine
EngineFactory = Callable[..., Engine]


class DatabaseTypeRegistry:
    _readers: Dict[str, ReaderFactory] = {}
    _engines: Dict[str, EngineFactory] = {}

    @classmethod
    def register(cls, db_type: str, reader: ReaderFactory, engine_factory: EngineFactory) -> None:
        cls._readers[db_type] = reader
        cls._engines[db_type] = engine_factory

    @classmethod
    def get_reader(cls, db_type: str) -> Optional[ReaderFactory]:
        return cls._readers.get(db_type)

    @classmethod
    def get_engine_factory(cls, db_type: str) -> Optional[EngineFactory]:
        return cls._engines.get(db_type)

    @classmethod
    def names(cls) -> Tuple[str, ...]:
        return tuple(sorted(set(cls._readers.keys()) & set(cls._engines.keys())))


# Bootstrap built-ins so existing behavior works out-of-the-box
def _bootstrap_defaults() -> None:
    from schema_explorer.adapters.postgres.connection import create_catalog_engine
    from schema_explorer.adapters.postgres.reader import PostgresCatalogReader

    DatabaseTypeRegistry.register("postgres", PostgresCatalogReader, create_catalog_engine)


_bootstrap_defaults()
