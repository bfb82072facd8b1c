from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.exc import ArgumentError
from sqlalchemy.pool import NullPool

from schema_explorer.core.errors import ConnectionConfigError

DRIVERNAME = "postgresql+psycopg2"
DEFAULT_CONNECT_TIMEOUT = 10


def normalize_url(connection_string: str) -> URL:
    """Parse a postgres:// or postgresql:// URL and pin it to the psycopg2 driver."""
    if not connection_string or not connection_string.strip():
        raise ConnectionConfigError("Connection string is empty")
    try:
        url = make_url(connection_string.strip())
    except ArgumentError as e:
        raise ConnectionConfigError(f"Invalid connection string: {e}") from e
    if url.get_backend_name() not in ("postgres", "postgresql"):
        raise ConnectionConfigError(
            f"Expected a postgresql:// connection string, got '{url.get_backend_name()}://'"
        )
    return url.set(drivername=DRIVERNAME)


def create_catalog_engine(connection_string: str, connect_timeout: int = DEFAULT_CONNECT_TIMEOUT) -> Engine:
    # One sync opens one connection; nothing to pool
    return create_engine(
        normalize_url(connection_string),
        poolclass=NullPool,
        connect_args={"connect_timeout": connect_timeout},
    )
