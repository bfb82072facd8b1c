from .core.ddl import build_enum_ddl, build_schema_ddl
from .core.registry import DatabaseTypeRegistry
from .adapters.postgres.reader import fetch_schema_data

__all__ = [
    "__version__",
    "DatabaseTypeRegistry",
    "build_enum_ddl",
    "build_schema_ddl",
    "fetch_schema_data",
]

__version__ = "0.1.0"
