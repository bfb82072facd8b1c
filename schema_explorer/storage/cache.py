from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Literal, Optional

from pydantic import BaseModel, Field, ValidationError

from schema_explorer.core.ir import SchemaDdl

logger = logging.getLogger(__name__)


class TableCacheEntry(BaseModel):
    ddl: str
    schema_name: Optional[str] = Field(default=None, alias="schema")
    kind: Literal["table", "view"] = "table"

    model_config = {"populate_by_name": True}


class SchemaCache(BaseModel):
    tables: Dict[str, TableCacheEntry] = Field(default_factory=dict)
    enums: Optional[str] = None
    synced_at: Optional[str] = None


def cache_path(support_dir: Path, db_id: str) -> Path:
    return Path(support_dir) / f"schema-{db_id}.json"


def cache_from_ddl(result: SchemaDdl, enums: Optional[str] = None, synced_at: Optional[str] = None) -> SchemaCache:
    tables: Dict[str, TableCacheEntry] = {}
    for key, ddl in result.ddl_by_relation.items():
        schema, sep, _ = key.partition(".")
        tables[key] = TableCacheEntry(
            ddl=ddl,
            schema_name=schema if sep else None,
            kind=result.kind_by_relation.get(key, "table"),
        )
    return SchemaCache(tables=tables, enums=enums or None, synced_at=synced_at)


def read_schema_cache(support_dir: Path, db_id: str) -> Optional[SchemaCache]:
    p = cache_path(support_dir, db_id)
    if not p.exists():
        return None
    try:
        return SchemaCache.model_validate_json(p.read_text(encoding="utf-8"))
    except (OSError, ValidationError) as e:
        logger.warning(f"Ignoring unreadable schema cache {p}: {e}")
        return None


def write_schema_cache(support_dir: Path, db_id: str, cache: SchemaCache) -> Path:
    p = cache_path(support_dir, db_id)
    p.parent.mkdir(parents=True, exist_ok=True)
    # the previous snapshot stays in place until the new one is fully written
    fd, tmp = tempfile.mkstemp(dir=p.parent, prefix=p.name, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(cache.model_dump_json(indent=2, by_alias=True))
        os.replace(tmp, p)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise
    return p


def delete_schema_cache(support_dir: Path, db_id: str) -> bool:
    p = cache_path(support_dir, db_id)
    if not p.exists():
        return False
    p.unlink()
    return True
