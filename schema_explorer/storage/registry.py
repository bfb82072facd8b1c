from __future__ import annotations

import logging
import time
import uuid
from pathlib import Path
from typing import List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from schema_explorer.core.errors import DatabaseNotFoundError
from schema_explorer.policy.exclusion import ExclusionRule, ExclusionRuleType, generate_rule_id

logger = logging.getLogger(__name__)

REGISTRY_FILENAME = "databases.yml"

DatabaseType = Literal["postgres"]


class StoredDatabase(BaseModel):
    id: str
    name: str
    type: DatabaseType = "postgres"
    connection_string: str = ""
    last_synced_at: Optional[str] = None
    show_table_names_only: bool = False
    exclusion_rules: List[ExclusionRule] = Field(default_factory=list)


class DatabaseRegistry(BaseModel):
    databases: List[StoredDatabase] = Field(default_factory=list)
    default_id: Optional[str] = None


def registry_path(support_dir: Path) -> Path:
    return Path(support_dir) / REGISTRY_FILENAME


def generate_db_id() -> str:
    return f"db_{int(time.time() * 1000)}_{uuid.uuid4().hex[:7]}"


def read_registry(support_dir: Path) -> DatabaseRegistry:
    p = registry_path(support_dir)
    if not p.exists():
        return DatabaseRegistry()
    try:
        raw = yaml.safe_load(p.read_text()) or {}
        if not isinstance(raw, dict):
            return DatabaseRegistry()
        return DatabaseRegistry(**raw)
    except (yaml.YAMLError, ValidationError) as e:
        logger.warning(f"Ignoring unreadable registry {p}: {e}")
        return DatabaseRegistry()


def write_registry(support_dir: Path, registry: DatabaseRegistry) -> None:
    p = registry_path(support_dir)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(yaml.safe_dump(registry.model_dump(mode="json"), sort_keys=False))


def get_database(support_dir: Path, db_id: str) -> Optional[StoredDatabase]:
    for db in read_registry(support_dir).databases:
        if db.id == db_id:
            return db
    return None


def get_default_database(support_dir: Path) -> Optional[StoredDatabase]:
    registry = read_registry(support_dir)
    if registry.default_id:
        for db in registry.databases:
            if db.id == registry.default_id:
                return db
    return registry.databases[0] if registry.databases else None


def resolve_database(support_dir: Path, db_id: Optional[str] = None) -> StoredDatabase:
    """Return the requested database, or the default one when no id is given."""
    db = get_database(support_dir, db_id) if db_id else get_default_database(support_dir)
    if db is None:
        raise DatabaseNotFoundError(db_id)
    return db


def add_database(
    support_dir: Path,
    name: str,
    connection_string: str,
    type: DatabaseType = "postgres",
    show_table_names_only: bool = False,
    make_default: bool = False,
) -> StoredDatabase:
    registry = read_registry(support_dir)
    db = StoredDatabase(
        id=generate_db_id(),
        name=name,
        type=type,
        connection_string=connection_string.strip(),
        show_table_names_only=show_table_names_only,
    )
    registry.databases.append(db)
    if make_default or not registry.default_id:
        registry.default_id = db.id
    write_registry(support_dir, registry)
    return db


def update_database(support_dir: Path, db_id: str, **patch) -> StoredDatabase:
    registry = read_registry(support_dir)
    for i, db in enumerate(registry.databases):
        if db.id == db_id:
            updated = db.model_copy(update=patch)
            registry.databases[i] = updated
            write_registry(support_dir, registry)
            return updated
    raise DatabaseNotFoundError(db_id)


def remove_database(support_dir: Path, db_id: str) -> None:
    registry = read_registry(support_dir)
    remaining = [db for db in registry.databases if db.id != db_id]
    if len(remaining) == len(registry.databases):
        raise DatabaseNotFoundError(db_id)
    default_id = registry.default_id
    if default_id == db_id:
        default_id = remaining[0].id if remaining else None
    write_registry(support_dir, DatabaseRegistry(databases=remaining, default_id=default_id))


def set_default_database(support_dir: Path, db_id: str) -> None:
    registry = read_registry(support_dir)
    if not any(db.id == db_id for db in registry.databases):
        raise DatabaseNotFoundError(db_id)
    registry.default_id = db_id
    write_registry(support_dir, registry)


def add_exclusion_rule(support_dir: Path, db_id: Optional[str], type: ExclusionRuleType, pattern: str) -> ExclusionRule:
    db = resolve_database(support_dir, db_id)
    rule = ExclusionRule(id=generate_rule_id(), type=type, pattern=pattern)
    update_database(support_dir, db.id, exclusion_rules=[*db.exclusion_rules, rule])
    return rule


def remove_exclusion_rule(support_dir: Path, db_id: Optional[str], rule_id: str) -> bool:
    db = resolve_database(support_dir, db_id)
    kept = [r for r in db.exclusion_rules if r.id != rule_id]
    if len(kept) == len(db.exclusion_rules):
        return False
    update_database(support_dir, db.id, exclusion_rules=kept)
    return True
