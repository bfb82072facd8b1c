from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy.dialects import postgresql as pg

from schema_explorer.core.ir import (
    ColumnRow,
    EnumTypeRow,
    ForeignKey,
    IndexRow,
    KeyConstraint,
    Relation,
    SchemaDdl,
    SchemaSnapshot,
    TableRelation,
    ViewRelation,
)

logger = logging.getLogger(__name__)

ARRAY_MARKER = "_"
PRECISION_TYPES = frozenset({"numeric", "decimal"})

EnumIndex = Dict[Tuple[str, str], List[str]]
# relation key -> constraint name -> member rows
ConstraintGroups = Dict[str, Dict[str, list]]

_preparer = pg.dialect().identifier_preparer


def quote_ident(name: str) -> str:
    return _preparer.quote(name)


def qualify(schema: str, name: str) -> str:
    return f"{quote_ident(schema)}.{quote_ident(name)}"


def quote_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def index_enums(rows: Sequence[EnumTypeRow]) -> EnumIndex:
    """Map (type schema, type name) to labels ordered by sort order."""
    grouped: Dict[Tuple[str, str], List[EnumTypeRow]] = defaultdict(list)
    for row in rows:
        grouped[(row.nspname, row.typname)].append(row)
    return {
        key: [r.enumlabel for r in sorted(members, key=lambda r: (r.enumsortorder, r.enumlabel))]
        for key, members in sorted(grouped.items())
    }


def format_column_type(col: ColumnRow, enums: EnumIndex) -> str:
    udt = col.udt_name or ""
    labels = enums.get((col.udt_schema or "", udt))
    if labels:
        alternatives = " | ".join(quote_literal(label) for label in labels)
        return f"{alternatives} /* enum {udt} */"
    if col.data_type == "ARRAY" and udt.startswith(ARRAY_MARKER):
        return f"{udt[len(ARRAY_MARKER):]}[]"
    if col.data_type == "USER-DEFINED" and udt:
        return udt

    base = col.data_type
    if col.character_maximum_length is not None:
        return f"{base}({col.character_maximum_length})"
    # information_schema reports precision for integer types too; only
    # numeric/decimal accept a modifier
    if base in PRECISION_TYPES and col.numeric_precision is not None:
        if col.numeric_scale is not None:
            return f"{base}({col.numeric_precision},{col.numeric_scale})"
        return f"{base}({col.numeric_precision})"
    return base


def format_column(col: ColumnRow, enums: EnumIndex) -> str:
    parts = [quote_ident(col.column_name), format_column_type(col, enums)]
    if not col.is_nullable:
        parts.append("NOT NULL")
    if col.column_default is not None:
        parts.append(f"DEFAULT {col.column_default}")
    return " ".join(parts)


def _group_constraints(rows: Sequence) -> ConstraintGroups:
    grouped: ConstraintGroups = defaultdict(lambda: defaultdict(list))
    for row in rows:
        grouped[f"{row.table_schema}.{row.table_name}"][row.constraint_name].append(row)
    return grouped


def _ordered_members(kind: str, relation: str, name: str, rows: list) -> Optional[list]:
    """Sort one constraint group by ordinal position.

    Identical rows collapse into one. Returns None when the remaining
    positions are not exactly 1..n.
    """
    distinct = {}
    for row in rows:
        distinct.setdefault(tuple(row.model_dump().values()), row)
    members = sorted(distinct.values(), key=lambda r: (r.ordinal_position, r.column_name))
    positions = [m.ordinal_position for m in members]
    if positions != list(range(1, len(members) + 1)):
        logger.warning(
            "Skipping %s %s on %s: column positions %s are not contiguous from 1",
            kind, name, relation, positions,
        )
        return None
    return members


def _primary_key(relation: str, groups: Dict[str, list]) -> Optional[KeyConstraint]:
    chosen: Optional[KeyConstraint] = None
    for name in sorted(groups):
        members = _ordered_members("primary key", relation, name, groups[name])
        if members is None:
            continue
        if chosen is not None:
            logger.warning(
                "Skipping extra primary key %s on %s (already have %s)", name, relation, chosen.name
            )
            continue
        chosen = KeyConstraint(name=name, columns=[m.column_name for m in members])
    return chosen


def _uniques(relation: str, groups: Dict[str, list]) -> List[KeyConstraint]:
    uniques: List[KeyConstraint] = []
    for name in sorted(groups):
        members = _ordered_members("unique constraint", relation, name, groups[name])
        if members is not None:
            uniques.append(KeyConstraint(name=name, columns=[m.column_name for m in members]))
    return uniques


def _foreign_keys(relation: str, groups: Dict[str, list]) -> List[ForeignKey]:
    fks: List[ForeignKey] = []
    for name in sorted(groups):
        members = _ordered_members("foreign key", relation, name, groups[name])
        if members is None:
            continue
        targets = sorted({(m.ref_table_schema, m.ref_table_name) for m in members})
        if len(targets) != 1:
            logger.warning(
                "Skipping foreign key %s on %s: rows reference %d different relations",
                name, relation, len(targets),
            )
            continue
        # local column i pairs with referenced column i
        ref_columns = [m.ref_column_name for m in members if m.ref_column_name]
        if len(ref_columns) != len(members):
            logger.warning(
                "Skipping foreign key %s on %s: %d local columns but %d referenced columns",
                name, relation, len(members), len(ref_columns),
            )
            continue
        ref_schema, ref_table = targets[0]
        fks.append(
            ForeignKey(
                name=name,
                columns=[m.column_name for m in members],
                ref_schema=ref_schema,
                ref_table=ref_table,
                ref_columns=ref_columns,
            )
        )
    return fks


def build_relations(snapshot: SchemaSnapshot) -> List[Relation]:
    """Correlate the snapshot's row sets into one relation per catalog table/view."""
    columns_by_rel: Dict[str, List[ColumnRow]] = defaultdict(list)
    for col in snapshot.columns:
        columns_by_rel[f"{col.table_schema}.{col.table_name}"].append(col)

    indexes_by_rel: Dict[str, List[IndexRow]] = defaultdict(list)
    for ix in snapshot.indexes:
        indexes_by_rel[f"{ix.schemaname}.{ix.tablename}"].append(ix)

    pk_groups = _group_constraints(snapshot.primary_keys)
    unique_groups = _group_constraints(snapshot.uniques)
    fk_groups = _group_constraints(snapshot.foreign_keys)

    relations: Dict[str, Relation] = {}
    for row in sorted(snapshot.tables, key=lambda t: (t.table_schema, t.table_name, t.table_type)):
        key = row.key
        if key in relations:
            logger.debug("Duplicate relation row for %s ignored", key)
            continue

        columns = sorted(columns_by_rel.get(key, []), key=lambda c: (c.ordinal_position, c.column_name))
        indexes = [
            ix.indexdef
            for ix in sorted(indexes_by_rel.get(key, []), key=lambda ix: (ix.indexname, ix.indexdef))
        ]

        if row.kind == "view":
            if key in pk_groups or key in unique_groups or key in fk_groups:
                logger.debug("Ignoring constraint rows attached to view %s", key)
            relations[key] = ViewRelation(
                schema_name=row.table_schema, name=row.table_name, columns=columns, indexes=indexes
            )
            continue

        relations[key] = TableRelation(
            schema_name=row.table_schema,
            name=row.table_name,
            columns=columns,
            primary_key=_primary_key(key, pk_groups.get(key, {})),
            uniques=_uniques(key, unique_groups.get(key, {})),
            fks=_foreign_keys(key, fk_groups.get(key, {})),
            indexes=indexes,
        )

    orphaned = sorted(set(columns_by_rel) - set(relations))
    if orphaned:
        logger.debug("Ignoring columns of unknown relations: %s", ", ".join(orphaned))

    return list(relations.values())


def _column_list(columns: List[str]) -> str:
    return ", ".join(quote_ident(c) for c in columns)


def render_relation(rel: Relation, enums: EnumIndex) -> str:
    lines = [format_column(col, enums) for col in rel.columns]

    if isinstance(rel, TableRelation):
        header = f"CREATE TABLE {qualify(rel.schema_name, rel.name)}"
        if rel.primary_key:
            pk = rel.primary_key
            lines.append(f"CONSTRAINT {quote_ident(pk.name)} PRIMARY KEY ({_column_list(pk.columns)})")
        for uq in rel.uniques:
            lines.append(f"CONSTRAINT {quote_ident(uq.name)} UNIQUE ({_column_list(uq.columns)})")
        for fk in rel.fks:
            if fk.ref_schema == rel.schema_name:
                target = quote_ident(fk.ref_table)
            else:
                target = qualify(fk.ref_schema, fk.ref_table)
            lines.append(
                f"CONSTRAINT {quote_ident(fk.name)} FOREIGN KEY ({_column_list(fk.columns)}) "
                f"REFERENCES {target} ({_column_list(fk.ref_columns)})"
            )
    else:
        header = f"CREATE VIEW {qualify(rel.schema_name, rel.name)}"

    if lines:
        statement = header + " (\n" + ",\n".join(f"  {line}" for line in lines) + "\n);"
    else:
        statement = header + " ();"

    if rel.indexes:
        statement += "\n\n" + "\n".join(ix + ";" for ix in rel.indexes)
    return statement


def build_schema_ddl(snapshot: SchemaSnapshot) -> SchemaDdl:
    enums = index_enums(snapshot.enums)
    ddl_by_relation: Dict[str, str] = {}
    kind_by_relation: Dict[str, str] = {}
    for rel in build_relations(snapshot):
        key = f"{rel.schema_name}.{rel.name}"
        ddl_by_relation[key] = render_relation(rel, enums)
        kind_by_relation[key] = rel.kind
    return SchemaDdl(ddl_by_relation=ddl_by_relation, kind_by_relation=kind_by_relation)


def build_enum_ddl(snapshot: SchemaSnapshot) -> str:
    statements = []
    for (schema, name), labels in index_enums(snapshot.enums).items():
        values = ", ".join(quote_literal(label) for label in labels)
        statements.append(f"CREATE TYPE {qualify(schema, name)} AS ENUM ({values});")
    return "\n".join(statements)
