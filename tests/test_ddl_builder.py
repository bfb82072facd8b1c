import logging
import random

from factories import column, enum_label, fk, index, pk, table, unique
from schema_explorer.core.ddl import build_enum_ddl, build_schema_ddl, format_column_type, index_enums
from schema_explorer.core.ir import SchemaSnapshot


def users_snapshot():
    return SchemaSnapshot(
        tables=[table("users")],
        columns=[
            column("users", "name", 2, "character varying", udt_name="varchar", character_maximum_length=100),
            column("users", "id", 1, "integer", udt_name="int4", nullable=False, numeric_precision=32, numeric_scale=0),
        ],
        primary_keys=[pk("users", "users_pkey", "id", 1)],
    )


def test_users_table_ddl():
    result = build_schema_ddl(users_snapshot())
    assert result.ddl_by_relation["public.users"] == (
        "CREATE TABLE public.users (\n"
        "  id integer NOT NULL,\n"
        "  name character varying(100),\n"
        "  CONSTRAINT users_pkey PRIMARY KEY (id)\n"
        ");"
    )
    assert result.kind_by_relation == {"public.users": "table"}


def test_composite_foreign_key_pairs_columns_by_position():
    snap = SchemaSnapshot(
        tables=[table("order_lines"), table("orders")],
        columns=[
            column("order_lines", "order_id", 1, nullable=False),
            column("order_lines", "line_no", 2, nullable=False),
        ],
        foreign_keys=[
            fk("order_lines", "fk_order_line", "line_no", 2, "orders", "line_no"),
            fk("order_lines", "fk_order_line", "order_id", 1, "orders", "id"),
        ],
    )
    ddl = build_schema_ddl(snap).ddl_by_relation["public.order_lines"]
    assert "CONSTRAINT fk_order_line FOREIGN KEY (order_id, line_no) REFERENCES orders (id, line_no)" in ddl
    assert ddl.count("FOREIGN KEY") == 1


def test_foreign_key_to_other_schema_is_qualified():
    snap = SchemaSnapshot(
        tables=[table("invoices", schema="billing")],
        columns=[column("invoices", "user_id", 1, schema="billing")],
        foreign_keys=[fk("invoices", "fk_user", "user_id", 1, "users", "id", schema="billing", ref_schema="public")],
    )
    ddl = build_schema_ddl(snap).ddl_by_relation["billing.invoices"]
    assert "REFERENCES public.users (id)" in ddl


def test_relation_without_columns():
    result = build_schema_ddl(SchemaSnapshot(tables=[table("empty")]))
    assert result.ddl_by_relation["public.empty"] == "CREATE TABLE public.empty ();"


def test_duplicate_unique_rows_collapse():
    snap = SchemaSnapshot(
        tables=[table("accounts")],
        columns=[column("accounts", "email", 1, "text")],
        uniques=[unique("accounts", "uq_email", "email", 1), unique("accounts", "uq_email", "email", 1)],
    )
    ddl = build_schema_ddl(snap).ddl_by_relation["public.accounts"]
    assert "CONSTRAINT uq_email UNIQUE (email)" in ddl
    assert ddl.count("UNIQUE") == 1


def test_unique_constraints_sorted_by_name_and_position():
    snap = SchemaSnapshot(
        tables=[table("people")],
        columns=[column("people", "first", 1, "text"), column("people", "last", 2, "text")],
        uniques=[
            unique("people", "uq_b", "last", 2),
            unique("people", "uq_a", "last", 1),
            unique("people", "uq_b", "first", 1),
        ],
    )
    ddl = build_schema_ddl(snap).ddl_by_relation["public.people"]
    assert ddl.index("CONSTRAINT uq_a UNIQUE (last)") < ddl.index("CONSTRAINT uq_b UNIQUE (first, last)")


def test_enum_labels_follow_sort_order():
    snap = SchemaSnapshot(
        tables=[table("accounts")],
        columns=[
            column("accounts", "state", 1, "USER-DEFINED", udt_schema="public", udt_name="status"),
        ],
        enums=[enum_label("status", "inactive", 1), enum_label("status", "active", 0)],
    )
    ddl = build_schema_ddl(snap).ddl_by_relation["public.accounts"]
    assert "state 'active' | 'inactive' /* enum status */" in ddl
    assert build_enum_ddl(snap) == "CREATE TYPE public.status AS ENUM ('active', 'inactive');"


def test_view_drops_constraint_rows():
    snap = SchemaSnapshot(
        tables=[table("active_users", table_type="VIEW")],
        columns=[column("active_users", "id", 1)],
        primary_keys=[pk("active_users", "bogus_pkey", "id", 1)],
        uniques=[unique("active_users", "bogus_uq", "id", 1)],
        foreign_keys=[fk("active_users", "bogus_fk", "id", 1, "users", "id")],
    )
    result = build_schema_ddl(snap)
    assert result.kind_by_relation["public.active_users"] == "view"
    assert result.ddl_by_relation["public.active_users"] == "CREATE VIEW public.active_users (\n  id integer\n);"


def test_type_formatting():
    enums = index_enums([])
    assert format_column_type(column("t", "a", 1, "ARRAY", udt_name="_int4"), enums) == "int4[]"
    assert format_column_type(column("t", "b", 1, "numeric", numeric_precision=12, numeric_scale=2), enums) == "numeric(12,2)"
    # scale alone is never appended
    assert format_column_type(column("t", "c", 1, "numeric", numeric_scale=2), enums) == "numeric"
    assert format_column_type(column("t", "d", 1, "integer", numeric_precision=32, numeric_scale=0), enums) == "integer"
    assert format_column_type(column("t", "e", 1, "USER-DEFINED", udt_schema="public", udt_name="citext"), enums) == "citext"
    assert format_column_type(column("t", "f", 1, "character", character_maximum_length=3), enums) == "character(3)"


def test_array_resolution():
    enums = index_enums([enum_label("status", "active", 0)])
    assert format_column_type(column("t", "a", 1, "ARRAY", udt_schema="public", udt_name="_status"), enums) == "status[]"
    # a user-defined type whose name merely starts with an underscore is not an array
    domain = column("t", "b", 1, "USER-DEFINED", udt_schema="public", udt_name="_money_amount")
    assert format_column_type(domain, enums) == "_money_amount"
    assert format_column_type(column("t", "c", 1, "text", udt_name="_text"), enums) == "text"


def test_default_and_quoting():
    snap = SchemaSnapshot(
        tables=[table("Events")],
        columns=[
            column("Events", "id", 1, "bigint", nullable=False, column_default="nextval('\"Events_id_seq\"'::regclass)"),
            column("Events", "user", 2, "text"),
        ],
    )
    ddl = build_schema_ddl(snap).ddl_by_relation["public.Events"]
    assert ddl.startswith('CREATE TABLE public."Events" (')
    assert "  id bigint NOT NULL DEFAULT nextval('\"Events_id_seq\"'::regclass)," in ddl
    assert '  "user" text' in ddl


def test_indexes_are_appended_verbatim():
    snap = users_snapshot()
    snap.indexes = [
        index("users", "users_pkey", "CREATE UNIQUE INDEX users_pkey ON public.users USING btree (id)"),
        index("users", "ix_name", "CREATE INDEX ix_name ON public.users USING btree (name)"),
    ]
    ddl = build_schema_ddl(snap).ddl_by_relation["public.users"]
    assert ddl.endswith(
        ");\n\n"
        "CREATE INDEX ix_name ON public.users USING btree (name);\n"
        "CREATE UNIQUE INDEX users_pkey ON public.users USING btree (id);"
    )
    # the primary key clause is still emitted next to its backing index
    assert "CONSTRAINT users_pkey PRIMARY KEY (id)" in ddl


def test_index_definitions_are_not_rewritten():
    snap = users_snapshot()
    snap.indexes = [index("users", "ix_odd", "CREATE INDEX ix_odd ON public.users USING btree (name) ")]
    ddl = build_schema_ddl(snap).ddl_by_relation["public.users"]
    assert ddl.endswith("\n\nCREATE INDEX ix_odd ON public.users USING btree (name) ;")


def test_malformed_foreign_key_is_skipped(caplog):
    snap = SchemaSnapshot(
        tables=[table("lines")],
        columns=[column("lines", "a", 1), column("lines", "b", 2)],
        uniques=[unique("lines", "uq_a", "a", 1)],
        foreign_keys=[
            fk("lines", "fk_gap", "a", 1, "orders", "id"),
            fk("lines", "fk_gap", "b", 3, "orders", "line_no"),
            fk("lines", "fk_split", "a", 1, "orders", "id"),
            fk("lines", "fk_split", "b", 2, "invoices", "id"),
            fk("lines", "fk_missing", "a", 1, "orders", None),
        ],
    )
    with caplog.at_level(logging.WARNING, logger="schema_explorer.core.ddl"):
        ddl = build_schema_ddl(snap).ddl_by_relation["public.lines"]
    assert "FOREIGN KEY" not in ddl
    assert "CONSTRAINT uq_a UNIQUE (a)" in ddl
    assert "fk_gap" in caplog.text
    assert "fk_split" in caplog.text
    assert "fk_missing" in caplog.text


def test_only_first_primary_key_is_emitted():
    snap = SchemaSnapshot(
        tables=[table("t")],
        columns=[column("t", "a", 1), column("t", "b", 2)],
        primary_keys=[pk("t", "t_pkey_b", "b", 1), pk("t", "t_pkey_a", "a", 1)],
    )
    ddl = build_schema_ddl(snap).ddl_by_relation["public.t"]
    assert "CONSTRAINT t_pkey_a PRIMARY KEY (a)" in ddl
    assert "t_pkey_b" not in ddl


def test_columns_of_unknown_relations_are_ignored():
    snap = SchemaSnapshot(tables=[table("users")], columns=[column("ghost", "id", 1)])
    result = build_schema_ddl(snap)
    assert list(result.ddl_by_relation) == ["public.users"]
    assert result.ddl_by_relation["public.users"] == "CREATE TABLE public.users ();"


def _big_snapshot():
    return SchemaSnapshot(
        tables=[table("orders"), table("order_lines"), table("recent", table_type="VIEW"), table("audit", schema="ops")],
        columns=[
            column("orders", "id", 1, nullable=False),
            column("orders", "line_no", 2, nullable=False),
            column("orders", "state", 3, "USER-DEFINED", udt_schema="public", udt_name="status"),
            column("order_lines", "order_id", 1),
            column("order_lines", "line_no", 2),
            column("order_lines", "sku", 3, "character varying", character_maximum_length=32),
            column("recent", "id", 1),
            column("audit", "at", 1, "timestamp with time zone", schema="ops"),
        ],
        enums=[enum_label("status", "new", 0), enum_label("status", "paid", 1), enum_label("status", "void", 2)],
        primary_keys=[pk("orders", "orders_pkey", "id", 1), pk("orders", "orders_pkey", "line_no", 2)],
        uniques=[unique("order_lines", "uq_sku", "sku", 1)],
        foreign_keys=[
            fk("order_lines", "fk_order", "order_id", 1, "orders", "id"),
            fk("order_lines", "fk_order", "line_no", 2, "orders", "line_no"),
        ],
        indexes=[index("orders", "orders_pkey", "CREATE UNIQUE INDEX orders_pkey ON public.orders USING btree (id, line_no)")],
    )


def _shuffled(snap, seed):
    rng = random.Random(seed)
    data = {}
    for field in SchemaSnapshot.model_fields:
        rows = list(getattr(snap, field))
        rng.shuffle(rows)
        data[field] = rows
    return SchemaSnapshot(**data)


def test_output_independent_of_row_order():
    expected = build_schema_ddl(_big_snapshot())
    for seed in range(5):
        assert build_schema_ddl(_shuffled(_big_snapshot(), seed)) == expected
        assert build_enum_ddl(_shuffled(_big_snapshot(), seed)) == build_enum_ddl(_big_snapshot())


def test_repeated_runs_are_identical():
    snap = _big_snapshot()
    assert build_schema_ddl(snap) == build_schema_ddl(snap)


def test_every_relation_has_one_kind():
    result = build_schema_ddl(_big_snapshot())
    assert set(result.ddl_by_relation) == set(result.kind_by_relation)
    assert result.kind_by_relation == {
        "ops.audit": "table",
        "public.order_lines": "table",
        "public.orders": "table",
        "public.recent": "view",
    }
    assert list(result.ddl_by_relation) == sorted(result.ddl_by_relation)
