"""Tests for table and column introspection."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Iterator

import pytest

from fakes import Bound, ScriptedHandle
from sqlpeek.dialects import PostgresAdapter, SqliteAdapter, Statement, StatementResult
from sqlpeek.errors import ColumnInfoUnavailable, InvalidIdentifier, QueryFailed, StatementError
from sqlpeek.introspection import SchemaIntrospector


@pytest.fixture
def shop_db(tmp_path: Path) -> Path:
    path = tmp_path / "shop.db"
    with sqlite3.connect(path) as conn:
        conn.executescript(
            """
            CREATE TABLE orders (
                id INTEGER PRIMARY KEY,
                status TEXT NOT NULL DEFAULT 'pending',
                note TEXT
            );
            CREATE TABLE "weird-name" (x int);
            CREATE TABLE accounts (email TEXT);
            INSERT INTO orders (status) VALUES ('complete'), ('pending'), ('complete');
            INSERT INTO "weird-name" VALUES (1);
            CREATE VIEW complete_orders AS SELECT * FROM orders WHERE status = 'complete';
            """
        )
    conn.close()
    return path


@pytest.fixture
def shop(shop_db: Path) -> Iterator[Bound]:
    adapter = SqliteAdapter()
    bound = Bound(handle=adapter.open(str(shop_db)), adapter=adapter)  # type: ignore[arg-type]
    yield bound
    bound.handle.close()


def test_list_tables_reports_counts_in_backend_order(shop: Bound) -> None:
    tables = SchemaIntrospector().list_tables(shop)

    assert [table.name for table in tables] == ["orders", "weird-name", "accounts"]
    assert tables[0].row_count == 3
    assert tables[2].row_count == 0
    assert all(table.schema_name is None for table in tables)


def test_list_tables_defaults_count_to_zero_for_unsafe_names(shop: Bound) -> None:
    tables = {table.name: table for table in SchemaIntrospector().list_tables(shop)}

    assert tables["weird-name"].row_count == 0


def test_list_tables_defaults_count_to_zero_when_count_fails() -> None:
    def _respond(statement: Statement) -> StatementResult:
        if "sqlite_master" in statement.sql:
            return StatementResult(("name",), (("good",), ("broken",), (None,)))
        if '"broken"' in statement.sql:
            raise StatementError("no such table: broken")
        return StatementResult(("count",), ((5,),))

    bound = Bound(handle=ScriptedHandle(_respond))

    tables = SchemaIntrospector().list_tables(bound)

    assert [(table.name, table.row_count) for table in tables] == [("good", 5), ("broken", 0)]


def test_list_tables_propagates_failure_of_the_listing_query() -> None:
    def _respond(statement: Statement) -> StatementResult:
        raise StatementError("disk I/O error")

    with pytest.raises(QueryFailed) as excinfo:
        SchemaIntrospector().list_tables(Bound(handle=ScriptedHandle(_respond)))

    assert excinfo.value.operation == "list tables"
    assert isinstance(excinfo.value.__cause__, StatementError)


def test_list_tables_sets_postgres_schema_name() -> None:
    def _respond(statement: Statement) -> StatementResult:
        if "information_schema.tables" in statement.sql:
            return StatementResult(("table_name",), (("accounts",),))
        return StatementResult(("count",), ((2,),))

    bound = Bound(handle=ScriptedHandle(_respond), adapter=PostgresAdapter())

    tables = SchemaIntrospector().list_tables(bound)

    assert tables[0].schema_name == "public"
    assert tables[0].row_count == 2


def test_list_columns_reads_sqlite_pragma(shop: Bound) -> None:
    columns = SchemaIntrospector().list_columns(shop, "orders")

    assert [column.name for column in columns] == ["id", "status", "note"]
    by_name = {column.name: column for column in columns}
    assert by_name["id"].is_primary_key is True
    assert by_name["id"].type == "INTEGER"
    assert by_name["status"].nullable is False
    assert by_name["status"].default_value == "'pending'"
    assert by_name["note"].nullable is True
    assert by_name["note"].is_primary_key is False


def test_list_columns_skips_malformed_rows() -> None:
    rows = (
        (0, "id", "INTEGER", 0, None, 1),
        (1, None, "TEXT", 0, None, 0),
        (2, "name", "TEXT", 1, None, 0),
        (3, "short"),
    )

    def _respond(statement: Statement) -> StatementResult:
        return StatementResult(("cid", "name", "type", "notnull", "dflt_value", "pk"), rows)

    columns = SchemaIntrospector().list_columns(Bound(handle=ScriptedHandle(_respond)), "t")

    assert [column.name for column in columns] == ["id", "name"]


def test_list_columns_reads_postgres_information_schema() -> None:
    rows = (
        ("id", "integer", "NO", "nextval('accounts_id_seq'::regclass)", True),
        ("email", "text", "YES", None, False),
        ("broken", "text", "YES", None, None),
    )

    def _respond(statement: Statement) -> StatementResult:
        assert statement.params == ("accounts",)
        return StatementResult(("column_name", "data_type", "is_nullable", "column_default", "is_primary"), rows)

    bound = Bound(handle=ScriptedHandle(_respond), adapter=PostgresAdapter())

    columns = SchemaIntrospector().list_columns(bound, "accounts")

    assert [(column.name, column.nullable, column.is_primary_key) for column in columns] == [
        ("id", False, True),
        ("email", True, False),
    ]


def test_list_columns_wraps_query_failure() -> None:
    def _respond(statement: Statement) -> StatementResult:
        raise StatementError("permission denied")

    with pytest.raises(ColumnInfoUnavailable) as excinfo:
        SchemaIntrospector().list_columns(Bound(handle=ScriptedHandle(_respond)), "t")

    assert excinfo.value.table == "t"


def test_list_columns_rejects_unsafe_table_names(shop: Bound) -> None:
    with pytest.raises(InvalidIdentifier):
        SchemaIntrospector().list_columns(shop, "orders); DROP TABLE orders; --")


def test_row_count_without_default_raises(shop: Bound) -> None:
    introspector = SchemaIntrospector()

    assert introspector.row_count(shop, "orders") == 3
    with pytest.raises(StatementError):
        introspector.row_count(shop, "missing")
    assert introspector.row_count(shop, "missing", default=0) == 0


def test_list_columns_flags_only_first_member_of_composite_key(tmp_path: Path) -> None:
    path = tmp_path / "composite.db"
    with sqlite3.connect(path) as conn:
        conn.execute("CREATE TABLE pairs (a int, b int, label text, PRIMARY KEY (a, b))")
    conn.close()
    adapter = SqliteAdapter()
    bound = Bound(handle=adapter.open(str(path)), adapter=adapter)  # type: ignore[arg-type]
    try:
        columns = SchemaIntrospector().list_columns(bound, "pairs")
    finally:
        bound.handle.close()

    assert [column.is_primary_key for column in columns] == [True, False, False]
