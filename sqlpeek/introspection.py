"""Schema introspection over the active connection's dialect adapter."""

from __future__ import annotations

import logging
from typing import Protocol

from .dialects import DatabaseHandle, DialectAdapter, validate_identifier
from .errors import ColumnInfoUnavailable, InvalidIdentifier, QueryFailed, StatementError
from .models import ColumnDescriptor, TableDescriptor

LOG = logging.getLogger(__name__)


class BoundConnection(Protocol):
    """An open handle paired with the adapter that produced it."""

    adapter: DialectAdapter
    handle: DatabaseHandle


class SchemaIntrospector:
    """Lists tables and columns, degrading per row instead of failing the listing."""

    def __init__(self, *, query_timeout: float | None = None) -> None:
        self._query_timeout = query_timeout

    def list_tables(self, connection: BoundConnection) -> list[TableDescriptor]:
        """Return tables in backend order with a best-effort row count each."""

        adapter = connection.adapter
        try:
            result = connection.handle.execute(adapter.list_tables_query(), timeout=self._query_timeout)
        except StatementError as exc:
            raise QueryFailed("list tables", str(exc)) from exc

        tables: list[TableDescriptor] = []
        for row in result.rows:
            if not row or not isinstance(row[0], str):
                LOG.debug("Skipping malformed table row", extra={"row": row})
                continue
            name = row[0]
            tables.append(
                TableDescriptor(
                    name=name,
                    row_count=self.row_count(connection, name, default=0),
                    schema_name=adapter.table_schema,
                )
            )
        return tables

    def list_columns(self, connection: BoundConnection, table: str) -> list[ColumnDescriptor]:
        """Return column metadata in declaration order; malformed rows are skipped."""

        validate_identifier(table)
        adapter = connection.adapter
        try:
            result = connection.handle.execute(adapter.list_columns_query(table), timeout=self._query_timeout)
        except StatementError as exc:
            raise ColumnInfoUnavailable(table, str(exc)) from exc

        columns: list[ColumnDescriptor] = []
        for row in result.rows:
            try:
                columns.append(adapter.column_from_row(row))
            except (TypeError, ValueError) as exc:
                LOG.debug("Skipping column row for %s: %s", table, exc)
        return columns

    def row_count(self, connection: BoundConnection, table: str, *, default: int | None = None) -> int:
        """Run ``SELECT COUNT(*)`` for a table.

        With ``default`` set, any failure (including an unsafe table name) returns the
        default instead of raising StatementError/InvalidIdentifier.
        """

        try:
            statement = connection.adapter.row_count_query(table)
            result = connection.handle.execute(statement, timeout=self._query_timeout)
            count = _first_int(result.rows)
        except (StatementError, InvalidIdentifier, TypeError, ValueError) as exc:
            if default is None:
                raise
            LOG.debug("Row count for %s unavailable, using %d: %s", table, default, exc)
            return default
        return count


def _first_int(rows: tuple[tuple[object, ...], ...]) -> int:
    if not rows or not rows[0]:
        raise ValueError("count query returned no rows")
    value = rows[0][0]
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"count query returned {value!r}")
    if value < 0:
        raise ValueError(f"count query returned {value!r}")
    return value


__all__ = ["BoundConnection", "SchemaIntrospector"]
