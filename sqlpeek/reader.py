"""Paginated raw-data retrieval with decoding into a closed set of cell values."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from .dialects import validate_identifier
from .errors import CountFailed, QueryFailed, StatementError
from .introspection import BoundConnection, SchemaIntrospector
from .models import CellValue, DataPage, Row

LOG = logging.getLogger(__name__)


class DataReader:
    """Fetches one page of a table plus its total row count."""

    def __init__(self, introspector: SchemaIntrospector, *, query_timeout: float | None = None) -> None:
        self._introspector = introspector
        self._query_timeout = query_timeout

    def get_page(self, connection: BoundConnection, table: str, offset: int, limit: int) -> DataPage:
        """Return ``limit`` rows of ``table`` starting at ``offset``.

        Column metadata, the total count and the page itself are fetched in that
        order; each failure surfaces as its own error kind. Rows that cannot be
        decoded are dropped from the page.
        """

        validate_identifier(table)
        if offset < 0:
            raise ValueError(f"offset must be >= 0, got {offset}")
        if limit < 0:
            raise ValueError(f"limit must be >= 0, got {limit}")

        # raises ColumnInfoUnavailable on its own
        columns = self._introspector.list_columns(connection, table)

        try:
            total = self._introspector.row_count(connection, table)
        except (StatementError, TypeError, ValueError) as exc:
            raise CountFailed(table, str(exc)) from exc

        if limit == 0:
            return DataPage(columns=tuple(columns), rows=(), total=total)

        statement = connection.adapter.page_query(table, limit, offset)
        try:
            result = connection.handle.execute(statement, timeout=self._query_timeout)
        except StatementError as exc:
            raise QueryFailed("query table data", str(exc), table=table) from exc

        rows: list[Row] = []
        for raw in result.rows:
            try:
                rows.append(decode_row(result.columns, raw))
            except (TypeError, ValueError) as exc:
                LOG.debug("Skipping undecodable row in %s: %s", table, exc)
        return DataPage(columns=tuple(columns), rows=tuple(rows), total=max(total, len(rows)))


def decode_row(columns: tuple[str, ...], values: tuple[object, ...]) -> dict[str, CellValue]:
    """Zip a raw row with its column names; NULL stays an explicit ``None``."""

    if len(values) != len(columns):
        raise ValueError(f"row has {len(values)} values for {len(columns)} columns")
    return {name: coerce_value(value) for name, value in zip(columns, values)}


def coerce_value(value: object) -> CellValue:
    """Map a driver value onto int, float, str, bool or None."""

    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return value.total_seconds()
    return str(value)


__all__ = ["DataReader", "coerce_value", "decode_row"]
