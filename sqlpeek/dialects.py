"""Dialect adapters: open backend handles and encode per-backend catalog queries."""

from __future__ import annotations

import asyncio
import logging
import re
import sqlite3
import threading
import time
from dataclasses import dataclass
from typing import Any, Coroutine, Iterable, Protocol, Sequence, TypeVar, runtime_checkable

import asyncpg
from sqlglot import exp

from .errors import ConnectionUnreachable, InvalidIdentifier, StatementError, UnsupportedBackend
from .models import BackendType, ColumnDescriptor

LOG = logging.getLogger(__name__)

T = TypeVar("T")

_IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")


@dataclass(frozen=True, slots=True)
class Statement:
    """SQL text plus positional parameters in the driver's placeholder style."""

    sql: str
    params: tuple[object, ...] = ()


@dataclass(frozen=True, slots=True)
class StatementResult:
    """Raw driver output: column names and undecoded row tuples."""

    columns: tuple[str, ...]
    rows: tuple[tuple[object, ...], ...]


@runtime_checkable
class DatabaseHandle(Protocol):
    """A live, synchronous connection to one backend."""

    def execute(self, statement: Statement, *, timeout: float | None = None) -> StatementResult:
        """Run a statement and return every row; raise StatementError on failure."""

    def ping(self) -> None:
        """Round-trip to the backend; raise StatementError if it does not answer."""

    def close(self) -> None:
        """Release the underlying connection; safe to call twice."""


@runtime_checkable
class DialectAdapter(Protocol):
    """Per-backend strategy used by the session manager and introspection."""

    name: str
    table_schema: str | None

    def open(self, dsn: str) -> DatabaseHandle: ...

    def list_tables_query(self) -> Statement: ...

    def list_columns_query(self, table: str) -> Statement: ...

    def row_count_query(self, table: str) -> Statement: ...

    def page_query(self, table: str, limit: int, offset: int) -> Statement: ...

    def column_from_row(self, row: Sequence[object]) -> ColumnDescriptor: ...


def validate_identifier(name: str) -> str:
    """Return ``name`` if it is a plain identifier, else raise InvalidIdentifier."""

    if not isinstance(name, str) or not _IDENTIFIER_PATTERN.match(name):
        raise InvalidIdentifier(str(name))
    return name


def quote_identifier(name: str, dialect: str) -> str:
    """Validate and quote an identifier for the given sqlglot dialect."""

    return exp.to_identifier(validate_identifier(name), quoted=True).sql(dialect=dialect)


class _SqlglotQueries:
    """COUNT and LIMIT/OFFSET statements rendered through sqlglot."""

    sqlglot_dialect = ""

    def row_count_query(self, table: str) -> Statement:
        query = exp.select("COUNT(*)").from_(self._table(table))
        return Statement(query.sql(dialect=self.sqlglot_dialect))

    def page_query(self, table: str, limit: int, offset: int) -> Statement:
        query = exp.select("*").from_(self._table(table)).limit(limit).offset(offset)
        return Statement(query.sql(dialect=self.sqlglot_dialect))

    @staticmethod
    def _table(table: str) -> exp.Table:
        return exp.table_(validate_identifier(table), quoted=True)


class SqliteHandle:
    """Handle over a stdlib sqlite3 connection."""

    _PROGRESS_STEPS = 1000

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection: sqlite3.Connection | None = connection

    def execute(self, statement: Statement, *, timeout: float | None = None) -> StatementResult:
        connection = self._require_open()
        if timeout is not None:
            deadline = time.monotonic() + timeout
            connection.set_progress_handler(lambda: int(time.monotonic() > deadline), self._PROGRESS_STEPS)
        try:
            cursor = connection.execute(statement.sql, statement.params)
            try:
                rows = cursor.fetchall()
                columns = tuple(desc[0] for desc in cursor.description or ())
            finally:
                cursor.close()
        except sqlite3.Error as exc:
            raise StatementError(str(exc)) from exc
        finally:
            if timeout is not None:
                connection.set_progress_handler(None, 0)
        return StatementResult(columns=columns, rows=tuple(tuple(row) for row in rows))

    def ping(self) -> None:
        self.execute(Statement("SELECT 1"))

    def close(self) -> None:
        if self._connection is None:
            return
        connection, self._connection = self._connection, None
        connection.close()

    def _require_open(self) -> sqlite3.Connection:
        if self._connection is None:
            raise StatementError("connection is closed")
        return self._connection


class SqliteAdapter(_SqlglotQueries):
    """SQLite dialect: sqlite_master for tables, PRAGMA table_info for columns."""

    name = BackendType.SQLITE.value
    table_schema: str | None = None
    sqlglot_dialect = "sqlite"

    _TABLES_QUERY = """
        SELECT name
        FROM sqlite_master
        WHERE type = 'table' AND name NOT LIKE 'sqlite_%'
    """

    def __init__(self, *, connect_timeout: float = 5.0) -> None:
        self._connect_timeout = connect_timeout

    def open(self, dsn: str) -> SqliteHandle:
        try:
            connection = sqlite3.connect(
                dsn,
                uri=dsn.startswith("file:"),
                timeout=self._connect_timeout,
                check_same_thread=False,
            )
        except sqlite3.Error as exc:
            raise ConnectionUnreachable(self.name, str(exc)) from exc
        # TEXT is not guaranteed to hold valid UTF-8
        connection.text_factory = _decode_text
        return SqliteHandle(connection)

    def list_tables_query(self) -> Statement:
        return Statement(self._TABLES_QUERY)

    def list_columns_query(self, table: str) -> Statement:
        return Statement(f"PRAGMA table_info({quote_identifier(table, self.sqlglot_dialect)})")

    def column_from_row(self, row: Sequence[object]) -> ColumnDescriptor:
        _cid, name, type_name, notnull, default, pk = row
        if not isinstance(name, str) or not isinstance(type_name, str):
            raise TypeError(f"Unexpected table_info row: {row!r}")
        if not isinstance(notnull, int) or not isinstance(pk, int):
            raise TypeError(f"Unexpected table_info flags: {row!r}")
        return ColumnDescriptor(
            name=name,
            type=type_name,
            nullable=notnull == 0,
            default_value=None if default is None else str(default),
            is_primary_key=pk == 1,
        )


def _decode_text(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace")


class _EventLoopThread:
    """Background event loop that lets synchronous callers drive asyncpg."""

    def __init__(self, name: str) -> None:
        self._name = name
        self._lock = threading.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None

    def run(self, coro: Coroutine[Any, Any, T]) -> T:
        future = asyncio.run_coroutine_threadsafe(coro, self._ensure_loop())
        return future.result()

    def shutdown(self) -> None:
        with self._lock:
            loop, thread = self._loop, self._thread
            self._loop = None
            self._thread = None
        if loop is None:
            return
        loop.call_soon_threadsafe(loop.stop)
        if thread is not None:
            thread.join(timeout=1)
        if not loop.is_running():
            loop.close()

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        with self._lock:
            if self._loop is None:
                loop = asyncio.new_event_loop()
                thread = threading.Thread(target=loop.run_forever, name=self._name, daemon=True)
                thread.start()
                self._loop = loop
                self._thread = thread
            return self._loop


class PostgresHandle:
    """Handle over an asyncpg connection bound to the adapter's loop thread."""

    def __init__(self, connection: Any, runner: _EventLoopThread, *, close_timeout: float = 5.0) -> None:
        self._connection = connection
        self._runner = runner
        self._close_timeout = close_timeout
        self._closed = False

    def execute(self, statement: Statement, *, timeout: float | None = None) -> StatementResult:
        if self._closed:
            raise StatementError("connection is closed")
        try:
            return self._runner.run(self._fetch(statement, timeout))
        except Exception as exc:
            raise StatementError(str(exc) or type(exc).__name__) from exc

    def ping(self) -> None:
        if self._closed:
            raise StatementError("connection is closed")
        try:
            self._runner.run(self._connection.fetchval("SELECT 1"))
        except Exception as exc:
            raise StatementError(str(exc) or type(exc).__name__) from exc

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._runner.run(self._connection.close(timeout=self._close_timeout))
        except Exception:  # pragma: no cover - best effort cleanup
            LOG.debug("Ignoring error while closing asyncpg connection", exc_info=True)

    async def _fetch(self, statement: Statement, timeout: float | None) -> StatementResult:
        prepared = await self._connection.prepare(statement.sql, timeout=timeout)
        records = await prepared.fetch(*statement.params, timeout=timeout)
        columns = tuple(str(attribute.name) for attribute in prepared.get_attributes())
        return StatementResult(columns=columns, rows=tuple(tuple(record) for record in records))


class PostgresAdapter(_SqlglotQueries):
    """PostgreSQL dialect backed by asyncpg and information_schema views."""

    name = BackendType.POSTGRES.value
    table_schema: str | None = "public"
    sqlglot_dialect = "postgres"

    _TABLES_QUERY = """
        SELECT table_name
        FROM information_schema.tables
        WHERE table_schema = 'public' AND table_type = 'BASE TABLE'
    """

    _COLUMNS_QUERY = """
        SELECT c.column_name,
               c.data_type,
               c.is_nullable,
               c.column_default,
               pk.column_name IS NOT NULL AS is_primary
        FROM information_schema.columns c
        LEFT JOIN (
            SELECT kcu.table_schema, kcu.table_name, kcu.column_name
            FROM information_schema.table_constraints tc
            JOIN information_schema.key_column_usage kcu
              ON kcu.constraint_schema = tc.constraint_schema
             AND kcu.constraint_name = tc.constraint_name
            WHERE tc.constraint_type = 'PRIMARY KEY'
        ) pk
               ON pk.table_schema = c.table_schema
              AND pk.table_name = c.table_name
              AND pk.column_name = c.column_name
        WHERE c.table_schema = 'public' AND c.table_name = $1
        ORDER BY c.ordinal_position
    """

    def __init__(self, *, connect_timeout: float = 5.0) -> None:
        self._connect_timeout = connect_timeout
        self._runner = _EventLoopThread("sqlpeek-asyncpg")

    def open(self, dsn: str) -> PostgresHandle:
        try:
            connection = self._runner.run(self._connect(dsn))
        except Exception as exc:
            raise ConnectionUnreachable(self.name, str(exc) or type(exc).__name__) from exc
        return PostgresHandle(connection, self._runner, close_timeout=self._connect_timeout)

    def list_tables_query(self) -> Statement:
        return Statement(self._TABLES_QUERY)

    def list_columns_query(self, table: str) -> Statement:
        return Statement(self._COLUMNS_QUERY, (validate_identifier(table),))

    def column_from_row(self, row: Sequence[object]) -> ColumnDescriptor:
        name, data_type, is_nullable, default, is_primary = row
        if not isinstance(name, str) or not isinstance(data_type, str):
            raise TypeError(f"Unexpected information_schema row: {row!r}")
        if not isinstance(is_primary, bool):
            raise TypeError(f"Unexpected primary key flag: {row!r}")
        return ColumnDescriptor(
            name=name,
            type=data_type,
            nullable=is_nullable == "YES",
            default_value=None if default is None else str(default),
            is_primary_key=is_primary,
        )

    def shutdown(self) -> None:
        """Stop the background event loop."""

        self._runner.shutdown()

    async def _connect(self, dsn: str) -> Any:
        return await asyncpg.connect(dsn=dsn, timeout=self._connect_timeout)


class AdapterRegistry:
    """Maps backend type strings to dialect adapters."""

    def __init__(self, adapters: Iterable[DialectAdapter] = ()) -> None:
        self._adapters: dict[str, DialectAdapter] = {}
        for adapter in adapters:
            self.register(adapter)

    @classmethod
    def default(cls, *, connect_timeout: float = 5.0) -> "AdapterRegistry":
        return cls(
            (
                PostgresAdapter(connect_timeout=connect_timeout),
                SqliteAdapter(connect_timeout=connect_timeout),
            )
        )

    @property
    def backend_types(self) -> tuple[str, ...]:
        return tuple(self._adapters)

    def register(self, adapter: DialectAdapter) -> None:
        """Register (or replace) the adapter for ``adapter.name``."""

        self._adapters[adapter.name] = adapter

    def get(self, backend_type: str) -> DialectAdapter:
        try:
            return self._adapters[backend_type]
        except KeyError:
            raise UnsupportedBackend(backend_type) from None

    def shutdown(self) -> None:
        """Release adapter-level resources such as event loop threads."""

        for adapter in self._adapters.values():
            shutdown = getattr(adapter, "shutdown", None)
            if callable(shutdown):
                shutdown()


__all__ = [
    "AdapterRegistry",
    "DatabaseHandle",
    "DialectAdapter",
    "PostgresAdapter",
    "PostgresHandle",
    "SqliteAdapter",
    "SqliteHandle",
    "Statement",
    "StatementResult",
    "quote_identifier",
    "validate_identifier",
]
