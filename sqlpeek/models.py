"""Shared dataclasses used across the store, session and introspection modules."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Mapping

CellValue = int | float | str | bool | None
Row = Mapping[str, CellValue]


class BackendType(str, Enum):
    """Backend types with a built-in dialect adapter."""

    POSTGRES = "postgres"
    SQLITE = "sqlite"


@dataclass(frozen=True, slots=True)
class ConnectionProfile:
    """Saved connection profile as persisted by the store."""

    id: int
    name: str
    backend_type: str
    dsn: str
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True, slots=True)
class TableDescriptor:
    """Table name plus a best-effort row count snapshot."""

    name: str
    row_count: int = 0
    schema_name: str | None = None


@dataclass(frozen=True, slots=True)
class ColumnDescriptor:
    """Column metadata using the backend's native type name."""

    name: str
    type: str
    nullable: bool
    default_value: str | None = None
    is_primary_key: bool = False


@dataclass(frozen=True, slots=True)
class DataPage:
    """One page of table rows along with the table's total row count."""

    columns: tuple[ColumnDescriptor, ...]
    rows: tuple[Row, ...]
    total: int


@dataclass(frozen=True, slots=True)
class SessionStatus:
    """What the session manager is currently connected to."""

    connected: bool
    profile_id: int | None = None
    profile_name: str | None = None
    backend_type: str | None = None
    connected_at: datetime | None = None


__all__ = [
    "BackendType",
    "CellValue",
    "ColumnDescriptor",
    "ConnectionProfile",
    "DataPage",
    "Row",
    "SessionStatus",
    "TableDescriptor",
]
