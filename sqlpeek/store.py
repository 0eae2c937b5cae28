"""Durable storage for saved connection profiles."""

from __future__ import annotations

import logging
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from .errors import ProfileNotFound, StorageError
from .models import ConnectionProfile

LOG = logging.getLogger(__name__)

DeletionListener = Callable[[int], None]


class ConnectionStore:
    """Profile CRUD over a local SQLite file; the schema is created on first use."""

    _SCHEMA = """
        CREATE TABLE IF NOT EXISTS connections (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            backend_type TEXT NOT NULL,
            dsn TEXT NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """
    _COLUMNS = "id, name, backend_type, dsn, created_at, updated_at"

    def __init__(self, path: Path | str) -> None:
        self._path = path
        self._connection: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        self._deletion_listeners: set[DeletionListener] = set()

    @property
    def path(self) -> Path | str:
        return self._path

    def initialize(self) -> None:
        """Open the store file and ensure the profile table exists (idempotent)."""

        with self._lock:
            self._require_connection()

    def save(self, name: str, backend_type: str, dsn: str) -> ConnectionProfile:
        """Persist a new profile; the DSN is stored as given, without validation."""

        now = _utcnow()
        with self._lock:
            connection = self._require_connection()
            try:
                with connection:
                    cursor = connection.execute(
                        "INSERT INTO connections (name, backend_type, dsn, created_at, updated_at) "
                        "VALUES (?, ?, ?, ?, ?)",
                        (name, backend_type, dsn, now.isoformat(), now.isoformat()),
                    )
            except sqlite3.Error as exc:
                raise StorageError("create", str(exc)) from exc
            profile_id = cursor.lastrowid
        LOG.info("Saved connection profile", extra={"profile_id": profile_id, "profile_name": name})
        return ConnectionProfile(
            id=int(profile_id),
            name=name,
            backend_type=backend_type,
            dsn=dsn,
            created_at=now,
            updated_at=now,
        )

    def list(self) -> list[ConnectionProfile]:
        """Return every saved profile in storage order."""

        with self._lock:
            connection = self._require_connection()
            try:
                rows = connection.execute(f"SELECT {self._COLUMNS} FROM connections").fetchall()
            except sqlite3.Error as exc:
                raise StorageError("find", str(exc)) from exc
        return [_profile_from_row(row) for row in rows]

    def get(self, profile_id: int) -> ConnectionProfile:
        """Return one profile or raise ProfileNotFound."""

        with self._lock:
            connection = self._require_connection()
            try:
                row = connection.execute(
                    f"SELECT {self._COLUMNS} FROM connections WHERE id = ?",
                    (profile_id,),
                ).fetchone()
            except sqlite3.Error as exc:
                raise StorageError("find", str(exc)) from exc
        if row is None:
            raise ProfileNotFound(profile_id)
        return _profile_from_row(row)

    def delete(self, profile_id: int) -> None:
        """Delete a profile (no-op if absent) and notify deletion listeners."""

        with self._lock:
            connection = self._require_connection()
            try:
                with connection:
                    connection.execute("DELETE FROM connections WHERE id = ?", (profile_id,))
            except sqlite3.Error as exc:
                raise StorageError("delete", str(exc)) from exc
        LOG.info("Deleted connection profile", extra={"profile_id": profile_id})
        for listener in tuple(self._deletion_listeners):
            listener(profile_id)

    def subscribe_deletions(self, listener: DeletionListener) -> Callable[[], None]:
        """Call ``listener(profile_id)`` after each delete; returns an unsubscribe handle."""

        self._deletion_listeners.add(listener)

        def _unsubscribe() -> None:
            self._deletion_listeners.discard(listener)

        return _unsubscribe

    def close(self) -> None:
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None

    def _require_connection(self) -> sqlite3.Connection:
        if self._connection is not None:
            return self._connection
        try:
            if isinstance(self._path, Path):
                self._path.parent.mkdir(parents=True, exist_ok=True)
            connection = sqlite3.connect(str(self._path), check_same_thread=False)
        except (OSError, sqlite3.Error) as exc:
            raise StorageError("open", str(exc)) from exc
        try:
            with connection:
                connection.execute(self._SCHEMA)
        except sqlite3.Error as exc:
            connection.close()
            raise StorageError("migrate", str(exc)) from exc
        self._connection = connection
        LOG.info("Connection store initialized", extra={"store_path": str(self._path)})
        return connection


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def _profile_from_row(row: tuple[object, ...]) -> ConnectionProfile:
    profile_id, name, backend_type, dsn, created_at, updated_at = row
    return ConnectionProfile(
        id=int(profile_id),  # type: ignore[arg-type]
        name=str(name),
        backend_type=str(backend_type),
        dsn=str(dsn),
        created_at=datetime.fromisoformat(str(created_at)),
        updated_at=datetime.fromisoformat(str(updated_at)),
    )


__all__ = ["ConnectionStore", "DeletionListener"]
