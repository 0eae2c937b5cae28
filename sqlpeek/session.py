"""Connection manager owning the single active connection."""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterator

from .dialects import AdapterRegistry, DatabaseHandle, DialectAdapter
from .errors import ConnectionUnreachable, NoActiveConnection, StatementError
from .introspection import SchemaIntrospector
from .models import ColumnDescriptor, ConnectionProfile, DataPage, SessionStatus, TableDescriptor
from .reader import DataReader
from .store import ConnectionStore

LOG = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ActiveConnection:
    """Live handle plus the profile it was opened from."""

    profile: ConnectionProfile
    adapter: DialectAdapter
    handle: DatabaseHandle
    connected_at: datetime

    @property
    def profile_id(self) -> int:
        return self.profile.id


class ConnectionManager:
    """Opens, probes and swaps connections; serializes every call that touches one."""

    def __init__(
        self,
        store: ConnectionStore,
        *,
        adapters: AdapterRegistry | None = None,
        introspector: SchemaIntrospector | None = None,
        reader: DataReader | None = None,
        query_timeout: float | None = None,
    ) -> None:
        self._store = store
        self._adapters = adapters or AdapterRegistry.default()
        self._introspector = introspector or SchemaIntrospector(query_timeout=query_timeout)
        self._reader = reader or DataReader(self._introspector, query_timeout=query_timeout)
        self._lock = threading.RLock()
        self._active: ActiveConnection | None = None
        self._store_unsubscribe: Callable[[], None] | None = store.subscribe_deletions(self._handle_profile_deleted)

    @property
    def adapters(self) -> AdapterRegistry:
        return self._adapters

    @property
    def active_profile_id(self) -> int | None:
        with self._lock:
            return self._active.profile_id if self._active else None

    def status(self) -> SessionStatus:
        """Snapshot of the active connection, if any."""

        with self._lock:
            active = self._active
            if active is None:
                return SessionStatus(connected=False)
            return SessionStatus(
                connected=True,
                profile_id=active.profile_id,
                profile_name=active.profile.name,
                backend_type=active.profile.backend_type,
                connected_at=active.connected_at,
            )

    def connect(self, profile_id: int) -> ActiveConnection:
        """Open and ping the profile's backend, then make it the active connection.

        On any failure the previously active connection is left untouched. If the
        profile is deleted while the handle is opening, the handle is closed and
        ProfileNotFound is raised.
        """

        profile = self._store.get(profile_id)
        adapter = self._adapters.get(profile.backend_type)
        handle = self._open_and_ping(adapter, profile.dsn)
        active = ActiveConnection(
            profile=profile,
            adapter=adapter,
            handle=handle,
            connected_at=datetime.now(tz=timezone.utc),
        )
        with self._lock:
            # a delete may have landed while the handle was opening
            try:
                self._store.get(profile_id)
            except BaseException:
                self._close_quietly(handle)
                raise
            previous, self._active = self._active, active
        if previous is not None:
            self._close_quietly(previous.handle)
        LOG.info(
            "Connected to database",
            extra={"profile_id": profile.id, "profile_name": profile.name, "backend": profile.backend_type},
        )
        return active

    def test_connection(self, backend_type: str, dsn: str) -> int:
        """Open, ping and close an ephemeral handle; return the latency in ms.

        Never reads or replaces the active connection.
        """

        adapter = self._adapters.get(backend_type)
        started = time.perf_counter()
        handle = self._open_and_ping(adapter, dsn)
        latency_ms = int((time.perf_counter() - started) * 1000)
        self._close_quietly(handle)
        return latency_ms

    def disconnect(self) -> None:
        """Close and clear the active connection (no-op if none)."""

        with self._lock:
            previous, self._active = self._active, None
            if previous is None:
                return
            self._close_quietly(previous.handle)
        LOG.info("Disconnected from database", extra={"profile_id": previous.profile_id})

    def close(self) -> None:
        """Disconnect, stop listening to the store and release adapter resources."""

        self.disconnect()
        if self._store_unsubscribe is not None:
            self._store_unsubscribe()
            self._store_unsubscribe = None
        self._adapters.shutdown()

    def list_tables(self) -> list[TableDescriptor]:
        with self._session() as active:
            return self._introspector.list_tables(active)

    def list_columns(self, table: str) -> list[ColumnDescriptor]:
        with self._session() as active:
            return self._introspector.list_columns(active, table)

    def get_page(self, table: str, offset: int, limit: int) -> DataPage:
        with self._session() as active:
            return self._reader.get_page(active, table, offset, limit)

    @contextmanager
    def _session(self) -> Iterator[ActiveConnection]:
        # Holding the lock for the whole call keeps the handle from being swapped or closed mid-query.
        with self._lock:
            if self._active is None:
                raise NoActiveConnection()
            yield self._active

    def _open_and_ping(self, adapter: DialectAdapter, dsn: str) -> DatabaseHandle:
        handle = adapter.open(dsn)
        try:
            handle.ping()
        except StatementError as exc:
            self._close_quietly(handle)
            raise ConnectionUnreachable(adapter.name, str(exc)) from exc
        except BaseException:
            self._close_quietly(handle)
            raise
        return handle

    def _handle_profile_deleted(self, profile_id: int) -> None:
        with self._lock:
            if self._active is not None and self._active.profile_id == profile_id:
                self.disconnect()

    @staticmethod
    def _close_quietly(handle: DatabaseHandle) -> None:
        try:
            handle.close()
        except Exception:
            LOG.warning("Failed to close database handle", exc_info=True)


__all__ = ["ActiveConnection", "ConnectionManager"]
