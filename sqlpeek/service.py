"""Call/return surface consumed by a UI, CLI or RPC layer."""

from __future__ import annotations

import logging

from .config import AppConfig
from .dialects import AdapterRegistry
from .errors import StorageError
from .models import ColumnDescriptor, ConnectionProfile, DataPage, SessionStatus, TableDescriptor
from .session import ConnectionManager
from .store import ConnectionStore

LOG = logging.getLogger(__name__)


class Workbench:
    """Wires the profile store and the connection manager behind one object."""

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        store: ConnectionStore | None = None,
        adapters: AdapterRegistry | None = None,
    ) -> None:
        self._config = config or AppConfig()
        self._store = store or ConnectionStore(self._config.store_path)
        self._manager = ConnectionManager(
            self._store,
            adapters=adapters or AdapterRegistry.default(connect_timeout=self._config.connect_timeout),
            query_timeout=self._config.query_timeout,
        )

    @classmethod
    def open(cls, config: AppConfig | None = None) -> "Workbench":
        """Create a workbench and initialize its store; StorageError is fatal to hosts."""

        workbench = cls(config)
        try:
            workbench._store.initialize()
        except StorageError:
            workbench.close()
            raise
        LOG.info("Workbench initialized")
        return workbench

    @property
    def config(self) -> AppConfig:
        return self._config

    @property
    def store(self) -> ConnectionStore:
        return self._store

    @property
    def manager(self) -> ConnectionManager:
        return self._manager

    def save_connection(self, name: str, backend_type: str, dsn: str) -> ConnectionProfile:
        return self._store.save(name, backend_type, dsn)

    def list_connections(self) -> list[ConnectionProfile]:
        return self._store.list()

    def delete_connection(self, profile_id: int) -> None:
        """Delete a profile; the active connection is dropped if it came from it."""

        self._store.delete(profile_id)

    def connect(self, profile_id: int) -> SessionStatus:
        self._manager.connect(profile_id)
        return self._manager.status()

    def test_connection(self, backend_type: str, dsn: str) -> int:
        return self._manager.test_connection(backend_type, dsn)

    def disconnect(self) -> None:
        self._manager.disconnect()

    def status(self) -> SessionStatus:
        return self._manager.status()

    def list_tables(self) -> list[TableDescriptor]:
        return self._manager.list_tables()

    def list_columns(self, table: str) -> list[ColumnDescriptor]:
        return self._manager.list_columns(table)

    def get_page(self, table: str, offset: int = 0, limit: int | None = None) -> DataPage:
        return self._manager.get_page(table, offset, self._config.default_page_size if limit is None else limit)

    def close(self) -> None:
        self._manager.close()
        self._store.close()

    def __enter__(self) -> "Workbench":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


__all__ = ["Workbench"]
