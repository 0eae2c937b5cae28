"""Connection profiles, schema introspection and paginated browsing for SQL backends."""

from .errors import (
    ColumnInfoUnavailable,
    ConnectionUnreachable,
    CountFailed,
    InvalidIdentifier,
    NoActiveConnection,
    ProfileNotFound,
    QueryFailed,
    SqlPeekError,
    StorageError,
    UnsupportedBackend,
)
from .models import BackendType, ColumnDescriptor, ConnectionProfile, DataPage, SessionStatus, TableDescriptor
from .service import Workbench

__version__ = "0.1.0"

__all__ = [
    "BackendType",
    "ColumnDescriptor",
    "ColumnInfoUnavailable",
    "ConnectionProfile",
    "ConnectionUnreachable",
    "CountFailed",
    "DataPage",
    "InvalidIdentifier",
    "NoActiveConnection",
    "ProfileNotFound",
    "QueryFailed",
    "SessionStatus",
    "SqlPeekError",
    "StorageError",
    "TableDescriptor",
    "UnsupportedBackend",
    "Workbench",
    "__version__",
]
