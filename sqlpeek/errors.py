"""Error kinds raised by the connection and introspection engine."""

from __future__ import annotations


class SqlPeekError(RuntimeError):
    """Base class for every error surfaced to callers."""


class ProfileNotFound(SqlPeekError):
    """Raised when a connection profile id does not exist in the store."""

    def __init__(self, profile_id: int) -> None:
        super().__init__(f"Connection profile {profile_id} not found.")
        self.profile_id = profile_id


class UnsupportedBackend(SqlPeekError):
    """Raised when no dialect adapter is registered for a backend type."""

    def __init__(self, backend_type: str) -> None:
        super().__init__(f"Unsupported backend type: {backend_type!r}")
        self.backend_type = backend_type


class ConnectionUnreachable(SqlPeekError):
    """Raised when a backend cannot be opened or does not answer a ping."""

    def __init__(self, backend_type: str, reason: str) -> None:
        super().__init__(f"Failed to reach {backend_type} backend: {reason}")
        self.backend_type = backend_type
        self.reason = reason


class NoActiveConnection(SqlPeekError):
    """Raised when a browsing call is made before any profile is connected."""

    def __init__(self) -> None:
        super().__init__("No active database connection.")


class InvalidIdentifier(SqlPeekError, ValueError):
    """Raised when a table name is not safe to splice into SQL text."""

    def __init__(self, identifier: str) -> None:
        super().__init__(f"Invalid table name: {identifier!r}")
        self.identifier = identifier


class StatementError(SqlPeekError):
    """Raised by database handles when the driver rejects a statement."""


class QueryFailed(SqlPeekError):
    """Raised when an introspection or data query fails as a whole."""

    def __init__(self, operation: str, reason: str, *, table: str | None = None) -> None:
        target = f" on {table!r}" if table else ""
        super().__init__(f"Failed to {operation}{target}: {reason}")
        self.operation = operation
        self.table = table


class ColumnInfoUnavailable(SqlPeekError):
    """Raised when column metadata for a table cannot be fetched."""

    def __init__(self, table: str, reason: str) -> None:
        super().__init__(f"Failed to get column info for {table!r}: {reason}")
        self.table = table


class CountFailed(SqlPeekError):
    """Raised when the total row count for a table cannot be fetched."""

    def __init__(self, table: str, reason: str) -> None:
        super().__init__(f"Failed to count rows in {table!r}: {reason}")
        self.table = table


class StorageError(SqlPeekError):
    """Raised when the profile store fails; ``operation`` names the step."""

    def __init__(self, operation: str, reason: str) -> None:
        super().__init__(f"Profile store failed to {operation}: {reason}")
        self.operation = operation


__all__ = [
    "ColumnInfoUnavailable",
    "ConnectionUnreachable",
    "CountFailed",
    "InvalidIdentifier",
    "NoActiveConnection",
    "ProfileNotFound",
    "QueryFailed",
    "SqlPeekError",
    "StatementError",
    "StorageError",
    "UnsupportedBackend",
]
