"""Error taxonomy surfaced by the session, metadata cache, and query services."""

from __future__ import annotations


class PgBrowseError(RuntimeError):
    """Base class for every failure the core reports to the UI layer."""


class NotConnectedError(PgBrowseError):
    """Raised when an operation needs an active connection and none exists."""

    def __init__(self, message: str = "No active database connection") -> None:
        super().__init__(message)


class ConnectionFailedError(PgBrowseError):
    """Raised when a connection cannot be established."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class EmptyQueryError(PgBrowseError):
    """Raised when the submitted SQL is blank."""

    def __init__(self, message: str = "Provide SQL to execute.") -> None:
        super().__init__(message)


class QueryFailedError(PgBrowseError):
    """Raised when the server rejects or fails a statement."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class MetadataQueryFailedError(PgBrowseError):
    """Raised when a catalog query for the schema tree fails."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


__all__ = [
    "ConnectionFailedError",
    "EmptyQueryError",
    "MetadataQueryFailedError",
    "NotConnectedError",
    "PgBrowseError",
    "QueryFailedError",
]
