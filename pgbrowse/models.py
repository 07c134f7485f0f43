"""Shared dataclasses used across session, profile, and query modules."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from uuid import uuid4

from .errors import ConnectionFailedError


def new_profile_id() -> str:
    return uuid4().hex


@dataclass(frozen=True, slots=True)
class ConnectionProfile:
    """Runtime representation of a saved connection."""

    name: str
    host: str = "localhost"
    port: int = 5432
    database: str = "postgres"
    username: str = "postgres"
    password: str = ""
    use_tls: bool = False
    persist_password: bool = False
    last_used_at: datetime | None = None
    id: str = field(default_factory=new_profile_id)

    @property
    def label(self) -> str:
        """Short ``user@host:port/db`` description for status lines."""

        return f"{self.username}@{self.host}:{self.port}/{self.database}"

    def with_password(self, password: str) -> ConnectionProfile:
        return replace(self, password=password)


@dataclass(frozen=True, slots=True)
class ConnectResult:
    """Outcome of a connect or connection test; never raised."""

    success: bool
    message: str
    failure_detail: str | None = None

    def raise_for_failure(self) -> None:
        """Raise ``ConnectionFailedError`` when the attempt did not succeed."""

        if not self.success:
            raise ConnectionFailedError(self.failure_detail or self.message)


@dataclass(frozen=True, slots=True)
class QueryHistoryEntry:
    """A statement that reached the server successfully."""

    query: str
    executed_at: datetime


__all__ = ["ConnectResult", "ConnectionProfile", "QueryHistoryEntry", "new_profile_id"]
