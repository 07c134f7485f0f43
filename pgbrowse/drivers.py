"""Network drivers that open handles and run statements for the session."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Protocol, Sequence, runtime_checkable

import asyncpg

from .models import ConnectionProfile

LOG = logging.getLogger(__name__)


class DriverError(RuntimeError):
    """Raised when the driver cannot open a handle or run a statement."""

    def __init__(self, message: str, *, connection_lost: bool = False) -> None:
        super().__init__(message)
        self.connection_lost = connection_lost


@dataclass(frozen=True, slots=True)
class FieldInfo:
    """Column descriptor as reported by the driver."""

    name: str
    type_id: int | None


@dataclass(frozen=True, slots=True)
class DriverResponse:
    """Raw statement output before normalization."""

    rows: tuple[tuple[object, ...], ...]
    fields: tuple[FieldInfo, ...]
    row_count: int
    command_tag: str


@runtime_checkable
class NetworkDriver(Protocol):
    """Capability the session uses to reach the database server."""

    async def open(self, profile: ConnectionProfile) -> Any:
        """Open a handle for the profile or raise ``DriverError``."""

    async def close(self, handle: Any) -> None:
        """Close a handle previously returned by ``open``."""

    async def query(self, handle: Any, sql: str, params: Sequence[object] = ()) -> DriverResponse:
        """Run a statement on the handle or raise ``DriverError``."""


_CONNECTION_LOST_ERRORS: tuple[type[BaseException], ...] = (
    asyncpg.exceptions.ConnectionDoesNotExistError,
    asyncpg.exceptions.PostgresConnectionError,
    asyncpg.exceptions.AdminShutdownError,
    OSError,
)


class AsyncpgDriver:
    """Driver that talks to PostgreSQL via asyncpg."""

    def __init__(self, *, connect_timeout: float = 5.0) -> None:
        self._connect_timeout = connect_timeout

    async def open(self, profile: ConnectionProfile) -> asyncpg.Connection:
        try:
            return await asyncpg.connect(**self._connect_kwargs(profile))
        except Exception as exc:
            raise DriverError(f"Failed to connect to '{profile.name}': {exc}") from exc

    async def close(self, handle: asyncpg.Connection) -> None:
        await handle.close()

    async def query(
        self,
        handle: asyncpg.Connection,
        sql: str,
        params: Sequence[object] = (),
    ) -> DriverResponse:
        try:
            statement = await handle.prepare(sql)
        except asyncpg.exceptions.PostgresSyntaxError as exc:
            if params or "multiple commands" not in str(exc):
                raise DriverError(str(exc), connection_lost=_connection_lost(handle, exc)) from exc
            return await self._execute_script(handle, sql)
        except Exception as exc:
            raise DriverError(str(exc), connection_lost=_connection_lost(handle, exc)) from exc
        try:
            records = await statement.fetch(*params)
        except Exception as exc:
            raise DriverError(str(exc), connection_lost=_connection_lost(handle, exc)) from exc
        fields = tuple(
            FieldInfo(name=attribute.name, type_id=getattr(attribute.type, "oid", None))
            for attribute in statement.get_attributes()
        )
        rows = tuple(tuple(record) for record in records)
        command, affected = parse_command_tag(statement.get_statusmsg() or "")
        row_count = len(rows) if fields else (affected or 0)
        return DriverResponse(rows=rows, fields=fields, row_count=row_count, command_tag=command)

    async def _execute_script(self, handle: asyncpg.Connection, sql: str) -> DriverResponse:
        # Multi-statement text runs over the simple protocol and yields no rows.
        LOG.debug("Running multi-statement script without row output")
        try:
            status = await handle.execute(sql)
        except Exception as exc:
            raise DriverError(str(exc), connection_lost=_connection_lost(handle, exc)) from exc
        command, affected = parse_command_tag(status or "")
        return DriverResponse(rows=(), fields=(), row_count=affected or 0, command_tag=command)

    def _connect_kwargs(self, profile: ConnectionProfile) -> dict[str, object]:
        kwargs: dict[str, object] = {
            "host": profile.host or "localhost",
            "port": profile.port,
            "user": profile.username,
            "database": profile.database,
            "ssl": "require" if profile.use_tls else False,
        }
        if profile.password:
            kwargs["password"] = profile.password
        kwargs.setdefault("timeout", self._connect_timeout)
        return kwargs


def parse_command_tag(status: str) -> tuple[str, int | None]:
    """Split a status message such as ``INSERT 0 3`` into (command, count)."""

    parts = status.split()
    if not parts:
        return "", None
    command = parts[0].upper()
    count: int | None = None
    if len(parts) > 1 and parts[-1].isdigit():
        count = int(parts[-1])
    return command, count


def _connection_lost(handle: object, exc: BaseException) -> bool:
    if isinstance(exc, _CONNECTION_LOST_ERRORS):
        return True
    is_closed = getattr(handle, "is_closed", None)
    if callable(is_closed):
        return bool(is_closed())
    return False


__all__ = [
    "AsyncpgDriver",
    "DriverError",
    "DriverResponse",
    "FieldInfo",
    "NetworkDriver",
    "parse_command_tag",
]
