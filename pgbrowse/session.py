"""Session owning the single live database connection and its state machine."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
import time
from typing import Any, Sequence

from .drivers import AsyncpgDriver, NetworkDriver
from .errors import NotConnectedError, QueryFailedError
from .models import ConnectResult, ConnectionProfile
from .normalizer import QueryResult, normalize_response
from .type_catalog import TypeCatalog

LOG = logging.getLogger(__name__)

PROBE_QUERY = "SELECT 1"


class Connectivity(str, Enum):
    """Lifecycle states of a session."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"
    FAILED = "failed"


_NEEDS_PROFILE = frozenset({Connectivity.CONNECTING, Connectivity.CONNECTED, Connectivity.DISCONNECTING})


@dataclass(frozen=True, slots=True)
class SessionState:
    """Connectivity plus the data that state is allowed to carry."""

    connectivity: Connectivity
    profile: ConnectionProfile | None = None
    reason: str | None = None

    def __post_init__(self) -> None:
        if self.connectivity in _NEEDS_PROFILE and self.profile is None:
            raise ValueError(f"{self.connectivity.value} state requires a profile")
        if self.connectivity is Connectivity.FAILED and not self.reason:
            raise ValueError("failed state requires a reason")
        if self.connectivity is Connectivity.DISCONNECTED and (self.profile or self.reason):
            raise ValueError("disconnected state carries no profile or reason")

    @classmethod
    def disconnected(cls) -> SessionState:
        return cls(Connectivity.DISCONNECTED)

    @classmethod
    def connecting(cls, profile: ConnectionProfile) -> SessionState:
        return cls(Connectivity.CONNECTING, profile)

    @classmethod
    def connected(cls, profile: ConnectionProfile) -> SessionState:
        return cls(Connectivity.CONNECTED, profile)

    @classmethod
    def disconnecting(cls, profile: ConnectionProfile) -> SessionState:
        return cls(Connectivity.DISCONNECTING, profile)

    @classmethod
    def failed(cls, reason: str, profile: ConnectionProfile | None = None) -> SessionState:
        return cls(Connectivity.FAILED, profile, reason)

    @property
    def label(self) -> str:
        """Human readable status used by the status bar."""

        if self.connectivity is Connectivity.FAILED:
            return f"Failed: {self.reason}"
        return self.connectivity.value.capitalize()


class Session:
    """Owns at most one network handle and mediates every request through it.

    The handle is created when entering ``CONNECTING`` and closed before the
    session returns to ``DISCONNECTED``. ``epoch`` increases on every
    successful connect so caches can detect a new connection without a sweep.
    Callers must not run ``connect`` concurrently with itself.
    """

    def __init__(self, driver: NetworkDriver | None = None, *, catalog: TypeCatalog | None = None) -> None:
        self._driver = driver or AsyncpgDriver()
        self._catalog = catalog or TypeCatalog.default()
        self._state = SessionState.disconnected()
        self._handle: Any = None
        self._epoch = 0

    @property
    def state(self) -> SessionState:
        """Current connectivity snapshot."""

        return self._state

    @property
    def epoch(self) -> int:
        """Counter bumped on every successful connect."""

        return self._epoch

    def is_connected(self) -> bool:
        return self._state.connectivity is Connectivity.CONNECTED

    def current_profile(self) -> ConnectionProfile | None:
        if self.is_connected():
            return self._state.profile
        return None

    async def connect(self, profile: ConnectionProfile) -> ConnectResult:
        """Tear down any existing handle, then open one for ``profile``."""

        if self._state.connectivity is Connectivity.CONNECTING:
            return ConnectResult(
                success=False,
                message="A connection attempt is already in progress.",
            )
        await self.disconnect()
        self._transition(SessionState.connecting(profile))
        try:
            handle = await self._driver.open(profile)
        except Exception as exc:
            reason = str(exc) or type(exc).__name__
            LOG.warning("Connection attempt failed", extra={"profile": profile.name, "reason": reason})
            self._transition(SessionState.failed(reason, profile))
            return ConnectResult(
                success=False,
                message=f"Failed to connect: {reason}",
                failure_detail=reason,
            )
        except BaseException:
            self._transition(SessionState.failed("Connection attempt cancelled", profile))
            raise
        self._handle = handle
        self._epoch += 1
        self._transition(SessionState.connected(profile))
        LOG.info("Connected", extra={"profile": profile.name, "epoch": self._epoch})
        return ConnectResult(success=True, message="Successfully connected to database")

    async def test_connection(self, profile: ConnectionProfile) -> ConnectResult:
        """Validate credentials with a throwaway handle; session state is untouched."""

        try:
            handle = await self._driver.open(profile)
        except Exception as exc:
            return ConnectResult(
                success=False,
                message=f"Connection test failed: {exc}",
                failure_detail=str(exc),
            )
        try:
            await self._driver.query(handle, PROBE_QUERY)
        except Exception as exc:
            return ConnectResult(
                success=False,
                message=f"Connection test failed: {exc}",
                failure_detail=str(exc),
            )
        finally:
            await self._close_quietly(handle, profile)
        return ConnectResult(success=True, message="Connection test successful")

    async def disconnect(self) -> None:
        """Close the handle if present; always ends in ``DISCONNECTED``."""

        handle, self._handle = self._handle, None
        if handle is not None:
            profile = self._state.profile
            if profile is not None and self._state.connectivity is Connectivity.CONNECTED:
                self._transition(SessionState.disconnecting(profile))
            await self._close_quietly(handle, profile)
        if self._state.connectivity is not Connectivity.DISCONNECTED:
            self._transition(SessionState.disconnected())

    async def execute_query(self, sql: str, params: Sequence[object] = ()) -> QueryResult:
        """Run ``sql`` on the active handle and normalize the response."""

        handle = self._require_handle()
        started = time.perf_counter()
        try:
            response = await self._driver.query(handle, sql, params)
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            if getattr(exc, "connection_lost", False):
                await self._mark_severed(handle, message)
            raise QueryFailedError(message) from exc
        duration_ms = int((time.perf_counter() - started) * 1000)
        return normalize_response(response, duration_ms=duration_ms, catalog=self._catalog)

    def _require_handle(self) -> Any:
        if not self.is_connected() or self._handle is None:
            raise NotConnectedError()
        return self._handle

    async def _mark_severed(self, handle: Any, reason: str) -> None:
        if handle is not self._handle:
            return
        profile = self._state.profile
        self._handle = None
        LOG.warning("Connection lost", extra={"profile": profile.name if profile else None, "reason": reason})
        await self._close_quietly(handle, profile)
        self._transition(SessionState.failed(reason, profile))

    async def _close_quietly(self, handle: Any, profile: ConnectionProfile | None) -> None:
        try:
            await self._driver.close(handle)
        except Exception:
            LOG.warning(
                "Error while closing connection",
                exc_info=True,
                extra={"profile": profile.name if profile else None},
            )

    def _transition(self, state: SessionState) -> None:
        LOG.debug(
            "Session state change",
            extra={"from_state": self._state.connectivity.value, "to_state": state.connectivity.value},
        )
        self._state = state


__all__ = [
    "Connectivity",
    "PROBE_QUERY",
    "Session",
    "SessionState",
]
