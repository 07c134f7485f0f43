"""Shared fixtures and in-memory drivers for the test suite."""

from __future__ import annotations

import asyncio
from typing import Sequence

import pytest

from pgbrowse.drivers import DriverError, DriverResponse, FieldInfo
from pgbrowse.models import ConnectionProfile


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


def make_response(
    fields: Sequence[tuple[str, int | None]],
    rows: Sequence[tuple[object, ...]] = (),
    *,
    command: str = "SELECT",
    row_count: int | None = None,
) -> DriverResponse:
    return DriverResponse(
        rows=tuple(tuple(row) for row in rows),
        fields=tuple(FieldInfo(name=name, type_id=type_id) for name, type_id in fields),
        row_count=len(rows) if row_count is None else row_count,
        command_tag=command,
    )


class FakeHandle:
    def __init__(self, profile: ConnectionProfile) -> None:
        self.profile = profile
        self.closed = False


class FakeDriver:
    """Driver double answering statements by SQL fragment and counting handles."""

    def __init__(self) -> None:
        self.responses: list[tuple[str, DriverResponse | Exception]] = []
        self.queries: list[tuple[str, tuple[object, ...]]] = []
        self.opened: list[FakeHandle] = []
        self.closed: list[FakeHandle] = []
        self.open_error: Exception | None = None
        self.close_error: Exception | None = None
        self.open_gate: asyncio.Event | None = None
        self.query_gates: dict[str, asyncio.Event] = {}

    def respond(self, fragment: str, response: DriverResponse | Exception) -> None:
        self.responses.insert(0, (fragment, response))

    def gate(self, fragment: str) -> asyncio.Event:
        """Hold statements containing ``fragment`` until the returned event is set."""

        event = asyncio.Event()
        self.query_gates[fragment] = event
        return event

    def forget(self, fragment: str) -> None:
        self.responses = [entry for entry in self.responses if entry[0] != fragment]

    def count(self, fragment: str) -> int:
        return sum(1 for sql, _ in self.queries if fragment in sql)

    async def open(self, profile: ConnectionProfile) -> FakeHandle:
        if self.open_gate is not None:
            await self.open_gate.wait()
        if self.open_error is not None:
            raise self.open_error
        handle = FakeHandle(profile)
        self.opened.append(handle)
        return handle

    async def close(self, handle: FakeHandle) -> None:
        handle.closed = True
        self.closed.append(handle)
        if self.close_error is not None:
            raise self.close_error

    async def query(self, handle: FakeHandle, sql: str, params: Sequence[object] = ()) -> DriverResponse:
        if handle.closed:
            raise DriverError("connection is closed", connection_lost=True)
        self.queries.append((sql, tuple(params)))
        for fragment, event in self.query_gates.items():
            if fragment in sql:
                await event.wait()
        for fragment, response in self.responses:
            if fragment in sql:
                if isinstance(response, Exception):
                    raise response
                return response
        return make_response([("?column?", 23)], [(1,)])


COLUMN_FIELDS = (
    ("name", 19),
    ("data_type", 25),
    ("type_oid", 26),
    ("nullable", 16),
    ("default_expression", 25),
    ("is_primary_key", 16),
)


def catalog_driver() -> FakeDriver:
    """Driver preloaded with a small ``public.users`` catalog."""

    driver = FakeDriver()
    driver.respond("information_schema.schemata", make_response([("schema_name", 19)], [("public",)]))
    driver.respond(
        "information_schema.tables",
        make_response([("name", 19), ("kind", 25)], [("users", "table")]),
    )
    driver.respond("pg_matviews", make_response([("name", 19), ("kind", 25)], []))
    driver.respond(
        "information_schema.columns",
        make_response(
            COLUMN_FIELDS,
            [
                ("id", "integer", 23, False, "nextval('users_id_seq'::regclass)", True),
                ("email", "text", 25, False, None, False),
                ("created_at", "timestamp with time zone", 1184, True, "now()", False),
            ],
        ),
    )
    return driver


@pytest.fixture
def driver() -> FakeDriver:
    return FakeDriver()


@pytest.fixture
def catalog() -> FakeDriver:
    return catalog_driver()


@pytest.fixture
def response():
    """Factory building ``DriverResponse`` values."""

    return make_response


@pytest.fixture
def app_profile() -> ConnectionProfile:
    return ConnectionProfile(
        id="app",
        name="App",
        host="localhost",
        port=5432,
        database="app",
        username="app",
        password="x",
    )
