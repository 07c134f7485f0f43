"""Tests for the asyncpg network driver."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import asyncpg
import pytest

from pgbrowse.drivers import AsyncpgDriver, DriverError, parse_command_tag
from pgbrowse.models import ConnectionProfile


class _FakeStatement:
    def __init__(self, attributes, records, status: str) -> None:
        self._attributes = attributes
        self._records = records
        self._status = status
        self.params: tuple[object, ...] | None = None

    async def fetch(self, *params: object):
        self.params = params
        if isinstance(self._records, Exception):
            raise self._records
        return self._records

    def get_attributes(self):
        return self._attributes

    def get_statusmsg(self) -> str:
        return self._status


class _FakeConnection:
    def __init__(self, statement: _FakeStatement | None = None, *, prepare_error: Exception | None = None) -> None:
        self.statement = statement
        self.prepare_error = prepare_error
        self.executed: list[str] = []
        self.closed = False

    async def prepare(self, sql: str) -> _FakeStatement:
        if self.prepare_error is not None:
            raise self.prepare_error
        assert self.statement is not None
        return self.statement

    async def execute(self, sql: str) -> str:
        self.executed.append(sql)
        return "CREATE TABLE"

    async def close(self) -> None:
        self.closed = True

    def is_closed(self) -> bool:
        return self.closed


def _attribute(name: str, oid: int) -> SimpleNamespace:
    return SimpleNamespace(name=name, type=SimpleNamespace(oid=oid))


@pytest.mark.anyio
async def test_query_returns_rows_and_fields() -> None:
    statement = _FakeStatement(
        [_attribute("id", 23), _attribute("email", 25)],
        [(1, "alice@example.com"), (2, "bob@example.com")],
        "SELECT 2",
    )
    driver = AsyncpgDriver()

    response = await driver.query(_FakeConnection(statement), "SELECT * FROM users WHERE id > $1", (0,))

    assert [(field.name, field.type_id) for field in response.fields] == [("id", 23), ("email", 25)]
    assert response.rows == ((1, "alice@example.com"), (2, "bob@example.com"))
    assert response.row_count == 2
    assert response.command_tag == "SELECT"
    assert statement.params == (0,)


@pytest.mark.anyio
async def test_query_reports_affected_rows_for_writes() -> None:
    statement = _FakeStatement([], [], "INSERT 0 3")
    driver = AsyncpgDriver()

    response = await driver.query(_FakeConnection(statement), "INSERT INTO demo VALUES (1), (2), (3)")

    assert response.fields == ()
    assert response.rows == ()
    assert response.row_count == 3
    assert response.command_tag == "INSERT"


@pytest.mark.anyio
async def test_multi_statement_scripts_fall_back_to_execute() -> None:
    error = asyncpg.exceptions.PostgresSyntaxError("cannot insert multiple commands into a prepared statement")
    connection = _FakeConnection(prepare_error=error)
    driver = AsyncpgDriver()

    response = await driver.query(connection, "CREATE TABLE a (id int); CREATE TABLE b (id int)")

    assert connection.executed
    assert response.command_tag == "CREATE"
    assert response.row_count == 0


@pytest.mark.anyio
async def test_query_errors_keep_connection_alive() -> None:
    statement = _FakeStatement([_attribute("x", 23)], RuntimeError('relation "nope" does not exist'), "")
    driver = AsyncpgDriver()

    with pytest.raises(DriverError) as info:
        await driver.query(_FakeConnection(statement), "SELECT * FROM nope")

    assert info.value.connection_lost is False
    assert "nope" in str(info.value)


@pytest.mark.anyio
async def test_transport_errors_flag_lost_connection() -> None:
    statement = _FakeStatement([_attribute("x", 23)], ConnectionResetError("reset by peer"), "")
    driver = AsyncpgDriver()

    with pytest.raises(DriverError) as info:
        await driver.query(_FakeConnection(statement), "SELECT 1")

    assert info.value.connection_lost is True


@pytest.mark.anyio
async def test_open_passes_profile_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, Any] = {}
    connection = _FakeConnection()

    async def _connect(**kwargs: Any) -> _FakeConnection:
        captured.update(kwargs)
        return connection

    monkeypatch.setattr("pgbrowse.drivers.asyncpg.connect", _connect)
    driver = AsyncpgDriver(connect_timeout=2.5)
    profile = ConnectionProfile(
        name="App",
        host="db.internal",
        port=6543,
        database="app",
        username="app",
        password="secret",
        use_tls=True,
    )

    handle = await driver.open(profile)
    await driver.close(handle)

    assert handle is connection
    assert connection.closed is True
    assert captured == {
        "host": "db.internal",
        "port": 6543,
        "user": "app",
        "database": "app",
        "ssl": "require",
        "password": "secret",
        "timeout": 2.5,
    }


@pytest.mark.anyio
async def test_open_wraps_connection_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    async def _broken_connect(**kwargs: Any) -> None:
        raise OSError("connection refused")

    monkeypatch.setattr("pgbrowse.drivers.asyncpg.connect", _broken_connect)
    driver = AsyncpgDriver()

    with pytest.raises(DriverError) as info:
        await driver.open(ConnectionProfile(name="Broken"))

    assert "connection refused" in str(info.value)
    assert "Broken" in str(info.value)


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        ("SELECT 1", ("SELECT", 1)),
        ("INSERT 0 5", ("INSERT", 5)),
        ("UPDATE 2", ("UPDATE", 2)),
        ("CREATE TABLE", ("CREATE", None)),
        ("", ("", None)),
    ],
)
def test_parse_command_tag(status: str, expected: tuple[str, int | None]) -> None:
    assert parse_command_tag(status) == expected
