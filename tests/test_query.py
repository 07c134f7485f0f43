"""Tests for the query pad orchestrator."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from pgbrowse.drivers import DriverError
from pgbrowse.errors import EmptyQueryError, NotConnectedError, QueryFailedError
from pgbrowse.models import ConnectionProfile
from pgbrowse.query import HISTORY_LIMIT, QueryOrchestrator
from pgbrowse.session import Session


class _StepClock:
    def __init__(self) -> None:
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


async def _orchestrator(driver, profile: ConnectionProfile, **kwargs) -> QueryOrchestrator:
    session = Session(driver)
    await session.connect(profile)
    return QueryOrchestrator(session, **kwargs)


@pytest.mark.anyio
@pytest.mark.parametrize("sql", ["", "   ", "\n\t"])
async def test_blank_sql_is_rejected(driver, app_profile: ConnectionProfile, sql: str) -> None:
    queries = await _orchestrator(driver, app_profile)

    with pytest.raises(EmptyQueryError, match="Provide SQL to execute."):
        await queries.run(sql)

    assert queries.history == ()
    assert driver.queries == []


@pytest.mark.anyio
async def test_run_without_connection_leaves_history_empty(driver) -> None:
    queries = QueryOrchestrator(Session(driver))

    with pytest.raises(NotConnectedError):
        await queries.run("SELECT 1")

    assert queries.history == ()


@pytest.mark.anyio
async def test_select_one_is_recorded(driver, app_profile: ConnectionProfile) -> None:
    clock = _StepClock()
    queries = await _orchestrator(driver, app_profile, clock=clock)

    result = await queries.run("SELECT 1")

    assert result.plain_rows() == [{"?column?": 1}]
    assert result.fields[0].data_type == "integer"
    assert queries.last_result is result
    assert [entry.query for entry in queries.history] == ["SELECT 1"]
    assert queries.history[0].executed_at == clock.now


@pytest.mark.anyio
async def test_history_is_bounded_and_newest_first(driver, app_profile: ConnectionProfile) -> None:
    queries = await _orchestrator(driver, app_profile, clock=_StepClock())

    for index in range(HISTORY_LIMIT + 1):
        await queries.run(f"SELECT {index}")

    history = queries.history
    assert len(history) == HISTORY_LIMIT
    assert history[0].query == f"SELECT {HISTORY_LIMIT}"
    assert history[-1].query == "SELECT 1"
    assert all(newer.executed_at > older.executed_at for newer, older in zip(history, history[1:]))


@pytest.mark.anyio
async def test_failed_statements_are_not_recorded(driver, app_profile: ConnectionProfile) -> None:
    driver.respond("missing_table", DriverError('relation "missing_table" does not exist'))
    queries = await _orchestrator(driver, app_profile)
    await queries.run("SELECT 1")
    previous = queries.last_result

    with pytest.raises(QueryFailedError):
        await queries.run("SELECT * FROM missing_table")

    assert [entry.query for entry in queries.history] == ["SELECT 1"]
    assert queries.last_result is previous


@pytest.mark.anyio
async def test_custom_history_limit_and_clear(driver, app_profile: ConnectionProfile) -> None:
    queries = await _orchestrator(driver, app_profile, history_limit=2)

    for sql in ("SELECT 1", "SELECT 2", "SELECT 3"):
        await queries.run(sql)

    assert [entry.query for entry in queries.history] == ["SELECT 3", "SELECT 2"]
    queries.clear_history()
    assert queries.history == ()
