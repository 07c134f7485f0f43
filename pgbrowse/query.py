"""Query orchestration for the query pad: validation, execution, history."""

from __future__ import annotations

from collections import deque
from datetime import datetime, timezone
import logging
from typing import Callable

from .errors import EmptyQueryError, NotConnectedError
from .models import QueryHistoryEntry
from .normalizer import QueryResult
from .session import Session

LOG = logging.getLogger(__name__)

HISTORY_LIMIT = 50

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class QueryOrchestrator:
    """Runs ad-hoc SQL through the session and keeps a bounded history."""

    def __init__(
        self,
        session: Session,
        *,
        history_limit: int = HISTORY_LIMIT,
        clock: Clock | None = None,
    ) -> None:
        self._session = session
        self._history: deque[QueryHistoryEntry] = deque(maxlen=history_limit)
        self._clock = clock or _utcnow
        self._last_result: QueryResult | None = None

    @property
    def history(self) -> tuple[QueryHistoryEntry, ...]:
        """Executed statements, most recent first."""

        return tuple(self._history)

    @property
    def last_result(self) -> QueryResult | None:
        return self._last_result

    async def run(self, sql: str) -> QueryResult:
        """Execute ``sql``; only statements that succeed are recorded."""

        if not sql.strip():
            raise EmptyQueryError()
        if not self._session.is_connected():
            raise NotConnectedError()
        result = await self._session.execute_query(sql)
        self._history.appendleft(QueryHistoryEntry(query=sql, executed_at=self._clock()))
        self._last_result = result
        LOG.debug(
            "Query executed",
            extra={"command": result.command, "row_count": result.row_count, "duration_ms": result.duration_ms},
        )
        return result

    def clear_history(self) -> None:
        self._history.clear()


__all__ = ["HISTORY_LIMIT", "QueryOrchestrator"]
