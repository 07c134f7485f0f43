"""Paging and search over a normalized result set."""

from __future__ import annotations

import math

from .normalizer import QueryResult, Row, ValueKind

DEFAULT_PAGE_SIZE = 100


class ResultView:
    """Filtered, paginated window over a ``QueryResult``.

    Pages are 1-based. Searching or changing the page size returns to the
    first page, and out-of-range page requests are ignored.
    """

    def __init__(self, result: QueryResult, *, page_size: int = DEFAULT_PAGE_SIZE) -> None:
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self._result = result
        self._page_size = page_size
        self._term = ""
        self._rows: tuple[Row, ...] = result.rows
        self._page = 1

    @property
    def result(self) -> QueryResult:
        return self._result

    @property
    def term(self) -> str:
        return self._term

    @property
    def page(self) -> int:
        return self._page

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def total_rows(self) -> int:
        """Rows matching the active search."""

        return len(self._rows)

    @property
    def page_count(self) -> int:
        return max(1, math.ceil(len(self._rows) / self._page_size))

    def search(self, term: str) -> None:
        self._term = term
        self._page = 1
        needle = term.lower()
        if not needle:
            self._rows = self._result.rows
            return
        self._rows = tuple(row for row in self._result.rows if _row_matches(row, needle))

    def go_to(self, page: int) -> bool:
        """Move to ``page``; returns False when it is out of range."""

        if page < 1 or page > self.page_count:
            return False
        self._page = page
        return True

    def next_page(self) -> bool:
        return self.go_to(self._page + 1)

    def previous_page(self) -> bool:
        return self.go_to(self._page - 1)

    def set_page_size(self, page_size: int) -> None:
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self._page_size = page_size
        self._page = 1

    def page_rows(self) -> tuple[Row, ...]:
        start = (self._page - 1) * self._page_size
        return self._rows[start : start + self._page_size]

    def summary(self) -> str:
        total = len(self._rows)
        if self._term:
            return f"Found {total} matching row(s) of {len(self._result.rows)}"
        if total == 0:
            return "No rows"
        start = (self._page - 1) * self._page_size + 1
        end = min(self._page * self._page_size, total)
        return f"Showing {start}-{end} of {total}"


def _row_matches(row: Row, needle: str) -> bool:
    for cell in row.values():
        if cell.kind is ValueKind.NULL:
            continue
        if needle in cell.display().lower():
            return True
    return False


__all__ = ["DEFAULT_PAGE_SIZE", "ResultView"]
