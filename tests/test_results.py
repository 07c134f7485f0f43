"""Tests for searching and paging result sets."""

from __future__ import annotations

import pytest

from pgbrowse.normalizer import normalize_response
from pgbrowse.results import ResultView

from conftest import make_response


def _result(count: int):
    rows = [(index, f"user{index}@example.com", None if index % 2 else "active") for index in range(1, count + 1)]
    response = make_response([("id", 23), ("email", 25), ("status", 25)], rows)
    return normalize_response(response, duration_ms=0)


def test_first_page_and_summary() -> None:
    view = ResultView(_result(250))

    assert view.page == 1
    assert view.page_count == 3
    assert len(view.page_rows()) == 100
    assert view.summary() == "Showing 1-100 of 250"


def test_paging_stays_in_range() -> None:
    view = ResultView(_result(250))

    assert view.previous_page() is False
    assert view.next_page() is True
    assert view.next_page() is True
    assert view.next_page() is False
    assert view.page == 3
    assert len(view.page_rows()) == 50
    assert view.summary() == "Showing 201-250 of 250"
    assert view.go_to(0) is False
    assert view.go_to(1) is True


def test_search_is_case_insensitive_and_resets_page() -> None:
    view = ResultView(_result(250))
    view.go_to(2)

    view.search("USER12")

    assert view.page == 1
    assert [row["id"].value for row in view.page_rows()] == [12, 120, 121, 122, 123, 124, 125, 126, 127, 128, 129]
    assert view.summary() == "Found 11 matching row(s) of 250"


def test_search_ignores_null_cells() -> None:
    view = ResultView(_result(4))

    view.search("null")

    assert view.total_rows == 0
    assert view.page_count == 1

    view.search("active")
    assert [row["id"].value for row in view.page_rows()] == [2, 4]


def test_clearing_search_restores_rows() -> None:
    view = ResultView(_result(10))
    view.search("user3")

    view.search("")

    assert view.total_rows == 10
    assert view.summary() == "Showing 1-10 of 10"


def test_empty_result_summary() -> None:
    view = ResultView(_result(0))

    assert view.summary() == "No rows"
    assert view.page_rows() == ()
    assert view.page_count == 1


def test_page_size_changes_reset_page() -> None:
    view = ResultView(_result(30), page_size=10)
    view.go_to(3)

    view.set_page_size(25)

    assert view.page == 1
    assert view.page_count == 2
    with pytest.raises(ValueError):
        view.set_page_size(0)
    with pytest.raises(ValueError):
        ResultView(_result(1), page_size=0)
