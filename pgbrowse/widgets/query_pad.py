"""Query pad: SQL input, run action, and a paginated, searchable result grid."""

from __future__ import annotations

from textual import on
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal
from textual.message import Message
from textual.timer import Timer
from textual.widgets import Button, DataTable, Input, Static

from pgbrowse.errors import PgBrowseError
from pgbrowse.normalizer import QueryResult
from pgbrowse.query import QueryOrchestrator
from pgbrowse.results import DEFAULT_PAGE_SIZE, ResultView

MAX_COLUMNS = 200
SEARCH_DELAY = 0.2


class QueryPad(Container):
    """Editor surface that runs statements through the query orchestrator."""

    DEFAULT_CSS = """
    QueryPad {
        layout: vertical;
        border: round $primary 40%;
        padding: 1 2;
        height: 1fr;
        background: $surface;
    }

    QueryPad .panel-title {
        text-style: bold;
    }

    QueryPad Input {
        border: heavy $primary;
    }

    QueryPad:focus-within {
        border: round $primary;
        background: $surface-lighten-1;
    }

    QueryPad .query-actions, QueryPad .result-pager {
        margin-top: 1;
        height: auto;
        align-horizontal: left;
    }

    QueryPad .query-actions > *, QueryPad .result-pager > * {
        margin-right: 1;
    }

    QueryPad #result-search {
        width: 40;
    }

    QueryPad #query-results {
        height: 1fr;
        margin-top: 1;
        border-top: solid $surface-darken-2;
    }
    """

    BINDINGS = Container.BINDINGS + [
        Binding("ctrl+enter", "run_query", "Run query", show=False, priority=True),
        Binding("pagedown", "next_page", "Next page", show=False),
        Binding("pageup", "previous_page", "Previous page", show=False),
    ]

    class QueryCompleted(Message):
        """Posted after a statement finishes, successfully or not."""

    def __init__(self, queries: QueryOrchestrator, *, page_size: int = DEFAULT_PAGE_SIZE) -> None:
        super().__init__(id="query-pad")
        self._queries = queries
        self._page_size = page_size
        self._search_timer: Timer | None = None
        self._view: ResultView | None = None
        self._input: Input | None = None
        self._status_panel: Static | None = None
        self._pager_label: Static | None = None
        self._result_table: DataTable | None = None

    @property
    def view(self) -> ResultView | None:
        """Current result view (testing helper)."""

        return self._view

    def compose(self) -> ComposeResult:
        yield Static("Query Pad", classes="panel-title")
        yield Input(
            placeholder="Type SQL, e.g. SELECT * FROM accounts WHERE id = 1; Enter runs it",
            id="query-input",
        )
        yield Horizontal(
            Button("Run query", id="run-query", variant="primary"),
            Static("", id="query-status"),
            classes="query-actions",
        )
        yield Horizontal(
            Input(placeholder="Search results…", id="result-search"),
            Button("◀", id="page-prev"),
            Static("", id="page-label"),
            Button("▶", id="page-next"),
            classes="result-pager",
        )
        yield DataTable(id="query-results", zebra_stripes=True)

    async def on_mount(self) -> None:
        self._input = self.query_one("#query-input", Input)
        self._status_panel = self.query_one("#query-status", Static)
        self._pager_label = self.query_one("#page-label", Static)
        self._result_table = self.query_one("#query-results", DataTable)
        self._result_table.cursor_type = "row"
        last = self._queries.last_result
        if last is not None:
            self.show_result(last)

    def on_unmount(self) -> None:
        if self._search_timer is not None:
            self._search_timer.stop()

    async def action_run_query(self) -> None:
        await self._execute_current_query()

    def action_next_page(self) -> None:
        if self._view and self._view.next_page():
            self._render_page()

    def action_previous_page(self) -> None:
        if self._view and self._view.previous_page():
            self._render_page()

    @on(Input.Submitted, "#query-input")
    async def _handle_query_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        await self._execute_current_query()

    @on(Button.Pressed, "#run-query")
    async def _handle_run_pressed(self) -> None:
        await self._execute_current_query()

    @on(Button.Pressed, "#page-prev")
    def _handle_prev_pressed(self) -> None:
        self.action_previous_page()

    @on(Button.Pressed, "#page-next")
    def _handle_next_pressed(self) -> None:
        self.action_next_page()

    @on(Input.Changed, "#result-search")
    def _handle_search_changed(self, event: Input.Changed) -> None:
        if self._search_timer is not None:
            self._search_timer.stop()
        term = event.value
        self._search_timer = self.set_timer(SEARCH_DELAY, lambda: self._apply_search(term))

    def load_history_entry(self, query: str) -> None:
        if self._input:
            self._input.value = query

    def show_result(self, result: QueryResult) -> None:
        self._view = ResultView(result, page_size=self._page_size)
        self._render_table_columns(result)
        self._render_page()

    async def _execute_current_query(self) -> None:
        if not self._input:
            return
        sql = self._input.value
        self._set_status("Executing…", severity="information")
        try:
            result = await self._queries.run(sql)
        except PgBrowseError as exc:
            self._set_status(f"Error: {exc}", severity="error")
            self.post_message(self.QueryCompleted())
            return
        self.show_result(result)
        self._set_status(f"{result.status} · {result.duration_ms} ms", severity="success")
        self.post_message(self.QueryCompleted())

    def _apply_search(self, term: str) -> None:
        if not self._view:
            return
        self._view.search(term)
        self._render_page()

    def _render_table_columns(self, result: QueryResult) -> None:
        if not self._result_table:
            return
        self._result_table.clear(columns=True)
        columns = result.columns[:MAX_COLUMNS]
        if columns:
            self._result_table.add_columns(*columns)

    def _render_page(self) -> None:
        if not self._result_table or not self._view:
            return
        self._result_table.clear()
        columns = self._view.result.columns[:MAX_COLUMNS]
        for row in self._view.page_rows():
            self._result_table.add_row(*(row[name].display() if name in row else "" for name in columns))
        if self._pager_label:
            self._pager_label.update(
                f"Page {self._view.page} of {self._view.page_count} · {self._view.summary()}"
            )

    def _set_status(self, message: str, *, severity: str) -> None:
        if not self._status_panel:
            return
        prefix = {
            "information": "ℹ",
            "warning": "⚠",
            "error": "✖",
            "success": "✔",
        }.get(severity, "•")
        self._status_panel.update(f"{prefix} {message.splitlines()[0] if message else ''}")


__all__ = ["QueryPad"]
