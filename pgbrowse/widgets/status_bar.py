"""Status bar widget that mirrors session information."""

from __future__ import annotations

from textual.widgets import Static

from pgbrowse.metadata import MetadataCache
from pgbrowse.query import QueryOrchestrator
from pgbrowse.session import Connectivity, Session


class StatusBar(Static):
    """Compact status strip rendered above Textual's footer."""

    DEFAULT_CSS = """
    StatusBar {
        height: 1;
        padding: 0 1;
        background: $surface-darken-3;
        color: $text;
    }
    """

    def __init__(self, session: Session, metadata: MetadataCache, queries: QueryOrchestrator) -> None:
        super().__init__("", id="status-bar")
        self._session = session
        self._metadata = metadata
        self._queries = queries

    def on_mount(self) -> None:
        self.refresh_status()

    def refresh_status(self) -> None:
        """Re-read session state; callers invoke this after each operation."""

        self.update(self.render_status())

    def render_status(self) -> str:
        state = self._session.state
        parts: list[str] = []
        if state.profile is not None:
            parts.append(f"Profile: {state.profile.name} ({state.profile.label})")
        else:
            parts.append("Profile: —")
        parts.append(f"Status: {state.label.splitlines()[0][:80]}")
        if state.connectivity is Connectivity.CONNECTED:
            schemas = len(self._metadata.schemas())
            parts.append(f"Schemas: {schemas if self._metadata.schemas_loaded else '…'}")
        last = self._queries.last_result
        if last is not None:
            parts.append(f"Last: {last.status} in {last.duration_ms} ms")
        parts.append(f"History: {len(self._queries.history)}")
        return " | ".join(parts)


__all__ = ["StatusBar"]
