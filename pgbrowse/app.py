"""Textual application entry point for pgbrowse."""

from __future__ import annotations

import logging

from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal
from textual.logging import TextualHandler
from textual.widgets import Footer, Header

from .config import AppConfig, load_config
from .drivers import AsyncpgDriver, NetworkDriver
from .metadata import MetadataCache
from .models import ConnectResult
from .profiles import ProfileStore
from .providers import ProfileConnectProvider, QueryHistoryProvider, SessionActionsProvider
from .query import QueryOrchestrator
from .session import Connectivity, Session
from .widgets import NavigationSidebar, QueryPad, StatusBar

LOG = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _load_app_config() -> AppConfig:
    """Load configuration with a small wrapper for future overrides."""

    return load_config()


def configure_logging(config: AppConfig) -> None:
    """Route log records to the configured file, or Textual's devtools console."""

    handler: logging.Handler
    if config.log_file:
        handler = logging.FileHandler(config.log_file, encoding="utf-8")
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
    else:
        handler = TextualHandler()
    logging.basicConfig(level=config.resolved_log_level(), handlers=[handler], force=True)


class PgBrowseApp(App[None]):
    """Schema browser and query pad for a single PostgreSQL session."""

    COMMANDS = App.COMMANDS | {ProfileConnectProvider, SessionActionsProvider, QueryHistoryProvider}
    CSS = """
    Screen {
        layout: vertical;
    }
    #content {
        layout: horizontal;
        height: 1fr;
    }
    #main-column {
        layout: vertical;
        padding: 1 2;
        height: 1fr;
        border-left: solid $surface-darken-1;
    }
    """

    BINDINGS = [
        ("ctrl+c", "quit", "Quit"),
        ("ctrl+r", "refresh", "Refresh Metadata"),
        ("ctrl+d", "disconnect", "Disconnect"),
        ("ctrl+p", "command_palette", "Command Palette"),
    ]

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        driver: NetworkDriver | None = None,
        profile_store: ProfileStore | None = None,
        autoconnect: bool = True,
    ) -> None:
        super().__init__()
        self._config = config if config is not None else _load_app_config()
        self._profile_store = profile_store or ProfileStore(self._config)
        self._session = Session(driver or AsyncpgDriver(connect_timeout=self._config.connect_timeout))
        self._metadata = MetadataCache(self._session)
        self._queries = QueryOrchestrator(self._session)
        self._autoconnect = autoconnect
        self._sidebar: NavigationSidebar | None = None
        self._query_pad: QueryPad | None = None
        self._status_bar: StatusBar | None = None

    def compose(self) -> ComposeResult:
        """Compose the root layout."""

        yield Header(show_clock=True)
        self._sidebar = NavigationSidebar(self._profile_store, self._metadata)
        self._query_pad = QueryPad(self._queries, page_size=self._config.page_size)
        yield Horizontal(self._sidebar, Container(self._query_pad, id="main-column"), id="content")
        self._status_bar = StatusBar(self._session, self._metadata, self._queries)
        yield self._status_bar
        yield Footer()

    async def on_mount(self) -> None:
        if not self._autoconnect:
            return
        profile = self._profile_store.last_used()
        if profile is not None:
            self.run_worker(self.connect_profile(profile.id), exclusive=True, group="connect")

    @property
    def session(self) -> Session:
        return self._session

    @property
    def metadata(self) -> MetadataCache:
        return self._metadata

    @property
    def queries(self) -> QueryOrchestrator:
        return self._queries

    @property
    def profile_store(self) -> ProfileStore:
        return self._profile_store

    async def connect_profile(self, profile_id: str) -> ConnectResult | None:
        """Connect the session to a saved profile and reload the tree."""

        profile = self._profile_store.get(profile_id)
        if profile is None:
            self.notify(f"Profile '{profile_id}' not found.", severity="error")
            return None
        if self._session.state.connectivity is Connectivity.CONNECTING:
            self.notify("A connection attempt is already in progress.", severity="warning")
            return None
        result = await self._session.connect(profile)
        if result.success:
            self._profile_store.mark_used(profile.id)
            self.notify(f"Connected to {profile.name}", severity="information")
            if self._sidebar:
                await self._sidebar.refresh_profiles(profile.id)
                await self._sidebar.reload_tree()
        else:
            self.notify(result.message, severity="error")
            if self._sidebar:
                self._sidebar.clear_tree(result.message)
        self._refresh_status()
        return result

    async def action_refresh(self) -> None:
        if not self._session.is_connected():
            self.notify("Connect to a profile first.", severity="warning")
            return
        self._metadata.invalidate()
        if self._sidebar:
            await self._sidebar.reload_tree()
        self._refresh_status()

    async def action_disconnect(self) -> None:
        await self._session.disconnect()
        if self._sidebar:
            self._sidebar.clear_tree()
            await self._sidebar.refresh_profiles()
        self._refresh_status()
        self.notify("Disconnected.", severity="information")

    async def action_test_connection(self) -> None:
        profile = self._profile_store.last_used()
        if profile is None:
            profiles = self._profile_store.list_profiles()
            profile = profiles[0] if profiles else None
        if profile is None:
            self.notify("No saved profiles to test.", severity="warning")
            return
        result = await self._session.test_connection(profile)
        self.notify(f"{profile.name}: {result.message}", severity="information" if result.success else "error")

    async def action_quit(self) -> None:
        await self._session.disconnect()
        self.exit()

    def recall_query(self, query: str) -> None:
        if self._query_pad:
            self._query_pad.load_history_entry(query)

    def on_query_pad_query_completed(self, message: QueryPad.QueryCompleted) -> None:
        state = self._session.state
        if state.connectivity is Connectivity.FAILED and self._sidebar:
            self._sidebar.clear_tree(state.label)
        self._refresh_status()

    def _refresh_status(self) -> None:
        if self._status_bar and self._status_bar.is_mounted:
            self._status_bar.refresh_status()


def main() -> None:
    """Invoke the Textual application."""

    config = _load_app_config()
    configure_logging(config)
    LOG.info("Starting pgbrowse", extra={"profiles": len(config.profiles)})
    PgBrowseApp(config).run()


if __name__ == "__main__":
    main()
