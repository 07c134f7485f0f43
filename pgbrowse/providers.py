"""Command palette providers for core app features."""

from __future__ import annotations

from typing import TYPE_CHECKING

from textual.command import DiscoveryHit, Hit, Hits, Provider
from textual.types import IgnoreReturnCallbackType

if TYPE_CHECKING:
    from .app import PgBrowseApp


class _AppProvider(Provider):
    @property
    def _browser(self) -> PgBrowseApp | None:
        from .app import PgBrowseApp

        app = self.app
        if isinstance(app, PgBrowseApp):
            return app
        return None


class ProfileConnectProvider(_AppProvider):
    """Expose saved connection profiles to the command palette."""

    async def search(self, query: str) -> Hits:
        app = self._browser
        if app is None:
            return
        matcher = self.matcher(query)
        for profile in app.profile_store.list_profiles():
            match = matcher.match(f"Connect to {profile.name}")
            if match > 0:
                yield Hit(
                    score=match,
                    match_display=f"Connect to {matcher.highlight(profile.name)}",
                    command=self._build_callback(profile.id),
                    help=profile.label,
                )

    async def discover(self) -> Hits:
        app = self._browser
        if app is None:
            return
        for profile in app.profile_store.list_profiles():
            yield DiscoveryHit(
                display=f"Connect to {profile.name}",
                command=self._build_callback(profile.id),
                help=profile.label,
            )

    def _build_callback(self, profile_id: str) -> IgnoreReturnCallbackType:
        async def _run() -> None:
            app = self._browser
            if app is None:
                return
            await app.connect_profile(profile_id)

        return _run


class SessionActionsProvider(_AppProvider):
    """Expose refresh, disconnect and connection-test actions."""

    _ACTIONS = (
        ("Refresh schema tree", "refresh", "Drop cached metadata and reload schemas."),
        ("Disconnect", "disconnect", "Close the active connection."),
        ("Test last used profile", "test_connection", "Open a throwaway connection and run SELECT 1."),
    )

    async def search(self, query: str) -> Hits:
        if self._browser is None:
            return
        matcher = self.matcher(query)
        for label, action, help_text in self._ACTIONS:
            score = matcher.match(label)
            if score > 0:
                yield Hit(
                    score=score,
                    match_display=matcher.highlight(label),
                    command=self._build_callback(action),
                    help=help_text,
                )

    async def discover(self) -> Hits:
        if self._browser is None:
            return
        for label, action, help_text in self._ACTIONS:
            yield DiscoveryHit(display=label, command=self._build_callback(action), help=help_text)

    def _build_callback(self, action: str) -> IgnoreReturnCallbackType:
        async def _run() -> None:
            app = self._browser
            if app is None:
                return
            await app.run_action(action)

        return _run


class QueryHistoryProvider(_AppProvider):
    """Recall previously executed statements into the query pad."""

    async def search(self, query: str) -> Hits:
        app = self._browser
        if app is None:
            return
        matcher = self.matcher(query)
        for entry in app.queries.history:
            text = " ".join(entry.query.split())
            score = matcher.match(text)
            if score > 0:
                yield Hit(
                    score=score,
                    match_display=matcher.highlight(text[:80]),
                    command=self._build_callback(entry.query),
                    help=entry.executed_at.astimezone().strftime("Executed %H:%M:%S"),
                )

    def _build_callback(self, query: str) -> IgnoreReturnCallbackType:
        async def _run() -> None:
            app = self._browser
            if app is None:
                return
            app.recall_query(query)

        return _run


__all__ = ["ProfileConnectProvider", "QueryHistoryProvider", "SessionActionsProvider"]
