"""Sidebar widget listing saved profiles and the lazily loaded schema tree."""

from __future__ import annotations

from dataclasses import dataclass

from textual import on
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.widgets import Label, ListItem, ListView, Static, Tree
from textual.widgets.tree import TreeNode

from pgbrowse.errors import PgBrowseError
from pgbrowse.metadata import ColumnDescriptor, MetadataCache, RelationKind, RelationNode
from pgbrowse.profiles import ProfileStore


@dataclass(frozen=True, slots=True)
class SchemaRef:
    schema: str


@dataclass(frozen=True, slots=True)
class RelationRef:
    schema: str
    relation: str
    kind: RelationKind


NodeData = SchemaRef | RelationRef | None

_KIND_SUFFIX = {
    RelationKind.TABLE: "",
    RelationKind.VIEW: " (view)",
    RelationKind.MATERIALIZED_VIEW: " (materialized view)",
}


class NavigationSidebar(Container):
    """Displays saved profiles and the schema → relation → column tree."""

    DEFAULT_CSS = """
    NavigationSidebar {
        width: 34;
        min-width: 22;
        border-right: solid $surface-darken-1;
        padding: 1;
        height: 1fr;
        background: $surface-darken-2;
    }

    NavigationSidebar .sidebar-heading {
        text-style: bold;
        margin-bottom: 1;
    }

    #profile-list {
        height: 6;
        border: round $primary 30%;
        margin-bottom: 1;
    }

    #profile-list .active {
        text-style: bold;
    }

    #schema-tree {
        height: 1fr;
    }

    #tree-status {
        color: $text-muted;
        min-height: 1;
    }
    """

    BINDINGS = [
        Binding("f5", "refresh_schema", "Refresh schema"),
    ]

    def __init__(self, profiles: ProfileStore, metadata: MetadataCache) -> None:
        super().__init__(id="nav-sidebar")
        self._profiles = profiles
        self._metadata = metadata
        self._profile_list: ListView | None = None
        self._tree: Tree[NodeData] | None = None
        self._tree_status: Static | None = None

    def compose(self) -> ComposeResult:
        yield Static("Connections", classes="sidebar-heading")
        self._profile_list = ListView(*self._profile_items(), id="profile-list")
        yield self._profile_list
        yield Static("Schemas", classes="sidebar-heading")
        self._tree = Tree("Schemas", id="schema-tree")
        self._tree.show_root = False
        yield self._tree
        self._tree_status = Static("Not connected.", id="tree-status")
        yield self._tree_status

    async def refresh_profiles(self, active_id: str | None = None) -> None:
        """Rebuild the profile list after the store changes."""

        if not self._profile_list:
            return
        await self._profile_list.clear()
        await self._profile_list.extend(self._profile_items(active_id))

    async def reload_tree(self) -> None:
        """Clear the tree and list schemas for the current connection."""

        if not self._tree:
            return
        self._tree.root.remove_children()
        try:
            schemas = await self._metadata.list_schemas()
        except PgBrowseError as exc:
            self._set_status(str(exc))
            return
        for node in schemas:
            self._tree.root.add(node.name, data=SchemaRef(node.name), allow_expand=True)
        self._tree.root.expand()
        self._set_status(f"{len(schemas)} schema(s)")

    def clear_tree(self, message: str = "Not connected.") -> None:
        if self._tree:
            self._tree.root.remove_children()
        self._set_status(message)

    @on(Tree.NodeExpanded)
    async def _handle_node_expanded(self, event: Tree.NodeExpanded[NodeData]) -> None:
        data = event.node.data
        if isinstance(data, SchemaRef):
            await self._populate_relations(event.node, data)
        elif isinstance(data, RelationRef):
            await self._populate_columns(event.node, data)

    @on(ListView.Selected, "#profile-list")
    def _handle_profile_selected(self, event: ListView.Selected) -> None:
        item = event.item
        if isinstance(item, _ProfileListItem):
            connector = getattr(self.app, "connect_profile", None)
            if connector is not None:
                self.app.run_worker(connector(item.profile_id), exclusive=True, group="connect")
            event.stop()

    async def action_refresh_schema(self) -> None:
        if not self._tree or self._tree.cursor_node is None:
            return
        node = self._tree.cursor_node
        while node is not None and not isinstance(node.data, SchemaRef):
            node = node.parent
        if node is None or not isinstance(node.data, SchemaRef):
            return
        self._metadata.invalidate(node.data.schema)
        await self._populate_relations(node, node.data)

    async def _populate_relations(self, node: TreeNode[NodeData], ref: SchemaRef) -> None:
        node.remove_children()
        try:
            relations = await self._metadata.list_relations(ref.schema)
        except PgBrowseError as exc:
            self._set_status(str(exc))
            return
        for relation in relations:
            node.add(_relation_label(relation), data=RelationRef(relation.schema, relation.name, relation.kind))
        self._set_status(f"{ref.schema}: {len(relations)} relation(s)")

    async def _populate_columns(self, node: TreeNode[NodeData], ref: RelationRef) -> None:
        node.remove_children()
        try:
            columns = await self._metadata.list_columns(ref.schema, ref.relation)
        except PgBrowseError as exc:
            self._set_status(str(exc))
            return
        for column in columns:
            node.add_leaf(_column_label(column))

    def _profile_items(self, active_id: str | None = None) -> list[ListItem]:
        items: list[ListItem] = []
        for profile in self._profiles.list_profiles():
            item = _ProfileListItem(profile.id, profile.name)
            item.set_class(profile.id == active_id, "active")
            items.append(item)
        return items

    def _set_status(self, message: str) -> None:
        if self._tree_status:
            self._tree_status.update(message.splitlines()[0][:120] if message else "")


class _ProfileListItem(ListItem):
    def __init__(self, profile_id: str, name: str) -> None:
        super().__init__(Label(name))
        self.profile_id = profile_id


def _relation_label(relation: RelationNode) -> str:
    return f"{relation.name}{_KIND_SUFFIX[relation.kind]}"


def _column_label(column: ColumnDescriptor) -> str:
    flags: list[str] = []
    if column.is_primary_key:
        flags.append("PK")
    flags.append("NULL" if column.nullable else "NOT NULL")
    if column.default_expression:
        flags.append(f"= {column.default_expression}")
    return f"{column.name}: {column.data_type} {' '.join(flags)}"


__all__ = ["NavigationSidebar", "RelationRef", "SchemaRef"]
