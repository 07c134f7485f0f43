"""Lazily populated schema tree backed by catalog queries on the session."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from enum import Enum
import logging
from typing import Awaitable, Callable, TypeVar

from .errors import MetadataQueryFailedError, NotConnectedError, QueryFailedError
from .normalizer import Row
from .session import Session
from .type_catalog import TypeCatalog

LOG = logging.getLogger(__name__)

T = TypeVar("T")

SYSTEM_SCHEMAS = ("information_schema", "pg_catalog", "pg_toast")

_SCHEMAS_QUERY = """
    SELECT schema_name
    FROM information_schema.schemata
    WHERE schema_name NOT IN ('information_schema', 'pg_catalog', 'pg_toast')
      AND schema_name NOT LIKE 'pg\\_temp\\_%'
      AND schema_name NOT LIKE 'pg\\_toast\\_temp\\_%'
    ORDER BY schema_name
"""

_RELATIONS_QUERY = """
    SELECT
        table_name AS name,
        CASE table_type WHEN 'VIEW' THEN 'view' ELSE 'table' END AS kind
    FROM information_schema.tables
    WHERE table_schema = $1
    ORDER BY table_name
"""

_MATVIEWS_QUERY = """
    SELECT matviewname AS name, 'materialized_view' AS kind
    FROM pg_matviews
    WHERE schemaname = $1
    ORDER BY matviewname
"""

_COLUMNS_QUERY = """
    SELECT
        c.column_name AS name,
        c.data_type AS data_type,
        (
            SELECT t.oid
            FROM pg_type t
            JOIN pg_namespace n ON n.oid = t.typnamespace
            WHERE n.nspname = c.udt_schema AND t.typname = c.udt_name
        ) AS type_oid,
        c.is_nullable = 'YES' AS nullable,
        c.column_default AS default_expression,
        EXISTS (
            SELECT 1
            FROM information_schema.table_constraints tc
            JOIN information_schema.key_column_usage kcu
              ON tc.constraint_name = kcu.constraint_name
             AND tc.table_schema = kcu.table_schema
             AND tc.table_name = kcu.table_name
            WHERE tc.constraint_type = 'PRIMARY KEY'
              AND tc.table_schema = $1
              AND tc.table_name = $2
              AND kcu.column_name = c.column_name
        ) AS is_primary_key
    FROM information_schema.columns c
    WHERE c.table_schema = $1 AND c.table_name = $2
    ORDER BY c.ordinal_position
"""


class RelationKind(str, Enum):
    """Kinds of selectable catalog objects."""

    TABLE = "table"
    VIEW = "view"
    MATERIALIZED_VIEW = "materialized_view"


class LoadState(str, Enum):
    """Load progress of a schema's relations."""

    NOT_LOADED = "not_loaded"
    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class RelationNode:
    name: str
    schema: str
    kind: RelationKind


@dataclass(frozen=True, slots=True)
class SchemaNode:
    """Schema entry in the tree; ``load_state`` tracks its relations."""

    name: str
    epoch: int
    load_state: LoadState = LoadState.NOT_LOADED
    relations: tuple[RelationNode, ...] = ()
    error: str | None = None


@dataclass(frozen=True, slots=True)
class ColumnDescriptor:
    name: str
    data_type: str
    nullable: bool
    is_primary_key: bool
    default_expression: str | None = None


@dataclass(frozen=True, slots=True)
class _SchemaListKey:
    epoch: int
    generation: int


@dataclass(frozen=True, slots=True)
class _RelationsKey:
    epoch: int
    generation: int
    schema_generation: int
    schema: str


class MetadataCache:
    """Memoizes schema and relation listings for the session's current epoch.

    Entries are tagged with the session epoch they were loaded under; a read
    after the session reconnects finds a different epoch and drops the whole
    tree. Column listings are never cached. Identical requests issued while
    one is still in flight share that request's result.

    ``invalidate()`` bumps the tree generation and ``invalidate(schema)`` only
    that schema's generation, so a load finishing after either is discarded
    without touching unrelated entries.
    """

    def __init__(self, session: Session, *, catalog: TypeCatalog | None = None) -> None:
        self._session = session
        self._catalog = catalog or TypeCatalog.default()
        self._epoch: int | None = None
        self._generation = 0
        self._schema_generations: dict[str, int] = {}
        self._schema_names: tuple[str, ...] | None = None
        self._nodes: dict[str, SchemaNode] = {}
        self._inflight: dict[object, asyncio.Future[object]] = {}

    @property
    def epoch(self) -> int | None:
        """Session epoch the cached tree belongs to."""

        return self._epoch

    @property
    def schemas_loaded(self) -> bool:
        return self._schema_names is not None and self._is_fresh()

    def schemas(self) -> tuple[SchemaNode, ...]:
        """Snapshot of the cached schema list in name order (no network)."""

        if self._schema_names is None or not self._is_fresh():
            return ()
        return tuple(self._node(name) for name in self._schema_names)

    def schema(self, name: str) -> SchemaNode | None:
        if not self._is_fresh():
            return None
        return self._nodes.get(name)

    async def list_schemas(self) -> tuple[SchemaNode, ...]:
        """Return schema nodes, querying the server once per epoch."""

        epoch = self._require_session()
        if self._schema_names is not None:
            LOG.debug("Schema list cache hit", extra={"epoch": epoch})
            return self.schemas()
        key = _SchemaListKey(epoch, self._generation)
        return await self._single_flight(key, lambda: self._load_schemas(key))

    async def list_relations(self, schema: str) -> tuple[RelationNode, ...]:
        """Return tables, views and materialized views in ``schema`` ordered by name."""

        epoch = self._require_session()
        node = self._nodes.get(schema)
        if node is not None and node.load_state is LoadState.LOADED:
            LOG.debug("Relation cache hit", extra={"schema": schema, "epoch": epoch})
            return node.relations
        key = _RelationsKey(epoch, self._generation, self._schema_generations.get(schema, 0), schema)
        return await self._single_flight(key, lambda: self._load_relations(key))

    async def list_columns(self, schema: str, relation: str) -> tuple[ColumnDescriptor, ...]:
        """Fetch column descriptors for a relation; always hits the server."""

        self._require_session()
        try:
            result = await self._session.execute_query(_COLUMNS_QUERY, (schema, relation))
        except QueryFailedError as exc:
            raise MetadataQueryFailedError(f"Failed to load columns for {schema}.{relation}: {exc}") from exc
        return tuple(self._column_from_row(row) for row in result.rows)

    def invalidate(self, schema: str | None = None) -> None:
        """Forget one schema's relations, or the whole tree when ``schema`` is omitted."""

        if schema is None:
            LOG.debug("Invalidating metadata tree")
            self._generation += 1
            self._nodes.clear()
            self._schema_names = None
            return
        self._schema_generations[schema] = self._schema_generations.get(schema, 0) + 1
        node = self._nodes.get(schema)
        if node is not None:
            LOG.debug("Invalidating schema", extra={"schema": schema})
            self._nodes[schema] = replace(node, load_state=LoadState.NOT_LOADED, relations=(), error=None)

    async def _load_schemas(self, key: _SchemaListKey) -> tuple[SchemaNode, ...]:
        try:
            result = await self._session.execute_query(_SCHEMAS_QUERY)
        except QueryFailedError as exc:
            raise MetadataQueryFailedError(f"Failed to load schemas: {exc}") from exc
        names = tuple(sorted({str(row["schema_name"].value) for row in result.rows}))
        if not self._is_current(key.epoch, key.generation):
            return tuple(SchemaNode(name=name, epoch=key.epoch) for name in names)
        for name in names:
            self._nodes.setdefault(name, SchemaNode(name=name, epoch=key.epoch))
        self._schema_names = names
        return self.schemas()

    async def _load_relations(self, key: _RelationsKey) -> tuple[RelationNode, ...]:
        schema = key.schema
        self._store(key, LoadState.LOADING)
        try:
            tables = await self._session.execute_query(_RELATIONS_QUERY, (schema,))
            matviews = await self._session.execute_query(_MATVIEWS_QUERY, (schema,))
        except QueryFailedError as exc:
            message = f"Failed to load relations for schema '{schema}': {exc}"
            self._store(key, LoadState.ERROR, error=message)
            raise MetadataQueryFailedError(message) from exc
        except BaseException:
            self._store(key, LoadState.NOT_LOADED)
            raise
        merged = [self._relation_from_row(schema, row) for row in (*tables.rows, *matviews.rows)]
        relations = tuple(sorted(merged, key=lambda relation: relation.name))
        if not self._store(key, LoadState.LOADED, relations=relations):
            LOG.debug("Dropping relations loaded for a stale key", extra={"schema": schema})
        return relations

    def _store(
        self,
        key: _RelationsKey,
        state: LoadState,
        *,
        relations: tuple[RelationNode, ...] = (),
        error: str | None = None,
    ) -> bool:
        if not self._is_current(key.epoch, key.generation, key.schema, key.schema_generation):
            return False
        node = self._node(key.schema)
        self._nodes[key.schema] = replace(node, load_state=state, relations=relations, error=error)
        return True

    def _node(self, name: str) -> SchemaNode:
        return self._nodes.get(name) or SchemaNode(name=name, epoch=self._epoch or 0)

    def _relation_from_row(self, schema: str, row: Row) -> RelationNode:
        return RelationNode(
            name=str(row["name"].value),
            schema=schema,
            kind=RelationKind(str(row["kind"].value)),
        )

    def _column_from_row(self, row: Row) -> ColumnDescriptor:
        type_oid = row["type_oid"].value
        fallback = row["data_type"].value
        data_type = self._catalog.get(type_oid if isinstance(type_oid, int) else None)
        if not data_type:
            data_type = str(fallback) if fallback is not None else self._catalog.resolve(type_oid)  # type: ignore[arg-type]
        default = row["default_expression"].value
        return ColumnDescriptor(
            name=str(row["name"].value),
            data_type=data_type,
            nullable=bool(row["nullable"].value),
            is_primary_key=bool(row["is_primary_key"].value),
            default_expression=str(default) if default is not None else None,
        )

    def _require_session(self) -> int:
        if not self._session.is_connected():
            self._discard()
            raise NotConnectedError()
        epoch = self._session.epoch
        if self._epoch != epoch:
            if self._epoch is not None:
                LOG.debug("Discarding metadata from a previous connection", extra={"epoch": self._epoch})
            self._discard()
            self._epoch = epoch
        return epoch

    def _is_fresh(self) -> bool:
        return self._session.is_connected() and self._epoch == self._session.epoch

    def _is_current(
        self,
        epoch: int,
        generation: int,
        schema: str | None = None,
        schema_generation: int = 0,
    ) -> bool:
        if not (self._is_fresh() and self._epoch == epoch and self._generation == generation):
            return False
        return schema is None or self._schema_generations.get(schema, 0) == schema_generation

    def _discard(self) -> None:
        self._nodes.clear()
        self._schema_names = None
        self._epoch = None

    async def _single_flight(self, key: object, factory: Callable[[], Awaitable[T]]) -> T:
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._inflight[key] = task
            task.add_done_callback(lambda done, k=key: self._forget(k, done))
        else:
            LOG.debug("Joining in-flight metadata request", extra={"key": repr(key)})
        return await asyncio.shield(task)  # type: ignore[return-value]

    def _forget(self, key: object, task: asyncio.Future[object]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # Every waiter may have been cancelled; mark the failure as retrieved.
        if not task.cancelled():
            task.exception()


__all__ = [
    "ColumnDescriptor",
    "LoadState",
    "MetadataCache",
    "RelationKind",
    "RelationNode",
    "SYSTEM_SCHEMAS",
    "SchemaNode",
]
