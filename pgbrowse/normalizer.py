"""Normalize driver output into the result shape rendered by the UI."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
import json
from typing import Mapping

from .drivers import DriverResponse, FieldInfo
from .type_catalog import JSON_TYPE_IDS, TypeCatalog


class ValueKind(str, Enum):
    """Tag carried by every result cell."""

    NULL = "null"
    BOOL = "bool"
    NUMBER = "number"
    TEXT = "text"
    DATE = "date"
    JSON = "json"
    BINARY = "binary"


@dataclass(frozen=True, slots=True)
class Cell:
    """Single tagged value from a result row."""

    kind: ValueKind
    value: object = None

    def display(self) -> str:
        """Render the value as grid/search text."""

        if self.kind is ValueKind.NULL:
            return "NULL"
        if self.kind is ValueKind.BOOL:
            return "true" if self.value else "false"
        if self.kind is ValueKind.JSON:
            return json.dumps(self.value, default=str)
        if self.kind is ValueKind.BINARY:
            payload = bytes(self.value)  # type: ignore[arg-type]
            return "\\x" + payload.hex()
        if self.kind is ValueKind.DATE and hasattr(self.value, "isoformat"):
            return self.value.isoformat()  # type: ignore[union-attr]
        return str(self.value)


NULL_CELL = Cell(ValueKind.NULL)

Row = Mapping[str, Cell]


@dataclass(frozen=True, slots=True)
class FieldDescriptor:
    """Result column with its resolved type name."""

    name: str
    type_id: int | None
    data_type: str


@dataclass(frozen=True, slots=True)
class QueryResult:
    """Normalized query output returned to the UI."""

    rows: tuple[Row, ...]
    fields: tuple[FieldDescriptor, ...]
    row_count: int
    command: str
    duration_ms: int

    @property
    def returns_rows(self) -> bool:
        return bool(self.fields)

    @property
    def columns(self) -> tuple[str, ...]:
        return tuple(field.name for field in self.fields)

    def plain_rows(self) -> list[dict[str, object]]:
        """Rows as plain ``{column: value}`` dicts."""

        return [{name: cell.value for name, cell in row.items()} for row in self.rows]

    @property
    def status(self) -> str:
        if self.returns_rows:
            return f"{self.row_count} row(s)"
        return f"{self.command or 'OK'} {self.row_count}".strip()


def normalize_response(
    response: DriverResponse,
    *,
    duration_ms: int,
    catalog: TypeCatalog | None = None,
) -> QueryResult:
    """Convert a ``DriverResponse`` into a ``QueryResult``."""

    types = catalog or TypeCatalog.default()
    fields = tuple(_describe(field, types) for field in response.fields)
    rows = tuple(_build_row(values, fields) for values in response.rows)
    row_count = len(rows) if fields else response.row_count
    return QueryResult(
        rows=rows,
        fields=fields,
        row_count=row_count,
        command=response.command_tag,
        duration_ms=duration_ms,
    )


def to_cell(value: object, type_id: int | None = None) -> Cell:
    """Tag a driver value; unknown objects fall back to text."""

    if value is None:
        return NULL_CELL
    if isinstance(value, bool):
        return Cell(ValueKind.BOOL, value)
    if isinstance(value, (int, float, Decimal)):
        return Cell(ValueKind.NUMBER, value)
    if isinstance(value, (datetime, date, time, timedelta)):
        return Cell(ValueKind.DATE, value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return Cell(ValueKind.BINARY, bytes(value))
    if isinstance(value, (dict, list)):
        return Cell(ValueKind.JSON, value)
    if isinstance(value, str):
        if type_id in JSON_TYPE_IDS:
            try:
                return Cell(ValueKind.JSON, json.loads(value))
            except ValueError:
                return Cell(ValueKind.TEXT, value)
        return Cell(ValueKind.TEXT, value)
    return Cell(ValueKind.TEXT, str(value))


def _describe(field: FieldInfo, catalog: TypeCatalog) -> FieldDescriptor:
    return FieldDescriptor(name=field.name, type_id=field.type_id, data_type=catalog.resolve(field.type_id))


def _build_row(values: tuple[object, ...], fields: tuple[FieldDescriptor, ...]) -> Row:
    # Duplicate column names collapse onto the last value, in column order.
    row: dict[str, Cell] = {}
    for field, value in zip(fields, values):
        row[field.name] = to_cell(value, field.type_id)
    return row


__all__ = [
    "Cell",
    "FieldDescriptor",
    "NULL_CELL",
    "QueryResult",
    "Row",
    "ValueKind",
    "normalize_response",
    "to_cell",
]
