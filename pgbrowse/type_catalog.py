"""Static catalog translating PostgreSQL type OIDs into readable names."""

from __future__ import annotations

from typing import Mapping


class TypeCatalog:
    """In-memory lookup table for built-in type identifiers."""

    def __init__(self, entries: Mapping[int, str]) -> None:
        self._entries = dict(entries)

    @classmethod
    def default(cls) -> "TypeCatalog":
        return cls(_BUILTIN_TYPES)

    def get(self, type_id: int | None) -> str | None:
        """Return the known name for ``type_id`` or ``None``."""

        if type_id is None:
            return None
        return self._entries.get(type_id)

    def resolve(self, type_id: int | None) -> str:
        """Return a display name for any identifier; never raises."""

        name = self.get(type_id)
        if name:
            return name
        return f"unknown({type_id})"

    def __contains__(self, type_id: object) -> bool:
        return type_id in self._entries


_BUILTIN_TYPES: Mapping[int, str] = {
    16: "boolean",
    17: "bytea",
    18: "char",
    19: "name",
    20: "bigint",
    21: "smallint",
    23: "integer",
    25: "text",
    26: "oid",
    114: "json",
    142: "xml",
    650: "cidr",
    700: "real",
    701: "double precision",
    790: "money",
    829: "macaddr",
    869: "inet",
    1000: "boolean[]",
    1005: "smallint[]",
    1007: "integer[]",
    1009: "text[]",
    1015: "varchar[]",
    1016: "bigint[]",
    1042: "char",
    1043: "varchar",
    1082: "date",
    1083: "time",
    1114: "timestamp",
    1184: "timestamptz",
    1186: "interval",
    1266: "timetz",
    1560: "bit",
    1562: "varbit",
    1700: "numeric",
    2249: "record",
    2278: "void",
    2950: "uuid",
    2951: "uuid[]",
    3802: "jsonb",
    3807: "jsonb[]",
}

JSON_TYPE_IDS = frozenset({114, 3802})


__all__ = ["JSON_TYPE_IDS", "TypeCatalog"]
