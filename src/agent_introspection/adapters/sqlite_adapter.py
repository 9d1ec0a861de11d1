"""
SQLite Connection Adapter
Catalog access through sqlite_master and PRAGMA statements
"""
from __future__ import annotations

import os
import sqlite3
from typing import List, Optional

from ..config import EngineType
from ..utils import ConfigurationError
from .base import (
    ColumnMetadata,
    DiscoveredTable,
    ForeignKeyInfo,
    IndexInfo,
    SQLConnectionAdapter,
    group_foreign_keys,
    register_adapter,
)


@register_adapter(EngineType.SQLITE)
class SQLiteAdapter(SQLConnectionAdapter):
    """SQLite adapter; opens database files read-only"""

    @property
    def database_path(self) -> str:
        path = self.profile.sqlite_path or self.profile.database
        if not path:
            raise ConfigurationError("SQLite requires sqlite_path or database", config_key="sqlite_path")
        return path

    @property
    def default_schema(self) -> Optional[str]:
        return self.profile.schema_name or "main"

    def describe_target(self) -> str:
        return f"database file '{self.database_path}'"

    def connect(self) -> None:
        """Open the database file in read-only mode"""
        path = self.database_path
        if path != ":memory:" and not os.path.exists(path):
            raise FileNotFoundError(f"unable to open database file: {path}")
        uri = "file::memory:" if path == ":memory:" else f"file:{path}?mode=ro"
        self._connection = sqlite3.connect(
            uri,
            uri=True,
            timeout=self.profile.connection_timeout,
            check_same_thread=False,
        )

    def _cancel(self) -> None:
        self._connection.interrupt()

    def _pragma(self, pragma: str, table_name: str, schema_name: Optional[str]):
        schema = self.quote_identifier(schema_name or "main")
        return self._query(f"PRAGMA {schema}.{pragma}({self.quote_identifier(table_name)})")

    def _list_tables(self) -> List[DiscoveredTable]:
        schema = self.default_schema
        rows = self._query(
            f"SELECT name FROM {self.quote_identifier(schema)}.sqlite_master "
            "WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
        )
        # SQLite keeps no row estimates in its catalog
        return [
            DiscoveredTable(name=row[0], schema_name=schema, row_count=None)
            for row in rows
        ]

    def _fetch_columns(self, table_name: str, schema_name: Optional[str]) -> List[ColumnMetadata]:
        rows = self._pragma("table_info", table_name, schema_name)
        return [
            ColumnMetadata(
                name=name,
                data_type=data_type or "ANY",
                nullable=not notnull and not pk,
                default_value=default,
                is_primary_key=bool(pk),
            )
            for _cid, name, data_type, notnull, default, pk in rows
        ]

    def _fetch_primary_key(self, table_name: str, schema_name: Optional[str]) -> List[str]:
        rows = self._pragma("table_info", table_name, schema_name)
        keyed = sorted((pk, name) for _cid, name, _t, _nn, _d, pk in rows if pk)
        return [name for _pk, name in keyed]

    def _fetch_foreign_keys(self, table_name: str, schema_name: Optional[str]) -> List[ForeignKeyInfo]:
        rows = self._pragma("foreign_key_list", table_name, schema_name)
        # (id, seq, table, from, to, on_update, on_delete, match)
        return group_foreign_keys([
            (f"fk_{table_name}_{row[0]}", row[3], row[2], row[4]) for row in rows
        ])

    def _fetch_indexes(self, table_name: str, schema_name: Optional[str]) -> List[IndexInfo]:
        indexes = []
        for _seq, name, unique, origin, _partial in self._pragma("index_list", table_name, schema_name):
            info = self._query(
                f"PRAGMA {self.quote_identifier(schema_name or 'main')}.index_info({self.quote_identifier(name)})"
            )
            indexes.append(IndexInfo(
                name=name,
                columns=[row[2] for row in info if row[2]],
                is_unique=bool(unique),
                is_primary=origin == "pk",
            ))
        return indexes
