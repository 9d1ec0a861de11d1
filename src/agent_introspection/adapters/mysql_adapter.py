"""
MySQL Connection Adapter
Catalog access through INFORMATION_SCHEMA via mysql-connector-python
"""
from __future__ import annotations

from typing import List, Optional

from ..config import EngineType, SSLMode
from .base import (
    ColumnMetadata,
    DiscoveredTable,
    ForeignKeyInfo,
    IndexInfo,
    SQLConnectionAdapter,
    group_foreign_keys,
    group_indexes,
    register_adapter,
)


@register_adapter(EngineType.MYSQL)
class MySQLAdapter(SQLConnectionAdapter):
    """MySQL / MariaDB connection adapter"""

    quote_char = "`"
    system_schemas = frozenset({"mysql", "information_schema", "performance_schema", "sys"})
    driver_package = "mysql-connector-python"
    driver_extra = "mysql"

    @property
    def default_schema(self) -> Optional[str]:
        return self.profile.schema_name or self.profile.database

    def connect(self) -> None:
        """Establish MySQL connection"""
        def load():
            import mysql.connector
            return mysql.connector
        connector = self._require_driver(load)

        config = {
            "host": self.profile.host,
            "port": self.profile.effective_port,
            "database": self.profile.database or None,
            "user": self.secrets.username,
            "password": self.secrets.reveal("password"),
            "connection_timeout": self.profile.connection_timeout,
            "autocommit": True,
        }
        ssl_mode = SSLMode(self.profile.ssl_mode)
        if ssl_mode == SSLMode.DISABLE:
            config["ssl_disabled"] = True
        else:
            if self.profile.ssl_ca_path:
                config["ssl_ca"] = self.profile.ssl_ca_path
            config["ssl_verify_cert"] = ssl_mode in (SSLMode.VERIFY_CA, SSLMode.VERIFY_FULL)
            config["ssl_verify_identity"] = ssl_mode == SSLMode.VERIFY_FULL

        self._connection = connector.connect(**config)

    def _list_tables(self) -> List[DiscoveredTable]:
        rows = self._query(
            """
            SELECT TABLE_NAME, TABLE_SCHEMA, TABLE_ROWS, TABLE_COMMENT
            FROM information_schema.TABLES
            WHERE TABLE_SCHEMA = %s AND TABLE_TYPE = 'BASE TABLE'
            ORDER BY TABLE_NAME
            """,
            (self.default_schema,),
        )
        return [
            DiscoveredTable(name=name, schema_name=schema, row_count=estimate, comment=comment or None)
            for name, schema, estimate, comment in rows
        ]

    def _fetch_columns(self, table_name: str, schema_name: Optional[str]) -> List[ColumnMetadata]:
        rows = self._query(
            """
            SELECT COLUMN_NAME, COLUMN_TYPE, IS_NULLABLE, COLUMN_DEFAULT, COLUMN_KEY,
                   COLUMN_COMMENT, CHARACTER_MAXIMUM_LENGTH, NUMERIC_PRECISION, NUMERIC_SCALE
            FROM information_schema.COLUMNS
            WHERE TABLE_SCHEMA = %s AND TABLE_NAME = %s
            ORDER BY ORDINAL_POSITION
            """,
            (schema_name, table_name),
        )
        return [
            ColumnMetadata(
                name=name,
                data_type=data_type,
                nullable=is_nullable == "YES",
                default_value=default,
                is_primary_key=column_key == "PRI",
                comment=comment or None,
                max_length=max_length,
                precision=precision,
                scale=scale,
            )
            for name, data_type, is_nullable, default, column_key, comment, max_length, precision, scale in rows
        ]

    def _fetch_primary_key(self, table_name: str, schema_name: Optional[str]) -> List[str]:
        rows = self._query(
            """
            SELECT COLUMN_NAME
            FROM information_schema.KEY_COLUMN_USAGE
            WHERE TABLE_SCHEMA = %s AND TABLE_NAME = %s AND CONSTRAINT_NAME = 'PRIMARY'
            ORDER BY ORDINAL_POSITION
            """,
            (schema_name, table_name),
        )
        return [row[0] for row in rows]

    def _fetch_foreign_keys(self, table_name: str, schema_name: Optional[str]) -> List[ForeignKeyInfo]:
        rows = self._query(
            """
            SELECT CONSTRAINT_NAME, COLUMN_NAME, REFERENCED_TABLE_NAME, REFERENCED_COLUMN_NAME
            FROM information_schema.KEY_COLUMN_USAGE
            WHERE TABLE_SCHEMA = %s AND TABLE_NAME = %s AND REFERENCED_TABLE_NAME IS NOT NULL
            ORDER BY CONSTRAINT_NAME, ORDINAL_POSITION
            """,
            (schema_name, table_name),
        )
        return group_foreign_keys(rows)

    def _fetch_indexes(self, table_name: str, schema_name: Optional[str]) -> List[IndexInfo]:
        rows = self._query(
            """
            SELECT INDEX_NAME, COLUMN_NAME, NON_UNIQUE = 0, INDEX_NAME = 'PRIMARY'
            FROM information_schema.STATISTICS
            WHERE TABLE_SCHEMA = %s AND TABLE_NAME = %s
            ORDER BY INDEX_NAME, SEQ_IN_INDEX
            """,
            (schema_name, table_name),
        )
        return group_indexes(rows)

    def _fetch_table_comment(self, table_name: str, schema_name: Optional[str]) -> Optional[str]:
        rows = self._query(
            "SELECT TABLE_COMMENT FROM information_schema.TABLES WHERE TABLE_SCHEMA = %s AND TABLE_NAME = %s",
            (schema_name, table_name),
        )
        return (rows[0][0] or None) if rows else None
