"""
Microsoft SQL Server Connection Adapter
Catalog access through sys.* views via pyodbc
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
    odbc_value,
    register_adapter,
)


@register_adapter(EngineType.MSSQL)
class MSSQLAdapter(SQLConnectionAdapter):
    """SQL Server / Azure SQL connection adapter"""

    quote_char = "["
    system_schemas = frozenset({"sys", "information_schema"})
    driver_package = "pyodbc"
    driver_extra = "mssql"

    @property
    def default_schema(self) -> Optional[str]:
        return self.profile.schema_name or "dbo"

    def build_connection_string(self) -> str:
        encrypt = self.profile.encrypt or SSLMode(self.profile.ssl_mode) != SSLMode.DISABLE
        server = self.profile.host
        if self.profile.instance:
            # Named instances resolve their port through SQL Browser
            server = f"{server}\\{self.profile.instance}"
        elif self.profile.port:
            server = f"{server},{self.profile.port}"
        parts = [
            f"DRIVER={odbc_value(self.profile.odbc_driver)}",
            f"SERVER={server}",
            f"DATABASE={odbc_value(self.profile.database)}",
            f"Encrypt={'yes' if encrypt else 'no'}",
            f"TrustServerCertificate={'yes' if self.profile.trust_server_certificate else 'no'}",
            f"Connection Timeout={self.profile.connection_timeout}",
            "ApplicationIntent=ReadOnly",
        ]
        if self.secrets.username:
            parts.append(f"UID={odbc_value(self.secrets.username)}")
            parts.append(f"PWD={odbc_value(self.secrets.reveal('password') or '')}")
        else:
            parts.append("Trusted_Connection=yes")
        return ";".join(parts) + ";"

    def connect(self) -> None:
        """Establish SQL Server connection"""
        def load():
            import pyodbc
            return pyodbc
        pyodbc = self._require_driver(load)

        self._connection = pyodbc.connect(
            self.build_connection_string(),
            timeout=self.profile.connection_timeout,
            autocommit=True,
        )
        self._connection.timeout = self.profile.query_timeout

    def _sample_sql(self, qualified: str, limit: int) -> str:
        return f"SELECT TOP {int(limit)} * FROM {qualified}"

    def _list_tables(self) -> List[DiscoveredTable]:
        sql = """
            SELECT t.name, s.name, SUM(p.rows), CAST(MAX(ep.value) AS NVARCHAR(4000))
            FROM sys.tables t
            JOIN sys.schemas s ON s.schema_id = t.schema_id
            JOIN sys.partitions p ON p.object_id = t.object_id AND p.index_id < 2
            LEFT JOIN sys.extended_properties ep
              ON ep.major_id = t.object_id AND ep.minor_id = 0 AND ep.name = 'MS_Description'
            WHERE s.name NOT IN ('sys', 'information_schema') AND t.is_ms_shipped = 0
        """
        params = []
        if self.profile.schema_name:
            sql += " AND s.name = ?"
            params.append(self.profile.schema_name)
        sql += " GROUP BY t.name, s.name ORDER BY s.name, t.name"
        return [
            DiscoveredTable(name=name, schema_name=schema, row_count=rows, comment=comment)
            for name, schema, rows, comment in self._query(sql, params)
        ]

    def _fetch_columns(self, table_name: str, schema_name: Optional[str]) -> List[ColumnMetadata]:
        rows = self._query(
            """
            SELECT c.COLUMN_NAME, c.DATA_TYPE, c.IS_NULLABLE, c.COLUMN_DEFAULT,
                   c.CHARACTER_MAXIMUM_LENGTH, c.NUMERIC_PRECISION, c.NUMERIC_SCALE,
                   CAST(ep.value AS NVARCHAR(4000))
            FROM INFORMATION_SCHEMA.COLUMNS c
            LEFT JOIN sys.extended_properties ep
              ON ep.major_id = OBJECT_ID(QUOTENAME(c.TABLE_SCHEMA) + '.' + QUOTENAME(c.TABLE_NAME))
             AND ep.minor_id = COLUMNPROPERTY(ep.major_id, c.COLUMN_NAME, 'ColumnId')
             AND ep.name = 'MS_Description'
            WHERE c.TABLE_SCHEMA = ? AND c.TABLE_NAME = ?
            ORDER BY c.ORDINAL_POSITION
            """,
            (schema_name, table_name),
        )
        return [
            ColumnMetadata(
                name=name,
                data_type=data_type,
                nullable=is_nullable == "YES",
                default_value=default,
                max_length=max_length,
                precision=precision,
                scale=scale,
                comment=comment,
            )
            for name, data_type, is_nullable, default, max_length, precision, scale, comment in rows
        ]

    def _fetch_primary_key(self, table_name: str, schema_name: Optional[str]) -> List[str]:
        rows = self._query(
            """
            SELECT kcu.COLUMN_NAME
            FROM INFORMATION_SCHEMA.TABLE_CONSTRAINTS tc
            JOIN INFORMATION_SCHEMA.KEY_COLUMN_USAGE kcu
              ON tc.CONSTRAINT_NAME = kcu.CONSTRAINT_NAME AND tc.TABLE_SCHEMA = kcu.TABLE_SCHEMA
            WHERE tc.CONSTRAINT_TYPE = 'PRIMARY KEY' AND tc.TABLE_SCHEMA = ? AND tc.TABLE_NAME = ?
            ORDER BY kcu.ORDINAL_POSITION
            """,
            (schema_name, table_name),
        )
        return [row[0] for row in rows]

    def _fetch_foreign_keys(self, table_name: str, schema_name: Optional[str]) -> List[ForeignKeyInfo]:
        rows = self._query(
            """
            SELECT fk.name,
                   COL_NAME(fkc.parent_object_id, fkc.parent_column_id),
                   OBJECT_NAME(fkc.referenced_object_id),
                   COL_NAME(fkc.referenced_object_id, fkc.referenced_column_id)
            FROM sys.foreign_keys fk
            JOIN sys.foreign_key_columns fkc ON fkc.constraint_object_id = fk.object_id
            WHERE fk.parent_object_id = OBJECT_ID(?)
            ORDER BY fk.name, fkc.constraint_column_id
            """,
            (self.qualified_name(table_name, schema_name),),
        )
        return group_foreign_keys(rows)

    def _fetch_indexes(self, table_name: str, schema_name: Optional[str]) -> List[IndexInfo]:
        rows = self._query(
            """
            SELECT i.name, COL_NAME(ic.object_id, ic.column_id), i.is_unique, i.is_primary_key
            FROM sys.indexes i
            JOIN sys.index_columns ic ON ic.object_id = i.object_id AND ic.index_id = i.index_id
            WHERE i.object_id = OBJECT_ID(?) AND i.name IS NOT NULL
            ORDER BY i.name, ic.key_ordinal
            """,
            (self.qualified_name(table_name, schema_name),),
        )
        return group_indexes(rows)

    def _fetch_table_comment(self, table_name: str, schema_name: Optional[str]) -> Optional[str]:
        rows = self._query(
            """
            SELECT CAST(value AS NVARCHAR(4000))
            FROM sys.extended_properties
            WHERE major_id = OBJECT_ID(?) AND minor_id = 0 AND name = 'MS_Description'
            """,
            (self.qualified_name(table_name, schema_name),),
        )
        return rows[0][0] if rows else None

    def _estimate_rows(self, table_name: str, schema_name: Optional[str]) -> Optional[int]:
        # sys.partitions row counts are maintained, not sampled
        rows = self._query(
            "SELECT SUM(rows) FROM sys.partitions WHERE object_id = OBJECT_ID(?) AND index_id < 2",
            (self.qualified_name(table_name, schema_name),),
        )
        return rows[0][0] if rows else None
