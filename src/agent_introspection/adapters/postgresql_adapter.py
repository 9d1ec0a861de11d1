"""
PostgreSQL Connection Adapter
Catalog access through pg_catalog and information_schema via psycopg2
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

_LIST_TABLES_SQL = """
    SELECT c.relname,
           n.nspname,
           c.reltuples::bigint,
           obj_description(c.oid, 'pg_class')
    FROM pg_class c
    JOIN pg_namespace n ON n.oid = c.relnamespace
    WHERE c.relkind IN ('r', 'p')
      AND n.nspname NOT IN ('information_schema', 'pg_catalog', 'pg_toast')
      AND n.nspname !~ '^pg_(temp|toast_temp)_'
"""

_COLUMNS_SQL = """
    SELECT a.attname,
           format_type(a.atttypid, a.atttypmod),
           NOT a.attnotnull,
           pg_get_expr(d.adbin, d.adrelid),
           col_description(c.oid, a.attnum),
           information_schema._pg_char_max_length(a.atttypid, a.atttypmod),
           information_schema._pg_numeric_precision(a.atttypid, a.atttypmod),
           information_schema._pg_numeric_scale(a.atttypid, a.atttypmod)
    FROM pg_attribute a
    JOIN pg_class c ON c.oid = a.attrelid
    JOIN pg_namespace n ON n.oid = c.relnamespace
    LEFT JOIN pg_attrdef d ON d.adrelid = a.attrelid AND d.adnum = a.attnum
    WHERE c.relname = %s AND n.nspname = %s
      AND a.attnum > 0 AND NOT a.attisdropped
    ORDER BY a.attnum
"""

_PRIMARY_KEY_SQL = """
    SELECT a.attname
    FROM pg_index i
    JOIN pg_class c ON c.oid = i.indrelid
    JOIN pg_namespace n ON n.oid = c.relnamespace
    JOIN pg_attribute a ON a.attrelid = i.indrelid AND a.attnum = ANY(i.indkey)
    WHERE c.relname = %s AND n.nspname = %s AND i.indisprimary
    ORDER BY array_position(i.indkey::int2[], a.attnum)
"""

_FOREIGN_KEYS_SQL = """
    SELECT tc.constraint_name, kcu.column_name, ccu.table_name, ccu.column_name
    FROM information_schema.table_constraints tc
    JOIN information_schema.key_column_usage kcu
      ON tc.constraint_name = kcu.constraint_name AND tc.table_schema = kcu.table_schema
    JOIN information_schema.constraint_column_usage ccu
      ON ccu.constraint_name = tc.constraint_name AND ccu.constraint_schema = tc.constraint_schema
    WHERE tc.constraint_type = 'FOREIGN KEY'
      AND tc.table_name = %s AND tc.table_schema = %s
    ORDER BY tc.constraint_name, kcu.ordinal_position
"""

# Key columns only: INCLUDE columns sit past indnkeyatts, expressions have attnum 0
_INDEXES_SQL = """
    SELECT ic.relname, a.attname, i.indisunique, i.indisprimary
    FROM pg_index i
    JOIN pg_class c ON c.oid = i.indrelid
    JOIN pg_namespace n ON n.oid = c.relnamespace
    JOIN pg_class ic ON ic.oid = i.indexrelid
    CROSS JOIN LATERAL unnest(i.indkey::int2[]) WITH ORDINALITY AS k(attnum, position)
    LEFT JOIN pg_attribute a ON a.attrelid = i.indrelid AND a.attnum = k.attnum AND k.attnum > 0
    WHERE c.relname = %s AND n.nspname = %s AND k.position <= i.indnkeyatts
    ORDER BY ic.relname, k.position
"""

_ESTIMATE_SQL = """
    SELECT c.reltuples::bigint
    FROM pg_class c JOIN pg_namespace n ON n.oid = c.relnamespace
    WHERE c.relname = %s AND n.nspname = %s
"""

_TABLE_COMMENT_SQL = """
    SELECT obj_description(c.oid, 'pg_class')
    FROM pg_class c JOIN pg_namespace n ON n.oid = c.relnamespace
    WHERE c.relname = %s AND n.nspname = %s
"""


@register_adapter(EngineType.POSTGRESQL)
class PostgreSQLAdapter(SQLConnectionAdapter):
    """PostgreSQL connection adapter"""

    system_schemas = frozenset({"information_schema", "pg_catalog", "pg_toast"})
    driver_package = "psycopg2-binary"
    driver_extra = "postgresql"

    @property
    def default_schema(self) -> Optional[str]:
        return self.profile.schema_name or "public"

    def connect(self) -> None:
        """Establish PostgreSQL connection"""
        def load():
            import psycopg2
            return psycopg2
        psycopg2 = self._require_driver(load)

        params = {
            "host": self.profile.host,
            "port": self.profile.effective_port,
            "dbname": self.profile.database,
            "user": self.secrets.username,
            "password": self.secrets.reveal("password"),
            "connect_timeout": self.profile.connection_timeout,
            "sslmode": SSLMode(self.profile.ssl_mode).value,
            "application_name": "data-agent-introspection",
            "options": f"-c statement_timeout={self.profile.query_timeout * 1000}",
        }
        if self.profile.ssl_ca_path:
            params["sslrootcert"] = self.profile.ssl_ca_path

        self._connection = psycopg2.connect(**params)
        self._connection.set_session(readonly=True, autocommit=True)

    def _cancel(self) -> None:
        self._connection.cancel()

    def _list_tables(self) -> List[DiscoveredTable]:
        sql = _LIST_TABLES_SQL
        params = []
        if self.profile.schema_name:
            sql += " AND n.nspname = %s"
            params.append(self.profile.schema_name)
        sql += " ORDER BY n.nspname, c.relname"

        # reltuples is -1 for tables never analyzed
        return [
            DiscoveredTable(name=name, schema_name=schema, row_count=estimate, comment=comment)
            for name, schema, estimate, comment in self._query(sql, params)
        ]

    def _fetch_columns(self, table_name: str, schema_name: Optional[str]) -> List[ColumnMetadata]:
        rows = self._query(_COLUMNS_SQL, (table_name, schema_name))
        return [
            ColumnMetadata(
                name=name,
                data_type=data_type,
                nullable=bool(nullable),
                default_value=default,
                comment=comment,
                max_length=max_length,
                precision=precision,
                scale=scale,
            )
            for name, data_type, nullable, default, comment, max_length, precision, scale in rows
        ]

    def _fetch_primary_key(self, table_name: str, schema_name: Optional[str]) -> List[str]:
        return [row[0] for row in self._query(_PRIMARY_KEY_SQL, (table_name, schema_name))]

    def _fetch_foreign_keys(self, table_name: str, schema_name: Optional[str]) -> List[ForeignKeyInfo]:
        return group_foreign_keys(self._query(_FOREIGN_KEYS_SQL, (table_name, schema_name)))

    def _fetch_indexes(self, table_name: str, schema_name: Optional[str]) -> List[IndexInfo]:
        return group_indexes(self._query(_INDEXES_SQL, (table_name, schema_name)))

    def _fetch_table_comment(self, table_name: str, schema_name: Optional[str]) -> Optional[str]:
        rows = self._query(_TABLE_COMMENT_SQL, (table_name, schema_name))
        return rows[0][0] if rows else None

    def _estimate_rows(self, table_name: str, schema_name: Optional[str]) -> Optional[int]:
        rows = self._query(_ESTIMATE_SQL, (table_name, schema_name))
        return rows[0][0] if rows else None
