"""
Oracle Connection Adapter
Catalog access through ALL_* dictionary views via python-oracledb
"""
from __future__ import annotations

from typing import List, Optional

from ..config import EngineType
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


@register_adapter(EngineType.ORACLE)
class OracleAdapter(SQLConnectionAdapter):
    """Oracle connection adapter (thin mode, no client libraries needed)"""

    system_schemas = frozenset({
        "SYS", "SYSTEM", "OUTLN", "DBSNMP", "XDB", "MDSYS", "CTXSYS",
        "ORDSYS", "WMSYS", "APPQOSSYS", "GSMADMIN_INTERNAL", "AUDSYS", "LBACSYS",
    })
    driver_package = "oracledb"
    driver_extra = "oracle"
    ping_sql = "SELECT 1 FROM DUAL"

    @property
    def default_schema(self) -> Optional[str]:
        if self.profile.schema_name:
            return self.profile.schema_name.upper()
        return self.secrets.username.upper() if self.secrets.username else None

    def connect(self) -> None:
        """Establish Oracle connection"""
        def load():
            import oracledb
            return oracledb
        oracledb = self._require_driver(load)

        service = self.profile.service_name or self.profile.database
        dsn = f"{self.profile.host}:{self.profile.effective_port}/{service}"
        self._connection = oracledb.connect(
            user=self.secrets.username,
            password=self.secrets.reveal("password"),
            dsn=dsn,
            tcp_connect_timeout=float(self.profile.connection_timeout),
        )
        self._connection.call_timeout = self.profile.query_timeout * 1000

    def _cancel(self) -> None:
        # Interrupts the round trip in progress on this connection
        self._connection.cancel()

    def _sample_sql(self, qualified: str, limit: int) -> str:
        return f"SELECT * FROM {qualified} FETCH FIRST {int(limit)} ROWS ONLY"

    def _list_tables(self) -> List[DiscoveredTable]:
        rows = self._query(
            """
            SELECT t.TABLE_NAME, t.OWNER, t.NUM_ROWS, c.COMMENTS
            FROM ALL_TABLES t
            LEFT JOIN ALL_TAB_COMMENTS c ON c.OWNER = t.OWNER AND c.TABLE_NAME = t.TABLE_NAME
            WHERE t.OWNER = :1 AND t.NESTED = 'NO' AND t.SECONDARY = 'N'
            ORDER BY t.TABLE_NAME
            """,
            (self.default_schema,),
        )
        # NUM_ROWS is NULL until statistics are gathered
        return [
            DiscoveredTable(name=name, schema_name=owner, row_count=num_rows, comment=comment)
            for name, owner, num_rows, comment in rows
        ]

    def _fetch_columns(self, table_name: str, schema_name: Optional[str]) -> List[ColumnMetadata]:
        rows = self._query(
            """
            SELECT c.COLUMN_NAME, c.DATA_TYPE, c.NULLABLE, c.DATA_DEFAULT,
                   c.CHAR_LENGTH, c.DATA_PRECISION, c.DATA_SCALE, cc.COMMENTS
            FROM ALL_TAB_COLUMNS c
            LEFT JOIN ALL_COL_COMMENTS cc
              ON cc.OWNER = c.OWNER AND cc.TABLE_NAME = c.TABLE_NAME AND cc.COLUMN_NAME = c.COLUMN_NAME
            WHERE c.OWNER = :1 AND c.TABLE_NAME = :2
            ORDER BY c.COLUMN_ID
            """,
            (schema_name, table_name),
        )
        return [
            ColumnMetadata(
                name=name,
                data_type=data_type,
                nullable=nullable == "Y",
                default_value=str(default).strip() if default is not None else None,
                max_length=char_length or None,
                precision=precision,
                scale=scale,
                comment=comment,
            )
            for name, data_type, nullable, default, char_length, precision, scale, comment in rows
        ]

    def _fetch_primary_key(self, table_name: str, schema_name: Optional[str]) -> List[str]:
        rows = self._query(
            """
            SELECT cc.COLUMN_NAME
            FROM ALL_CONSTRAINTS c
            JOIN ALL_CONS_COLUMNS cc ON cc.OWNER = c.OWNER AND cc.CONSTRAINT_NAME = c.CONSTRAINT_NAME
            WHERE c.CONSTRAINT_TYPE = 'P' AND c.OWNER = :1 AND c.TABLE_NAME = :2
            ORDER BY cc.POSITION
            """,
            (schema_name, table_name),
        )
        return [row[0] for row in rows]

    def _fetch_foreign_keys(self, table_name: str, schema_name: Optional[str]) -> List[ForeignKeyInfo]:
        rows = self._query(
            """
            SELECT c.CONSTRAINT_NAME, cc.COLUMN_NAME, rc.TABLE_NAME, rcc.COLUMN_NAME
            FROM ALL_CONSTRAINTS c
            JOIN ALL_CONS_COLUMNS cc ON cc.OWNER = c.OWNER AND cc.CONSTRAINT_NAME = c.CONSTRAINT_NAME
            JOIN ALL_CONSTRAINTS rc ON rc.OWNER = c.R_OWNER AND rc.CONSTRAINT_NAME = c.R_CONSTRAINT_NAME
            JOIN ALL_CONS_COLUMNS rcc
              ON rcc.OWNER = rc.OWNER AND rcc.CONSTRAINT_NAME = rc.CONSTRAINT_NAME AND rcc.POSITION = cc.POSITION
            WHERE c.CONSTRAINT_TYPE = 'R' AND c.OWNER = :1 AND c.TABLE_NAME = :2
            ORDER BY c.CONSTRAINT_NAME, cc.POSITION
            """,
            (schema_name, table_name),
        )
        return group_foreign_keys(rows)

    def _fetch_indexes(self, table_name: str, schema_name: Optional[str]) -> List[IndexInfo]:
        rows = self._query(
            """
            SELECT i.INDEX_NAME, ic.COLUMN_NAME,
                   CASE WHEN i.UNIQUENESS = 'UNIQUE' THEN 1 ELSE 0 END,
                   CASE WHEN c.CONSTRAINT_TYPE = 'P' THEN 1 ELSE 0 END
            FROM ALL_INDEXES i
            JOIN ALL_IND_COLUMNS ic ON ic.INDEX_OWNER = i.OWNER AND ic.INDEX_NAME = i.INDEX_NAME
            LEFT JOIN ALL_CONSTRAINTS c
              ON c.OWNER = i.TABLE_OWNER AND c.INDEX_NAME = i.INDEX_NAME AND c.CONSTRAINT_TYPE = 'P'
            WHERE i.TABLE_OWNER = :1 AND i.TABLE_NAME = :2
            ORDER BY i.INDEX_NAME, ic.COLUMN_POSITION
            """,
            (schema_name, table_name),
        )
        return group_indexes(rows)

    def _fetch_table_comment(self, table_name: str, schema_name: Optional[str]) -> Optional[str]:
        rows = self._query(
            "SELECT COMMENTS FROM ALL_TAB_COMMENTS WHERE OWNER = :1 AND TABLE_NAME = :2",
            (schema_name, table_name),
        )
        return rows[0][0] if rows else None

    def _estimate_rows(self, table_name: str, schema_name: Optional[str]) -> Optional[int]:
        rows = self._query(
            "SELECT NUM_ROWS FROM ALL_TABLES WHERE OWNER = :1 AND TABLE_NAME = :2",
            (schema_name, table_name),
        )
        return rows[0][0] if rows else None
