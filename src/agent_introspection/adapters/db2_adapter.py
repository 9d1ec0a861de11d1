"""
IBM DB2 Connection Adapter
Catalog access through SYSCAT views via ibm_db_dbi
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
    odbc_value,
    register_adapter,
)

DB2_SYSTEM_SCHEMAS = frozenset({
    "SYSIBM", "SYSCAT", "SYSSTAT", "SYSTOOLS", "SYSPROC",
    "SYSIBMADM", "SYSFUN", "SYSIBMINTERNAL", "SYSIBMTS", "NULLID", "SQLJ",
})


def _strip(value):
    return value.strip() if isinstance(value, str) else value


@register_adapter(EngineType.DB2)
class DB2Adapter(SQLConnectionAdapter):
    """DB2 LUW connection adapter"""

    system_schemas = DB2_SYSTEM_SCHEMAS
    driver_package = "ibm_db"
    driver_extra = "db2"
    ping_sql = "SELECT 1 FROM SYSIBM.SYSDUMMY1"

    @property
    def default_schema(self) -> Optional[str]:
        if self.profile.schema_name:
            return self.profile.schema_name.upper()
        return self.secrets.username.upper() if self.secrets.username else None

    def build_connection_string(self) -> str:
        # The CLI driver resolves localhost over IPv6 first
        host = "127.0.0.1" if self.profile.host == "localhost" else self.profile.host
        parts = [
            f"DATABASE={self.profile.database}",
            f"HOSTNAME={host}",
            f"PORT={self.profile.effective_port}",
            "PROTOCOL=TCPIP",
            f"UID={odbc_value(self.secrets.username or '')}",
            f"PWD={odbc_value(self.secrets.reveal('password') or '')}",
            f"CONNECTTIMEOUT={self.profile.connection_timeout}",
            f"QUERYTIMEOUT={self.profile.query_timeout}",
        ]
        if SSLMode(self.profile.ssl_mode) != SSLMode.DISABLE:
            parts.append("SECURITY=SSL")
            if self.profile.ssl_ca_path:
                parts.append(f"SSLServerCertificate={self.profile.ssl_ca_path}")
        return ";".join(parts) + ";"

    def connect(self) -> None:
        """Establish DB2 connection"""
        def load():
            import ibm_db_dbi
            return ibm_db_dbi
        ibm_db_dbi = self._require_driver(load)
        self._connection = ibm_db_dbi.connect(self.build_connection_string(), "", "")

    def _sample_sql(self, qualified: str, limit: int) -> str:
        return f"SELECT * FROM {qualified} FETCH FIRST {int(limit)} ROWS ONLY"

    def _list_tables(self) -> List[DiscoveredTable]:
        placeholders = ", ".join("?" for _ in DB2_SYSTEM_SCHEMAS)
        sql = (
            "SELECT TABNAME, TABSCHEMA, CARD, REMARKS FROM SYSCAT.TABLES "
            f"WHERE TYPE = 'T' AND TABSCHEMA NOT IN ({placeholders})"
        )
        params = sorted(DB2_SYSTEM_SCHEMAS)
        if self.profile.schema_name:
            sql += " AND TABSCHEMA = ?"
            params.append(self.profile.schema_name.upper())
        sql += " ORDER BY TABSCHEMA, TABNAME"

        # CARD is -1 until RUNSTATS has been run
        return [
            DiscoveredTable(name=_strip(name), schema_name=_strip(schema), row_count=card, comment=_strip(remarks))
            for name, schema, card, remarks in self._query(sql, params)
        ]

    def _fetch_columns(self, table_name: str, schema_name: Optional[str]) -> List[ColumnMetadata]:
        rows = self._query(
            """
            SELECT COLNAME, TYPENAME, LENGTH, SCALE, NULLS, DEFAULT, KEYSEQ, REMARKS
            FROM SYSCAT.COLUMNS
            WHERE TABSCHEMA = ? AND TABNAME = ?
            ORDER BY COLNO
            """,
            (schema_name, table_name),
        )
        columns = []
        for name, type_name, length, scale, nulls, default, keyseq, remarks in rows:
            type_name = _strip(type_name)
            columns.append(ColumnMetadata(
                name=_strip(name),
                data_type=type_name,
                nullable=_strip(nulls) == "Y",
                default_value=_strip(default),
                is_primary_key=keyseq is not None,
                comment=_strip(remarks),
                max_length=length if type_name in ("VARCHAR", "CHARACTER", "CHAR", "VARGRAPHIC", "GRAPHIC") else None,
                precision=length if type_name in ("DECIMAL", "NUMERIC") else None,
                scale=scale if type_name in ("DECIMAL", "NUMERIC") else None,
            ))
        return columns

    def _fetch_primary_key(self, table_name: str, schema_name: Optional[str]) -> List[str]:
        rows = self._query(
            """
            SELECT COLNAME FROM SYSCAT.COLUMNS
            WHERE TABSCHEMA = ? AND TABNAME = ? AND KEYSEQ IS NOT NULL
            ORDER BY KEYSEQ
            """,
            (schema_name, table_name),
        )
        return [_strip(row[0]) for row in rows]

    def _fetch_foreign_keys(self, table_name: str, schema_name: Optional[str]) -> List[ForeignKeyInfo]:
        rows = self._query(
            """
            SELECT CONSTNAME, FK_COLNAMES, REFTABNAME, PK_COLNAMES
            FROM SYSCAT.REFERENCES
            WHERE TABSCHEMA = ? AND TABNAME = ?
            """,
            (schema_name, table_name),
        )
        # Column lists are blank-padded and space separated
        return [
            ForeignKeyInfo(
                name=_strip(name),
                columns=(fk_cols or "").split(),
                referenced_table=_strip(ref_table),
                referenced_columns=(pk_cols or "").split(),
            )
            for name, fk_cols, ref_table, pk_cols in rows
        ]

    def _fetch_indexes(self, table_name: str, schema_name: Optional[str]) -> List[IndexInfo]:
        rows = self._query(
            """
            SELECT INDNAME, COLNAMES, UNIQUERULE
            FROM SYSCAT.INDEXES
            WHERE TABSCHEMA = ? AND TABNAME = ?
            """,
            (schema_name, table_name),
        )
        # COLNAMES looks like +COL1-COL2 (sign gives sort order)
        return [
            IndexInfo(
                name=_strip(name),
                columns=[c for c in (colnames or "").replace("-", "+").split("+") if c],
                is_unique=_strip(rule) in ("U", "P"),
                is_primary=_strip(rule) == "P",
            )
            for name, colnames, rule in rows
        ]

    def _fetch_table_comment(self, table_name: str, schema_name: Optional[str]) -> Optional[str]:
        rows = self._query(
            "SELECT REMARKS FROM SYSCAT.TABLES WHERE TABSCHEMA = ? AND TABNAME = ?",
            (schema_name, table_name),
        )
        return _strip(rows[0][0]) if rows else None

    def _estimate_rows(self, table_name: str, schema_name: Optional[str]) -> Optional[int]:
        rows = self._query(
            "SELECT CARD FROM SYSCAT.TABLES WHERE TABSCHEMA = ? AND TABNAME = ?",
            (schema_name, table_name),
        )
        return rows[0][0] if rows else None
