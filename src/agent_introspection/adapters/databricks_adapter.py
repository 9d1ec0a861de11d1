"""
Databricks Connection Adapter
Unity Catalog / Hive metastore metadata through the SQL Statement Execution API
"""
from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

import requests

from ..config import EngineType
from ..utils import ConfigurationError, IntrospectionError
from ..utils.errors import ErrorCategory
from .base import (
    BaseConnectionAdapter,
    ColumnMetadata,
    DiscoveredTable,
    QueryResult,
    register_adapter,
)

_WAREHOUSE_FROM_PATH = re.compile(r"/warehouses/([^/?]+)")


class DatabricksStatementError(IntrospectionError):
    """Statement finished in a state other than SUCCEEDED"""

    def __init__(self, message: str):
        super().__init__(message, category=ErrorCategory.DATABASE)


@register_adapter(EngineType.DATABRICKS)
class DatabricksAdapter(BaseConnectionAdapter):
    """Databricks SQL warehouse adapter authenticated with a personal access token"""

    @property
    def server_hostname(self) -> str:
        host = self.secrets.server_hostname or self.profile.server_hostname or self.profile.host
        if not host or host == "localhost":
            raise ConfigurationError("Databricks requires server_hostname", config_key="server_hostname")
        return re.sub(r"^https?://", "", host).rstrip("/")

    @property
    def warehouse_id(self) -> Optional[str]:
        if self.profile.warehouse_id:
            return self.profile.warehouse_id
        http_path = self.secrets.http_path or self.profile.http_path or ""
        match = _WAREHOUSE_FROM_PATH.search(http_path)
        return match.group(1) if match else None

    @property
    def catalog(self) -> str:
        return self.profile.catalog or "hive_metastore"

    @property
    def default_schema(self) -> Optional[str]:
        return self.profile.schema_name or "default"

    def describe_target(self) -> str:
        return f"workspace '{self.server_hostname}' ({self.catalog}.{self.default_schema})"

    def connect(self) -> None:
        token = self.secrets.reveal("access_token") or self.secrets.reveal("password")
        if not token:
            raise ConfigurationError("Databricks requires an access_token", config_key="access_token")
        session = requests.Session()
        session.headers["Authorization"] = f"Bearer {token}"
        session.headers["Content-Type"] = "application/json"
        self._connection = session

    def disconnect(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    def _url(self, path: str) -> str:
        return f"https://{self.server_hostname}{path}"

    def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        response = self._connection.request(
            method, self._url(path), timeout=self.profile.connection_timeout + self.profile.query_timeout, **kwargs
        )
        if response.status_code in (401, 403):
            raise requests.HTTPError(f"{response.status_code} Unauthorized: invalid access token")
        response.raise_for_status()
        return response.json()

    def execute_statement(self, statement: str) -> Dict[str, Any]:
        """Run one statement synchronously and return the raw API response"""
        if not self.warehouse_id:
            raise ConfigurationError(
                "Databricks requires warehouse_id or an http_path naming a SQL warehouse",
                config_key="warehouse_id",
            )
        # The API accepts wait_timeout between 5 and 50 seconds
        wait = min(max(self.profile.query_timeout, 5), 50)
        result = self._request("POST", "/api/2.0/sql/statements", json={
            "statement": statement,
            "warehouse_id": self.warehouse_id,
            "wait_timeout": f"{wait}s",
            "on_wait_timeout": "CANCEL",
            "disposition": "INLINE",
            "format": "JSON_ARRAY",
        })
        status = result.get("status") or {}
        if status.get("state") != "SUCCEEDED":
            message = (status.get("error") or {}).get("message") or status.get("state") or "unknown state"
            raise DatabricksStatementError(f"Databricks statement failed: {message}")
        return result

    def _rows(self, statement: str) -> List[List[Any]]:
        return (self.execute_statement(statement).get("result") or {}).get("data_array") or []

    def _qualified(self, table_name: str, schema_name: Optional[str]) -> str:
        schema = schema_name or self.default_schema
        return f"`{self.catalog}`.`{schema}`.`{table_name}`"

    def _ping(self) -> None:
        if self.warehouse_id:
            self._request("GET", f"/api/2.0/sql/warehouses/{self.warehouse_id}")
        else:
            self._request("GET", "/api/2.0/clusters/list")

    def _list_tables(self) -> List[DiscoveredTable]:
        rows = self._rows(f"SHOW TABLES IN `{self.catalog}`.`{self.default_schema}`")
        # (database, tableName, isTemporary)
        return [
            DiscoveredTable(name=row[1], schema_name=row[0] or self.default_schema, row_count=None)
            for row in rows
            if len(row) > 1 and str(row[2] if len(row) > 2 else "false").lower() != "true"
        ]

    def _fetch_columns(self, table_name: str, schema_name: Optional[str]) -> List[ColumnMetadata]:
        columns = []
        for row in self._rows(f"DESCRIBE TABLE {self._qualified(table_name, schema_name)}"):
            name = (row[0] or "").strip()
            # Partition and detail sections start with a blank or '#' row
            if not name or name.startswith("#"):
                break
            columns.append(ColumnMetadata(
                name=name,
                data_type=row[1] or "string",
                comment=row[2] if len(row) > 2 and row[2] else None,
            ))
        return columns

    def _count_rows(self, table_name: str, schema_name: Optional[str]) -> int:
        rows = self._rows(f"SELECT COUNT(*) FROM {self._qualified(table_name, schema_name)}")
        return int(rows[0][0]) if rows else 0

    def _sample_rows(self, table_name: str, schema_name: Optional[str], limit: int) -> QueryResult:
        result = self.execute_statement(f"SELECT * FROM {self._qualified(table_name, schema_name)} LIMIT {int(limit)}")
        columns = [c.get("name") for c in ((result.get("manifest") or {}).get("schema") or {}).get("columns", [])]
        rows = [tuple(r) for r in (result.get("result") or {}).get("data_array") or []]
        return QueryResult(success=True, columns=columns, rows=rows, row_count=len(rows))
