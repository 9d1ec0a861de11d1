"""
BigQuery Connection Adapter
Dataset metadata through the google-cloud-bigquery client
"""
from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from ..config import EngineType
from ..utils import ConfigurationError
from .base import (
    BaseConnectionAdapter,
    ColumnMetadata,
    DiscoveredTable,
    QueryResult,
    register_adapter,
)


@register_adapter(EngineType.BIGQUERY)
class BigQueryAdapter(BaseConnectionAdapter):
    """
    BigQuery adapter addressed by project + dataset

    Credentials come from a service-account JSON document in the secret
    bundle, a key file path, or application default credentials.
    """

    driver_package = "google-cloud-bigquery"
    driver_extra = "bigquery"

    def _service_account_info(self) -> Optional[Dict[str, Any]]:
        raw = self.secrets.reveal("service_account_json")
        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError as e:
            raise ConfigurationError(
                "service_account_json is not a valid JSON document",
                config_key="service_account_json",
                original_error=e,
            )

    @property
    def project_id(self) -> Optional[str]:
        info = self._service_account_info() or {}
        return self.secrets.project_id or self.profile.project_id or info.get("project_id")

    @property
    def dataset_id(self) -> str:
        dataset = self.profile.dataset or self.profile.schema_name or self.profile.database
        if not dataset:
            raise ConfigurationError("BigQuery requires a dataset", config_key="dataset")
        return dataset

    @property
    def default_schema(self) -> Optional[str]:
        return self.dataset_id

    def describe_target(self) -> str:
        return f"dataset '{self.project_id}.{self.dataset_id}'"

    def connect(self) -> None:
        """Build an authenticated BigQuery client"""
        def load():
            from google.cloud import bigquery
            from google.oauth2 import service_account
            return bigquery, service_account
        bigquery, service_account = self._require_driver(load)

        info = self._service_account_info()
        credentials = None
        if info:
            credentials = service_account.Credentials.from_service_account_info(info)
        elif self.secrets.key_file:
            credentials = service_account.Credentials.from_service_account_file(self.secrets.key_file)

        if not self.project_id:
            raise ConfigurationError("BigQuery requires a project_id", config_key="project_id")

        self._connection = bigquery.Client(project=self.project_id, credentials=credentials)

    def disconnect(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    @property
    def _timeout(self) -> float:
        return float(self.profile.query_timeout)

    def _table_ref(self, table_name: str, schema_name: Optional[str]) -> str:
        return f"{self.project_id}.{schema_name or self.dataset_id}.{table_name}"

    def _ping(self) -> None:
        self._connection.get_dataset(f"{self.project_id}.{self.dataset_id}", timeout=self._timeout)

    def _list_tables(self) -> List[DiscoveredTable]:
        client = self._connection
        tables = []
        for item in client.list_tables(f"{self.project_id}.{self.dataset_id}", timeout=self._timeout):
            if item.table_type != "TABLE":
                continue
            # list_tables omits row counts; get_table carries numRows
            table = client.get_table(item.reference, timeout=self._timeout)
            tables.append(DiscoveredTable(
                name=item.table_id,
                schema_name=item.dataset_id,
                row_count=table.num_rows,
                comment=table.description,
            ))
        return tables

    def _fetch_columns(self, table_name: str, schema_name: Optional[str]) -> List[ColumnMetadata]:
        table = self._connection.get_table(self._table_ref(table_name, schema_name), timeout=self._timeout)
        return [
            ColumnMetadata(
                name=field.name,
                data_type=field.field_type if field.mode != "REPEATED" else f"ARRAY<{field.field_type}>",
                nullable=field.mode != "REQUIRED",
                comment=field.description,
                max_length=field.max_length,
                precision=field.precision,
                scale=field.scale,
            )
            for field in table.schema
        ]

    def _fetch_primary_key(self, table_name: str, schema_name: Optional[str]) -> List[str]:
        table = self._connection.get_table(self._table_ref(table_name, schema_name), timeout=self._timeout)
        constraints = getattr(table, "table_constraints", None)
        primary_key = getattr(constraints, "primary_key", None) if constraints else None
        return list(primary_key.columns) if primary_key else []

    def _fetch_table_comment(self, table_name: str, schema_name: Optional[str]) -> Optional[str]:
        table = self._connection.get_table(self._table_ref(table_name, schema_name), timeout=self._timeout)
        return table.description

    def _estimate_rows(self, table_name: str, schema_name: Optional[str]) -> Optional[int]:
        table = self._connection.get_table(self._table_ref(table_name, schema_name), timeout=self._timeout)
        return table.num_rows

    def _count_rows(self, table_name: str, schema_name: Optional[str]) -> int:
        job = self._connection.query(
            f"SELECT COUNT(*) FROM `{self._table_ref(table_name, schema_name)}`",
            timeout=self._timeout,
        )
        rows = list(job.result(timeout=self._timeout))
        return int(rows[0][0]) if rows else 0

    def _sample_rows(self, table_name: str, schema_name: Optional[str], limit: int) -> QueryResult:
        iterator = self._connection.list_rows(
            self._table_ref(table_name, schema_name), max_results=limit, timeout=self._timeout
        )
        rows = [tuple(row.values()) for row in iterator]
        columns = [field.name for field in (iterator.schema or [])]
        return QueryResult(success=True, columns=columns, rows=rows, row_count=len(rows))
