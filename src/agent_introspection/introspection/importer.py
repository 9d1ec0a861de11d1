"""
Table Import Pipeline
Persists selected tables and their columns through idempotent upserts
"""
from __future__ import annotations

import concurrent.futures
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from ..adapters import TableDetails, create_adapter
from ..config import ConnectionProfile, IntrospectionConfig
from ..storage import MetadataRepository
from ..utils import IntrospectionMetrics, get_correlation_id, get_logger, log_context, log_operation
from ..vault import SecretBundle
from .introspector import SchemaIntrospector

logger = get_logger(__name__)


@dataclass
class ImportResult:
    """One successfully imported table"""
    table_name: str
    schema_name: Optional[str]
    table_id: str
    columns_imported: int
    row_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table_name": self.table_name,
            "schema_name": self.schema_name,
            "table_id": self.table_id,
            "columns_imported": self.columns_imported,
            "row_count": self.row_count,
        }


def split_table_name(name: str) -> Tuple[Optional[str], str]:
    """'schema.table' -> ('schema', 'table'); a bare name has no schema"""
    name = name.strip()
    if "." in name:
        schema, table = name.rsplit(".", 1)
        return schema or None, table
    return None, name


class TableImportPipeline:
    """
    Imports tables concurrently, one adapter and connection per table

    A table that fails is logged and left out of the result; the others
    are unaffected. Results follow the order of the request.
    """

    def __init__(
        self,
        introspector: SchemaIntrospector,
        repository: MetadataRepository,
        config: Optional[IntrospectionConfig] = None,
    ):
        self.introspector = introspector
        self.repository = repository
        self.config = config or introspector.config.introspection

    def import_tables(self, data_agent_id: str, environment_id: str, table_names: List[str]) -> List[ImportResult]:
        """
        Import the named tables for one environment

        Raises:
            NotFoundError: Unknown agent or environment
            UnsupportedEngineError: Engine outside the supported set
            VaultError: Credentials required but not resolvable
        """
        profile, secrets = self.introspector.resolve_connection(data_agent_id, environment_id)
        names = list(dict.fromkeys(n for n in table_names if n and n.strip()))
        if not names:
            return []

        correlation_id = get_correlation_id()
        workers = max(1, min(self.config.import_workers, len(names)))
        results: List[Optional[ImportResult]] = [None] * len(names)
        failed = 0

        with log_operation(logger, "import_tables", engine=profile.engine, tables=len(names)) as ctx:
            with concurrent.futures.ThreadPoolExecutor(
                max_workers=workers, thread_name_prefix="table-import"
            ) as executor:
                futures = {
                    executor.submit(
                        self._import_one, profile, secrets, data_agent_id, environment_id, name, correlation_id
                    ): position
                    for position, name in enumerate(names)
                }
                for future in concurrent.futures.as_completed(futures):
                    position = futures[future]
                    try:
                        results[position] = future.result()
                    except Exception as e:
                        failed += 1
                        logger.warning(
                            f"Failed to import table {names[position]}: {e}",
                            extra={"extra_fields": {"table": names[position], "error_type": type(e).__name__}}
                        )
            ctx["imported"] = len(names) - failed
            ctx["failed"] = failed

        IntrospectionMetrics.record_import(profile.engine, len(names) - failed, failed)
        return [r for r in results if r is not None]

    def _import_one(
        self,
        profile: ConnectionProfile,
        secrets: SecretBundle,
        data_agent_id: str,
        environment_id: str,
        name: str,
        correlation_id: Optional[str],
    ) -> ImportResult:
        schema_name, table_name = split_table_name(name)
        with log_context(correlation_id=correlation_id, data_agent_id=data_agent_id):
            adapter = create_adapter(profile, secrets)
            details = adapter.fetch_table_details(table_name, schema_name, include_row_count=True)
            return self._persist(data_agent_id, environment_id, details)

    def _persist(self, data_agent_id: str, environment_id: str, details: TableDetails) -> ImportResult:
        # The table row must exist before its columns
        table = self.repository.upsert_table(
            data_agent_id=data_agent_id,
            environment_id=environment_id,
            schema_name=details.schema_name,
            table_name=details.name,
            row_count=details.row_count or 0,
            comment=details.comment,
            metadata={
                "primary_key": list(details.primary_key),
                "foreign_keys": [fk.to_dict() for fk in details.foreign_keys],
                "indexes": [idx.to_dict() for idx in details.indexes],
            },
        )
        for column in details.columns:
            self.repository.upsert_column(
                table_id=table.id,
                column_name=column.name,
                data_type=column.data_type,
                nullable=column.nullable,
                default_value=column.default_value,
                is_primary_key=column.is_primary_key,
                comment=column.comment,
                metadata={
                    "max_length": column.max_length,
                    "precision": column.precision,
                    "scale": column.scale,
                    "is_foreign_key": column.is_foreign_key,
                    "referenced_table": column.referenced_table,
                    "referenced_column": column.referenced_column,
                },
            )
        logger.info(
            f"Imported table {table.qualified_name}",
            extra={"extra_fields": {"columns": len(details.columns), "row_count": table.row_count}}
        )
        return ImportResult(
            table_name=details.name,
            schema_name=details.schema_name,
            table_id=table.id,
            columns_imported=len(details.columns),
            row_count=table.row_count,
        )
