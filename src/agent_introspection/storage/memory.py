"""
In-memory metadata repository for tests and local use
"""
from __future__ import annotations

import threading
import uuid
from dataclasses import replace
from typing import Any, Dict, List, Optional, Tuple

from ..utils import get_logger
from .models import (
    DataAgentRecord,
    EnvironmentRecord,
    PersistedColumn,
    PersistedRelationship,
    PersistedTable,
    utc_now,
)
from .repository import MetadataRepository

logger = get_logger(__name__)

TableKey = Tuple[str, str, Optional[str], str]
ColumnKey = Tuple[str, str]
RelationshipKey = Tuple[str, str, str, str, str]


def _new_id() -> str:
    return str(uuid.uuid4())


class InMemoryMetadataRepository(MetadataRepository):
    """
    Thread-safe dictionary-backed repository

    Uniqueness keys match the relational store: tables by
    (agent, environment, schema, table), columns by (table, column) and
    relationships by (agent, source table, target table, source column,
    target column). Returned records are copies.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._agents: Dict[str, DataAgentRecord] = {}
        self._environments: Dict[str, EnvironmentRecord] = {}
        self._tables: Dict[str, PersistedTable] = {}
        self._table_keys: Dict[TableKey, str] = {}
        self._columns: Dict[str, PersistedColumn] = {}
        self._column_keys: Dict[ColumnKey, str] = {}
        self._relationships: Dict[str, PersistedRelationship] = {}
        self._relationship_keys: Dict[RelationshipKey, str] = {}

    # -- agents and environments -----------------------------------------

    def add_data_agent(
        self,
        name: str,
        engine: str,
        agent_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> DataAgentRecord:
        record = DataAgentRecord(id=agent_id or _new_id(), name=name, engine=engine, description=description)
        with self._lock:
            self._agents[record.id] = record
        return replace(record)

    def add_environment(
        self,
        data_agent_id: str,
        name: str,
        connection_config: Optional[Dict[str, Any]] = None,
        vault_key: Optional[str] = None,
        environment_id: Optional[str] = None,
    ) -> EnvironmentRecord:
        record = EnvironmentRecord(
            id=environment_id or _new_id(),
            data_agent_id=data_agent_id,
            name=name,
            connection_config=dict(connection_config or {}),
            vault_key=vault_key,
        )
        with self._lock:
            self._environments[record.id] = record
        return replace(record)

    def get_data_agent(self, agent_id: str) -> Optional[DataAgentRecord]:
        with self._lock:
            record = self._agents.get(agent_id)
            return replace(record) if record else None

    def get_environment(self, environment_id: str) -> Optional[EnvironmentRecord]:
        with self._lock:
            record = self._environments.get(environment_id)
            return replace(record, connection_config=dict(record.connection_config)) if record else None

    # -- tables and columns ----------------------------------------------

    def upsert_table(
        self,
        data_agent_id: str,
        environment_id: str,
        schema_name: Optional[str],
        table_name: str,
        row_count: int = 0,
        comment: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> PersistedTable:
        key = (data_agent_id, environment_id, schema_name, table_name)
        with self._lock:
            table_id = self._table_keys.get(key)
            if table_id is None:
                table = PersistedTable(
                    id=_new_id(),
                    data_agent_id=data_agent_id,
                    environment_id=environment_id,
                    schema_name=schema_name,
                    table_name=table_name,
                    row_count=max(0, int(row_count or 0)),
                    comment=comment,
                    metadata=dict(metadata or {}),
                )
                self._tables[table.id] = table
                self._table_keys[key] = table.id
            else:
                table = self._tables[table_id]
                table.row_count = max(0, int(row_count or 0))
                table.comment = comment
                table.metadata = dict(metadata or {})
                table.updated_at = utc_now()
            return replace(table)

    def upsert_column(
        self,
        table_id: str,
        column_name: str,
        data_type: str,
        nullable: bool = True,
        default_value: Optional[str] = None,
        is_primary_key: bool = False,
        comment: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> PersistedColumn:
        key = (table_id, column_name)
        with self._lock:
            if table_id not in self._tables:
                raise KeyError(f"Unknown table id: {table_id}")
            column_id = self._column_keys.get(key) or _new_id()
            column = PersistedColumn(
                id=column_id,
                table_id=table_id,
                column_name=column_name,
                data_type=data_type,
                nullable=nullable,
                default_value=default_value,
                is_primary_key=is_primary_key,
                comment=comment,
                metadata=dict(metadata or {}),
            )
            self._columns[column_id] = column
            self._column_keys[key] = column_id
            return replace(column)

    def list_tables(self, data_agent_id: str, environment_id: Optional[str] = None) -> List[PersistedTable]:
        with self._lock:
            tables = [
                replace(t) for t in self._tables.values()
                if t.data_agent_id == data_agent_id
                and (environment_id is None or t.environment_id == environment_id)
            ]
        return sorted(tables, key=lambda t: (t.schema_name or "", t.table_name))

    def list_columns(self, table_id: str) -> List[PersistedColumn]:
        with self._lock:
            return [replace(c) for c in self._columns.values() if c.table_id == table_id]

    def delete_table(self, table_id: str) -> bool:
        with self._lock:
            table = self._tables.pop(table_id, None)
            if table is None:
                return False
            self._table_keys.pop(
                (table.data_agent_id, table.environment_id, table.schema_name, table.table_name), None
            )
            for key, column_id in list(self._column_keys.items()):
                if key[0] == table_id:
                    del self._column_keys[key]
                    self._columns.pop(column_id, None)
            for key, rel_id in list(self._relationship_keys.items()):
                rel = self._relationships[rel_id]
                if table_id in (rel.source_table_id, rel.target_table_id):
                    del self._relationship_keys[key]
                    del self._relationships[rel_id]
        logger.debug(f"Deleted table {table.qualified_name} with its columns and relationships")
        return True

    # -- relationships ---------------------------------------------------

    def upsert_relationship(
        self,
        data_agent_id: str,
        source_table_id: str,
        target_table_id: str,
        source_column: str,
        target_column: str,
        kind: str,
        confidence: float = 1.0,
        is_verified: bool = False,
        environment_id: Optional[str] = None,
        description: Optional[str] = None,
        example: Optional[str] = None,
    ) -> PersistedRelationship:
        key = (data_agent_id, source_table_id, target_table_id, source_column, target_column)
        with self._lock:
            for table_id in (source_table_id, target_table_id):
                if table_id not in self._tables:
                    raise KeyError(f"Unknown table id: {table_id}")
            existing_id = self._relationship_keys.get(key)
            previous = self._relationships.get(existing_id) if existing_id else None
            relationship = PersistedRelationship(
                id=existing_id or _new_id(),
                data_agent_id=data_agent_id,
                environment_id=environment_id,
                source_table_id=source_table_id,
                target_table_id=target_table_id,
                source_column=source_column,
                target_column=target_column,
                kind=kind,
                confidence=confidence,
                is_verified=is_verified,
                description=description,
                example=example,
                created_at=previous.created_at if previous else utc_now(),
            )
            self._relationships[relationship.id] = relationship
            self._relationship_keys[key] = relationship.id
            return replace(relationship)

    def find_existing_relationship(
        self,
        data_agent_id: str,
        source_table_id: str,
        target_table_id: str,
        source_column: str,
        target_column: str,
    ) -> Optional[PersistedRelationship]:
        key = (data_agent_id, source_table_id, target_table_id, source_column, target_column)
        with self._lock:
            rel_id = self._relationship_keys.get(key)
            return replace(self._relationships[rel_id]) if rel_id else None

    def list_relationships(self, data_agent_id: str) -> List[PersistedRelationship]:
        with self._lock:
            return [replace(r) for r in self._relationships.values() if r.data_agent_id == data_agent_id]

    def save_relationship_analysis(self, data_agent_id: str, analysis_text: str) -> None:
        with self._lock:
            agent = self._agents.get(data_agent_id)
            if agent is None:
                raise KeyError(f"Unknown data agent: {data_agent_id}")
            agent.relationship_analysis = analysis_text
            agent.relationship_analyzed_at = utc_now()
