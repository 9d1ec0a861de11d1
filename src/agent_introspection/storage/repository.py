"""
Metadata repository interface

The relational store that owns data agents, environments, tables, columns
and relationships lives outside this package. Everything here talks to it
through MetadataRepository.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .models import (
    DataAgentRecord,
    EnvironmentRecord,
    PersistedColumn,
    PersistedRelationship,
    PersistedTable,
)


class MetadataRepository(ABC):
    """Abstract persistence collaborator"""

    @abstractmethod
    def get_data_agent(self, agent_id: str) -> Optional[DataAgentRecord]:
        pass

    @abstractmethod
    def get_environment(self, environment_id: str) -> Optional[EnvironmentRecord]:
        pass

    @abstractmethod
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
        """Insert or update by (agent, environment, schema, table)"""

    @abstractmethod
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
        """Insert or update by (table_id, column_name)"""

    @abstractmethod
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
        """Insert or update by (agent, source table, target table, source column, target column)"""

    @abstractmethod
    def find_existing_relationship(
        self,
        data_agent_id: str,
        source_table_id: str,
        target_table_id: str,
        source_column: str,
        target_column: str,
    ) -> Optional[PersistedRelationship]:
        pass

    @abstractmethod
    def list_tables(self, data_agent_id: str, environment_id: Optional[str] = None) -> List[PersistedTable]:
        pass

    @abstractmethod
    def list_columns(self, table_id: str) -> List[PersistedColumn]:
        pass

    @abstractmethod
    def save_relationship_analysis(self, data_agent_id: str, analysis_text: str) -> None:
        """Record the latest free-text analysis and its timestamp on the agent"""

    @abstractmethod
    def delete_table(self, table_id: str) -> bool:
        """Delete a table together with its columns and relationships"""
