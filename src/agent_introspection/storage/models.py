"""
Persistence records exchanged with the metadata store

These mirror the rows the admin portal keeps for data agents, environments,
imported tables, columns and relationships.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class DataAgentRecord:
    """A registered external data source"""
    id: str
    name: str
    engine: str
    description: Optional[str] = None
    relationship_analysis: Optional[str] = None
    relationship_analyzed_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "engine": self.engine,
            "description": self.description,
            "relationship_analysis": self.relationship_analysis,
            "relationship_analyzed_at": (
                self.relationship_analyzed_at.isoformat() if self.relationship_analyzed_at else None
            ),
        }


@dataclass
class EnvironmentRecord:
    """
    One deployment (dev, staging, prod...) of a data agent

    connection_config holds non-secret addressing only; credentials are
    looked up in the vault under vault_key.
    """
    id: str
    data_agent_id: str
    name: str
    connection_config: Dict[str, Any] = field(default_factory=dict)
    vault_key: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "data_agent_id": self.data_agent_id,
            "name": self.name,
            "connection_config": dict(self.connection_config),
            "vault_key": self.vault_key,
        }


@dataclass
class PersistedTable:
    """Imported table, unique per (agent, environment, schema, table)"""
    id: str
    data_agent_id: str
    environment_id: str
    schema_name: Optional[str]
    table_name: str
    row_count: int = 0
    comment: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @property
    def qualified_name(self) -> str:
        return f"{self.schema_name}.{self.table_name}" if self.schema_name else self.table_name

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "data_agent_id": self.data_agent_id,
            "environment_id": self.environment_id,
            "schema_name": self.schema_name,
            "table_name": self.table_name,
            "row_count": self.row_count,
            "comment": self.comment,
            "metadata": self.metadata,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class PersistedColumn:
    """Imported column, unique per (table_id, column_name)"""
    id: str
    table_id: str
    column_name: str
    data_type: str
    nullable: bool = True
    default_value: Optional[str] = None
    is_primary_key: bool = False
    comment: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "table_id": self.table_id,
            "column_name": self.column_name,
            "data_type": self.data_type,
            "nullable": self.nullable,
            "default_value": self.default_value,
            "is_primary_key": self.is_primary_key,
            "comment": self.comment,
            "metadata": self.metadata,
        }


@dataclass
class PersistedRelationship:
    """
    Durable relationship between two imported tables

    is_verified is True for manually entered relationships and False for
    accepted model suggestions.
    """
    id: str
    data_agent_id: str
    source_table_id: str
    target_table_id: str
    source_column: str
    target_column: str
    kind: str
    confidence: float = 1.0
    is_verified: bool = False
    environment_id: Optional[str] = None
    description: Optional[str] = None
    example: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "data_agent_id": self.data_agent_id,
            "environment_id": self.environment_id,
            "source_table_id": self.source_table_id,
            "target_table_id": self.target_table_id,
            "source_column": self.source_column,
            "target_column": self.target_column,
            "kind": self.kind,
            "confidence": self.confidence,
            "is_verified": self.is_verified,
            "description": self.description,
            "example": self.example,
            "created_at": self.created_at.isoformat(),
        }
