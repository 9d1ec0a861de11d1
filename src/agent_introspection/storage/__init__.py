"""
Storage Package
Repository interface to the metadata store plus an in-memory implementation
"""
from .models import (
    DataAgentRecord,
    EnvironmentRecord,
    PersistedTable,
    PersistedColumn,
    PersistedRelationship,
)
from .repository import MetadataRepository
from .memory import InMemoryMetadataRepository

__all__ = [
    "DataAgentRecord",
    "EnvironmentRecord",
    "PersistedTable",
    "PersistedColumn",
    "PersistedRelationship",
    "MetadataRepository",
    "InMemoryMetadataRepository",
]
