"""
Connection Adapters Package
Uniform, read-only metadata access across the supported engines
"""
from typing import List, Optional

from .base import (
    BaseConnectionAdapter,
    SQLConnectionAdapter,
    ConnectionAdapterRegistry,
    ColumnMetadata,
    ConnectionTestResult,
    DiscoveredTable,
    ForeignKeyInfo,
    IndexInfo,
    QueryResult,
    Result,
    TableDetails,
    MAX_SAMPLE_ROWS,
    normalize_row_count,
    register_adapter,
)

# Import adapters to register them
from .postgresql_adapter import PostgreSQLAdapter
from .mysql_adapter import MySQLAdapter
from .mssql_adapter import MSSQLAdapter
from .db2_adapter import DB2Adapter
from .oracle_adapter import OracleAdapter
from .sqlite_adapter import SQLiteAdapter
from .bigquery_adapter import BigQueryAdapter
from .databricks_adapter import DatabricksAdapter

from ..config import ConnectionProfile, EngineType
from ..vault import SecretBundle


def create_adapter(profile: ConnectionProfile, secrets: Optional[SecretBundle] = None) -> BaseConnectionAdapter:
    """
    Factory function to create a connection adapter

    Raises:
        UnsupportedEngineError: If no adapter is registered for the engine
    """
    return ConnectionAdapterRegistry.create_adapter(profile, secrets)


def get_supported_engines() -> List[EngineType]:
    """Engines with a registered adapter"""
    return ConnectionAdapterRegistry.get_supported_engines()


__all__ = [
    # Base classes
    "BaseConnectionAdapter",
    "SQLConnectionAdapter",
    "ConnectionAdapterRegistry",
    "ColumnMetadata",
    "ConnectionTestResult",
    "DiscoveredTable",
    "ForeignKeyInfo",
    "IndexInfo",
    "QueryResult",
    "Result",
    "TableDetails",
    "MAX_SAMPLE_ROWS",
    "normalize_row_count",
    "register_adapter",
    # Concrete adapters
    "PostgreSQLAdapter",
    "MySQLAdapter",
    "MSSQLAdapter",
    "DB2Adapter",
    "OracleAdapter",
    "SQLiteAdapter",
    "BigQueryAdapter",
    "DatabricksAdapter",
    # Factory functions
    "create_adapter",
    "get_supported_engines",
]
