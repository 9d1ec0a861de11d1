"""
Data Agent Introspection
========================

Schema introspection and relationship inference for data agents.

Features:
- Read-only metadata access to PostgreSQL, MySQL, SQL Server, DB2, Oracle,
  SQLite, BigQuery and Databricks
- Credentials resolved from a pluggable vault (local file, AWS Secrets
  Manager, HashiCorp Vault)
- Concurrent, idempotent table import into the metadata store
- Model-assisted relationship discovery with tolerant JSON repair

Quick Start:
------------

    from agent_introspection import create_service, InMemoryMetadataRepository

    repo = InMemoryMetadataRepository()
    agent = repo.add_data_agent("sales", engine="postgresql")
    env = repo.add_environment(agent.id, "prod", {"host": "db", "database": "sales"})

    service = create_service(repository=repo)
    service.store_credentials(env.id, {"username": "reader", "password": "..."})

    result = service.discover_tables(agent.id, env.id)
    if result.ok:
        service.import_tables(agent.id, env.id, [t.name for t in result.value])

    summary = service.analyze_relationships(agent.id)
    print(summary["relationships_created"])
"""

__version__ = "1.0.0"
__author__ = "Data Agent Team"

# Configuration
from .config import (
    EngineType,
    SSLMode,
    VaultProviderType,
    LLMProvider,
    LogLevel,
    ConnectionProfile,
    VaultConfig,
    LLMConfig,
    IntrospectionConfig,
    MetricsConfig,
    SystemConfig,
    get_config,
    set_config,
    resolve_engine,
)

# Credential vault
from .vault import (
    SecretBundle,
    BaseSecretProvider,
    LocalSecretProvider,
    VaultClient,
    get_vault_client,
)

# Connection adapters
from .adapters import (
    BaseConnectionAdapter,
    ConnectionAdapterRegistry,
    ColumnMetadata,
    ConnectionTestResult,
    DiscoveredTable,
    QueryResult,
    Result,
    TableDetails,
    create_adapter,
    get_supported_engines,
)

# Storage
from .storage import (
    MetadataRepository,
    InMemoryMetadataRepository,
    DataAgentRecord,
    EnvironmentRecord,
    PersistedTable,
    PersistedColumn,
    PersistedRelationship,
)

# LLM client
from .llm_client import (
    BaseLLMClient,
    BedrockClaudeClient,
    OpenAICompatibleClient,
    LLMClientFactory,
    LLMResponse,
    get_llm_client,
)

# Introspection and inference
from .introspection import SchemaIntrospector, TableImportPipeline, ImportResult
from .inference import (
    RelationshipInferenceEngine,
    RelationshipCandidate,
    RelationshipKind,
    parse_relationship_response,
    ColumnAnalyzer,
)

# Service
from .service import IntrospectionService, create_service

# Utilities
from .utils import (
    setup_logging,
    get_logger,
    IntrospectionError,
    ConfigurationError,
    UnsupportedEngineError,
    ConnectivityError,
    ConnectionTimeoutError,
    AuthenticationError,
    VaultError,
    ModelInvocationError,
    ParseError,
    NotFoundError,
    get_metrics_collector,
    IntrospectionMetrics,
)

__all__ = [
    # Version
    "__version__",
    # Configuration
    "EngineType",
    "SSLMode",
    "VaultProviderType",
    "LLMProvider",
    "LogLevel",
    "ConnectionProfile",
    "VaultConfig",
    "LLMConfig",
    "IntrospectionConfig",
    "MetricsConfig",
    "SystemConfig",
    "get_config",
    "set_config",
    "resolve_engine",
    # Vault
    "SecretBundle",
    "BaseSecretProvider",
    "LocalSecretProvider",
    "VaultClient",
    "get_vault_client",
    # Adapters
    "BaseConnectionAdapter",
    "ConnectionAdapterRegistry",
    "ColumnMetadata",
    "ConnectionTestResult",
    "DiscoveredTable",
    "QueryResult",
    "Result",
    "TableDetails",
    "create_adapter",
    "get_supported_engines",
    # Storage
    "MetadataRepository",
    "InMemoryMetadataRepository",
    "DataAgentRecord",
    "EnvironmentRecord",
    "PersistedTable",
    "PersistedColumn",
    "PersistedRelationship",
    # LLM client
    "BaseLLMClient",
    "BedrockClaudeClient",
    "OpenAICompatibleClient",
    "LLMClientFactory",
    "LLMResponse",
    "get_llm_client",
    # Introspection and inference
    "SchemaIntrospector",
    "TableImportPipeline",
    "ImportResult",
    "RelationshipInferenceEngine",
    "RelationshipCandidate",
    "RelationshipKind",
    "parse_relationship_response",
    "ColumnAnalyzer",
    # Service
    "IntrospectionService",
    "create_service",
    # Utilities
    "setup_logging",
    "get_logger",
    "IntrospectionError",
    "ConfigurationError",
    "UnsupportedEngineError",
    "ConnectivityError",
    "ConnectionTimeoutError",
    "AuthenticationError",
    "VaultError",
    "ModelInvocationError",
    "ParseError",
    "NotFoundError",
    "get_metrics_collector",
    "IntrospectionMetrics",
]
