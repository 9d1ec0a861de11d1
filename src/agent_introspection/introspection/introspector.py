"""
Schema Introspector
Resolves an environment into a connection profile plus credentials and
dispatches to the adapter for the agent's engine
"""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from ..adapters import (
    BaseConnectionAdapter,
    ConnectionTestResult,
    DiscoveredTable,
    QueryResult,
    Result,
    create_adapter,
)
from ..config import ConnectionProfile, SystemConfig, get_config, resolve_engine
from ..storage import DataAgentRecord, EnvironmentRecord, MetadataRepository
from ..utils import ConfigurationError, NotFoundError, get_logger, log_context
from ..vault import SecretBundle, VaultClient

logger = get_logger(__name__)

SecretsInput = Union[SecretBundle, Mapping[str, Any], None]

_TIMEOUT_KEYS = ("connection_timeout", "connectionTimeout")


class SchemaIntrospector:
    """
    Engine-agnostic entry point to table discovery and connection tests

    Persists nothing. Every call builds a fresh adapter that owns a single
    short-lived connection.
    """

    def __init__(
        self,
        repository: MetadataRepository,
        vault: VaultClient,
        config: Optional[SystemConfig] = None,
    ):
        self.repository = repository
        self.vault = vault
        self.config = config or get_config()

    # -- resolution ------------------------------------------------------

    def resolve_environment(self, data_agent_id: str, environment_id: str) -> Tuple[DataAgentRecord, EnvironmentRecord]:
        agent = self.repository.get_data_agent(data_agent_id)
        if agent is None:
            raise NotFoundError("Data agent", data_agent_id)
        environment = self.repository.get_environment(environment_id)
        if environment is None or environment.data_agent_id != data_agent_id:
            raise NotFoundError("Environment", environment_id)
        return agent, environment

    def build_profile(self, engine: Any, connection_config: Optional[Mapping[str, Any]] = None) -> ConnectionProfile:
        """
        Validate a stored connection config into an immutable profile

        Raises:
            UnsupportedEngineError: Engine outside the supported set
            ConfigurationError: Invalid connection settings
        """
        engine_type = resolve_engine(engine)
        data: Dict[str, Any] = dict(connection_config or {})
        if not any(key in data for key in _TIMEOUT_KEYS):
            data["connection_timeout"] = self.config.default_connect_timeout
        try:
            return ConnectionProfile.from_config(engine_type, data)
        except ValidationError as e:
            fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
            raise ConfigurationError(
                f"Invalid connection configuration for {engine_type.value}: {', '.join(fields)}",
                config_key=fields[0] if fields else None,
                original_error=e,
            )

    def resolve_secrets(self, environment: EnvironmentRecord) -> SecretBundle:
        """Bundle for the environment's vault key; an empty bundle when it has none"""
        if not environment.vault_key:
            return SecretBundle()
        return self.vault.require_secret(environment.vault_key)

    def resolve_connection(self, data_agent_id: str, environment_id: str) -> Tuple[ConnectionProfile, SecretBundle]:
        agent, environment = self.resolve_environment(data_agent_id, environment_id)
        profile = self.build_profile(agent.engine, environment.connection_config)
        return profile, self.resolve_secrets(environment)

    def create_adapter(self, data_agent_id: str, environment_id: str) -> BaseConnectionAdapter:
        profile, secrets = self.resolve_connection(data_agent_id, environment_id)
        return create_adapter(profile, secrets)

    # -- operations ------------------------------------------------------

    def discover_tables(self, data_agent_id: str, environment_id: str) -> Result[List[DiscoveredTable]]:
        """
        List the environment's non-system tables

        Connection problems come back as a failed Result; unknown ids,
        unsupported engines and missing credentials raise.
        """
        with log_context(data_agent_id=data_agent_id):
            adapter = self.create_adapter(data_agent_id, environment_id)
            return adapter.discover_tables()

    def test_connection(
        self,
        engine: Any,
        connection_config: Optional[Mapping[str, Any]] = None,
        secrets: SecretsInput = None,
    ) -> ConnectionTestResult:
        """Test explicit settings and credentials before they are saved"""
        profile = self.build_profile(engine, connection_config)
        if not isinstance(secrets, SecretBundle):
            secrets = SecretBundle.from_mapping(dict(secrets or {}))
        result = create_adapter(profile, secrets).test_connection()
        logger.info(
            "Connection test finished",
            extra={"extra_fields": {"engine": profile.engine, "success": result.success}}
        )
        return result

    def test_environment_connection(self, data_agent_id: str, environment_id: str) -> ConnectionTestResult:
        with log_context(data_agent_id=data_agent_id):
            return self.create_adapter(data_agent_id, environment_id).test_connection()

    def sample_rows(
        self,
        data_agent_id: str,
        environment_id: str,
        table_name: str,
        schema_name: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> QueryResult:
        """Read-only preview of a table, at most 100 rows"""
        limit = limit or self.config.introspection.sample_row_limit
        with log_context(data_agent_id=data_agent_id):
            adapter = self.create_adapter(data_agent_id, environment_id)
            return adapter.sample_rows(table_name, schema_name, limit)
