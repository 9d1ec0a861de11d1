"""
Introspection Service
Facade the HTTP layer calls into: connection tests, discovery, import,
relationship analysis and credential storage
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Union

from .adapters import ConnectionTestResult, DiscoveredTable, QueryResult, Result
from .config import SystemConfig, get_config
from .inference import ColumnAnalyzer, RelationshipInferenceEngine
from .introspection import ImportResult, SchemaIntrospector, TableImportPipeline
from .llm_client import BaseLLMClient, get_llm_client
from .storage import InMemoryMetadataRepository, MetadataRepository
from .utils import NotFoundError, VaultError, get_logger, get_metrics_collector, setup_logging
from .vault import SecretBundle, VaultClient

logger = get_logger(__name__)


class IntrospectionService:
    """
    Wires the introspector, import pipeline and inference engine together

    Example:
        service = create_service(repository=repo)
        result = service.discover_tables(agent_id, env_id)
        if result.ok:
            service.import_tables(agent_id, env_id, [t.name for t in result.value])
    """

    def __init__(
        self,
        repository: MetadataRepository,
        vault: VaultClient,
        config: Optional[SystemConfig] = None,
        llm_client: Optional[BaseLLMClient] = None,
    ):
        self.config = config or get_config()
        self.repository = repository
        self.vault = vault
        self.introspector = SchemaIntrospector(repository, vault, self.config)
        self.pipeline = TableImportPipeline(self.introspector, repository, self.config.introspection)
        self._llm_client = llm_client
        self._inference: Optional[RelationshipInferenceEngine] = None
        self._column_analyzer: Optional[ColumnAnalyzer] = None

    @property
    def llm_client(self) -> BaseLLMClient:
        """Get or create the model client"""
        if self._llm_client is None:
            self._llm_client = get_llm_client(self.config.llm)
        return self._llm_client

    @property
    def inference(self) -> RelationshipInferenceEngine:
        if self._inference is None:
            self._inference = RelationshipInferenceEngine(
                self.llm_client,
                self.repository,
                config=self.config.introspection,
                max_tokens=self.config.llm.max_tokens,
                temperature=self.config.llm.temperature,
            )
        return self._inference

    @property
    def column_analyzer(self) -> ColumnAnalyzer:
        if self._column_analyzer is None:
            self._column_analyzer = ColumnAnalyzer(self.llm_client, self.repository)
        return self._column_analyzer

    def test_connection(
        self,
        engine: Any,
        connection_config: Optional[Mapping[str, Any]] = None,
        secret_bundle: Union[SecretBundle, Mapping[str, Any], None] = None,
    ) -> ConnectionTestResult:
        return self.introspector.test_connection(engine, connection_config, secret_bundle)

    def test_environment_connection(self, data_agent_id: str, environment_id: str) -> ConnectionTestResult:
        return self.introspector.test_environment_connection(data_agent_id, environment_id)

    def discover_tables(self, data_agent_id: str, environment_id: str) -> Result[List[DiscoveredTable]]:
        return self.introspector.discover_tables(data_agent_id, environment_id)

    def import_tables(self, data_agent_id: str, environment_id: str, table_names: List[str]) -> List[ImportResult]:
        return self.pipeline.import_tables(data_agent_id, environment_id, table_names)

    def sample_rows(
        self,
        data_agent_id: str,
        environment_id: str,
        table_name: str,
        schema_name: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> QueryResult:
        return self.introspector.sample_rows(data_agent_id, environment_id, table_name, schema_name, limit)

    def analyze_relationships(self, data_agent_id: str, environment_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Ask the model for relationships between the agent's imported tables

        Returns:
            {analysis_text, relationships_created, total_suggestions, usage}
        """
        outcome = self.inference.analyze(data_agent_id, environment_id)
        return {
            "analysis_text": outcome.analysis_text,
            "relationships_created": outcome.relationships_created,
            "total_suggestions": outcome.total_suggestions,
            "usage": dict(outcome.usage),
        }

    def analyze_table_columns(
        self,
        data_agent_id: str,
        environment_id: str,
        table_id: str,
        custom_prompt: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Summarize each column of an imported table into its metadata

        Sample values come from a live read of the table. When the sample
        cannot be read the columns are analyzed from name and type alone.

        Raises:
            NotFoundError: Unknown agent, environment or table
        """
        self.introspector.resolve_environment(data_agent_id, environment_id)
        table = next(
            (t for t in self.repository.list_tables(data_agent_id, environment_id) if t.id == table_id),
            None,
        )
        if table is None:
            raise NotFoundError("Table", table_id)

        sample = self.introspector.sample_rows(
            data_agent_id, environment_id, table.table_name, table.schema_name
        )
        if not sample.success:
            logger.warning(
                "Sample rows unavailable; analyzing columns without samples",
                extra={"extra_fields": {"table": table.qualified_name, "error": sample.error_message}}
            )
        return self.column_analyzer.analyze_table(table, sample, custom_prompt).to_dict()

    def store_credentials(self, environment_id: str, bundle: Union[SecretBundle, Mapping[str, Any]]) -> str:
        """
        Store an environment's credentials and return the vault key used

        The key is the environment's existing vault key, or ``env-<id>`` for
        an environment that has none yet; callers persist it on the
        environment.

        Raises:
            NotFoundError: Unknown environment
            VaultError: No provider configured or the write failed
        """
        environment = self.repository.get_environment(environment_id)
        if environment is None:
            raise NotFoundError("Environment", environment_id)
        key = environment.vault_key or f"env-{environment_id}"
        if not self.vault.store_secret(key, bundle):
            raise VaultError(f"Failed to store credentials for environment {environment_id}", key=key)
        logger.info(
            "Stored environment credentials",
            extra={"extra_fields": {"environment_id": environment_id, "provider": self.vault.provider_name}}
        )
        return key

    def health_check(self) -> Dict[str, Any]:
        """Vault and model reachability"""
        health: Dict[str, Any] = {
            "status": "healthy",
            "components": {},
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        vault_ok = self.vault.has_provider()
        health["components"]["vault"] = {
            "status": "healthy" if vault_ok else "unhealthy",
            "provider": self.vault.provider_name,
        }

        try:
            llm_ok = self.llm_client.health_check()
            health["components"]["llm"] = {"status": "healthy" if llm_ok else "unhealthy"}
        except Exception as e:
            llm_ok = False
            health["components"]["llm"] = {"status": "unhealthy", "error": str(e)}

        collector = get_metrics_collector()
        if collector.enabled:
            health["metrics"] = collector.snapshot()["counters"]

        if not (vault_ok and llm_ok):
            health["status"] = "unhealthy"
        return health


def create_service(
    config: Optional[SystemConfig] = None,
    repository: Optional[MetadataRepository] = None,
    vault: Optional[VaultClient] = None,
    llm_client: Optional[BaseLLMClient] = None,
) -> IntrospectionService:
    """
    Build a service from configuration

    Without a repository an in-memory store is used, which suits tests and
    local experiments only.
    """
    config = config or get_config()
    setup_logging(level=config.log_level, json_format=config.log_json, log_file=config.log_file)

    collector = get_metrics_collector()
    if config.metrics.enabled:
        collector.enable()
    else:
        collector.disable()

    return IntrospectionService(
        repository=repository or InMemoryMetadataRepository(),
        vault=vault or VaultClient(config.vault),
        config=config,
        llm_client=llm_client,
    )
