"""
Configuration Management for the Data Agent Introspection subsystem
Uses Pydantic for validation and type safety
"""
from __future__ import annotations

import os
from enum import Enum
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr, field_validator


class EngineType(str, Enum):
    """Supported external engines"""
    POSTGRESQL = "postgresql"
    MYSQL = "mysql"
    MSSQL = "mssql"
    DB2 = "db2"
    ORACLE = "oracle"
    SQLITE = "sqlite"
    BIGQUERY = "bigquery"
    DATABRICKS = "databricks"


ENGINE_LABELS: Dict[str, str] = {
    EngineType.POSTGRESQL.value: "PostgreSQL",
    EngineType.MYSQL.value: "MySQL",
    EngineType.MSSQL.value: "SQL Server",
    EngineType.DB2.value: "DB2",
    EngineType.ORACLE.value: "Oracle",
    EngineType.SQLITE.value: "SQLite",
    EngineType.BIGQUERY.value: "BigQuery",
    EngineType.DATABRICKS.value: "Databricks",
}

DEFAULT_PORTS: Dict[str, int] = {
    EngineType.POSTGRESQL.value: 5432,
    EngineType.MYSQL.value: 3306,
    EngineType.MSSQL.value: 1433,
    EngineType.DB2.value: 50000,
    EngineType.ORACLE.value: 1521,
    EngineType.SQLITE.value: 0,
    EngineType.BIGQUERY.value: 443,
    EngineType.DATABRICKS.value: 443,
}


class SSLMode(str, Enum):
    """Transport security modes understood by the wire-protocol adapters"""
    DISABLE = "disable"
    REQUIRE = "require"
    VERIFY_CA = "verify-ca"
    VERIFY_FULL = "verify-full"


class VaultProviderType(str, Enum):
    """Supported secret backends"""
    NONE = "none"
    LOCAL = "local"
    AWS_SECRETS_MANAGER = "aws_secrets_manager"
    HASHICORP_VAULT = "hashicorp_vault"


class LLMProvider(str, Enum):
    """Supported LLM providers"""
    BEDROCK_CLAUDE = "bedrock_claude"
    OPENAI = "openai"
    OLLAMA = "ollama"


class LogLevel(str, Enum):
    """Log levels"""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


# camelCase keys accepted from stored environment configs
_PROFILE_KEY_ALIASES: Dict[str, str] = {
    "schema": "schema_name",
    "schemaName": "schema_name",
    "sslMode": "ssl_mode",
    "sslCaPath": "ssl_ca_path",
    "connectionTimeout": "connection_timeout",
    "queryTimeout": "query_timeout",
    "projectId": "project_id",
    "datasetId": "dataset",
    "serverHostname": "server_hostname",
    "httpPath": "http_path",
    "warehouseId": "warehouse_id",
    "serviceName": "service_name",
    "instanceName": "instance",
    "sqlitePath": "sqlite_path",
    "trustServerCertificate": "trust_server_certificate",
    "odbcDriver": "odbc_driver",
}


def resolve_engine(engine: Any) -> EngineType:
    """Map a raw engine tag onto the closed set of supported engines"""
    from .utils.errors import UnsupportedEngineError

    if isinstance(engine, EngineType):
        return engine
    try:
        return EngineType(str(engine).strip().lower())
    except ValueError:
        raise UnsupportedEngineError(str(engine))


class ConnectionProfile(BaseModel):
    """
    Non-secret addressing information for one external database

    Credentials never live here; they are resolved separately from the vault.
    """
    engine: EngineType
    host: str = "localhost"
    port: Optional[int] = Field(default=None, ge=0, le=65535)
    database: str = ""
    schema_name: Optional[str] = None
    ssl_mode: SSLMode = SSLMode.DISABLE
    ssl_ca_path: Optional[str] = None
    connection_timeout: int = Field(default=15, ge=1, le=300)
    query_timeout: int = Field(default=30, ge=1, le=600)

    # Warehouse / lakehouse addressing
    project_id: Optional[str] = None
    dataset: Optional[str] = None
    server_hostname: Optional[str] = None
    http_path: Optional[str] = None
    warehouse_id: Optional[str] = None
    catalog: Optional[str] = None

    # Engine specific
    service_name: Optional[str] = None
    instance: Optional[str] = None
    sqlite_path: Optional[str] = None
    encrypt: bool = False
    trust_server_certificate: bool = False
    odbc_driver: str = "ODBC Driver 18 for SQL Server"

    model_config = {"use_enum_values": True, "frozen": True, "extra": "ignore"}

    @field_validator("port", mode="before")
    @classmethod
    def coerce_port(cls, v: Any) -> Any:
        if v in ("", None):
            return None
        return int(v)

    @property
    def engine_label(self) -> str:
        return ENGINE_LABELS.get(self.engine, str(self.engine))

    @property
    def effective_port(self) -> int:
        if self.port:
            return self.port
        return DEFAULT_PORTS.get(self.engine, 0)

    @property
    def watchdog_seconds(self) -> float:
        """Outer bound for any single adapter operation"""
        return float(self.connection_timeout + self.query_timeout)

    @classmethod
    def from_config(cls, engine: Any, config: Optional[Mapping[str, Any]] = None) -> "ConnectionProfile":
        """
        Build a profile from a stored environment configuration

        Accepts both snake_case and the camelCase keys used by the admin
        portal. Secret-bearing keys are ignored.
        """
        data: Dict[str, Any] = {}
        for key, value in (config or {}).items():
            data[_PROFILE_KEY_ALIASES.get(key, key)] = value
        data["engine"] = resolve_engine(engine)
        return cls(**data)


class VaultConfig(BaseModel):
    """Credential vault configuration"""
    provider: VaultProviderType = VaultProviderType.LOCAL
    local_secrets_file: Optional[str] = None
    env_prefix: str = "SECRET__"

    # AWS Secrets Manager
    aws_region: str = "us-east-1"
    aws_secret_prefix: str = "data-agents/"

    # HashiCorp Vault
    vault_url: Optional[str] = None
    vault_token: Optional[SecretStr] = None
    vault_namespace: Optional[str] = None
    vault_mount: str = "secret"
    vault_path: str = "data-agents"
    vault_kv_version: int = Field(default=2, ge=1, le=2)
    vault_skip_verify: bool = False
    vault_ca_cert: Optional[str] = None
    request_timeout: int = Field(default=10, ge=1, le=120)

    model_config = {"use_enum_values": True}


class LLMConfig(BaseModel):
    """Language model configuration"""
    provider: LLMProvider = LLMProvider.BEDROCK_CLAUDE
    model_id: str = "anthropic.claude-3-5-sonnet-20241022-v2:0"
    aws_region: str = "us-east-1"
    aws_access_key_id: Optional[SecretStr] = None
    aws_secret_access_key: Optional[SecretStr] = None
    aws_session_token: Optional[SecretStr] = None
    api_key: Optional[SecretStr] = None
    base_url: Optional[str] = None
    max_tokens: int = Field(default=10000, ge=100, le=100000)
    temperature: float = Field(default=0.1, ge=0.0, le=1.0)
    top_p: float = Field(default=0.9, ge=0.0, le=1.0)
    retry_attempts: int = Field(default=3, ge=1, le=10)
    retry_delay: float = Field(default=1.0, ge=0.1, le=30.0)
    request_timeout: int = Field(default=120, ge=10, le=600)

    model_config = {"use_enum_values": True}


class IntrospectionConfig(BaseModel):
    """Discovery, import and inference tuning"""
    import_workers: int = Field(default=4, ge=1, le=32)
    sample_row_limit: int = Field(default=100, ge=1, le=100)
    min_confidence: float = Field(default=0.7, ge=0.0, le=1.0)
    large_schema_threshold: int = Field(default=10, ge=1)
    truncation_warning_ratio: float = Field(default=0.95, gt=0.0, le=1.0)
    min_tables_for_analysis: int = Field(default=2, ge=2)


class MetricsConfig(BaseModel):
    """Metrics configuration"""
    enabled: bool = True


class SystemConfig(BaseModel):
    """Main system configuration"""
    vault: VaultConfig = Field(default_factory=VaultConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    introspection: IntrospectionConfig = Field(default_factory=IntrospectionConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    default_connect_timeout: int = Field(default=15, ge=1, le=300)
    log_level: LogLevel = LogLevel.INFO
    log_json: bool = False
    log_file: Optional[str] = None
    debug_mode: bool = False

    model_config = {"use_enum_values": True}

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "SystemConfig":
        """Create configuration from environment variables (and a .env file if present)"""
        load_dotenv(dotenv_path)

        vault_token = os.getenv("VAULT_TOKEN")
        vault_config = VaultConfig(
            provider=VaultProviderType(os.getenv("SECURITY_PROVIDER", "local")),
            local_secrets_file=os.getenv("LOCAL_SECRETS_FILE"),
            aws_region=os.getenv("AWS_REGION", "us-east-1"),
            aws_secret_prefix=os.getenv("AWS_SECRET_PREFIX", "data-agents/"),
            vault_url=os.getenv("VAULT_URL"),
            vault_token=SecretStr(vault_token) if vault_token else None,
            vault_namespace=os.getenv("VAULT_NAMESPACE"),
            vault_mount=os.getenv("VAULT_MOUNT", "secret"),
            vault_path=os.getenv("VAULT_PATH", "data-agents"),
            vault_kv_version=int(os.getenv("VAULT_KV_VERSION", "2")),
            vault_skip_verify=os.getenv("VAULT_SKIP_VERIFY", "false").lower() == "true",
            vault_ca_cert=os.getenv("VAULT_CACERT"),
        )

        api_key = os.getenv("LLM_API_KEY")
        provider = LLMProvider(os.getenv("LLM_PROVIDER", "bedrock_claude"))
        default_model = (
            "anthropic.claude-3-5-sonnet-20241022-v2:0"
            if provider == LLMProvider.BEDROCK_CLAUDE
            else "gpt-4o"
        )
        llm_config = LLMConfig(
            provider=provider,
            model_id=os.getenv("LLM_MODEL") or os.getenv("BEDROCK_MODEL_ID") or default_model,
            aws_region=os.getenv("AWS_REGION", "us-east-1"),
            api_key=SecretStr(api_key) if api_key else None,
            base_url=os.getenv("LLM_BASE_URL"),
            max_tokens=int(os.getenv("LLM_MAX_TOKENS", "10000")),
            temperature=float(os.getenv("LLM_TEMPERATURE", "0.1")),
        )

        introspection_config = IntrospectionConfig(
            import_workers=int(os.getenv("IMPORT_WORKERS", "4")),
        )

        return cls(
            vault=vault_config,
            llm=llm_config,
            introspection=introspection_config,
            default_connect_timeout=int(os.getenv("DB_CONNECT_TIMEOUT", "15")),
            log_level=LogLevel(os.getenv("LOG_LEVEL", "INFO").upper()),
            log_json=os.getenv("LOG_JSON", "false").lower() == "true",
            log_file=os.getenv("LOG_FILE"),
            debug_mode=os.getenv("DEBUG_MODE", "false").lower() == "true",
        )

    @classmethod
    def from_yaml(cls, path: str) -> "SystemConfig":
        """Load configuration from a YAML document"""
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
        return cls(**data)


# Global configuration instance
_config: Optional[SystemConfig] = None


def get_config() -> SystemConfig:
    """Get the global configuration instance"""
    global _config
    if _config is None:
        _config = SystemConfig.from_env()
    return _config


def set_config(config: SystemConfig) -> None:
    """Set the global configuration instance"""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global configuration instance"""
    global _config
    _config = None
