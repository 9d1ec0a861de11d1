"""
Unit Tests for Configuration
"""
import pytest
from unittest.mock import patch
import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from pydantic import ValidationError

from agent_introspection.config import (
    ConnectionProfile,
    EngineType,
    IntrospectionConfig,
    LLMConfig,
    LLMProvider,
    SystemConfig,
    VaultProviderType,
    resolve_engine,
    get_config,
    set_config,
    reset_config,
)
from agent_introspection.utils import ConfigurationError, UnsupportedEngineError


class TestResolveEngine:
    """Tests for engine tag resolution"""

    def test_known_engines(self):
        """Test every supported tag resolves, case-insensitively"""
        assert resolve_engine("postgresql") == EngineType.POSTGRESQL
        assert resolve_engine(" MySQL ") == EngineType.MYSQL
        assert resolve_engine(EngineType.DATABRICKS) == EngineType.DATABRICKS

    def test_unknown_engine(self):
        """Test unknown tags raise a configuration error"""
        with pytest.raises(UnsupportedEngineError) as exc_info:
            resolve_engine("cassandra")
        assert isinstance(exc_info.value, ConfigurationError)
        assert "cassandra" in exc_info.value.message


class TestConnectionProfile:
    """Tests for ConnectionProfile"""

    def test_from_config_camel_case(self):
        """Test camelCase keys from stored environments are accepted"""
        profile = ConnectionProfile.from_config("postgresql", {
            "host": "db.internal",
            "port": "5433",
            "database": "sales",
            "schemaName": "public",
            "connectionTimeout": 5,
            "sslMode": "require",
        })
        assert profile.engine == "postgresql"
        assert profile.port == 5433
        assert profile.schema_name == "public"
        assert profile.connection_timeout == 5
        assert profile.ssl_mode == "require"

    def test_default_port(self):
        """Test effective port falls back to the engine default"""
        assert ConnectionProfile(engine=EngineType.MYSQL).effective_port == 3306
        assert ConnectionProfile(engine=EngineType.DB2).effective_port == 50000
        assert ConnectionProfile(engine=EngineType.MSSQL, port=1500).effective_port == 1500

    def test_empty_port_is_none(self):
        """Test blank ports from forms become None"""
        profile = ConnectionProfile.from_config("oracle", {"port": ""})
        assert profile.port is None
        assert profile.effective_port == 1521

    def test_watchdog_covers_connect_and_query(self):
        """Test watchdog bound is connect plus query timeout"""
        profile = ConnectionProfile(engine=EngineType.POSTGRESQL, connection_timeout=10, query_timeout=20)
        assert profile.watchdog_seconds == 30.0

    def test_profile_is_frozen(self):
        """Test profiles are immutable"""
        profile = ConnectionProfile(engine=EngineType.SQLITE)
        with pytest.raises(ValidationError):
            profile.host = "elsewhere"

    def test_invalid_timeout_rejected(self):
        """Test out-of-range timeouts fail validation"""
        with pytest.raises(ValidationError):
            ConnectionProfile(engine=EngineType.POSTGRESQL, connection_timeout=0)

    def test_secret_keys_ignored(self):
        """Test credentials in a connection config never land on the profile"""
        profile = ConnectionProfile.from_config("mysql", {"host": "h", "password": "hunter2"})
        assert "hunter2" not in profile.model_dump_json()

    def test_engine_label(self):
        """Test human-readable engine label"""
        assert ConnectionProfile(engine=EngineType.MSSQL).engine_label == "SQL Server"


class TestIntrospectionConfig:
    """Tests for IntrospectionConfig"""

    def test_defaults(self):
        """Test default values"""
        config = IntrospectionConfig()
        assert config.import_workers == 4
        assert config.min_confidence == 0.7
        assert config.large_schema_threshold == 10
        assert config.truncation_warning_ratio == 0.95
        assert config.sample_row_limit == 100

    def test_sample_limit_capped(self):
        """Test sample row limit cannot exceed 100"""
        with pytest.raises(ValidationError):
            IntrospectionConfig(sample_row_limit=500)


class TestSystemConfig:
    """Tests for SystemConfig"""

    def teardown_method(self):
        reset_config()

    def test_from_env(self):
        """Test configuration from environment variables"""
        env = {
            "SECURITY_PROVIDER": "hashicorp_vault",
            "VAULT_URL": "https://vault.example.com",
            "VAULT_TOKEN": "s.token",
            "LLM_PROVIDER": "openai",
            "LLM_API_KEY": "sk-test",
            "LLM_MAX_TOKENS": "8000",
            "IMPORT_WORKERS": "2",
            "DB_CONNECT_TIMEOUT": "7",
            "LOG_LEVEL": "debug",
        }
        with patch.dict(os.environ, env, clear=True):
            config = SystemConfig.from_env(dotenv_path=os.devnull)

        assert config.vault.provider == VaultProviderType.HASHICORP_VAULT.value
        assert config.vault.vault_token.get_secret_value() == "s.token"
        assert config.llm.provider == LLMProvider.OPENAI.value
        assert config.llm.model_id == "gpt-4o"
        assert config.llm.max_tokens == 8000
        assert config.introspection.import_workers == 2
        assert config.default_connect_timeout == 7
        assert config.log_level == "DEBUG"

    def test_from_yaml(self, tmp_path):
        """Test configuration from a YAML document"""
        path = tmp_path / "config.yaml"
        path.write_text(
            "vault:\n"
            "  provider: local\n"
            "llm:\n"
            "  provider: ollama\n"
            "  model_id: llama3\n"
            "introspection:\n"
            "  import_workers: 8\n"
        )
        config = SystemConfig.from_yaml(str(path))
        assert config.llm.provider == "ollama"
        assert config.llm.model_id == "llama3"
        assert config.introspection.import_workers == 8

    def test_llm_secret_masked(self):
        """Test API keys are masked in dumps"""
        config = LLMConfig(api_key="sk-secret")
        assert "sk-secret" not in str(config)

    def test_global_config(self):
        """Test set_config/get_config round trip"""
        config = SystemConfig(default_connect_timeout=3)
        set_config(config)
        assert get_config() is config


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
