"""
Unit Tests for the Credential Vault
"""
import json
import pytest
from unittest.mock import MagicMock, patch
from pydantic import SecretStr
import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from agent_introspection.config import VaultConfig
from agent_introspection.utils import ConfigurationError, VaultError
from agent_introspection.vault import (
    LocalSecretProvider,
    SecretBundle,
    VaultClient,
    create_secret_provider,
    decode_payload,
    encode_payload,
    is_sensitive_field,
)
from agent_introspection.vault.aws import AWSSecretsManagerProvider
from agent_introspection.vault.hashicorp import HashiCorpVaultProvider


class TestSecretBundle:
    """Tests for SecretBundle"""

    def test_non_string_password_becomes_string(self):
        """Test numeric passwords are stored as strings"""
        bundle = SecretBundle(username="bob", password=12345)
        assert bundle.reveal("password") == "12345"

    def test_aliases(self):
        """Test camelCase keys map onto canonical fields"""
        bundle = SecretBundle.from_mapping({
            "serverHostname": "adb-1.azuredatabricks.net",
            "httpPath": "/sql/1.0/warehouses/abc",
            "accessToken": "dapi123",
        })
        assert bundle.server_hostname == "adb-1.azuredatabricks.net"
        assert bundle.reveal("access_token") == "dapi123"

    def test_secret_values(self):
        """Test only sensitive fields are reported as secrets"""
        bundle = SecretBundle(username="bob", password="pw", project_id="proj")
        assert bundle.secret_values() == ["pw"]

    def test_repr_masks_password(self):
        """Test passwords never appear in repr"""
        bundle = SecretBundle(username="bob", password="hunter2")
        assert "hunter2" not in repr(bundle)
        assert "hunter2" not in str(bundle)

    def test_secret_str_input_unwrapped(self):
        """Test SecretStr values are stored as their plain text"""
        bundle = SecretBundle(access_token=SecretStr("dapi1"), api_key=SecretStr("k1"))
        assert bundle.access_token == "dapi1"
        assert bundle.to_plain_dict()["api_key"] == "k1"

    def test_service_account_dict_serialized(self):
        """Test a service-account document passed as a dict is kept as JSON text"""
        bundle = SecretBundle(service_account_json={"type": "service_account", "project_id": "p"})
        assert json.loads(bundle.reveal("service_account_json"))["project_id"] == "p"

    def test_extra_fields(self):
        """Test unknown fields are kept as strings"""
        bundle = SecretBundle(username="u", password="p", role=7)
        assert bundle.to_plain_dict()["role"] == "7"

    def test_is_empty(self):
        """Test empty detection"""
        assert SecretBundle().is_empty()
        assert not SecretBundle(username="u").is_empty()


class TestPayloadEncoding:
    """Tests for at-rest encoding"""

    def test_sensitive_fields(self):
        """Test field-name heuristics"""
        assert is_sensitive_field("password")
        assert is_sensitive_field("access_token")
        assert is_sensitive_field("service_account_json")
        assert not is_sensitive_field("username")
        assert not is_sensitive_field("http_path")

    def test_password_encoded_at_rest(self):
        """Test sensitive values are not stored in clear text"""
        payload = encode_payload(SecretBundle(username="bob", password="hunter2"))
        assert payload["username"] == "bob"
        assert payload["password"] != "hunter2"
        assert payload["_encoded"] == ["password"]

    def test_decode_restores_values(self):
        """Test decoding restores every field"""
        original = SecretBundle(username="bob", password="p@ss:word", access_token="tok")
        restored = decode_payload(encode_payload(original), "k")
        assert restored.to_plain_dict() == original.to_plain_dict()

    def test_json_document_stays_string(self):
        """Test a decoded service-account document is still a string"""
        doc = json.dumps({"type": "service_account", "private_key": "-----BEGIN"})
        restored = decode_payload(encode_payload(SecretBundle(service_account_json=doc)), "k")
        assert isinstance(restored.reveal("service_account_json"), str)
        assert restored.reveal("service_account_json") == doc

    def test_corrupt_base64(self):
        """Test corrupt payloads raise VaultError"""
        with pytest.raises(VaultError):
            decode_payload({"password": "%%%not-base64", "_encoded": ["password"]}, "k")

    def test_corrupt_json_string(self):
        """Test non-JSON string payloads raise VaultError"""
        with pytest.raises(VaultError):
            decode_payload("{not json", "k")

    def test_unexpected_shape(self):
        """Test list payloads raise VaultError"""
        with pytest.raises(VaultError):
            decode_payload([1, 2], "k")


class TestLocalSecretProvider:
    """Tests for the local provider"""

    def test_round_trip_in_memory(self):
        """Test store then get returns the same strings"""
        provider = LocalSecretProvider()
        provider.store_secret("env-1", SecretBundle(username="bob", password=98765))
        bundle = provider.get_secret("env-1")
        assert bundle.username == "bob"
        assert bundle.reveal("password") == "98765"
        assert isinstance(bundle.reveal("password"), str)

    def test_round_trip_plain_attributes(self):
        """Test username and password read back as plain strings"""
        provider = LocalSecretProvider()
        provider.store_secret("k", SecretBundle(username="u", password="p"))
        bundle = provider.get_secret("k")
        assert bundle.username == "u"
        assert bundle.password == "p"
        assert "'p'" not in repr(bundle)

    def test_unknown_key(self):
        """Test unknown keys return None"""
        assert LocalSecretProvider().get_secret("missing") is None

    def test_store_overwrites(self):
        """Test store is idempotent per key"""
        provider = LocalSecretProvider()
        provider.store_secret("k", SecretBundle(username="a", password="1"))
        provider.store_secret("k", SecretBundle(username="b", password="2"))
        assert provider.get_secret("k").username == "b"

    def test_file_persistence(self, tmp_path):
        """Test secrets survive a new provider on the same file, encoded at rest"""
        path = str(tmp_path / "secrets.json")
        LocalSecretProvider(path).store_secret("k", SecretBundle(username="u", password="hunter2"))

        with open(path, "r", encoding="utf-8") as fh:
            assert "hunter2" not in fh.read()

        assert LocalSecretProvider(path).get_secret("k").reveal("password") == "hunter2"

    def test_corrupt_file(self, tmp_path):
        """Test an unreadable secrets file raises VaultError"""
        path = tmp_path / "secrets.json"
        path.write_text("not json")
        with pytest.raises(VaultError):
            LocalSecretProvider(str(path))

    def test_environment_seed(self):
        """Test SECRET__<KEY> variables are readable"""
        with patch.dict(os.environ, {"SECRET__ENV_42": '{"username": "svc", "password": "pw"}'}):
            bundle = LocalSecretProvider().get_secret("env-42")
        assert bundle.username == "svc"
        assert bundle.reveal("password") == "pw"

    def test_delete(self):
        """Test delete reports whether the key existed"""
        provider = LocalSecretProvider()
        provider.store_secret("k", SecretBundle(username="u"))
        assert provider.delete_secret("k") is True
        assert provider.delete_secret("k") is False


class TestAWSSecretsManagerProvider:
    """Tests for the AWS provider with a mocked boto3 client"""

    @pytest.fixture
    def client(self):
        return MagicMock()

    @pytest.fixture
    def provider(self, client):
        return AWSSecretsManagerProvider(VaultConfig(provider="aws_secrets_manager"), client=client)

    def test_create_secret(self, provider, client):
        """Test new secrets are created under the prefix"""
        provider.store_secret("env-1", SecretBundle(username="u", password="p"))
        kwargs = client.create_secret.call_args.kwargs
        assert kwargs["Name"] == "data-agents/env-1"
        assert json.loads(kwargs["SecretString"])["password"] != "p"

    def test_existing_secret_updated(self, provider, client):
        """Test ResourceExistsException falls back to put_secret_value"""
        error = Exception("exists")
        error.response = {"Error": {"Code": "ResourceExistsException"}}
        client.create_secret.side_effect = error
        provider.store_secret("env-1", SecretBundle(username="u", password="p"))
        client.put_secret_value.assert_called_once()

    def test_not_found_returns_none(self, provider, client):
        """Test ResourceNotFoundException maps to None"""
        error = Exception("missing")
        error.response = {"Error": {"Code": "ResourceNotFoundException"}}
        client.get_secret_value.side_effect = error
        assert provider.get_secret("env-1") is None

    def test_other_errors_raise_vault_error(self, provider, client):
        """Test unexpected backend failures raise VaultError"""
        client.get_secret_value.side_effect = Exception("AccessDenied")
        with pytest.raises(VaultError):
            provider.get_secret("env-1")

    def test_round_trip(self, provider, client):
        """Test values read back as written"""
        stored = {}

        def create_secret(Name, SecretString):
            stored[Name] = SecretString

        client.create_secret.side_effect = create_secret
        client.get_secret_value.side_effect = lambda SecretId: {"SecretString": stored[SecretId]}

        provider.store_secret("env-1", SecretBundle(username="u", password=3.5))
        assert provider.get_secret("env-1").reveal("password") == "3.5"


class TestHashiCorpVaultProvider:
    """Tests for the HashiCorp provider with a mocked requests session"""

    @pytest.fixture
    def config(self):
        return VaultConfig(
            provider="hashicorp_vault",
            vault_url="https://vault.example.com/",
            vault_token="s.abc",
        )

    def test_requires_url_and_token(self):
        """Test missing settings raise ConfigurationError"""
        with pytest.raises(ConfigurationError):
            HashiCorpVaultProvider(VaultConfig(provider="hashicorp_vault"))

    def test_kv2_write_url(self, config):
        """Test KV v2 writes wrap the payload in data"""
        session = MagicMock()
        session.post.return_value = MagicMock(status_code=200)
        provider = HashiCorpVaultProvider(config, session=session)

        provider.store_secret("env-1", SecretBundle(username="u", password="p"))

        url = session.post.call_args.args[0]
        assert url == "https://vault.example.com/v1/secret/data/data-agents/env-1"
        assert "data" in session.post.call_args.kwargs["json"]

    def test_read_not_found(self, config):
        """Test 404 maps to None"""
        session = MagicMock()
        session.get.return_value = MagicMock(status_code=404)
        provider = HashiCorpVaultProvider(config, session=session)
        assert provider.get_secret("env-1") is None

    def test_read_kv2(self, config):
        """Test KV v2 reads unwrap data.data"""
        payload = encode_payload(SecretBundle(username="u", password="p"))
        response = MagicMock(status_code=200)
        response.json.return_value = {"data": {"data": payload, "metadata": {}}}
        session = MagicMock()
        session.get.return_value = response
        provider = HashiCorpVaultProvider(config, session=session)
        assert provider.get_secret("env-1").reveal("password") == "p"

    def test_server_error(self, config):
        """Test HTTP errors raise VaultError"""
        session = MagicMock()
        session.get.return_value = MagicMock(status_code=500)
        provider = HashiCorpVaultProvider(config, session=session)
        with pytest.raises(VaultError):
            provider.get_secret("env-1")


class TestVaultClient:
    """Tests for VaultClient"""

    def test_lazy_init(self):
        """Test the provider is built on first use"""
        client = VaultClient(VaultConfig(provider="local"))
        assert client.has_provider()
        assert client.provider_name == "local"

    def test_no_provider(self):
        """Test provider 'none' disables storage without raising"""
        client = VaultClient(VaultConfig(provider="none"))
        assert not client.has_provider()
        assert client.store_secret("k", {"username": "u"}) is False
        assert client.get_secret("k") is None

    def test_require_secret_missing(self):
        """Test require_secret raises for unknown keys"""
        client = VaultClient(provider=LocalSecretProvider())
        with pytest.raises(VaultError):
            client.require_secret("missing")

    def test_store_credentials(self):
        """Test store_credentials round trip"""
        client = VaultClient(provider=LocalSecretProvider())
        assert client.store_credentials("k", "bob", 4242)
        bundle = client.require_secret("k")
        assert bundle.username == "bob"
        assert bundle.reveal("password") == "4242"

    def test_failed_connection_test_discards_provider(self):
        """Test a provider failing its connection test is dropped"""
        provider = MagicMock()
        provider.test_connection.return_value = False
        with patch("agent_introspection.vault.client.create_secret_provider", return_value=provider):
            client = VaultClient(VaultConfig(provider="local"))
            assert client.init() is False
        assert not client.has_provider()

    def test_create_provider_none(self):
        """Test the factory returns None for 'none'"""
        assert create_secret_provider(VaultConfig(provider="none")) is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
