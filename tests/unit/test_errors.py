"""
Unit Tests for Error Handling
"""
import pytest
import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from agent_introspection.utils import (
    AuthenticationError,
    ConfigurationError,
    ConnectionTimeoutError,
    ConnectivityError,
    DriverNotInstalledError,
    ErrorCategory,
    IntrospectionError,
    NotFoundError,
    ProtocolError,
    VaultError,
    classify_driver_error,
    redact_secrets,
)


class TestErrorTaxonomy:
    """Tests for the exception hierarchy"""

    def test_to_dict(self):
        """Test error serialization"""
        error = ConfigurationError("Missing host", config_key="host")
        data = error.to_dict()
        assert data["error_type"] == "ConfigurationError"
        assert data["category"] == "configuration"
        assert data["recoverable"] is False
        assert any("host" in s for s in data["suggestions"])

    def test_str_includes_category(self):
        """Test string form carries the category"""
        assert str(VaultError("boom")) == "[vault] boom"

    def test_not_found(self):
        """Test NotFoundError message"""
        error = NotFoundError("Environment", "env-1")
        assert error.message == "Environment not found: env-1"
        assert error.category == ErrorCategory.NOT_FOUND

    def test_driver_not_installed(self):
        """Test missing driver hint names the package and extra"""
        error = DriverNotInstalledError("DB2", "ibm_db", "db2")
        assert isinstance(error, ConfigurationError)
        assert "ibm_db" in error.message
        assert any("[db2]" in s for s in error.suggestions)

    def test_timeout_is_connectivity(self):
        """Test timeouts are connectivity errors with their own category"""
        error = ConnectionTimeoutError("slow", timeout_seconds=5)
        assert isinstance(error, ConnectivityError)
        assert error.category == ErrorCategory.TIMEOUT
        assert error.timeout_seconds == 5


class TestRedaction:
    """Tests for secret scrubbing"""

    def test_known_values_removed(self):
        """Test registered secret values are masked"""
        text = redact_secrets("login failed for user bob using hunter2", ["hunter2"])
        assert "hunter2" not in text
        assert "***" in text

    def test_inline_credentials_removed(self):
        """Test key=value credentials are masked without knowing the value"""
        text = redact_secrets("DATABASE=x;UID=bob;PWD=s3cret;PORT=50000")
        assert "s3cret" not in text
        assert "PORT=50000" in text

    def test_longest_secret_first(self):
        """Test overlapping secrets are fully masked"""
        text = redact_secrets("abcd abcdefgh", ["abcd", "abcdefgh"])
        assert text == "*** ***"

    def test_short_secret_not_masked_literally(self):
        """Test one or two character secrets leave the message readable"""
        text = redact_secrets("connection refused on port 5432 (a=1)", ["a", "5"])
        assert text == "connection refused on port 5432 (a=1)"

    def test_short_secret_inline_still_masked(self):
        """Test a short password is still masked when written as key=value"""
        text = redact_secrets("UID=bob;PWD=x;PORT=1", ["x"])
        assert text == "UID=bob;PWD=***;PORT=1"


class TestClassifyDriverError:
    """Tests for driver error classification"""

    def test_authentication(self):
        """Test password failures become AuthenticationError"""
        error = classify_driver_error(
            Exception('FATAL: password authentication failed for user "bob"'),
            "PostgreSQL", "db", 5432,
        )
        assert isinstance(error, AuthenticationError)
        assert "PostgreSQL at db:5432" in error.message

    def test_network(self):
        """Test refused connections become ConnectivityError"""
        error = classify_driver_error(Exception("Connection refused"), "MySQL", "db", 3306)
        assert type(error) is ConnectivityError
        assert error.category == ErrorCategory.NETWORK

    def test_timeout(self):
        """Test timeouts are recognized"""
        error = classify_driver_error(Exception("timeout expired"), "PostgreSQL", "db", 5432)
        assert isinstance(error, ConnectionTimeoutError)

    def test_protocol(self):
        """Test TLS failures become ProtocolError"""
        error = classify_driver_error(Exception("SSL negotiation packet rejected"), "PostgreSQL", "db", 5432)
        assert isinstance(error, ProtocolError)

    def test_db2_communication_error(self):
        """Test SQL30081N carries DB2-specific hints"""
        error = classify_driver_error(
            Exception("SQL30081N A communication error has been detected. Function: selectForConnectTimeout"),
            "DB2", "db2host", 50000,
        )
        assert type(error) is ConnectivityError
        assert any("DB2COMM" in s for s in error.suggestions)

    def test_db2_security_error(self):
        """Test SQL30082N is an authentication failure"""
        error = classify_driver_error(
            Exception("SQL30082N Security processing failed with reason 24"), "DB2", "db2host", 50000
        )
        assert isinstance(error, AuthenticationError)

    def test_secrets_scrubbed(self):
        """Test secret values never appear in classified messages"""
        error = classify_driver_error(
            Exception("access denied for bob with password hunter2"),
            "MySQL", "db", 3306, secrets=["hunter2"],
        )
        assert "hunter2" not in error.message

    def test_unclassified(self):
        """Test unknown failures keep the database category"""
        error = classify_driver_error(ValueError("weird"), "Oracle", "db", 1521)
        assert type(error) is IntrospectionError
        assert error.category == ErrorCategory.DATABASE

    def test_passthrough(self):
        """Test taxonomy errors are returned unchanged"""
        original = VaultError("x")
        assert classify_driver_error(original, "MySQL") is original


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
