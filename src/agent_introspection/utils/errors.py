"""
Error Handling Module for the introspection subsystem
Defines the error taxonomy and driver-error classification
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional


class ErrorSeverity(str, Enum):
    """Error severity levels"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """Error categories for classification"""
    CONFIGURATION = "configuration"
    DATABASE = "database"
    NETWORK = "network"
    PROTOCOL = "protocol"
    TIMEOUT = "timeout"
    AUTHENTICATION = "authentication"
    VAULT = "vault"
    LLM = "llm"
    PARSE = "parse"
    NOT_FOUND = "not_found"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Additional context for errors"""
    correlation_id: Optional[str] = None
    request_id: Optional[str] = None
    data_agent_id: Optional[str] = None
    environment_id: Optional[str] = None
    engine: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = None
    operation: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "correlation_id": self.correlation_id,
            "request_id": self.request_id,
            "data_agent_id": self.data_agent_id,
            "environment_id": self.environment_id,
            "engine": self.engine,
            "host": self.host,
            "port": self.port,
            "operation": self.operation,
            "timestamp": self.timestamp.isoformat(),
            "metadata": self.metadata,
        }


class IntrospectionError(Exception):
    """Base exception for the introspection subsystem"""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.INTERNAL,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        context: Optional[ErrorContext] = None,
        recoverable: bool = True,
        suggestions: Optional[List[str]] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.recoverable = recoverable
        self.suggestions = suggestions or []
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "recoverable": self.recoverable,
            "suggestions": self.suggestions,
            "context": self.context.to_dict(),
        }

    def __str__(self) -> str:
        return f"[{self.category.value}] {self.message}"


class ConfigurationError(IntrospectionError):
    """Missing or invalid configuration; always raised before any network call"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        suggestions: Optional[List[str]] = None,
        context: Optional[ErrorContext] = None,
        original_error: Optional[Exception] = None
    ):
        hints = list(suggestions or ["Review the connection configuration"])
        if config_key:
            hints.append(f"Check configuration for key: {config_key}")
        super().__init__(
            message=message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.HIGH,
            context=context,
            recoverable=False,
            suggestions=hints,
            original_error=original_error
        )
        self.config_key = config_key


class UnsupportedEngineError(ConfigurationError):
    """Engine tag outside the supported set"""

    def __init__(self, engine: str, context: Optional[ErrorContext] = None):
        super().__init__(
            message=f"Unsupported database engine: {engine}",
            config_key="engine",
            suggestions=[
                "Use one of: postgresql, mysql, mssql, db2, oracle, sqlite, bigquery, databricks"
            ],
            context=context,
        )
        self.engine = engine


class DriverNotInstalledError(ConfigurationError):
    """The Python driver for an engine is not importable"""

    def __init__(self, engine: str, package: str, extra: Optional[str] = None):
        hint = f"pip install {package}"
        if extra:
            hint = f"{hint} (or pip install data-agent-introspection[{extra}])"
        super().__init__(
            message=f"{engine} driver is not installed: {package} is required",
            suggestions=[f"Install it with: {hint}"],
        )
        self.package = package


class ConnectivityError(IntrospectionError):
    """Unreachable host or broken transport; never retried automatically"""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.NETWORK,
        suggestions: Optional[List[str]] = None,
        context: Optional[ErrorContext] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(
            message=message,
            category=category,
            severity=ErrorSeverity.HIGH,
            context=context,
            recoverable=True,
            suggestions=suggestions or [
                "Check database host and port configuration",
                "Ensure the database server is running",
                "Check network connectivity and firewall rules",
            ],
            original_error=original_error
        )


class ProtocolError(ConnectivityError):
    """TLS or wire-protocol negotiation failure"""

    def __init__(
        self,
        message: str,
        context: Optional[ErrorContext] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.PROTOCOL,
            suggestions=[
                "Verify the SSL mode matches the server configuration",
                "Check that the port belongs to the selected engine",
            ],
            context=context,
            original_error=original_error,
        )


class ConnectionTimeoutError(ConnectivityError):
    """Operation exceeded its time bound"""

    def __init__(
        self,
        message: str,
        timeout_seconds: Optional[float] = None,
        context: Optional[ErrorContext] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.TIMEOUT,
            suggestions=[
                "Check that the host is reachable from this network",
                "Increase connection_timeout if the server is slow to respond",
            ],
            context=context,
            original_error=original_error,
        )
        self.timeout_seconds = timeout_seconds


class AuthenticationError(IntrospectionError):
    """Credentials rejected by the remote engine"""

    def __init__(
        self,
        message: str,
        context: Optional[ErrorContext] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.AUTHENTICATION,
            severity=ErrorSeverity.HIGH,
            context=context,
            recoverable=False,
            suggestions=[
                "Verify the username and password",
                "Check that the user has access to the database",
            ],
            original_error=original_error
        )


class VaultError(IntrospectionError):
    """Secret store unavailable, corrupt, or missing a required secret"""

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        context: Optional[ErrorContext] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.VAULT,
            severity=ErrorSeverity.CRITICAL,
            context=context,
            recoverable=False,
            suggestions=[
                "Check SECURITY_PROVIDER and the vault connection settings",
                "Re-save the environment credentials",
            ],
            original_error=original_error
        )
        self.key = key


class ModelInvocationError(IntrospectionError):
    """Language model call failed"""

    def __init__(
        self,
        message: str,
        model_id: Optional[str] = None,
        context: Optional[ErrorContext] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.LLM,
            severity=ErrorSeverity.HIGH,
            context=context,
            recoverable=True,
            suggestions=[
                "Check LLM credentials and model availability",
                "Check for rate limiting",
            ],
            original_error=original_error
        )
        self.model_id = model_id


class ParseError(IntrospectionError):
    """Structured model output could not be recovered"""

    def __init__(
        self,
        message: str,
        raw_text: Optional[str] = None,
        stages: Optional[List[str]] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.PARSE,
            severity=ErrorSeverity.LOW,
            recoverable=True,
            original_error=original_error
        )
        self.raw_text = raw_text
        self.stages = stages or []


class NotFoundError(IntrospectionError):
    """Unknown data agent, environment or table"""

    def __init__(self, resource: str, identifier: str, context: Optional[ErrorContext] = None):
        super().__init__(
            message=f"{resource} not found: {identifier}",
            category=ErrorCategory.NOT_FOUND,
            severity=ErrorSeverity.LOW,
            context=context,
            recoverable=False,
        )
        self.resource = resource
        self.identifier = identifier


REDACTED = "***"

# Shorter values match ordinary words and punctuation; only inline key=value masking applies
MIN_LITERAL_SECRET_LENGTH = 4

_INLINE_SECRET_PATTERN = re.compile(
    r"(?i)\b(password|passwd|pwd|token|secret|api[_-]?key)(\s*[=:]\s*)('[^']*'|\"[^\"]*\"|[^\s;,&]+)"
)


def redact_secrets(text: str, secrets: Iterable[Optional[str]] = ()) -> str:
    """Replace known secret values and inline key=value credentials with a mask"""
    if not text:
        return text
    for value in sorted(
        (s for s in secrets if s and len(s) >= MIN_LITERAL_SECRET_LENGTH), key=len, reverse=True
    ):
        text = text.replace(value, REDACTED)
    return _INLINE_SECRET_PATTERN.sub(lambda m: f"{m.group(1)}{m.group(2)}{REDACTED}", text)


_AUTH_PATTERNS = [
    "password authentication failed",
    "authentication failed",
    "access denied",
    "login failed",
    "invalid username/password",
    "invalid credentials",
    "ora-01017",
    "sql30082n",
    "security processing failed",
    "unauthorized",
    "invalid access token",
    "permission denied",
    "28000",
]

_TIMEOUT_PATTERNS = ["timed out", "timeout expired", "timeout", "deadline exceeded"]

_PROTOCOL_PATTERNS = ["ssl", "tls", "handshake", "certificate", "protocol"]

_NETWORK_PATTERNS = [
    "connection refused",
    "could not connect",
    "can't connect",
    "could not translate host",
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo",
    "no route to host",
    "network is unreachable",
    "unreachable",
    "econnrefused",
    "sql30081n",
    "ora-12541",
    "ora-12514",
    "server does not exist",
    "unable to open database",
    "connection reset",
]

_DB2_COMMUNICATION_HINTS = [
    "Verify that DB2 is listening on the configured port (default 50000)",
    "Ensure TCP/IP is enabled on the instance: db2set DB2COMM=TCPIP",
    "Check firewall rules between this host and the DB2 server",
    "Confirm the database name is catalogued on the server",
]


def _describe_target(engine: str, host: Optional[str], port: Optional[int]) -> str:
    if host and port:
        return f"{engine} at {host}:{port}"
    if host:
        return f"{engine} at {host}"
    return engine


def classify_driver_error(
    error: Exception,
    engine: str,
    host: Optional[str] = None,
    port: Optional[int] = None,
    secrets: Iterable[Optional[str]] = ()
) -> IntrospectionError:
    """
    Classify a raw driver exception into the error taxonomy

    The returned error message names the engine, host and port and never
    contains any of the given secret values.
    """
    if isinstance(error, IntrospectionError):
        return error

    secrets = list(secrets)
    detail = redact_secrets(str(error) or type(error).__name__, secrets)
    lowered = detail.lower()
    target = _describe_target(engine, host, port)
    context = ErrorContext(engine=engine, host=host, port=port)

    if any(p in lowered for p in _AUTH_PATTERNS):
        return AuthenticationError(
            message=f"Authentication failed for {target}: {detail}",
            context=context,
            original_error=error,
        )

    # DB2 communication errors name socket functions such as selectForConnectTimeout
    if "sql30081n" in lowered:
        return ConnectivityError(
            message=f"Communication error reaching {target}: {detail}",
            suggestions=_DB2_COMMUNICATION_HINTS,
            context=context,
            original_error=error,
        )

    if any(p in lowered for p in _TIMEOUT_PATTERNS):
        return ConnectionTimeoutError(
            message=f"Connection to {target} timed out: {detail}",
            context=context,
            original_error=error,
        )

    if any(p in lowered for p in _NETWORK_PATTERNS):
        return ConnectivityError(
            message=f"Cannot reach {target}: {detail}",
            context=context,
            original_error=error,
        )

    if any(p in lowered for p in _PROTOCOL_PATTERNS):
        return ProtocolError(
            message=f"Protocol negotiation with {target} failed: {detail}",
            context=context,
            original_error=error,
        )

    return IntrospectionError(
        message=f"{target} error: {detail}",
        category=ErrorCategory.DATABASE,
        context=context,
        original_error=error,
    )
