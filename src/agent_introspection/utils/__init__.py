"""
Utilities Package: logging, errors and metrics
"""
from .logging import (
    setup_logging,
    get_logger,
    set_correlation_id,
    get_correlation_id,
    clear_context,
    log_context,
    log_operation,
    register_secret_values,
    release_secret_values,
    SecretRedactionFilter,
)

from .errors import (
    ErrorSeverity,
    ErrorCategory,
    ErrorContext,
    IntrospectionError,
    ConfigurationError,
    UnsupportedEngineError,
    DriverNotInstalledError,
    ConnectivityError,
    ProtocolError,
    ConnectionTimeoutError,
    AuthenticationError,
    VaultError,
    ModelInvocationError,
    ParseError,
    NotFoundError,
    classify_driver_error,
    redact_secrets,
)

from .metrics import (
    MetricsCollector,
    get_metrics_collector,
    IntrospectionMetrics,
)

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    "set_correlation_id",
    "get_correlation_id",
    "clear_context",
    "log_context",
    "log_operation",
    "register_secret_values",
    "release_secret_values",
    "SecretRedactionFilter",
    # Errors
    "ErrorSeverity",
    "ErrorCategory",
    "ErrorContext",
    "IntrospectionError",
    "ConfigurationError",
    "UnsupportedEngineError",
    "DriverNotInstalledError",
    "ConnectivityError",
    "ProtocolError",
    "ConnectionTimeoutError",
    "AuthenticationError",
    "VaultError",
    "ModelInvocationError",
    "ParseError",
    "NotFoundError",
    "classify_driver_error",
    "redact_secrets",
    # Metrics
    "MetricsCollector",
    "get_metrics_collector",
    "IntrospectionMetrics",
]
