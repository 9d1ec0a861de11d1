"""
Logging Utility Module
Structured logging with correlation IDs, data-agent context and secret redaction
"""
from __future__ import annotations

import json
import logging
import sys
import threading
import time
import uuid
from collections import Counter
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Generator, Iterable, Optional

from .errors import redact_secrets

# Thread-local storage for request context
_thread_local = threading.local()

_CONTEXT_FIELDS = ("correlation_id", "request_id", "data_agent_id")

# Secret values currently in use by adapters, reference counted
_secret_values: Counter = Counter()
_secret_lock = threading.Lock()


def register_secret_values(values: Iterable[Optional[str]]) -> None:
    """Mask these values in every log record until released"""
    with _secret_lock:
        for value in values:
            if value:
                _secret_values[value] += 1


def release_secret_values(values: Iterable[Optional[str]]) -> None:
    with _secret_lock:
        for value in values:
            if value and _secret_values[value] > 0:
                _secret_values[value] -= 1
                if _secret_values[value] == 0:
                    del _secret_values[value]


def _active_secrets() -> list:
    with _secret_lock:
        return list(_secret_values)


class SecretRedactionFilter(logging.Filter):
    """Scrubs registered secret values from messages and structured fields"""

    def filter(self, record: logging.LogRecord) -> bool:
        secrets = _active_secrets()
        record.msg = redact_secrets(record.getMessage(), secrets)
        record.args = None
        extra_fields = getattr(record, "extra_fields", None)
        if isinstance(extra_fields, dict):
            record.extra_fields = {
                k: redact_secrets(v, secrets) if isinstance(v, str) else v
                for k, v in extra_fields.items()
            }
        return True


def _now() -> datetime:
    return datetime.now(timezone.utc)


class StructuredFormatter(logging.Formatter):
    """JSON structured log formatter for production environments"""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": _now().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for name in _CONTEXT_FIELDS:
            value = getattr(_thread_local, name, None)
            if value:
                log_entry[name] = value

        if hasattr(record, "extra_fields"):
            log_entry.update(record.extra_fields)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable console formatter for development"""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)

        prefix_parts = []
        correlation_id = getattr(_thread_local, "correlation_id", None)
        if correlation_id:
            prefix_parts.append(f"[{correlation_id[:8]}]")
        data_agent_id = getattr(_thread_local, "data_agent_id", None)
        if data_agent_id:
            prefix_parts.append(f"[agent:{data_agent_id[:8]}]")
        prefix = f"{' '.join(prefix_parts)} " if prefix_parts else ""

        fields = getattr(record, "extra_fields", None)
        suffix = ""
        if fields:
            suffix = " " + " ".join(f"{k}={v}" for k, v in fields.items())

        timestamp = _now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        formatted = (
            f"{color}{timestamp} | {record.levelname:8s}{self.RESET} | "
            f"{record.name:36s} | {prefix}{record.getMessage()}{suffix}"
        )

        if record.exc_info:
            formatted += f"\n{self.formatException(record.exc_info)}"

        return formatted


class ContextLogger(logging.LoggerAdapter):
    """Logger adapter that includes thread-local context information"""

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        extra = kwargs.get("extra", {})
        for name in _CONTEXT_FIELDS:
            if hasattr(_thread_local, name):
                extra[name] = getattr(_thread_local, name)
        kwargs["extra"] = extra
        return msg, kwargs


def setup_logging(
    level: str = "INFO",
    json_format: bool = False,
    log_file: Optional[str] = None
) -> None:
    """
    Configure logging for the application

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON structured logging (for production)
        log_file: Optional file path for logging
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers.clear()

    redaction = SecretRedactionFilter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(StructuredFormatter() if json_format else ConsoleFormatter())
    console_handler.addFilter(redaction)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(StructuredFormatter())
        file_handler.addFilter(redaction)
        root_logger.addHandler(file_handler)

    for logger_name in ["boto3", "botocore", "urllib3", "requests", "google", "openai", "httpx"]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def get_logger(name: str) -> ContextLogger:
    """Get a context-aware logger"""
    return ContextLogger(logging.getLogger(name), {})


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """Set correlation ID for the current thread"""
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())
    _thread_local.correlation_id = correlation_id
    return correlation_id


def get_correlation_id() -> Optional[str]:
    return getattr(_thread_local, "correlation_id", None)


def clear_context() -> None:
    """Clear all thread-local context"""
    for attr in _CONTEXT_FIELDS:
        if hasattr(_thread_local, attr):
            delattr(_thread_local, attr)


@contextmanager
def log_context(
    correlation_id: Optional[str] = None,
    request_id: Optional[str] = None,
    data_agent_id: Optional[str] = None
) -> Generator[None, None, None]:
    """
    Context manager for setting logging context

    Usage:
        with log_context(correlation_id="abc123", data_agent_id=agent_id):
            logger.info("Importing tables")
    """
    new_values = {
        "correlation_id": correlation_id,
        "request_id": request_id,
        "data_agent_id": data_agent_id,
    }
    previous = {name: getattr(_thread_local, name, None) for name in _CONTEXT_FIELDS}

    try:
        for name, value in new_values.items():
            if value:
                setattr(_thread_local, name, value)
        yield
    finally:
        for name, old_value in previous.items():
            if old_value:
                setattr(_thread_local, name, old_value)
            elif hasattr(_thread_local, name):
                delattr(_thread_local, name)


@contextmanager
def log_operation(
    logger: ContextLogger,
    operation: str,
    **extra_fields: Any
) -> Generator[Dict[str, Any], None, None]:
    """
    Context manager for logging operation timing

    Usage:
        with log_operation(logger, "import_tables", engine="postgresql") as ctx:
            results = pipeline.run()
            ctx["imported"] = len(results)
    """
    start_time = time.time()
    context: Dict[str, Any] = {"operation": operation, **extra_fields}

    logger.info(f"Starting {operation}", extra={"extra_fields": dict(context)})

    try:
        yield context
        context["duration_ms"] = round((time.time() - start_time) * 1000, 2)
        context["status"] = "success"
        logger.info(f"Completed {operation}", extra={"extra_fields": context})
    except Exception as e:
        context["duration_ms"] = round((time.time() - start_time) * 1000, 2)
        context["status"] = "error"
        context["error"] = str(e)
        context["error_type"] = type(e).__name__
        logger.error(f"Failed {operation}", extra={"extra_fields": context})
        raise
