"""
Language model client interface
Shared response type, retry policy and error wrapping for chat-completion backends
"""
from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..config import LLMConfig
from ..utils import ModelInvocationError, get_logger

logger = get_logger(__name__)

TRUNCATION_STOP_REASONS = ("max_tokens", "length")


@dataclass
class LLMResponse:
    """LLM response representation"""
    content: str
    model_id: str
    input_tokens: int = 0
    output_tokens: int = 0
    stop_reason: Optional[str] = None
    latency_ms: float = 0.0
    raw_response: Optional[Dict[str, Any]] = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    @property
    def truncated(self) -> bool:
        """The backend stopped because the token budget ran out"""
        return self.stop_reason in TRUNCATION_STOP_REASONS

    @property
    def usage(self) -> Dict[str, int]:
        return {
            "prompt_tokens": self.input_tokens,
            "completion_tokens": self.output_tokens,
            "total_tokens": self.total_tokens,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "model_id": self.model_id,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "stop_reason": self.stop_reason,
            "latency_ms": self.latency_ms,
        }


class BaseLLMClient(ABC):
    """Abstract base class for LLM clients"""

    _RETRYABLE_PATTERNS = (
        "throttling",
        "rate limit",
        "too many requests",
        "429",
        "service unavailable",
        "503",
        "timeout",
        "timed out",
        "connection",
        "temporary",
    )

    def __init__(self, config: LLMConfig):
        self.config = config

    @property
    def model_id(self) -> str:
        return self.config.model_id

    @property
    def supports_json_mode(self) -> bool:
        """Whether invoke(json_mode=True) constrains the output to a JSON object"""
        return False

    @abstractmethod
    def invoke(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        """
        Run a single chat completion

        Raises:
            ModelInvocationError: On any backend failure
        """

    def invoke_with_retry(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_retries: Optional[int] = None,
        **kwargs
    ) -> LLMResponse:
        """
        Invoke with automatic retry on throttling and transient errors

        Uses exponential backoff for retries
        """
        retries = max_retries if max_retries is not None else self.config.retry_attempts
        last_error: Optional[ModelInvocationError] = None

        for attempt in range(retries):
            try:
                return self.invoke(prompt, system_prompt, **kwargs)
            except ModelInvocationError as e:
                last_error = e
                if not self._is_retryable_error(e):
                    raise
                if attempt < retries - 1:
                    delay = self.config.retry_delay * (2 ** attempt)
                    logger.warning(
                        f"LLM invocation failed, retrying in {delay}s",
                        extra={"extra_fields": {
                            "attempt": attempt + 1,
                            "max_retries": retries,
                            "error": str(e),
                        }}
                    )
                    time.sleep(delay)

        raise ModelInvocationError(
            message=f"LLM invocation failed after {retries} attempts",
            model_id=self.model_id,
            original_error=last_error,
        )

    def _is_retryable_error(self, error: ModelInvocationError) -> bool:
        source = error.original_error if error.original_error is not None else error
        error_str = f"{type(source).__name__} {source}".lower()
        return any(pattern in error_str for pattern in self._RETRYABLE_PATTERNS)

    def health_check(self) -> bool:
        """Check if the backend answers a minimal prompt"""
        try:
            response = self.invoke(prompt="Say 'OK'", max_tokens=10)
            return bool(response.content)
        except ModelInvocationError as e:
            logger.error(f"Health check failed: {e.message}")
            return False
