"""
OpenAI-compatible chat completion client
Serves both the OpenAI API and Ollama's /v1 endpoint
"""
from __future__ import annotations

import threading
import time
from typing import Any, Dict, Optional

from ..config import LLMConfig, LLMProvider
from ..utils import IntrospectionMetrics, ModelInvocationError, get_logger
from .base import BaseLLMClient, LLMResponse

logger = get_logger(__name__)

OLLAMA_DEFAULT_BASE_URL = "http://localhost:11434/v1"


class OpenAICompatibleClient(BaseLLMClient):
    """
    Chat completions through the openai SDK

    JSON mode maps to response_format={"type": "json_object"}; Ollama
    accepts the same flag on its OpenAI-compatible endpoint.
    """

    def __init__(self, config: LLMConfig, client: Any = None):
        super().__init__(config)
        self._client = client
        self._lock = threading.Lock()

    @property
    def is_ollama(self) -> bool:
        return LLMProvider(self.config.provider) == LLMProvider.OLLAMA

    @property
    def supports_json_mode(self) -> bool:
        return True

    def _get_client(self):
        if self._client is None:
            with self._lock:
                if self._client is None:
                    from openai import OpenAI

                    kwargs: Dict[str, Any] = {
                        "timeout": float(self.config.request_timeout),
                        # invoke_with_retry owns the retry policy
                        "max_retries": 0,
                    }
                    if self.is_ollama:
                        kwargs["base_url"] = self.config.base_url or OLLAMA_DEFAULT_BASE_URL
                        # Ollama ignores the key but the SDK requires one
                        kwargs["api_key"] = "ollama"
                    else:
                        if self.config.api_key:
                            kwargs["api_key"] = self.config.api_key.get_secret_value()
                        if self.config.base_url:
                            kwargs["base_url"] = self.config.base_url
                    self._client = OpenAI(**kwargs)
                    logger.info(
                        "Initialized OpenAI-compatible client",
                        extra={"extra_fields": {
                            "provider": self.config.provider,
                            "model_id": self.config.model_id,
                        }}
                    )
        return self._client

    def invoke(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        budget = max_tokens or self.config.max_tokens
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        kwargs: Dict[str, Any] = {
            "model": self.config.model_id,
            "messages": messages,
            "max_tokens": budget,
            "temperature": self.config.temperature if temperature is None else temperature,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        start_time = time.time()
        try:
            response = self._get_client().chat.completions.create(**kwargs)
        except Exception as e:
            logger.error(
                f"Chat completion failed: {e}",
                extra={"extra_fields": {"latency_ms": (time.time() - start_time) * 1000}}
            )
            raise ModelInvocationError(
                message=f"{self.config.provider} invocation failed: {e}",
                model_id=self.config.model_id,
                original_error=e,
            )

        latency_ms = (time.time() - start_time) * 1000
        if not response.choices:
            raise ModelInvocationError(
                message=f"{self.config.provider} returned no choices",
                model_id=self.config.model_id,
            )
        choice = response.choices[0]
        if choice.finish_reason == "length":
            logger.warning(f"Response truncated at max_tokens={budget}")

        usage = response.usage
        input_tokens = getattr(usage, "prompt_tokens", 0) or 0
        output_tokens = getattr(usage, "completion_tokens", 0) or 0

        IntrospectionMetrics.record_llm_call(
            duration=latency_ms / 1000,
            model_id=self.config.model_id,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            max_tokens=budget,
        )

        return LLMResponse(
            content=choice.message.content or "",
            model_id=self.config.model_id,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            stop_reason=choice.finish_reason,
            latency_ms=latency_ms,
        )
