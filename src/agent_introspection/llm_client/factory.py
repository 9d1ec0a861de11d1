"""
LLM client factory
"""
from __future__ import annotations

import threading
from typing import Dict, Optional

from ..config import LLMConfig, LLMProvider, get_config
from ..utils import ConfigurationError
from .base import BaseLLMClient
from .bedrock_client import BedrockClaudeClient
from .openai_client import OpenAICompatibleClient


class LLMClientFactory:
    """Creates and caches one client per configuration"""

    _clients: Dict[str, BaseLLMClient] = {}
    _lock = threading.Lock()

    @classmethod
    def get_client(cls, config: LLMConfig) -> BaseLLMClient:
        key = f"{config.provider}_{config.model_id}_{config.aws_region}_{config.base_url}"

        if key not in cls._clients:
            with cls._lock:
                if key not in cls._clients:
                    cls._clients[key] = cls._create(config)
        return cls._clients[key]

    @staticmethod
    def _create(config: LLMConfig) -> BaseLLMClient:
        try:
            provider = LLMProvider(config.provider)
        except ValueError:
            raise ConfigurationError(f"Unsupported LLM provider: {config.provider}", config_key="LLM_PROVIDER")
        if provider == LLMProvider.BEDROCK_CLAUDE:
            return BedrockClaudeClient(config)
        return OpenAICompatibleClient(config)

    @classmethod
    def clear_clients(cls) -> None:
        with cls._lock:
            cls._clients.clear()


def get_llm_client(config: Optional[LLMConfig] = None) -> BaseLLMClient:
    """Client for the given configuration, or the global one"""
    return LLMClientFactory.get_client(config or get_config().llm)
