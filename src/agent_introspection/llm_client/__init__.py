"""
LLM Client Package

Chat-completion backends used for relationship inference:
- AWS Bedrock Claude (boto3)
- OpenAI and Ollama (openai SDK)
"""
from .base import LLMResponse, BaseLLMClient
from .bedrock_client import BedrockClaudeClient
from .openai_client import OpenAICompatibleClient
from .factory import LLMClientFactory, get_llm_client

__all__ = [
    "LLMResponse",
    "BaseLLMClient",
    "BedrockClaudeClient",
    "OpenAICompatibleClient",
    "LLMClientFactory",
    "get_llm_client",
]
