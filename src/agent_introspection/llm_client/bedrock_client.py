"""
AWS Bedrock Claude client
Thread-safe, lazily initialised boto3 bedrock-runtime client
"""
from __future__ import annotations

import json
import threading
import time
from typing import Any, Dict, Optional

from ..config import LLMConfig
from ..utils import IntrospectionMetrics, ModelInvocationError, get_logger
from .base import BaseLLMClient, LLMResponse

logger = get_logger(__name__)

ANTHROPIC_VERSION = "bedrock-2023-05-31"


class BedrockClaudeClient(BaseLLMClient):
    """Claude on AWS Bedrock through invoke_model"""

    def __init__(self, config: LLMConfig, client: Any = None):
        super().__init__(config)
        self._client = client
        self._lock = threading.Lock()

    def _get_client(self):
        """Get or create the bedrock-runtime client (double-checked)"""
        if self._client is None:
            with self._lock:
                if self._client is None:
                    import boto3
                    from botocore.config import Config

                    boto_config = Config(
                        region_name=self.config.aws_region,
                        # invoke_with_retry owns the retry policy
                        retries={"max_attempts": 0, "mode": "standard"},
                        connect_timeout=30,
                        read_timeout=self.config.request_timeout,
                    )

                    session_kwargs = {}
                    if self.config.aws_access_key_id:
                        session_kwargs["aws_access_key_id"] = self.config.aws_access_key_id.get_secret_value()
                    if self.config.aws_secret_access_key:
                        session_kwargs["aws_secret_access_key"] = self.config.aws_secret_access_key.get_secret_value()
                    if self.config.aws_session_token:
                        session_kwargs["aws_session_token"] = self.config.aws_session_token.get_secret_value()

                    session = boto3.Session(region_name=self.config.aws_region, **session_kwargs)
                    self._client = session.client("bedrock-runtime", config=boto_config)
                    logger.info(
                        "Initialized Bedrock client",
                        extra={"extra_fields": {
                            "region": self.config.aws_region,
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
        request_body: Dict[str, Any] = {
            "anthropic_version": ANTHROPIC_VERSION,
            "max_tokens": budget,
            "temperature": self.config.temperature if temperature is None else temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            request_body["system"] = system_prompt

        start_time = time.time()
        try:
            response = self._get_client().invoke_model(
                modelId=self.config.model_id,
                body=json.dumps(request_body),
                contentType="application/json",
                accept="application/json",
            )
            response_body = json.loads(response["body"].read())
        except Exception as e:
            logger.error(
                f"Bedrock invocation failed: {e}",
                extra={"extra_fields": {"latency_ms": (time.time() - start_time) * 1000}}
            )
            raise ModelInvocationError(
                message=f"Bedrock Claude invocation failed: {e}",
                model_id=self.config.model_id,
                original_error=e,
            )

        latency_ms = (time.time() - start_time) * 1000
        content = "".join(
            block.get("text", "")
            for block in response_body.get("content") or []
            if block.get("type") == "text"
        )
        usage = response_body.get("usage") or {}
        input_tokens = usage.get("input_tokens", 0)
        output_tokens = usage.get("output_tokens", 0)

        IntrospectionMetrics.record_llm_call(
            duration=latency_ms / 1000,
            model_id=self.config.model_id,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            max_tokens=budget,
        )

        return LLMResponse(
            content=content,
            model_id=self.config.model_id,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            stop_reason=response_body.get("stop_reason"),
            latency_ms=latency_ms,
            raw_response=response_body,
        )
