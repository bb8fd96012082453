"""
OpenAI AI Provider Implementation
=================================

Also the base for any OpenAI-compatible gateway (see OpenRouterProvider).
"""

import logging
import time
from typing import Any, Dict, Optional

import openai
from openai import AsyncOpenAI

from config import (
    AI_MAX_TOKENS,
    AI_RETRY_ATTEMPTS,
    AI_TEMPERATURE,
    AI_TIMEOUT_SECONDS,
    OPENAI_BASE_URL,
    OPENAI_MODEL,
)
from exceptions import LLMAPIError, LLMInvalidResponseError, LLMTimeoutError
from .interface import AIProvider, AIResponse, ChatMessages, HealthStatus
from .retry import call_with_retry

logger = logging.getLogger("OPENAI_PROVIDER")

TRANSIENT_ERRORS = (openai.APIConnectionError, openai.RateLimitError, openai.InternalServerError)


class OpenAIProvider(AIProvider):
    """OpenAI chat completions provider"""

    name = "openai"
    label = "OpenAI"

    def __init__(self, api_key: str, model: str = OPENAI_MODEL,
                 base_url: Optional[str] = OPENAI_BASE_URL,
                 temperature: float = AI_TEMPERATURE, max_tokens: int = AI_MAX_TOKENS,
                 timeout: float = AI_TIMEOUT_SECONDS, retry_attempts: int = AI_RETRY_ATTEMPTS,
                 retry_wait_seconds: float = 1.0,
                 default_headers: Optional[Dict[str, str]] = None,
                 client: Optional[Any] = None):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.retry_attempts = retry_attempts
        self.retry_wait_seconds = retry_wait_seconds
        self.default_headers = default_headers
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        """Lazy initialization of OpenAI client"""
        if self._client is None:
            # Retries are handled by call_with_retry
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout,
                max_retries=0,
                default_headers=self.default_headers,
            )
        return self._client

    async def chat(self, messages: ChatMessages, model: Optional[str] = None,
                   temperature: Optional[float] = None,
                   max_tokens: Optional[int] = None) -> AIResponse:
        model_name = model or self.model
        start = time.time()
        try:
            completion = await call_with_retry(
                lambda: self.client.chat.completions.create(
                    model=model_name,
                    messages=messages,
                    temperature=self.temperature if temperature is None else temperature,
                    max_tokens=max_tokens or self.max_tokens,
                ),
                provider=self.label,
                attempts=self.retry_attempts,
                retry_on=TRANSIENT_ERRORS,
                never_retry=(openai.APITimeoutError,),
                wait_seconds=self.retry_wait_seconds,
            )
        except openai.APITimeoutError as e:
            raise LLMTimeoutError(
                f"{self.label} did not answer within {self.timeout}s", provider=self.name
            ) from e
        except openai.APIStatusError as e:
            raise LLMAPIError(
                f"{self.label} API error {e.status_code}: {str(e.message)[:200]}",
                provider=self.name,
            ) from e
        except openai.APIConnectionError as e:
            raise LLMAPIError(f"Cannot reach {self.label}: {e}", provider=self.name) from e

        content = None
        if completion and completion.choices:
            content = completion.choices[0].message.content
        if not content or not content.strip():
            raise LLMInvalidResponseError(
                f"{self.label} returned an empty reply", provider=self.name
            )

        logger.info(f"✅ {self.label} answered in {(time.time() - start) * 1000:.0f}ms ({model_name})")
        return AIResponse(
            content=content,
            provider=self.name,
            model=getattr(completion, "model", None) or model_name,
            raw_response={"id": getattr(completion, "id", None), "text": content},
        )

    async def health_check(self) -> HealthStatus:
        """Check availability by listing models (no tokens spent)"""
        start = time.time()
        try:
            await self.client.models.list()
            return HealthStatus(is_healthy=True, latency_ms=(time.time() - start) * 1000)
        except openai.OpenAIError as e:
            logger.warning(f"⚠️ {self.label} health check failed: {e}")
            return HealthStatus(
                is_healthy=False,
                latency_ms=(time.time() - start) * 1000,
                error=str(e),
            )

    async def close(self) -> None:
        if self._client is not None and hasattr(self._client, "close"):
            await self._client.close()
        self._client = None
