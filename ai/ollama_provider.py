"""
Ollama AI Provider Implementation
=================================

Talks to a local Ollama server through its non-streaming chat endpoint.
"""

import logging
import time
from typing import Any, Dict, Optional

import httpx

from config import (
    AI_MAX_TOKENS,
    AI_RETRY_ATTEMPTS,
    AI_TEMPERATURE,
    AI_TIMEOUT_SECONDS,
    OLLAMA_BASE_URL,
    OLLAMA_MODEL,
)
from exceptions import LLMAPIError, LLMInvalidResponseError, LLMTimeoutError
from .interface import AIProvider, AIResponse, ChatMessages, HealthStatus
from .retry import call_with_retry

logger = logging.getLogger("OLLAMA_PROVIDER")

# Connection-level failures worth another attempt; timeouts are not retried
TRANSIENT_ERRORS = (httpx.ConnectError, httpx.ReadError, httpx.RemoteProtocolError)


class OllamaProvider(AIProvider):
    """Local Ollama provider (default model gemma3:1b)"""

    name = "ollama"

    def __init__(self, base_url: str = OLLAMA_BASE_URL, model: str = OLLAMA_MODEL,
                 temperature: float = AI_TEMPERATURE, max_tokens: int = AI_MAX_TOKENS,
                 timeout: float = AI_TIMEOUT_SECONDS, retry_attempts: int = AI_RETRY_ATTEMPTS,
                 retry_wait_seconds: float = 1.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.retry_attempts = retry_attempts
        self.retry_wait_seconds = retry_wait_seconds
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy initialization of the HTTP client"""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self._transport
            )
        return self._client

    async def _post_chat(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = await self.client.post("/api/chat", json=payload)
        response.raise_for_status()
        return response.json()

    async def chat(self, messages: ChatMessages, model: Optional[str] = None,
                   temperature: Optional[float] = None,
                   max_tokens: Optional[int] = None) -> AIResponse:
        """Chat using Ollama"""
        model_name = model or self.model
        payload = {
            "model": model_name,
            "messages": messages,
            "stream": False,
            "options": {
                "temperature": self.temperature if temperature is None else temperature,
                "num_predict": max_tokens or self.max_tokens,
            },
        }

        start = time.time()
        try:
            data = await call_with_retry(
                lambda: self._post_chat(payload),
                provider="Ollama",
                attempts=self.retry_attempts,
                retry_on=TRANSIENT_ERRORS,
                wait_seconds=self.retry_wait_seconds,
            )
        except httpx.TimeoutException as e:
            raise LLMTimeoutError(
                f"Ollama did not answer within {self.timeout}s", provider=self.name
            ) from e
        except httpx.HTTPStatusError as e:
            raise LLMAPIError(
                f"Ollama API error {e.response.status_code}: {e.response.text[:200]}",
                provider=self.name,
            ) from e
        except httpx.TransportError as e:
            raise LLMAPIError(
                f"Cannot reach Ollama at {self.base_url} (is it running on port 11434?): {e}",
                provider=self.name,
            ) from e
        except ValueError as e:
            raise LLMInvalidResponseError(
                f"Ollama returned invalid JSON: {e}", provider=self.name
            ) from e

        message = data.get("message") if isinstance(data, dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not content or not content.strip():
            raise LLMInvalidResponseError("Ollama returned an empty reply", provider=self.name)

        logger.info(f"✅ Ollama answered in {(time.time() - start) * 1000:.0f}ms ({model_name})")
        return AIResponse(
            content=content,
            provider=self.name,
            model=data.get("model", model_name),
            raw_response=data,
        )

    async def health_check(self) -> HealthStatus:
        """Check Ollama availability via the model list"""
        start = time.time()
        try:
            response = await self.client.get("/api/tags")
            response.raise_for_status()
            return HealthStatus(is_healthy=True, latency_ms=(time.time() - start) * 1000)
        except httpx.HTTPError as e:
            logger.warning(f"⚠️ Ollama health check failed: {e}")
            return HealthStatus(
                is_healthy=False,
                latency_ms=(time.time() - start) * 1000,
                error=f"Ollama unavailable at {self.base_url}: {e}",
            )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
