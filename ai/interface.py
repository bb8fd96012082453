"""
AI Providers Interface
======================

Abstract interface for every chat provider behind the tutor.
New providers are added by subclassing AIProvider and registering them with
AIProviderFactory; nothing else has to change.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

# Messages are plain {"role": ..., "content": ...} dicts on this side
ChatMessages = List[Dict[str, str]]


@dataclass
class AIResponse:
    """Unified response format for all AI providers"""
    content: str
    provider: str
    model: str
    raw_response: Dict[str, Any] = field(default_factory=dict)


@dataclass
class HealthStatus:
    """Health check status"""
    is_healthy: bool
    latency_ms: float
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "healthy": self.is_healthy,
            "latency_ms": round(self.latency_ms, 1),
            "error": self.error,
        }


class AIProvider(ABC):
    """
    Abstract base class for all AI providers

    Any new provider must implement chat() and health_check().
    """

    name = "base"

    @abstractmethod
    async def chat(self, messages: ChatMessages, model: Optional[str] = None,
                   temperature: Optional[float] = None,
                   max_tokens: Optional[int] = None) -> AIResponse:
        """
        Send a chat conversation and return the assistant reply

        Args:
            messages: Conversation as role/content dicts, oldest first
            model: Override the provider's default model

        Returns:
            AIResponse with the reply text

        Raises:
            LLMTimeoutError: If the provider did not answer in time
            LLMAPIError: If the provider could not be reached or returned an error
            LLMInvalidResponseError: If the reply was empty or malformed
        """
        pass

    @abstractmethod
    async def health_check(self) -> HealthStatus:
        """
        Check provider availability

        Returns:
            HealthStatus with is_healthy flag and latency
        """
        pass

    async def close(self) -> None:
        """Release network resources held by the provider"""
        return None

    def get_name(self) -> str:
        """Get provider name"""
        return self.name
