"""
AI Provider Factory & Orchestrator
==================================

Factory for creating providers and orchestrator for walking the fallback chain.
"""

import logging
from typing import Callable, Dict, List, Optional, Sequence

import config
from exceptions import InvalidInputError, LLMError, LLMFallbackExhaustedError
from .interface import AIProvider, AIResponse, ChatMessages, HealthStatus
from .mock_provider import MockProvider
from .ollama_provider import OllamaProvider
from .openai_provider import OpenAIProvider
from .openrouter_provider import OpenRouterProvider

logger = logging.getLogger("AI_ORCHESTRATOR")


class AIProviderFactory:
    """Factory for creating AI providers (Design Pattern: Factory Method)"""

    _providers: Dict[str, type] = {
        "ollama": OllamaProvider,
        "openai": OpenAIProvider,
        "openrouter": OpenRouterProvider,
        "mock": MockProvider,
    }

    @classmethod
    def register(cls, name: str, provider_class: type):
        """
        Register new provider

        Args:
            name: Provider name
            provider_class: Provider class that implements AIProvider
        """
        cls._providers[name] = provider_class
        logger.info(f"Registered AI provider: {name}")

    @classmethod
    def create(cls, provider_name: str, **kwargs) -> AIProvider:
        """
        Create provider instance

        Raises:
            ValueError: If provider not found
        """
        if provider_name not in cls._providers:
            raise ValueError(
                f"Unknown provider: {provider_name}. "
                f"Available: {', '.join(cls._providers.keys())}"
            )

        provider_class = cls._providers[provider_name]
        return provider_class(**kwargs)

    @classmethod
    def get_available(cls) -> list:
        """Get list of available providers"""
        return list(cls._providers.keys())


def create_from_config(name: str) -> AIProvider:
    """
    Create a provider with the settings from config.py

    Raises:
        ValueError: If the provider is unknown or its API key is missing
    """
    if name == "openai":
        if not config.OPENAI_API_KEY:
            raise ValueError("OPENAI_API_KEY is not set")
        return AIProviderFactory.create(name, api_key=config.OPENAI_API_KEY)
    if name == "openrouter":
        if not config.OPENROUTER_API_KEY:
            raise ValueError("OPENROUTER_API_KEY is not set")
        return AIProviderFactory.create(name, api_key=config.OPENROUTER_API_KEY)
    return AIProviderFactory.create(name)


class AIOrchestrator:
    """
    Walks an ordered chain of providers until one answers

    Usage:
        orchestrator = AIOrchestrator([OllamaProvider(), MockProvider()])
        response = await orchestrator.chat(messages)
        response = await orchestrator.chat(messages, provider="ollama")
    """

    def __init__(self, providers: List[AIProvider],
                 provider_builder: Optional[Callable[[str], AIProvider]] = None):
        if not providers:
            raise ValueError("AIOrchestrator needs at least one provider")
        self.providers = list(providers)
        self.provider_builder = provider_builder
        self.last_provider_used: Optional[str] = None
        self._extra: Dict[str, AIProvider] = {}

    @property
    def provider_names(self) -> List[str]:
        return [p.get_name() for p in self.providers]

    def get(self, name: str) -> Optional[AIProvider]:
        """Provider by name, building one outside the chain when possible"""
        for provider in self.providers:
            if provider.get_name() == name:
                return provider

        if name in self._extra:
            return self._extra[name]

        if self.provider_builder is None:
            return None
        try:
            provider = self.provider_builder(name)
        except ValueError as e:
            logger.warning(f"⚠️ Cannot build provider {name}: {e}")
            return None
        self._extra[name] = provider
        return provider

    async def chat(self, messages: ChatMessages, provider: Optional[str] = None,
                   model: Optional[str] = None, temperature: Optional[float] = None,
                   max_tokens: Optional[int] = None, exclude: Sequence[str] = ()) -> AIResponse:
        """
        Chat with fallback strategy

        With provider set only that provider is tried and its error is
        re-raised as is. Otherwise the chain is walked in order, skipping
        providers named in exclude.

        Raises:
            InvalidInputError: If the requested provider is unknown
            LLMError: If the pinned provider fails
            LLMFallbackExhaustedError: If every provider in the chain failed
        """
        if provider:
            target = self.get(provider)
            if target is None:
                raise InvalidInputError(f"Unknown AI provider: {provider}")
            response = await target.chat(messages, model=model, temperature=temperature,
                                         max_tokens=max_tokens)
            self.last_provider_used = target.get_name()
            return response

        candidates = [p for p in self.providers if p.get_name() not in exclude]
        if not candidates:
            raise LLMFallbackExhaustedError(
                f"No AI provider left after excluding {', '.join(exclude)}"
            )

        errors: Dict[str, str] = {}
        for index, candidate in enumerate(candidates):
            name = candidate.get_name()
            try:
                logger.debug(f"Using provider: {name}")
                # A model override only makes sense for the first choice
                response = await candidate.chat(
                    messages,
                    model=model if index == 0 else None,
                    temperature=temperature,
                    max_tokens=max_tokens,
                )
            except LLMError as e:
                errors[name] = str(e)
                logger.warning(f"⚠️ Provider {name} failed: {e}")
                continue

            self.last_provider_used = name
            if index > 0:
                logger.info(f"✅ Successfully used fallback provider: {name}")
            return response

        summary = "; ".join(f"{name}: {error}" for name, error in errors.items())
        logger.error(f"❌ All AI providers failed. {summary}")
        raise LLMFallbackExhaustedError(f"All AI providers failed. {summary}", errors=errors)

    async def health_check(self) -> Dict[str, HealthStatus]:
        """
        Check health of all providers in the chain

        Returns:
            Dict with provider names as keys and HealthStatus as values
        """
        status = {}
        for provider in self.providers:
            try:
                status[provider.get_name()] = await provider.health_check()
            except Exception as e:
                status[provider.get_name()] = HealthStatus(
                    is_healthy=False, latency_ms=0, error=str(e)
                )
        return status

    def get_healthy_provider(self) -> Optional[str]:
        """Name of the provider that answered last"""
        return self.last_provider_used

    async def close(self) -> None:
        for provider in list(self.providers) + list(self._extra.values()):
            await provider.close()


def build_orchestrator(chain: Optional[List[str]] = None) -> AIOrchestrator:
    """Build the orchestrator from AI_PROVIDER_CHAIN, skipping unusable entries"""
    providers = []
    for name in chain if chain is not None else config.AI_PROVIDER_CHAIN:
        try:
            providers.append(create_from_config(name))
        except ValueError as e:
            logger.warning(f"⚠️ Skipping AI provider {name}: {e}")

    if not providers:
        logger.warning("⚠️ No usable AI provider configured, falling back to mock")
        providers.append(MockProvider())

    logger.info(f"🤖 AI provider chain: {' -> '.join(p.get_name() for p in providers)}")
    return AIOrchestrator(providers, provider_builder=create_from_config)
