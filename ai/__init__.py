"""
AI Module
=========

Exports all AI-related classes and functions.
"""

from .interface import AIProvider, AIResponse, HealthStatus
from .mock_provider import MockProvider
from .ollama_provider import OllamaProvider
from .openai_provider import OpenAIProvider
from .openrouter_provider import OpenRouterProvider
from .orchestrator import AIProviderFactory, AIOrchestrator, build_orchestrator, create_from_config

__all__ = [
    "AIProvider",
    "AIResponse",
    "HealthStatus",
    "MockProvider",
    "OllamaProvider",
    "OpenAIProvider",
    "OpenRouterProvider",
    "AIProviderFactory",
    "AIOrchestrator",
    "build_orchestrator",
    "create_from_config",
]
