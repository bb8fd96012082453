"""
OpenRouter AI Provider Implementation
=====================================

OpenRouter speaks the OpenAI protocol; it only needs another base URL and
the attribution headers it uses for its app rankings.
"""

from typing import Any, Optional

from config import (
    OPENROUTER_APP_NAME,
    OPENROUTER_BASE_URL,
    OPENROUTER_MODEL,
    OPENROUTER_SITE_URL,
)
from .openai_provider import OpenAIProvider


class OpenRouterProvider(OpenAIProvider):
    """OpenRouter gateway provider"""

    name = "openrouter"
    label = "OpenRouter"

    def __init__(self, api_key: str, model: str = OPENROUTER_MODEL,
                 base_url: str = OPENROUTER_BASE_URL, site_url: str = OPENROUTER_SITE_URL,
                 app_name: str = OPENROUTER_APP_NAME, client: Optional[Any] = None,
                 **kwargs):
        super().__init__(
            api_key=api_key,
            model=model,
            base_url=base_url,
            default_headers={"HTTP-Referer": site_url, "X-Title": app_name},
            client=client,
            **kwargs,
        )
