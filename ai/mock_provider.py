"""
Mock AI Provider
================

Offline keyword responder. Keeps the tutor usable (and the tests fast)
when no model is reachable.
"""

from typing import Optional

from .interface import AIProvider, AIResponse, ChatMessages, HealthStatus

RESPONSES = {
    "html": "HTML is the foundation of web development. It uses tags to structure content on web pages.",
    "css": "CSS controls the visual appearance of HTML elements. You can style colors, fonts, layouts, and more.",
    "javascript": "JavaScript adds interactivity to web pages. It can respond to user actions and manipulate page content.",
    "error": "I can help you debug your code! Try checking for syntax errors, missing semicolons, or typos in variable names.",
    "help": "I can help you with HTML, CSS, and JavaScript questions. What would you like to know?",
}
DEFAULT_RESPONSE = "I can help you with web development questions! Try asking about HTML, CSS, or JavaScript."

# First match wins
KEYWORDS = (
    (("html",), "html"),
    (("css",), "css"),
    (("javascript", "js"), "javascript"),
    (("error", "bug"), "error"),
    (("help",), "help"),
)


def mock_reply(text: str) -> str:
    lowered = text.lower()
    for keywords, topic in KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return RESPONSES[topic]
    return DEFAULT_RESPONSE


class MockProvider(AIProvider):
    """Answers from a fixed table keyed on words in the last user message"""

    name = "mock"

    def __init__(self, model: str = "keyword-mock"):
        self.model = model

    async def chat(self, messages: ChatMessages, model: Optional[str] = None,
                   temperature: Optional[float] = None,
                   max_tokens: Optional[int] = None) -> AIResponse:
        last_user = next(
            (m.get("content", "") for m in reversed(messages) if m.get("role") == "user"),
            "",
        )
        reply = mock_reply(last_user)
        return AIResponse(content=reply, provider=self.name, model=self.model,
                          raw_response={"text": reply})

    async def health_check(self) -> HealthStatus:
        return HealthStatus(is_healthy=True, latency_ms=0.0)
