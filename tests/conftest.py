"""
pytest configuration and fixtures for all tests
"""

import pytest
import sys
import os
from datetime import date
from typing import List, Optional

# Make the top-level modules importable
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from ai.interface import AIProvider, AIResponse, HealthStatus
from db_service import DatabaseConnectionPool, ProgressRepository
from exceptions import LLMAPIError
from progress import ProgressTracker


# ==================== HELPERS ====================

class ScriptedProvider(AIProvider):
    """AI provider that replies with a fixed text or raises a fixed error."""

    def __init__(self, name: str, reply: Optional[str] = "Hello from the tutor!",
                 error: Optional[Exception] = None, healthy: bool = True):
        self.name = name
        self.reply = reply
        self.error = error
        self.healthy = healthy
        self.calls: List[list] = []
        self.closed = False

    async def chat(self, messages, model=None, temperature=None, max_tokens=None):
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        return AIResponse(content=self.reply, provider=self.name, model=model or f"{self.name}-model")

    async def health_check(self):
        return HealthStatus(is_healthy=self.healthy, latency_ms=1.0,
                            error=None if self.healthy else "down")

    async def close(self):
        self.closed = True


def failing_provider(name: str) -> ScriptedProvider:
    return ScriptedProvider(name, reply=None, error=LLMAPIError(f"{name} is down", provider=name))


class FakeClock:
    """Callable returning a date the test controls."""

    def __init__(self, today: date):
        self.today = today

    def __call__(self) -> date:
        return self.today


# ==================== GLOBAL FIXTURES ====================

@pytest.fixture
def clock():
    return FakeClock(date(2024, 3, 10))


@pytest.fixture
def db_pool(tmp_path):
    pool = DatabaseConnectionPool(str(tmp_path / "progress.db"))
    yield pool
    pool.close_all()


@pytest.fixture
def tracker(db_pool, clock):
    return ProgressTracker(ProgressRepository(db_pool), today_provider=clock)


# ==================== MARKERS ====================

def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "security: marks tests as security tests"
    )


def pytest_collection_modifyitems(config, items):
    """Add markers based on test names"""
    for item in items:
        if "integration" in item.nodeid:
            item.add_marker(pytest.mark.integration)

        if "injection" in item.nodeid or "security" in item.nodeid:
            item.add_marker(pytest.mark.security)
