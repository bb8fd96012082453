"""
AI Provider Tests

Ollama over a mocked HTTP transport, OpenAI/OpenRouter over a fake SDK
client, the keyword mock, retry policy and the fallback orchestrator.
"""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

import config
from ai import (
    AIOrchestrator,
    AIProviderFactory,
    MockProvider,
    OllamaProvider,
    OpenAIProvider,
    OpenRouterProvider,
    build_orchestrator,
    create_from_config,
)
from ai.mock_provider import DEFAULT_RESPONSE, RESPONSES, mock_reply
from ai.retry import call_with_retry
from conftest import ScriptedProvider, failing_provider
from exceptions import (
    InvalidInputError,
    LLMAPIError,
    LLMFallbackExhaustedError,
    LLMInvalidResponseError,
    LLMTimeoutError,
)

MESSAGES = [{"role": "user", "content": "What is a div?"}]
OPENAI_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


# ============================================================================
# HELPERS
# ============================================================================

def ollama_with(handler, retry_attempts=1):
    return OllamaProvider(
        base_url="http://ollama.test",
        model="gemma3:1b",
        retry_attempts=retry_attempts,
        retry_wait_seconds=0,
        transport=httpx.MockTransport(handler),
    )


def ollama_reply(content, model="gemma3:1b"):
    return httpx.Response(200, json={"model": model, "message": {"role": "assistant", "content": content}})


def completion(content, model="gpt-4o-mini"):
    return SimpleNamespace(
        id="chatcmpl-1",
        model=model,
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
    )


def fake_openai_client(create_side_effect=None, create_return=None):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=create_side_effect,
                                               return_value=create_return)
    client.models.list = AsyncMock(return_value=[])
    client.close = AsyncMock()
    return client


def status_error(cls, status_code, message="boom"):
    response = httpx.Response(status_code, request=OPENAI_REQUEST)
    return cls(message, response=response, body=None)


# ============================================================================
# OLLAMA
# ============================================================================

class TestOllamaProvider:
    """Test OllamaProvider against httpx.MockTransport."""

    @pytest.mark.asyncio
    async def test_chat_success(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return ollama_reply("A div is a box.")

        provider = ollama_with(handler)
        response = await provider.chat(MESSAGES, temperature=0.2, max_tokens=50)
        await provider.close()

        assert response.content == "A div is a box."
        assert response.provider == "ollama"
        assert response.model == "gemma3:1b"
        assert seen["path"] == "/api/chat"
        assert seen["body"]["stream"] is False
        assert seen["body"]["messages"] == MESSAGES
        assert seen["body"]["options"] == {"temperature": 0.2, "num_predict": 50}

    @pytest.mark.asyncio
    async def test_model_override(self):
        seen = {}

        def handler(request):
            seen["model"] = json.loads(request.content)["model"]
            return ollama_reply("ok", model="llama3")

        provider = ollama_with(handler)
        response = await provider.chat(MESSAGES, model="llama3")

        assert seen["model"] == "llama3"
        assert response.model == "llama3"

    @pytest.mark.asyncio
    async def test_http_error(self):
        provider = ollama_with(lambda request: httpx.Response(500, text="model crashed"))

        with pytest.raises(LLMAPIError) as exc_info:
            await provider.chat(MESSAGES)

        assert "500" in str(exc_info.value)
        assert exc_info.value.provider == "ollama"

    @pytest.mark.asyncio
    async def test_empty_reply(self):
        provider = ollama_with(lambda request: ollama_reply("   "))

        with pytest.raises(LLMInvalidResponseError):
            await provider.chat(MESSAGES)

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        provider = ollama_with(lambda request: httpx.Response(200, text="not json"))

        with pytest.raises(LLMInvalidResponseError):
            await provider.chat(MESSAGES)

    @pytest.mark.asyncio
    async def test_connection_refused_is_retried_then_reported(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        provider = ollama_with(handler, retry_attempts=3)

        with pytest.raises(LLMAPIError) as exc_info:
            await provider.chat(MESSAGES)

        assert len(calls) == 3
        assert "11434" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_recovers_after_transient_error(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return ollama_reply("Back online")

        provider = ollama_with(handler, retry_attempts=3)
        response = await provider.chat(MESSAGES)

        assert response.content == "Back online"
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_timeout_is_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ReadTimeout("too slow", request=request)

        provider = ollama_with(handler, retry_attempts=3)

        with pytest.raises(LLMTimeoutError):
            await provider.chat(MESSAGES)

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_health_check(self):
        def handler(request):
            assert request.url.path == "/api/tags"
            return httpx.Response(200, json={"models": []})

        status = await ollama_with(handler).health_check()

        assert status.is_healthy is True
        assert status.error is None

    @pytest.mark.asyncio
    async def test_health_check_failure(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        status = await ollama_with(handler).health_check()

        assert status.is_healthy is False
        assert "ollama.test" in status.error
        assert status.to_dict()["healthy"] is False


# ============================================================================
# OPENAI / OPENROUTER
# ============================================================================

class TestOpenAIProvider:
    """Test OpenAIProvider with a fake SDK client."""

    def provider(self, client, **kwargs):
        return OpenAIProvider(api_key="sk-test", model="gpt-4o-mini", retry_attempts=3,
                              retry_wait_seconds=0, client=client, **kwargs)

    @pytest.mark.asyncio
    async def test_chat_success(self):
        client = fake_openai_client(create_return=completion("Use <div> for boxes."))

        response = await self.provider(client).chat(MESSAGES, temperature=0.1, max_tokens=20)

        assert response.content == "Use <div> for boxes."
        assert response.provider == "openai"
        assert response.model == "gpt-4o-mini"
        kwargs = client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["messages"] == MESSAGES
        assert kwargs["temperature"] == 0.1
        assert kwargs["max_tokens"] == 20

    @pytest.mark.asyncio
    async def test_server_error_is_retried(self):
        client = fake_openai_client(create_side_effect=[
            status_error(openai.InternalServerError, 500),
            completion("Second time lucky"),
        ])

        response = await self.provider(client).chat(MESSAGES)

        assert response.content == "Second time lucky"
        assert client.chat.completions.create.await_count == 2

    @pytest.mark.asyncio
    async def test_auth_error_is_not_retried(self):
        client = fake_openai_client(
            create_side_effect=status_error(openai.AuthenticationError, 401, "bad key")
        )

        with pytest.raises(LLMAPIError) as exc_info:
            await self.provider(client).chat(MESSAGES)

        assert "401" in str(exc_info.value)
        assert client.chat.completions.create.await_count == 1

    @pytest.mark.asyncio
    async def test_timeout(self):
        client = fake_openai_client(create_side_effect=openai.APITimeoutError(request=OPENAI_REQUEST))

        with pytest.raises(LLMTimeoutError):
            await self.provider(client).chat(MESSAGES)

        assert client.chat.completions.create.await_count == 1

    @pytest.mark.asyncio
    async def test_connection_error_after_retries(self):
        client = fake_openai_client(
            create_side_effect=openai.APIConnectionError(request=OPENAI_REQUEST)
        )

        with pytest.raises(LLMAPIError):
            await self.provider(client).chat(MESSAGES)

        assert client.chat.completions.create.await_count == 3

    @pytest.mark.asyncio
    async def test_empty_reply(self):
        client = fake_openai_client(create_return=completion(None))

        with pytest.raises(LLMInvalidResponseError):
            await self.provider(client).chat(MESSAGES)

    @pytest.mark.asyncio
    async def test_health_check(self):
        client = fake_openai_client()

        status = await self.provider(client).health_check()

        assert status.is_healthy is True
        client.models.list.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_health_check_failure(self):
        client = fake_openai_client()
        client.models.list = AsyncMock(side_effect=openai.APIConnectionError(request=OPENAI_REQUEST))

        status = await self.provider(client).health_check()

        assert status.is_healthy is False
        assert status.error

    @pytest.mark.asyncio
    async def test_close(self):
        client = fake_openai_client()
        provider = self.provider(client)

        await provider.close()

        client.close.assert_awaited_once()


class TestOpenRouterProvider:

    def test_defaults(self):
        provider = OpenRouterProvider(api_key="or-test", client=fake_openai_client())

        assert provider.get_name() == "openrouter"
        assert provider.base_url == config.OPENROUTER_BASE_URL
        assert provider.model == config.OPENROUTER_MODEL
        assert provider.default_headers["X-Title"] == config.OPENROUTER_APP_NAME
        assert provider.default_headers["HTTP-Referer"] == config.OPENROUTER_SITE_URL

    @pytest.mark.asyncio
    async def test_errors_name_openrouter(self):
        client = fake_openai_client(
            create_side_effect=status_error(openai.AuthenticationError, 401, "bad key")
        )
        provider = OpenRouterProvider(api_key="or-test", client=client, retry_wait_seconds=0)

        with pytest.raises(LLMAPIError) as exc_info:
            await provider.chat(MESSAGES)

        assert "OpenRouter API error 401" in str(exc_info.value)
        assert exc_info.value.provider == "openrouter"


# ============================================================================
# MOCK
# ============================================================================

class TestMockProvider:

    @pytest.mark.parametrize("text, topic", [
        ("How do I write HTML?", "html"),
        ("make my css pretty", "css"),
        ("What does JavaScript do?", "javascript"),
        ("my js is weird", "javascript"),
        ("I found a bug", "error"),
        ("help me please", "help"),
        ("HTML and CSS", "html"),
    ])
    def test_keywords(self, text, topic):
        assert mock_reply(text) == RESPONSES[topic]

    def test_default(self):
        assert mock_reply("Tell me a joke") == DEFAULT_RESPONSE

    @pytest.mark.asyncio
    async def test_replies_to_last_user_message(self):
        messages = [
            {"role": "user", "content": "What is CSS?"},
            {"role": "assistant", "content": "It styles pages."},
            {"role": "user", "content": "And HTML?"},
        ]

        response = await MockProvider().chat(messages)

        assert response.content == RESPONSES["html"]
        assert response.provider == "mock"

    @pytest.mark.asyncio
    async def test_always_healthy(self):
        assert (await MockProvider().health_check()).is_healthy is True


# ============================================================================
# RETRY
# ============================================================================

class TestCallWithRetry:

    @pytest.mark.asyncio
    async def test_retries_listed_errors(self):
        calls = []

        async def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise ConnectionError("flaky")
            return "done"

        result = await call_with_retry(flaky, provider="Test", attempts=3,
                                       retry_on=(ConnectionError,), wait_seconds=0)

        assert result == "done"
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_reraises_last_error(self):
        calls = []

        async def broken():
            calls.append(1)
            raise ConnectionError(f"attempt {len(calls)}")

        with pytest.raises(ConnectionError, match="attempt 2"):
            await call_with_retry(broken, provider="Test", attempts=2,
                                  retry_on=(ConnectionError,), wait_seconds=0)

    @pytest.mark.asyncio
    async def test_other_errors_propagate_immediately(self):
        calls = []

        async def broken():
            calls.append(1)
            raise KeyError("nope")

        with pytest.raises(KeyError):
            await call_with_retry(broken, provider="Test", attempts=3,
                                  retry_on=(ConnectionError,), wait_seconds=0)

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_never_retry_wins(self):
        calls = []

        async def slow():
            calls.append(1)
            raise ConnectionResetError("reset")

        with pytest.raises(ConnectionResetError):
            await call_with_retry(slow, provider="Test", attempts=3,
                                  retry_on=(ConnectionError,),
                                  never_retry=(ConnectionResetError,), wait_seconds=0)

        assert len(calls) == 1


# ============================================================================
# ORCHESTRATOR
# ============================================================================

class TestAIOrchestrator:
    """Test fallback chain and pinned providers."""

    @pytest.mark.asyncio
    async def test_first_provider_answers(self):
        first, second = ScriptedProvider("ollama", "from ollama"), ScriptedProvider("mock")
        orchestrator = AIOrchestrator([first, second])

        response = await orchestrator.chat(MESSAGES)

        assert response.content == "from ollama"
        assert orchestrator.last_provider_used == "ollama"
        assert orchestrator.get_healthy_provider() == "ollama"
        assert second.calls == []

    @pytest.mark.asyncio
    async def test_falls_back_in_order(self):
        orchestrator = AIOrchestrator([
            failing_provider("ollama"),
            failing_provider("openai"),
            ScriptedProvider("mock", "fallback reply"),
        ])

        response = await orchestrator.chat(MESSAGES)

        assert response.content == "fallback reply"
        assert orchestrator.last_provider_used == "mock"

    @pytest.mark.asyncio
    async def test_model_override_only_for_first_provider(self):
        orchestrator = AIOrchestrator([failing_provider("ollama"), ScriptedProvider("mock")])

        response = await orchestrator.chat(MESSAGES, model="llama3")

        assert response.model == "mock-model"

    @pytest.mark.asyncio
    async def test_all_fail(self):
        orchestrator = AIOrchestrator([failing_provider("ollama"), failing_provider("openai")])

        with pytest.raises(LLMFallbackExhaustedError) as exc_info:
            await orchestrator.chat(MESSAGES)

        assert set(exc_info.value.errors) == {"ollama", "openai"}
        assert orchestrator.last_provider_used is None

    @pytest.mark.asyncio
    async def test_excluded_provider_is_skipped(self):
        mock = ScriptedProvider("mock")
        orchestrator = AIOrchestrator([failing_provider("ollama"), mock])

        with pytest.raises(LLMFallbackExhaustedError) as exc_info:
            await orchestrator.chat(MESSAGES, exclude=("mock",))

        assert set(exc_info.value.errors) == {"ollama"}
        assert mock.calls == []

    @pytest.mark.asyncio
    async def test_nothing_left_after_exclude(self):
        orchestrator = AIOrchestrator([ScriptedProvider("mock")])

        with pytest.raises(LLMFallbackExhaustedError, match="excluding mock"):
            await orchestrator.chat(MESSAGES, exclude=("mock",))

    @pytest.mark.asyncio
    async def test_pinned_provider(self):
        first, second = ScriptedProvider("ollama"), ScriptedProvider("mock", "pinned")
        orchestrator = AIOrchestrator([first, second])

        response = await orchestrator.chat(MESSAGES, provider="mock", model="custom")

        assert response.content == "pinned"
        assert response.model == "custom"
        assert first.calls == []

    @pytest.mark.asyncio
    async def test_pinned_failure_does_not_fall_back(self):
        fallback = ScriptedProvider("mock")
        orchestrator = AIOrchestrator([failing_provider("ollama"), fallback])

        with pytest.raises(LLMAPIError):
            await orchestrator.chat(MESSAGES, provider="ollama")

        assert fallback.calls == []

    @pytest.mark.asyncio
    async def test_unknown_pinned_provider(self):
        orchestrator = AIOrchestrator([ScriptedProvider("mock")])

        with pytest.raises(InvalidInputError):
            await orchestrator.chat(MESSAGES, provider="gemini")

    @pytest.mark.asyncio
    async def test_builds_provider_outside_chain(self):
        built = []

        def builder(name):
            if name != "ollama":
                raise ValueError(f"cannot build {name}")
            provider = ScriptedProvider(name, "built on demand")
            built.append(provider)
            return provider

        orchestrator = AIOrchestrator([ScriptedProvider("mock")], provider_builder=builder)

        response = await orchestrator.chat(MESSAGES, provider="ollama")
        assert response.content == "built on demand"
        assert orchestrator.get("ollama") is built[0]
        assert orchestrator.get("openai") is None
        assert orchestrator.provider_names == ["mock"]

        await orchestrator.close()
        assert built[0].closed is True

    @pytest.mark.asyncio
    async def test_health_check(self):
        orchestrator = AIOrchestrator([
            ScriptedProvider("ollama", healthy=False),
            ScriptedProvider("mock"),
        ])

        status = await orchestrator.health_check()

        assert status["ollama"].is_healthy is False
        assert status["ollama"].error == "down"
        assert status["mock"].is_healthy is True

    @pytest.mark.asyncio
    async def test_health_check_survives_crashing_provider(self):
        broken = ScriptedProvider("ollama")
        broken.health_check = AsyncMock(side_effect=RuntimeError("exploded"))
        orchestrator = AIOrchestrator([broken])

        status = await orchestrator.health_check()

        assert status["ollama"].is_healthy is False
        assert status["ollama"].error == "exploded"

    def test_needs_a_provider(self):
        with pytest.raises(ValueError):
            AIOrchestrator([])


class TestProviderFactory:

    def test_available(self):
        assert set(AIProviderFactory.get_available()) >= {"ollama", "openai", "openrouter", "mock"}

    def test_unknown(self):
        with pytest.raises(ValueError):
            AIProviderFactory.create("gemini")

    def test_create_mock(self):
        assert isinstance(AIProviderFactory.create("mock"), MockProvider)

    def test_openai_needs_key(self, monkeypatch):
        monkeypatch.setattr(config, "OPENAI_API_KEY", "")

        with pytest.raises(ValueError):
            create_from_config("openai")

    def test_openai_from_config(self, monkeypatch):
        monkeypatch.setattr(config, "OPENAI_API_KEY", "sk-test")

        provider = create_from_config("openai")

        assert isinstance(provider, OpenAIProvider)
        assert provider.api_key == "sk-test"

    def test_build_orchestrator_skips_unusable(self, monkeypatch):
        monkeypatch.setattr(config, "OPENROUTER_API_KEY", "")

        orchestrator = build_orchestrator(["openrouter", "ollama", "unknown", "mock"])

        assert orchestrator.provider_names == ["ollama", "mock"]

    def test_build_orchestrator_falls_back_to_mock(self, monkeypatch):
        monkeypatch.setattr(config, "OPENAI_API_KEY", "")

        orchestrator = build_orchestrator(["openai"])

        assert orchestrator.provider_names == ["mock"]
