"""
KidLearner API Client - async access to the KidLearner backend.

Single place for HTTP calls to the API: GET responses are cached for
cache_duration seconds, identical concurrent requests share one in-flight
call, and every failure surfaces as KidLearnerAPIError.
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional, Tuple

import httpx

from config import PORT
from limited_cache import make_cache_key

logger = logging.getLogger("api_client")


class KidLearnerAPIError(Exception):
    """Raised when the API is unreachable, times out or answers with an error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class KidLearnerClient:
    """API client for the KidLearner backend."""

    def __init__(self, base_url: str = f"http://localhost:{PORT}", timeout: float = 10.0,
                 cache_duration: float = 300.0, learner_id: Optional[str] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize API client.

        Args:
            base_url: Backend URL (e.g., http://localhost:4000)
            timeout: Request timeout in seconds
            cache_duration: Seconds a GET response stays cached
            learner_id: Sent as X-Learner-Id so AI calls count towards progress
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.cache_duration = cache_duration
        self.learner_id = learner_id
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._cache: Dict[str, Tuple[float, Any]] = {}
        self._pending: Dict[str, "asyncio.Task[Any]"] = {}
        self.request_counter = {"success": 0, "failure": 0, "cache_hits": 0}

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Content-Type": "application/json"}
            if self.learner_id:
                headers["X-Learner-Id"] = self.learner_id
            self._client = httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout,
                headers=headers, transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "KidLearnerClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Core request handling
    # ------------------------------------------------------------------

    async def request(self, endpoint: str, method: str = "GET", data: Optional[Any] = None,
                      use_cache: bool = True) -> Any:
        """
        Make an API request with caching and de-duplication.

        Only GET responses are cached. Concurrent requests with the same
        method, URL and body share one call.

        Raises:
            KidLearnerAPIError: On timeout, network failure or non-2xx status
        """
        method = method.upper()
        cache_key = f"{method}-{self.base_url}{endpoint}"
        cacheable = use_cache and method == "GET"

        if cacheable and cache_key in self._cache:
            stored_at, cached = self._cache[cache_key]
            if time.monotonic() - stored_at < self.cache_duration:
                self.request_counter["cache_hits"] += 1
                return cached
            del self._cache[cache_key]

        pending_key = cache_key if data is None else f"{cache_key}-{make_cache_key(data)}"
        task = self._pending.get(pending_key)
        if task is None:
            task = asyncio.ensure_future(self._send(method, endpoint, data))
            self._pending[pending_key] = task
            task.add_done_callback(lambda done: self._forget(pending_key, done))
        else:
            logger.debug(f"🔁 Joining in-flight request: {method} {endpoint}")

        result = await asyncio.shield(task)

        if cacheable:
            self._cache[cache_key] = (time.monotonic(), result)
        return result

    def _forget(self, pending_key: str, task: "asyncio.Task[Any]") -> None:
        if self._pending.get(pending_key) is task:
            del self._pending[pending_key]

    async def _send(self, method: str, endpoint: str, data: Optional[Any]) -> Any:
        try:
            response = await self.client.request(method, endpoint, json=data)
        except httpx.TimeoutException as e:
            self.request_counter["failure"] += 1
            logger.warning(f"⏱️ Request timeout: {method} {endpoint}")
            raise KidLearnerAPIError("Request timeout") from e
        except httpx.HTTPError as e:
            self.request_counter["failure"] += 1
            logger.warning(f"⚠️ Network error on {method} {endpoint}: {e}")
            raise KidLearnerAPIError(f"Network error: {e}") from e

        if response.is_error:
            self.request_counter["failure"] += 1
            message = None
            try:
                body = response.json()
                if isinstance(body, dict):
                    message = body.get("error")
            except ValueError:
                pass
            message = message or f"HTTP {response.status_code}: {response.reason_phrase}"
            logger.error(f"❌ API error {response.status_code} on {method} {endpoint}: {message}")
            raise KidLearnerAPIError(message, status_code=response.status_code)

        self.request_counter["success"] += 1
        try:
            return response.json()
        except ValueError as e:
            raise KidLearnerAPIError(f"Invalid JSON from {endpoint}") from e

    async def get(self, endpoint: str, use_cache: bool = True) -> Any:
        return await self.request(endpoint, "GET", use_cache=use_cache)

    async def post(self, endpoint: str, data: Optional[Any] = None) -> Any:
        return await self.request(endpoint, "POST", data=data, use_cache=False)

    async def put(self, endpoint: str, data: Any) -> Any:
        return await self.request(endpoint, "PUT", data=data, use_cache=False)

    async def delete(self, endpoint: str) -> Any:
        return await self.request(endpoint, "DELETE", use_cache=False)

    def clear_cache(self) -> None:
        self._cache.clear()

    async def check_availability(self) -> bool:
        """True when /api/lessons answers (cache bypassed)."""
        try:
            await self.get("/api/lessons", use_cache=False)
            return True
        except KidLearnerAPIError as e:
            logger.warning(f"⚠️ API availability check failed: {e}")
            return False

    def get_stats(self) -> Dict[str, Any]:
        return {**self.request_counter, "cached_entries": len(self._cache)}

    # ------------------------------------------------------------------
    # Endpoint helpers
    # ------------------------------------------------------------------

    async def list_lessons(self) -> List[Dict[str, Any]]:
        return await self.get("/api/lessons")

    async def get_lesson(self, lesson_id: str) -> Dict[str, Any]:
        return await self.get(f"/api/lessons/{lesson_id}")

    async def ask(self, question: str, history: Optional[List[Dict[str, str]]] = None,
                  provider: Optional[str] = None) -> str:
        """Send a question to the tutor and return the reply text."""
        payload: Dict[str, Any] = {
            "messages": list(history or []) + [{"role": "user", "content": question}]
        }
        if provider:
            payload["provider"] = provider
        data = await self.post("/api/ai", payload)
        return data["choices"][0]["message"]["content"]

    async def validate_code(self, code: str, language: str) -> Dict[str, Any]:
        return await self.post("/api/validate-code", {"code": code, "language": language})

    async def explain_code(self, code: str, language: str) -> Dict[str, Any]:
        return await self.post("/api/explain-code", {"code": code, "language": language})

    async def syntax_check(self, code: str, language: str) -> Dict[str, Any]:
        return await self.post("/api/syntax-check", {"code": code, "language": language})
