"""
Request Logging & Tracing
Request IDs, logging setup and structured request/API-call log lines.

Features:
- Unique request ID per HTTP request (contextvar, safe across async tasks)
- JSON log output via python-json-logger when LOG_FORMAT=json
- Request/response, AI call, cache and fallback log helpers
"""

import contextlib
import contextvars
import logging
import sys
import time
import uuid
from typing import Optional

from pythonjsonlogger import jsonlogger

logger = logging.getLogger(__name__)

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"
JSON_FORMAT = "%(asctime)s %(name)s %(levelname)s %(request_id)s %(message)s"

_request_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "request_id", default=None
)


# =============================================================================
# REQUEST ID MANAGEMENT
# =============================================================================

def generate_request_id(prefix: str = "req") -> str:
    """
    Generate unique request ID.

    Returns:
        str: Unique request ID (e.g., "req_123456_a1b2c3d4")
    """
    unique_id = uuid.uuid4().hex[:8]
    timestamp = str(int(time.time() * 1000))[-6:]
    return f"{prefix}_{timestamp}_{unique_id}"


def get_request_id() -> Optional[str]:
    return _request_id.get()


@contextlib.contextmanager
def request_context(request_id: Optional[str] = None):
    """
    Context manager binding a request ID to the current task.

    Example:
        with request_context() as req_id:
            logger.info(f"Processing request {req_id}")
    """
    if request_id is None:
        request_id = generate_request_id()

    token = _request_id.set(request_id)
    try:
        yield request_id
    finally:
        _request_id.reset(token)


class RequestIdFilter(logging.Filter):
    """Adds request_id to every record so formatters can use it."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"
        return True


def setup_logging(level: str = "INFO", log_format: str = "text") -> None:
    """
    Configure the root logger once at startup.

    Args:
        level: Logging level name
        log_format: "json" for python-json-logger output, anything else for text
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIdFilter())
    if log_format == "json":
        handler.setFormatter(jsonlogger.JsonFormatter(JSON_FORMAT))
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Access logs duplicate our request lines
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# =============================================================================
# STRUCTURED LOGGING
# =============================================================================

class RequestLogger:
    """Structured logger for HTTP requests and AI calls."""

    def __init__(self, name: str = "request_logger"):
        self.logger = logging.getLogger(name)

    def _format_message(self, msg: str) -> str:
        request_id = get_request_id()
        prefix = f"[{request_id}]" if request_id else "[no-id]"
        return f"{prefix} {msg}"

    def log_request(self, method: str, path: str, client_ip: Optional[str] = None) -> None:
        msg = f"🔵 REQUEST: {method} {path}"
        if client_ip:
            msg += f" | client={client_ip}"
        self.logger.info(self._format_message(msg))

    def log_response(self, status_code: int, elapsed_ms: float,
                     error: Optional[str] = None) -> None:
        if error:
            msg = f"🔴 RESPONSE: {status_code} | {elapsed_ms:.0f}ms | ERROR: {error}"
            self.logger.error(self._format_message(msg))
        elif status_code >= 400:
            msg = f"🟠 RESPONSE: {status_code} | {elapsed_ms:.0f}ms"
            self.logger.warning(self._format_message(msg))
        else:
            msg = f"🟢 RESPONSE: {status_code} | {elapsed_ms:.0f}ms"
            self.logger.info(self._format_message(msg))

    def log_api_call(self, provider: str, operation: str, duration_ms: float,
                     success: bool, error: Optional[str] = None) -> None:
        """
        Log a call to an AI provider.

        Args:
            provider: Provider name (e.g., 'ollama', 'openai')
            operation: Operation name (e.g., 'chat', 'validate')
        """
        icon = "✅" if success else "❌"
        msg = f"{icon} API CALL: {provider}/{operation} ({duration_ms:.0f}ms)"

        if success:
            self.logger.info(self._format_message(msg))
        else:
            self.logger.error(self._format_message(f"{msg} - ERROR: {error}"))

    def log_cache_hit(self, cache_type: str) -> None:
        self.logger.debug(self._format_message(f"💾 CACHE HIT: {cache_type}"))

    def log_cache_miss(self, cache_type: str) -> None:
        self.logger.debug(self._format_message(f"📌 CACHE MISS: {cache_type}"))

    def log_fallback(self, reason: str, original_error: Optional[str] = None) -> None:
        msg = f"⚙️ FALLBACK: {reason}"
        if original_error:
            msg += f" | error: {original_error[:100]}"
        self.logger.warning(self._format_message(msg))


# =============================================================================
# GLOBAL INSTANCE
# =============================================================================

_request_logger = RequestLogger()


def get_request_logger() -> RequestLogger:
    """Get global request logger instance."""
    return _request_logger
