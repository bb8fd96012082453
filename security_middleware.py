"""
🛡️ Security Middleware - FastAPI middleware for the KidLearner API
Rate limiting, request validation, security headers and request logging
"""
import time
import logging
from typing import Optional, Dict, Tuple
from threading import RLock

from fastapi import Request
from fastapi.responses import JSONResponse

from constants import MAX_REQUEST_BODY_BYTES
from request_logging import generate_request_id, get_request_logger, request_context

logger = logging.getLogger("KIDLEARNER_MIDDLEWARE")

# =============================================================================
# RATE LIMITER
# =============================================================================

class RateLimiter:
    """Per-IP sliding-window rate limiting"""

    def __init__(self, requests_per_minute: int = 60, window_seconds: int = 60):
        self.requests_per_minute = requests_per_minute
        self.window_seconds = window_seconds
        self.requests: Dict[str, list] = {}
        self._lock = RLock()

    def _recent(self, identifier: str, now: float) -> list:
        recent = [
            req_time for req_time in self.requests.get(identifier, [])
            if now - req_time < self.window_seconds
        ]
        if recent:
            self.requests[identifier] = recent
        else:
            self.requests.pop(identifier, None)
        return recent

    def is_allowed(self, identifier: str) -> Tuple[bool, Optional[str]]:
        """
        Check if request is allowed under rate limit

        Args:
            identifier: Client IP address

        Returns:
            (is_allowed, error_message)
        """
        with self._lock:
            now = time.time()
            recent = self._recent(identifier, now)

            if len(recent) >= self.requests_per_minute:
                return False, f"Too many requests: {self.requests_per_minute} per {self.window_seconds}s"

            recent.append(now)
            self.requests[identifier] = recent
            return True, None

    def retry_after(self, identifier: str) -> int:
        """Seconds until the oldest request in the window expires"""
        with self._lock:
            recent = self._recent(identifier, time.time())
            if not recent:
                return 0
            return max(int(self.window_seconds - (time.time() - recent[0])) + 1, 1)

    def get_stats(self, identifier: str) -> Dict:
        """Get rate limit stats for identifier"""
        with self._lock:
            recent = self._recent(identifier, time.time())
            return {
                "requests": len(recent),
                "limit": self.requests_per_minute,
                "remaining": max(self.requests_per_minute - len(recent), 0),
            }

    def reset(self) -> None:
        with self._lock:
            self.requests.clear()

# =============================================================================
# REQUEST VALIDATOR
# =============================================================================

class RequestValidator:
    """Validates incoming requests"""

    MAX_BODY_SIZE = MAX_REQUEST_BODY_BYTES

    ALLOWED_CONTENT_TYPES = [
        "application/json",
    ]

    @staticmethod
    def validate_content_length(request: Request) -> Tuple[bool, Optional[str]]:
        """Validate request body size"""
        content_length = request.headers.get("content-length")

        if content_length:
            try:
                size = int(content_length)
                if size > RequestValidator.MAX_BODY_SIZE:
                    return False, f"Request too large: {size} > {RequestValidator.MAX_BODY_SIZE} bytes"
            except ValueError:
                return False, "Invalid Content-Length header"

        return True, None

    @staticmethod
    def validate_content_type(request: Request) -> Tuple[bool, Optional[str]]:
        """Validate content type of requests that carry a body"""
        if request.method not in ("POST", "PUT", "PATCH"):
            return True, None

        content_type = request.headers.get("content-type", "").lower()

        if not content_type:
            # Bodiless actions such as POST .../complete
            if request.headers.get("content-length", "0") == "0" and \
                    "transfer-encoding" not in request.headers:
                return True, None
            return False, "Missing Content-Type header"

        base_type = content_type.split(";")[0].strip()

        if base_type not in RequestValidator.ALLOWED_CONTENT_TYPES:
            return False, f"Invalid Content-Type: {base_type}"

        return True, None

# =============================================================================
# SECURITY HEADERS
# =============================================================================

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}

# =============================================================================
# HELPERS
# =============================================================================

def get_client_ip(request: Request) -> str:
    """Client IP, honouring the first X-Forwarded-For hop"""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def error_response(status_code: int, message: str, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)

# =============================================================================
# MIDDLEWARE FUNCTIONS
# =============================================================================

async def security_headers_middleware(request: Request, call_next):
    """Add security headers to responses"""
    response = await call_next(request)

    for header, value in SECURITY_HEADERS.items():
        response.headers.setdefault(header, value)

    return response


async def request_validation_middleware(request: Request, call_next):
    """Reject oversized bodies and non-JSON payloads"""
    is_valid, error = RequestValidator.validate_content_length(request)
    if not is_valid:
        logger.warning(f"🔐 Invalid request size: {error}")
        return error_response(413, error)

    is_valid, error = RequestValidator.validate_content_type(request)
    if not is_valid:
        logger.warning(f"🔐 Invalid content type: {error}")
        return error_response(415, error)

    return await call_next(request)


async def rate_limit_middleware(request: Request, call_next, limiter: RateLimiter):
    """Rate limit requests by IP"""
    client_ip = get_client_ip(request)

    is_allowed, error = limiter.is_allowed(client_ip)
    if not is_allowed:
        logger.warning(f"🔐 Rate limit exceeded for {client_ip}")
        return error_response(429, error, headers={"Retry-After": str(limiter.retry_after(client_ip))})

    response = await call_next(request)

    stats = limiter.get_stats(client_ip)
    response.headers["X-RateLimit-Limit"] = str(stats["limit"])
    response.headers["X-RateLimit-Remaining"] = str(stats["remaining"])
    return response


async def request_logging_middleware(request: Request, call_next):
    """Assign a request ID, log the request and time the response"""
    request_logger = get_request_logger()
    request_id = request.headers.get("X-Request-ID") or generate_request_id()

    with request_context(request_id):
        start_time = time.time()
        request_logger.log_request(request.method, request.url.path, get_client_ip(request))

        try:
            response = await call_next(request)
        except Exception as e:
            request_logger.log_response(500, (time.time() - start_time) * 1000, error=str(e))
            raise

        elapsed_ms = (time.time() - start_time) * 1000
        request_logger.log_response(response.status_code, elapsed_ms)
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{elapsed_ms:.1f}ms"
        return response

# =============================================================================
# EXPORT
# =============================================================================

__all__ = [
    'RateLimiter',
    'RequestValidator',
    'security_headers_middleware',
    'request_validation_middleware',
    'rate_limit_middleware',
    'request_logging_middleware',
    'get_client_ip',
    'error_response',
    'SECURITY_HEADERS',
]
