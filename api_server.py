"""
KidLearner API Server
=====================

FastAPI backend for the KidLearner web app:
- lessons and code examples (read-only datastore)
- AI tutor chat through a provider fallback chain (Ollama, OpenAI, OpenRouter, mock)
- AI code validation with a local syntax-checker fallback, and code explanation
- learner progress, streaks and achievements
"""

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import Body, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import (
    ALLOWED_ORIGINS,
    CACHE_ENABLED,
    CACHE_MAX_SIZE,
    CACHE_TTL_SECONDS,
    CODE_EXAMPLES_PATH,
    FRONTEND_DIR,
    HOST,
    LESSONS_PATH,
    LOG_FORMAT,
    LOG_LEVEL,
    PORT,
    RATE_LIMIT_ENABLED,
    RATE_LIMIT_REQUESTS,
    RATE_LIMIT_WINDOW,
    validate_config,
)
from constants import MESSAGES
from exceptions import (
    InvalidInputError,
    KidLearnerException,
    LLMError,
    ProgressStorageError,
    handle_exception,
)

# AI providers
from ai import AIOrchestrator, MockProvider, build_orchestrator

# Content, progress and storage
from db_service import ProgressRepository, close_pool, get_pool
from education import CodeExampleLibrary, LessonStore
from progress import ACHIEVEMENTS, ProgressTracker, validate_learner_id

# Validation, prompting and formatting
from input_validators import (
    ChatRequest,
    CodeRequest,
    ProgressEventRequest,
    TimeSpentRequest,
    first_error_message,
    sanitize_for_log,
)
from prompts import (
    build_chat_messages,
    build_explanation_messages,
    build_validation_messages,
    parse_validation_response,
    syntax_result_to_validation,
)
from response_formatter import format_response
from validators import SecurityValidator, SyntaxChecker, normalize_language

# Infrastructure
from limited_cache import LimitedCache, make_cache_key
from request_logging import get_request_logger, setup_logging
from security_middleware import (
    RateLimiter,
    error_response,
    rate_limit_middleware,
    request_logging_middleware,
    request_validation_middleware,
    security_headers_middleware,
)

setup_logging(LOG_LEVEL, LOG_FORMAT)
logger = logging.getLogger("KIDLEARNER_API")

API_VERSION = "1.0.0"
UNLIMITED_PATHS = ("/health", "/docs", "/redoc", "/openapi.json")
# The offline keyword responder never reviews or explains code
CODE_TOOL_EXCLUDED_PROVIDERS = (MockProvider.name,)

# Global state, filled in by lifespan() unless already set
response_cache = LimitedCache(max_size=CACHE_MAX_SIZE, ttl_seconds=CACHE_TTL_SECONDS)
request_counter = {"total": 0, "success": 0, "errors": 0, "cache_hits": 0, "fallbacks": 0}
rate_limiter = RateLimiter(requests_per_minute=RATE_LIMIT_REQUESTS, window_seconds=RATE_LIMIT_WINDOW)
syntax_checker = SyntaxChecker()
request_log = get_request_logger()

ai_orchestrator: Optional[AIOrchestrator] = None
lesson_store: Optional[LessonStore] = None
example_library: Optional[CodeExampleLibrary] = None
progress_tracker: Optional[ProgressTracker] = None


# ============================================================================
# LIFECYCLE
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load content, open storage and build the AI provider chain."""
    global ai_orchestrator, lesson_store, example_library, progress_tracker

    logger.info("=" * 70)
    logger.info(f"🚀 Starting KidLearner API v{API_VERSION}")

    for problem in validate_config():
        logger.warning(f"⚠️ Config: {problem}")

    if lesson_store is None:
        lesson_store = LessonStore.load(LESSONS_PATH)
    if example_library is None:
        example_library = CodeExampleLibrary.load(CODE_EXAMPLES_PATH)
    if progress_tracker is None:
        progress_tracker = ProgressTracker(ProgressRepository(get_pool()))
    if ai_orchestrator is None:
        ai_orchestrator = build_orchestrator()

    logger.info(f"✅ Ready: {len(lesson_store)} lessons, AI chain {ai_orchestrator.provider_names}")
    logger.info("=" * 70)

    yield

    logger.info("🛑 Shutting down KidLearner API")
    await ai_orchestrator.close()
    close_pool()


app = FastAPI(
    title="KidLearner API",
    description="Lessons, AI tutor and progress tracking for young web developers",
    version=API_VERSION,
    lifespan=lifespan,
)


# ============================================================================
# MIDDLEWARE (last registered runs first)
# ============================================================================

@app.middleware("http")
async def validate_requests(request: Request, call_next):
    """Reject oversized or non-JSON bodies."""
    return await request_validation_middleware(request, call_next)


@app.middleware("http")
async def limit_request_rate(request: Request, call_next):
    """Per-IP rate limiting, skipped for health checks and docs."""
    if not RATE_LIMIT_ENABLED or request.url.path in UNLIMITED_PATHS:
        return await call_next(request)
    return await rate_limit_middleware(request, call_next, rate_limiter)


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    return await security_headers_middleware(request, call_next)


@app.middleware("http")
async def log_and_count_requests(request: Request, call_next):
    """Request ID, logging, timing and counters."""
    request_counter["total"] += 1
    try:
        response = await request_logging_middleware(request, call_next)
    except Exception:
        request_counter["errors"] += 1
        raise

    if response.status_code < 400:
        request_counter["success"] += 1
    else:
        request_counter["errors"] += 1
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials="*" not in ALLOWED_ORIGINS,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

if FRONTEND_DIR and Path(FRONTEND_DIR).is_dir():
    app.mount("/app", StaticFiles(directory=FRONTEND_DIR, html=True), name="frontend")


# ============================================================================
# ERROR HANDLERS
# ============================================================================

@app.exception_handler(KidLearnerException)
async def kidlearner_exception_handler(request: Request, exc: KidLearnerException):
    if exc.status_code >= 500:
        logger.error(f"❌ {exc.error_code} on {request.url.path}: {exc.message}")
    else:
        logger.warning(f"⚠️ {exc.error_code} on {request.url.path}: {exc.message}")
    return error_response(exc.status_code, exc.to_user_message())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    message = first_error_message(exc.errors())
    logger.warning(f"⚠️ Invalid request on {request.url.path}: {message}")
    return error_response(400, message)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_response(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Last resort for anything unhandled."""
    logger.error(f"🔥 Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return error_response(500, handle_exception(exc))


# ============================================================================
# HELPERS
# ============================================================================

def get_cached(key: str, cache_type: str) -> Optional[Dict[str, Any]]:
    if not CACHE_ENABLED:
        return None
    cached = response_cache.get(key)
    if cached is None:
        request_log.log_cache_miss(cache_type)
        return None
    request_counter["cache_hits"] += 1
    request_log.log_cache_hit(cache_type)
    return {**cached, "cached": True}


def store_cached(key: str, payload: Dict[str, Any]) -> None:
    if CACHE_ENABLED:
        response_cache.set(key, {**payload, "cached": False})


def check_learner_header(learner_id: Optional[str]) -> Optional[str]:
    """Validate the optional X-Learner-Id header up front."""
    if learner_id is None or not learner_id.strip():
        return None
    return validate_learner_id(learner_id.strip())


async def record_learner_activity(learner_id: Optional[str], event: str) -> Optional[List[Dict[str, Any]]]:
    """
    Count an activity for the learner, if one was named.

    A storage failure is logged and does not fail the request that
    triggered it.
    """
    if learner_id is None:
        return None
    try:
        _, unlocked = await run_in_threadpool(progress_tracker.record_event, learner_id, event)
    except ProgressStorageError as e:
        logger.error(f"❌ Could not record {event} for {learner_id}: {e}")
        return None
    return [ACHIEVEMENTS[a].model_dump() for a in unlocked]


def prepare_chat_history(body: ChatRequest) -> List[Dict[str, str]]:
    """Sanitize user turns and flag likely prompt injection."""
    history = []
    for message in body.messages:
        content = message.content
        if message.role == "user":
            check = SecurityValidator.validate(content)
            if not check:
                logger.warning(
                    f"🔐 Possible prompt injection ({check.threat_message()}): "
                    f"{sanitize_for_log(content, 100)}"
                )
            content = SecurityValidator.sanitize(content)
            if not content:
                raise InvalidInputError("Message cannot be empty")
        history.append({"role": message.role, "content": content})
    return history


async def run_chat(body: ChatRequest, provider: Optional[str],
                   learner_id: Optional[str]) -> Dict[str, Any]:
    """Shared body of /api/ai and /api/ollama."""
    messages = build_chat_messages(prepare_chat_history(body))
    cache_key = make_cache_key("chat", provider or "chain", body.model, messages)

    payload = get_cached(cache_key, "chat")
    if payload is None:
        start = time.time()
        try:
            ai_response = await ai_orchestrator.chat(messages, provider=provider, model=body.model)
        except LLMError as e:
            request_log.log_api_call(provider or "chain", "chat", (time.time() - start) * 1000,
                                     False, error=str(e))
            raise

        request_log.log_api_call(ai_response.provider, "chat", (time.time() - start) * 1000, True)
        content = ai_response.content
        payload = {
            "choices": [{"message": {"role": "assistant", "content": content}}],
            "provider": ai_response.provider,
            "model": ai_response.model,
            "html": format_response(content),
            "cached": False,
        }
        store_cached(cache_key, payload)

    unlocked = await record_learner_activity(learner_id, "ai_interaction")
    if unlocked is not None:
        payload["newAchievements"] = unlocked
    return payload


# ============================================================================
# SERVICE ENDPOINTS
# ============================================================================

@app.get("/")
async def root():
    return {
        "service": "KidLearner API",
        "version": API_VERSION,
        "endpoints": {
            "lessons": "/api/lessons",
            "lesson": "/api/lessons/{id}",
            "examples": "/api/examples/{language}",
            "chat": "/api/ai",
            "ollama": "/api/ollama",
            "validate": "/api/validate-code",
            "explain": "/api/explain-code",
            "syntax_check": "/api/syntax-check",
            "progress": "/api/progress/{learner_id}",
            "health": "/health",
        },
    }


@app.get("/health")
async def health():
    """Provider health, cache stats and request counters."""
    providers = await ai_orchestrator.health_check()
    any_healthy = any(status.is_healthy for status in providers.values())
    learners = await run_in_threadpool(progress_tracker.repository.count)
    return {
        "status": "healthy" if any_healthy else "degraded",
        "version": API_VERSION,
        "providers": {name: status.to_dict() for name, status in providers.items()},
        "last_provider_used": ai_orchestrator.get_healthy_provider(),
        "lessons": len(lesson_store),
        "learners": learners,
        "cache": response_cache.get_stats(),
        "requests": dict(request_counter),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# ============================================================================
# LESSONS & EXAMPLES
# ============================================================================

@app.get("/api/lessons")
async def list_lessons():
    return [lesson.model_dump(exclude_none=True) for lesson in lesson_store.list_lessons()]


@app.get("/api/lessons/{lesson_id}")
async def get_lesson(lesson_id: str):
    return lesson_store.get_lesson(lesson_id).model_dump(exclude_none=True)


@app.get("/api/examples")
async def list_examples():
    return {
        language: [example.model_dump() for example in examples]
        for language, examples in example_library.all_examples().items()
    }


@app.get("/api/examples/{language}")
async def examples_for_language(language: str):
    examples = example_library.examples_for(language)
    return {
        "language": normalize_language(language),
        "examples": [example.model_dump() for example in examples],
    }


# ============================================================================
# AI ENDPOINTS
# ============================================================================

@app.post("/api/ai")
async def ai_chat(body: ChatRequest, x_learner_id: Optional[str] = Header(None)):
    """Chat through the provider chain, or one provider when body.provider is set."""
    learner_id = check_learner_header(x_learner_id)
    return await run_chat(body, body.provider, learner_id)


@app.post("/api/ollama")
async def ollama_chat(body: ChatRequest, x_learner_id: Optional[str] = Header(None)):
    """Chat pinned to the local Ollama server."""
    learner_id = check_learner_header(x_learner_id)
    try:
        return await run_chat(body, "ollama", learner_id)
    except LLMError as e:
        logger.warning(f"⚠️ Ollama unavailable: {e}")
        return error_response(503, MESSAGES["OLLAMA_UNAVAILABLE"])


@app.post("/api/validate-code")
async def validate_code(body: CodeRequest, x_learner_id: Optional[str] = Header(None)):
    """AI code review, falling back to the local syntax checker."""
    learner_id = check_learner_header(x_learner_id)
    syntax = syntax_checker.check(body.code, body.language)
    cache_key = make_cache_key("validate", body.language, body.code)

    payload = get_cached(cache_key, "validation")
    if payload is None:
        start = time.time()
        try:
            ai_response = await ai_orchestrator.chat(
                build_validation_messages(body.code, body.language), temperature=0.2,
                exclude=CODE_TOOL_EXCLUDED_PROVIDERS,
            )
            request_log.log_api_call(ai_response.provider, "validate", (time.time() - start) * 1000, True)
            analysis = parse_validation_response(ai_response.content)
        except LLMError as e:
            request_log.log_api_call("chain", "validate", (time.time() - start) * 1000, False, error=str(e))
            request_log.log_fallback("AI validation unavailable, using syntax checker", str(e))
            request_counter["fallbacks"] += 1
            ai_response, analysis = None, None

        if analysis is not None and not analysis.is_empty():
            payload = {
                "analysis": analysis.model_dump(by_alias=True),
                "source": "ai",
                "provider": ai_response.provider,
                "language": body.language,
                "syntaxCheck": syntax.model_dump(by_alias=True),
                "cached": False,
            }
            store_cached(cache_key, payload)
        else:
            payload = {
                "analysis": syntax_result_to_validation(syntax).model_dump(by_alias=True),
                "source": "syntax-checker",
                "provider": None,
                "language": body.language,
                "syntaxCheck": syntax.model_dump(by_alias=True),
                "cached": False,
            }

    unlocked = await record_learner_activity(learner_id, "code_validation")
    if unlocked is not None:
        payload["newAchievements"] = unlocked
    return payload


@app.post("/api/explain-code")
async def explain_code(body: CodeRequest, x_learner_id: Optional[str] = Header(None)):
    """Step-by-step explanation of a snippet."""
    learner_id = check_learner_header(x_learner_id)
    cache_key = make_cache_key("explain", body.language, body.code)

    payload = get_cached(cache_key, "explanation")
    if payload is None:
        start = time.time()
        try:
            ai_response = await ai_orchestrator.chat(
                build_explanation_messages(body.code, body.language),
                exclude=CODE_TOOL_EXCLUDED_PROVIDERS,
            )
        except LLMError as e:
            request_log.log_api_call("chain", "explain", (time.time() - start) * 1000, False, error=str(e))
            return error_response(503, MESSAGES["EXPLANATION_ERROR"])

        request_log.log_api_call(ai_response.provider, "explain", (time.time() - start) * 1000, True)
        payload = {
            "explanation": ai_response.content,
            "html": format_response(ai_response.content),
            "provider": ai_response.provider,
            "language": body.language,
            "cached": False,
        }
        store_cached(cache_key, payload)

    unlocked = await record_learner_activity(learner_id, "ai_interaction")
    if unlocked is not None:
        payload["newAchievements"] = unlocked
    return payload


@app.post("/api/syntax-check")
async def syntax_check(body: CodeRequest):
    """Local heuristic check only; no AI involved."""
    result = syntax_checker.check(body.code, body.language)
    return {**result.model_dump(by_alias=True), "language": body.language}


# ============================================================================
# PROGRESS ENDPOINTS
# ============================================================================

def progress_payload(progress, unlocked: Optional[List[str]] = None) -> Dict[str, Any]:
    payload = {"progress": progress.model_dump(mode="json", by_alias=True)}
    if unlocked is not None:
        payload["newAchievements"] = [ACHIEVEMENTS[a].model_dump() for a in unlocked]
    return payload


@app.get("/api/progress/{learner_id}")
def export_progress(learner_id: str):
    return progress_tracker.export_progress(learner_id)


@app.put("/api/progress/{learner_id}")
def import_progress(learner_id: str, data: Dict[str, Any] = Body(...)):
    return progress_payload(progress_tracker.import_progress(learner_id, data))


@app.delete("/api/progress/{learner_id}")
def reset_progress(learner_id: str):
    return progress_payload(progress_tracker.reset_progress(learner_id))


@app.get("/api/progress/{learner_id}/stats")
def progress_stats(learner_id: str):
    return progress_tracker.get_stats(learner_id).model_dump(by_alias=True)


@app.post("/api/progress/{learner_id}/lessons/{lesson_id}/complete")
def complete_lesson(learner_id: str, lesson_id: str):
    lesson = lesson_store.get_lesson(lesson_id)
    progress, unlocked = progress_tracker.complete_lesson(learner_id, lesson.id)
    return progress_payload(progress, unlocked)


@app.post("/api/progress/{learner_id}/events")
def record_event(learner_id: str, body: ProgressEventRequest):
    progress, unlocked = progress_tracker.record_event(learner_id, body.event)
    return progress_payload(progress, unlocked)


@app.post("/api/progress/{learner_id}/time")
def add_time_spent(learner_id: str, body: TimeSpentRequest):
    return progress_payload(progress_tracker.add_time_spent(learner_id, body.minutes))


# ============================================================================
# ENTRY POINT
# ============================================================================

def main() -> None:
    """Run the API with uvicorn (console script: kidlearner)."""
    uvicorn.run(
        "api_server:app",
        host=HOST,
        port=PORT,
        reload=False,
        log_level=LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
