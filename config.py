# config.py
# Centralized configuration for the KidLearner backend

import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_list(name: str, default: str) -> List[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


# ============================================================================
# SERVER CONFIGURATION
# ============================================================================
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "4000"))
ALLOWED_ORIGINS = _env_list("ALLOWED_ORIGINS", "*")
FRONTEND_DIR = os.getenv("FRONTEND_DIR", "")

# ============================================================================
# CONTENT & STORAGE
# ============================================================================
LESSONS_PATH = os.getenv("LESSONS_PATH", str(BASE_DIR / "data" / "lessons.json"))
CODE_EXAMPLES_PATH = os.getenv("CODE_EXAMPLES_PATH", str(BASE_DIR / "data" / "code_examples.json"))
PROGRESS_DB_PATH = os.getenv("PROGRESS_DB_PATH", str(BASE_DIR / "kidlearner_progress.db"))

# ============================================================================
# AI PROVIDER CONFIGURATION
# ============================================================================
# Providers are tried in this order until one answers
AI_PROVIDER_CHAIN = _env_list("AI_PROVIDER_CHAIN", "ollama,mock")

AI_TIMEOUT_SECONDS = float(os.getenv("AI_TIMEOUT", "60"))
AI_RETRY_ATTEMPTS = int(os.getenv("AI_RETRY_ATTEMPTS", "3"))
AI_TEMPERATURE = float(os.getenv("AI_TEMPERATURE", "0.4"))
AI_MAX_TOKENS = int(os.getenv("AI_MAX_TOKENS", "1000"))

OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "gemma3:1b")

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "") or None

OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY", "")
OPENROUTER_MODEL = os.getenv("OPENROUTER_MODEL", "meta-llama/llama-3.1-8b-instruct:free")
OPENROUTER_BASE_URL = os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1")
OPENROUTER_SITE_URL = os.getenv("OPENROUTER_SITE_URL", "http://localhost:4000")
OPENROUTER_APP_NAME = os.getenv("OPENROUTER_APP_NAME", "KidLearner")

# ============================================================================
# CACHE CONFIGURATION
# ============================================================================
CACHE_ENABLED = _env_bool("CACHE_ENABLED", "true")
CACHE_TTL_SECONDS = int(os.getenv("CACHE_TTL_SECONDS", "300"))  # 5 minutes
CACHE_MAX_SIZE = int(os.getenv("CACHE_MAX_SIZE", "500"))

# ============================================================================
# RATE LIMITING
# ============================================================================
RATE_LIMIT_ENABLED = _env_bool("RATE_LIMIT_ENABLED", "true")
RATE_LIMIT_REQUESTS = int(os.getenv("RATE_LIMIT_REQUESTS", "60"))
RATE_LIMIT_WINDOW = int(os.getenv("RATE_LIMIT_WINDOW", "60"))  # seconds

# ============================================================================
# LOGGING CONFIGURATION
# ============================================================================
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "text")  # json or text

# ============================================================================
# DEVELOPMENT / PRODUCTION
# ============================================================================
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
DEBUG_MODE = _env_bool("DEBUG_MODE", "false")

KNOWN_PROVIDERS = ("ollama", "openai", "openrouter", "mock")


# ============================================================================
# VALIDATION
# ============================================================================
def validate_config() -> List[str]:
    """Check critical configuration values and return the problems found."""
    errors = []

    if not AI_PROVIDER_CHAIN:
        errors.append("AI_PROVIDER_CHAIN is empty")

    for name in AI_PROVIDER_CHAIN:
        if name not in KNOWN_PROVIDERS:
            errors.append(f"Unknown AI provider in AI_PROVIDER_CHAIN: {name}")

    if "openai" in AI_PROVIDER_CHAIN and not OPENAI_API_KEY:
        errors.append("OPENAI_API_KEY is not set but openai is in AI_PROVIDER_CHAIN")

    if "openrouter" in AI_PROVIDER_CHAIN and not OPENROUTER_API_KEY:
        errors.append("OPENROUTER_API_KEY is not set but openrouter is in AI_PROVIDER_CHAIN")

    if not Path(LESSONS_PATH).exists():
        errors.append(f"Lessons file not found: {LESSONS_PATH}")

    if LOG_FORMAT not in ("json", "text"):
        errors.append(f"LOG_FORMAT must be json or text, got {LOG_FORMAT}")

    if errors and ENVIRONMENT == "production":
        raise ValueError("Invalid configuration: " + "; ".join(errors))

    return errors
