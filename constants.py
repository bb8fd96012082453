"""
KidLearner - Global Constants

This module centralizes limits, supported languages and the user-facing
messages used by the API server and its helpers.
"""

# =============================================================================
# INPUT LIMITS & VALIDATION
# =============================================================================

MAX_MESSAGE_LENGTH = 10000  # Characters per chat message
MAX_CHAT_MESSAGES = 100  # Messages accepted in one chat request
MAX_CHAT_HISTORY = 50  # Messages forwarded to the model
MAX_CODE_LENGTH = 50000  # Characters of code per validation request
MAX_LEARNER_ID_LENGTH = 64
MAX_REQUEST_BODY_BYTES = 1024 * 100  # 100KB
MAX_JSON_RESPONSE_SIZE = 100_000  # Largest AI reply we try to parse as JSON

CHAT_ROLES = ("user", "assistant", "system")

# =============================================================================
# LANGUAGES
# =============================================================================

SUPPORTED_LANGUAGES = ("html", "css", "javascript")
LANGUAGE_ALIASES = {
    "js": "javascript",
    "htm": "html",
}

# =============================================================================
# PROGRESS EVENTS
# =============================================================================

PROGRESS_EVENTS = ("ai_interaction", "code_validation", "file_saved")

# =============================================================================
# USER-FACING MESSAGES
# =============================================================================

MESSAGES = {
    "API_UNAVAILABLE": "Service temporarily unavailable. Please try again later.",
    "NETWORK_ERROR": "Network connection error. Please check your internet connection.",
    "AI_UNAVAILABLE": "AI assistant is currently unavailable. Please try again later.",
    "OLLAMA_UNAVAILABLE": (
        "Ollama AI is not available. Please ensure Ollama is running locally "
        "on port 11434. You can download Ollama from https://ollama.ai"
    ),
    "LESSON_LOAD_ERROR": "Unable to load lesson. Please try again.",
    "VALIDATION_ERROR": "Code validation failed. Please check your syntax.",
    "EXPLANATION_ERROR": "Unable to explain code. Please check your connection and try again.",
    "NO_RESPONSE": "Sorry, I couldn't generate a response.",
}
