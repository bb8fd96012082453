"""
Custom exception classes for the KidLearner backend.
Provides standardized error handling across the application.
"""

from typing import Optional

from constants import MESSAGES


class KidLearnerException(Exception):
    """Base exception for all KidLearner errors."""

    status_code = 500

    def __init__(self, message: str, error_code: str = None, context: dict = None):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.context = context or {}
        super().__init__(self.message)

    def to_user_message(self) -> str:
        """Return a user-friendly error message."""
        return self.message


# ============================================================================
# INPUT ERRORS
# ============================================================================

class InvalidInputError(KidLearnerException):
    """Raised when request input fails validation."""

    status_code = 400


class UnsupportedLanguageError(InvalidInputError):
    """Raised when code is submitted in a language we cannot check."""

    def to_user_message(self) -> str:
        return f"Unsupported language: {self.message}. Use html, css or javascript."


# ============================================================================
# CONTENT ERRORS
# ============================================================================

class LessonNotFoundError(KidLearnerException):
    """Raised when a lesson id does not exist."""

    status_code = 404

    def to_user_message(self) -> str:
        return "Lesson not found"


class ContentLoadError(KidLearnerException):
    """Raised when bundled lesson or example content cannot be loaded."""

    def to_user_message(self) -> str:
        return MESSAGES["LESSON_LOAD_ERROR"]


# ============================================================================
# PROGRESS ERRORS
# ============================================================================

class ProgressStorageError(KidLearnerException):
    """Raised when learner progress cannot be read or written."""

    def to_user_message(self) -> str:
        return "Unable to save your progress. Please try again later."


# ============================================================================
# AI / LLM ERRORS
# ============================================================================

class LLMError(KidLearnerException):
    """Base exception for LLM-related errors."""

    status_code = 503

    def __init__(self, message: str, provider: Optional[str] = None, **kwargs):
        self.provider = provider
        super().__init__(message, **kwargs)

    def to_user_message(self) -> str:
        return MESSAGES["AI_UNAVAILABLE"]


class LLMTimeoutError(LLMError):
    """Raised when an LLM request times out."""

    status_code = 504

    def to_user_message(self) -> str:
        return f"The AI took too long to answer. {MESSAGES['NETWORK_ERROR']}"


class LLMAPIError(LLMError):
    """Raised when an LLM API returns an error or cannot be reached."""
    pass


class LLMInvalidResponseError(LLMError):
    """Raised when an LLM returns an empty or malformed reply."""

    status_code = 502

    def to_user_message(self) -> str:
        return "Sorry, I couldn't generate a response."


class LLMFallbackExhaustedError(LLMError):
    """Raised when every provider in the chain failed."""

    def __init__(self, message: str, errors: Optional[dict] = None, **kwargs):
        self.errors = errors or {}
        super().__init__(message, **kwargs)


# ============================================================================
# UTILITY FUNCTIONS
# ============================================================================

ERROR_CATEGORY_MESSAGES = {
    "type": "Something went wrong with the data type. Please try again.",
    "reference": "A required component is missing. Please refresh the page.",
    "syntax": "There's a code syntax issue. Please check your code.",
    "network": MESSAGES["NETWORK_ERROR"],
    "ai": MESSAGES["AI_UNAVAILABLE"],
    "storage": "Unable to save your progress. Please check your settings.",
    "general": "An unexpected error occurred. Please try again.",
}


def categorize_error(exc: Exception) -> str:
    """Sort an exception into one of the categories in ERROR_CATEGORY_MESSAGES."""
    if isinstance(exc, LLMError):
        return "ai"
    if isinstance(exc, ProgressStorageError):
        return "storage"
    if isinstance(exc, (TypeError, ValueError)):
        return "type"
    if isinstance(exc, (NameError, AttributeError, KeyError)):
        return "reference"
    if isinstance(exc, SyntaxError):
        return "syntax"
    if isinstance(exc, (ConnectionError, TimeoutError)):
        return "network"

    text = str(exc).lower()
    if "ollama" in text or "openai" in text or "openrouter" in text:
        return "ai"
    if "sqlite" in text or "database" in text:
        return "storage"
    return "general"


def handle_exception(exc: Exception) -> str:
    """
    Convert any exception to a user-friendly message.

    Args:
        exc: The exception to handle

    Returns:
        User-friendly error message
    """
    if isinstance(exc, KidLearnerException):
        return exc.to_user_message()
    return ERROR_CATEGORY_MESSAGES[categorize_error(exc)]
