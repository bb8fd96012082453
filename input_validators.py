"""
Input Validators
Request bodies accepted by the API server.
"""

import logging
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from constants import MAX_CHAT_MESSAGES, MAX_CODE_LENGTH, MAX_MESSAGE_LENGTH
from exceptions import UnsupportedLanguageError
from schemas import ChatMessage
from validators import TextValidator, normalize_language

logger = logging.getLogger(__name__)

MAX_MINUTES_PER_REPORT = 24 * 60


class ChatRequest(BaseModel):
    """Chat conversation for /api/ai and /api/ollama"""
    messages: List[ChatMessage] = Field(..., min_length=1, max_length=MAX_CHAT_MESSAGES)
    provider: Optional[str] = Field(None, max_length=32)
    model: Optional[str] = Field(None, max_length=100)

    @field_validator("messages")
    @classmethod
    def validate_messages(cls, messages: List[ChatMessage]) -> List[ChatMessage]:
        for index, message in enumerate(messages):
            TextValidator.validate_or_raise(message.content, max_length=MAX_MESSAGE_LENGTH,
                                            field=f"Message {index + 1}")
        return messages

    @field_validator("provider")
    @classmethod
    def normalize_provider(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().lower() or None if v else None

    def last_user_message(self) -> str:
        for message in reversed(self.messages):
            if message.role == "user":
                return message.content
        return ""


class CodeRequest(BaseModel):
    """Code snippet for validation, explanation and syntax checks"""
    code: str = Field(..., max_length=MAX_CODE_LENGTH)
    language: str = Field("html", max_length=20)

    @field_validator("code")
    @classmethod
    def validate_code(cls, v: str) -> str:
        result = TextValidator.validate_code(v)
        if not result:
            raise ValueError(result.error_message())
        return v

    @field_validator("language")
    @classmethod
    def validate_language(cls, v: str) -> str:
        try:
            return normalize_language(v)
        except UnsupportedLanguageError as e:
            raise ValueError(e.to_user_message())


class ProgressEventRequest(BaseModel):
    """Activity counter to bump for a learner"""
    event: Literal["ai_interaction", "code_validation", "file_saved"]


class TimeSpentRequest(BaseModel):
    minutes: int = Field(..., ge=0, le=MAX_MINUTES_PER_REPORT)


def first_error_message(errors: list) -> str:
    """
    One readable line from a pydantic error list

    Returns:
        "field: message" for the first error
    """
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid value").removeprefix("Value error, ")
    return f"{location}: {message}" if location else message


def sanitize_for_log(text: str, max_length: int = 200) -> str:
    """Single-line, control-character free preview of user text for logs"""
    text = " ".join(text.split())
    text = "".join(char for char in text if ord(char) >= 32)
    return TextValidator.truncate(text, max_length)
