"""
Text Validation Module
======================

All text validation rules for chat messages and submitted code live here.
"""

from dataclasses import dataclass
from typing import List, Optional

from constants import MAX_CODE_LENGTH, MAX_MESSAGE_LENGTH


class ValidationError(ValueError):
    """Raised when validation fails"""
    pass


@dataclass
class TextValidationResult:
    """Result of validation check"""
    is_valid: bool
    errors: List[str]

    def __bool__(self) -> bool:
        return self.is_valid

    def error_message(self) -> str:
        """Returns the errors joined into one line"""
        return "; ".join(self.errors)


class TextValidator:
    """
    Centralized text validator

    Usage:
        from validators import TextValidator

        result = TextValidator.validate(user_input)
        if not result:
            print(result.error_message())
    """

    MIN_LENGTH = 1
    MAX_LENGTH = MAX_MESSAGE_LENGTH

    @classmethod
    def validate(cls, text: Optional[str], max_length: Optional[int] = None,
                 field: str = "Text") -> TextValidationResult:
        """
        Validates text and returns detailed result

        Args:
            text: Text to validate
            max_length: Override for the maximum length
            field: Name used in error messages

        Returns:
            TextValidationResult with is_valid flag and error list
        """
        limit = max_length or cls.MAX_LENGTH

        if text is None:
            return TextValidationResult(is_valid=False, errors=[f"{field} is required"])

        if not isinstance(text, str):
            return TextValidationResult(is_valid=False, errors=[f"{field} must be a string"])

        if not text.strip():
            return TextValidationResult(is_valid=False, errors=[f"{field} cannot be empty"])

        errors = []
        if len(text) > limit:
            errors.append(
                f"{field} is too long (maximum {limit} characters, got {len(text)})"
            )

        return TextValidationResult(is_valid=not errors, errors=errors)

    @classmethod
    def validate_code(cls, code: Optional[str]) -> TextValidationResult:
        return cls.validate(code, max_length=MAX_CODE_LENGTH, field="Code")

    @classmethod
    def validate_or_raise(cls, text: Optional[str], max_length: Optional[int] = None,
                          field: str = "Text") -> str:
        """
        Validates text or raises exception

        Returns:
            The text unchanged

        Raises:
            ValidationError: If validation fails
        """
        result = cls.validate(text, max_length=max_length, field=field)
        if not result.is_valid:
            raise ValidationError(result.error_message())
        return text

    @staticmethod
    def truncate(text: str, max_length: int = 200) -> str:
        """Truncates text to max_length, ending with an ellipsis when cut"""
        if len(text) <= max_length:
            return text
        return text[:max_length - 3] + "..."
