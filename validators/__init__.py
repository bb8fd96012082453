"""
Unified Validation System
=========================

Centralized validation for chat text, prompt safety and learner code.
"""

from .text_validator import TextValidationResult, TextValidator, ValidationError
from .security_validator import SecurityValidator
from .syntax_checker import SyntaxChecker, normalize_language

__all__ = [
    "TextValidator",
    "TextValidationResult",
    "ValidationError",
    "SecurityValidator",
    "SyntaxChecker",
    "normalize_language",
]
