"""
Prompt Safety Module
====================

Checks learner chat messages for prompt-injection attempts before they are
forwarded to a language model. Submitted code is NOT run through these rules:
HTML and JavaScript snippets legitimately contain script tags and handlers.
"""

from dataclasses import dataclass
from typing import List
import re


@dataclass
class SecurityValidationResult:
    """Result of security validation"""
    is_safe: bool
    threats: List[str]

    def __bool__(self) -> bool:
        return self.is_safe

    def threat_message(self) -> str:
        return "; ".join(self.threats)


class SecurityValidator:
    """
    Prompt-injection detector and sanitizer

    Usage:
        from validators import SecurityValidator

        result = SecurityValidator.validate(message)
        if not result:
            logger.warning(f"Prompt injection: {result.threat_message()}")
        clean = SecurityValidator.sanitize(message)
    """

    INJECTION_PATTERNS = [
        (r"ignore\s+(all\s+)?(previous|above|prior)\s+instructions?", "Instruction override"),
        (r"forget\s+everything", "Instruction override"),
        (r"you\s+are\s+now\s+", "Role hijack"),
        (r"new\s+system\s+prompt", "Role hijack"),
        (r"<\|im_(start|end)\|>", "Chat-template token"),
        (r"<\|(system|user|assistant)\|>", "Chat-template token"),
        (r"\[/?INST\]", "Chat-template token"),
    ]

    # Stripped by sanitize(); model control tokens have no place in a lesson chat
    TOKEN_PATTERN = re.compile(r"<\|[a-z_]+\|>|\[/?INST\]", re.IGNORECASE)

    @classmethod
    def validate(cls, text: str) -> SecurityValidationResult:
        threats = []
        for pattern, description in cls.INJECTION_PATTERNS:
            if re.search(pattern, text, re.IGNORECASE) and description not in threats:
                threats.append(description)

        return SecurityValidationResult(is_safe=not threats, threats=threats)

    @classmethod
    def sanitize(cls, text: str) -> str:
        """
        Removes control characters and chat-template tokens

        Newlines and tabs are kept so code pasted into the chat stays readable.
        """
        text = "".join(char for char in text if ord(char) >= 32 or char in "\n\r\t")
        text = cls.TOKEN_PATTERN.sub("", text)
        text = re.sub(r"\n{3,}", "\n\n", text)
        return text.strip()
