"""
Prompt templates and AI response parsing
========================================

Builds the message lists sent to the providers and turns their free-form
replies back into structured data.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from constants import MAX_CHAT_HISTORY, MAX_JSON_RESPONSE_SIZE
from schemas import SyntaxCheckResult, ValidationResult

logger = logging.getLogger("PROMPTS")

LANGUAGE_NAMES = {"html": "HTML", "css": "CSS", "javascript": "JavaScript"}

TUTOR_SYSTEM_PROMPT = """You are KidLearner, a friendly coding tutor for children and complete beginners.
You help with HTML, CSS and JavaScript only.

Rules:
- Use short sentences and simple words. Explain any technical word the first time you use it.
- Be encouraging. Mistakes are part of learning.
- Prefer small examples in fenced code blocks with the language name (```html, ```css, ```javascript).
- Give hints before full solutions when the learner is working on an exercise.
- Never ask for personal information. Politely steer off-topic questions back to web development."""

VALIDATION_KEYS = {
    "errors": "errors",
    "warnings": "warnings",
    "suggestions": "suggestions",
    "bestPractices": "best_practices",
    "best_practices": "best_practices",
}

# Headings a model uses when it ignores the JSON instruction
SECTION_HEADINGS = [
    (re.compile(r"^\W*(errors?|issues?( found)?|problems?)\W*:?\s*$", re.I), "errors"),
    (re.compile(r"^\W*warnings?\W*:?\s*$", re.I), "warnings"),
    (re.compile(r"^\W*(suggestions?|improvements?|tips?)\W*:?\s*$", re.I), "suggestions"),
    (re.compile(r"^\W*best[\s_-]*practices?\W*:?\s*$", re.I), "best_practices"),
]
BULLET = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+")


def language_name(language: str) -> str:
    return LANGUAGE_NAMES.get(language, language.upper())


# =============================================================================
# PROMPT BUILDERS
# =============================================================================

def build_chat_messages(history: Sequence[Dict[str, str]],
                        system_prompt: str = TUTOR_SYSTEM_PROMPT) -> List[Dict[str, str]]:
    """
    Conversation ready for a provider

    The tutor prompt is prepended unless the caller already sent a system
    message. Only the last MAX_CHAT_HISTORY non-system messages are kept.
    """
    system_messages = [dict(m) for m in history if m["role"] == "system"]
    conversation = [dict(m) for m in history if m["role"] != "system"]

    if len(conversation) > MAX_CHAT_HISTORY:
        logger.debug(f"✂️ Trimming chat history from {len(conversation)} to {MAX_CHAT_HISTORY}")
        conversation = conversation[-MAX_CHAT_HISTORY:]

    if not system_messages:
        system_messages = [{"role": "system", "content": system_prompt}]

    return system_messages + conversation


def build_validation_messages(code: str, language: str) -> List[Dict[str, str]]:
    name = language_name(language)
    prompt = f"""Review this {name} code written by a beginner.

Reply with JSON only, using exactly these keys (each a list of short strings):
{{"errors": [], "warnings": [], "suggestions": [], "bestPractices": []}}

- errors: things that are broken or invalid {name}
- warnings: things that work but may cause problems
- suggestions: friendly ideas to improve the code
- bestPractices: one or two habits worth learning from this code

Mention line numbers when you can. Keep every item under 30 words.

```{language}
{code}
```"""
    return [
        {"role": "system", "content": TUTOR_SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]


def build_explanation_messages(code: str, language: str) -> List[Dict[str, str]]:
    name = language_name(language)
    prompt = f"""Explain what this {name} code does, step by step, for a beginner.
Start with one sentence about the whole snippet, then walk through the important parts.
Finish with one idea the learner could try next.

```{language}
{code}
```"""
    return [
        {"role": "system", "content": TUTOR_SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]


# =============================================================================
# RESPONSE PARSING
# =============================================================================

def _balanced_object_starts(text: str) -> List[int]:
    """
    Offsets of every {...} block with balanced braces, outermost first

    One pass with a stack of open braces. Quotes only count inside an
    open block, so apostrophes and quotes in surrounding prose are ignored.
    """
    starts: List[int] = []
    stack: List[int] = []
    in_string = False
    escaped = False
    for index, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == "{":
            stack.append(index)
        elif char == "}" and stack:
            starts.append(stack.pop())
        elif char == '"' and stack:
            in_string = True
    return sorted(starts)


def _load_object(candidate: Optional[str]) -> Optional[Dict[str, Any]]:
    if not candidate:
        return None
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def _decode_object_at(decoder: json.JSONDecoder, text: str, start: int) -> Optional[Dict[str, Any]]:
    try:
        data, _ = decoder.raw_decode(text, start)
    except (ValueError, RecursionError):
        return None
    return data if isinstance(data, dict) else None


def extract_json_from_response(text: str) -> Optional[Dict[str, Any]]:
    """
    Pull a JSON object out of a model reply

    Tries <json>...</json> tags, then fenced code blocks, then each
    balanced {...} in the text. Returns None when nothing parses or the
    reply is larger than MAX_JSON_RESPONSE_SIZE.
    """
    if not text or len(text) > MAX_JSON_RESPONSE_SIZE:
        if text:
            logger.warning(f"⚠️ AI response too large to parse as JSON: {len(text)} chars")
        return None

    match = re.search(r"<json>(.*?)</json>", text, re.DOTALL | re.IGNORECASE)
    if match:
        data = _load_object(match.group(1).strip())
        if data is not None:
            return data

    for block in re.findall(r"```(?:json)?\s*\n?(.*?)```", text, re.DOTALL | re.IGNORECASE):
        data = _load_object(block.strip())
        if data is not None:
            return data

    decoder = json.JSONDecoder()
    for start in _balanced_object_starts(text):
        data = _decode_object_at(decoder, text, start)
        if data is not None:
            return data
    return None


def _as_string_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if isinstance(value, list):
        items = []
        for item in value:
            if isinstance(item, dict):
                item = item.get("message") or item.get("text") or json.dumps(item)
            text = str(item).strip()
            if text:
                items.append(text)
        return items
    return [str(value)]


def _parse_sections(text: str) -> Dict[str, List[str]]:
    sections: Dict[str, List[str]] = {}
    current = None
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        heading = next((key for pattern, key in SECTION_HEADINGS if pattern.match(line)), None)
        if heading:
            current = heading
            sections.setdefault(current, [])
            continue

        if current:
            item = BULLET.sub("", line).strip()
            if item:
                sections[current].append(item)
    return sections


def parse_validation_response(text: str) -> ValidationResult:
    """
    Structured review from a model reply

    JSON is preferred; a reply with Errors/Warnings/... headings is parsed
    section by section; anything else becomes a single suggestion.
    """
    data = extract_json_from_response(text)
    if data is not None:
        fields: Dict[str, List[str]] = {}
        for key, field_name in VALIDATION_KEYS.items():
            if key in data:
                fields.setdefault(field_name, []).extend(_as_string_list(data[key]))
        if fields:
            return ValidationResult(**fields)

    sections = _parse_sections(text or "")
    if any(sections.values()):
        return ValidationResult(**sections)

    stripped = (text or "").strip()
    return ValidationResult(suggestions=[stripped] if stripped else [])


def syntax_result_to_validation(result: SyntaxCheckResult) -> ValidationResult:
    """Express local checker findings in the AI review format"""
    suggestions: List[str] = []
    for issue in result.errors + result.warnings:
        if issue.suggestion and issue.suggestion not in suggestions:
            suggestions.append(issue.suggestion)

    best_practices = []
    if result.is_valid and not result.warnings:
        best_practices.append("No syntax problems found. Keep your code neatly indented!")

    return ValidationResult(
        errors=[f"Line {issue.line}: {issue.message}" for issue in result.errors],
        warnings=[f"Line {issue.line}: {issue.message}" for issue in result.warnings],
        suggestions=suggestions,
        best_practices=best_practices,
    )
