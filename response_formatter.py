"""
Response Formatter
Turns model replies (light markdown) into safe HTML for the chat panel.
"""

import html
import re

CODE_BLOCK = re.compile(r"```([\w+-]+)?[ \t]*\n(.*?)```", re.DOTALL)
INLINE_CODE = re.compile(r"`([^`\n]+)`")


def _format_prose(text: str) -> str:
    """Escape text and convert inline code and line breaks"""
    parts = []
    last = 0
    for match in INLINE_CODE.finditer(text):
        parts.append(html.escape(text[last:match.start()]))
        parts.append(f"<code>{html.escape(match.group(1))}</code>")
        last = match.end()
    parts.append(html.escape(text[last:]))
    return "".join(parts).replace("\n", "<br>")


def format_response(text: str) -> str:
    """
    Convert a model reply to HTML

    Fenced blocks become <pre><code class="language-x">, inline backticks
    become <code>, and everything else is escaped with newlines as <br>.
    Code block contents keep their own newlines.
    """
    if not text:
        return ""

    parts = []
    last = 0
    for match in CODE_BLOCK.finditer(text):
        parts.append(_format_prose(text[last:match.start()]))
        language = (match.group(1) or "text").lower()
        code = html.escape(match.group(2).strip("\n").rstrip())
        parts.append(f'<pre><code class="language-{language}">{code}</code></pre>')
        last = match.end()
    parts.append(_format_prose(text[last:]))
    return "".join(parts)


def clean_text(text: str) -> str:
    """Plain text without HTML tags, markdown markers or extra whitespace"""
    if not text:
        return ""
    text = re.sub(r"<[^>]+>", " ", text)
    text = html.unescape(text)
    text = re.sub(r"```[\w+-]*", "", text)
    text = re.sub(r"(\*\*|__|`)", "", text)
    text = re.sub(r"^\s*#+\s*", "", text, flags=re.MULTILINE)
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n\s*\n+", "\n\n", text)
    return text.strip()


def truncate(text: str, max_length: int = 500, suffix: str = "...") -> str:
    if len(text) <= max_length:
        return text
    return text[:max(max_length - len(suffix), 0)].rstrip() + suffix
