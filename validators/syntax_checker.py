"""
Syntax Checker for HTML, CSS and JavaScript
===========================================

Best-effort static checks for beginner snippets. Everything here is a regex
or character-scan heuristic: there is no real parser and no AST, so the
checker aims to point a learner at the likely problem, not to be a compiler.

Usage:
    from validators import SyntaxChecker

    result = SyntaxChecker().check(code, "html")
    for issue in result.errors:
        print(issue.line, issue.message)
"""

import logging
import re
from typing import Dict, List, Optional, Tuple

from constants import LANGUAGE_ALIASES, SUPPORTED_LANGUAGES
from exceptions import UnsupportedLanguageError
from schemas import SyntaxCheckResult, SyntaxIssue

logger = logging.getLogger("SYNTAX_CHECKER")


VOID_ELEMENTS = frozenset([
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "param", "source", "track", "wbr",
])

KNOWN_CSS_PROPERTIES = frozenset([
    "align-content", "align-items", "align-self", "animation", "animation-delay",
    "animation-direction", "animation-duration", "animation-fill-mode",
    "animation-iteration-count", "animation-name", "animation-timing-function",
    "aspect-ratio", "backdrop-filter", "background", "background-attachment",
    "background-clip", "background-color", "background-image", "background-position",
    "background-repeat", "background-size", "border", "border-bottom",
    "border-bottom-color", "border-bottom-left-radius", "border-bottom-right-radius",
    "border-bottom-style", "border-bottom-width", "border-collapse", "border-color",
    "border-left", "border-left-color", "border-left-style", "border-left-width",
    "border-radius", "border-right", "border-right-color", "border-right-style",
    "border-right-width", "border-spacing", "border-style", "border-top",
    "border-top-color", "border-top-left-radius", "border-top-right-radius",
    "border-top-style", "border-top-width", "border-width", "bottom", "box-shadow",
    "box-sizing", "caption-side", "clear", "clip-path", "color", "column-count",
    "column-gap", "columns", "content", "cursor", "direction", "display",
    "fill", "filter", "flex", "flex-basis", "flex-direction", "flex-flow",
    "flex-grow", "flex-shrink", "flex-wrap", "float", "font", "font-family",
    "font-size", "font-style", "font-variant", "font-weight", "gap", "grid",
    "grid-area", "grid-auto-columns", "grid-auto-flow", "grid-auto-rows",
    "grid-column", "grid-column-end", "grid-column-start", "grid-gap", "grid-row",
    "grid-row-end", "grid-row-start", "grid-template", "grid-template-areas",
    "grid-template-columns", "grid-template-rows", "height", "inset",
    "justify-content", "justify-items", "justify-self", "left", "letter-spacing",
    "line-height", "list-style", "list-style-image", "list-style-position",
    "list-style-type", "margin", "margin-bottom", "margin-left", "margin-right",
    "margin-top", "max-height", "max-width", "min-height", "min-width",
    "object-fit", "object-position", "opacity", "order", "outline", "outline-color",
    "outline-offset", "outline-style", "outline-width", "overflow", "overflow-wrap",
    "overflow-x", "overflow-y", "padding", "padding-bottom", "padding-left",
    "padding-right", "padding-top", "place-items", "place-content", "pointer-events",
    "position", "resize", "right", "row-gap", "scroll-behavior", "src", "stroke",
    "stroke-width", "table-layout", "text-align", "text-decoration",
    "text-decoration-color", "text-decoration-line", "text-decoration-style",
    "text-indent", "text-overflow", "text-shadow", "text-transform", "top",
    "transform", "transform-origin", "transition", "transition-delay",
    "transition-duration", "transition-property", "transition-timing-function",
    "user-select", "vertical-align", "visibility", "white-space", "width",
    "word-break", "word-spacing", "word-wrap", "z-index",
])

VENDOR_PREFIX = re.compile(r"^-(webkit|moz|ms|o)-")

# Names a beginner may assign without declaring them first
JS_GLOBALS = frozenset([
    "window", "document", "console", "module", "exports", "globalThis",
    "location", "localStorage", "sessionStorage", "this",
])

SUGGESTIONS: Dict[str, Dict[str, str]] = {
    "html": {
        "unclosed-tag": "Make sure every opening tag has a corresponding closing tag",
        "missing-alt": "Add alt attributes to images for accessibility",
        "invalid-nesting": "Check that tags are properly nested",
    },
    "css": {
        "missing-semicolon": "Add semicolons at the end of CSS properties",
        "missing-brace": "Check that all braces are properly matched",
        "invalid-property": "Verify CSS property names are correct",
    },
    "javascript": {
        "syntax-error": "Check for missing parentheses, brackets, or quotes",
        "undefined-variable": "Make sure variables are declared before use",
        "missing-semicolon": "Consider adding semicolons for clarity",
    },
}
DEFAULT_SUGGESTION = "Review your code for syntax issues"

_HTML_COMMENT = re.compile(r"<!--.*?-->", re.DOTALL)
_RAW_TEXT_ELEMENT = re.compile(r"(<(script|style)\b[^>]*>)(.*?)(</\2\s*>)", re.IGNORECASE | re.DOTALL)
_HTML_TAG = re.compile(r"<(/?)([a-zA-Z][a-zA-Z0-9-]*)\b([^>]*)>")
_BLOCK_IN_PARAGRAPH = re.compile(
    r"<p\b[^>]*>(?:(?!</p\s*>).)*?<(div|h[1-6])\b", re.IGNORECASE | re.DOTALL
)
_CSS_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
_CSS_BLOCK = re.compile(r"\{([^{}]*)\}")
_CSS_DECLARATION = re.compile(r"^\s*(-{0,2}[a-zA-Z][a-zA-Z0-9-]*)\s*:(.*)$", re.DOTALL)
_JS_LITERALS = re.compile(
    r"//[^\n]*|/\*.*?\*/|\"(?:\\.|[^\"\\\n])*\"|'(?:\\.|[^'\\\n])*'|`(?:\\.|[^`\\])*`"
    r"|(?P<lead>[=(,:\[!&|?{};]\s*)(?P<regex>/(?![/*])(?:\\.|\[(?:\\.|[^\]\\\n])*\]|[^/\\\n\[])+/)",
    re.DOTALL,
)
_JS_IDENTIFIER = r"[A-Za-z_$][\w$]*"
_REGEX_PRECEDERS = "=(,:[!&|?{};+-*%<>~^"


def _blank(text: str) -> str:
    """Replace every character except newlines with a space."""
    return re.sub(r"[^\n]", " ", text)


def _line_at(code: str, offset: int) -> int:
    return code.count("\n", 0, offset) + 1


def _declarator_names(declarations: str) -> List[str]:
    """Leading identifier of each top-level declarator in `a = 1, b = f(x, y)`."""
    names = []
    depth = 0
    piece_start = 0
    for index, char in enumerate(declarations + ","):
        if char in "([{":
            depth += 1
        elif char in ")]}":
            depth = max(depth - 1, 0)
        elif char == "," and depth == 0:
            match = re.match(rf"\s*({_JS_IDENTIFIER})", declarations[piece_start:index])
            if match:
                names.append(match.group(1))
            piece_start = index + 1
    return names


class _Findings:
    """Collects issues for one check run."""

    def __init__(self):
        self.errors: List[SyntaxIssue] = []
        self.warnings: List[SyntaxIssue] = []

    def error(self, message: str, line: int = 1, suggestion: Optional[str] = None) -> None:
        self.errors.append(SyntaxIssue(type="error", message=message, line=max(line, 1),
                                       suggestion=suggestion))

    def warning(self, message: str, line: int = 1, suggestion: Optional[str] = None,
                kind: str = "warning") -> None:
        self.warnings.append(SyntaxIssue(type=kind, message=message, line=max(line, 1),
                                         suggestion=suggestion))

    def result(self) -> SyntaxCheckResult:
        return SyntaxCheckResult(errors=self.errors, warnings=self.warnings,
                                 is_valid=not self.errors)


class SyntaxChecker:
    """Heuristic checker for HTML, CSS and JavaScript snippets."""

    def check(self, code: str, language: str) -> SyntaxCheckResult:
        """
        Check code in the given language

        Raises:
            UnsupportedLanguageError: If language is not html, css or javascript
        """
        normalized = normalize_language(language)
        if normalized == "html":
            return self.check_html(code)
        if normalized == "css":
            return self.check_css(code)
        return self.check_javascript(code)

    # ------------------------------------------------------------------
    # HTML
    # ------------------------------------------------------------------

    def check_html(self, html: str) -> SyntaxCheckResult:
        findings = _Findings()

        if not html.strip().lower().startswith("<!doctype"):
            findings.warning("Missing DOCTYPE declaration", 1,
                             "Add <!DOCTYPE html> at the beginning")

        if not re.search(r"<html\b[^>]*>", html, re.IGNORECASE):
            findings.error("Missing <html> tag", self.find_line_number(html, "<html"),
                           "Wrap your content in <html> tags")

        if not re.search(r"<head\b[^>]*>", html, re.IGNORECASE):
            findings.warning("Missing <head> section", 1,
                             "Add a <head> section for metadata")

        if not re.search(r"<body\b[^>]*>", html, re.IGNORECASE):
            findings.error("Missing <body> tag", self.find_line_number(html, "<body"),
                           "Add a <body> section for content")

        markup = self._mask_html(html, findings)
        self._check_unclosed_tags(markup, findings)
        self._check_image_alt_attributes(markup, findings)
        self._check_tag_nesting(markup, findings)

        return findings.result()

    def _mask_html(self, html: str, findings: _Findings) -> str:
        """Blank out comments and script/style bodies, keeping line numbers."""
        masked = _HTML_COMMENT.sub(lambda m: _blank(m.group(0)), html)

        dangling = masked.find("<!--")
        if dangling != -1:
            findings.error("Unclosed HTML comment", _line_at(masked, dangling),
                           "Close the comment with -->")
            masked = masked[:dangling] + _blank(masked[dangling:])

        masked = re.sub(r"<!doctype[^>]*>", lambda m: _blank(m.group(0)), masked,
                        flags=re.IGNORECASE)
        return _RAW_TEXT_ELEMENT.sub(
            lambda m: m.group(1) + _blank(m.group(3)) + m.group(4), masked
        )

    def _check_unclosed_tags(self, markup: str, findings: _Findings) -> None:
        stack: List[Tuple[str, int]] = []

        for match in _HTML_TAG.finditer(markup):
            is_closing = match.group(1) == "/"
            name = match.group(2).lower()
            attributes = match.group(3)
            line = _line_at(markup, match.start())

            if self.is_self_closing_tag(name):
                continue

            if not is_closing:
                if not attributes.rstrip().endswith("/"):
                    stack.append((name, line))
                continue

            depth = next((i for i in range(len(stack) - 1, -1, -1) if stack[i][0] == name), None)
            if depth is None:
                findings.warning(f"Unexpected closing </{name}> tag", line,
                                 f"Remove </{name}> or add a matching <{name}> before it")
                continue

            for unclosed_name, unclosed_line in stack[depth + 1:]:
                self._report_unclosed(unclosed_name, unclosed_line, findings)
            del stack[depth:]

        for unclosed_name, unclosed_line in stack:
            self._report_unclosed(unclosed_name, unclosed_line, findings)

    @staticmethod
    def _report_unclosed(name: str, line: int, findings: _Findings) -> None:
        findings.error(f"Unclosed <{name}> tag", line, f"Add closing </{name}> tag")

    def _check_image_alt_attributes(self, markup: str, findings: _Findings) -> None:
        for match in re.finditer(r"<img\b[^>]*>", markup, re.IGNORECASE):
            if not re.search(r"\balt\s*=", match.group(0), re.IGNORECASE):
                findings.warning("Image missing alt attribute", _line_at(markup, match.start()),
                                 'Add alt="description" to improve accessibility')

    def _check_tag_nesting(self, markup: str, findings: _Findings) -> None:
        for match in _BLOCK_IN_PARAGRAPH.finditer(markup):
            findings.warning("Block elements cannot be nested inside <p> tags",
                             _line_at(markup, match.start(1)),
                             "Review HTML structure and nesting")

    # ------------------------------------------------------------------
    # CSS
    # ------------------------------------------------------------------

    def check_css(self, css: str) -> SyntaxCheckResult:
        findings = _Findings()
        clean_css = _CSS_COMMENT.sub(lambda m: _blank(m.group(0)), css)

        self._check_css_semicolons(clean_css, findings)
        self._check_css_braces(clean_css, findings)

        for prop, value, line in self._css_declarations(clean_css):
            self._check_css_property(prop, line, findings)
            if prop.lower() == "font-family":
                self._check_font_family_quotes(value, line, findings)

        return findings.result()

    def _check_css_semicolons(self, css: str, findings: _Findings) -> None:
        depth = 0
        for index, raw_line in enumerate(css.split("\n"), start=1):
            line = raw_line.strip()
            inside_block = depth > 0
            segment = line
            if "{" in line:
                segment = line.rsplit("{", 1)[1].strip()
                inside_block = True

            if (inside_block and segment and ":" in segment
                    and not segment.startswith("@")
                    and not segment.endswith((";", "{", "}"))):
                findings.warning("Missing semicolon", index,
                                 "Add semicolon at the end of the line")

            depth = max(depth + line.count("{") - line.count("}"), 0)

    def _check_css_braces(self, css: str, findings: _Findings) -> None:
        open_lines: List[int] = []
        for index, char in enumerate(css):
            if char == "{":
                open_lines.append(_line_at(css, index))
            elif char == "}":
                if not open_lines:
                    findings.error("Mismatched braces", _line_at(css, index),
                                   "Check that all opening braces { have matching closing braces }")
                    return
                open_lines.pop()

        if open_lines:
            findings.error("Mismatched braces", open_lines[-1],
                           "Check that all opening braces { have matching closing braces }")

    @staticmethod
    def _css_declarations(css: str) -> List[Tuple[str, str, int]]:
        """(property, value, line) for every declaration in an innermost block."""
        declarations = []
        for block in _CSS_BLOCK.finditer(css):
            offset = block.start(1)
            for part in block.group(1).split(";"):
                match = _CSS_DECLARATION.match(part)
                if match:
                    line = _line_at(css, offset + match.start(1))
                    declarations.append((match.group(1), match.group(2).strip(), line))
                offset += len(part) + 1
        return declarations

    def _check_css_property(self, prop: str, line: int, findings: _Findings) -> None:
        if prop.startswith("--"):
            return
        name = VENDOR_PREFIX.sub("", prop.lower())
        if name not in KNOWN_CSS_PROPERTIES:
            findings.warning(f"Unknown CSS property: {prop}", line,
                             "Check spelling or use a valid CSS property")

    def _check_font_family_quotes(self, value: str, line: int, findings: _Findings) -> None:
        value = value.replace("!important", "")
        for family in (item.strip() for item in value.split(",")):
            if " " in family and not family.startswith(("'", '"')):
                findings.warning("Font family names with spaces should be quoted", line,
                                 'Wrap font family names in quotes: "Times New Roman"')
                return

    # ------------------------------------------------------------------
    # JavaScript
    # ------------------------------------------------------------------

    def check_javascript(self, js: str) -> SyntaxCheckResult:
        findings = _Findings()
        masked = self._mask_js(js)

        self._check_js_structure(js, findings)
        self._check_undeclared_assignments(masked, findings)
        self._check_js_semicolons(masked, findings)
        self._check_console_logs(masked, findings)

        return findings.result()

    @staticmethod
    def _mask_js(js: str) -> str:
        """Blank string contents and comments, keeping quotes and line breaks."""
        def replace(match: "re.Match") -> str:
            text = match.group(0)
            if match.group("regex"):
                regex = match.group("regex")
                return match.group("lead") + "/" + _blank(regex[1:-1]) + "/"
            if text.startswith("/"):
                return _blank(text)
            return text[0] + _blank(text[1:-1]) + text[-1]

        return _JS_LITERALS.sub(replace, js)

    def _check_js_structure(self, js: str, findings: _Findings) -> None:
        """Bracket balance plus unterminated strings, templates and comments."""
        closers = {")": "(", "]": "[", "}": "{"}
        openers = {value: key for key, value in closers.items()}
        suggestion = self.get_suggestions("syntax-error", "javascript")

        stack: List[Tuple[str, int]] = []
        modes = ["code"]
        i, line, length = 0, 1, len(js)

        while i < length:
            char = js[i]
            following = js[i + 1] if i + 1 < length else ""
            if char == "\n":
                line += 1

            if modes[-1] == "template":
                if char == "\\":
                    if following == "\n":
                        line += 1
                    i += 2
                    continue
                if char == "`":
                    modes.pop()
                elif char == "$" and following == "{":
                    stack.append(("${", line))
                    modes.append("code")
                    i += 2
                    continue
                i += 1
                continue

            if char == "/" and following == "/":
                end = js.find("\n", i)
                i = length if end == -1 else end
                continue

            if char == "/" and following == "*":
                end = js.find("*/", i + 2)
                if end == -1:
                    findings.error("Unterminated comment", line, "Close the comment with */")
                    return
                line += js.count("\n", i, end)
                i = end + 2
                continue

            if char == "/":
                end = self._regex_literal_end(js, i)
                if end is not None:
                    i = end
                    continue

            if char in "'\"":
                j = i + 1
                while j < length and js[j] != char and js[j] != "\n":
                    if js[j] == "\\":
                        if j + 1 < length and js[j + 1] == "\n":
                            line += 1
                        j += 2
                        continue
                    j += 1
                if j >= length or js[j] != char:
                    findings.error("Unterminated string literal", line, suggestion)
                    i = j
                    continue
                i = j + 1
                continue

            if char == "`":
                modes.append("template")
            elif char in openers:
                stack.append((char, line))
            elif char in closers:
                if char == "}" and stack and stack[-1][0] == "${":
                    stack.pop()
                    modes.pop()
                elif stack and stack[-1][0] == closers[char]:
                    stack.pop()
                elif not stack:
                    findings.error(f"Unexpected '{char}'", line, suggestion)
                else:
                    opener, opened_on = stack.pop()
                    findings.error(
                        f"Expected '{openers.get(opener, '}')}' to close '{opener}' from line "
                        f"{opened_on} but found '{char}'", line, suggestion)
            i += 1

        if "template" in modes:
            findings.error("Unterminated template literal", line, "Close the template with a backtick `")
            return

        for opener, opened_on in stack:
            findings.error(f"Missing closing '{openers[opener]}' for '{opener}'", opened_on,
                           suggestion)

    @staticmethod
    def _regex_literal_end(js: str, start: int) -> Optional[int]:
        """Offset just past a /regex/ opening at start, or None when the slash divides."""
        before = start - 1
        while before >= 0 and js[before] in " \t\r\n":
            before -= 1
        if before >= 0 and js[before] not in _REGEX_PRECEDERS:
            keyword = re.search(rf"(?<![\w$])return$", js[max(before - 6, 0):before + 1])
            if not keyword:
                return None

        in_class = False
        index = start + 1
        while index < len(js) and js[index] != "\n":
            char = js[index]
            if char == "\\":
                index += 2
                continue
            if char == "[":
                in_class = True
            elif char == "]":
                in_class = False
            elif char == "/" and not in_class:
                return index + 1
            index += 1
        return None

    def _check_undeclared_assignments(self, masked: str, findings: _Findings) -> None:
        declared = set(JS_GLOBALS)
        declaration_patterns = [
            rf"\b(?:var|let|const)\s+({_JS_IDENTIFIER})",
            rf"\bfunction\s*\*?\s*({_JS_IDENTIFIER})",
            rf"\bclass\s+({_JS_IDENTIFIER})",
            rf"\bcatch\s*\(\s*({_JS_IDENTIFIER})",
            rf"\b({_JS_IDENTIFIER})\s*=>",
        ]
        for pattern in declaration_patterns:
            declared.update(re.findall(pattern, masked))

        # Parameters and destructured names
        for params in re.findall(r"\bfunction\b[^(]*\(([^)]*)\)", masked):
            declared.update(re.findall(_JS_IDENTIFIER, params))
        for params in re.findall(r"\(([^()]*)\)\s*=>", masked):
            declared.update(re.findall(_JS_IDENTIFIER, params))
        for names in re.findall(r"\b(?:var|let|const)\s*[\[{]([^\]}]*)[\]}]", masked):
            declared.update(re.findall(_JS_IDENTIFIER, names))
        for declarations in re.findall(r"\b(?:var|let|const)\s+([^;\n]+)", masked):
            declared.update(_declarator_names(declarations))

        reported = set()
        assignment = re.compile(rf"^\s*({_JS_IDENTIFIER})\s*(?:[-+*/%]|\*\*)?=(?![=>])")
        for index, text in enumerate(masked.split("\n"), start=1):
            match = assignment.match(text)
            if not match:
                continue
            name = match.group(1)
            if name in declared or name in reported:
                continue
            reported.add(name)
            findings.warning(f'Variable "{name}" is assigned but never declared', index,
                             "Declare it first with let or const")

    def _check_js_semicolons(self, masked: str, findings: _Findings) -> None:
        continuations = (";", "{", "}", ",", "(", "[", ":", "=>", "=", "+", "&&", "||", "?")
        for index, raw_line in enumerate(masked.split("\n"), start=1):
            trimmed = raw_line.strip()
            if not trimmed or trimmed.endswith(continuations):
                continue
            if "=" in trimmed or re.search(r"\breturn\b", trimmed) or "console.log" in trimmed:
                findings.warning("Consider adding semicolon", index,
                                 "Add semicolon at the end of the statement")

    def _check_console_logs(self, masked: str, findings: _Findings) -> None:
        if "console.log" in masked:
            findings.warning("Console.log statements found",
                             self.find_line_number(masked, "console.log"),
                             "Remember to remove console.log statements in production code",
                             kind="info")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def find_line_number(code: str, text: str) -> int:
        """First 1-based line containing text, or 1 when absent."""
        for index, line in enumerate(code.split("\n"), start=1):
            if text in line:
                return index
        return 1

    @staticmethod
    def extract_line_number(error_message: str) -> int:
        match = re.search(r"line (\d+)", error_message, re.IGNORECASE)
        return int(match.group(1)) if match else 1

    @staticmethod
    def is_self_closing_tag(tag_name: str) -> bool:
        return tag_name.lower() in VOID_ELEMENTS

    @staticmethod
    def get_suggestions(error_type: str, language: str) -> str:
        return SUGGESTIONS.get(language, {}).get(error_type, DEFAULT_SUGGESTION)


def normalize_language(language: str) -> str:
    """Map aliases like "js" onto html/css/javascript."""
    normalized = (language or "").strip().lower()
    normalized = LANGUAGE_ALIASES.get(normalized, normalized)
    if normalized not in SUPPORTED_LANGUAGES:
        raise UnsupportedLanguageError(language or "<empty>")
    return normalized
