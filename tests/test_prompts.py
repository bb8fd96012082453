"""
Prompt building and AI response parsing tests
"""

import time

import pytest

from constants import MAX_CHAT_HISTORY, MAX_JSON_RESPONSE_SIZE
from prompts import (
    TUTOR_SYSTEM_PROMPT,
    build_chat_messages,
    build_explanation_messages,
    build_validation_messages,
    extract_json_from_response,
    parse_validation_response,
    syntax_result_to_validation,
)
from schemas import SyntaxCheckResult, SyntaxIssue


# ============================================================================
# PROMPT BUILDERS
# ============================================================================

class TestBuildChatMessages:

    def test_prepends_tutor_prompt(self):
        messages = build_chat_messages([{"role": "user", "content": "What is HTML?"}])

        assert messages[0] == {"role": "system", "content": TUTOR_SYSTEM_PROMPT}
        assert messages[1] == {"role": "user", "content": "What is HTML?"}

    def test_keeps_caller_system_message(self):
        history = [
            {"role": "system", "content": "Answer in French"},
            {"role": "user", "content": "Bonjour"},
        ]

        messages = build_chat_messages(history)

        assert messages == history

    def test_trims_long_history(self):
        history = [
            {"role": "user" if i % 2 == 0 else "assistant", "content": f"message {i}"}
            for i in range(MAX_CHAT_HISTORY + 10)
        ]

        messages = build_chat_messages(history)

        assert len(messages) == MAX_CHAT_HISTORY + 1
        assert messages[1]["content"] == "message 10"
        assert messages[-1]["content"] == f"message {MAX_CHAT_HISTORY + 9}"

    def test_does_not_mutate_input(self):
        history = [{"role": "user", "content": "hi"}]
        build_chat_messages(history)[1]["content"] = "changed"

        assert history[0]["content"] == "hi"


class TestTaskPrompts:

    def test_validation_prompt_contains_code_and_keys(self):
        messages = build_validation_messages("<p>Hi", "html")

        assert messages[0]["role"] == "system"
        assert "```html\n<p>Hi\n```" in messages[1]["content"]
        assert "bestPractices" in messages[1]["content"]
        assert "HTML code" in messages[1]["content"]

    def test_explanation_prompt_uses_language_name(self):
        messages = build_explanation_messages("let a = 1;", "javascript")

        assert "JavaScript code" in messages[1]["content"]
        assert "let a = 1;" in messages[1]["content"]


# ============================================================================
# RESPONSE PARSING
# ============================================================================

class TestExtractJson:

    def test_json_tags(self):
        text = 'Sure! <json>{"errors": ["x"]}</json>'

        assert extract_json_from_response(text) == {"errors": ["x"]}

    def test_fenced_block(self):
        text = 'Here it is:\n```json\n{"warnings": ["y"]}\n```'

        assert extract_json_from_response(text) == {"warnings": ["y"]}

    def test_object_in_prose_with_braces_in_strings(self):
        text = 'Result: {"errors": ["Missing } brace"], "warnings": []} hope that helps!'

        assert extract_json_from_response(text) == {"errors": ["Missing } brace"], "warnings": []}

    def test_skips_non_json_braces(self):
        text = 'In CSS you write p { color: red; } and the review is {"errors": []}'

        assert extract_json_from_response(text) == {"errors": []}

    def test_no_json(self):
        assert extract_json_from_response("Looks great to me!") is None
        assert extract_json_from_response("") is None

    def test_json_list_is_not_an_object(self):
        assert extract_json_from_response('["a", "b"]') is None

    def test_oversized_reply(self):
        text = '{"errors": ["' + "x" * MAX_JSON_RESPONSE_SIZE + '"]}'

        assert extract_json_from_response(text) is None

    def test_nested_object_returns_outermost(self):
        text = 'Review: {"errors": [], "details": {"line": 3}}'

        assert extract_json_from_response(text) == {"errors": [], "details": {"line": 3}}

    def test_quotes_in_prose_before_object(self):
        text = 'That\'s a "great" start! {"errors": []}'

        assert extract_json_from_response(text) == {"errors": []}

    @pytest.mark.slow
    def test_unbalanced_braces_scan_is_linear(self):
        started = time.perf_counter()

        assert extract_json_from_response("{" * 50000) is None
        assert extract_json_from_response("{" * 30000 + '{"errors": []}') == {"errors": []}
        assert time.perf_counter() - started < 2


class TestParseValidationResponse:

    def test_json_reply(self):
        text = '{"errors": ["Line 3: missing </p>"], "warnings": [], ' \
               '"suggestions": ["Indent nested tags"], "bestPractices": ["Use alt text"]}'

        result = parse_validation_response(text)

        assert result.errors == ["Line 3: missing </p>"]
        assert result.suggestions == ["Indent nested tags"]
        assert result.best_practices == ["Use alt text"]

    def test_snake_case_key_and_object_items(self):
        text = '{"best_practices": "Name things clearly", "errors": [{"message": "Bad tag"}]}'

        result = parse_validation_response(text)

        assert result.best_practices == ["Name things clearly"]
        assert result.errors == ["Bad tag"]

    def test_section_headings(self):
        text = (
            "**Errors:**\n"
            "- Missing closing </p>\n"
            "Warnings:\n"
            "1. Image has no alt text\n"
            "Suggestions:\n"
            "* Use a heading\n"
            "Best practices:\n"
            "- Indent your code\n"
        )

        result = parse_validation_response(text)

        assert result.errors == ["Missing closing </p>"]
        assert result.warnings == ["Image has no alt text"]
        assert result.suggestions == ["Use a heading"]
        assert result.best_practices == ["Indent your code"]

    def test_free_text_becomes_suggestion(self):
        result = parse_validation_response("Your code looks great, nice work!")

        assert result.suggestions == ["Your code looks great, nice work!"]
        assert result.errors == []

    @pytest.mark.parametrize("text", ["", "   "])
    def test_empty_reply(self, text):
        assert parse_validation_response(text).is_empty()

    def test_serialises_camel_case(self):
        result = parse_validation_response('{"bestPractices": ["a"]}')

        assert result.model_dump(by_alias=True) == {
            "errors": [], "warnings": [], "suggestions": [], "bestPractices": ["a"],
        }


class TestSyntaxResultToValidation:

    def test_findings_become_lines(self):
        result = SyntaxCheckResult(
            errors=[SyntaxIssue(type="error", message="Unclosed <p> tag", line=4,
                                suggestion="Add closing </p> tag")],
            warnings=[
                SyntaxIssue(type="warning", message="Image missing alt attribute", line=2,
                            suggestion="Add alt"),
                SyntaxIssue(type="warning", message="Image missing alt attribute", line=6,
                            suggestion="Add alt"),
            ],
            is_valid=False,
        )

        validation = syntax_result_to_validation(result)

        assert validation.errors == ["Line 4: Unclosed <p> tag"]
        assert validation.warnings == [
            "Line 2: Image missing alt attribute",
            "Line 6: Image missing alt attribute",
        ]
        assert validation.suggestions == ["Add closing </p> tag", "Add alt"]
        assert validation.best_practices == []

    def test_clean_code_gets_praise(self):
        validation = syntax_result_to_validation(SyntaxCheckResult())

        assert validation.best_practices == ["No syntax problems found. Keep your code neatly indented!"]
        assert validation.errors == []
