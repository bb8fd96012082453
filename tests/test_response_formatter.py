"""
Tests for model reply formatting
"""

from response_formatter import clean_text, format_response, truncate


class TestFormatResponse:

    def test_plain_text_is_escaped(self):
        assert format_response("Use <b> & have fun") == "Use &lt;b&gt; &amp; have fun"

    def test_newlines_become_breaks(self):
        assert format_response("Line one\nLine two") == "Line one<br>Line two"

    def test_fenced_block(self):
        text = "Try this:\n```html\n<p>Hi</p>\n```\nNice!"

        result = format_response(text)

        assert '<pre><code class="language-html">&lt;p&gt;Hi&lt;/p&gt;</code></pre>' in result
        assert result.startswith("Try this:<br>")
        assert result.endswith("<br>Nice!")

    def test_fenced_block_without_language(self):
        result = format_response("```\nlet a = 1;\n```")

        assert result == '<pre><code class="language-text">let a = 1;</code></pre>'

    def test_code_block_keeps_newlines(self):
        result = format_response("```css\np {\n  color: red;\n}\n```")

        assert "p {\n  color: red;\n}" in result
        assert "<br>" not in result

    def test_inline_code(self):
        result = format_response("Use the `<h1>` tag")

        assert result == "Use the <code>&lt;h1&gt;</code> tag"

    def test_empty(self):
        assert format_response("") == ""


class TestCleanText:

    def test_strips_markup(self):
        text = "## Title\n\n**strong** and <b>bold</b> `code`"

        assert clean_text(text) == "Title\n\nstrong and bold code"

    def test_collapses_blank_lines(self):
        assert clean_text("a\n\n\n\nb") == "a\n\nb"

    def test_empty(self):
        assert clean_text("") == ""


class TestTruncate:

    def test_short_text_unchanged(self):
        assert truncate("hello", 10) == "hello"

    def test_long_text_cut(self):
        result = truncate("a" * 20, 10)

        assert result == "aaaaaaa..."
        assert len(result) == 10
