"""Tests for pipedash.analysis.parser."""

import pytest

from pipedash.analysis.errors import ParseError
from pipedash.analysis.nodes import decode_escapes
from pipedash.analysis.parser import parse_task_source


class TestParseTaskSource:
    """Tests for parse_task_source."""

    def test_parses_module_syntax(self):
        """ES module source with imports and exports parses."""
        parsed = parse_task_source(
            'import fs from "node:fs";\n'
            "export async function ingestion({ io }) {\n"
            "  return io?.readArtifact?.('a.json');\n"
            "}\n"
        )
        assert parsed.root.type == "program"
        assert parsed.line_count == 4

    def test_syntax_error_raises_parse_error(self):
        """Invalid source raises ParseError with a 1-indexed location."""
        with pytest.raises(ParseError) as exc_info:
            parse_task_source("export function ok() {}\nconst x = ;\n")

        error = exc_info.value
        assert str(error).startswith("Failed to parse task source code at line 2")
        assert error.line == 2
        assert error.column >= 1

    def test_parse_error_wraps_syntax_error(self):
        """The parser diagnostic is chained as a SyntaxError cause."""
        with pytest.raises(ParseError) as exc_info:
            parse_task_source("export function broken( {", file_name="broken.js")

        cause = exc_info.value.__cause__
        assert isinstance(cause, SyntaxError)
        assert cause.filename == "broken.js"

    def test_text_and_locations(self):
        """Node text and line/column lookups use the original source."""
        parsed = parse_task_source("const a = 1;\n  const b = 'x';\n")
        second = parsed.root.named_children[1]
        assert parsed.text(second) == "const b = 'x';"
        assert parsed.line(second) == 2
        assert parsed.column(second) == 2

    def test_column_counts_characters_not_bytes(self):
        """Columns after multi-byte characters are character offsets."""
        parsed = parse_task_source('const a = "é"; const b = 2;\n')
        second = parsed.root.named_children[1]
        assert parsed.column(second) == 15


class TestEarlyErrors:
    """Module-level early errors the grammar alone accepts."""

    @pytest.mark.parametrize(
        "code, message, line",
        [
            ("return 1;\n", "'return' outside of function", 1),
            ("let a = 1;\nlet a = 2;\n", "Identifier 'a' has already been declared", 2),
            ("export function f() {\n  await x;\n}\n", "'await' is only allowed within async", 2),
            (
                "export function f() {}\nexport function f() {}\n",
                "Identifier 'f' has already been declared",
                2,
            ),
            ("const x = 1;\nexport const x = 2;\n", "Identifier 'x' has already been declared", 2),
            ("export function f() {\n  const a = 1;\n  const a = 2;\n}\n", "Identifier 'a'", 3),
        ],
    )
    def test_rejected(self, code, message, line):
        with pytest.raises(ParseError, match=message) as exc_info:
            parse_task_source(code)
        assert exc_info.value.line == line
        assert isinstance(exc_info.value.__cause__, SyntaxError)

    @pytest.mark.parametrize(
        "code",
        [
            "export async function f() { await x; }\n",
            "export const f = async () => { await x; };\n",
            "await setup();\n",
            "export function f() { return 1; }\n",
            "let a = 1;\n{ let a = 2; }\n",
            "export function f() {\n  function g() {}\n  function g() {}\n}\n",
            "export async function f() { const g = () => 1; return g(); }\n",
        ],
    )
    def test_accepted(self, code):
        assert parse_task_source(code).root.type == "program"


class TestSourceLines:
    """Line lookups agree with tree-sitter rows."""

    def test_only_newline_breaks_lines(self):
        code = (
            "export function load({ io }) {\n"
            '  const sep = "a\u2028b\x0cc";\n'
            "  const x = 1;\n"
            "  io.readArtifact(name);\n"
            "  const y = 2;\n"
            "}\n"
        )
        parsed = parse_task_source(code)
        assert parsed.line_count == 6
        assert parsed.line_text(4) == "  io.readArtifact(name);"
        window = parsed.context_window(4).split("\n")
        assert window[2] == "  io.readArtifact(name);"
        assert window[-1] == "}"

    def test_crlf_line_endings(self):
        parsed = parse_task_source("const a = 1;\r\nconst b = 2;\r\n")
        assert parsed.line_count == 2
        assert parsed.line_text(2) == "const b = 2;"


class TestContextWindow:
    """Tests for ParsedSource.context_window."""

    def test_two_lines_each_side(self):
        parsed = parse_task_source("\n".join(f"// line {i}" for i in range(1, 8)))
        assert parsed.context_window(4) == "// line 2\n// line 3\n// line 4\n// line 5\n// line 6"

    def test_clamped_at_file_start(self):
        parsed = parse_task_source("// one\n// two\n// three\n// four\n")
        assert parsed.context_window(1) == "// one\n// two\n// three"

    def test_clamped_at_file_end(self):
        parsed = parse_task_source("// one\n// two\n// three\n// four")
        assert parsed.context_window(4) == "// two\n// three\n// four"


class TestDecodeEscapes:
    """Tests for decode_escapes - JavaScript string escapes."""

    def test_simple_escapes(self):
        assert decode_escapes(r"a\nb\tc") == "a\nb\tc"

    def test_quote_escapes(self):
        assert decode_escapes(r"it\'s \"x\"") == "it's \"x\""

    def test_unicode_escapes(self):
        assert decode_escapes(r"é\u{1F600}\x41") == "é\U0001F600A"

    def test_plain_text_unchanged(self):
        assert decode_escapes("data-2024.json") == "data-2024.json"
