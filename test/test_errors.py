"""
Diagnostic and error reporting tests
"""

import io

import pytest

from diagnostics import ColorMode, COLORS, DiagnosticFormatter, render_source_context
from errors import Diagnostic, ErrorCode, LabeledSpan, LexError, ParseError, Severity
from lexer import tokenize
from parser import parse
from source_map import Position, SourceFile, Span


class TestSourceFile:
    """Line lookup"""

    def test_lines(self):
        source = SourceFile("f.en", "one\r\ntwo\nthree")
        assert source.line_count() == 3
        assert source.get_line(1) == "one"
        assert source.get_line(3) == "three"

    def test_line_out_of_range(self):
        with pytest.raises(ValueError):
            SourceFile("f.en", "x").get_line(2)

    def test_invalid_span(self):
        with pytest.raises(ValueError):
            Span(Position(2, 1), Position(1, 1))

    def test_span_at(self):
        span = Span.at(Position(3, 4), 5)
        assert span.end == Position(3, 8)
        assert span.is_single_line()


class TestSourceContext:
    """The code window attached to runtime errors"""

    @pytest.fixture
    def source(self):
        return SourceFile("ctx.en", "a\nb\nc")

    def test_first_line(self, source):
        assert render_source_context(source, Position(1, 1)) == (
            "> 1 | a\n"
            "    | ^\n"
            "  2 | b"
        )

    def test_last_line(self, source):
        assert render_source_context(source, Position(3, 2)) == (
            "  2 | b\n"
            "> 3 | c\n"
            "    |  ^"
        )

    def test_missing_inputs(self, source):
        assert render_source_context(None, Position(1, 1)) is None
        assert render_source_context(source, None) is None
        assert render_source_context(source, Position(9, 1)) is None

    def test_gutter_width_follows_last_line(self):
        source = SourceFile("w.en", "\n" * 9 + "x\ny")
        context = render_source_context(source, Position(10, 1))
        assert context.splitlines()[1] == "> 10 | x"
        assert context.splitlines()[2] == "     | ^"


class TestExceptions:
    """Host-level exceptions raised by the lexer and parser"""

    def test_lex_error_message_and_position(self):
        with pytest.raises(LexError) as info:
            tokenize('let s = "open')
        error = info.value
        assert error.message == "unterminated string literal"
        assert (error.line, error.column) == (1, 9)
        assert str(error).startswith("Error [ENG1001]: unterminated string literal at 1:9")

    def test_parse_error_fields(self):
        _, errors = parse("let 5 = x;")
        error = errors[0]
        assert isinstance(error, ParseError)
        assert error.message == "expected next token to be identifier, got INT ('5') instead"
        assert error.token.literal == "5"
        assert (error.line, error.column) == (1, 5)

    def test_diagnostic_to_json(self):
        span = Span.at(Position(1, 2), 3)
        diagnostic = Diagnostic(ErrorCode.TYPE_MISMATCH, Severity.ERROR, "bad",
                                labels=[LabeledSpan(span, "here")], help="fix it")
        data = diagnostic.to_json()
        assert data["code"] == "ENG3001"
        assert data["severity"] == "error"
        assert data["labels"][0]["start"] == {"line": 1, "column": 2}
        assert data["labels"][0]["end"] == {"line": 1, "column": 4}
        assert data["labels"][0]["is_primary"] is True
        assert data["help"] == "fix it"

    def test_single_primary_label(self):
        first = LabeledSpan(Span.at(Position(1, 1)), is_primary=True)
        second = LabeledSpan(Span.at(Position(1, 3)), is_primary=True)
        diagnostic = Diagnostic("X", Severity.ERROR, "m", labels=[first, second])
        assert diagnostic.primary_span() == first.span
        assert not second.is_primary


class TestFormatter:
    """Rendered diagnostics"""

    @pytest.fixture
    def formatter(self):
        return DiagnosticFormatter(ColorMode.NEVER)

    def test_parse_error_code_frame(self, formatter):
        source = "let = 1;"
        _, errors = parse(source, "t.en")
        text = formatter.format_diagnostic(errors[0].diagnostic, SourceFile("t.en", source))
        message = "expected next token to be identifier, got ASSIGN ('=') instead"
        assert text == (
            f"Error [ENG2002]: {message}\n"
            "  --> t.en:1:5\n"
            "  |\n"
            "1 | let = 1;\n"
            f"  |     ^ {message}\n"
            "\n"
        )

    def test_help_and_notes(self, formatter):
        diagnostic = Diagnostic("ENG0000", Severity.ERROR, "oops", help="try again",
                                notes=["called at f (line 1, column 1)"])
        text = formatter.format_diagnostic(diagnostic)
        assert text == (
            "Error [ENG0000]: oops\n"
            "   = help: try again\n"
            "   = note: called at f (line 1, column 1)\n"
            "\n"
        )

    def test_location_without_source(self, formatter):
        diagnostic = Diagnostic("E", Severity.WARNING, "w",
                                labels=[LabeledSpan(Span.at(Position(2, 3)))])
        assert formatter.format_diagnostic(diagnostic).splitlines()[:2] == [
            "Warning [E]: w",
            "  --> <input>:2:3",
        ]

    def test_max_errors(self):
        formatter = DiagnosticFormatter(ColorMode.NEVER, max_errors=1)
        diagnostic = Diagnostic("E", Severity.ERROR, "again")
        assert formatter.format_diagnostic(diagnostic).startswith("Error [E]")
        assert formatter.format_diagnostic(diagnostic) == "... (too many errors, stopping)\n"
        assert formatter.format_diagnostic(diagnostic) == ""

    def test_summary(self, formatter):
        out = io.StringIO()
        formatter.print_summary(out)
        assert out.getvalue() == ""

        formatter.emit_diagnostic(Diagnostic("E", Severity.ERROR, "a"), file=io.StringIO())
        formatter.print_summary(out)
        assert out.getvalue() == "1 error generated\n"

        formatter.emit_diagnostic(Diagnostic("E", Severity.ERROR, "b"), file=io.StringIO())
        formatter.emit_diagnostic(Diagnostic("W", Severity.WARNING, "c"), file=io.StringIO())
        out = io.StringIO()
        formatter.print_summary(out)
        assert out.getvalue() == "2 errors, 1 warning generated\n"

        formatter.reset_counts()
        assert formatter.error_count == 0

    def test_color_modes(self):
        stream = io.StringIO()
        assert not DiagnosticFormatter(ColorMode.NEVER).should_use_colors(stream)
        assert not DiagnosticFormatter(ColorMode.AUTO).should_use_colors(stream)
        always = DiagnosticFormatter(ColorMode.ALWAYS)
        assert always.should_use_colors(stream)
        assert always.colorize("x", "red", stream) == f"{COLORS['red']}x{COLORS['reset']}"

    def test_runtime_error_diagnostic(self, formatter, run):
        result = run("let a = [1];\na[3]")
        text = formatter.format_diagnostic(result.to_diagnostic(), SourceFile("<input>", "let a = [1];\na[3]"))
        assert text.startswith("Error [ENG3007]: Index out of bounds: 3 for array of size 1\n")
        assert "  --> <input>:2:2" in text
