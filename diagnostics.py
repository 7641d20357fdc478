"""
Diagnostic formatting and reporting for the Enigma Programming Language
Provides pretty-printed error messages with code frames and ANSI colors
"""

import sys
import os
from enum import Enum
from typing import List, Optional, TextIO

from errors import Diagnostic, LabeledSpan, Severity
from source_map import Position, SourceFile


class ColorMode(Enum):
    """Color output modes"""
    NEVER = "never"
    ALWAYS = "always"
    AUTO = "auto"


COLORS = {
    'reset': '\033[0m',
    'bold': '\033[1m',
    'red': '\033[31m',
    'yellow': '\033[33m',
    'blue': '\033[34m',
    'cyan': '\033[36m',
    'white': '\033[37m',
    'bright_red': '\033[91m',
    'bright_yellow': '\033[93m',
    'bright_blue': '\033[94m',
    'bright_cyan': '\033[96m',
}

SEVERITY_COLORS = {
    Severity.ERROR: 'bright_red',
    Severity.WARNING: 'bright_yellow',
    Severity.NOTE: 'bright_blue',
    Severity.HELP: 'bright_cyan',
}


def render_source_context(source_file: Optional[SourceFile], position: Optional[Position]) -> Optional[str]:
    """Plain-text window of the lines around `position` with a caret under its column"""
    if source_file is None or position is None or not source_file.has_line(position.line):
        return None

    first = max(1, position.line - 1)
    last = min(source_file.line_count(), position.line + 1)
    width = len(str(last))

    lines = []
    for line_num in range(first, last + 1):
        marker = '>' if line_num == position.line else ' '
        lines.append(f"{marker} {line_num:>{width}} | {source_file.get_line(line_num)}")
        if line_num == position.line:
            padding = ' ' * max(position.column - 1, 0)
            lines.append(f"  {' ' * width} | {padding}^")
    return "\n".join(lines)


class DiagnosticFormatter:
    """Formats diagnostics for human-readable output"""

    def __init__(self, color_mode: ColorMode = ColorMode.AUTO, max_errors: int = 20):
        self.color_mode = color_mode
        self.max_errors = max_errors
        self.error_count = 0
        self.warning_count = 0

    def reset_counts(self):
        self.error_count = 0
        self.warning_count = 0

    def should_use_colors(self, file: TextIO = sys.stderr) -> bool:
        """Determine if we should use ANSI colors"""
        if self.color_mode == ColorMode.NEVER:
            return False
        if self.color_mode == ColorMode.ALWAYS:
            return True
        isatty = getattr(file, 'isatty', None)
        return bool(isatty and isatty()) and os.getenv('NO_COLOR') is None

    def colorize(self, text: str, color: str, file: TextIO = sys.stderr) -> str:
        """Apply color to text if colors are enabled"""
        if not self.should_use_colors(file):
            return text
        return f"{COLORS.get(color, '')}{text}{COLORS['reset']}"

    def format_diagnostic(self, diagnostic: Diagnostic, source_file: Optional[SourceFile] = None,
                          file: TextIO = sys.stderr) -> str:
        """Format a single diagnostic with code frame"""
        if diagnostic.severity == Severity.ERROR:
            self.error_count += 1
        elif diagnostic.severity == Severity.WARNING:
            self.warning_count += 1

        if self.error_count > self.max_errors:
            if self.error_count == self.max_errors + 1:
                return self.colorize("... (too many errors, stopping)", 'red', file) + "\n"
            return ""

        severity_color = SEVERITY_COLORS.get(diagnostic.severity, 'white')
        header = f"{diagnostic.severity.value.title()} [{diagnostic.code}]: {diagnostic.message}"
        output_lines = [self.colorize(header, severity_color, file)]

        primary_span = diagnostic.primary_span()
        if primary_span is not None:
            path = source_file.path if source_file is not None else "<input>"
            location = f"  --> {path}:{primary_span.start.line}:{primary_span.start.column}"
            output_lines.append(self.colorize(location, 'bright_blue', file))
            if source_file is not None:
                output_lines.extend(self._format_code_frame(diagnostic, source_file, file))

        if diagnostic.help:
            output_lines.append(self.colorize(f"   = help: {diagnostic.help}", 'cyan', file))

        for note in diagnostic.notes:
            output_lines.append(self.colorize(f"   = note: {note}", 'blue', file))

        output_lines.append("")  # Empty line after diagnostic
        return "\n".join(output_lines) + "\n"

    def _format_code_frame(self, diagnostic: Diagnostic, source_file: SourceFile,
                           file: TextIO) -> List[str]:
        """Format the lines around the labeled spans with underlines"""
        labels = [label for label in diagnostic.labels if source_file.has_line(label.span.start.line)]
        if not labels:
            return []

        first = max(1, min(label.span.start.line for label in labels) - 1)
        last = min(source_file.line_count(), max(label.span.end.line for label in labels) + 1)
        gutter_width = len(str(last))
        pipe = self.colorize('|', 'bright_blue', file)

        lines = [f"{' ' * gutter_width} {pipe}"]
        for line_num in range(first, last + 1):
            content = source_file.get_line(line_num)
            gutter = self.colorize(f"{line_num:>{gutter_width}}", 'bright_blue', file)
            lines.append(f"{gutter} {pipe} {content}")

            for label in labels:
                if label.span.start.line == line_num:
                    lines.extend(self._format_underline(label, content, gutter_width, file))
        return lines

    def _format_underline(self, label: LabeledSpan, content: str, gutter_width: int,
                          file: TextIO) -> List[str]:
        start_col = max(0, label.span.start.column - 1)
        if label.span.is_single_line():
            end_col = max(start_col + 1, label.span.end.column)
        else:
            end_col = max(start_col + 1, len(content))

        char = '^' if label.is_primary else '-'
        color = 'bright_red' if label.is_primary else 'bright_yellow'
        underline = ' ' * start_col + self.colorize(char * (end_col - start_col), color, file)
        if label.label:
            underline += ' ' + self.colorize(label.label, color, file)

        pipe = self.colorize('|', 'bright_blue', file)
        return [f"{' ' * gutter_width} {pipe} {underline}"]

    def emit_diagnostic(self, diagnostic: Diagnostic, source_file: Optional[SourceFile] = None,
                        file: TextIO = sys.stderr):
        """Emit a diagnostic to the given file"""
        file.write(self.format_diagnostic(diagnostic, source_file, file))
        file.flush()

    def print_summary(self, file: TextIO = sys.stderr):
        """Print error/warning summary"""
        if self.error_count == 0 and self.warning_count == 0:
            return

        parts = []
        if self.error_count > 0:
            error_text = f"{self.error_count} error{'s' if self.error_count != 1 else ''}"
            parts.append(self.colorize(error_text, 'bright_red', file))

        if self.warning_count > 0:
            warning_text = f"{self.warning_count} warning{'s' if self.warning_count != 1 else ''}"
            parts.append(self.colorize(warning_text, 'bright_yellow', file))

        file.write(", ".join(parts) + " generated\n")
        file.flush()


# Global formatter instance
_formatter = DiagnosticFormatter()


def get_formatter() -> DiagnosticFormatter:
    """Get the global diagnostic formatter"""
    return _formatter


def set_color_mode(mode: ColorMode):
    """Set the global color mode"""
    _formatter.color_mode = mode


def set_max_errors(max_errors: int):
    """Set the maximum number of errors to show"""
    _formatter.max_errors = max_errors
