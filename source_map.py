"""
Source positions for the Enigma Programming Language
Tracks line/column positions and provides line lookup for code frames
"""

from dataclasses import dataclass
from typing import List


@dataclass(frozen=True)
class Position:
    """Line/column position in source text (1-indexed)"""
    line: int
    column: int

    def __str__(self) -> str:
        return f"{self.line}:{self.column}"


@dataclass(frozen=True)
class Span:
    """Represents a source region between two positions (end inclusive)"""
    start: Position
    end: Position

    def __post_init__(self):
        if (self.start.line, self.start.column) > (self.end.line, self.end.column):
            raise ValueError(f"Invalid span: start ({self.start}) > end ({self.end})")

    @classmethod
    def at(cls, position: Position, length: int = 1) -> 'Span':
        """Span covering `length` characters on a single line"""
        end = Position(position.line, position.column + max(length, 1) - 1)
        return cls(position, end)

    def is_single_line(self) -> bool:
        return self.start.line == self.end.line


class SourceFile:
    """Represents a source text with its path and line index"""

    def __init__(self, path: str, content: str):
        self.path = path
        self.content = content
        self.line_starts = self._compute_line_starts()

    def _compute_line_starts(self) -> List[int]:
        """Compute character offsets for each line start"""
        line_starts = [0]
        for i, char in enumerate(self.content):
            if char == '\n':
                line_starts.append(i + 1)
        return line_starts

    def line_count(self) -> int:
        return len(self.line_starts)

    def has_line(self, line_num: int) -> bool:
        return 1 <= line_num <= len(self.line_starts)

    def get_line(self, line_num: int) -> str:
        """Get the content of a specific line (1-indexed)"""
        if not self.has_line(line_num):
            raise ValueError(f"Line {line_num} out of bounds")

        start = self.line_starts[line_num - 1]
        if line_num < len(self.line_starts):
            end = self.line_starts[line_num] - 1  # Exclude the newline
        else:
            end = len(self.content)

        return self.content[start:end].rstrip('\r')

