"""
Lexer for the Enigma Programming Language
Converts source code into tokens, one token per call
"""

import logging
from typing import Iterator, List

from tokens import Token, TokenType, lookup_identifier
from errors import LexError
from source_map import Position, Span

logger = logging.getLogger("enigma.lexer")
logger.addHandler(logging.NullHandler())

SINGLE_CHAR_TOKENS = {
    '(': TokenType.LPAREN,
    ')': TokenType.RPAREN,
    '{': TokenType.LBRACE,
    '}': TokenType.RBRACE,
    '[': TokenType.LBRACKET,
    ']': TokenType.RBRACKET,
    ',': TokenType.COMMA,
    ';': TokenType.SEMICOLON,
    ':': TokenType.COLON,
    '%': TokenType.MODULUS,
}

# Operators whose meaning changes when followed by '='
WITH_EQUALS = {
    '=': (TokenType.ASSIGN, TokenType.EQ),
    '!': (TokenType.BANG, TokenType.NOT_EQ),
    '<': (TokenType.LT, TokenType.LT_EQ),
    '>': (TokenType.GT, TokenType.GT_EQ),
    '+': (TokenType.PLUS, TokenType.PLUS_ASSIGN),
    '-': (TokenType.MINUS, TokenType.MINUS_ASSIGN),
    '*': (TokenType.ASTERISK, TokenType.ASTERISK_ASSIGN),
}

ESCAPES = {
    'n': '\n',
    't': '\t',
    'r': '\r',
    'b': '\b',
    'f': '\f',
    'v': '\v',
    '0': '\0',
    '\\': '\\',
    '"': '"',
}


def is_digit(c: str) -> bool:
    return '0' <= c <= '9'


def is_letter(c: str) -> bool:
    return ('a' <= c <= 'z') or ('A' <= c <= 'Z') or c == '_'


class Lexer:
    def __init__(self, source: str, file_path: str = "<input>", line: int = 1, column: int = 1):
        self.source = source
        self.file_path = file_path
        self.initial_line = line
        self.initial_column = column
        self.reset()

    def reset(self):
        """Rewind to the start of the source"""
        self.current = 0
        self.start = 0  # Start of current token
        self.line = self.initial_line
        self.column = self.initial_column
        self.start_line = self.line
        self.start_column = self.column

    def __iter__(self) -> Iterator[Token]:
        """Yield tokens up to and including EOF"""
        while True:
            token = self.next_token()
            yield token
            if token.type == TokenType.EOF:
                return

    def next_token(self) -> Token:
        """Scan and return the next token; EOF is returned forever at the end"""
        self.skip_whitespace_and_comments()

        self.start = self.current
        self.start_line = self.line
        self.start_column = self.column

        if self.is_at_end():
            return self.make_token(TokenType.EOF, "")

        return self.scan_token()

    def is_at_end(self) -> bool:
        """Check if we've reached the end of the source"""
        return self.current >= len(self.source)

    def scan_token(self) -> Token:
        """Create a token starting at the current character"""
        c = self.advance()

        if c in SINGLE_CHAR_TOKENS:
            return self.add_token(SINGLE_CHAR_TOKENS[c])

        if c in WITH_EQUALS:
            plain, with_equals = WITH_EQUALS[c]
            return self.add_token(with_equals if self.match('=') else plain)

        if c == '/':
            if self.match('/'):
                return self.add_token(TokenType.INT_DIVISION)
            if self.match('='):
                return self.add_token(TokenType.SLASH_ASSIGN)
            return self.add_token(TokenType.SLASH)
        if c == '&':
            return self.add_token(TokenType.AND if self.match('&') else TokenType.ILLEGAL)
        if c == '|':
            return self.add_token(TokenType.OR if self.match('|') else TokenType.ILLEGAL)

        if c == '.':
            if is_digit(self.peek()):
                return self.number()
            return self.add_token(TokenType.DOT)

        if c == '"':
            return self.string()

        if c == 'f' and self.peek() == '"':
            self.advance()  # consume opening quote
            return self.fstring()

        if is_digit(c):
            return self.number()

        if is_letter(c):
            return self.identifier()

        return self.add_token(TokenType.ILLEGAL)

    def advance(self) -> str:
        """Consume and return the current character"""
        if self.is_at_end():
            return '\0'

        char = self.source[self.current]
        self.current += 1
        if char == '\n':
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        return char

    def match(self, expected: str) -> bool:
        """Check if current character matches expected, consume if so"""
        if self.is_at_end() or self.source[self.current] != expected:
            return False
        self.advance()
        return True

    def peek(self) -> str:
        """Look at current character without consuming"""
        if self.is_at_end():
            return '\0'
        return self.source[self.current]

    def peek_next(self) -> str:
        """Look at next character without consuming"""
        if self.current + 1 >= len(self.source):
            return '\0'
        return self.source[self.current + 1]

    def skip_whitespace_and_comments(self):
        while not self.is_at_end():
            c = self.peek()
            if c in ' \t\r\n':
                self.advance()
            elif c == '#':
                while self.peek() != '\n' and not self.is_at_end():
                    self.advance()
            elif c == '/' and self.peek_next() == '*':
                self.advance()
                self.advance()
                self.multi_line_comment()
            else:
                return

    def multi_line_comment(self):
        """Handle nested multi-line comments /* ... */"""
        nesting_level = 1  # Track nesting for /* /* */ */

        while nesting_level > 0 and not self.is_at_end():
            if self.peek() == '/' and self.peek_next() == '*':
                self.advance()
                self.advance()
                nesting_level += 1
            elif self.peek() == '*' and self.peek_next() == '/':
                self.advance()
                self.advance()
                nesting_level -= 1
            else:
                self.advance()

        if nesting_level > 0:
            # Unterminated comments swallow the rest of the input
            logger.debug("unterminated block comment in %s consumed to end of input", self.file_path)

    def string(self) -> Token:
        """Handle string literals with escape sequences"""
        chars = []
        while self.peek() != '"' and not self.is_at_end():
            c = self.advance()
            if c == '\\':
                if self.is_at_end():
                    break
                escaped = self.advance()
                chars.append(ESCAPES.get(escaped, escaped))
            else:
                chars.append(c)

        if self.is_at_end():
            raise LexError.unterminated_string(self.create_span())

        self.advance()  # closing quote
        return self.make_token(TokenType.STRING, ''.join(chars))

    def fstring(self) -> Token:
        """Handle f"..." literals; braces are balanced so nested literals survive"""
        chars = []
        brace_depth = 0

        while True:
            if self.is_at_end():
                if brace_depth > 0:
                    raise LexError.unclosed_expression(self.create_span())
                raise LexError.unterminated_fstring(self.create_span())

            if self.peek() == '"' and brace_depth == 0:
                break

            c = self.advance()
            if c == '\\':
                if self.is_at_end():
                    continue
                escaped = self.advance()
                if brace_depth == 0:
                    chars.append(ESCAPES.get(escaped, escaped))
                else:
                    # Embedded expressions are lexed again later, keep them raw
                    chars.append('\\' + escaped)
            elif c == '{':
                brace_depth += 1
                chars.append(c)
            elif c == '}':
                brace_depth -= 1
                if brace_depth < 0:
                    position = Position(self.line, self.column - 1)
                    raise LexError.unmatched_brace(Span.at(position))
                chars.append(c)
            else:
                chars.append(c)

        self.advance()  # closing quote
        return self.make_token(TokenType.F_STRING, ''.join(chars))

    def number(self) -> Token:
        """Handle integer and float literals"""
        is_float = self.source[self.start] == '.'

        while is_digit(self.peek()):
            self.advance()

        # A trailing '.' without digits is left for the next token
        if not is_float and self.peek() == '.' and is_digit(self.peek_next()):
            is_float = True
            self.advance()
            while is_digit(self.peek()):
                self.advance()

        return self.add_token(TokenType.FLOAT if is_float else TokenType.INT)

    def identifier(self) -> Token:
        """Handle identifiers and keywords"""
        while is_letter(self.peek()) or is_digit(self.peek()):
            self.advance()

        text = self.source[self.start:self.current]
        return self.make_token(lookup_identifier(text), text)

    def add_token(self, token_type: TokenType) -> Token:
        """Create a token whose literal is the scanned source text"""
        return self.make_token(token_type, self.source[self.start:self.current])

    def make_token(self, token_type: TokenType, literal: str) -> Token:
        return Token(token_type, literal, self.start_line, self.start_column)

    def create_span(self) -> Span:
        """Create a span for the current token"""
        start = Position(self.start_line, self.start_column)
        end = Position(self.line, self.column)
        if (end.line, end.column) < (start.line, start.column):
            end = start
        return Span(start, end)


def tokenize(source: str, file_path: str = "<input>") -> List[Token]:
    """Tokenize source code into a list of tokens ending with EOF"""
    return list(Lexer(source, file_path))
