"""
Token definitions for the Enigma Programming Language
"""

from enum import Enum, auto
from dataclasses import dataclass

from source_map import Position


class TokenType(Enum):
    # Special
    ILLEGAL = auto()
    EOF = auto()

    # Literals
    IDENT = auto()
    INT = auto()
    FLOAT = auto()
    STRING = auto()
    F_STRING = auto()

    # Operators
    ASSIGN = auto()           # =
    PLUS = auto()             # +
    MINUS = auto()            # -
    BANG = auto()             # !
    ASTERISK = auto()         # *
    SLASH = auto()            # /
    MODULUS = auto()          # %
    INT_DIVISION = auto()     # //

    PLUS_ASSIGN = auto()      # +=
    MINUS_ASSIGN = auto()     # -=
    ASTERISK_ASSIGN = auto()  # *=
    SLASH_ASSIGN = auto()     # /=

    # Comparison
    EQ = auto()               # ==
    NOT_EQ = auto()           # !=
    LT = auto()               # <
    GT = auto()               # >
    LT_EQ = auto()            # <=
    GT_EQ = auto()            # >=

    # Logical
    AND = auto()              # &&
    OR = auto()               # ||

    # Delimiters
    COMMA = auto()            # ,
    SEMICOLON = auto()        # ;
    COLON = auto()            # :
    DOT = auto()              # .
    LPAREN = auto()           # (
    RPAREN = auto()           # )
    LBRACE = auto()           # {
    RBRACE = auto()           # }
    LBRACKET = auto()         # [
    RBRACKET = auto()         # ]

    # Keywords
    FUNCTION = auto()
    LET = auto()
    CONST = auto()
    TRUE = auto()
    FALSE = auto()
    IF = auto()
    ELIF = auto()
    ELSE = auto()
    RETURN = auto()
    WHILE = auto()
    BREAK = auto()
    CONTINUE = auto()
    FOR = auto()
    CLASS = auto()
    EXTENDS = auto()
    SUPER = auto()
    THIS = auto()
    NEW = auto()
    NULL = auto()


@dataclass(frozen=True)
class Token:
    type: TokenType
    literal: str
    line: int = 1
    column: int = 1

    @property
    def position(self) -> Position:
        return Position(self.line, self.column)

    @property
    def end_position(self) -> Position:
        """Position of the last character covered by this token"""
        return Position(self.line, self.column + max(len(self.literal), 1) - 1)

    def __repr__(self):
        return f"Token({self.type.name}, '{self.literal}', {self.line}:{self.column})"


# Keywords mapping
KEYWORDS = {
    'fn': TokenType.FUNCTION,
    'let': TokenType.LET,
    'const': TokenType.CONST,
    'true': TokenType.TRUE,
    'false': TokenType.FALSE,
    'if': TokenType.IF,
    'elif': TokenType.ELIF,
    'else': TokenType.ELSE,
    'return': TokenType.RETURN,
    'while': TokenType.WHILE,
    'break': TokenType.BREAK,
    'continue': TokenType.CONTINUE,
    'for': TokenType.FOR,
    'class': TokenType.CLASS,
    'extends': TokenType.EXTENDS,
    'super': TokenType.SUPER,
    'this': TokenType.THIS,
    'new': TokenType.NEW,
    'null': TokenType.NULL,
}

# Statement-starting keywords used for parser error recovery
STATEMENT_KEYWORDS = frozenset({
    TokenType.CLASS,
    TokenType.FUNCTION,
    TokenType.LET,
    TokenType.CONST,
    TokenType.FOR,
    TokenType.IF,
    TokenType.WHILE,
    TokenType.RETURN,
})


def lookup_identifier(text: str) -> TokenType:
    """Map identifier text to its keyword type, or IDENT"""
    return KEYWORDS.get(text, TokenType.IDENT)
