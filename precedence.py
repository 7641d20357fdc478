"""
Operator precedence for the Enigma Programming Language
"""

from enum import IntEnum
from typing import Dict, Optional

from tokens import TokenType


class Precedence(IntEnum):
    """Binding power levels, lowest first"""
    LOWEST = 1
    ASSIGN = 2        # = (right associative)
    LOGICAL_OR = 3    # ||
    LOGICAL_AND = 4   # &&
    EQUALS = 5        # == !=
    LESS_GREATER = 6  # < > <= >=
    SUM = 7           # + -
    PRODUCT = 8       # * / % //
    PREFIX = 9        # -x !x
    CALL = 10         # f(x)
    INDEX = 11        # a[i] a.b


DEFAULT_PRECEDENCES = {
    TokenType.ASSIGN: Precedence.ASSIGN,
    TokenType.OR: Precedence.LOGICAL_OR,
    TokenType.AND: Precedence.LOGICAL_AND,
    TokenType.EQ: Precedence.EQUALS,
    TokenType.NOT_EQ: Precedence.EQUALS,
    TokenType.LT: Precedence.LESS_GREATER,
    TokenType.GT: Precedence.LESS_GREATER,
    TokenType.LT_EQ: Precedence.LESS_GREATER,
    TokenType.GT_EQ: Precedence.LESS_GREATER,
    TokenType.PLUS: Precedence.SUM,
    TokenType.MINUS: Precedence.SUM,
    TokenType.ASTERISK: Precedence.PRODUCT,
    TokenType.SLASH: Precedence.PRODUCT,
    TokenType.MODULUS: Precedence.PRODUCT,
    TokenType.INT_DIVISION: Precedence.PRODUCT,
    TokenType.LPAREN: Precedence.CALL,
    TokenType.LBRACKET: Precedence.INDEX,
    TokenType.DOT: Precedence.INDEX,
}


class PrecedenceTable:
    """Mutable token-type to precedence mapping owned by one parser"""

    def __init__(self, precedences: Optional[Dict[TokenType, Precedence]] = None):
        self.precedences = dict(DEFAULT_PRECEDENCES if precedences is None else precedences)

    def get(self, token_type: TokenType) -> int:
        """Precedence of a token, LOWEST if it is not an operator"""
        return self.precedences.get(token_type, Precedence.LOWEST)

    def set(self, token_type: TokenType, precedence: int):
        self.precedences[token_type] = precedence

    def remove(self, token_type: TokenType) -> bool:
        return self.precedences.pop(token_type, None) is not None

    def __contains__(self, token_type: TokenType) -> bool:
        return token_type in self.precedences
