"""
Prefix and infix parselets for the Enigma Pratt parser
Each parselet handles a fixed set of token types and is registered by type
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from tokens import Token, TokenType
from ast_nodes import (
    Expression, Identifier, IntegerLiteral, FloatLiteral, StringLiteral, BooleanLiteral,
    NullLiteral, FStringLiteral, ArrayLiteral, HashLiteral, FunctionLiteral,
    PrefixExpression, InfixExpression, AssignmentExpression, CallExpression,
    IndexExpression, PropertyExpression, IfExpression, ConditionalBranch, NewExpression,
    ThisExpression, SuperExpression,
)
from errors import ErrorCode, ParseError
from objects import INT64_MAX
from precedence import Precedence

logger = logging.getLogger("enigma.parser")
logger.addHandler(logging.NullHandler())

ASSIGNABLE_TYPES = (Identifier, IndexExpression, PropertyExpression)


def is_assignable(expression: Expression) -> bool:
    return isinstance(expression, ASSIGNABLE_TYPES)


class PrefixParselet(ABC):
    """Parses an expression that starts with one of its token types"""

    @abstractmethod
    def handled_token_types(self) -> Tuple[TokenType, ...]:
        ...

    @abstractmethod
    def parse(self, parser) -> Expression:
        """Parse starting at the current token, leaving the stream after the expression"""


class InfixParselet(ABC):
    """Parses an operator that follows an already-parsed left operand"""

    @abstractmethod
    def handled_token_types(self) -> Tuple[TokenType, ...]:
        ...

    @abstractmethod
    def parse(self, parser, left: Expression) -> Expression:
        """Parse starting at the operator token"""


# Prefix parselets
class IdentifierParselet(PrefixParselet):
    def handled_token_types(self):
        return (TokenType.IDENT,)

    def parse(self, parser) -> Expression:
        token = parser.tokens.advance()
        return Identifier(token, token.literal)


class IntegerParselet(PrefixParselet):
    def handled_token_types(self):
        return (TokenType.INT,)

    def parse(self, parser) -> Expression:
        token = parser.tokens.advance()
        value = int(token.literal)
        if value > INT64_MAX:
            raise ParseError.at_token(ErrorCode.INTEGER_OUT_OF_RANGE, "integer literal out of range", token)
        return IntegerLiteral(token, value)


class FloatParselet(PrefixParselet):
    def handled_token_types(self):
        return (TokenType.FLOAT,)

    def parse(self, parser) -> Expression:
        token = parser.tokens.advance()
        return FloatLiteral(token, float(token.literal))


class StringParselet(PrefixParselet):
    def handled_token_types(self):
        return (TokenType.STRING,)

    def parse(self, parser) -> Expression:
        token = parser.tokens.advance()
        return StringLiteral(token, token.literal)


class BooleanParselet(PrefixParselet):
    def handled_token_types(self):
        return (TokenType.TRUE, TokenType.FALSE)

    def parse(self, parser) -> Expression:
        token = parser.tokens.advance()
        return BooleanLiteral(token, token.type == TokenType.TRUE)


class NullParselet(PrefixParselet):
    def handled_token_types(self):
        return (TokenType.NULL,)

    def parse(self, parser) -> Expression:
        return NullLiteral(parser.tokens.advance())


class FStringParselet(PrefixParselet):
    """Splits f-string text into static parts and embedded expressions.

    Each ``{...}`` section is handed to a fresh lexer/parser that starts at
    the section's position in the outer source, so errors inside embedded
    expressions point at the right column. String literals inside a section
    are skipped while looking for the closing brace.
    """

    def handled_token_types(self):
        return (TokenType.F_STRING,)

    def parse(self, parser) -> Expression:
        token = parser.tokens.advance()
        text = token.literal
        parts: List[str] = []
        expressions: List[Expression] = []

        static: List[str] = []
        line, column = token.line, token.column + 2  # skip f"
        i = 0
        while i < len(text):
            c = text[i]
            if c != '{':
                static.append(c)
                line, column = self._step(c, line, column)
                i += 1
                continue

            end = self._find_closing_brace(text, i, token)
            source = text[i + 1:end]
            parts.append(''.join(static))
            static = []
            expressions.append(self._parse_embedded(parser, token, source, line, column + 1))
            for consumed in text[i:end + 1]:
                line, column = self._step(consumed, line, column)
            i = end + 1

        parts.append(''.join(static))
        return FStringLiteral(token, parts, expressions)

    @staticmethod
    def _step(c: str, line: int, column: int):
        if c == '\n':
            return line + 1, 1
        return line, column + 1

    @staticmethod
    def _find_closing_brace(text: str, start: int, token: Token) -> int:
        depth = 0
        in_string = False
        i = start
        while i < len(text):
            c = text[i]
            if in_string:
                if c == '\\':
                    i += 1
                elif c == '"':
                    in_string = False
            elif c == '"':
                in_string = True
            elif c == '{':
                depth += 1
            elif c == '}':
                depth -= 1
                if depth == 0:
                    return i
            i += 1
        raise ParseError.at_token(ErrorCode.INVALID_FSTRING, "unclosed '{' in f-string", token)

    @staticmethod
    def _parse_embedded(parser, token: Token, source: str, line: int, column: int) -> Expression:
        if not source.strip():
            raise ParseError.at_token(ErrorCode.INVALID_FSTRING, "empty expression in f-string", token)

        sub_parser = parser.sub_parser(source, line, column)
        expression = sub_parser.parse_expression()
        if not sub_parser.tokens.is_at_end():
            raise ParseError.at_token(
                ErrorCode.INVALID_FSTRING,
                f"unexpected {sub_parser.tokens.current.type.name} in f-string expression",
                sub_parser.tokens.current
            )
        return expression


class PrefixOperatorParselet(PrefixParselet):
    def handled_token_types(self):
        return (TokenType.BANG, TokenType.MINUS)

    def parse(self, parser) -> Expression:
        token = parser.tokens.advance()
        right = parser.parse_expression(Precedence.PREFIX)
        return PrefixExpression(token, token.literal, right)


class GroupedExpressionParselet(PrefixParselet):
    def handled_token_types(self):
        return (TokenType.LPAREN,)

    def parse(self, parser) -> Expression:
        parser.tokens.advance()
        expression = parser.parse_expression()
        parser.tokens.consume(TokenType.RPAREN, "')'")
        return expression


class ArrayLiteralParselet(PrefixParselet):
    def handled_token_types(self):
        return (TokenType.LBRACKET,)

    def parse(self, parser) -> Expression:
        token = parser.tokens.advance()
        return ArrayLiteral(token, parser.parse_expression_list(TokenType.RBRACKET))


class HashLiteralParselet(PrefixParselet):
    """Hash literal with string or integer literal keys, in insertion order"""

    def handled_token_types(self):
        return (TokenType.LBRACE,)

    def parse(self, parser) -> Expression:
        tokens = parser.tokens
        token = tokens.advance()
        pairs = []

        while not tokens.check(TokenType.RBRACE) and not tokens.is_at_end():
            key_token = tokens.current
            if key_token.type == TokenType.STRING:
                key = key_token.literal
            elif key_token.type == TokenType.INT:
                key = str(int(key_token.literal))
            else:
                raise ParseError.invalid_hash_key(key_token)
            tokens.advance()

            tokens.consume(TokenType.COLON, "':'")
            pairs.append((key, parser.parse_expression()))

            if not tokens.match(TokenType.COMMA):
                break

        tokens.consume(TokenType.RBRACE, "'}'")
        return HashLiteral(token, pairs)


class FunctionLiteralParselet(PrefixParselet):
    def handled_token_types(self):
        return (TokenType.FUNCTION,)

    def parse(self, parser) -> Expression:
        token = parser.tokens.advance()
        parameters = parser.parse_parameters()
        body = parser.parse_function_body()
        return FunctionLiteral(token, parameters, body)


class IfParselet(PrefixParselet):
    """if (...) {...} elif (...) {...} else {...}"""

    def handled_token_types(self):
        return (TokenType.IF,)

    def parse(self, parser) -> Expression:
        tokens = parser.tokens
        token = tokens.advance()
        branches = [self._parse_branch(parser)]

        while tokens.match(TokenType.ELIF):
            branches.append(self._parse_branch(parser))

        alternative = None
        if tokens.match(TokenType.ELSE):
            alternative = parser.parse_block_statement()

        return IfExpression(token, branches, alternative)

    @staticmethod
    def _parse_branch(parser) -> ConditionalBranch:
        parser.tokens.consume(TokenType.LPAREN, "'('")
        condition = parser.parse_expression()
        parser.tokens.consume(TokenType.RPAREN, "')'")
        return ConditionalBranch(condition, parser.parse_block_statement())


class NewParselet(PrefixParselet):
    def handled_token_types(self):
        return (TokenType.NEW,)

    def parse(self, parser) -> Expression:
        token = parser.tokens.advance()
        # Stop before '(' so the arguments belong to `new`, not to a call
        class_name = parser.parse_expression(Precedence.CALL)
        arguments = []
        if parser.tokens.match(TokenType.LPAREN):
            arguments = parser.parse_expression_list(TokenType.RPAREN)
        return NewExpression(token, class_name, arguments)


class ThisParselet(PrefixParselet):
    def handled_token_types(self):
        return (TokenType.THIS,)

    def parse(self, parser) -> Expression:
        return ThisExpression(parser.tokens.advance())


class SuperParselet(PrefixParselet):
    """super(args) or super.method(args)"""

    def handled_token_types(self):
        return (TokenType.SUPER,)

    def parse(self, parser) -> Expression:
        tokens = parser.tokens
        token = tokens.advance()
        method = None
        if tokens.match(TokenType.DOT):
            name = tokens.consume(TokenType.IDENT, "method name")
            method = Identifier(name, name.literal)

        tokens.consume(TokenType.LPAREN, "'('")
        arguments = parser.parse_expression_list(TokenType.RPAREN)
        return SuperExpression(token, method, arguments)


# Infix parselets
class BinaryOperatorParselet(InfixParselet):
    """Left-associative binary operator at the token's table precedence"""

    TOKEN_TYPES: Tuple[TokenType, ...] = ()

    def handled_token_types(self):
        return self.TOKEN_TYPES

    def right_precedence(self, precedence: int) -> int:
        return precedence

    def parse(self, parser, left: Expression) -> Expression:
        token = parser.tokens.advance()
        precedence = parser.precedence_of(token.type)
        right = parser.parse_expression(self.right_precedence(precedence))
        return InfixExpression(token, left, token.literal, right)


class ArithmeticParselet(BinaryOperatorParselet):
    TOKEN_TYPES = (
        TokenType.PLUS,
        TokenType.MINUS,
        TokenType.ASTERISK,
        TokenType.SLASH,
        TokenType.MODULUS,
        TokenType.INT_DIVISION,
    )


class ComparisonParselet(BinaryOperatorParselet):
    TOKEN_TYPES = (
        TokenType.EQ,
        TokenType.NOT_EQ,
        TokenType.LT,
        TokenType.GT,
        TokenType.LT_EQ,
        TokenType.GT_EQ,
    )


class LogicalOperatorParselet(BinaryOperatorParselet):
    """&& and || bind their right operand one level looser"""

    TOKEN_TYPES = (TokenType.AND, TokenType.OR)

    def right_precedence(self, precedence: int) -> int:
        return precedence - 1


class AssignmentParselet(InfixParselet):
    def handled_token_types(self):
        return (TokenType.ASSIGN,)

    def parse(self, parser, left: Expression) -> Expression:
        token = parser.tokens.advance()
        if not is_assignable(left):
            raise ParseError.invalid_assignment_target(token)
        # Right associative: a = b = c assigns b first
        value = parser.parse_expression(Precedence.ASSIGN - 1)
        return AssignmentExpression(token, left, value)


class CallParselet(InfixParselet):
    def handled_token_types(self):
        return (TokenType.LPAREN,)

    def parse(self, parser, left: Expression) -> Expression:
        token = parser.tokens.advance()
        return CallExpression(token, left, parser.parse_expression_list(TokenType.RPAREN))


class IndexParselet(InfixParselet):
    def handled_token_types(self):
        return (TokenType.LBRACKET,)

    def parse(self, parser, left: Expression) -> Expression:
        token = parser.tokens.advance()
        index = parser.parse_expression()
        parser.tokens.consume(TokenType.RBRACKET, "']'")
        return IndexExpression(token, left, index)


class PropertyParselet(InfixParselet):
    def handled_token_types(self):
        return (TokenType.DOT,)

    def parse(self, parser, left: Expression) -> Expression:
        token = parser.tokens.advance()
        name = parser.tokens.consume(TokenType.IDENT, "property name")
        return PropertyExpression(token, left, Identifier(name, name.literal))


class ParseletRegistry:
    """Maps token types to the prefix and infix parselets that handle them"""

    def __init__(self):
        self.prefix: Dict[TokenType, PrefixParselet] = {}
        self.infix: Dict[TokenType, InfixParselet] = {}

    def register_prefix(self, parselet: PrefixParselet):
        self._register(self.prefix, parselet, "prefix")

    def register_infix(self, parselet: InfixParselet):
        self._register(self.infix, parselet, "infix")

    def remove_prefix(self, parselet: PrefixParselet) -> bool:
        return self._remove(self.prefix, parselet)

    def remove_infix(self, parselet: InfixParselet) -> bool:
        return self._remove(self.infix, parselet)

    def prefix_for(self, token_type: TokenType) -> Optional[PrefixParselet]:
        return self.prefix.get(token_type)

    def infix_for(self, token_type: TokenType) -> Optional[InfixParselet]:
        return self.infix.get(token_type)

    def copy(self) -> 'ParseletRegistry':
        registry = ParseletRegistry()
        registry.prefix = dict(self.prefix)
        registry.infix = dict(self.infix)
        return registry

    @staticmethod
    def _register(table: Dict, parselet, role: str):
        handled = parselet.handled_token_types()
        for token_type in handled:
            if token_type in table:
                existing = type(table[token_type]).__name__
                raise ValueError(
                    f"{role} parselet for {token_type.name} already registered ({existing})"
                )
        for token_type in handled:
            table[token_type] = parselet
        logger.debug("registered %s parselet %s for %s", role, type(parselet).__name__,
                     ", ".join(t.name for t in handled))

    @staticmethod
    def _remove(table: Dict, parselet) -> bool:
        removed = False
        for token_type in parselet.handled_token_types():
            if table.get(token_type) is parselet:
                del table[token_type]
                removed = True
        return removed


PREFIX_PARSELETS = (
    IdentifierParselet,
    IntegerParselet,
    FloatParselet,
    StringParselet,
    FStringParselet,
    BooleanParselet,
    NullParselet,
    PrefixOperatorParselet,
    GroupedExpressionParselet,
    ArrayLiteralParselet,
    HashLiteralParselet,
    FunctionLiteralParselet,
    IfParselet,
    NewParselet,
    ThisParselet,
    SuperParselet,
)

INFIX_PARSELETS = (
    ArithmeticParselet,
    ComparisonParselet,
    LogicalOperatorParselet,
    AssignmentParselet,
    CallParselet,
    IndexParselet,
    PropertyParselet,
)

_default_registry: Optional[ParseletRegistry] = None


def default_registry() -> ParseletRegistry:
    """Return a fresh registry holding the built-in grammar"""
    global _default_registry
    if _default_registry is None:
        registry = ParseletRegistry()
        for parselet_class in PREFIX_PARSELETS:
            registry.register_prefix(parselet_class())
        for parselet_class in INFIX_PARSELETS:
            registry.register_infix(parselet_class())
        _default_registry = registry
    return _default_registry.copy()
