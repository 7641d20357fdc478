"""
Pratt parser for the Enigma Programming Language
Statements are parsed by recursive descent; expressions by registered parselets
"""

import copy
import logging
from typing import List, Optional, Tuple

from tokens import Token, TokenType, STATEMENT_KEYWORDS
from lexer import Lexer
from ast_nodes import (
    Program, Statement, Expression, Identifier, LetStatement, ConstStatement,
    ReturnStatement, ExpressionStatement, BlockStatement, WhileStatement, ForStatement,
    BreakStatement, ContinueStatement, ClassStatement, MethodDefinition, FunctionLiteral,
    AssignmentExpression, InfixExpression,
)
from errors import ErrorCode, ParseError
from precedence import Precedence, PrecedenceTable
from parselets import (
    ParseletRegistry, PrefixParselet, InfixParselet, default_registry, is_assignable,
)

logger = logging.getLogger("enigma.parser")
logger.addHandler(logging.NullHandler())

# Compound assignment operators and the binary operator they expand to
COMPOUND_OPERATORS = {
    TokenType.PLUS_ASSIGN: (TokenType.PLUS, '+'),
    TokenType.MINUS_ASSIGN: (TokenType.MINUS, '-'),
    TokenType.ASTERISK_ASSIGN: (TokenType.ASTERISK, '*'),
    TokenType.SLASH_ASSIGN: (TokenType.SLASH, '/'),
}

CONSTRUCTOR_NAME = "constructor"


class TokenStream:
    """Two-token window (current + peek) over a lexer"""

    def __init__(self, lexer: Lexer):
        self.lexer = lexer
        self.previous: Optional[Token] = None
        self.current: Token = lexer.next_token()
        self.peek: Token = lexer.next_token()

    def advance(self) -> Token:
        """Consume current token and return it"""
        token = self.current
        self.previous = token
        if token.type != TokenType.EOF:
            self.current = self.peek
            self.peek = self.lexer.next_token()
        return token

    def check(self, *types: TokenType) -> bool:
        """Check if current token is any of the given types"""
        return self.current.type in types

    def match(self, *types: TokenType) -> bool:
        """Consume the current token if it is any of the given types"""
        if self.check(*types):
            self.advance()
            return True
        return False

    def consume(self, token_type: TokenType, expected: Optional[str] = None) -> Token:
        """Consume token of expected type or raise error"""
        if self.check(token_type):
            return self.advance()
        raise ParseError.expected_token(self.current, expected or token_type.name)

    def is_at_end(self) -> bool:
        return self.current.type == TokenType.EOF


class ParsingContext:
    """Mutable parser state shared with the parselets"""

    def __init__(self, tokens: TokenStream, precedences: PrecedenceTable):
        self.tokens = tokens
        self.precedences = precedences
        self.errors: List[ParseError] = []
        self.loop_depth = 0
        self.block_depth = 0

    def report(self, error: ParseError):
        self.errors.append(error)


class Parser:
    def __init__(self, lexer: Lexer, registry: Optional[ParseletRegistry] = None,
                 precedences: Optional[PrecedenceTable] = None):
        self.lexer = lexer
        self.registry = registry if registry is not None else default_registry()
        self.context = ParsingContext(TokenStream(lexer), precedences or PrecedenceTable())

    @property
    def tokens(self) -> TokenStream:
        return self.context.tokens

    @property
    def errors(self) -> List[ParseError]:
        return self.context.errors

    # Grammar extension
    def register_prefix(self, parselet: PrefixParselet):
        self.registry.register_prefix(parselet)

    def register_infix(self, parselet: InfixParselet, precedence: Optional[int] = None):
        self.registry.register_infix(parselet)
        if precedence is not None:
            for token_type in parselet.handled_token_types():
                self.context.precedences.set(token_type, precedence)

    def remove_prefix(self, parselet: PrefixParselet) -> bool:
        return self.registry.remove_prefix(parselet)

    def remove_infix(self, parselet: InfixParselet) -> bool:
        return self.registry.remove_infix(parselet)

    def precedence_of(self, token_type: TokenType) -> int:
        return self.context.precedences.get(token_type)

    def sub_parser(self, source: str, line: int, column: int) -> 'Parser':
        """Parser over a fragment of the same file, sharing this grammar"""
        lexer = Lexer(source, self.lexer.file_path, line, column)
        return Parser(lexer, self.registry, self.context.precedences)

    # Program and statements
    def parse_program(self) -> Program:
        """Parse every statement, collecting errors instead of stopping"""
        statements = []
        while not self.tokens.is_at_end():
            stmt = self.parse_declaration()
            if stmt is not None:
                statements.append(stmt)
        return Program(statements)

    def parse_declaration(self) -> Optional[Statement]:
        """Parse one statement, recovering at the next statement boundary on error"""
        try:
            return self.parse_statement()
        except ParseError as error:
            self.context.report(error)
            logger.debug("parse error at %d:%d: %s", error.line, error.column, error.message)
            self.synchronize()
            return None

    def parse_statement(self) -> Statement:
        token_type = self.tokens.current.type

        if token_type in (TokenType.LET, TokenType.CONST):
            return self.parse_let_statement()
        if token_type == TokenType.RETURN:
            return self.parse_return_statement()
        if token_type == TokenType.WHILE:
            return self.parse_while_statement()
        if token_type == TokenType.FOR:
            return self.parse_for_statement()
        if token_type in (TokenType.BREAK, TokenType.CONTINUE):
            return self.parse_loop_control()
        if token_type == TokenType.CLASS:
            return self.parse_class_statement()
        if token_type == TokenType.LBRACE:
            return self.parse_block_statement()

        return self.parse_expression_statement()

    def parse_let_statement(self) -> LetStatement:
        """Parse `let NAME = expr;` or `const NAME = expr;`"""
        token = self.tokens.advance()
        name_token = self.tokens.consume(TokenType.IDENT, "identifier")
        name = Identifier(name_token, name_token.literal)
        self.tokens.consume(TokenType.ASSIGN, "'='")
        value = self.parse_expression()

        if isinstance(value, FunctionLiteral) and value.name is None:
            value.name = name.value

        self.end_statement()
        if token.type == TokenType.CONST:
            return ConstStatement(token, name, value)
        return LetStatement(token, name, value)

    def parse_return_statement(self) -> ReturnStatement:
        token = self.tokens.advance()
        value = None
        if not self.tokens.check(TokenType.SEMICOLON, TokenType.RBRACE, TokenType.EOF):
            value = self.parse_expression()
        self.end_statement()
        return ReturnStatement(token, value)

    def parse_while_statement(self) -> WhileStatement:
        token = self.tokens.advance()
        self.tokens.consume(TokenType.LPAREN, "'('")
        condition = self.parse_expression()
        self.tokens.consume(TokenType.RPAREN, "')'")
        return WhileStatement(token, condition, self.parse_loop_body())

    def parse_for_statement(self) -> ForStatement:
        """Parse `for (init; condition; increment) { ... }`, each clause optional"""
        tokens = self.tokens
        token = tokens.advance()
        tokens.consume(TokenType.LPAREN, "'('")

        initializer = None
        if tokens.check(TokenType.LET, TokenType.CONST):
            initializer = self.parse_let_statement()
        elif not tokens.match(TokenType.SEMICOLON):
            init_token = tokens.current
            initializer = ExpressionStatement(init_token, self.parse_expression_or_compound())
            tokens.consume(TokenType.SEMICOLON, "';'")

        condition = None
        if not tokens.check(TokenType.SEMICOLON):
            condition = self.parse_expression()
        tokens.consume(TokenType.SEMICOLON, "';'")

        increment = None
        if not tokens.check(TokenType.RPAREN):
            increment = self.parse_expression_or_compound()
        tokens.consume(TokenType.RPAREN, "')'")

        return ForStatement(token, initializer, condition, increment, self.parse_loop_body())

    def parse_loop_control(self) -> Statement:
        token = self.tokens.advance()
        if self.context.loop_depth == 0:
            self.context.report(ParseError.outside_loop(token))
        self.end_statement()
        if token.type == TokenType.BREAK:
            return BreakStatement(token)
        return ContinueStatement(token)

    def parse_class_statement(self) -> ClassStatement:
        """Parse `class NAME [extends PARENT] { constructor(...) {...} method(...) {...} }`"""
        tokens = self.tokens
        token = tokens.advance()
        name_token = tokens.consume(TokenType.IDENT, "class name")
        name = Identifier(name_token, name_token.literal)

        parent = None
        if tokens.match(TokenType.EXTENDS):
            parent_token = tokens.consume(TokenType.IDENT, "parent class name")
            parent = Identifier(parent_token, parent_token.literal)

        tokens.consume(TokenType.LBRACE, "'{'")
        constructor = None
        methods = []

        while not tokens.check(TokenType.RBRACE) and not tokens.is_at_end():
            member_token = tokens.consume(TokenType.IDENT, "method name")
            parameters = self.parse_parameters()
            body = self.parse_function_body()

            if member_token.literal == CONSTRUCTOR_NAME:
                if constructor is not None:
                    raise ParseError.at_token(
                        ErrorCode.DUPLICATE_CONSTRUCTOR,
                        f"class '{name.value}' already has a constructor",
                        member_token
                    )
                constructor = FunctionLiteral(member_token, parameters, body, name=CONSTRUCTOR_NAME)
            else:
                function = FunctionLiteral(member_token, parameters, body, name=member_token.literal)
                methods.append(MethodDefinition(Identifier(member_token, member_token.literal), function))

        tokens.consume(TokenType.RBRACE, "'}'")
        return ClassStatement(token, name, parent, constructor, methods)

    def parse_block_statement(self) -> BlockStatement:
        tokens = self.tokens
        token = tokens.consume(TokenType.LBRACE, "'{'")
        statements = []

        self.context.block_depth += 1
        try:
            while not tokens.check(TokenType.RBRACE) and not tokens.is_at_end():
                stmt = self.parse_declaration()
                if stmt is not None:
                    statements.append(stmt)
        finally:
            self.context.block_depth -= 1

        end_token = tokens.consume(TokenType.RBRACE, "'}'")
        return BlockStatement(token, statements, end_token)

    def parse_loop_body(self) -> BlockStatement:
        self.context.loop_depth += 1
        try:
            return self.parse_block_statement()
        finally:
            self.context.loop_depth -= 1

    def parse_function_body(self) -> BlockStatement:
        """Function bodies start outside any loop"""
        saved_depth = self.context.loop_depth
        self.context.loop_depth = 0
        try:
            return self.parse_block_statement()
        finally:
            self.context.loop_depth = saved_depth

    def parse_expression_statement(self) -> ExpressionStatement:
        token = self.tokens.current
        expression = self.parse_expression_or_compound()
        self.tokens.match(TokenType.SEMICOLON)
        return ExpressionStatement(token, expression)

    def parse_expression_or_compound(self) -> Expression:
        """Parse an expression, expanding `target op= value` to `target = target op value`"""
        expression = self.parse_expression()
        if self.tokens.current.type not in COMPOUND_OPERATORS:
            return expression

        op_token = self.tokens.advance()
        if not is_assignable(expression):
            raise ParseError.invalid_assignment_target(op_token)

        operator_type, operator = COMPOUND_OPERATORS[op_token.type]
        value = self.parse_expression()
        infix_token = Token(operator_type, operator, op_token.line, op_token.column)
        # The target is copied so the tree keeps a single parent per node
        combined = InfixExpression(infix_token, copy.deepcopy(expression), operator, value)
        return AssignmentExpression(op_token, expression, combined)

    def end_statement(self):
        """Require ';', which may be left out before '}' or the end of input"""
        if self.tokens.match(TokenType.SEMICOLON):
            return
        if self.tokens.check(TokenType.RBRACE, TokenType.EOF):
            return
        raise ParseError.expected_token(self.tokens.current, "';'")

    # Expressions
    def parse_expression(self, precedence: int = Precedence.LOWEST) -> Expression:
        """Pratt loop: one prefix parselet, then infix parselets while they bind tighter"""
        tokens = self.tokens
        prefix = self.registry.prefix_for(tokens.current.type)
        if prefix is None:
            raise ParseError.no_prefix_parser(tokens.current)

        left = prefix.parse(self)

        while not tokens.check(TokenType.SEMICOLON) and precedence < self.precedence_of(tokens.current.type):
            infix = self.registry.infix_for(tokens.current.type)
            if infix is None:
                return left
            left = infix.parse(self, left)

        return left

    def parse_expression_list(self, end: TokenType) -> List[Expression]:
        """Comma-separated expressions up to `end`; the opening token is already consumed"""
        items = []
        if self.tokens.match(end):
            return items

        items.append(self.parse_expression())
        while self.tokens.match(TokenType.COMMA):
            if self.tokens.check(end):
                break
            items.append(self.parse_expression())

        self.tokens.consume(end, f"'{closing_literal(end)}'")
        return items

    def parse_parameters(self) -> List[Identifier]:
        tokens = self.tokens
        tokens.consume(TokenType.LPAREN, "'('")
        parameters = []
        if tokens.match(TokenType.RPAREN):
            return parameters

        while True:
            name = tokens.consume(TokenType.IDENT, "parameter name")
            parameters.append(Identifier(name, name.literal))
            if not tokens.match(TokenType.COMMA):
                break

        tokens.consume(TokenType.RPAREN, "')'")
        return parameters

    # Error recovery
    def synchronize(self):
        """Recover from parse error by finding next statement"""
        tokens = self.tokens
        in_block = self.context.block_depth > 0

        if in_block and tokens.check(TokenType.RBRACE):
            return
        tokens.advance()

        while not tokens.is_at_end():
            if tokens.previous is not None and tokens.previous.type == TokenType.SEMICOLON:
                return
            if tokens.current.type in STATEMENT_KEYWORDS:
                return
            if in_block and tokens.check(TokenType.RBRACE):
                return
            tokens.advance()


def closing_literal(token_type: TokenType) -> str:
    return {
        TokenType.RPAREN: ')',
        TokenType.RBRACKET: ']',
        TokenType.RBRACE: '}',
    }.get(token_type, token_type.name)


def parse(source: str, file_path: str = "<input>") -> Tuple[Program, List[ParseError]]:
    """Parse source into a program and the list of parse errors found"""
    parser = Parser(Lexer(source, file_path))
    program = parser.parse_program()
    return program, parser.errors
