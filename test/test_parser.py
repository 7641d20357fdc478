"""
Parser tests for the Enigma language
"""

import pytest

from ast_nodes import (
    NodeKind, LetStatement, ConstStatement, ReturnStatement, ExpressionStatement,
    ForStatement, WhileStatement, ClassStatement, InfixExpression, AssignmentExpression,
    IfExpression, FunctionLiteral, HashLiteral, FStringLiteral, NewExpression,
    SuperExpression, CallExpression, IndexExpression, PropertyExpression, Identifier,
)
from errors import ErrorCode
from lexer import Lexer
from parselets import (
    BinaryOperatorParselet, IdentifierParselet, ParseletRegistry, default_registry,
)
from parser import Parser, parse
from precedence import Precedence, PrecedenceTable
from tokens import TokenType


def expression_of(parse_program, source):
    program = parse_program(source)
    assert len(program.statements) == 1
    statement = program.statements[0]
    assert isinstance(statement, ExpressionStatement)
    return statement.expression


class TestStatements:
    """Statement forms"""

    def test_let_and_const(self, parse_program):
        program = parse_program("let x = 5; const y = x;")
        assert isinstance(program.statements[0], LetStatement)
        assert isinstance(program.statements[1], ConstStatement)
        assert program.statements[1].kind == NodeKind.CONST
        assert str(program) == "let x = 5;\nconst y = x;"

    def test_semicolon_optional_before_brace_and_eof(self, parse_program):
        program = parse_program("let f = fn() { return 1 }; let y = 2")
        assert len(program.statements) == 2

    def test_missing_semicolon_between_lets_is_an_error(self):
        _, errors = parse("let a = 1 let b = 2;")
        assert errors
        assert errors[0].diagnostic.code == ErrorCode.EXPECTED_TOKEN
        assert "expected next token to be ';'" in errors[0].message

    def test_bare_return(self, parse_program):
        program = parse_program("let f = fn() { return; };")
        body = program.statements[0].value.body
        assert isinstance(body.statements[0], ReturnStatement)
        assert body.statements[0].return_value is None

    def test_let_names_function_literal(self, parse_program):
        program = parse_program("let add = fn(a, b) { a + b };")
        function = program.statements[0].value
        assert isinstance(function, FunctionLiteral)
        assert function.name == "add"
        assert [p.value for p in function.parameters] == ["a", "b"]

    def test_while(self, parse_program):
        program = parse_program("while (x < 3) { x = x + 1; }")
        statement = program.statements[0]
        assert isinstance(statement, WhileStatement)
        assert str(statement.condition) == "(x < 3)"

    def test_for_with_all_clauses(self, parse_program):
        program = parse_program("for (let i = 0; i < 3; i += 1) { print(i); }")
        statement = program.statements[0]
        assert isinstance(statement, ForStatement)
        assert isinstance(statement.initializer, LetStatement)
        assert str(statement.condition) == "(i < 3)"
        assert str(statement.increment) == "i = (i + 1)"

    def test_for_with_empty_clauses(self, parse_program):
        statement = parse_program("for (;;) { break; }").statements[0]
        assert statement.initializer is None
        assert statement.condition is None
        assert statement.increment is None

    def test_break_outside_loop_is_reported(self):
        program, errors = parse("break;")
        assert [e.diagnostic.code for e in errors] == [ErrorCode.OUTSIDE_LOOP]
        assert len(program.statements) == 1

    def test_break_inside_function_inside_loop_is_rejected(self):
        _, errors = parse("while (true) { let f = fn() { break; }; }")
        assert [e.diagnostic.code for e in errors] == [ErrorCode.OUTSIDE_LOOP]

    def test_continue_in_nested_block_of_loop(self, parse_program):
        parse_program("while (true) { if (x) { continue; } break; }")

    def test_class_statement(self, parse_program):
        source = """
        class B extends A {
            constructor(x) { super(x); this.y = 1; }
            get() { return this.y; }
            set(v) { this.y = v; }
        }
        """
        statement = parse_program(source).statements[0]
        assert isinstance(statement, ClassStatement)
        assert statement.name.value == "B"
        assert statement.parent.value == "A"
        assert [p.value for p in statement.constructor.parameters] == ["x"]
        assert [m.name.value for m in statement.methods] == ["get", "set"]

    def test_duplicate_constructor_is_an_error(self):
        _, errors = parse("class A { constructor() {} constructor(x) {} }")
        assert errors[0].diagnostic.code == ErrorCode.DUPLICATE_CONSTRUCTOR


class TestExpressions:
    """Operator precedence and expression forms"""

    @pytest.mark.parametrize("source,expected", [
        ("a + b * c", "(a + (b * c))"),
        ("(a + b) * c", "((a + b) * c)"),
        ("a - b - c", "((a - b) - c)"),
        ("-a * b", "((-a) * b)"),
        ("!a == b", "((!a) == b)"),
        ("a < b == c > d", "((a < b) == (c > d))"),
        ("a || b && c", "(a || (b && c))"),
        ("a && b || c", "((a && b) || c)"),
        ("a % b // c", "((a % b) // c)"),
        ("a + f(b)[0] * c", "(a + ((f(b)[0]) * c))"),
        ("a.b.c(1)", "a.b.c(1)"),
    ])
    def test_precedence(self, parse_program, source, expected):
        assert str(expression_of(parse_program, source)) == expected

    def test_assignment_is_right_associative(self, parse_program):
        expression = expression_of(parse_program, "a = b = 1")
        assert isinstance(expression, AssignmentExpression)
        assert isinstance(expression.value, AssignmentExpression)

    def test_compound_assignment_on_index_copies_target(self, parse_program):
        expression = expression_of(parse_program, "arr[0] += 2")
        assert isinstance(expression, AssignmentExpression)
        assert isinstance(expression.target, IndexExpression)
        assert isinstance(expression.value, InfixExpression)
        assert expression.value.left is not expression.target
        assert str(expression) == "(arr[0]) = ((arr[0]) + 2)"

    def test_compound_assignment_on_property(self, parse_program):
        expression = expression_of(parse_program, "this.count *= 3")
        assert isinstance(expression.target, PropertyExpression)
        assert str(expression.value) == "(this.count * 3)"

    def test_invalid_assignment_target(self):
        _, errors = parse("1 = 2;")
        assert errors[0].diagnostic.code == ErrorCode.INVALID_ASSIGNMENT_TARGET

    def test_if_elif_else(self, parse_program):
        expression = expression_of(parse_program, "if (a) { 1 } elif (b) { 2 } else { 3 }")
        assert isinstance(expression, IfExpression)
        assert len(expression.branches) == 2
        assert expression.alternative is not None

    def test_hash_literal_keys(self, parse_program):
        expression = expression_of(parse_program, '({"a": 1, 2: "two"})')
        assert isinstance(expression, HashLiteral)
        assert [key for key, _ in expression.pairs] == ["a", "2"]

    def test_invalid_hash_key(self):
        _, errors = parse("let h = {x: 1};")
        assert errors[0].diagnostic.code == ErrorCode.INVALID_HASH_KEY

    def test_new_with_arguments(self, parse_program):
        expression = expression_of(parse_program, "new Point(1, 2)")
        assert isinstance(expression, NewExpression)
        assert str(expression.class_name) == "Point"
        assert len(expression.arguments) == 2

    def test_new_then_method_call(self, parse_program):
        expression = expression_of(parse_program, "new Point(1, 2).norm()")
        assert isinstance(expression, CallExpression)
        assert isinstance(expression.function.object, NewExpression)

    def test_super_forms(self, parse_program):
        program = parse_program("class B extends A { constructor() { super(1); super.m(2); } }")
        body = program.statements[0].constructor.body.statements
        constructor_call = body[0].expression
        method_call = body[1].expression
        assert isinstance(constructor_call, SuperExpression) and constructor_call.is_constructor_call()
        assert method_call.method.value == "m"

    def test_trailing_comma_in_lists(self, parse_program):
        expression = expression_of(parse_program, "[1, 2, 3,]")
        assert len(expression.elements) == 3

    def test_fstring_parts_and_expressions(self, parse_program):
        expression = expression_of(parse_program, 'f"a{x + 1}b{y}"')
        assert isinstance(expression, FStringLiteral)
        assert expression.parts == ["a", "b", ""]
        assert [str(e) for e in expression.expressions] == ["(x + 1)", "y"]

    def test_fstring_expression_positions_point_into_source(self, parse_program):
        expression = expression_of(parse_program, 'f"ab{value}"')
        identifier = expression.expressions[0]
        assert isinstance(identifier, Identifier)
        assert (identifier.position().line, identifier.position().column) == (1, 6)

    def test_empty_fstring_expression(self):
        _, errors = parse('f"a{}b";')
        assert errors[0].diagnostic.code == ErrorCode.INVALID_FSTRING

    def test_no_prefix_parser_message(self):
        _, errors = parse("let x = );")
        assert errors[0].message == "no prefix parse function for RPAREN found"
        assert errors[0].token.type == TokenType.RPAREN


class TestErrorRecovery:
    """Errors are collected and parsing continues"""

    def test_collects_multiple_errors(self):
        program, errors = parse("let = 1; let y = 2; let = 3; let z = 4;")
        assert len(errors) == 2
        assert [s.name.value for s in program.statements] == ["y", "z"]

    def test_recovers_inside_function_body(self):
        program, errors = parse("let f = fn() { let = 1; return 2; };\nlet after = 3;")
        assert len(errors) == 1
        assert program.statements[-1].name.value == "after"
        body = program.statements[0].value.body
        assert isinstance(body.statements[0], ReturnStatement)

    def test_error_positions(self):
        _, errors = parse("let x = 1;\nlet = 2;")
        assert (errors[0].line, errors[0].column) == (2, 5)

    def test_integer_literal_out_of_range(self):
        _, errors = parse("let big = 9223372036854775808;")
        assert [e.message for e in errors] == ["integer literal out of range"]
        assert errors[0].diagnostic.code == ErrorCode.INTEGER_OUT_OF_RANGE
        assert (errors[0].line, errors[0].column) == (1, 11)

    def test_largest_integer_literal(self):
        program, errors = parse("9223372036854775807;")
        assert errors == []
        assert program.statements[0].expression.value == 2 ** 63 - 1


class TestExtensibility:
    """Parselet registration"""

    def test_duplicate_registration_is_rejected(self):
        registry = default_registry()
        with pytest.raises(ValueError):
            registry.register_prefix(IdentifierParselet())

    def test_default_registry_is_a_fresh_copy(self):
        first = default_registry()
        first.remove_prefix(first.prefix_for(TokenType.IDENT))
        assert default_registry().prefix_for(TokenType.IDENT) is not None

    def test_register_new_infix_operator(self):
        class ColonParselet(BinaryOperatorParselet):
            TOKEN_TYPES = (TokenType.COLON,)

        parser = Parser(Lexer("a : b + c;"))
        parser.register_infix(ColonParselet(), Precedence.LOWEST + 1)
        program = parser.parse_program()
        assert parser.errors == []
        assert str(program.statements[0].expression) == "(a : (b + c))"

    def test_removing_a_parselet_disables_syntax(self):
        parser = Parser(Lexer("let a = [1];"))
        assert parser.remove_prefix(parser.registry.prefix_for(TokenType.LBRACKET))
        parser.parse_program()
        assert [e.message for e in parser.errors] == ["no prefix parse function for LBRACKET found"]

    def test_custom_precedence_table(self):
        table = PrecedenceTable()
        table.set(TokenType.PLUS, Precedence.PRODUCT + 1)
        parser = Parser(Lexer("a * b + c;"), precedences=table)
        program = parser.parse_program()
        assert str(program.statements[0].expression) == "(a * (b + c))"

    def test_empty_registry_has_no_parselets(self):
        assert ParseletRegistry().prefix_for(TokenType.INT) is None

    def test_precedence_table_remove(self):
        table = PrecedenceTable()
        assert table.remove(TokenType.PLUS)
        assert not table.remove(TokenType.PLUS)
        assert TokenType.PLUS not in table
        assert table.get(TokenType.PLUS) == Precedence.LOWEST
