"""
Abstract Syntax Tree node definitions for the Enigma Programming Language
"""

from abc import ABC
from enum import Enum, auto
from typing import List, Optional, Tuple

from tokens import Token
from source_map import Position


class NodeKind(Enum):
    """Stable tag identifying every node kind, used for evaluator dispatch"""
    PROGRAM = auto()

    # Statements
    LET = auto()
    CONST = auto()
    RETURN = auto()
    EXPRESSION_STATEMENT = auto()
    BLOCK = auto()
    WHILE = auto()
    FOR = auto()
    BREAK = auto()
    CONTINUE = auto()
    CLASS = auto()

    # Expressions
    IDENTIFIER = auto()
    INTEGER = auto()
    FLOAT = auto()
    STRING = auto()
    BOOLEAN = auto()
    NULL = auto()
    FSTRING = auto()
    ARRAY = auto()
    HASH = auto()
    FUNCTION = auto()
    PREFIX = auto()
    INFIX = auto()
    ASSIGNMENT = auto()
    CALL = auto()
    INDEX = auto()
    IF = auto()
    NEW = auto()
    THIS = auto()
    SUPER = auto()
    PROPERTY = auto()


def quote(value: str) -> str:
    """Render a string value the way it would be written in source"""
    escaped = value.replace('\\', '\\\\').replace('"', '\\"').replace('\n', '\\n').replace('\t', '\\t')
    return f'"{escaped}"'


# Base classes
class Node(ABC):
    """Base class for all AST nodes"""
    kind: NodeKind

    def __init__(self, token: Optional[Token]):
        self.token = token

    def position(self) -> Position:
        return self.token.position if self.token else Position(1, 1)

    def end_position(self) -> Position:
        return self.token.end_position if self.token else self.position()

    def token_literal(self) -> str:
        return self.token.literal if self.token else ""


class Expression(Node):
    """Base class for all expressions"""


class Statement(Node):
    """Base class for all statements"""


class Program(Node):
    kind = NodeKind.PROGRAM

    def __init__(self, statements: Optional[List[Statement]] = None):
        super().__init__(None)
        self.statements = statements if statements is not None else []

    def position(self) -> Position:
        if self.statements:
            return self.statements[0].position()
        return Position(1, 1)

    def __str__(self):
        return "\n".join(str(stmt) for stmt in self.statements)


# Expressions
class Identifier(Expression):
    kind = NodeKind.IDENTIFIER

    def __init__(self, token: Token, value: str):
        super().__init__(token)
        self.value = value

    def __str__(self):
        return self.value


class IntegerLiteral(Expression):
    kind = NodeKind.INTEGER

    def __init__(self, token: Token, value: int):
        super().__init__(token)
        self.value = value

    def __str__(self):
        return str(self.value)


class FloatLiteral(Expression):
    kind = NodeKind.FLOAT

    def __init__(self, token: Token, value: float):
        super().__init__(token)
        self.value = value

    def __str__(self):
        return self.token.literal


class StringLiteral(Expression):
    kind = NodeKind.STRING

    def __init__(self, token: Token, value: str):
        super().__init__(token)
        self.value = value

    def __str__(self):
        return quote(self.value)


class BooleanLiteral(Expression):
    kind = NodeKind.BOOLEAN

    def __init__(self, token: Token, value: bool):
        super().__init__(token)
        self.value = value

    def __str__(self):
        return "true" if self.value else "false"


class NullLiteral(Expression):
    kind = NodeKind.NULL

    def __str__(self):
        return "null"


class FStringLiteral(Expression):
    """Static text fragments interleaved with embedded expressions.

    ``parts`` always holds one more element than ``expressions``; the
    rendered string is parts[0] + expr[0] + parts[1] + ... + parts[-1].
    """
    kind = NodeKind.FSTRING

    def __init__(self, token: Token, parts: List[str], expressions: List[Expression]):
        super().__init__(token)
        self.parts = parts
        self.expressions = expressions

    def __str__(self):
        out = [self.parts[0]]
        for expression, part in zip(self.expressions, self.parts[1:]):
            out.append("{" + str(expression) + "}")
            out.append(part)
        return 'f' + quote(''.join(out))


class ArrayLiteral(Expression):
    kind = NodeKind.ARRAY

    def __init__(self, token: Token, elements: List[Expression]):
        super().__init__(token)
        self.elements = elements

    def __str__(self):
        return "[" + ", ".join(str(e) for e in self.elements) + "]"


class HashLiteral(Expression):
    """Ordered key/value pairs; keys are already strings at parse time"""
    kind = NodeKind.HASH

    def __init__(self, token: Token, pairs: List[Tuple[str, Expression]]):
        super().__init__(token)
        self.pairs = pairs

    def __str__(self):
        return "{" + ", ".join(f"{quote(key)}: {value}" for key, value in self.pairs) + "}"


class PrefixExpression(Expression):
    kind = NodeKind.PREFIX

    def __init__(self, token: Token, operator: str, right: Expression):
        super().__init__(token)
        self.operator = operator
        self.right = right

    def __str__(self):
        return f"({self.operator}{self.right})"


class InfixExpression(Expression):
    kind = NodeKind.INFIX

    def __init__(self, token: Token, left: Expression, operator: str, right: Expression):
        super().__init__(token)
        self.left = left
        self.operator = operator
        self.right = right

    def __str__(self):
        return f"({self.left} {self.operator} {self.right})"


class AssignmentExpression(Expression):
    """Assignment to an identifier, index, or property target"""
    kind = NodeKind.ASSIGNMENT

    def __init__(self, token: Token, target: Expression, value: Expression):
        super().__init__(token)
        self.target = target
        self.value = value

    def __str__(self):
        return f"{self.target} = {self.value}"


class CallExpression(Expression):
    kind = NodeKind.CALL

    def __init__(self, token: Token, function: Expression, arguments: List[Expression]):
        super().__init__(token)
        self.function = function
        self.arguments = arguments

    def position(self) -> Position:
        return self.function.position()

    def __str__(self):
        return f"{self.function}(" + ", ".join(str(a) for a in self.arguments) + ")"


class IndexExpression(Expression):
    kind = NodeKind.INDEX

    def __init__(self, token: Token, left: Expression, index: Expression):
        super().__init__(token)
        self.left = left
        self.index = index

    def __str__(self):
        return f"({self.left}[{self.index}])"


class PropertyExpression(Expression):
    """For accessing instance properties and methods (obj.prop)"""
    kind = NodeKind.PROPERTY

    def __init__(self, token: Token, object: Expression, property: 'Identifier'):
        super().__init__(token)
        self.object = object
        self.property = property

    def __str__(self):
        return f"{self.object}.{self.property}"


class ConditionalBranch:
    """One `if`/`elif` arm: a condition and the block it guards"""

    def __init__(self, condition: Expression, consequence: 'BlockStatement'):
        self.condition = condition
        self.consequence = consequence


class IfExpression(Expression):
    kind = NodeKind.IF

    def __init__(self, token: Token, branches: List[ConditionalBranch],
                 alternative: Optional['BlockStatement'] = None):
        super().__init__(token)
        self.branches = branches
        self.alternative = alternative

    def __str__(self):
        out = []
        for i, branch in enumerate(self.branches):
            keyword = "if" if i == 0 else "elif"
            out.append(f"{keyword} ({branch.condition}) {branch.consequence}")
        if self.alternative is not None:
            out.append(f"else {self.alternative}")
        return " ".join(out)


class FunctionLiteral(Expression):
    kind = NodeKind.FUNCTION

    def __init__(self, token: Token, parameters: List[Identifier], body: 'BlockStatement',
                 name: Optional[str] = None):
        super().__init__(token)
        self.parameters = parameters
        self.body = body
        self.name = name

    def __str__(self):
        params = ", ".join(str(p) for p in self.parameters)
        return f"fn({params}) {self.body}"


class NewExpression(Expression):
    kind = NodeKind.NEW

    def __init__(self, token: Token, class_name: Expression, arguments: List[Expression]):
        super().__init__(token)
        self.class_name = class_name
        self.arguments = arguments

    def __str__(self):
        return f"new {self.class_name}(" + ", ".join(str(a) for a in self.arguments) + ")"


class ThisExpression(Expression):
    kind = NodeKind.THIS

    def __str__(self):
        return "this"


class SuperExpression(Expression):
    """`super(args)` without a method; `super.method(args)` with one"""
    kind = NodeKind.SUPER

    def __init__(self, token: Token, method: Optional[Identifier], arguments: List[Expression]):
        super().__init__(token)
        self.method = method
        self.arguments = arguments

    def is_constructor_call(self) -> bool:
        return self.method is None

    def __str__(self):
        args = ", ".join(str(a) for a in self.arguments)
        if self.method is None:
            return f"super({args})"
        return f"super.{self.method}({args})"


# Statements
class LetStatement(Statement):
    kind = NodeKind.LET

    def __init__(self, token: Token, name: Identifier, value: Expression):
        super().__init__(token)
        self.name = name
        self.value = value

    def __str__(self):
        return f"{self.token_literal()} {self.name} = {self.value};"


class ConstStatement(LetStatement):
    kind = NodeKind.CONST


class ReturnStatement(Statement):
    kind = NodeKind.RETURN

    def __init__(self, token: Token, return_value: Optional[Expression]):
        super().__init__(token)
        self.return_value = return_value

    def __str__(self):
        if self.return_value is None:
            return "return;"
        return f"return {self.return_value};"


class ExpressionStatement(Statement):
    kind = NodeKind.EXPRESSION_STATEMENT

    def __init__(self, token: Token, expression: Expression):
        super().__init__(token)
        self.expression = expression

    def __str__(self):
        return f"{self.expression};"


class BlockStatement(Statement):
    kind = NodeKind.BLOCK

    def __init__(self, token: Token, statements: List[Statement], end_token: Optional[Token] = None):
        super().__init__(token)
        self.statements = statements
        self.end_token = end_token

    def end_position(self) -> Position:
        if self.end_token is not None:
            return self.end_token.position
        return super().end_position()

    def __str__(self):
        if not self.statements:
            return "{ }"
        return "{ " + " ".join(str(s) for s in self.statements) + " }"


class WhileStatement(Statement):
    kind = NodeKind.WHILE

    def __init__(self, token: Token, condition: Expression, body: BlockStatement):
        super().__init__(token)
        self.condition = condition
        self.body = body

    def __str__(self):
        return f"while ({self.condition}) {self.body}"


class ForStatement(Statement):
    kind = NodeKind.FOR

    def __init__(self, token: Token, initializer: Optional[Statement],
                 condition: Optional[Expression], increment: Optional[Expression],
                 body: BlockStatement):
        super().__init__(token)
        self.initializer = initializer
        self.condition = condition
        self.increment = increment
        self.body = body

    def __str__(self):
        init = str(self.initializer) if self.initializer is not None else ";"
        cond = str(self.condition) if self.condition is not None else ""
        incr = str(self.increment) if self.increment is not None else ""
        return f"for ({init} {cond}; {incr}) {self.body}"


class BreakStatement(Statement):
    kind = NodeKind.BREAK

    def __str__(self):
        return "break;"


class ContinueStatement(Statement):
    kind = NodeKind.CONTINUE

    def __str__(self):
        return "continue;"


class MethodDefinition:
    """A named method inside a class body"""

    def __init__(self, name: Identifier, function: FunctionLiteral):
        self.name = name
        self.function = function

    def __str__(self):
        params = ", ".join(str(p) for p in self.function.parameters)
        return f"{self.name}({params}) {self.function.body}"


class ClassStatement(Statement):
    kind = NodeKind.CLASS

    def __init__(self, token: Token, name: Identifier, parent: Optional[Identifier],
                 constructor: Optional[FunctionLiteral], methods: List[MethodDefinition]):
        super().__init__(token)
        self.name = name
        self.parent = parent
        self.constructor = constructor
        self.methods = methods

    def __str__(self):
        header = f"class {self.name}"
        if self.parent is not None:
            header += f" extends {self.parent}"
        members = []
        if self.constructor is not None:
            params = ", ".join(str(p) for p in self.constructor.parameters)
            members.append(f"constructor({params}) {self.constructor.body}")
        members.extend(str(m) for m in self.methods)
        if not members:
            return header + " { }"
        return header + " { " + " ".join(members) + " }"
