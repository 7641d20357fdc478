"""
Tree-walking evaluator for the Enigma Programming Language
"""

import logging
import sys
from contextlib import contextmanager
from typing import Dict, List, Optional, Union

from ast_nodes import (
    NodeKind, Node, Program, Identifier, IndexExpression, PropertyExpression,
)
from call_stack import CallStack, FrameType, StackFrame
from diagnostics import render_source_context
from environment import Environment, THIS_NAME, CLASS_CONTEXT_NAME
from errors import ErrorCode, InternalError
from objects import (
    EnigmaObject, Integer, Float, String, Array, Hash, Function, Builtin,
    Class, Instance, ReturnValue, ErrorObject, NULL, BREAK, CONTINUE,
    native_bool,
)
from observer import ExecutionObserver, OutputKind
from operators import eval_prefix, eval_infix
from source_map import Position, SourceFile
from stdlib import BUILTINS

logger = logging.getLogger("enigma.evaluator")
logger.addHandler(logging.NullHandler())

MAX_LOOP_ITERATIONS = 1_000_000
MAX_CALL_DEPTH = 500

# Host stack frames consumed by one Enigma call, used to size the recursion limit
HOST_FRAMES_PER_CALL = 25

RESERVED_NAMES = {THIS_NAME, CLASS_CONTEXT_NAME}


def levenshtein(a: str, b: str) -> int:
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current = [i]
        for j, cb in enumerate(b, 1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (ca != cb),
            ))
        previous = current
    return previous[-1]


def suggest_names(name: str, candidates, limit: int = 3, threshold: float = 0.6) -> List[str]:
    """Candidates whose edit-distance similarity to `name` is at least `threshold`"""
    scored = []
    for candidate in set(candidates):
        if candidate == name or candidate in RESERVED_NAMES:
            continue
        longest = max(len(name), len(candidate))
        similarity = 1 - levenshtein(name, candidate) / longest
        if similarity >= threshold:
            scored.append((-similarity, candidate))
    return [candidate for _, candidate in sorted(scored)[:limit]]


class Evaluator:
    """Evaluates an AST against an Environment.

    Runtime failures are returned as ErrorObject values, never raised. The
    only exception that escapes is InternalError for a node kind with no
    evaluation rule.
    """

    def __init__(self, source: Union[SourceFile, str, None] = None,
                 observer: Optional[ExecutionObserver] = None, output=None,
                 builtins: Optional[Dict[str, Builtin]] = None,
                 max_iterations: int = MAX_LOOP_ITERATIONS,
                 max_call_depth: int = MAX_CALL_DEPTH):
        if isinstance(source, str):
            source = SourceFile("<input>", source)
        self.source = source
        self.observer = observer
        self.output = output
        self.builtins = builtins if builtins is not None else BUILTINS
        self.max_iterations = max_iterations
        self.max_call_depth = max_call_depth
        self.call_stack = CallStack()

        self.rules = {
            NodeKind.PROGRAM: self.execute_program,
            NodeKind.LET: self.execute_let_statement,
            NodeKind.CONST: self.execute_let_statement,
            NodeKind.RETURN: self.execute_return_statement,
            NodeKind.EXPRESSION_STATEMENT: self.execute_expression_statement,
            NodeKind.BLOCK: self.execute_block_statement,
            NodeKind.WHILE: self.execute_while_statement,
            NodeKind.FOR: self.execute_for_statement,
            NodeKind.BREAK: self.execute_break_statement,
            NodeKind.CONTINUE: self.execute_continue_statement,
            NodeKind.CLASS: self.execute_class_statement,
            NodeKind.IDENTIFIER: self.evaluate_identifier,
            NodeKind.INTEGER: self.evaluate_integer_literal,
            NodeKind.FLOAT: self.evaluate_float_literal,
            NodeKind.STRING: self.evaluate_string_literal,
            NodeKind.BOOLEAN: self.evaluate_boolean_literal,
            NodeKind.NULL: self.evaluate_null_literal,
            NodeKind.FSTRING: self.evaluate_fstring_literal,
            NodeKind.ARRAY: self.evaluate_array_literal,
            NodeKind.HASH: self.evaluate_hash_literal,
            NodeKind.FUNCTION: self.evaluate_function_literal,
            NodeKind.PREFIX: self.evaluate_prefix_expression,
            NodeKind.INFIX: self.evaluate_infix_expression,
            NodeKind.ASSIGNMENT: self.evaluate_assignment_expression,
            NodeKind.CALL: self.evaluate_call_expression,
            NodeKind.INDEX: self.evaluate_index_expression,
            NodeKind.IF: self.evaluate_if_expression,
            NodeKind.NEW: self.evaluate_new_expression,
            NodeKind.THIS: self.evaluate_this_expression,
            NodeKind.SUPER: self.evaluate_super_expression,
            NodeKind.PROPERTY: self.evaluate_property_expression,
        }
        missing = set(NodeKind) - set(self.rules)
        if missing:
            raise InternalError.from_simple(
                ErrorCode.INTERNAL_ERROR,
                f"no evaluation rule for: {', '.join(sorted(k.name for k in missing))}"
            )

    # Entry points

    def evaluate_program(self, program: Program, env: Optional[Environment] = None) -> EnigmaObject:
        """Evaluate a whole program, converting host stack exhaustion into an Error value"""
        if env is None:
            env = Environment()
        with self.recursion_headroom():
            try:
                result = self.evaluate(program, env)
            except RecursionError:
                logger.debug("host recursion limit reached at call depth %d", self.call_stack.depth())
                result = self.create_error(
                    "Stack overflow: maximum recursion depth exceeded",
                    None, ErrorCode.STACK_OVERFLOW
                )
                self.call_stack.clear()

        if self.observer is not None:
            kind = OutputKind.ERROR if isinstance(result, ErrorObject) else OutputKind.RETURN_VALUE
            self.notify_output(kind, result.inspect())
        return result

    def evaluate(self, node: Node, env: Environment) -> EnigmaObject:
        """Dispatch a node to the rule registered for its kind"""
        rule = self.rules.get(getattr(node, 'kind', None))
        if rule is None:
            raise InternalError.unknown_node(node)

        if self.observer is not None:
            self.notify('before_step', node, env)
        result = rule(node, env)
        if self.observer is not None:
            self.notify('after_step', node, env, result)
        return result

    @contextmanager
    def recursion_headroom(self):
        previous = sys.getrecursionlimit()
        needed = self.max_call_depth * HOST_FRAMES_PER_CALL + 1000
        if needed > previous:
            sys.setrecursionlimit(needed)
        try:
            yield
        finally:
            sys.setrecursionlimit(previous)

    # Errors, output and instrumentation

    def create_error(self, message: str, position: Optional[Position],
                     code: str = ErrorCode.RUNTIME_ERROR) -> ErrorObject:
        """Build a positioned Error with source context and the current call stack"""
        return ErrorObject(
            message,
            position=position,
            code=code,
            stack_trace=self.call_stack.snapshot(),
            source_context=render_source_context(self.source, position),
        )

    def locate(self, result: EnigmaObject, position: Optional[Position]) -> EnigmaObject:
        """Give an unpositioned Error (from an operator or builtin) the call-site position"""
        if isinstance(result, ErrorObject) and result.position is None and position is not None:
            return self.create_error(result.message, position, result.code)
        return result

    def write_output(self, text: str):
        stream = self.output if self.output is not None else sys.stdout
        stream.write(text + "\n")
        self.notify_output(OutputKind.LOG, text)

    def notify_output(self, kind: OutputKind, text: str):
        if self.observer is not None:
            self.notify('on_output', kind, text)

    def notify(self, hook: str, *args):
        """Call an observer hook; a failing observer never affects evaluation"""
        try:
            getattr(self.observer, hook)(*args)
        except Exception:
            logger.exception("observer hook %s failed", hook)

    def push_frame(self, frame: StackFrame):
        self.call_stack.push(frame)
        if self.observer is not None:
            self.notify('on_call_push', frame)

    def pop_frame(self):
        frame = self.call_stack.pop()
        if self.observer is not None and frame is not None:
            self.notify('on_call_pop', frame)

    # Statements

    def execute_program(self, program: Program, env: Environment) -> EnigmaObject:
        result = NULL
        for statement in program.statements:
            result = self.evaluate(statement, env)
            if isinstance(result, ReturnValue):
                return result.value
            if isinstance(result, ErrorObject):
                return result
        return result

    def execute_statements(self, statements, env: Environment) -> EnigmaObject:
        """Run statements in `env`, stopping at the first Return, Error, Break or Continue"""
        result = NULL
        for statement in statements:
            result = self.evaluate(statement, env)
            if isinstance(result, (ReturnValue, ErrorObject)) or result is BREAK or result is CONTINUE:
                return result
        return result

    def execute_block_statement(self, block, env: Environment) -> EnigmaObject:
        return self.execute_statements(block.statements, env.new_block_scope())

    def execute_expression_statement(self, stmt, env: Environment) -> EnigmaObject:
        return self.evaluate(stmt.expression, env)

    def execute_let_statement(self, stmt, env: Environment) -> EnigmaObject:
        """Handles both `let` and `const`"""
        name = stmt.name.value
        if name in RESERVED_NAMES:
            return self.create_error(f"'{name}' is a reserved name", stmt.name.position(),
                                     ErrorCode.REDECLARATION)
        if env.has_local(name):
            return self.create_error(
                f"Variable '{name}' has already been declared in this scope",
                stmt.name.position(), ErrorCode.REDECLARATION
            )

        value = self.evaluate(stmt.value, env)
        if isinstance(value, ErrorObject):
            return value

        if stmt.kind == NodeKind.CONST:
            env.define_constant(name, value)
        else:
            env.define(name, value)

        if self.observer is not None:
            self.notify('during_step', stmt, env, f"declared {name}")
            self.notify_output(OutputKind.ASSIGNMENT, f"{name} = {value.inspect()}")
        return value

    def execute_return_statement(self, stmt, env: Environment) -> EnigmaObject:
        if stmt.return_value is None:
            return ReturnValue(NULL)
        value = self.evaluate(stmt.return_value, env)
        if isinstance(value, ErrorObject):
            return value
        return ReturnValue(value)

    def execute_break_statement(self, stmt, env: Environment) -> EnigmaObject:
        return BREAK

    def execute_continue_statement(self, stmt, env: Environment) -> EnigmaObject:
        return CONTINUE

    def loop_limit_error(self, stmt) -> ErrorObject:
        logger.debug("loop at %s hit the iteration ceiling of %d", stmt.position(), self.max_iterations)
        return self.create_error(
            f"Loop exceeded maximum iterations ({self.max_iterations})",
            stmt.position(), ErrorCode.LOOP_LIMIT
        )

    def execute_while_statement(self, stmt, env: Environment) -> EnigmaObject:
        iterations = 0
        while True:
            condition = self.evaluate(stmt.condition, env)
            if isinstance(condition, ErrorObject):
                return condition
            if not condition.is_truthy():
                break

            iterations += 1
            if iterations > self.max_iterations:
                return self.loop_limit_error(stmt)

            result = self.evaluate(stmt.body, env)
            if isinstance(result, (ReturnValue, ErrorObject)):
                return result
            if result is BREAK:
                break
        return NULL

    def execute_for_statement(self, stmt, env: Environment) -> EnigmaObject:
        loop_env = env.new_block_scope()
        if stmt.initializer is not None:
            initial = self.evaluate(stmt.initializer, loop_env)
            if isinstance(initial, ErrorObject):
                return initial

        iterations = 0
        while True:
            if stmt.condition is not None:
                condition = self.evaluate(stmt.condition, loop_env)
                if isinstance(condition, ErrorObject):
                    return condition
                if not condition.is_truthy():
                    break

            iterations += 1
            if iterations > self.max_iterations:
                return self.loop_limit_error(stmt)

            result = self.evaluate(stmt.body, loop_env)
            if isinstance(result, (ReturnValue, ErrorObject)):
                return result
            if result is BREAK:
                break

            # `continue` still runs the increment
            if stmt.increment is not None:
                step = self.evaluate(stmt.increment, loop_env)
                if isinstance(step, ErrorObject):
                    return step
        return NULL

    def execute_class_statement(self, stmt, env: Environment) -> EnigmaObject:
        name = stmt.name.value
        if env.has_local(name):
            return self.create_error(f"Class '{name}' already defined in this scope",
                                     stmt.name.position(), ErrorCode.REDECLARATION)

        parent = None
        if stmt.parent is not None:
            parent_name = stmt.parent.value
            parent = env.get(parent_name)
            if parent is None:
                return self.create_error(f"Parent class '{parent_name}' not found",
                                         stmt.parent.position(), ErrorCode.INVALID_CLASS)
            if not isinstance(parent, Class):
                return self.create_error(f"'{parent_name}' is not a class",
                                         stmt.parent.position(), ErrorCode.INVALID_CLASS)
            if any(ancestor.name == name for ancestor in parent.inheritance_chain()):
                return self.create_error(
                    f"Circular inheritance detected: {name} cannot extend {parent_name}",
                    stmt.parent.position(), ErrorCode.CIRCULAR_INHERITANCE
                )

        class_env = env.new_function_scope()
        constructor = None
        if stmt.constructor is not None:
            constructor = Function(stmt.constructor.parameters, stmt.constructor.body,
                                   class_env, name="constructor")
        methods = {
            method.name.value: Function(method.function.parameters, method.function.body,
                                        class_env, name=method.name.value)
            for method in stmt.methods
        }

        klass = Class(name, parent, constructor, methods, class_env)
        env.define(name, klass)
        logger.debug("defined class %s", klass.name)
        if self.observer is not None:
            self.notify('during_step', stmt, env, f"defined class {name}")
        return klass

    # Expressions

    def evaluate_identifier(self, node: Identifier, env: Environment) -> EnigmaObject:
        value = env.get(node.value)
        if value is not None:
            return value

        builtin = self.builtins.get(node.value)
        if builtin is not None:
            return builtin

        message = f"identifier not found: {node.value}"
        suggestions = suggest_names(node.value, list(env.names()) + list(self.builtins))
        if suggestions:
            message += f" (did you mean {', '.join(repr(s) for s in suggestions)}?)"
        return self.create_error(message, node.position(), ErrorCode.UNDEFINED_VARIABLE)

    def evaluate_integer_literal(self, node, env: Environment) -> EnigmaObject:
        return Integer(node.value)

    def evaluate_float_literal(self, node, env: Environment) -> EnigmaObject:
        return Float(node.value)

    def evaluate_string_literal(self, node, env: Environment) -> EnigmaObject:
        return String(node.value)

    def evaluate_boolean_literal(self, node, env: Environment) -> EnigmaObject:
        return native_bool(node.value)

    def evaluate_null_literal(self, node, env: Environment) -> EnigmaObject:
        return NULL

    def evaluate_fstring_literal(self, node, env: Environment) -> EnigmaObject:
        pieces = [node.parts[0]]
        for expression, text in zip(node.expressions, node.parts[1:]):
            value = self.evaluate(expression, env)
            if isinstance(value, ErrorObject):
                return value
            pieces.append(value.inspect())
            pieces.append(text)
        return String("".join(pieces))

    def evaluate_expressions(self, expressions, env: Environment) -> Union[List[EnigmaObject], ErrorObject]:
        """Evaluate left to right, stopping at the first Error"""
        values = []
        for expression in expressions:
            value = self.evaluate(expression, env)
            if isinstance(value, ErrorObject):
                return value
            values.append(value)
        return values

    def evaluate_array_literal(self, node, env: Environment) -> EnigmaObject:
        elements = self.evaluate_expressions(node.elements, env)
        if isinstance(elements, ErrorObject):
            return elements
        return Array(elements)

    def evaluate_hash_literal(self, node, env: Environment) -> EnigmaObject:
        pairs = {}
        for key, expression in node.pairs:
            value = self.evaluate(expression, env)
            if isinstance(value, ErrorObject):
                return value
            pairs[key] = value
        return Hash(pairs)

    def evaluate_function_literal(self, node, env: Environment) -> EnigmaObject:
        return Function(node.parameters, node.body, env, name=node.name)

    def evaluate_prefix_expression(self, node, env: Environment) -> EnigmaObject:
        right = self.evaluate(node.right, env)
        if isinstance(right, ErrorObject):
            return right
        return self.locate(eval_prefix(node.operator, right), node.position())

    def evaluate_infix_expression(self, node, env: Environment) -> EnigmaObject:
        if node.operator in ('&&', '||'):
            return self.evaluate_logical_expression(node, env)

        left = self.evaluate(node.left, env)
        if isinstance(left, ErrorObject):
            return left
        right = self.evaluate(node.right, env)
        if isinstance(right, ErrorObject):
            return right
        return self.locate(eval_infix(node.operator, left, right), node.position())

    def evaluate_logical_expression(self, node, env: Environment) -> EnigmaObject:
        left = self.evaluate(node.left, env)
        if isinstance(left, ErrorObject):
            return left
        if node.operator == '&&' and not left.is_truthy():
            return native_bool(False)
        if node.operator == '||' and left.is_truthy():
            return native_bool(True)

        right = self.evaluate(node.right, env)
        if isinstance(right, ErrorObject):
            return right
        return native_bool(right.is_truthy())

    def evaluate_if_expression(self, node, env: Environment) -> EnigmaObject:
        for branch in node.branches:
            condition = self.evaluate(branch.condition, env)
            if isinstance(condition, ErrorObject):
                return condition
            if condition.is_truthy():
                return self.evaluate(branch.consequence, env)
        if node.alternative is not None:
            return self.evaluate(node.alternative, env)
        return NULL

    # Assignment

    def evaluate_assignment_expression(self, node, env: Environment) -> EnigmaObject:
        target = node.target
        if isinstance(target, Identifier):
            return self.assign_variable(target, node.value, env)
        if isinstance(target, IndexExpression):
            return self.assign_index(target, node.value, env)
        if isinstance(target, PropertyExpression):
            return self.assign_property(target, node.value, env)
        return self.create_error(f"invalid assignment target: {target}", target.position())

    def assign_variable(self, target: Identifier, value_node, env: Environment) -> EnigmaObject:
        name = target.value
        if name in RESERVED_NAMES:
            return self.create_error(f"cannot assign to reserved name '{name}'", target.position())

        if env.find_declaring_scope(name) is None:
            return self.create_error(f"Cannot assign to undeclared variable '{name}'",
                                     target.position(), ErrorCode.UNDEFINED_VARIABLE)
        if env.is_constant(name):
            return self.create_error(f"Cannot assign to constant '{name}'",
                                     target.position(), ErrorCode.ASSIGN_TO_CONSTANT)

        value = self.evaluate(value_node, env)
        if isinstance(value, ErrorObject):
            return value
        env.assign(name, value)

        if self.observer is not None:
            self.notify('during_step', target, env, f"assigned {name}")
            self.notify_output(OutputKind.ASSIGNMENT, f"{name} = {value.inspect()}")
        return value

    def assign_index(self, target: IndexExpression, value_node, env: Environment) -> EnigmaObject:
        collection = self.evaluate(target.left, env)
        if isinstance(collection, ErrorObject):
            return collection
        index = self.evaluate(target.index, env)
        if isinstance(index, ErrorObject):
            return index

        if isinstance(collection, Array):
            if not isinstance(index, Integer):
                return self.create_error(f"array index must be INTEGER, got {index.type().value}",
                                         target.index.position(), ErrorCode.TYPE_MISMATCH)
            if not collection.in_bounds(index.value):
                return self.index_out_of_bounds(index.value, collection, target)
            value = self.evaluate(value_node, env)
            if isinstance(value, ErrorObject):
                return value
            collection.elements[index.value] = value
            return value

        if isinstance(collection, Hash):
            key = self.hash_key(index, target)
            if isinstance(key, ErrorObject):
                return key
            value = self.evaluate(value_node, env)
            if isinstance(value, ErrorObject):
                return value
            collection.pairs[key] = value
            return value

        return self.create_error(f"index assignment not supported: {collection.type().value}",
                                 target.position(), ErrorCode.NOT_INDEXABLE)

    def assign_property(self, target: PropertyExpression, value_node, env: Environment) -> EnigmaObject:
        obj = self.evaluate(target.object, env)
        if isinstance(obj, ErrorObject):
            return obj
        name = target.property.value
        if not isinstance(obj, Instance):
            return self.create_error(f"Cannot set property '{name}' on {obj.type().value}",
                                     target.position(), ErrorCode.NO_PROPERTY)

        value = self.evaluate(value_node, env)
        if isinstance(value, ErrorObject):
            return value
        obj.properties[name] = value
        return value

    # Indexing

    def index_out_of_bounds(self, index: int, array: Array, node) -> ErrorObject:
        return self.create_error(
            f"Index out of bounds: {index} for array of size {len(array.elements)}",
            node.position(), ErrorCode.INDEX_OUT_OF_BOUNDS
        )

    def hash_key(self, index: EnigmaObject, node) -> Union[str, ErrorObject]:
        if isinstance(index, String):
            return index.value
        if isinstance(index, Integer):
            return str(index.value)
        return self.create_error(f"unusable as hash key: {index.type().value}",
                                 node.position(), ErrorCode.TYPE_MISMATCH)

    def evaluate_index_expression(self, node, env: Environment) -> EnigmaObject:
        left = self.evaluate(node.left, env)
        if isinstance(left, ErrorObject):
            return left
        index = self.evaluate(node.index, env)
        if isinstance(index, ErrorObject):
            return index

        if isinstance(left, Array):
            if not isinstance(index, Integer):
                return self.create_error(f"array index must be INTEGER, got {index.type().value}",
                                         node.index.position(), ErrorCode.TYPE_MISMATCH)
            if not left.in_bounds(index.value):
                return self.index_out_of_bounds(index.value, left, node)
            return left.elements[index.value]

        if isinstance(left, Hash):
            key = self.hash_key(index, node)
            if isinstance(key, ErrorObject):
                return key
            return left.pairs.get(key, NULL)

        if isinstance(left, String):
            if not isinstance(index, Integer):
                return self.create_error(f"string index must be INTEGER, got {index.type().value}",
                                         node.index.position(), ErrorCode.TYPE_MISMATCH)
            if not 0 <= index.value < len(left.value):
                return self.create_error(
                    f"Index out of bounds: {index.value} for string of length {len(left.value)}",
                    node.position(), ErrorCode.INDEX_OUT_OF_BOUNDS
                )
            return String(left.value[index.value])

        return self.create_error(f"index operator not supported: {left.type().value}",
                                 node.position(), ErrorCode.NOT_INDEXABLE)

    # Calls

    def evaluate_call_expression(self, node, env: Environment) -> EnigmaObject:
        function = self.evaluate(node.function, env)
        if isinstance(function, ErrorObject):
            return function
        args = self.evaluate_expressions(node.arguments, env)
        if isinstance(args, ErrorObject):
            return args

        fallback_name = node.function.value if isinstance(node.function, Identifier) else None
        return self.apply_function(function, args, node.position(), fallback_name)

    def apply_function(self, function: EnigmaObject, args: List[EnigmaObject],
                       position: Optional[Position] = None,
                       name: Optional[str] = None) -> EnigmaObject:
        """Call a user function or builtin; also used by higher-order builtins"""
        if isinstance(function, Builtin):
            return self.call_builtin(function, args, position)

        if not isinstance(function, Function):
            return self.create_error(f"not a function: {function.type().value}",
                                     position, ErrorCode.NOT_A_FUNCTION)

        if len(args) != function.arity():
            return self.create_error(
                f"wrong number of arguments: expected {function.arity()}, got {len(args)}",
                position, ErrorCode.WRONG_ARITY
            )

        scope = function.env.new_function_scope()
        frame_type = FrameType.USER_FUNCTION if function.bound_instance is None else FrameType.METHOD
        frame_name = function.name or name or "<anonymous>"
        return self.invoke(function, args, scope, position, frame_name, frame_type)

    def call_builtin(self, builtin: Builtin, args: List[EnigmaObject],
                     position: Optional[Position]) -> EnigmaObject:
        minimum, maximum = builtin.arity_bounds()
        if len(args) < minimum or (maximum is not None and len(args) > maximum):
            return self.create_error(
                f"wrong number of arguments. got={len(args)}, want={describe_arity(minimum, maximum)}",
                position, ErrorCode.WRONG_ARITY
            )

        self.push_frame(StackFrame(builtin.name, position, FrameType.BUILTIN, list(args)))
        try:
            result = builtin.fn(self, args)
        finally:
            self.pop_frame()
        return self.locate(result, position)

    def invoke(self, function: Function, args: List[EnigmaObject], scope: Environment,
               position: Optional[Position], frame_name: str, frame_type: FrameType) -> EnigmaObject:
        """Bind parameters into `scope` and run the body inside a new call frame"""
        if self.call_stack.depth() >= self.max_call_depth:
            logger.debug("call depth ceiling of %d reached calling %s", self.max_call_depth, frame_name)
            return self.create_error(
                f"Stack overflow: maximum call depth of {self.max_call_depth} exceeded",
                position, ErrorCode.STACK_OVERFLOW
            )

        for parameter, arg in zip(function.parameters, args):
            scope.define(parameter.value, arg)

        self.push_frame(StackFrame(frame_name, position, frame_type, list(args)))
        try:
            result = self.execute_block_statement(function.body, scope)
        finally:
            self.pop_frame()

        if isinstance(result, ReturnValue):
            return result.value
        if result is BREAK or result is CONTINUE:
            return NULL
        return result

    # Classes

    def bind_method(self, method: Function, instance: Instance, owner: Class) -> Function:
        """Method closure whose scope holds `this` and the class that defines it"""
        env = method.env.new_function_scope()
        env.define(THIS_NAME, instance)
        env.define(CLASS_CONTEXT_NAME, owner)
        return Function(method.parameters, method.body, env,
                        name=f"{owner.name}.{method.name}", bound_instance=instance)

    def run_constructor(self, klass: Class, instance: Instance, args: List[EnigmaObject],
                        position: Optional[Position]) -> EnigmaObject:
        """Run the constructor `klass` declares on `instance`; returns NULL or an Error"""
        constructor = klass.constructor
        if constructor is None:
            if args:
                return self.create_error(f"No constructor found for class: {klass.name}",
                                         position, ErrorCode.CONSTRUCTOR_MISMATCH)
            return NULL

        if len(args) != constructor.arity():
            return self.create_error(
                f"Constructor argument mismatch: {klass.name} requires "
                f"{constructor.arity()} arguments but got {len(args)}",
                position, ErrorCode.CONSTRUCTOR_MISMATCH
            )

        scope = constructor.env.new_function_scope()
        scope.define(THIS_NAME, instance)
        scope.define(CLASS_CONTEXT_NAME, klass)
        result = self.invoke(constructor, args, scope, position,
                             f"{klass.name}.constructor", FrameType.CONSTRUCTOR)
        if isinstance(result, ErrorObject):
            return result
        return NULL

    def evaluate_new_expression(self, node, env: Environment) -> EnigmaObject:
        klass = self.evaluate(node.class_name, env)
        if isinstance(klass, ErrorObject):
            return klass
        if not isinstance(klass, Class):
            return self.create_error(f"Cannot instantiate non-class object: {klass.type().value}",
                                     node.position(), ErrorCode.INVALID_CLASS)

        args = self.evaluate_expressions(node.arguments, env)
        if isinstance(args, ErrorObject):
            return args

        instance = klass.create_instance()
        result = self.run_constructor(klass, instance, args, node.position())
        if isinstance(result, ErrorObject):
            return result
        return instance

    def evaluate_property_expression(self, node, env: Environment) -> EnigmaObject:
        obj = self.evaluate(node.object, env)
        if isinstance(obj, ErrorObject):
            return obj
        name = node.property.value

        if not isinstance(obj, Instance):
            return self.create_error(f"Cannot access property '{name}' on {obj.type().value}",
                                     node.property.position(), ErrorCode.NO_PROPERTY)

        if name in obj.properties:
            return obj.properties[name]

        found = obj.klass.find_method(name)
        if found is not None:
            method, owner = found
            return self.bind_method(method, obj, owner)

        message = f"Property '{name}' not found on instance of {obj.klass.name}"
        suggestions = suggest_names(name, list(obj.properties) + obj.klass.method_names())
        if suggestions:
            message += f". Did you mean: {', '.join(suggestions)}?"
        return self.create_error(message, node.property.position(), ErrorCode.NO_PROPERTY)

    def evaluate_this_expression(self, node, env: Environment) -> EnigmaObject:
        instance = env.get(THIS_NAME)
        if instance is None:
            return self.create_error("'this' is not available outside of a class method",
                                     node.position(), ErrorCode.MISSING_CONTEXT)
        return instance

    def evaluate_super_expression(self, node, env: Environment) -> EnigmaObject:
        instance = env.get(THIS_NAME)
        context = env.get(CLASS_CONTEXT_NAME)
        if instance is None or not isinstance(context, Class):
            return self.create_error("'super' is not available outside of a class method",
                                     node.position(), ErrorCode.MISSING_CONTEXT)

        parent = context.parent
        if parent is None:
            return self.create_error(f"Class '{context.name}' has no parent class",
                                     node.position(), ErrorCode.INVALID_CLASS)

        args = self.evaluate_expressions(node.arguments, env)
        if isinstance(args, ErrorObject):
            return args

        if node.is_constructor_call():
            return self.run_constructor(parent, instance, args, node.position())

        name = node.method.value
        found = parent.find_method(name)
        if found is None:
            message = f"Method '{name}' not found in parent class {parent.name}"
            suggestions = suggest_names(name, parent.method_names())
            if suggestions:
                message += f". Did you mean: {', '.join(suggestions)}?"
            return self.create_error(message, node.method.position(), ErrorCode.NO_PROPERTY)

        method, owner = found
        return self.apply_function(self.bind_method(method, instance, owner), args, node.position())


def describe_arity(minimum: int, maximum: Optional[int]) -> str:
    if maximum is None:
        return f"at least {minimum}"
    if minimum == maximum:
        return str(minimum)
    if maximum == minimum + 1:
        return f"{minimum} or {maximum}"
    return f"{minimum} to {maximum}"


def evaluate(program: Program, env: Optional[Environment] = None, **options) -> EnigmaObject:
    """Evaluate a parsed program with a fresh Evaluator"""
    return Evaluator(**options).evaluate_program(program, env)
