"""
Runtime object model for the Enigma Programming Language
"""

import math
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Dict, List, Optional, Set, Tuple

from ast_nodes import BlockStatement, Identifier
from call_stack import StackFrame, format_stack_trace
from environment import Environment, THIS_NAME
from errors import Diagnostic, ErrorCode, LabeledSpan, Severity
from source_map import Position, Span


class ObjectType(Enum):
    INTEGER = "INTEGER"
    FLOAT = "FLOAT"
    STRING = "STRING"
    BOOLEAN = "BOOLEAN"
    NULL = "NULL"
    ARRAY = "ARRAY"
    HASH = "HASH"
    FUNCTION = "FUNCTION"
    BUILTIN = "BUILTIN"
    CLASS = "CLASS"
    INSTANCE = "INSTANCE"
    RETURN_VALUE = "RETURN_VALUE"
    BREAK = "BREAK"
    CONTINUE = "CONTINUE"
    ERROR = "ERROR"


# Containers currently being rendered, so self-references print as "..."
_rendering: Set[int] = set()


def _render_nested(obj, placeholder: str, render: Callable[[], str]) -> str:
    key = id(obj)
    if key in _rendering:
        return placeholder
    _rendering.add(key)
    try:
        return render()
    finally:
        _rendering.discard(key)


class EnigmaObject(ABC):
    """Base class for every runtime value"""

    @abstractmethod
    def type(self) -> ObjectType:
        ...

    @abstractmethod
    def inspect(self) -> str:
        ...

    def is_truthy(self) -> bool:
        return True

    def __repr__(self):
        return f"<{self.type().value} {self.inspect()}>"


INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1


class Integer(EnigmaObject):
    def __init__(self, value: int):
        self.value = value

    def type(self):
        return ObjectType.INTEGER

    def inspect(self):
        return str(self.value)

    def is_truthy(self):
        return self.value != 0


class Float(EnigmaObject):
    def __init__(self, value: float):
        self.value = value

    def type(self):
        return ObjectType.FLOAT

    def inspect(self):
        if math.isnan(self.value):
            return "NaN"
        if math.isinf(self.value):
            return "Infinity" if self.value > 0 else "-Infinity"
        if self.value.is_integer():
            return f"{int(self.value)}.0"
        return repr(self.value)

    def is_truthy(self):
        # NaN and the infinities count as false
        if math.isnan(self.value) or math.isinf(self.value):
            return False
        return self.value != 0.0


class String(EnigmaObject):
    def __init__(self, value: str):
        self.value = value

    def type(self):
        return ObjectType.STRING

    def inspect(self):
        return self.value

    def is_truthy(self):
        return len(self.value) > 0


class Boolean(EnigmaObject):
    def __init__(self, value: bool):
        self.value = value

    def type(self):
        return ObjectType.BOOLEAN

    def inspect(self):
        return "true" if self.value else "false"

    def is_truthy(self):
        return self.value


class Null(EnigmaObject):
    def type(self):
        return ObjectType.NULL

    def inspect(self):
        return "null"

    def is_truthy(self):
        return False


TRUE = Boolean(True)
FALSE = Boolean(False)
NULL = Null()


def native_bool(value: bool) -> Boolean:
    return TRUE if value else FALSE


class Array(EnigmaObject):
    def __init__(self, elements: Optional[List[EnigmaObject]] = None):
        self.elements = elements if elements is not None else []

    def type(self):
        return ObjectType.ARRAY

    def inspect(self):
        return _render_nested(
            self, "[...]",
            lambda: "[" + ", ".join(e.inspect() for e in self.elements) + "]"
        )

    def is_truthy(self):
        return len(self.elements) > 0

    def in_bounds(self, index: int) -> bool:
        return 0 <= index < len(self.elements)


class Hash(EnigmaObject):
    """String-keyed map that keeps insertion order"""

    def __init__(self, pairs: Optional[Dict[str, EnigmaObject]] = None):
        self.pairs = pairs if pairs is not None else {}

    def type(self):
        return ObjectType.HASH

    def inspect(self):
        return _render_nested(
            self, "{...}",
            lambda: "{" + ", ".join(f"{k}: {v.inspect()}" for k, v in self.pairs.items()) + "}"
        )

    def is_truthy(self):
        return len(self.pairs) > 0


class Function(EnigmaObject):
    """A closure: parameters, body and the environment it was defined in"""

    def __init__(self, parameters: List[Identifier], body: BlockStatement, env,
                 name: Optional[str] = None, bound_instance: Optional['Instance'] = None):
        self.parameters = parameters
        self.body = body
        self.env = env
        self.name = name
        self.bound_instance = bound_instance

    def type(self):
        return ObjectType.FUNCTION

    def inspect(self):
        params = ", ".join(p.value for p in self.parameters)
        return f"fn({params}) {self.body}"

    def arity(self) -> int:
        return len(self.parameters)


class Builtin(EnigmaObject):
    """A native function; `fn(context, args)` returns an EnigmaObject.

    ``arity`` is None for variadic builtins, an int for a fixed count, or a
    (min, max) tuple where max may be None.
    """

    def __init__(self, name: str, fn: Callable, arity=None):
        self.name = name
        self.fn = fn
        self.arity = arity

    def type(self):
        return ObjectType.BUILTIN

    def inspect(self):
        return f"builtin function {self.name}"

    def arity_bounds(self) -> Tuple[int, Optional[int]]:
        if self.arity is None:
            return 0, None
        if isinstance(self.arity, tuple):
            return self.arity
        return self.arity, self.arity


class Class(EnigmaObject):
    def __init__(self, name: str, parent: Optional['Class'], constructor: Optional[Function],
                 methods: Dict[str, Function], env):
        self.name = name
        self.parent = parent
        self.constructor = constructor
        self.methods = dict(methods)
        self.env = env

    def type(self):
        return ObjectType.CLASS

    def inspect(self):
        if self.parent is not None:
            return f"class {self.name} extends {self.parent.name}"
        return f"class {self.name}"

    def find_method(self, name: str) -> Optional[Tuple[Function, 'Class']]:
        """Method and the class that defines it, searching up the parent chain"""
        klass = self
        while klass is not None:
            method = klass.methods.get(name)
            if method is not None:
                return method, klass
            klass = klass.parent
        return None

    def method_names(self) -> List[str]:
        names = []
        klass = self
        while klass is not None:
            names.extend(n for n in klass.methods if n not in names)
            klass = klass.parent
        return names

    def inheritance_chain(self) -> List['Class']:
        chain = []
        klass = self
        while klass is not None:
            chain.append(klass)
            klass = klass.parent
        return chain

    def create_instance(self) -> 'Instance':
        """New instance with its own environment over the class environment, `this` bound"""
        instance = Instance(self)
        instance.env = Environment(self.env)
        instance.env.define(THIS_NAME, instance)
        return instance


class Instance(EnigmaObject):
    def __init__(self, klass: Class):
        self.klass = klass
        self.properties: Dict[str, EnigmaObject] = {}
        self.env: Optional[Environment] = None

    def type(self):
        return ObjectType.INSTANCE

    def inspect(self):
        def render():
            fields = ", ".join(f"{k}: {v.inspect()}" for k, v in self.properties.items())
            return f"instance of {self.klass.name} {{{fields}}}"
        return _render_nested(self, f"instance of {self.klass.name} {{...}}", render)


# Control flow signals
class ReturnValue(EnigmaObject):
    def __init__(self, value: EnigmaObject):
        self.value = value

    def type(self):
        return ObjectType.RETURN_VALUE

    def inspect(self):
        return self.value.inspect()


class BreakSignal(EnigmaObject):
    def type(self):
        return ObjectType.BREAK

    def inspect(self):
        return "break"


class ContinueSignal(EnigmaObject):
    def type(self):
        return ObjectType.CONTINUE

    def inspect(self):
        return "continue"


BREAK = BreakSignal()
CONTINUE = ContinueSignal()


class ErrorObject(EnigmaObject):
    """A runtime error value; it propagates by being returned, never raised"""

    def __init__(self, message: str, position: Optional[Position] = None,
                 code: str = ErrorCode.RUNTIME_ERROR,
                 stack_trace: Optional[List[StackFrame]] = None,
                 source_context: Optional[str] = None):
        self.message = message
        self.position = position
        self.code = code
        self.stack_trace = stack_trace or []
        self.source_context = source_context

    def type(self):
        return ObjectType.ERROR

    def inspect(self):
        lines = [f"ERROR: {self.message}"]
        if self.position is not None:
            lines.append(f"  at line {self.position.line}, column {self.position.column}")
        if self.source_context:
            lines.append("")
            lines.append(self.source_context)
        if self.stack_trace:
            lines.append("")
            lines.append("Stack trace:")
            lines.append(format_stack_trace(self.stack_trace))
        return "\n".join(lines)

    def is_truthy(self):
        return False

    def to_diagnostic(self) -> Diagnostic:
        labels = []
        if self.position is not None:
            labels.append(LabeledSpan(Span.at(self.position), self.message, is_primary=True))
        notes = [f"called {frame}" for frame in self.stack_trace]
        return Diagnostic(
            code=self.code,
            severity=Severity.ERROR,
            message=self.message,
            labels=labels,
            notes=notes,
        )
