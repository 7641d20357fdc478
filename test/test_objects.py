"""
Runtime object model tests
"""

import math

import pytest

from call_stack import FrameType, StackFrame
from errors import ErrorCode
from objects import (
    Integer, Float, String, Array, Hash, Builtin, Class, Instance, ErrorObject,
    ReturnValue, TRUE, FALSE, NULL, native_bool,
)
from source_map import Position


class TestInspect:
    """Display forms"""

    @pytest.mark.parametrize("obj,expected", [
        (Integer(-7), "-7"),
        (Float(3.0), "3.0"),
        (Float(0.25), "0.25"),
        (Float(math.nan), "NaN"),
        (Float(math.inf), "Infinity"),
        (Float(-math.inf), "-Infinity"),
        (String("plain"), "plain"),
        (TRUE, "true"),
        (NULL, "null"),
        (Array([Integer(1), String("a")]), "[1, a]"),
        (Hash({"k": Integer(1), "2": NULL}), "{k: 1, 2: null}"),
        (ReturnValue(Integer(5)), "5"),
    ])
    def test_inspect(self, obj, expected):
        assert obj.inspect() == expected

    def test_self_referencing_array(self):
        array = Array([Integer(1)])
        array.elements.append(array)
        assert array.inspect() == "[1, [...]]"

    def test_self_referencing_hash(self):
        table = Hash()
        table.pairs["me"] = table
        assert table.inspect() == "{me: {...}}"

    def test_builtin_and_class(self):
        parent = Class("A", None, None, {}, None)
        child = Class("B", parent, None, {}, None)
        assert Builtin("len", None, 1).inspect() == "builtin function len"
        assert parent.inspect() == "class A"
        assert child.inspect() == "class B extends A"

    def test_instance(self):
        instance = Instance(Class("Point", None, None, {}, None))
        instance.properties["x"] = Integer(1)
        instance.properties["y"] = Integer(2)
        assert instance.inspect() == "instance of Point {x: 1, y: 2}"


class TestTruthiness:
    """Which values count as true in conditions"""

    @pytest.mark.parametrize("obj", [
        Integer(0), Float(0.0), Float(math.nan), Float(math.inf), String(""),
        FALSE, NULL, Array(), Hash(),
    ])
    def test_falsy(self, obj):
        assert not obj.is_truthy()

    @pytest.mark.parametrize("obj", [
        Integer(-1), Float(0.5), String("0"), TRUE, Array([NULL]), Hash({"a": NULL}),
        Builtin("len", None, 1),
    ])
    def test_truthy(self, obj):
        assert obj.is_truthy()

    def test_native_bool_returns_singletons(self):
        assert native_bool(True) is TRUE
        assert native_bool(False) is FALSE


class TestClasses:
    """Method lookup through the parent chain"""

    @pytest.fixture
    def hierarchy(self):
        base = Class("Base", None, None, {"greet": "base-greet", "name": "base-name"}, None)
        child = Class("Child", base, None, {"name": "child-name"}, None)
        return base, child

    def test_find_method_prefers_own_definition(self, hierarchy):
        base, child = hierarchy
        assert child.find_method("name") == ("child-name", child)
        assert child.find_method("greet") == ("base-greet", base)
        assert child.find_method("missing") is None

    def test_method_names_include_inherited(self, hierarchy):
        _, child = hierarchy
        assert child.method_names() == ["name", "greet"]

    def test_inheritance_chain(self, hierarchy):
        base, child = hierarchy
        assert child.inheritance_chain() == [child, base]
        assert base.inheritance_chain() == [base]


class TestErrorObject:
    """Runtime error values"""

    def test_inspect_with_position_and_trace(self):
        frame = StackFrame("add", Position(1, 5), FrameType.USER_FUNCTION)
        error = ErrorObject("boom", Position(2, 3), stack_trace=[frame])
        assert error.inspect() == (
            "ERROR: boom\n"
            "  at line 2, column 3\n"
            "\n"
            "Stack trace:\n"
            "  at add (line 1, column 5)"
        )

    def test_inspect_without_position(self):
        assert ErrorObject("bare").inspect() == "ERROR: bare"

    def test_errors_are_falsy(self):
        assert not ErrorObject("x").is_truthy()

    def test_to_diagnostic(self):
        frame = StackFrame("f", Position(1, 1))
        error = ErrorObject("bad", Position(4, 2), ErrorCode.DIVISION_BY_ZERO, [frame])
        diagnostic = error.to_diagnostic()
        assert diagnostic.code == ErrorCode.DIVISION_BY_ZERO
        assert diagnostic.message == "bad"
        assert diagnostic.primary_span().start == Position(4, 2)
        assert diagnostic.notes == ["called at f (line 1, column 1)"]
