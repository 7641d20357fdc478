"""
Class, instance and inheritance tests
"""

import pytest

from errors import ErrorCode
from objects import Class, ErrorObject, Instance, NULL


def assert_error(result, message):
    assert isinstance(result, ErrorObject), result.inspect()
    assert result.message == message


POINT = """
class Point {
    constructor(x, y) {
        this.x = x;
        this.y = y;
    }
    sum() { return this.x + this.y; }
    move(dx) { this.x = this.x + dx; return this; }
}
"""

SHAPES = """
class Shape {
    constructor(name) { this.name = name; }
    describe() { return "shape " + this.name; }
    kind() { return "shape"; }
}
class Square extends Shape {
    constructor(side) {
        super("square");
        this.side = side;
    }
    area() { return this.side * this.side; }
    describe() { return super.describe() + " of side " + this.side; }
}
class Cube extends Square {
    constructor(side) { super(side); }
    describe() { return "cube: " + super.describe(); }
}
"""


class TestInstances:
    """Construction, properties and methods"""

    def test_class_statement_evaluates_to_class(self, run):
        result = run("class A {}")
        assert isinstance(result, Class)
        assert result.inspect() == "class A"

    def test_constructor_sets_properties(self, run):
        result = run(POINT + "let p = new Point(1, 2); p")
        assert isinstance(result, Instance)
        assert result.inspect() == "instance of Point {x: 1, y: 2}"

    def test_instance_environment_binds_this(self, run):
        result = run(POINT + "new Point(1, 2)")
        assert result.env.get("this") is result
        assert result.env.enclosing is result.klass.env

    def test_method_call(self, run):
        assert run(POINT + "new Point(3, 4).sum()").value == 7

    def test_methods_mutate_and_chain(self, run):
        assert run(POINT + "let p = new Point(1, 1); p.move(2).move(3); p.x").value == 6

    def test_property_assignment_from_outside(self, run):
        assert run(POINT + "let p = new Point(0, 0); p.label = \"origin\"; p.label").value == "origin"

    def test_compound_property_assignment(self, run):
        assert run(POINT + "let p = new Point(1, 2); p.y *= 10; p.y").value == 20

    def test_class_without_constructor(self, run):
        assert run("class Bag { size() { 0 } } new Bag().size()").value == 0

    def test_no_constructor_with_arguments(self, run):
        result = run("class Bag {} new Bag(1)")
        assert_error(result, "No constructor found for class: Bag")
        assert result.code == ErrorCode.CONSTRUCTOR_MISMATCH

    def test_constructor_argument_mismatch(self, run):
        assert_error(run(POINT + "new Point(1)"),
                     "Constructor argument mismatch: Point requires 2 arguments but got 1")

    def test_constructor_return_value_is_ignored(self, run):
        assert isinstance(run("class A { constructor() { return 5; } } new A()"), Instance)

    def test_missing_property_suggests_names(self, run):
        result = run(POINT + "new Point(1, 2).summ")
        assert result.message.startswith("Property 'summ' not found on instance of Point")
        assert "Did you mean: sum?" in result.message
        assert result.code == ErrorCode.NO_PROPERTY

    def test_missing_property_without_suggestion(self, run):
        assert_error(run(POINT + "new Point(1, 2).zzzzzz"),
                     "Property 'zzzzzz' not found on instance of Point")

    def test_property_on_non_instance(self, run):
        assert_error(run("let n = 1; n.x"), "Cannot access property 'x' on INTEGER")
        assert_error(run("let n = 1; n.x = 2;"), "Cannot set property 'x' on INTEGER")

    def test_new_on_non_class(self, run):
        assert_error(run("let f = fn() {}; new f()"), "Cannot instantiate non-class object: FUNCTION")

    def test_class_redefinition(self, run):
        assert_error(run("class A {} class A {}"), "Class 'A' already defined in this scope")

    def test_detached_method_keeps_this(self, run):
        assert run(POINT + "let p = new Point(2, 5); let s = p.sum; s()").value == 7

    def test_properties_shadow_methods(self, run):
        assert run(POINT + "let p = new Point(1, 2); p.sum = 99; p.sum").value == 99

    def test_this_outside_method(self, run):
        result = run("this")
        assert_error(result, "'this' is not available outside of a class method")
        assert result.code == ErrorCode.MISSING_CONTEXT

    def test_method_frames_are_named_after_class(self, run):
        result = run("class A { boom() { 1 / 0 } } new A().boom()")
        assert result.stack_trace[0].function_name == "A.boom"

    def test_instance_properties_are_independent(self, run):
        source = POINT + "let a = new Point(1, 1); let b = new Point(5, 5); a.move(1); b.x"
        assert run(source).value == 5


class TestInheritance:
    """extends and super"""

    def test_inherited_method(self, run):
        assert run(SHAPES + "new Square(2).kind()").value == "shape"

    def test_subclass_method(self, run):
        assert run(SHAPES + "new Square(3).area()").value == 9

    def test_super_constructor(self, run):
        result = run(SHAPES + "new Square(2)")
        assert result.inspect() == "instance of Square {name: square, side: 2}"

    def test_super_method(self, run):
        assert run(SHAPES + "new Square(2).describe()").value == "shape square of side 2"

    def test_super_resolves_from_defining_class(self, run):
        # each super call moves one level up from the class that defines the method
        assert run(SHAPES + "new Cube(4).describe()").value == "cube: shape square of side 4"

    def test_super_constructor_with_getter(self, run):
        source = ("class A { constructor(x){ this.x = x; } get(){ return this.x; } } "
                  "class B extends A { constructor(x){ super(x); } } new B(5).get();")
        assert run(source).value == 5

    def test_constructor_chain(self, run):
        assert run(SHAPES + "new Cube(3).area()").value == 9

    def test_constructor_is_not_inherited(self, run):
        base = "class A { constructor(x) { this.x = x; } } class B extends A {}"
        result = run(base + "new B()")
        assert isinstance(result, Instance)
        assert result.inspect() == "instance of B {}"
        assert_error(run(base + "new B(1)"), "No constructor found for class: B")

    def test_super_call_to_parent_without_constructor(self, run):
        base = "class A { constructor(x) { this.x = x; } } class B extends A {}"
        source = base + "class C extends B { constructor() { super(); this.c = 1; } } new C().c"
        assert run(source).value == 1
        bad = base + "class C extends B { constructor() { super(2); } } new C()"
        assert_error(run(bad), "No constructor found for class: B")

    def test_class_inspect_shows_parent(self, run):
        assert run(SHAPES + "Square").inspect() == "class Square extends Shape"

    def test_parent_not_found(self, run):
        result = run("class B extends Missing {}")
        assert_error(result, "Parent class 'Missing' not found")
        assert result.code == ErrorCode.INVALID_CLASS

    def test_parent_not_a_class(self, run):
        assert_error(run("let A = 1; class B extends A {}"), "'A' is not a class")

    def test_circular_inheritance(self, run):
        source = "class A {} { class A extends A {} }"
        result = run(source)
        assert_error(result, "Circular inheritance detected: A cannot extend A")
        assert result.code == ErrorCode.CIRCULAR_INHERITANCE

    def test_super_without_parent(self, run):
        assert_error(run("class A { m() { super.m() } } new A().m()"), "Class 'A' has no parent class")

    def test_super_outside_method(self, run):
        assert_error(run("let f = fn() { super.x() }; f()"),
                     "'super' is not available outside of a class method")

    def test_super_missing_method(self, run):
        source = SHAPES + "class Odd extends Shape { m() { super.describ() } } new Odd(\"o\").m()"
        result = run(source)
        assert result.message.startswith("Method 'describ' not found in parent class Shape")
        assert "Did you mean: describe?" in result.message

    def test_super_constructor_arity(self, run):
        source = SHAPES + "class Bad extends Shape { constructor() { super(); } } new Bad()"
        assert_error(run(source), "Constructor argument mismatch: Shape requires 1 arguments but got 0")

    def test_super_constructor_call_evaluates_to_null(self, run):
        source = SHAPES + "class T extends Shape { constructor() { this.r = super(\"t\"); } } new T().r"
        assert run(source) is NULL

    @pytest.mark.parametrize("method,expected", [("kind", "shape"), ("area", 16)])
    def test_grandchild_lookup(self, run, method, expected):
        assert run(SHAPES + f"new Cube(4).{method}()").value == expected
