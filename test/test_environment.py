"""
Scope and binding tests
"""

import pytest

from environment import Environment
from objects import Integer, String


class TestEnvironment:
    """Declaration, lookup and assignment across nested scopes"""

    @pytest.fixture
    def globals_env(self):
        env = Environment()
        env.define("x", Integer(1))
        env.define_constant("PI", Integer(3))
        return env

    def test_define_and_get(self, globals_env):
        assert globals_env.get("x").value == 1
        assert globals_env.get("missing") is None

    def test_redeclaration_in_same_scope_is_refused(self, globals_env):
        assert globals_env.define("x", Integer(2)) is False
        assert globals_env.define_constant("PI", Integer(4)) is False
        assert globals_env.get("x").value == 1

    def test_shadowing_in_child_scope(self, globals_env):
        block = globals_env.new_block_scope()
        assert block.define("x", String("inner"))
        assert block.get("x").value == "inner"
        assert globals_env.get("x").value == 1

    def test_assignment_updates_declaring_scope(self, globals_env):
        inner = globals_env.new_function_scope().new_block_scope()
        assert inner.assign("x", Integer(10))
        assert not inner.has_local("x")
        assert globals_env.get("x").value == 10

    def test_assignment_to_undeclared_name_fails(self, globals_env):
        assert globals_env.new_block_scope().assign("nope", Integer(0)) is False
        assert globals_env.get("nope") is None

    def test_constants_are_visible_from_children(self, globals_env):
        child = globals_env.new_block_scope()
        assert child.is_constant("PI")
        assert not child.is_constant("x")
        assert not child.is_constant("missing")

    def test_shadowing_constant_with_variable(self, globals_env):
        child = globals_env.new_function_scope()
        child.define("PI", Integer(0))
        assert not child.is_constant("PI")
        assert globals_env.is_constant("PI")

    def test_names_innermost_first_without_duplicates(self, globals_env):
        child = globals_env.new_block_scope()
        child.define("y", Integer(0))
        child.define("x", Integer(0))
        assert list(child.names()) == ["y", "x", "PI"]

    def test_scope_kinds(self, globals_env):
        assert globals_env.new_block_scope().is_block_scope
        assert not globals_env.new_function_scope().is_block_scope
        assert globals_env.new_block_scope().enclosing is globals_env
