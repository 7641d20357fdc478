"""
Environment and scoping system for the Enigma Programming Language
"""

from typing import Dict, Iterator, Optional, Set

# Reserved bindings installed when a method or constructor runs
THIS_NAME = "this"
CLASS_CONTEXT_NAME = "__class_context__"


class Environment:
    """One lexical scope: bindings, constant markers and the enclosing scope.

    Lookup walks outward through ``enclosing``. Declarations always land in
    this frame, while assignment is routed to the frame that declared the
    name (see ``find_declaring_scope``) so an inner scope never shadows an
    outer binding by assigning to it.
    """

    def __init__(self, enclosing: Optional['Environment'] = None, is_block_scope: bool = False):
        self.enclosing = enclosing
        self.is_block_scope = is_block_scope
        self.values: Dict[str, object] = {}
        self.constants: Set[str] = set()

    def new_block_scope(self) -> 'Environment':
        """Child scope for a `{ }` block or loop"""
        return Environment(self, is_block_scope=True)

    def new_function_scope(self) -> 'Environment':
        """Child scope for a function or method invocation"""
        return Environment(self, is_block_scope=False)

    def has_local(self, name: str) -> bool:
        """Check whether `name` is declared in this frame only"""
        return name in self.values

    def define(self, name: str, value) -> bool:
        """Declare a new variable in this frame; False if it already exists here"""
        if name in self.values:
            return False
        self.values[name] = value
        return True

    def define_constant(self, name: str, value) -> bool:
        """Declare a constant in this frame; False if the name already exists here"""
        if not self.define(name, value):
            return False
        self.constants.add(name)
        return True

    def get(self, name: str):
        """Resolve a name through the scope chain, None if it is undeclared"""
        scope = self.find_declaring_scope(name)
        if scope is None:
            return None
        return scope.values[name]

    def find_declaring_scope(self, name: str) -> Optional['Environment']:
        scope = self
        while scope is not None:
            if name in scope.values:
                return scope
            scope = scope.enclosing
        return None

    def is_constant(self, name: str) -> bool:
        """True when the binding `name` resolves to was declared with const"""
        scope = self.find_declaring_scope(name)
        return scope is not None and name in scope.constants

    def assign(self, name: str, value) -> bool:
        """Rebind an existing variable in its declaring frame.

        Returns False when the name is undeclared. Constant checks are the
        caller's job so it can report the two cases differently.
        """
        scope = self.find_declaring_scope(name)
        if scope is None:
            return False
        scope.values[name] = value
        return True

    def names(self) -> Iterator[str]:
        """All visible names, innermost first, without duplicates"""
        seen = set()
        scope = self
        while scope is not None:
            for name in scope.values:
                if name not in seen:
                    seen.add(name)
                    yield name
            scope = scope.enclosing

    def depth(self) -> int:
        depth = 0
        scope = self.enclosing
        while scope is not None:
            depth += 1
            scope = scope.enclosing
        return depth

    def __repr__(self):
        kind = "block" if self.is_block_scope else "function"
        return f"<Environment {kind} depth={self.depth()} names={sorted(self.values)}>"
