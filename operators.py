"""
Operator semantics for the Enigma Programming Language
Prefix and infix operators on runtime objects; errors are returned unpositioned
"""

import math

from errors import ErrorCode
from objects import (
    EnigmaObject, Integer, Float, String, Boolean, ErrorObject, native_bool,
    INT64_MIN, INT64_MAX,
)

COMPARISONS = {
    '<': lambda a, b: a < b,
    '>': lambda a, b: a > b,
    '<=': lambda a, b: a <= b,
    '>=': lambda a, b: a >= b,
    '==': lambda a, b: a == b,
    '!=': lambda a, b: a != b,
}


def is_number(obj: EnigmaObject) -> bool:
    return isinstance(obj, (Integer, Float))


def unknown_operator(message: str) -> ErrorObject:
    return ErrorObject(f"unknown operator: {message}", code=ErrorCode.UNKNOWN_OPERATOR)


def checked_integer(value: int) -> EnigmaObject:
    """Wrap a Python int, rejecting values outside the 64-bit range"""
    if value < INT64_MIN or value > INT64_MAX:
        return ErrorObject("integer overflow", code=ErrorCode.INTEGER_OVERFLOW)
    return Integer(value)


def division_by_zero() -> ErrorObject:
    return ErrorObject("division by zero", code=ErrorCode.DIVISION_BY_ZERO)


def objects_equal(left: EnigmaObject, right: EnigmaObject) -> bool:
    """Value equality for scalars, identity for everything else"""
    if is_number(left) and is_number(right):
        return left.value == right.value
    if isinstance(left, String) and isinstance(right, String):
        return left.value == right.value
    if isinstance(left, Boolean) and isinstance(right, Boolean):
        return left.value == right.value
    return left is right


def eval_prefix(operator: str, right: EnigmaObject) -> EnigmaObject:
    if operator == '!':
        return native_bool(not right.is_truthy())
    if operator == '-':
        if isinstance(right, Integer):
            return checked_integer(-right.value)
        if isinstance(right, Float):
            return Float(-right.value)
        return unknown_operator(f"-{right.type().value}")
    return unknown_operator(f"{operator}{right.type().value}")


def eval_infix(operator: str, left: EnigmaObject, right: EnigmaObject) -> EnigmaObject:
    if isinstance(left, Integer) and isinstance(right, Integer):
        return integer_infix(operator, left.value, right.value)
    if is_number(left) and is_number(right):
        return float_infix(operator, float(left.value), float(right.value))
    if isinstance(left, String) and isinstance(right, String):
        return string_infix(operator, left.value, right.value)

    if operator == '+' and isinstance(left, String) and is_number(right):
        return String(left.value + right.inspect())
    if operator == '+' and is_number(left) and isinstance(right, String):
        return String(left.inspect() + right.value)

    if operator == '==':
        return native_bool(objects_equal(left, right))
    if operator == '!=':
        return native_bool(not objects_equal(left, right))

    if left.type() != right.type():
        return ErrorObject(
            f"type mismatch: {left.type().value} {operator} {right.type().value}",
            code=ErrorCode.TYPE_MISMATCH
        )
    return unknown_operator(f"{left.type().value} {operator} {right.type().value}")


def integer_infix(operator: str, a: int, b: int) -> EnigmaObject:
    if operator == '+':
        return checked_integer(a + b)
    if operator == '-':
        return checked_integer(a - b)
    if operator == '*':
        return checked_integer(a * b)
    if operator == '/':
        if b == 0:
            return division_by_zero()
        # Truncate toward zero: 10 / 3 == 3, -7 / 2 == -3
        quotient = abs(a) // abs(b)
        return checked_integer(quotient if (a < 0) == (b < 0) else -quotient)
    if operator == '%':
        if b == 0:
            return division_by_zero()
        remainder = abs(a) % abs(b)
        return Integer(remainder if a >= 0 else -remainder)
    if operator == '//':
        if b == 0:
            return division_by_zero()
        return checked_integer(a // b)
    if operator in COMPARISONS:
        return native_bool(COMPARISONS[operator](a, b))
    return unknown_operator(f"INTEGER {operator} INTEGER")


def float_divide(a: float, b: float) -> float:
    """IEEE-754 division: x/0 is +-Infinity, 0/0 is NaN"""
    if b == 0.0:
        if a == 0.0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)
    return a / b


def float_infix(operator: str, a: float, b: float) -> EnigmaObject:
    if operator == '+':
        return Float(a + b)
    if operator == '-':
        return Float(a - b)
    if operator == '*':
        return Float(a * b)
    if operator == '/':
        return Float(float_divide(a, b))
    if operator == '%':
        if b == 0.0:
            return Float(math.nan)
        return Float(math.fmod(a, b))
    if operator == '//':
        quotient = float_divide(a, b)
        if math.isnan(quotient) or math.isinf(quotient):
            return Float(quotient)
        return Float(float(math.floor(quotient)))
    if operator in COMPARISONS:
        return native_bool(COMPARISONS[operator](a, b))
    return unknown_operator(f"FLOAT {operator} FLOAT")


def string_infix(operator: str, a: str, b: str) -> EnigmaObject:
    if operator == '+':
        return String(a + b)
    if operator in COMPARISONS:
        return native_bool(COMPARISONS[operator](a, b))
    return unknown_operator(f"STRING {operator} STRING")
