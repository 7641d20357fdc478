"""
Built-in functions for the Enigma Programming Language

Every builtin is a plain function ``fn(context, args)`` registered with
``@builtin``. ``context`` is the running Evaluator; it gives ``print`` an
output stream and lets the higher-order builtins call back into Enigma
functions. Argument counts are checked by the evaluator before the call,
so a builtin only validates argument types. Errors are returned without
a position and are re-positioned at the call site.
"""

import functools
import math
import re
from typing import Dict, List, Optional

from errors import ErrorCode
from objects import (
    EnigmaObject, Integer, Float, String, Boolean, Null, Array, Hash,
    Function, Builtin, ErrorObject, NULL, native_bool,
)
from operators import checked_integer, objects_equal

BUILTINS: Dict[str, Builtin] = {}

ORDINALS = ("first", "second", "third")
NUMBER = (Integer, Float)
CALLABLE = (Function, Builtin)


def builtin(name: str, arity=None):
    """Register `fn(context, args)` as the builtin `name`"""
    def decorator(fn):
        BUILTINS[name] = Builtin(name, fn, arity)
        return fn
    return decorator


def fail(message: str, code: str = ErrorCode.BUILTIN_FAILURE) -> ErrorObject:
    return ErrorObject(message, code=code)


def wrong_type(name: str, args: List[EnigmaObject], index: int, expected: str) -> ErrorObject:
    """`argument to 'len' ...` for one-argument calls, `second argument to ...` otherwise"""
    which = "argument" if len(args) == 1 else f"{ORDINALS[index]} argument"
    return fail(f"{which} to '{name}' must be {expected}, got {args[index].type().value}",
                ErrorCode.TYPE_MISMATCH)


def optional(args: List[EnigmaObject], index: int) -> Optional[EnigmaObject]:
    return args[index] if len(args) > index else None


# Core data operations

@builtin("len", 1)
def builtin_len(context, args):
    arg = args[0]
    if isinstance(arg, Array):
        return Integer(len(arg.elements))
    if isinstance(arg, String):
        return Integer(len(arg.value))
    if isinstance(arg, Hash):
        return Integer(len(arg.pairs))
    return fail(f"argument to 'len' not supported, got {arg.type().value}", ErrorCode.TYPE_MISMATCH)


@builtin("type", 1)
def builtin_type(context, args):
    return String(args[0].type().value)


@builtin("str", 1)
def builtin_str(context, args):
    return String(args[0].inspect())


@builtin("int", 1)
def builtin_int(context, args):
    arg = args[0]
    if isinstance(arg, Integer):
        return arg
    if isinstance(arg, Float):
        if math.isnan(arg.value) or math.isinf(arg.value):
            return fail(f"cannot convert {arg.inspect()} to integer")
        return checked_integer(int(arg.value))
    if isinstance(arg, Boolean):
        return Integer(1 if arg.value else 0)
    if isinstance(arg, String):
        # Leading digits are enough: int("42px") == 42
        match = re.match(r'\s*([+-]?\d+)', arg.value)
        if match is None:
            return fail(f'cannot convert "{arg.value}" to integer')
        return checked_integer(int(match.group(1)))
    return fail(f"argument to 'int' not supported, got {arg.type().value}", ErrorCode.TYPE_MISMATCH)


@builtin("float", 1)
def builtin_float(context, args):
    arg = args[0]
    if isinstance(arg, Float):
        return arg
    if isinstance(arg, Integer):
        return Float(float(arg.value))
    if isinstance(arg, String):
        try:
            return Float(float(arg.value.strip()))
        except ValueError:
            return fail(f'cannot convert "{arg.value}" to float')
    return fail(f"argument to 'float' not supported, got {arg.type().value}", ErrorCode.TYPE_MISMATCH)


@builtin("bool", 1)
def builtin_bool(context, args):
    return native_bool(args[0].is_truthy())


# Output

@builtin("print")
def builtin_print(context, args):
    context.write_output(" ".join(arg.inspect() for arg in args))
    return NULL


@builtin("println")
def builtin_println(context, args):
    """Like print, followed by a blank line"""
    context.write_output(" ".join(arg.inspect() for arg in args) + "\n")
    return NULL


# Array operations

@builtin("first", 1)
def builtin_first(context, args):
    if not isinstance(args[0], Array):
        return wrong_type("first", args, 0, "ARRAY")
    elements = args[0].elements
    return elements[0] if elements else NULL


@builtin("last", 1)
def builtin_last(context, args):
    if not isinstance(args[0], Array):
        return wrong_type("last", args, 0, "ARRAY")
    elements = args[0].elements
    return elements[-1] if elements else NULL


@builtin("rest", 1)
def builtin_rest(context, args):
    if not isinstance(args[0], Array):
        return wrong_type("rest", args, 0, "ARRAY")
    elements = args[0].elements
    if not elements:
        return NULL
    return Array(elements[1:])


@builtin("push", 2)
def builtin_push(context, args):
    if not isinstance(args[0], Array):
        return wrong_type("push", args, 0, "ARRAY")
    return Array(args[0].elements + [args[1]])


@builtin("pop", 1)
def builtin_pop(context, args):
    """New array without the last element"""
    if not isinstance(args[0], Array):
        return wrong_type("pop", args, 0, "ARRAY")
    if not args[0].elements:
        return fail("cannot pop from empty array")
    return Array(args[0].elements[:-1])


def clamp_range(start: int, end: int, length: int):
    if start < 0:
        start = max(0, length + start)
    if end < 0:
        end = max(0, length + end)
    start = max(0, min(start, length))
    end = max(start, min(end, length))
    return start, end


@builtin("slice", (2, 3))
def builtin_slice(context, args):
    if not isinstance(args[0], Array):
        return wrong_type("slice", args, 0, "ARRAY")
    if not isinstance(args[1], Integer):
        return wrong_type("slice", args, 1, "INTEGER")
    end = optional(args, 2)
    if end is not None and not isinstance(end, Integer):
        return wrong_type("slice", args, 2, "INTEGER")

    elements = args[0].elements
    start, stop = clamp_range(args[1].value, end.value if end is not None else len(elements), len(elements))
    return Array(elements[start:stop])


@builtin("concat", 2)
def builtin_concat(context, args):
    for index in range(2):
        if not isinstance(args[index], Array):
            return wrong_type("concat", args, index, "ARRAY")
    return Array(args[0].elements + args[1].elements)


@builtin("reverse", 1)
def builtin_reverse(context, args):
    arg = args[0]
    if isinstance(arg, String):
        return String(arg.value[::-1])
    if not isinstance(arg, Array):
        return wrong_type("reverse", args, 0, "ARRAY")
    return Array(list(reversed(arg.elements)))


@builtin("join", (1, 2))
def builtin_join(context, args):
    if not isinstance(args[0], Array):
        return wrong_type("join", args, 0, "ARRAY")
    separator = optional(args, 1)
    if separator is not None and not isinstance(separator, String):
        return wrong_type("join", args, 1, "STRING")
    sep = separator.value if separator is not None else ","
    return String(sep.join(element.inspect() for element in args[0].elements))


# String operations

@builtin("split", 2)
def builtin_split(context, args):
    for index in range(2):
        if not isinstance(args[index], String):
            return wrong_type("split", args, index, "STRING")
    text, delimiter = args[0].value, args[1].value
    parts = list(text) if delimiter == "" else text.split(delimiter)
    return Array([String(part) for part in parts])


@builtin("replace", 3)
def builtin_replace(context, args):
    """Replace every literal occurrence of the search text"""
    for index in range(3):
        if not isinstance(args[index], String):
            return wrong_type("replace", args, index, "STRING")
    return String(args[0].value.replace(args[1].value, args[2].value))


@builtin("trim", 1)
def builtin_trim(context, args):
    if not isinstance(args[0], String):
        return wrong_type("trim", args, 0, "STRING")
    return String(args[0].value.strip())


@builtin("upper", 1)
def builtin_upper(context, args):
    if not isinstance(args[0], String):
        return wrong_type("upper", args, 0, "STRING")
    return String(args[0].value.upper())


@builtin("lower", 1)
def builtin_lower(context, args):
    if not isinstance(args[0], String):
        return wrong_type("lower", args, 0, "STRING")
    return String(args[0].value.lower())


@builtin("substr", (2, 3))
def builtin_substr(context, args):
    """substr(text, start, length?); a negative start counts from the end"""
    if not isinstance(args[0], String):
        return wrong_type("substr", args, 0, "STRING")
    if not isinstance(args[1], Integer):
        return wrong_type("substr", args, 1, "INTEGER")
    length = optional(args, 2)
    if length is not None and not isinstance(length, Integer):
        return wrong_type("substr", args, 2, "INTEGER")

    text = args[0].value
    start = args[1].value
    if start < 0:
        start = max(0, len(text) + start)
    start = min(start, len(text))
    count = length.value if length is not None else len(text) - start
    if count <= 0:
        return String("")
    return String(text[start:start + count])


@builtin("indexOf", 2)
def builtin_index_of(context, args):
    haystack, needle = args
    if isinstance(haystack, Array):
        for i, element in enumerate(haystack.elements):
            if objects_equal(element, needle):
                return Integer(i)
        return Integer(-1)
    if not isinstance(haystack, String):
        return wrong_type("indexOf", args, 0, "STRING or ARRAY")
    if not isinstance(needle, String):
        return wrong_type("indexOf", args, 1, "STRING")
    return Integer(haystack.value.find(needle.value))


@builtin("contains", 2)
def builtin_contains(context, args):
    haystack, needle = args
    if isinstance(haystack, Array):
        return native_bool(any(objects_equal(element, needle) for element in haystack.elements))
    if isinstance(haystack, Hash):
        if not isinstance(needle, String):
            return wrong_type("contains", args, 1, "STRING")
        return native_bool(needle.value in haystack.pairs)
    if not isinstance(haystack, String):
        return wrong_type("contains", args, 0, "STRING, ARRAY or HASH")
    if not isinstance(needle, String):
        return wrong_type("contains", args, 1, "STRING")
    return native_bool(needle.value in haystack.value)


# Math

def to_integer(name: str, value: float) -> EnigmaObject:
    if math.isnan(value) or math.isinf(value):
        return fail(f"'{name}' cannot convert {Float(value).inspect()} to integer")
    return checked_integer(int(value))


@builtin("abs", 1)
def builtin_abs(context, args):
    arg = args[0]
    if isinstance(arg, Integer):
        return checked_integer(abs(arg.value))
    if isinstance(arg, Float):
        return Float(abs(arg.value))
    return wrong_type("abs", args, 0, "INTEGER or FLOAT")


def extreme(name: str, args, pick):
    for index, arg in enumerate(args):
        if not isinstance(arg, NUMBER):
            return fail(f"all arguments to '{name}' must be numbers, got {arg.type().value} "
                        f"at position {index}", ErrorCode.TYPE_MISMATCH)
    return pick(args, key=lambda arg: arg.value)


@builtin("max", (1, None))
def builtin_max(context, args):
    return extreme("max", args, max)


@builtin("min", (1, None))
def builtin_min(context, args):
    return extreme("min", args, min)


@builtin("round", 1)
def builtin_round(context, args):
    """Half rounds up: round(2.5) == 3, round(-2.5) == -2"""
    arg = args[0]
    if isinstance(arg, Integer):
        return arg
    if isinstance(arg, Float):
        return to_integer("round", math.floor(arg.value + 0.5) if math.isfinite(arg.value) else arg.value)
    return wrong_type("round", args, 0, "INTEGER or FLOAT")


@builtin("floor", 1)
def builtin_floor(context, args):
    arg = args[0]
    if isinstance(arg, Integer):
        return arg
    if isinstance(arg, Float):
        return to_integer("floor", math.floor(arg.value) if math.isfinite(arg.value) else arg.value)
    return wrong_type("floor", args, 0, "INTEGER or FLOAT")


@builtin("ceil", 1)
def builtin_ceil(context, args):
    arg = args[0]
    if isinstance(arg, Integer):
        return arg
    if isinstance(arg, Float):
        return to_integer("ceil", math.ceil(arg.value) if math.isfinite(arg.value) else arg.value)
    return wrong_type("ceil", args, 0, "INTEGER or FLOAT")


@builtin("pow", 2)
def builtin_pow(context, args):
    base, exponent = args
    if not isinstance(base, NUMBER):
        return wrong_type("pow", args, 0, "INTEGER or FLOAT")
    if not isinstance(exponent, NUMBER):
        return wrong_type("pow", args, 1, "INTEGER or FLOAT")

    if isinstance(base, Integer) and isinstance(exponent, Integer) and exponent.value >= 0:
        # Anything past 2**63 overflows anyway; stop before building a huge int
        if abs(base.value) > 1 and exponent.value > 64:
            return fail("integer overflow", ErrorCode.INTEGER_OVERFLOW)
        return checked_integer(base.value ** exponent.value)

    try:
        return Float(math.pow(float(base.value), float(exponent.value)))
    except OverflowError:
        return Float(math.inf)
    except ValueError:
        return Float(math.nan)


@builtin("sqrt", 1)
def builtin_sqrt(context, args):
    """Integer input gives the floor of the root, float input a float"""
    arg = args[0]
    if not isinstance(arg, NUMBER):
        return wrong_type("sqrt", args, 0, "INTEGER or FLOAT")
    if arg.value < 0:
        return fail("cannot take square root of negative number")
    if isinstance(arg, Integer):
        return Integer(math.isqrt(arg.value))
    return Float(math.sqrt(arg.value))


# Collections

@builtin("range", (1, 3))
def builtin_range(context, args):
    for index, arg in enumerate(args):
        if not isinstance(arg, Integer):
            return wrong_type("range", args, index, "INTEGER")

    if len(args) == 1:
        start, end, step = 0, args[0].value, 1
    else:
        start, end = args[0].value, args[1].value
        step = args[2].value if len(args) == 3 else 1
    if step == 0:
        return fail("step cannot be zero")

    numbers = range(start, end, step)
    if len(numbers) > context.max_iterations:
        return fail(f"range of {len(numbers)} elements exceeds the limit of {context.max_iterations}",
                    ErrorCode.LOOP_LIMIT)
    return Array([Integer(n) for n in numbers])


@builtin("keys", 1)
def builtin_keys(context, args):
    if not isinstance(args[0], Hash):
        return wrong_type("keys", args, 0, "HASH")
    return Array([String(key) for key in args[0].pairs])


@builtin("values", 1)
def builtin_values(context, args):
    if not isinstance(args[0], Hash):
        return wrong_type("values", args, 0, "HASH")
    return Array(list(args[0].pairs.values()))


# Errors

@builtin("error", 1)
def builtin_error(context, args):
    if not isinstance(args[0], String):
        return wrong_type("error", args, 0, "STRING")
    return fail(args[0].value, ErrorCode.USER_ERROR)


@builtin("assert", (1, 2))
def builtin_assert(context, args):
    if args[0].is_truthy():
        return NULL
    message = optional(args, 1)
    if isinstance(message, String):
        return fail(message.value, ErrorCode.USER_ERROR)
    return fail("Assertion failed", ErrorCode.USER_ERROR)


# Higher-order functions

def call_with_item(context, fn, element: EnigmaObject, index: int) -> EnigmaObject:
    """Pass (element) or, to two-parameter functions, (element, index)"""
    if isinstance(fn, Function) and fn.arity() == 2:
        return context.apply_function(fn, [element, Integer(index)])
    return context.apply_function(fn, [element])


def check_array_and_function(name: str, args) -> Optional[ErrorObject]:
    if not isinstance(args[0], Array):
        return wrong_type(name, args, 0, "ARRAY")
    if not isinstance(args[1], CALLABLE):
        return wrong_type(name, args, 1, "FUNCTION")
    return None


@builtin("map", 2)
def builtin_map(context, args):
    problem = check_array_and_function("map", args)
    if problem is not None:
        return problem
    results = []
    for i, element in enumerate(list(args[0].elements)):
        value = call_with_item(context, args[1], element, i)
        if isinstance(value, ErrorObject):
            return value
        results.append(value)
    return Array(results)


@builtin("filter", 2)
def builtin_filter(context, args):
    problem = check_array_and_function("filter", args)
    if problem is not None:
        return problem
    kept = []
    for i, element in enumerate(list(args[0].elements)):
        keep = call_with_item(context, args[1], element, i)
        if isinstance(keep, ErrorObject):
            return keep
        if keep.is_truthy():
            kept.append(element)
    return Array(kept)


@builtin("reduce", (2, 3))
def builtin_reduce(context, args):
    problem = check_array_and_function("reduce", args)
    if problem is not None:
        return problem
    elements = list(args[0].elements)
    if len(args) == 3:
        accumulator = args[2]
    elif elements:
        accumulator = elements.pop(0)
    else:
        return fail("reduce of empty array with no initial value")

    for element in elements:
        accumulator = context.apply_function(args[1], [accumulator, element])
        if isinstance(accumulator, ErrorObject):
            return accumulator
    return accumulator


@builtin("forEach", 2)
def builtin_for_each(context, args):
    problem = check_array_and_function("forEach", args)
    if problem is not None:
        return problem
    for i, element in enumerate(list(args[0].elements)):
        result = call_with_item(context, args[1], element, i)
        if isinstance(result, ErrorObject):
            return result
    return NULL


class SortAborted(Exception):
    """Carries an Error value out of a comparison callback"""

    def __init__(self, error: ErrorObject):
        super().__init__(error.message)
        self.error = error


@builtin("sort", (1, 2))
def builtin_sort(context, args):
    """Returns a sorted copy; the comparator returns a negative, zero or positive number"""
    if not isinstance(args[0], Array):
        return wrong_type("sort", args, 0, "ARRAY")
    elements = list(args[0].elements)

    comparator = optional(args, 1)
    if comparator is None:
        if all(isinstance(e, NUMBER) for e in elements) or all(isinstance(e, String) for e in elements):
            return Array(sorted(elements, key=lambda e: e.value))
        return fail("default sort needs an array of numbers or an array of strings",
                    ErrorCode.TYPE_MISMATCH)

    if not isinstance(comparator, CALLABLE):
        return wrong_type("sort", args, 1, "FUNCTION")

    def compare(a, b):
        result = context.apply_function(comparator, [a, b])
        if isinstance(result, ErrorObject):
            raise SortAborted(result)
        if not isinstance(result, NUMBER):
            raise SortAborted(fail(f"sort comparator must return a number, got {result.type().value}",
                                   ErrorCode.TYPE_MISMATCH))
        return (result.value > 0) - (result.value < 0)

    try:
        return Array(sorted(elements, key=functools.cmp_to_key(compare)))
    except SortAborted as aborted:
        return aborted.error


@builtin("unique", 1)
def builtin_unique(context, args):
    """Keeps the first of each group of elements that print the same"""
    if not isinstance(args[0], Array):
        return wrong_type("unique", args, 0, "ARRAY")
    seen = set()
    result = []
    for element in args[0].elements:
        key = (element.type(), element.inspect())
        if key not in seen:
            seen.add(key)
            result.append(element)
    return Array(result)


def flatten_elements(elements, depth: int) -> List[EnigmaObject]:
    flat = []
    for element in elements:
        if isinstance(element, Array) and depth > 0:
            flat.extend(flatten_elements(element.elements, depth - 1))
        else:
            flat.append(element)
    return flat


@builtin("flatten", (1, 2))
def builtin_flatten(context, args):
    if not isinstance(args[0], Array):
        return wrong_type("flatten", args, 0, "ARRAY")
    depth = optional(args, 1)
    if depth is not None and not isinstance(depth, Integer):
        return wrong_type("flatten", args, 1, "INTEGER")
    return Array(flatten_elements(args[0].elements, depth.value if depth is not None else 1))


@builtin("zip", 2)
def builtin_zip(context, args):
    for index in range(2):
        if not isinstance(args[index], Array):
            return wrong_type("zip", args, index, "ARRAY")
    return Array([Array([a, b]) for a, b in zip(args[0].elements, args[1].elements)])


@builtin("enumerate", 1)
def builtin_enumerate(context, args):
    if not isinstance(args[0], Array):
        return wrong_type("enumerate", args, 0, "ARRAY")
    return Array([Array([Integer(i), e]) for i, e in enumerate(args[0].elements)])


# Strings and utilities

@builtin("format", (1, None))
def builtin_format(context, args):
    """`{}` takes the next argument, `{n}` the n-th; unmatched placeholders stay"""
    if not isinstance(args[0], String):
        return wrong_type("format", args, 0, "STRING")
    values = args[1:]
    position = iter(range(len(values)))

    def sequential(match):
        index = next(position, None)
        return values[index].inspect() if index is not None else match.group(0)

    def numbered(match):
        index = int(match.group(1))
        return values[index].inspect() if index < len(values) else match.group(0)

    text = re.sub(r'\{\}', sequential, args[0].value)
    return String(re.sub(r'\{(\d+)\}', numbered, text))


@builtin("repeat", 2)
def builtin_repeat(context, args):
    if not isinstance(args[0], String):
        return wrong_type("repeat", args, 0, "STRING")
    if not isinstance(args[1], Integer):
        return wrong_type("repeat", args, 1, "INTEGER")
    if args[1].value < 0:
        return fail("repeat count cannot be negative")
    return String(args[0].value * args[1].value)


def pad(name: str, args, left: bool):
    if not isinstance(args[0], String):
        return wrong_type(name, args, 0, "STRING")
    if not isinstance(args[1], Integer):
        return wrong_type(name, args, 1, "INTEGER")
    fill = optional(args, 2)
    if fill is not None and not isinstance(fill, String):
        return wrong_type(name, args, 2, "STRING")

    text = args[0].value
    fill_text = fill.value if fill is not None else " "
    missing = args[1].value - len(text)
    if missing <= 0 or not fill_text:
        return String(text)
    padding = (fill_text * missing)[:missing]
    return String(padding + text if left else text + padding)


@builtin("padLeft", (2, 3))
def builtin_pad_left(context, args):
    return pad("padLeft", args, left=True)


@builtin("padRight", (2, 3))
def builtin_pad_right(context, args):
    return pad("padRight", args, left=False)


@builtin("isEmpty", 1)
def builtin_is_empty(context, args):
    arg = args[0]
    if isinstance(arg, Array):
        return native_bool(not arg.elements)
    if isinstance(arg, String):
        return native_bool(not arg.value)
    if isinstance(arg, Hash):
        return native_bool(not arg.pairs)
    return native_bool(isinstance(arg, Null))


def deep_equal(a: EnigmaObject, b: EnigmaObject) -> bool:
    if isinstance(a, Array) and isinstance(b, Array):
        return len(a.elements) == len(b.elements) and all(
            deep_equal(x, y) for x, y in zip(a.elements, b.elements))
    if isinstance(a, Hash) and isinstance(b, Hash):
        return a.pairs.keys() == b.pairs.keys() and all(
            deep_equal(value, b.pairs[key]) for key, value in a.pairs.items())
    if a.type() != b.type():
        return False
    return objects_equal(a, b)


@builtin("isEqual", 2)
def builtin_is_equal(context, args):
    return native_bool(deep_equal(args[0], args[1]))


def deep_copy(obj: EnigmaObject) -> EnigmaObject:
    if isinstance(obj, Array):
        return Array([deep_copy(e) for e in obj.elements])
    if isinstance(obj, Hash):
        return Hash({key: deep_copy(value) for key, value in obj.pairs.items()})
    return obj


@builtin("deepCopy", 1)
def builtin_deep_copy(context, args):
    """Copies arrays and hashes recursively; every other value is shared"""
    return deep_copy(args[0])
