"""Whitelisted globals and methods available to form scripts.

Scripts never see Python objects directly: member access on anything other
than dicts, lists, strings, numbers, regexes and the namespaces defined here
yields ``undefined``. That closed world is what keeps the sandbox free of host
access.
"""

import math
import re
from typing import Any, Callable, Dict, List, Optional

from formio_engine.errors import ExpressionRuntimeError
from formio_engine.sandbox.values import (
    NAN,
    UNDEFINED,
    is_nan,
    is_nullish,
    is_number,
    normalize_number,
    same_value,
    strict_equals,
    to_number,
    to_string,
    truthy,
)

MAX_STRING_LENGTH = 1_000_000


class ScriptCallable:
    """Base for everything a script is allowed to call."""

    def __call__(self, *args: Any) -> Any:
        raise NotImplementedError


class BuiltinFunction(ScriptCallable):
    """A Python callable exposed to scripts under a name."""

    def __init__(self, name: str, fn: Callable[..., Any]):
        self.name = name
        self.fn = fn

    def __call__(self, *args: Any) -> Any:
        return self.fn(*args)

    def __repr__(self) -> str:
        return f"BuiltinFunction({self.name})"


class Namespace:
    """Read-only object such as ``Math`` or ``Object``."""

    def __init__(self, name: str, members: Dict[str, Any]):
        self.name = name
        self.members = members

    def get(self, key: str) -> Any:
        return self.members.get(key, UNDEFINED)

    def __repr__(self) -> str:
        return f"Namespace({self.name})"


class JSRegex:
    """Compiled regular expression literal (``/^\\d+$/i``)."""

    _FLAG_MAP = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL}

    def __init__(self, pattern: str, flags: str = ""):
        unknown = set(flags) - set("gimsuy")
        if unknown:
            raise ExpressionRuntimeError(f"Invalid regular expression flags '{flags}'")
        compile_flags = 0
        for flag in flags:
            compile_flags |= self._FLAG_MAP.get(flag, 0)
        try:
            self.compiled = re.compile(pattern, compile_flags)
        except re.error as e:
            raise ExpressionRuntimeError(f"Invalid regular expression /{pattern}/: {e}")
        self.source = pattern
        self.flags = flags

    @property
    def is_global(self) -> bool:
        return "g" in self.flags

    def test(self, value: Any = UNDEFINED) -> bool:
        return self.compiled.search(to_string(value)) is not None

    def __repr__(self) -> str:
        return f"/{self.source}/{self.flags}"


def is_callable(value: Any) -> bool:
    # Plain Python callables are never invoked
    return isinstance(value, ScriptCallable)


def call(fn: Any, *args: Any) -> Any:
    if not is_callable(fn):
        raise ExpressionRuntimeError(f"{to_string(fn)} is not a function")
    return fn(*args)


def _arg(args: tuple, index: int) -> Any:
    return args[index] if len(args) > index else UNDEFINED


def _to_int(value: Any, default: int = 0) -> int:
    number = to_number(value)
    if is_nan(number):
        return default
    if math.isinf(number):
        return int(math.copysign(2 ** 53, number))
    return int(number)


def _relative_index(value: Any, length: int, default: int) -> int:
    if value is UNDEFINED:
        return default
    index = _to_int(value)
    if index < 0:
        index = max(length + index, 0)
    return min(index, length)


# Global functions


def _parse_int(value: Any = UNDEFINED, radix: Any = UNDEFINED) -> Any:
    text = to_string(value).strip()
    base = 10 if radix is UNDEFINED else _to_int(radix, 10)
    if base == 0:
        base = 10
    sign = 1
    if text and text[0] in "+-":
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    if base == 16 and text[:2].lower() == "0x":
        text = text[2:]
    if not 2 <= base <= 36:
        return NAN
    digits = ""
    for ch in text:
        try:
            if int(ch, 36) >= base:
                break
        except ValueError:
            break
        digits += ch
    if not digits:
        return NAN
    return sign * int(digits, base)


_FLOAT_PREFIX = re.compile(r"^[+-]?(?:Infinity|\d+\.?\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?)")


def _parse_float(value: Any = UNDEFINED) -> Any:
    match = _FLOAT_PREFIX.match(to_string(value).strip())
    if not match:
        return NAN
    text = match.group(0)
    if text.lstrip("+-") == "Infinity":
        return -math.inf if text.startswith("-") else math.inf
    return normalize_number(float(text))


def _is_nan(value: Any = UNDEFINED) -> bool:
    return is_nan(to_number(value))


def _is_finite(value: Any = UNDEFINED) -> bool:
    number = to_number(value)
    return not is_nan(number) and not math.isinf(number)


def _js_round(value: Any = UNDEFINED) -> Any:
    number = to_number(value)
    if is_nan(number) or math.isinf(number):
        return number
    return int(math.floor(number + 0.5))


def _math_unary(fn: Callable[[float], Any]) -> Callable[..., Any]:
    def wrapper(value: Any = UNDEFINED) -> Any:
        number = to_number(value)
        if is_nan(number):
            return NAN
        try:
            return normalize_number(fn(number))
        except (ValueError, OverflowError):
            return NAN

    return wrapper


def _math_max(*args: Any) -> Any:
    numbers = [to_number(a) for a in args]
    if any(is_nan(n) for n in numbers):
        return NAN
    return max(numbers) if numbers else -math.inf


def _math_min(*args: Any) -> Any:
    numbers = [to_number(a) for a in args]
    if any(is_nan(n) for n in numbers):
        return NAN
    return min(numbers) if numbers else math.inf


def _math_pow(base: Any = UNDEFINED, exponent: Any = UNDEFINED) -> Any:
    return power(base, exponent)


def power(base: Any, exponent: Any) -> Any:
    x, y = to_number(base), to_number(exponent)
    if is_nan(x) or is_nan(y):
        return NAN
    try:
        return normalize_number(math.pow(x, y))
    except (ValueError, OverflowError):
        return NAN


def _sign(number: float) -> Any:
    if number > 0:
        return 1
    if number < 0:
        return -1
    return number


MATH = Namespace(
    "Math",
    {
        "PI": math.pi,
        "E": math.e,
        "abs": BuiltinFunction("abs", _math_unary(abs)),
        "ceil": BuiltinFunction("ceil", _math_unary(math.ceil)),
        "floor": BuiltinFunction("floor", _math_unary(math.floor)),
        "trunc": BuiltinFunction("trunc", _math_unary(math.trunc)),
        "sqrt": BuiltinFunction("sqrt", _math_unary(math.sqrt)),
        "sign": BuiltinFunction("sign", _math_unary(_sign)),
        "round": BuiltinFunction("round", _js_round),
        "max": BuiltinFunction("max", _math_max),
        "min": BuiltinFunction("min", _math_min),
        "pow": BuiltinFunction("pow", _math_pow),
    },
)

NUMBER = BuiltinFunction("Number", lambda value=0: to_number(value))
NUMBER_STATICS = {
    "isInteger": BuiltinFunction(
        "isInteger",
        lambda value=UNDEFINED: is_number(value) and not is_nan(value)
        and not math.isinf(value) and float(value).is_integer(),
    ),
    "isFinite": BuiltinFunction(
        "isFinite",
        lambda value=UNDEFINED: is_number(value) and _is_finite(value),
    ),
    "isNaN": BuiltinFunction("isNaN", lambda value=UNDEFINED: is_nan(value)),
    "parseFloat": BuiltinFunction("parseFloat", _parse_float),
    "parseInt": BuiltinFunction("parseInt", _parse_int),
}


def _object_keys(value: Any = UNDEFINED) -> List[str]:
    if isinstance(value, dict):
        return [str(k) for k in value.keys()]
    if isinstance(value, (list, str)):
        return [str(i) for i in range(len(value))]
    if is_nullish(value):
        raise ExpressionRuntimeError("Cannot convert undefined or null to object")
    return []


def _object_values(value: Any = UNDEFINED) -> List[Any]:
    if isinstance(value, dict):
        return list(value.values())
    if isinstance(value, (list, str)):
        return list(value)
    if is_nullish(value):
        raise ExpressionRuntimeError("Cannot convert undefined or null to object")
    return []


OBJECT = Namespace(
    "Object",
    {
        "keys": BuiltinFunction("keys", _object_keys),
        "values": BuiltinFunction("values", _object_values),
    },
)

ARRAY = Namespace(
    "Array",
    {"isArray": BuiltinFunction("isArray", lambda value=UNDEFINED: isinstance(value, list))},
)


def make_regexp(pattern: Any = UNDEFINED, flags: Any = UNDEFINED) -> JSRegex:
    if isinstance(pattern, JSRegex):
        return JSRegex(pattern.source, pattern.flags if flags is UNDEFINED else to_string(flags))
    source = "(?:)" if pattern is UNDEFINED else to_string(pattern)
    return JSRegex(source, "" if flags is UNDEFINED else to_string(flags))


REGEXP = BuiltinFunction("RegExp", make_regexp)


def global_bindings() -> Dict[str, Any]:
    """Names visible to every script in addition to the evaluation context."""
    return {
        "Math": MATH,
        "Number": NUMBER,
        "String": BuiltinFunction("String", lambda value="": to_string(value)),
        "Boolean": BuiltinFunction("Boolean", lambda value=UNDEFINED: truthy(value)),
        "parseInt": BuiltinFunction("parseInt", _parse_int),
        "parseFloat": BuiltinFunction("parseFloat", _parse_float),
        "isNaN": BuiltinFunction("isNaN", _is_nan),
        "isFinite": BuiltinFunction("isFinite", _is_finite),
        "Array": ARRAY,
        "Object": OBJECT,
        "RegExp": REGEXP,
        "NaN": NAN,
        "Infinity": math.inf,
    }


# Methods


def _includes(items: List[Any], needle: Any) -> bool:
    return any(same_value(item, needle) if is_nan(needle) else strict_equals(item, needle) for item in items)


def _index_of(items: Any, needle: Any, start: Any = UNDEFINED) -> int:
    begin = _relative_index(start, len(items), 0)
    for index in range(begin, len(items)):
        if strict_equals(items[index], needle):
            return index
    return -1


def _string_replace(text: str, pattern: Any, replacement: Any) -> str:
    def substitute(match_text: str, groups: tuple) -> str:
        if is_callable(replacement):
            return to_string(call(replacement, match_text, *groups))
        return to_string(replacement)

    if isinstance(pattern, JSRegex):
        count = 0 if pattern.is_global else 1
        return pattern.compiled.sub(
            lambda m: substitute(m.group(0), tuple(g if g is not None else UNDEFINED for g in m.groups())),
            text,
            count=count,
        )
    needle = to_string(pattern)
    index = text.find(needle)
    if index < 0:
        return text
    return text[:index] + substitute(needle, ()) + text[index + len(needle):]


def _string_split(text: str, separator: Any = UNDEFINED, limit: Any = UNDEFINED) -> List[str]:
    if separator is UNDEFINED:
        parts = [text]
    elif isinstance(separator, JSRegex):
        parts = separator.compiled.split(text)
    else:
        sep = to_string(separator)
        parts = list(text) if sep == "" else text.split(sep)
    if limit is not UNDEFINED:
        parts = parts[:max(_to_int(limit), 0)]
    return parts


def _string_match(text: str, pattern: Any = UNDEFINED) -> Any:
    regex = pattern if isinstance(pattern, JSRegex) else make_regexp(pattern)
    if regex.is_global:
        found = [m.group(0) for m in regex.compiled.finditer(text)]
        return found or None
    match = regex.compiled.search(text)
    if match is None:
        return None
    return [match.group(0)] + [g if g is not None else UNDEFINED for g in match.groups()]


def _substring(text: str, start: Any = UNDEFINED, end: Any = UNDEFINED) -> str:
    length = len(text)
    a = min(max(_to_int(start), 0), length)
    b = length if end is UNDEFINED else min(max(_to_int(end), 0), length)
    if a > b:
        a, b = b, a
    return text[a:b]


def _to_fixed(number: Any, digits: Any = UNDEFINED) -> str:
    places = 0 if digits is UNDEFINED else _to_int(digits)
    if not 0 <= places <= 100:
        raise ExpressionRuntimeError("toFixed() digits argument must be between 0 and 100")
    value = to_number(number)
    if is_nan(value) or math.isinf(value):
        return to_string(value)
    return f"{value:.{places}f}"


def _repeat(text: str, count: Any) -> str:
    times = max(_to_int(count), 0)
    if len(text) * times > MAX_STRING_LENGTH:
        raise ExpressionRuntimeError("Invalid string length")
    return text * times


def _pad(text: str, width: Any, fill: Any, at_start: bool) -> str:
    filler = " " if fill is UNDEFINED else to_string(fill)
    missing = _to_int(width) - len(text)
    if missing <= 0 or not filler:
        return text
    if missing > MAX_STRING_LENGTH:
        raise ExpressionRuntimeError("Invalid string length")
    padding = (filler * (missing // len(filler) + 1))[:missing]
    return padding + text if at_start else text + padding


def string_method(text: str, name: str) -> Optional[BuiltinFunction]:
    methods: Dict[str, Callable[..., Any]] = {
        "toLowerCase": lambda: text.lower(),
        "toUpperCase": lambda: text.upper(),
        "trim": lambda: text.strip(),
        "trimStart": lambda: text.lstrip(),
        "trimEnd": lambda: text.rstrip(),
        "includes": lambda needle=UNDEFINED: to_string(needle) in text,
        "startsWith": lambda prefix=UNDEFINED: text.startswith(to_string(prefix)),
        "endsWith": lambda suffix=UNDEFINED: text.endswith(to_string(suffix)),
        "indexOf": lambda needle=UNDEFINED: text.find(to_string(needle)),
        "lastIndexOf": lambda needle=UNDEFINED: text.rfind(to_string(needle)),
        "charAt": lambda index=0: (lambda i: text[i] if 0 <= i < len(text) else "")(_to_int(index)),
        "split": lambda separator=UNDEFINED, limit=UNDEFINED: _string_split(text, separator, limit),
        "substring": lambda start=UNDEFINED, end=UNDEFINED: _substring(text, start, end),
        "slice": lambda start=UNDEFINED, end=UNDEFINED: text[
            _relative_index(start, len(text), 0):_relative_index(end, len(text), len(text))
        ],
        "replace": lambda pattern=UNDEFINED, replacement=UNDEFINED: _string_replace(text, pattern, replacement),
        "match": lambda pattern=UNDEFINED: _string_match(text, pattern),
        "repeat": lambda count=0: _repeat(text, count),
        "padStart": lambda width=0, fill=UNDEFINED: _pad(text, width, fill, at_start=True),
        "padEnd": lambda width=0, fill=UNDEFINED: _pad(text, width, fill, at_start=False),
        "concat": lambda *others: text + "".join(to_string(o) for o in others),
        "toString": lambda: text,
    }
    fn = methods.get(name)
    return BuiltinFunction(name, fn) if fn else None


def number_method(number: Any, name: str) -> Optional[BuiltinFunction]:
    if name == "toFixed":
        return BuiltinFunction(name, lambda digits=UNDEFINED: _to_fixed(number, digits))
    if name == "toString":
        return BuiltinFunction(name, lambda: to_string(number))
    return None


def array_method(
    items: List[Any],
    name: str,
    own: Callable[[Any], Any],
    mutable: bool = False,
) -> Optional[BuiltinFunction]:
    """Array methods.

    ``own`` registers a newly created list as script-owned. ``mutable`` is
    True only for lists the script created itself; context data is read-only.
    """

    def each(fn: Any):
        for index, item in enumerate(list(items)):
            yield item, call(fn, item, index, items)

    def reduce(fn: Any = UNDEFINED, *initial: Any) -> Any:
        if not items and not initial:
            raise ExpressionRuntimeError("Reduce of empty array with no initial value")
        start = 0
        accumulator = initial[0] if initial else items[0]
        if not initial:
            start = 1
        for index in range(start, len(items)):
            accumulator = call(fn, accumulator, items[index], index, items)
        return accumulator

    def find(fn: Any = UNDEFINED) -> Any:
        for item, result in each(fn):
            if truthy(result):
                return item
        return UNDEFINED

    def find_index(fn: Any = UNDEFINED) -> int:
        for index, (_, result) in enumerate(each(fn)):
            if truthy(result):
                return index
        return -1

    def push(*values: Any) -> int:
        if not mutable:
            raise ExpressionRuntimeError("Cannot modify read-only array")
        items.extend(values)
        return len(items)

    def for_each(fn: Any = UNDEFINED) -> Any:
        for _ in each(fn):
            pass
        return UNDEFINED

    def join(separator: Any = UNDEFINED) -> str:
        sep = "," if separator is UNDEFINED else to_string(separator)
        return sep.join("" if is_nullish(item) else to_string(item) for item in items)

    def concat(*others: Any) -> List[Any]:
        result = list(items)
        for other in others:
            if isinstance(other, list):
                result.extend(other)
            else:
                result.append(other)
        return result

    methods: Dict[str, Callable[..., Any]] = {
        "includes": lambda needle=UNDEFINED: _includes(items, needle),
        "indexOf": lambda needle=UNDEFINED, start=UNDEFINED: _index_of(items, needle, start),
        "join": join,
        "map": lambda fn=UNDEFINED: own([result for _, result in each(fn)]),
        "filter": lambda fn=UNDEFINED: own([item for item, result in each(fn) if truthy(result)]),
        "some": lambda fn=UNDEFINED: any(truthy(result) for _, result in each(fn)),
        "every": lambda fn=UNDEFINED: all(truthy(result) for _, result in each(fn)),
        "forEach": for_each,
        "find": find,
        "findIndex": find_index,
        "reduce": reduce,
        "slice": lambda start=UNDEFINED, end=UNDEFINED: own(items[
            _relative_index(start, len(items), 0):_relative_index(end, len(items), len(items))
        ]),
        "concat": lambda *others: own(concat(*others)),
        "push": push,
        "toString": lambda: join(),
    }
    fn = methods.get(name)
    return BuiltinFunction(name, fn) if fn else None
