"""Value model shared by the script interpreter and the engines.

Form scripts are written with JavaScript semantics in mind (``===``,
truthiness of ``''`` and ``0``, ``'a' + 1``). The helpers here implement those
coercions over plain Python values: dict, list, str, int, float, bool, None
(``null``) and the UNDEFINED sentinel (``undefined``).
"""

import math
from typing import Any


class _Undefined:
    """Singleton standing for a missing value (JavaScript ``undefined``)."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNDEFINED"

    def __bool__(self) -> bool:
        return False

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self

    def __reduce__(self):
        return "UNDEFINED"


UNDEFINED = _Undefined()

NAN = float("nan")
MAX_SAFE_INTEGER = 2 ** 53 - 1


def is_undefined(value: Any) -> bool:
    return value is UNDEFINED


def is_nullish(value: Any) -> bool:
    return value is None or value is UNDEFINED


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_nan(value: Any) -> bool:
    return isinstance(value, float) and math.isnan(value)


def normalize_number(value: Any) -> Any:
    """Collapse integral floats (``4 / 2``) back to ints so ``5`` and ``5.0`` print alike."""
    if (
        isinstance(value, float)
        and math.isfinite(value)
        and value.is_integer()
        and abs(value) <= MAX_SAFE_INTEGER
    ):
        return int(value)
    return value


def truthy(value: Any) -> bool:
    if value is UNDEFINED or value is None:
        return False
    if isinstance(value, bool):
        return value
    if is_number(value):
        return not (value == 0 or is_nan(value))
    if isinstance(value, str):
        return len(value) > 0
    return True


def to_number(value: Any) -> Any:
    if value is UNDEFINED:
        return NAN
    if value is None:
        return 0
    if isinstance(value, bool):
        return 1 if value else 0
    if is_number(value):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        if "_" in text:
            return NAN
        try:
            return int(text)
        except ValueError:
            pass
        if text in ("Infinity", "+Infinity"):
            return math.inf
        if text == "-Infinity":
            return -math.inf
        try:
            number = float(text)
        except ValueError:
            return NAN
        # Python accepts "nan"/"inf" spellings that JavaScript does not
        if text.lower().lstrip("+-") in ("nan", "inf", "infinity"):
            return NAN
        return normalize_number(number)
    if isinstance(value, list):
        if not value:
            return 0
        if len(value) == 1:
            return to_number(to_string(value[0]))
        return NAN
    return NAN


def format_number(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    text = repr(value)
    return text.replace("e-0", "e-").replace("e+0", "e+")


def to_string(value: Any) -> str:
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if is_number(value):
        return format_number(value)
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return ",".join("" if is_nullish(item) else to_string(item) for item in value)
    if isinstance(value, dict):
        return "[object Object]"
    return str(value)


def to_primitive(value: Any) -> Any:
    if isinstance(value, (list, dict)):
        return to_string(value)
    return value


def strict_equals(left: Any, right: Any) -> bool:
    """JavaScript ``===``: no coercion, containers compare by identity."""
    if left is UNDEFINED or right is UNDEFINED:
        return left is right
    if left is None or right is None:
        return left is right
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if is_number(left) and is_number(right):
        return left == right
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    if isinstance(left, (list, dict)) or isinstance(right, (list, dict)):
        return left is right
    return type(left) is type(right) and left == right


def loose_equals(left: Any, right: Any) -> bool:
    """JavaScript ``==``."""
    if is_nullish(left) and is_nullish(right):
        return True
    if is_nullish(left) or is_nullish(right):
        return False
    if isinstance(left, bool):
        left = 1 if left else 0
    if isinstance(right, bool):
        right = 1 if right else 0
    if isinstance(left, (list, dict)) and isinstance(right, (list, dict)):
        return left is right
    left = to_primitive(left)
    right = to_primitive(right)
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    if is_number(left) or is_number(right):
        return to_number(left) == to_number(right)
    return strict_equals(left, right)


def same_value(left: Any, right: Any) -> bool:
    """Structural equality used for change detection.

    Like ``===`` for primitives, except NaN equals NaN; lists and dicts
    compare by content so a script that rebuilds an equal list each pass
    still reaches a fixed point.
    """
    if is_nan(left) and is_nan(right):
        return True
    if isinstance(left, list) and isinstance(right, list):
        return len(left) == len(right) and all(
            same_value(a, b) for a, b in zip(left, right)
        )
    if isinstance(left, dict) and isinstance(right, dict):
        return left.keys() == right.keys() and all(
            same_value(left[k], right[k]) for k in left
        )
    return strict_equals(left, right)


def is_empty(value: Any) -> bool:
    """Empty for the purpose of required-field checks."""
    return (
        value is UNDEFINED
        or value is None
        or value == ""
        or (isinstance(value, list) and len(value) == 0)
    )
