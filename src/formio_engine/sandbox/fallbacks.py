"""Neutral results used when a form expression fails.

Every call site of the sandbox degrades the same way, so the policy lives in
one table instead of being repeated in each engine:

    conditional -> True       (field stays visible)
    validation  -> True       (custom rule passes)
    value       -> UNDEFINED  (existing value is left unchanged)

A failure is an exception raised while parsing or running the snippet. A
snippet that runs and returns nothing is not a failure; it is coerced by the
call convention instead (a conditional returning ``undefined`` hides).
"""

from enum import Enum
from typing import Any, Dict

from formio_engine.sandbox.values import UNDEFINED


class EvalKind(str, Enum):
    """Call conventions layered on the raw evaluator."""
    CONDITIONAL = "conditional"
    VALIDATION = "validation"
    VALUE = "value"


FALLBACKS: Dict[EvalKind, Any] = {
    EvalKind.CONDITIONAL: True,
    EvalKind.VALIDATION: True,
    EvalKind.VALUE: UNDEFINED,
}


def fallback_for(kind: EvalKind) -> Any:
    """Return the neutral result for a failed evaluation of the given kind."""
    return FALLBACKS[EvalKind(kind)]
