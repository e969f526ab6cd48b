"""
Expression sandbox for form scripts.

Layers, bottom-up:
1. values - JavaScript-style value model (UNDEFINED, coercions, equality)
2. lexer / parser - JavaScript-subset source to AST
3. builtins / interpreter - whitelisted globals and the step-bounded interpreter
4. evaluator - Sandbox facade with the conditional/validation/value conventions
5. fallbacks - the single table of neutral results used on failure
"""

from formio_engine.sandbox.evaluator import (
    EvalContext,
    EvalOutcome,
    IEvaluator,
    JsonLogicEvaluator,
    Sandbox,
    ScriptEvaluator,
    make_context,
)
from formio_engine.sandbox.fallbacks import FALLBACKS, EvalKind, fallback_for
from formio_engine.sandbox.values import UNDEFINED, is_empty, is_undefined, same_value

__all__ = [
    "EvalContext",
    "EvalOutcome",
    "IEvaluator",
    "JsonLogicEvaluator",
    "Sandbox",
    "ScriptEvaluator",
    "make_context",
    "FALLBACKS",
    "EvalKind",
    "fallback_for",
    "UNDEFINED",
    "is_empty",
    "is_undefined",
    "same_value",
]
