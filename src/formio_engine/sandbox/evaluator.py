"""
Expression sandbox - the boundary between form scripts and the engines.

Responsibility: run a schema-supplied expression against an evaluation context
and return a typed result without ever raising.

Two interchangeable evaluators sit behind the IEvaluator abstraction:
- ScriptEvaluator: JavaScript-subset snippets (strings), interpreted over a
  safe AST with a step budget.
- JsonLogicEvaluator: JSON Logic rules (dicts/lists) via the json-logic library.

The engines only talk to Sandbox, which picks the evaluator from the shape of
the expression, catches every failure and maps it through the fallback table.
"""

import copy
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Callable, Dict, Optional, Union

from json_logic import jsonLogic

from formio_engine.config import EngineConfig
from formio_engine.errors import ExpressionError, ExpressionSyntaxError
from formio_engine.sandbox.builtins import BuiltinFunction, JSRegex, Namespace, ScriptCallable
from formio_engine.sandbox.fallbacks import EvalKind, fallback_for
from formio_engine.sandbox.interpreter import Interpreter
from formio_engine.sandbox.parser import Program, parse
from formio_engine.sandbox.values import UNDEFINED, is_empty, truthy

logger = logging.getLogger(__name__)

Expression = Union[str, Dict[str, Any], list]


@dataclass
class EvalContext:
    """Variables bound into an expression.

    Attributes:
        data: Full form data snapshot.
        row: Row the field lives in; the form data itself outside grids.
        value: The field's own current value.
        util: Extension helpers exposed to scripts as ``util.<name>``.
    """
    data: Dict[str, Any]
    row: Optional[Dict[str, Any]] = None
    value: Any = UNDEFINED
    util: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.row is None:
            self.row = self.data

    def script_bindings(self) -> Dict[str, Any]:
        """Names bound in a script's root scope."""
        util = {}
        for name, member in self.util.items():
            if callable(member) and not isinstance(member, ScriptCallable):
                member = BuiltinFunction(name, member)
            util[name] = member
        return {
            "data": self.data,
            "row": self.row,
            "value": self.value,
            "input": self.value,
            "util": Namespace("util", util),
            "show": UNDEFINED,
            "valid": UNDEFINED,
        }

    def logic_data(self) -> Dict[str, Any]:
        """Data object handed to JSON Logic rules (``{"var": "data.a"}``)."""
        return {
            "data": export_value(self.data),
            "row": export_value(self.row),
            "value": export_value(self.value, missing=None),
        }


@dataclass
class EvalOutcome:
    """Raw result of one evaluation; ``error`` is set when it failed."""
    value: Any = UNDEFINED
    error: Optional[Exception] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


def export_value(value: Any, missing: Any = UNDEFINED) -> Any:
    """Convert an interpreter value into plain JSON-like data.

    Functions and regexes have no data representation: at the top level they
    become ``missing``; inside lists they become None and inside objects the
    key is dropped, like JSON serialization would do. The result never
    shares containers with the input.
    """
    if value is UNDEFINED or isinstance(value, (ScriptCallable, JSRegex, Namespace)):
        return missing
    if isinstance(value, list):
        return [export_value(item, None) for item in value]
    if isinstance(value, dict):
        exported = {}
        for key, item in value.items():
            item = export_value(item)
            if item is not UNDEFINED:
                exported[key] = item
        return exported
    return copy.copy(value)


@lru_cache(maxsize=512)
def compile_script(source: str) -> Program:
    """Parse a snippet once; the AST is never mutated by the interpreter."""
    return parse(source)


class IEvaluator(ABC):
    """
    Abstract interface for expression evaluators.

    Stateless: accepts (expression + context) and returns the raw result.
    Implementations raise on failure; the Sandbox turns failures into
    fallbacks.
    """

    @abstractmethod
    def evaluate(self, expression: Any, context: EvalContext) -> Any:
        """
        Evaluate an expression against a context.

        Args:
            expression: Script source or JSON Logic rule
            context: Evaluation context

        Returns:
            Raw result, UNDEFINED when the expression produced none
        """
        pass


class ScriptEvaluator(IEvaluator):
    """Runs JavaScript-subset snippets with the tree-walking interpreter."""

    def __init__(self, max_steps: int = 10_000):
        self.max_steps = max_steps

    def evaluate(self, expression: str, context: EvalContext) -> Any:
        program = compile_script(expression)
        interpreter = Interpreter(context.script_bindings(), max_steps=self.max_steps)
        return export_value(interpreter.run(program))


class JsonLogicEvaluator(IEvaluator):
    """Runs JSON Logic rules using the json-logic library."""

    def evaluate(self, expression: Any, context: EvalContext) -> Any:
        result = jsonLogic(expression, context.logic_data())
        return copy.deepcopy(result)


class Sandbox:
    """
    Evaluates form expressions and never raises.

    Args:
        config: Engine configuration (step budget, expression debug logging)
        script_evaluator: Evaluator for string snippets
        logic_evaluator: Evaluator for JSON Logic rules
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        script_evaluator: Optional[IEvaluator] = None,
        logic_evaluator: Optional[IEvaluator] = None,
    ):
        self.config = config or EngineConfig()
        self.script_evaluator = script_evaluator or ScriptEvaluator(self.config.max_script_steps)
        self.logic_evaluator = logic_evaluator or JsonLogicEvaluator()

    def run(self, expression: Expression, context: EvalContext) -> EvalOutcome:
        """Evaluate and report the raw result together with any failure."""
        if isinstance(expression, str):
            evaluator = self.script_evaluator
        elif isinstance(expression, (dict, list)):
            evaluator = self.logic_evaluator
        else:
            return EvalOutcome(
                error=ExpressionError(f"Unsupported expression type {type(expression).__name__}")
            )

        try:
            result = evaluator.evaluate(expression, context)
        except ExpressionSyntaxError as e:
            logger.warning(f"Syntax error in form expression {expression!r}: {e}")
            return EvalOutcome(error=e)
        except ExpressionError as e:
            logger.debug(f"Form expression {expression!r} failed: {e}")
            return EvalOutcome(error=e)
        except Exception as e:
            # Third-party evaluators may raise anything
            logger.warning(f"Form expression {expression!r} raised {type(e).__name__}: {e}")
            return EvalOutcome(error=e)

        if self.config.debug_expressions:
            logger.debug(f"Evaluated {expression!r} -> {result!r}")
        return EvalOutcome(value=result)

    def evaluate(self, expression: Expression, context: EvalContext) -> Any:
        """Raw result; UNDEFINED on failure."""
        outcome = self.run(expression, context)
        return UNDEFINED if outcome.failed else outcome.value

    def evaluate_conditional(self, expression: Expression, context: EvalContext) -> bool:
        """Visibility convention: truthiness of the result, True on failure."""
        outcome = self.run(expression, context)
        if outcome.failed:
            return fallback_for(EvalKind.CONDITIONAL)
        return truthy(outcome.value)

    def evaluate_validation(self, expression: Expression, context: EvalContext) -> Union[bool, str]:
        """
        Validation convention.

        Returns:
            True when the value passes, False for "invalid, use the default
            message", or the non-empty message string returned by the rule
        """
        outcome = self.run(expression, context)
        if outcome.failed:
            return fallback_for(EvalKind.VALIDATION)
        result = outcome.value
        if result is False:
            return False
        if isinstance(result, str) and not is_empty(result):
            return result
        return True

    def evaluate_value(self, expression: Expression, context: EvalContext) -> Any:
        """Value convention: raw result, UNDEFINED meaning "leave existing"."""
        outcome = self.run(expression, context)
        if outcome.failed:
            return fallback_for(EvalKind.VALUE)
        return outcome.value


def make_context(
    data: Dict[str, Any],
    row: Optional[Dict[str, Any]] = None,
    value: Any = UNDEFINED,
    util: Optional[Dict[str, Callable[..., Any]]] = None,
) -> EvalContext:
    """Shorthand used by the engines to build an EvalContext."""
    return EvalContext(data=data, row=row, value=value, util=dict(util or {}))
