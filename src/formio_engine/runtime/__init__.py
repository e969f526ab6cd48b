"""
Runtime engines for form evaluation.

This module implements the engine components, leaf-first:
1. Component Tree Model - tree
2. Visibility Resolver - visibility
3. Calculation Engine - calculation
4. Validation Engine - validation, messages
5. Form Session Controller - session

Schema files are loaded through schema_loader. All engines evaluate form
expressions through formio_engine.sandbox.Sandbox.
"""

from formio_engine.runtime.calculation import CalculationEngine, CalculationResult, run_calculations
from formio_engine.runtime.messages import VALIDATION_MESSAGES, get_validation_message
from formio_engine.runtime.schema_loader import (
    load_form_data,
    load_form_schema,
    parse_form_schema,
)
from formio_engine.runtime.session import FormSession, SessionState, seed_defaults
from formio_engine.runtime.tree import (
    ContainerKind,
    find_component,
    flatten_components,
    get_children,
    input_components,
    iter_components,
    wizard_pages,
)
from formio_engine.runtime.validation import ValidationEngine, validate_field, validate_form
from formio_engine.runtime.visibility import (
    VisibilityResolver,
    evaluate_visibility,
    resolve_visibility,
)

__all__ = [
    "CalculationEngine",
    "CalculationResult",
    "run_calculations",
    "VALIDATION_MESSAGES",
    "get_validation_message",
    "load_form_data",
    "load_form_schema",
    "parse_form_schema",
    "FormSession",
    "SessionState",
    "seed_defaults",
    "ContainerKind",
    "find_component",
    "flatten_components",
    "get_children",
    "input_components",
    "iter_components",
    "wizard_pages",
    "ValidationEngine",
    "validate_field",
    "validate_form",
    "VisibilityResolver",
    "evaluate_visibility",
    "resolve_visibility",
]
