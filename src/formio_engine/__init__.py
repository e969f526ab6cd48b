"""
Formio Engine - evaluation core for declarative JSON form schemas.

Given a form schema and a data snapshot, the engine decides which fields are
visible, what calculated fields contain and whether the data is valid.
"""

__version__ = "0.1.0"

from formio_engine.config import EngineConfig, load_engine_config
from formio_engine.errors import (
    FormioError,
    InvalidConfigError,
    InvalidSchemaError,
    SessionNotInitializedError,
)
from formio_engine.runtime import (
    FormSession,
    evaluate_visibility,
    load_form_schema,
    parse_form_schema,
    resolve_visibility,
    run_calculations,
    validate_field,
    validate_form,
)
from formio_engine.sandbox import UNDEFINED, EvalContext, Sandbox
from formio_engine.schemas import ComponentNode, FormSchema, ValidationError

__all__ = [
    "EngineConfig",
    "load_engine_config",
    "FormioError",
    "InvalidConfigError",
    "InvalidSchemaError",
    "SessionNotInitializedError",
    "FormSession",
    "evaluate_visibility",
    "load_form_schema",
    "parse_form_schema",
    "resolve_visibility",
    "run_calculations",
    "validate_field",
    "validate_form",
    "UNDEFINED",
    "EvalContext",
    "Sandbox",
    "ComponentNode",
    "FormSchema",
    "ValidationError",
]
