"""Pydantic models for form schemas and validation results."""

from formio_engine.schemas.component import (
    ComponentNode,
    Conditional,
    FormSchema,
    LayoutCell,
    ValidateRule,
)
from formio_engine.schemas.validation import ValidationError

__all__ = [
    "ComponentNode",
    "Conditional",
    "FormSchema",
    "LayoutCell",
    "ValidateRule",
    "ValidationError",
]
