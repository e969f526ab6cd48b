"""
Utility module for loading form schema and data JSON files.

Only the document root is checked strictly: it must be an object holding a
``components`` list. Everything below the root is parsed leniently by the
pydantic models, since form builders routinely emit partial or oddly typed
component definitions.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Union

from pydantic import ValidationError as PydanticValidationError

from formio_engine.errors import InvalidSchemaError
from formio_engine.schemas import ComponentNode, FormSchema

logger = logging.getLogger(__name__)

SchemaLike = Union[FormSchema, Dict[str, Any], List[Any]]


def _read_json(file_path: Union[str, Path], what: str) -> Any:
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        raise InvalidSchemaError(f"{what} file not found: {file_path}")
    except json.JSONDecodeError as e:
        raise InvalidSchemaError(f"Invalid JSON in {what.lower()} file {file_path}: {e}")


def parse_form_schema(document: Any) -> FormSchema:
    """
    Validate a form schema document.

    Args:
        document: Parsed JSON document

    Returns:
        FormSchema instance

    Raises:
        InvalidSchemaError: If the root is not an object or has no components list

    Expected structure:
        {
            "title": str,          # optional
            "display": "wizard",   # optional
            "components": [...]
        }
    """
    if isinstance(document, FormSchema):
        return document
    if not isinstance(document, dict):
        raise InvalidSchemaError(
            f"Form schema must be a JSON object, got {type(document).__name__}", document
        )
    if "components" not in document:
        raise InvalidSchemaError("Form schema must contain 'components' key", document)
    if not isinstance(document["components"], list):
        raise InvalidSchemaError("Form schema 'components' must be a list", document)

    try:
        schema = FormSchema.model_validate(document)
    except PydanticValidationError as e:
        raise InvalidSchemaError(f"Invalid form schema: {e}", document)

    skipped = len(document["components"]) - len(schema.components)
    if skipped:
        logger.warning(f"Skipped {skipped} top-level component(s) that are not objects")
    return schema


def coerce_form_schema(schema: SchemaLike) -> FormSchema:
    """Accept a FormSchema, a schema document or a bare list of components."""
    if isinstance(schema, list):
        return FormSchema(
            components=[
                item if isinstance(item, ComponentNode) else ComponentNode.model_validate(item)
                for item in schema
                if isinstance(item, (dict, ComponentNode))
            ]
        )
    return parse_form_schema(schema)


def load_form_schema(file_path: Union[str, Path]) -> FormSchema:
    """
    Load and validate a form schema JSON file.

    Args:
        file_path: Path to the schema JSON file

    Returns:
        FormSchema instance

    Raises:
        InvalidSchemaError: If the file cannot be loaded or has no components list
    """
    schema = parse_form_schema(_read_json(file_path, "Schema"))
    logger.debug(f"Loaded form schema from {file_path} ({len(schema.components)} top-level components)")
    return schema


def load_form_data(file_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load a form data (submission) JSON file.

    Accepts either the bare data object or a submission wrapper
    ``{"data": {...}}``.

    Raises:
        InvalidSchemaError: If the file cannot be loaded or is not an object
    """
    document = _read_json(file_path, "Data")
    if isinstance(document, dict) and set(document.keys()) == {"data"} and isinstance(document["data"], dict):
        document = document["data"]
    if not isinstance(document, dict):
        raise InvalidSchemaError(f"Form data must be a JSON object, got {type(document).__name__}")
    return document
