"""
Pytest fixtures shared by the formio-engine test suite.
Provides sample schemas, data and file helpers.
"""

import json

import pytest

from formio_engine.config import EngineConfig
from formio_engine.sandbox import Sandbox


@pytest.fixture
def sandbox():
    """Sandbox with default configuration."""
    return Sandbox(EngineConfig())


@pytest.fixture
def contact_schema():
    """Single-page form exercising every container shape the engine walks."""
    return {
        "title": "Contact",
        "components": [
            {"type": "textfield", "key": "name", "label": "Name", "required": True},
            {
                "type": "columns",
                "key": "columns1",
                "input": False,
                "columns": [
                    {"components": [{"type": "email", "key": "email", "label": "Email"}]},
                    {"components": [{"type": "number", "key": "age", "label": "Age",
                                     "validate": {"min": 18, "max": 65}}]},
                ],
            },
            {
                "type": "panel",
                "key": "details",
                "input": False,
                "components": [
                    {"type": "select", "key": "contactBy", "label": "Contact by",
                     "defaultValue": "email"},
                    {"type": "phoneNumber", "key": "phone", "label": "Phone",
                     "required": True,
                     "conditional": {"when": "contactBy", "eq": "phone", "show": True}},
                ],
            },
            {"type": "content", "key": "note", "input": False, "html": "<p>Thanks</p>"},
        ],
    }


@pytest.fixture
def order_schema():
    """Form with a data grid and calculated fields."""
    return {
        "components": [
            {
                "type": "datagrid",
                "key": "items",
                "label": "Items",
                "components": [
                    {"type": "textfield", "key": "sku", "label": "SKU", "required": True},
                    {"type": "number", "key": "price", "label": "Price", "defaultValue": 0},
                    {"type": "number", "key": "qty", "label": "Qty", "defaultValue": 1},
                    {"type": "number", "key": "lineTotal", "label": "Line total",
                     "calculateValue": "value = row.price * row.qty"},
                ],
            },
            {
                "type": "number",
                "key": "total",
                "label": "Total",
                "calculateValue": "value = data.items.reduce((sum, r) => sum + (r.lineTotal || 0), 0)",
            },
        ],
    }


@pytest.fixture
def write_json(tmp_path):
    """Write a JSON document into tmp_path and return its path."""
    def _write(name, document):
        path = tmp_path / name
        path.write_text(json.dumps(document), encoding="utf-8")
        return path
    return _write
