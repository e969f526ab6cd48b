"""
Unit tests for schema and data file loading.
"""

import logging

import pytest

from formio_engine.errors import InvalidSchemaError
from formio_engine.runtime.schema_loader import (
    coerce_form_schema,
    load_form_data,
    load_form_schema,
    parse_form_schema,
)
from formio_engine.schemas import ComponentNode, FormSchema


class TestParseFormSchema:
    """Root document checks."""

    def test_valid_document(self, contact_schema):
        """A Formio document parses into nodes."""
        schema = parse_form_schema(contact_schema)
        assert schema.title == "Contact"
        assert [node.key for node in schema.components] == ["name", "columns1", "details", "note"]

    @pytest.mark.parametrize("document,message", [
        ([], "must be a JSON object"),
        ("form", "must be a JSON object"),
        ({"title": "x"}, "must contain 'components'"),
        ({"components": {"a": 1}}, "must be a list"),
    ])
    def test_malformed_root(self, document, message):
        """Roots without a component list are rejected."""
        with pytest.raises(InvalidSchemaError, match=message) as exc_info:
            parse_form_schema(document)
        assert exc_info.value.schema == document

    def test_non_object_components_are_skipped(self, caplog):
        """Junk entries are dropped with a warning."""
        with caplog.at_level(logging.WARNING):
            schema = parse_form_schema({"components": [{"key": "a"}, "junk", None]})
        assert [node.key for node in schema.components] == ["a"]
        assert "Skipped 2" in caplog.text

    def test_form_schema_passes_through(self):
        """An existing FormSchema is returned as is."""
        schema = FormSchema(components=[ComponentNode(key="a")])
        assert parse_form_schema(schema) is schema


class TestCoerceFormSchema:
    """Shapes accepted by FormSession.initialize."""

    def test_bare_component_list(self):
        """A bare list becomes a schema."""
        schema = coerce_form_schema([{"key": "a"}, ComponentNode(key="b"), "junk"])
        assert [node.key for node in schema.components] == ["a", "b"]

    def test_document(self):
        """A document dict becomes a schema."""
        assert coerce_form_schema({"components": []}).components == []


class TestLoadFiles:
    """JSON file loading."""

    def test_load_form_schema(self, write_json, contact_schema):
        """Schema files load from disk."""
        schema = load_form_schema(write_json("form.json", contact_schema))
        assert len(schema.components) == 4

    def test_missing_file(self, tmp_path):
        """A missing file raises InvalidSchemaError."""
        with pytest.raises(InvalidSchemaError, match="not found"):
            load_form_schema(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        """Broken JSON raises InvalidSchemaError."""
        path = tmp_path / "form.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(InvalidSchemaError, match="Invalid JSON"):
            load_form_schema(path)

    def test_load_form_data(self, write_json):
        """Data files load from disk."""
        assert load_form_data(write_json("data.json", {"name": "Ada"})) == {"name": "Ada"}

    def test_submission_wrapper_is_unwrapped(self, write_json):
        """A lone data key is unwrapped."""
        path = write_json("submission.json", {"data": {"name": "Ada"}})
        assert load_form_data(path) == {"name": "Ada"}

    def test_data_key_with_siblings_is_kept(self, write_json):
        """A data key next to other keys is plain data."""
        path = write_json("data.json", {"data": {"x": 1}, "name": "Ada"})
        assert load_form_data(path) == {"data": {"x": 1}, "name": "Ada"}

    def test_data_must_be_object(self, write_json):
        """Top-level data must be an object."""
        with pytest.raises(InvalidSchemaError, match="must be a JSON object"):
            load_form_data(write_json("data.json", [1, 2]))
