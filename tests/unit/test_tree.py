"""
Unit tests for component tree traversal and lenient schema models.
"""

import logging

from formio_engine.runtime.tree import (
    ContainerKind,
    child_groups,
    ensure_nodes,
    find_component,
    flatten_components,
    get_children,
    grid_rows,
    input_components,
    iter_with_ancestors,
    row_field_path,
    wizard_pages,
)
from formio_engine.runtime.schema_loader import parse_form_schema
from formio_engine.schemas import ComponentNode, FormSchema


def keys(nodes):
    return [node.key for node in nodes]


class TestTraversalOrder:
    """Canonical order across container shapes."""

    def test_contact_form_order(self, contact_schema):
        """Depth-first order through columns and panels."""
        nodes = parse_form_schema(contact_schema).components
        assert keys(flatten_components(nodes)) == [
            "name", "columns1", "email", "age", "details", "contactBy", "phone", "note",
        ]

    def test_container_shapes_in_order(self):
        """components, columns, pages and rows are visited in that order."""
        node = ComponentNode.model_validate({
            "type": "custom",
            "key": "box",
            "components": [{"key": "c"}],
            "columns": [{"components": [{"key": "col1"}]}, {"components": [{"key": "col2"}]}],
            "pages": [{"key": "p1", "components": [{"key": "p1a"}]}],
            "rows": [
                [{"components": [{"key": "r1c1"}]}, {"components": [{"key": "r1c2"}]}],
                [{"components": [{"key": "r2c1"}]}],
            ],
        })
        assert [kind for kind, _ in child_groups(node)] == [
            ContainerKind.COMPONENTS,
            ContainerKind.COLUMNS,
            ContainerKind.COLUMNS,
            ContainerKind.PAGES,
            ContainerKind.ROWS,
            ContainerKind.ROWS,
            ContainerKind.ROWS,
        ]
        assert keys(get_children(node)) == ["c", "col1", "col2", "p1", "r1c1", "r1c2", "r2c1"]
        assert keys(flatten_components([node])) == [
            "box", "c", "col1", "col2", "p1", "p1a", "r1c1", "r1c2", "r2c1",
        ]

    def test_grid_children_are_not_top_level(self, order_schema):
        """Grid columns belong to rows, not the form."""
        nodes = parse_form_schema(order_schema).components
        assert keys(flatten_components(nodes)) == ["items", "total"]

    def test_ancestor_chain(self, contact_schema):
        """Each node carries its container chain."""
        nodes = parse_form_schema(contact_schema).components
        chains = {node.key: keys(ancestors) for node, ancestors in iter_with_ancestors(nodes)}
        assert chains["phone"] == ["details"]
        assert chains["age"] == ["columns1"]
        assert chains["name"] == []

    def test_flattened_input_is_not_visited_twice(self, contact_schema):
        """Flattening a flat list is stable."""
        nodes = parse_form_schema(contact_schema).components
        flat = flatten_components(nodes)
        assert keys(flatten_components(flat)) == keys(flat)


class TestLookups:
    """Input filtering, key lookup and grid helpers."""

    def test_input_components_skip_layout_and_keyless(self, contact_schema):
        """Only keyed value-holding nodes are inputs."""
        contact_schema["components"].append({"type": "textfield", "label": "No key"})
        nodes = parse_form_schema(contact_schema).components
        assert keys(input_components(nodes)) == ["name", "email", "age", "contactBy", "phone"]

    def test_find_component(self, contact_schema, order_schema):
        """Lookup by key, grid children included."""
        nodes = parse_form_schema(contact_schema).components
        assert find_component(nodes, "phone").type == "phoneNumber"
        assert find_component(nodes, "missing") is None

        grid_nodes = parse_form_schema(order_schema).components
        assert find_component(grid_nodes, "lineTotal").label == "Line total"

    def test_find_component_last_match_wins(self):
        """Duplicate keys resolve to the last node."""
        nodes = ensure_nodes([
            {"key": "dup", "label": "first"},
            {"type": "panel", "key": "p", "components": [{"key": "dup", "label": "second"}]},
        ])
        assert find_component(nodes, "dup").label == "second"

    def test_grid_rows(self, order_schema):
        """Rows come from the data; junk becomes an empty row."""
        grid = parse_form_schema(order_schema).components[0]
        assert grid_rows(grid, {"items": [{"sku": "a"}, "junk"]}) == [{"sku": "a"}, {}]
        assert grid_rows(grid, {"items": "not a list"}) == []
        assert grid_rows(grid, {}) == []

    def test_row_field_path(self):
        """Grid paths use key[index].child."""
        assert row_field_path("items", 2, "sku") == "items[2].sku"


class TestEnsureNodes:
    """Accepted inputs for the engine entry points."""

    def test_accepts_schema_nodes_and_dicts(self, contact_schema):
        """Schemas, models and dicts are all accepted."""
        schema = parse_form_schema(contact_schema)
        assert keys(ensure_nodes(schema)) == keys(schema.components)
        assert keys(ensure_nodes([{"key": "a"}, ComponentNode(key="b")])) == ["a", "b"]
        assert ensure_nodes(None) == []

    def test_skips_non_objects_with_warning(self, caplog):
        """Non-object entries are dropped with a warning."""
        with caplog.at_level(logging.WARNING):
            nodes = ensure_nodes([{"key": "a"}, "oops", 3])
        assert keys(nodes) == ["a"]
        assert "not an object" in caplog.text


class TestWizardPages:
    """Page discovery for paged forms."""

    def test_display_wizard(self):
        """Top-level panels are pages in wizard display."""
        schema = FormSchema.model_validate({
            "display": "wizard",
            "components": [
                {"type": "panel", "key": "page1", "components": [{"key": "a"}]},
                {"type": "panel", "key": "page2", "components": [{"key": "b"}]},
            ],
        })
        assert keys(wizard_pages(schema)) == ["page1", "page2"]

    def test_wizard_component_pages(self):
        """A wizard component lists its pages."""
        schema = FormSchema.model_validate({
            "components": [{"type": "wizard", "key": "w", "pages": [{"key": "p1"}, {"key": "p2"}]}],
        })
        assert keys(wizard_pages(schema)) == ["p1", "p2"]

    def test_single_page_form(self, contact_schema):
        """Ordinary forms have no pages."""
        assert wizard_pages(parse_form_schema(contact_schema)) == []


class TestLenientModels:
    """Loosely typed builder output is coerced, not rejected."""

    def test_string_flags_and_bounds(self):
        """String flags and numeric bounds are coerced."""
        node = ComponentNode.model_validate({
            "key": "a",
            "required": "true",
            "hidden": "false",
            "validate": {"minLength": "3", "maxLength": "", "min": "1.5", "required": False},
        })
        assert node.required is True
        assert node.hidden is False
        assert node.validate_rule.min_length == 3
        assert node.validate_rule.max_length is None
        assert node.validate_rule.min == 1.5

    def test_null_containers(self):
        """Null or malformed containers become empty."""
        node = ComponentNode.model_validate({"key": "a", "components": None, "columns": "x"})
        assert node.components == []
        assert node.columns == []

    def test_empty_scripts_mean_none(self):
        """Empty scripts and rules are treated as absent."""
        node = ComponentNode.model_validate({"key": "a", "calculateValue": "", "customConditional": {}})
        assert node.calculate_value is None
        assert node.custom_conditional is None

    def test_conditional_show_strings(self):
        """show accepts "true"/"false" strings."""
        node = ComponentNode.model_validate(
            {"key": "a", "conditional": {"show": "false", "when": "b", "eq": "x"}}
        )
        assert node.conditional.show is False
        assert node.conditional.has_eq

    def test_conditional_without_eq(self):
        """A missing eq is distinguished from eq: null."""
        node = ComponentNode.model_validate({"key": "a", "conditional": {"show": True, "when": "b"}})
        assert not node.conditional.has_eq

    def test_unknown_keys_are_kept(self):
        """Unknown builder keys survive parsing."""
        node = ComponentNode.model_validate({"key": "a", "widget": {"type": "choicesjs"}})
        assert node.model_extra["widget"] == {"type": "choicesjs"}

    def test_derived_properties(self):
        """Convenience properties on ComponentNode."""
        node = ComponentNode.model_validate({"key": "a", "validate": {"required": True}, "defaultValue": None})
        assert node.is_required
        assert node.has_default
        assert node.display_name == "a"
        assert ComponentNode.model_validate({"key": "b", "input": False}).holds_value is False
        assert ComponentNode.model_validate({"label": "x"}).holds_value is False
