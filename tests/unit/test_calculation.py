"""
Unit tests for the calculation engine.
"""

import copy
import logging

from formio_engine.runtime.calculation import CalculationEngine, run_calculations
from formio_engine.runtime.tree import ensure_nodes


def calculated(key, script):
    return {"type": "number", "key": key, "calculateValue": script}


class TestRunCalculations:
    """Fixed-point application of calculateValue."""

    def test_sum_of_two_fields(self):
        """A calculated field sums two inputs."""
        nodes = [calculated("total", "value = data.a + data.b")]
        result = run_calculations(nodes, {"a": 2, "b": 3})
        assert result["total"] == 5

    def test_input_is_not_mutated(self):
        """The caller's data is left untouched."""
        data = {"a": 2, "b": 3}
        run_calculations([calculated("total", "value = data.a + data.b")], data)
        assert data == {"a": 2, "b": 3}

    def test_idempotent(self):
        """Running again on the result changes nothing."""
        nodes = [calculated("total", "value = data.a + data.b")]
        once = run_calculations(nodes, {"a": 2, "b": 3})
        assert run_calculations(nodes, once) == once

    def test_no_calculated_fields(self):
        """Forms without calculations converge immediately."""
        data = {"a": 1}
        result = CalculationEngine().run(ensure_nodes([{"key": "a"}]), data)
        assert result.data == data
        assert result.passes == 0
        assert result.converged

    def test_nested_in_containers(self):
        """Calculated fields inside layout containers are found."""
        nodes = [{"type": "panel", "key": "p", "input": False, "components": [
            calculated("double", "value = data.x * 2"),
        ]}]
        assert run_calculations(nodes, {"x": 4})["double"] == 8

    def test_json_logic_calculation(self):
        """JSON Logic rules work as calculateValue."""
        nodes = [calculated("total", {"*": [{"var": "data.price"}, {"var": "data.qty"}]})]
        assert run_calculations(nodes, {"price": 3, "qty": 4})["total"] == 12

    def test_input_false_nodes_are_not_calculated(self):
        """Layout nodes never receive a value."""
        nodes = [{"type": "content", "key": "c", "input": False, "calculateValue": "value = 1"}]
        assert run_calculations(nodes, {}) == {}


class TestConvergence:
    """Pass counting and cycles."""

    def test_single_calculation_converges_on_second_pass(self):
        """The second pass confirms the fixed point."""
        nodes = ensure_nodes([calculated("total", "value = data.a + data.b")])
        result = CalculationEngine().run(nodes, {"a": 2, "b": 3})
        assert result.converged
        assert result.passes == 2

    def test_forward_dependency_settles(self):
        """A field depending on a later one settles after an extra pass."""
        nodes = ensure_nodes([
            calculated("a", "value = data.b * 2"),
            calculated("b", "value = data.c + 1"),
        ])
        result = CalculationEngine().run(nodes, {"c": 1})
        assert result.data["a"] == 4
        assert result.data["b"] == 2
        assert result.passes == 3
        assert result.converged

    def test_cycle_stops_at_pass_cap(self, caplog):
        """Mutual dependencies stop at the pass cap with a warning."""
        nodes = ensure_nodes([
            calculated("a", "value = data.b + 1"),
            calculated("b", "value = data.a + 1"),
        ])
        with caplog.at_level(logging.WARNING):
            result = CalculationEngine(max_passes=5).run(nodes, {"a": 0, "b": 0})
        assert result.data == {"a": 9, "b": 10}
        assert result.passes == 5
        assert not result.converged
        assert "did not converge" in caplog.text

    def test_rebuilt_list_reaches_fixed_point(self):
        """Fresh but equal lists count as unchanged."""
        nodes = ensure_nodes([calculated("tags", "value = [data.a, data.b]")])
        result = CalculationEngine().run(nodes, {"a": 1, "b": 2})
        assert result.data["tags"] == [1, 2]
        assert result.converged

    def test_nan_result_reaches_fixed_point(self):
        """NaN compares equal to itself for convergence."""
        nodes = ensure_nodes([calculated("n", "value = data.missing * 2")])
        result = CalculationEngine().run(nodes, {})
        assert result.converged


class TestFailures:
    """Failing expressions leave the current value in place."""

    def test_failure_keeps_existing_value(self):
        """A failing script leaves the stored value."""
        nodes = [calculated("t", "value = data.x.y")]
        assert run_calculations(nodes, {"t": 7}) == {"t": 7}

    def test_failure_does_not_create_key(self):
        """A failing script does not add the key."""
        nodes = [calculated("t", "value = (")]
        assert run_calculations(nodes, {}) == {}

    def test_other_fields_still_calculated(self):
        """One failure does not stop the others."""
        nodes = [calculated("bad", "value = data.x.y"), calculated("good", "value = 1 + 1")]
        assert run_calculations(nodes, {}) == {"good": 2}


class TestGridCalculations:
    """Row-scoped calculations in data grids."""

    def test_line_totals_and_grand_total(self, order_schema):
        """Row totals feed the grand total."""
        data = {"items": [
            {"sku": "a", "price": 2, "qty": 3},
            {"sku": "b", "price": 5, "qty": 1},
        ]}
        original = copy.deepcopy(data)
        result = CalculationEngine().run(ensure_nodes(order_schema["components"]), data)

        assert [row["lineTotal"] for row in result.data["items"]] == [6, 5]
        assert result.data["total"] == 11
        assert result.converged
        assert data == original

    def test_empty_grid(self, order_schema):
        """An empty grid still yields a total."""
        result = run_calculations(order_schema["components"], {"items": []})
        assert result == {"items": [], "total": 0}

    def test_non_dict_rows_are_skipped(self, order_schema):
        """Rows that are not objects are left alone."""
        nodes = order_schema["components"][:1]
        result = run_calculations(nodes, {"items": ["junk", {"price": 2, "qty": 2}]})
        assert result["items"] == ["junk", {"price": 2, "qty": 2, "lineTotal": 4}]
