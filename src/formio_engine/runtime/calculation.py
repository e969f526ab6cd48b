"""
Calculation Engine.

Applies every ``calculateValue`` expression across the tree, repeatedly, until
a pass changes nothing or the pass cap is reached. Passes run in traversal
order; there is no dependency sort, so a field that depends on one declared
after it settles on the next pass.
"""

import copy
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from formio_engine.runtime.tree import NodeLike, ensure_nodes, grid_children, is_grid, iter_components
from formio_engine.sandbox import UNDEFINED, Sandbox, make_context, same_value
from formio_engine.schemas import ComponentNode

logger = logging.getLogger(__name__)

DEFAULT_MAX_PASSES = 5


@dataclass
class CalculationResult:
    """Outcome of a calculation run."""
    data: Dict[str, Any]
    passes: int
    converged: bool


def _is_calculated(node: ComponentNode) -> bool:
    return node.holds_value and node.calculate_value is not None


class CalculationEngine:
    """
    Bounded fixed-point iteration of calculated values.

    Args:
        sandbox: Sandbox used to evaluate ``calculateValue``
        max_passes: Maximum number of full passes over the tree
        util: Helpers exposed to scripts as ``util``
    """

    def __init__(
        self,
        sandbox: Optional[Sandbox] = None,
        max_passes: int = DEFAULT_MAX_PASSES,
        util: Optional[Dict[str, Any]] = None,
    ):
        self.sandbox = sandbox or Sandbox()
        self.max_passes = max_passes
        self.util = util or {}

    def run(self, nodes: Iterable[ComponentNode], data: Dict[str, Any]) -> CalculationResult:
        """
        Calculate derived values on a copy of the data.

        Args:
            nodes: Component tree (or an already flattened node list)
            data: Current data snapshot; never modified

        Returns:
            CalculationResult with the new snapshot. ``converged`` is False when
            the last allowed pass still changed a value; the data is then left
            in its last computed state.
        """
        next_data = copy.deepcopy(data)
        order = [
            node for node in iter_components(nodes)
            if _is_calculated(node) or (is_grid(node) and node.holds_value)
        ]

        if not order:
            return CalculationResult(data=next_data, passes=0, converged=True)

        passes = 0
        converged = False
        while passes < self.max_passes:
            passes += 1
            changed = False
            for node in order:
                if _is_calculated(node):
                    changed = self._apply(node, next_data, next_data, None) or changed
                if is_grid(node):
                    changed = self._apply_rows(node, next_data) or changed
            if not changed:
                converged = True
                break

        if not converged:
            keys = [node.key for node in order if _is_calculated(node)]
            logger.warning(
                f"Calculated values did not converge after {passes} passes "
                f"(fields: {', '.join(keys)}); keeping last computed state"
            )
        return CalculationResult(data=next_data, passes=passes, converged=converged)

    def _apply(
        self,
        node: ComponentNode,
        target: Dict[str, Any],
        data: Dict[str, Any],
        row: Optional[Dict[str, Any]],
    ) -> bool:
        """Evaluate one calculated field and store the result in ``target``."""
        current = target.get(node.key, UNDEFINED)
        context = make_context(data, row=row, value=current, util=self.util)
        calculated = self.sandbox.evaluate_value(node.calculate_value, context)
        if calculated is UNDEFINED or same_value(calculated, current):
            return False
        target[node.key] = calculated
        return True

    def _apply_rows(self, grid: ComponentNode, data: Dict[str, Any]) -> bool:
        children = [child for child in grid_children(grid) if _is_calculated(child)]
        rows = data.get(grid.key)
        if not children or not isinstance(rows, list):
            return False
        changed = False
        for row in rows:
            if not isinstance(row, dict):
                continue
            for child in children:
                changed = self._apply(child, row, data, row) or changed
        return changed


def run_calculations(
    nodes: Iterable[NodeLike],
    data: Dict[str, Any],
    sandbox: Optional[Sandbox] = None,
    max_passes: int = DEFAULT_MAX_PASSES,
) -> Dict[str, Any]:
    """
    Apply calculated values and return the new data snapshot.

    Args:
        nodes: Component tree, flattened node list or raw component dicts
        data: Current data snapshot (not modified)
        sandbox: Sandbox to evaluate expressions with
        max_passes: Pass cap for cyclic definitions

    Returns:
        New data snapshot
    """
    engine = CalculationEngine(sandbox, max_passes=max_passes)
    return engine.run(ensure_nodes(nodes), data).data
