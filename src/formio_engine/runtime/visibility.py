"""
Visibility Resolver.

Decides, for a node and a data snapshot, whether the node is hidden. Priority:
1. static ``hidden`` flag (always wins)
2. ``customConditional`` script or JSON Logic rule (fails open: visible)
3. ``conditional.json`` JSON Logic rule
4. declarative ``conditional.when`` / ``eq`` / ``show``
5. visible
"""

import logging
from typing import Any, Dict, Iterable, Iterator, Optional, Tuple

from formio_engine.runtime.tree import (
    NodeLike,
    ensure_nodes,
    get_children,
    grid_children,
    grid_rows,
    row_field_path,
)
from formio_engine.sandbox import UNDEFINED, Sandbox, make_context
from formio_engine.sandbox.values import strict_equals
from formio_engine.schemas import ComponentNode

logger = logging.getLogger(__name__)


class VisibilityResolver:
    """
    Computes hidden state for nodes, including inherited container state.

    Args:
        sandbox: Sandbox used for custom conditionals
        util: Helpers exposed to scripts as ``util``
    """

    def __init__(self, sandbox: Optional[Sandbox] = None, util: Optional[Dict[str, Any]] = None):
        self.sandbox = sandbox or Sandbox()
        self.util = util or {}

    def is_hidden(
        self,
        node: ComponentNode,
        data: Dict[str, Any],
        row: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Hidden state of a single node, ignoring its ancestors.

        Args:
            node: Component to check
            data: Full data snapshot
            row: Row map for grid children; None outside grids

        Returns:
            True if the node is hidden
        """
        if node.hidden:
            return True

        scope = row if row is not None else data
        conditional = node.conditional

        if node.custom_conditional is not None:
            context = make_context(
                data, row=row, value=scope.get(node.key, UNDEFINED), util=self.util
            )
            visible = self.sandbox.evaluate_conditional(node.custom_conditional, context)
            return not visible

        if conditional is not None and conditional.json_logic is not None:
            context = make_context(
                data, row=row, value=scope.get(node.key, UNDEFINED), util=self.util
            )
            visible = self.sandbox.evaluate_conditional(conditional.json_logic, context)
            return not visible

        if conditional is not None and conditional.when:
            when_value = self._lookup(conditional.when, data, row)
            eq = conditional.eq if conditional.has_eq else UNDEFINED
            match = strict_equals(when_value, eq)
            show = conditional.show is not False
            return not match if show else match

        return False

    @staticmethod
    def _lookup(key: str, data: Dict[str, Any], row: Optional[Dict[str, Any]]) -> Any:
        # Grid children may condition on a sibling cell or on a form-level field
        if row is not None and key in row:
            return row[key]
        return data.get(key, UNDEFINED)

    def walk(
        self,
        nodes: Iterable[ComponentNode],
        data: Dict[str, Any],
    ) -> Iterator[Tuple[ComponentNode, bool]]:
        """
        Pre-order walk yielding (node, hidden) with container inheritance.

        Descendants of a hidden node are hidden without evaluating their own
        conditions.
        """
        seen = set()

        def visit(node: ComponentNode, parent_hidden: bool):
            if id(node) in seen:
                return
            seen.add(id(node))
            hidden = parent_hidden or self.is_hidden(node, data)
            yield node, hidden
            for child in get_children(node):
                yield from visit(child, hidden)

        for node in nodes:
            yield from visit(node, False)

    def walk_rows(
        self,
        grid: ComponentNode,
        data: Dict[str, Any],
        grid_hidden: bool = False,
    ) -> Iterator[Tuple[int, Dict[str, Any], ComponentNode, bool]]:
        """Yield (row_index, row, child, hidden) for every cell of a grid."""
        children = grid_children(grid)
        for index, row in enumerate(grid_rows(grid, data)):
            for child in children:
                hidden = grid_hidden or self.is_hidden(child, data, row=row)
                yield index, row, child, hidden

    def resolve(self, nodes: Iterable[ComponentNode], data: Dict[str, Any]) -> Dict[str, bool]:
        """
        Hidden state of every keyed node.

        Grid cells are reported under ``grid[i].child`` keys.
        """
        visibility: Dict[str, bool] = {}
        for node, hidden in self.walk(nodes, data):
            if node.key:
                visibility[node.key] = hidden
            for index, _, child, child_hidden in self.walk_rows(node, data, hidden):
                if child.key:
                    visibility[row_field_path(node.key, index, child.key)] = child_hidden
        logger.debug(f"Resolved visibility for {len(visibility)} keys")
        return visibility


def evaluate_visibility(
    node: NodeLike,
    data: Dict[str, Any],
    row: Optional[Dict[str, Any]] = None,
    sandbox: Optional[Sandbox] = None,
) -> bool:
    """
    Decide whether a single node is hidden.

    Args:
        node: Component node or raw component dict
        data: Current data snapshot
        row: Row map when the node is a grid child
        sandbox: Sandbox to evaluate custom conditionals with

    Returns:
        True if hidden, False if visible
    """
    component = ensure_nodes([node])[0]
    return VisibilityResolver(sandbox).is_hidden(component, data, row=row)


def resolve_visibility(
    nodes: Iterable[NodeLike],
    data: Dict[str, Any],
    sandbox: Optional[Sandbox] = None,
) -> Dict[str, bool]:
    """Map every keyed node (and grid cell) to its hidden state."""
    return VisibilityResolver(sandbox).resolve(ensure_nodes(nodes), data)
