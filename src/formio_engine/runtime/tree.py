"""
Component tree traversal.

Form schemas nest components in four container shapes:
- ``components``: panels, fieldsets, tabs, wells, wizard pages
- ``columns``: list of columns, each with its own ``components``
- ``pages``: wizard component pages
- ``rows``: table rows, each a list of cells with ``components``

All engines walk the tree through get_children(), so the canonical order
(components, then columns left to right, then pages, then table rows
row-major) is defined in exactly one place.

Grid components (datagrid, editgrid) hold a list of row maps. Their children
address keys inside each row, so top-level traversal stops at the grid node;
the engines visit grid_children() once per row.
"""

import logging
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple, Union

from formio_engine.schemas import ComponentNode, FormSchema

logger = logging.getLogger(__name__)

GRID_TYPES = frozenset({"datagrid", "editgrid"})

NodeLike = Union[ComponentNode, Dict[str, Any]]


class ContainerKind(str, Enum):
    """Container shapes a node can carry children in."""
    COMPONENTS = "components"
    COLUMNS = "columns"
    PAGES = "pages"
    ROWS = "rows"


def is_grid(node: ComponentNode) -> bool:
    """True for components whose value is a list of row maps."""
    return node.type.lower() in GRID_TYPES


def grid_children(node: ComponentNode) -> List[ComponentNode]:
    """Row-scoped child components of a grid (empty for non-grids)."""
    return list(node.components) if is_grid(node) else []


def child_groups(node: ComponentNode) -> Iterator[Tuple[ContainerKind, List[ComponentNode]]]:
    """Yield (kind, children) for every non-empty container on the node, in order."""
    if node.components and not is_grid(node):
        yield ContainerKind.COMPONENTS, node.components
    for column in node.columns:
        if column.components:
            yield ContainerKind.COLUMNS, column.components
    if node.pages:
        yield ContainerKind.PAGES, node.pages
    for row in node.rows:
        for cell in row:
            if cell.components:
                yield ContainerKind.ROWS, cell.components


def get_children(node: ComponentNode) -> List[ComponentNode]:
    """Direct children of a node across all container shapes, in canonical order."""
    children: List[ComponentNode] = []
    for _, group in child_groups(node):
        children.extend(group)
    return children


def iter_with_ancestors(
    nodes: Iterable[ComponentNode],
) -> Iterator[Tuple[ComponentNode, Tuple[ComponentNode, ...]]]:
    """
    Depth-first, pre-order walk yielding each node with its ancestor chain.

    A node object is yielded at most once, so passing an already flattened
    list (containers followed by their own descendants) does not visit any
    node twice.
    """
    seen: Set[int] = set()

    def walk(node: ComponentNode, ancestors: Tuple[ComponentNode, ...]):
        if id(node) in seen:
            return
        seen.add(id(node))
        yield node, ancestors
        for child in get_children(node):
            yield from walk(child, ancestors + (node,))

    for node in nodes:
        yield from walk(node, ())


def iter_components(nodes: Iterable[ComponentNode]) -> Iterator[ComponentNode]:
    """Depth-first, pre-order walk over every node."""
    for node, _ in iter_with_ancestors(nodes):
        yield node


def flatten_components(nodes: Iterable[ComponentNode]) -> List[ComponentNode]:
    """All nodes of the tree in canonical traversal order."""
    return list(iter_components(nodes))


def input_components(nodes: Iterable[ComponentNode]) -> List[ComponentNode]:
    """Data-bearing nodes (``input`` not False, non-empty key)."""
    return [node for node in iter_components(nodes) if node.holds_value]


def find_component(nodes: Iterable[ComponentNode], key: str) -> Optional[ComponentNode]:
    """
    Find a node by key, descending into grid children as well.

    Keys are expected to be unique; if they are not, the last match in
    traversal order wins, consistent with how data is written.
    """
    found = None
    for node in iter_components(nodes):
        if node.key == key:
            found = node
        for child in iter_components(grid_children(node)):
            if child.key == key:
                found = child
    return found


def ensure_nodes(nodes: Union[FormSchema, Sequence[NodeLike], None]) -> List[ComponentNode]:
    """
    Accept a FormSchema, ComponentNode objects or raw component dicts.

    Raw dicts are validated leniently into ComponentNode. Anything that is
    not a dict or node is skipped with a warning.
    """
    if nodes is None:
        return []
    if isinstance(nodes, FormSchema):
        return list(nodes.components)

    result: List[ComponentNode] = []
    for item in nodes:
        if isinstance(item, ComponentNode):
            result.append(item)
        elif isinstance(item, dict):
            result.append(ComponentNode.model_validate(item))
        else:
            logger.warning(f"Skipping component of type {type(item).__name__}: not an object")
    return result


def wizard_pages(schema: FormSchema) -> List[ComponentNode]:
    """
    Pages of a paged form.

    With ``display: "wizard"`` every top-level component is a page. Otherwise
    the pages of any ``wizard`` components are collected in traversal order.
    """
    if schema.is_wizard:
        return list(schema.components)
    pages: List[ComponentNode] = []
    for node in iter_components(schema.components):
        pages.extend(node.pages)
    return pages


def grid_rows(node: ComponentNode, data: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Row maps stored under a grid's key; non-dict entries read as empty rows."""
    rows = data.get(node.key)
    if not isinstance(rows, list):
        return []
    return [row if isinstance(row, dict) else {} for row in rows]


def row_field_path(grid_key: str, index: int, key: str) -> str:
    """Error/visibility key of a grid cell, e.g. ``items[0].price``."""
    return f"{grid_key}[{index}].{key}"
