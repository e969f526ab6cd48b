"""
Validation Engine.

Per-field rule chain:
1. required (short-circuits the chain)
2. string rules: minLength, maxLength, pattern
3. numeric rules: min, max
4. type rules for email, url and phoneNumber fields
5. custom rule (script or JSON Logic) via the sandbox validation convention

validate_form walks the tree in canonical traversal order, so the error list
is deterministic for a given schema and data snapshot.
"""

import logging
import re
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from formio_engine.config import EngineConfig
from formio_engine.errors import ExpressionError
from formio_engine.runtime.messages import TranslateFn, get_validation_message
from formio_engine.runtime.tree import (
    NodeLike,
    ensure_nodes,
    grid_children,
    grid_rows,
    is_grid,
    iter_components,
    row_field_path,
)
from formio_engine.runtime.visibility import VisibilityResolver
from formio_engine.sandbox import UNDEFINED, Sandbox, is_empty, make_context
from formio_engine.sandbox.builtins import JSRegex
from formio_engine.sandbox.values import is_nan, is_number
from formio_engine.schemas import ComponentNode, ValidationError

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
URL_PATTERN = re.compile(r"^(?:https?|ftp)://[^\s/?#]+\.[^\s/?#]+(?:[/?#]\S*)?$", re.IGNORECASE)
PHONE_PATTERN = re.compile(r"^\+?[\d\s().-]+$")
PHONE_MIN_DIGITS = 7

TYPE_RULES = {
    "email": "INVALID_EMAIL",
    "url": "INVALID_URL",
    "phonenumber": "INVALID_PHONE",
}


def _matches_type(code: str, value: str) -> bool:
    if code == "INVALID_EMAIL":
        return bool(EMAIL_PATTERN.match(value))
    if code == "INVALID_URL":
        return bool(URL_PATTERN.match(value))
    digits = sum(ch.isdigit() for ch in value)
    return bool(PHONE_PATTERN.match(value)) and digits >= PHONE_MIN_DIGITS


class ValidationEngine:
    """
    Applies validation rules to fields and whole forms.

    Args:
        sandbox: Sandbox for custom rules and conditionals
        config: Engine configuration (hidden-field policy, message overrides)
        translate: Optional ``translate(key, fallback)`` message hook
        util: Helpers exposed to scripts as ``util``
    """

    def __init__(
        self,
        sandbox: Optional[Sandbox] = None,
        config: Optional[EngineConfig] = None,
        translate: Optional[TranslateFn] = None,
        util: Optional[Dict[str, Any]] = None,
    ):
        self.config = config or EngineConfig()
        self.sandbox = sandbox or Sandbox(self.config)
        self.translate = translate
        self.util = util or {}
        self.visibility = VisibilityResolver(self.sandbox, self.util)

    def _error(self, field: str, code: str, params: Dict[str, Any]) -> ValidationError:
        message = get_validation_message(code, params, self.translate, self.config.messages)
        return ValidationError(field=field, message=message, code=code)

    def validate_field(
        self,
        node: ComponentNode,
        value: Any,
        full_data: Dict[str, Any],
        row: Optional[Dict[str, Any]] = None,
        field: Optional[str] = None,
    ) -> List[ValidationError]:
        """
        Run the rule chain for one field.

        Args:
            node: Component being validated
            value: The field's current value (UNDEFINED when missing)
            full_data: Full data snapshot, bound as ``data`` in custom rules
            row: Row map for grid cells; defaults to the form data
            field: Name reported in errors; defaults to the node key

        Returns:
            Errors in rule order; a required failure is always the only error
        """
        field = field or node.key
        rule = node.validate_rule
        label = node.display_name
        errors: List[ValidationError] = []

        if node.is_required and is_empty(value):
            return [self._error(field, "REQUIRED", {"label": label})]

        if isinstance(value, str) and value:
            if rule.min_length is not None and len(value) < rule.min_length:
                errors.append(self._error(field, "MIN_LENGTH", {"min": rule.min_length}))
            if rule.max_length is not None and len(value) > rule.max_length:
                errors.append(self._error(field, "MAX_LENGTH", {"max": rule.max_length}))
            if rule.pattern and not self._pattern_matches(rule.pattern, value, field):
                if rule.custom_message:
                    errors.append(
                        ValidationError(field=field, message=rule.custom_message, code="PATTERN")
                    )
                else:
                    errors.append(self._error(field, "PATTERN", {"pattern": rule.pattern}))

            type_code = TYPE_RULES.get(node.type.lower())
            if type_code and not _matches_type(type_code, value):
                errors.append(self._error(field, type_code, {"label": label}))

        if is_number(value) and not is_nan(value):
            if rule.min is not None and value < rule.min:
                errors.append(self._error(field, "MIN_VALUE", {"min": rule.min}))
            if rule.max is not None and value > rule.max:
                errors.append(self._error(field, "MAX_VALUE", {"max": rule.max}))

        for expression in (rule.custom, rule.json_logic):
            if expression is None:
                continue
            context = make_context(full_data, row=row, value=value, util=self.util)
            result = self.sandbox.evaluate_validation(expression, context)
            if result is False:
                if rule.custom_message:
                    errors.append(
                        ValidationError(field=field, message=rule.custom_message, code="CUSTOM_ERROR")
                    )
                else:
                    errors.append(self._error(field, "CUSTOM_ERROR", {"label": label}))
            elif isinstance(result, str):
                errors.append(ValidationError(field=field, message=result, code="CUSTOM_ERROR"))

        return errors

    @staticmethod
    def _pattern_matches(pattern: str, value: str, field: str) -> bool:
        try:
            return JSRegex(pattern).test(value)
        except ExpressionError as e:
            # An unusable pattern is a schema bug; it must not block the form
            logger.warning(f"Ignoring invalid pattern for '{field}': {e}")
            return True

    def _walk(self, nodes: List[ComponentNode], data: Dict[str, Any]) -> Iterator[Tuple[ComponentNode, bool]]:
        if self.config.validate_conditionally_hidden:
            for node in iter_components(nodes):
                yield node, node.hidden
        else:
            yield from self.visibility.walk(nodes, data)

    def _walk_rows(
        self,
        grid: ComponentNode,
        data: Dict[str, Any],
        grid_hidden: bool,
    ) -> Iterator[Tuple[int, Dict[str, Any], ComponentNode, bool]]:
        if self.config.validate_conditionally_hidden:
            for index, row in enumerate(grid_rows(grid, data)):
                for child in grid_children(grid):
                    yield index, row, child, child.hidden
        else:
            yield from self.visibility.walk_rows(grid, data, grid_hidden)

    def validate_form(self, nodes: Iterable[ComponentNode], data: Dict[str, Any]) -> List[ValidationError]:
        """
        Validate every visible data-bearing node in traversal order.

        Nodes hidden by their flag, their conditionals or a hidden ancestor
        are skipped. With ``validate_conditionally_hidden`` only a node's own
        static ``hidden`` flag skips it.

        Args:
            nodes: Component tree
            data: Full data snapshot

        Returns:
            Ordered list of field errors
        """
        nodes = list(nodes)
        errors: List[ValidationError] = []
        for node, hidden in self._walk(nodes, data):
            if node.holds_value and not hidden:
                errors.extend(self.validate_field(node, data.get(node.key, UNDEFINED), data))
            if not is_grid(node) or not node.holds_value:
                continue
            for index, row, child, child_hidden in self._walk_rows(node, data, hidden):
                if not child.holds_value or child_hidden:
                    continue
                errors.extend(
                    self.validate_field(
                        child,
                        row.get(child.key, UNDEFINED),
                        data,
                        row=row,
                        field=row_field_path(node.key, index, child.key),
                    )
                )

        if errors:
            logger.debug(f"Validation found {len(errors)} error(s)")
        return errors


def validate_field(
    node: NodeLike,
    value: Any,
    full_data: Dict[str, Any],
    row: Optional[Dict[str, Any]] = None,
    translate: Optional[TranslateFn] = None,
    sandbox: Optional[Sandbox] = None,
) -> List[ValidationError]:
    """
    Validate a single field value.

    Args:
        node: Component node or raw component dict
        value: Value to validate
        full_data: Full data snapshot
        row: Row map for grid cells
        translate: Optional message translation hook
        sandbox: Sandbox for custom rules

    Returns:
        List of ValidationError (empty when valid)
    """
    component = ensure_nodes([node])[0]
    engine = ValidationEngine(sandbox=sandbox, translate=translate)
    return engine.validate_field(component, value, full_data, row=row)


def validate_form(
    nodes: Iterable[NodeLike],
    data: Dict[str, Any],
    config: Optional[EngineConfig] = None,
    translate: Optional[TranslateFn] = None,
    sandbox: Optional[Sandbox] = None,
) -> List[ValidationError]:
    """
    Validate a whole form.

    Args:
        nodes: Component tree, FormSchema or raw component dicts
        data: Full data snapshot
        config: Engine configuration
        translate: Optional message translation hook
        sandbox: Sandbox for custom rules and conditionals

    Returns:
        Ordered list of ValidationError
    """
    engine = ValidationEngine(sandbox=sandbox, config=config, translate=translate)
    return engine.validate_form(ensure_nodes(nodes), data)
