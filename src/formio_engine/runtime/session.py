"""
Form Session Controller.

Owns the authoritative data snapshot and error list for one form and drives
the evaluation cycle:

    initialize:   seed defaults -> calculate -> validate -> publish
    field change: merge -> calculate -> on_change -> validate -> on_validation
    submit:       validate -> on_submit (no errors) or on_validation (errors)

Every transition builds a new snapshot from the previous one; snapshots handed
to callbacks or returned by properties are copies, so no caller can mutate the
session's state in place.
"""

import copy
import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from formio_engine.config import EngineConfig
from formio_engine.errors import SessionNotInitializedError
from formio_engine.runtime.calculation import CalculationEngine, CalculationResult
from formio_engine.runtime.messages import TranslateFn
from formio_engine.runtime.schema_loader import SchemaLike, coerce_form_schema
from formio_engine.runtime.tree import grid_children, input_components, is_grid, iter_components, wizard_pages
from formio_engine.runtime.validation import ValidationEngine
from formio_engine.sandbox import UNDEFINED, Sandbox
from formio_engine.schemas import ComponentNode, FormSchema, ValidationError

logger = logging.getLogger(__name__)

DataCallback = Callable[[Dict[str, Any]], None]
ErrorsCallback = Callable[[List[ValidationError]], None]


class SessionState(str, Enum):
    """Lifecycle of a form session."""
    INITIALIZING = "initializing"
    READY = "ready"


def seed_defaults(nodes: List[ComponentNode], initial_data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Apply ``defaultValue`` to data-bearing nodes that have no value.

    A key counts as missing only when absent; an explicit null supplied by the
    caller is kept. Grid rows get defaults for their missing cells.

    Args:
        nodes: Component tree
        initial_data: Caller-supplied data (not modified)

    Returns:
        New data snapshot
    """
    data = copy.deepcopy(initial_data) if initial_data else {}

    for node in input_components(nodes):
        if node.has_default and data.get(node.key, UNDEFINED) is UNDEFINED:
            data[node.key] = copy.deepcopy(node.default_value)

    for grid in iter_components(nodes):
        if not is_grid(grid) or not isinstance(data.get(grid.key), list):
            continue
        children = [child for child in grid_children(grid) if child.holds_value and child.has_default]
        for row in data[grid.key]:
            if not isinstance(row, dict):
                continue
            for child in children:
                if row.get(child.key, UNDEFINED) is UNDEFINED:
                    row[child.key] = copy.deepcopy(child.default_value)

    return data


class FormSession:
    """
    Stateful controller for one rendered form.

    Args:
        config: Engine configuration; defaults are used when omitted
        translate: Optional ``translate(key, fallback)`` hook for error messages
        on_change: Called with the new data after every data transition
        on_validation: Called with the error list after every validation
        on_submit: Called with the data when a submission is accepted
        util: Helpers exposed to form scripts as ``util``
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        translate: Optional[TranslateFn] = None,
        on_change: Optional[DataCallback] = None,
        on_validation: Optional[ErrorsCallback] = None,
        on_submit: Optional[DataCallback] = None,
        util: Optional[Dict[str, Any]] = None,
    ):
        self.config = config or EngineConfig()
        self.on_change = on_change
        self.on_validation = on_validation
        self.on_submit = on_submit

        self.sandbox = Sandbox(self.config)
        self.calculator = CalculationEngine(
            self.sandbox, max_passes=self.config.max_calculation_passes, util=util
        )
        self.validator = ValidationEngine(
            sandbox=self.sandbox, config=self.config, translate=translate, util=util
        )

        self.state = SessionState.INITIALIZING
        self.last_calculation: Optional[CalculationResult] = None
        self._schema: Optional[FormSchema] = None
        self._nodes: List[ComponentNode] = []
        self._data: Dict[str, Any] = {}
        self._errors: List[ValidationError] = []
        self._visibility: Dict[str, bool] = {}

    # State accessors

    @property
    def is_ready(self) -> bool:
        return self.state == SessionState.READY

    @property
    def schema(self) -> Optional[FormSchema]:
        return self._schema

    @property
    def data(self) -> Dict[str, Any]:
        """Copy of the current data snapshot."""
        return copy.deepcopy(self._data)

    @property
    def errors(self) -> List[ValidationError]:
        """Current error list."""
        return list(self._errors)

    @property
    def visibility(self) -> Dict[str, bool]:
        """Hidden state per key (``True`` = hidden) for the current snapshot."""
        return dict(self._visibility)

    @property
    def pages(self) -> List[ComponentNode]:
        """Wizard pages; empty for single-page forms."""
        return wizard_pages(self._schema) if self._schema is not None else []

    def _require_ready(self, operation: str) -> None:
        if not self.is_ready:
            raise SessionNotInitializedError(operation)

    # Transitions

    def initialize(self, schema: SchemaLike, initial_data: Optional[Dict[str, Any]] = None) -> None:
        """
        Load a schema and compute the first snapshot.

        Can be called again to switch schema or reset data.

        Args:
            schema: FormSchema, schema document or list of components
            initial_data: Caller-supplied data; defaults fill missing keys

        Raises:
            InvalidSchemaError: If the schema root is malformed
        """
        self.state = SessionState.INITIALIZING
        self._schema = coerce_form_schema(schema)
        self._nodes = list(self._schema.components)

        seeded = seed_defaults(self._nodes, initial_data)
        self._apply_data(seeded)
        self._errors = self.validator.validate_form(self._nodes, self._data)
        self.state = SessionState.READY

        logger.debug(
            f"Session initialized: {len(self._nodes)} top-level components, "
            f"{len(self._errors)} error(s)"
        )
        self._publish_change()
        self._publish_errors()

    def on_field_change(self, key: str, value: Any) -> Dict[str, Any]:
        """
        Merge a user edit and recompute.

        Args:
            key: Data key of the edited field
            value: New value

        Returns:
            Copy of the new data snapshot

        Raises:
            SessionNotInitializedError: If initialize() has not been called
        """
        self._require_ready("change a field")
        merged = copy.deepcopy(self._data)
        merged[key] = copy.deepcopy(value)

        self._apply_data(merged)
        self._publish_change()

        self._errors = self.validator.validate_form(self._nodes, self._data)
        self._publish_errors()
        return self.data

    def submit(self) -> bool:
        """
        Validate the current data and submit it when valid.

        Returns:
            True if ``on_submit`` was invoked, False if errors blocked submission

        Raises:
            SessionNotInitializedError: If initialize() has not been called
        """
        self._require_ready("submit")
        self._errors = self.validator.validate_form(self._nodes, self._data)

        if self._errors:
            logger.info(f"Submission blocked by {len(self._errors)} validation error(s)")
            self._publish_errors()
            return False

        logger.info("Submission accepted")
        if self.on_submit is not None:
            self.on_submit(self.data)
        return True

    def validate_page(self, index: int) -> List[ValidationError]:
        """
        Validate a single wizard page against the current data.

        Only returns the page's errors; the session error list is unchanged.

        Raises:
            SessionNotInitializedError: If initialize() has not been called
            IndexError: If the form has no page with that index
        """
        self._require_ready("validate a page")
        pages = self.pages
        if not 0 <= index < len(pages):
            raise IndexError(f"Page index {index} out of range (form has {len(pages)} pages)")
        return self.validator.validate_form([pages[index]], self._data)

    # Internals

    def _apply_data(self, data: Dict[str, Any]) -> None:
        result = self.calculator.run(self._nodes, data)
        self.last_calculation = result
        self._data = result.data
        self._visibility = self.validator.visibility.resolve(self._nodes, self._data)

    def _publish_change(self) -> None:
        if self.on_change is not None:
            self.on_change(self.data)

    def _publish_errors(self) -> None:
        if self.on_validation is not None:
            self.on_validation(self.errors)
