"""Pydantic schemas for Formio-style component trees.

Form builders emit loosely typed JSON: ``minLength: ""``, ``show: "true"``,
``components: null`` and unknown component types are all common. The models
below therefore coerce leniently instead of rejecting the document, and keep
every unknown key (``extra="allow"``) so renderers can read widget options the
engine does not care about.
"""

from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _coerce_str(v: Any) -> str:
    if v is None:
        return ""
    return v if isinstance(v, str) else str(v)


def _coerce_flag(v: Any) -> bool:
    if isinstance(v, str):
        return v.strip().lower() == "true"
    return bool(v)


def _coerce_optional_flag(v: Any) -> Optional[bool]:
    if v is None or isinstance(v, bool):
        return v
    if isinstance(v, str):
        lowered = v.strip().lower()
        if lowered in ("true", "false"):
            return lowered == "true"
        return None
    return bool(v)


def _coerce_number(v: Any) -> Optional[Union[int, float]]:
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, (int, float)):
        return v
    if isinstance(v, str):
        text = v.strip()
        if not text:
            return None
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            return None
    return None


def _coerce_script(v: Any) -> Any:
    # Empty strings and empty rules mean "no script"
    if v is None or v == "" or v == {}:
        return None
    if isinstance(v, (str, dict, list)):
        return v
    return None


def _dict_items(v: Any) -> list:
    if not isinstance(v, list):
        return []
    return [item for item in v if isinstance(item, (dict, BaseModel))]


class Conditional(BaseModel):
    """Declarative visibility rule ``{when, eq, show, json}``."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    show: Optional[bool] = Field(None, description="Show when matched (defaults to True)")
    when: Optional[str] = Field(None, description="Key of the field to compare")
    eq: Any = Field(None, description="Value compared with ===")
    json_logic: Any = Field(None, alias="json", description="JSON Logic rule")

    @field_validator("show", mode="before")
    @classmethod
    def coerce_show(cls, v: Any) -> Optional[bool]:
        return _coerce_optional_flag(v)

    @field_validator("when", mode="before")
    @classmethod
    def coerce_when(cls, v: Any) -> Optional[str]:
        if v is None or v == "":
            return None
        return _coerce_str(v)

    @field_validator("json_logic", mode="before")
    @classmethod
    def coerce_json(cls, v: Any) -> Any:
        return _coerce_script(v)

    @property
    def has_eq(self) -> bool:
        """True when ``eq`` was present in the schema (even if null)."""
        return "eq" in self.model_fields_set


class ValidateRule(BaseModel):
    """Per-field validation rule set."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    required: bool = False
    min_length: Optional[Union[int, float]] = Field(None, alias="minLength")
    max_length: Optional[Union[int, float]] = Field(None, alias="maxLength")
    pattern: Optional[str] = None
    min: Optional[Union[int, float]] = None
    max: Optional[Union[int, float]] = None
    custom: Any = None
    custom_message: Optional[str] = Field(None, alias="customMessage")
    json_logic: Any = Field(None, alias="json")

    @field_validator("required", mode="before")
    @classmethod
    def coerce_required(cls, v: Any) -> bool:
        return _coerce_flag(v)

    @field_validator("min_length", "max_length", "min", "max", mode="before")
    @classmethod
    def coerce_bounds(cls, v: Any) -> Optional[Union[int, float]]:
        return _coerce_number(v)

    @field_validator("pattern", "custom_message", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> Optional[str]:
        if v is None or v == "":
            return None
        return _coerce_str(v)

    @field_validator("custom", "json_logic", mode="before")
    @classmethod
    def coerce_scripts(cls, v: Any) -> Any:
        return _coerce_script(v)


class LayoutCell(BaseModel):
    """A column of a ``columns`` node or a cell of a ``table`` row."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    components: List["ComponentNode"] = Field(default_factory=list)

    @field_validator("components", mode="before")
    @classmethod
    def coerce_components(cls, v: Any) -> list:
        return _dict_items(v)


class ComponentNode(BaseModel):
    """A schema-declared field or container.

    Container shapes: ``components`` (panels, fieldsets, tabs, grids),
    ``columns`` (list of LayoutCell), ``pages`` (wizard) and ``rows`` (table,
    list of lists of LayoutCell). Which ones are traversed, and how, is
    decided by formio_engine.runtime.tree.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type: str = ""
    key: str = ""
    label: Optional[str] = None
    placeholder: Optional[str] = None
    description: Optional[str] = None
    input: Optional[bool] = None
    hidden: bool = False
    required: bool = False
    default_value: Any = Field(None, alias="defaultValue")
    components: List["ComponentNode"] = Field(default_factory=list)
    columns: List[LayoutCell] = Field(default_factory=list)
    pages: List["ComponentNode"] = Field(default_factory=list)
    rows: List[List[LayoutCell]] = Field(default_factory=list)
    conditional: Optional[Conditional] = None
    custom_conditional: Any = Field(None, alias="customConditional")
    calculate_value: Any = Field(None, alias="calculateValue")
    validate_rule: ValidateRule = Field(default_factory=ValidateRule, alias="validate")

    @field_validator("type", "key", mode="before")
    @classmethod
    def coerce_identifiers(cls, v: Any) -> str:
        return _coerce_str(v)

    @field_validator("label", "placeholder", "description", mode="before")
    @classmethod
    def coerce_display(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        return _coerce_str(v)

    @field_validator("input", mode="before")
    @classmethod
    def coerce_input(cls, v: Any) -> Optional[bool]:
        return _coerce_optional_flag(v)

    @field_validator("hidden", "required", mode="before")
    @classmethod
    def coerce_flags(cls, v: Any) -> bool:
        return _coerce_flag(v)

    @field_validator("components", "columns", "pages", mode="before")
    @classmethod
    def coerce_children(cls, v: Any) -> list:
        return _dict_items(v)

    @field_validator("rows", mode="before")
    @classmethod
    def coerce_rows(cls, v: Any) -> list:
        if not isinstance(v, list):
            return []
        return [_dict_items(row) for row in v if isinstance(row, list)]

    @field_validator("conditional", mode="before")
    @classmethod
    def coerce_conditional(cls, v: Any) -> Any:
        if isinstance(v, (dict, Conditional)):
            return v
        return None

    @field_validator("custom_conditional", "calculate_value", mode="before")
    @classmethod
    def coerce_scripts(cls, v: Any) -> Any:
        return _coerce_script(v)

    @field_validator("validate_rule", mode="before")
    @classmethod
    def coerce_validate(cls, v: Any) -> Any:
        if isinstance(v, (dict, ValidateRule)):
            return v
        return {}

    @property
    def is_input(self) -> bool:
        """False only for nodes explicitly declared ``input: false``."""
        return self.input is not False

    @property
    def holds_value(self) -> bool:
        """True for data-bearing nodes that have a key to store a value under."""
        return self.is_input and bool(self.key)

    @property
    def is_required(self) -> bool:
        return self.required or self.validate_rule.required

    @property
    def has_default(self) -> bool:
        """True when ``defaultValue`` was declared (null counts as declared)."""
        return "default_value" in self.model_fields_set

    @property
    def display_name(self) -> str:
        return self.label or self.key


class FormSchema(BaseModel):
    """Root form document."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    components: List[ComponentNode] = Field(default_factory=list)
    title: Optional[str] = None
    display: Optional[str] = Field(None, description="'form' (default) or 'wizard'")

    @field_validator("components", mode="before")
    @classmethod
    def coerce_components(cls, v: Any) -> list:
        return _dict_items(v)

    @field_validator("title", "display", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        return _coerce_str(v)

    @property
    def is_wizard(self) -> bool:
        return (self.display or "").lower() == "wizard"


LayoutCell.model_rebuild()
ComponentNode.model_rebuild()
