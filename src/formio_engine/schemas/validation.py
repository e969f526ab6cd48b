"""Validation result schema."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ValidationError(BaseModel):
    """A single field-level validation failure.

    Not an exception: a form's error list is ordinary data published to the
    rendering layer through the session's ``on_validation`` callback.
    """

    field: str = Field(..., description="Key of the failing field (grid cells use 'grid[0].child')")
    message: str = Field(..., description="Human-readable error message")
    code: Optional[str] = Field(
        None, description="Message code, e.g. REQUIRED, MAX_VALUE, CUSTOM_ERROR"
    )

    def to_dict(self) -> Dict[str, Any]:
        """Return the ``{field, message}`` shape consumed by renderers."""
        return self.model_dump(exclude_none=True)
