"""Exception hierarchy for the form evaluation engine.

Only programming errors and unreadable input documents are raised to callers.
Expression errors are raised inside the sandbox and always caught at its
boundary; field validation failures are data, not exceptions.
"""

from typing import Any, Optional


class FormioError(Exception):
    """Base class for all engine errors."""


class InvalidSchemaError(FormioError):
    """Raised when a form schema document cannot be loaded or has no components."""

    def __init__(self, message: str, schema: Optional[Any] = None):
        self.schema = schema
        super().__init__(message)


class InvalidConfigError(FormioError):
    """Raised when an engine configuration file is unreadable or invalid."""


class SessionNotInitializedError(FormioError):
    """Raised when a session is used before initialize() was called."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Cannot {operation}: session has not been initialized")


class ExpressionError(FormioError):
    """Base class for failures while evaluating a form expression."""


class ExpressionSyntaxError(ExpressionError):
    """The snippet could not be tokenized or parsed."""

    def __init__(self, message: str, position: int = -1):
        self.position = position
        if position >= 0:
            message = f"{message} (at offset {position})"
        super().__init__(message)


class ExpressionRuntimeError(ExpressionError):
    """The snippet raised while executing (e.g. property of undefined)."""


class ExpressionBudgetExceeded(ExpressionError):
    """The snippet used more evaluation steps than the configured budget."""

    def __init__(self, budget: int):
        self.budget = budget
        super().__init__(f"Expression exceeded step budget of {budget}")
