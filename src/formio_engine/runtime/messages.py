"""Default validation messages and template formatting.

Templates use ``{name}`` placeholders. A translate hook (``translate(key,
fallback) -> str``) is consulted with ``validation.<CODE>`` keys; it only
changes the text of an error, never whether the error is raised.
"""

import re
from typing import Any, Callable, Dict, Mapping, Optional

from formio_engine.sandbox.values import is_nullish, to_string

TranslateFn = Callable[[str, str], str]

VALIDATION_MESSAGES: Dict[str, str] = {
    "REQUIRED": "{label} is required",
    "MIN_LENGTH": "Minimum length is {min}",
    "MAX_LENGTH": "Maximum length is {max}",
    "PATTERN": "Invalid format",
    "MIN_VALUE": "Minimum value is {min}",
    "MAX_VALUE": "Maximum value is {max}",
    "INVALID_EMAIL": "Invalid email address",
    "INVALID_URL": "Invalid URL",
    "INVALID_PHONE": "Invalid phone number",
    "CUSTOM_ERROR": "{label} is invalid",
}

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


def format_message(template: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """Substitute ``{name}`` placeholders; unknown or null params become ''."""
    if not params:
        return template

    def substitute(match: "re.Match[str]") -> str:
        value = params.get(match.group(1))
        return "" if is_nullish(value) else to_string(value)

    return _PLACEHOLDER.sub(substitute, template)


def get_validation_message(
    code: str,
    params: Optional[Mapping[str, Any]] = None,
    translate: Optional[TranslateFn] = None,
    overrides: Optional[Mapping[str, str]] = None,
) -> str:
    """
    Resolve the message for a validation code.

    Args:
        code: Message code, e.g. "REQUIRED"
        params: Placeholder values
        translate: Optional translation hook
        overrides: Templates replacing the defaults (EngineConfig.messages)

    Returns:
        Formatted message text
    """
    default = (overrides or {}).get(code) or VALIDATION_MESSAGES[code]
    template = default
    if translate is not None:
        template = translate(f"validation.{code}", default) or default
    return format_message(template, params)
