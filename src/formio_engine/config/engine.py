"""Engine configuration schema and loader.

Configuration is an explicit object passed to FormSession (and from there to
the calculation and validation engines). There is no module-level cached
instance: two sessions in one process may run with different settings.

Configuration can be loaded from a YAML file, e.g.:

    max_calculation_passes: 5
    max_script_steps: 10000
    validate_conditionally_hidden: false
    messages:
      REQUIRED: "Please fill in {label}"
"""

import logging
from pathlib import Path
from typing import Dict, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from formio_engine.errors import InvalidConfigError

logger = logging.getLogger(__name__)


class EngineConfig(BaseModel):
    """Settings for one form evaluation session.

    Attributes:
        max_calculation_passes: Upper bound on fixed-point passes of the
            calculation engine.
        max_script_steps: Evaluation step budget for a single script snippet.
        validate_conditionally_hidden: When True, only the static ``hidden``
            flag excludes a field from validation; fields hidden by a
            conditional are still validated.
        debug_expressions: Log every snippet and its result at DEBUG level.
        messages: Overrides for the default validation message templates,
            keyed by message code (REQUIRED, MAX_VALUE, ...).
    """

    max_calculation_passes: int = Field(
        default=5,
        ge=1,
        description="Maximum number of calculation passes before giving up on convergence",
    )
    max_script_steps: int = Field(
        default=10_000,
        ge=1,
        description="Evaluation step budget per script snippet",
    )
    validate_conditionally_hidden: bool = Field(
        default=False,
        description="Validate fields hidden by conditionals (static hidden flag still skips)",
    )
    debug_expressions: bool = Field(
        default=False,
        description="Log every evaluated snippet and its result",
    )
    messages: Dict[str, str] = Field(
        default_factory=dict,
        description="Validation message template overrides keyed by message code",
    )

    @field_validator("messages")
    @classmethod
    def validate_message_codes(cls, v: Dict[str, str]) -> Dict[str, str]:
        """Normalize message codes to upper case."""
        return {code.upper(): template for code, template in v.items()}


def load_engine_config(config_path: Optional[Path] = None) -> EngineConfig:
    """Load engine configuration from a YAML file.

    Args:
        config_path: Path to the YAML file. None or a missing file yields the
            default configuration.

    Returns:
        EngineConfig instance.

    Raises:
        InvalidConfigError: If the file exists but is not valid YAML or does
            not match the configuration schema.
    """
    if config_path is None:
        return EngineConfig()

    config_path = Path(config_path)
    if not config_path.exists():
        logger.debug(f"No engine config found at {config_path}, using defaults")
        return EngineConfig()

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise InvalidConfigError(f"Invalid YAML in engine config {config_path}: {e}")

    if data is None:
        logger.warning(f"Empty engine config at {config_path}, using defaults")
        return EngineConfig()

    if not isinstance(data, dict):
        raise InvalidConfigError(
            f"Engine config {config_path} must be a mapping, got {type(data).__name__}"
        )

    try:
        config = EngineConfig.model_validate(data)
    except ValidationError as e:
        raise InvalidConfigError(f"Invalid engine config {config_path}: {e}")

    logger.debug(f"Loaded engine config from {config_path}")
    return config
