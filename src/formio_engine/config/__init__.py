"""Engine configuration management."""

from formio_engine.config.engine import (
    EngineConfig,
    load_engine_config,
)

__all__ = [
    "EngineConfig",
    "load_engine_config",
]
