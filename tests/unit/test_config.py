"""
Unit tests for engine configuration loading.
"""

import pytest
from pydantic import ValidationError

from formio_engine.config import EngineConfig, load_engine_config
from formio_engine.errors import InvalidConfigError


class TestEngineConfig:
    """Defaults and field validation."""

    def test_defaults(self):
        """Defaults match the documented values."""
        config = EngineConfig()
        assert config.max_calculation_passes == 5
        assert config.max_script_steps == 10_000
        assert config.validate_conditionally_hidden is False
        assert config.debug_expressions is False
        assert config.messages == {}

    def test_message_codes_are_upper_cased(self):
        """Override codes are normalized."""
        config = EngineConfig(messages={"required": "Fill {label}", "Max_Value": "Too big"})
        assert config.messages == {"REQUIRED": "Fill {label}", "MAX_VALUE": "Too big"}

    def test_pass_cap_must_be_positive(self):
        """A zero pass cap is rejected."""
        with pytest.raises(ValidationError):
            EngineConfig(max_calculation_passes=0)


class TestLoadEngineConfig:
    """YAML loading."""

    def test_none_and_missing_file_use_defaults(self, tmp_path):
        """No file means defaults."""
        assert load_engine_config(None) == EngineConfig()
        assert load_engine_config(tmp_path / "missing.yaml") == EngineConfig()

    def test_loads_yaml(self, tmp_path):
        """YAML settings are applied."""
        path = tmp_path / "engine.yaml"
        path.write_text(
            "max_calculation_passes: 8\n"
            "validate_conditionally_hidden: true\n"
            "messages:\n"
            "  required: 'Please fill in {label}'\n",
            encoding="utf-8",
        )
        config = load_engine_config(path)
        assert config.max_calculation_passes == 8
        assert config.validate_conditionally_hidden is True
        assert config.messages == {"REQUIRED": "Please fill in {label}"}

    def test_empty_file_uses_defaults(self, tmp_path):
        """An empty file means defaults."""
        path = tmp_path / "engine.yaml"
        path.write_text("", encoding="utf-8")
        assert load_engine_config(path) == EngineConfig()

    def test_invalid_yaml(self, tmp_path):
        """Broken YAML raises InvalidConfigError."""
        path = tmp_path / "engine.yaml"
        path.write_text("messages: [unclosed\n", encoding="utf-8")
        with pytest.raises(InvalidConfigError, match="Invalid YAML"):
            load_engine_config(path)

    def test_not_a_mapping(self, tmp_path):
        """The top level must be a mapping."""
        path = tmp_path / "engine.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(InvalidConfigError, match="must be a mapping"):
            load_engine_config(path)

    def test_schema_violation(self, tmp_path):
        """Wrong field types raise InvalidConfigError."""
        path = tmp_path / "engine.yaml"
        path.write_text("max_script_steps: -1\n", encoding="utf-8")
        with pytest.raises(InvalidConfigError, match="Invalid engine config"):
            load_engine_config(path)
