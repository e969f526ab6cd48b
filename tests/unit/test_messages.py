"""
Unit tests for validation message templates.
"""

from formio_engine.runtime.messages import VALIDATION_MESSAGES, format_message, get_validation_message


class TestFormatMessage:
    """Placeholder substitution."""

    def test_substitutes_params(self):
        """Known placeholders are replaced by their values."""
        assert format_message("Minimum length is {min}", {"min": 3}) == "Minimum length is 3"

    def test_missing_and_null_params_are_blank(self):
        """Unknown or null params become empty; no params leaves the template alone."""
        assert format_message("{label} is required", {}) == "{label} is required"
        assert format_message("{label} is required", {"other": 1}) == " is required"
        assert format_message("{label} is required", {"label": None}) == " is required"

    def test_numbers_are_formatted_like_scripts(self):
        """Integral floats print without a decimal part."""
        assert format_message("Maximum value is {max}", {"max": 65.0}) == "Maximum value is 65"
        assert format_message("Maximum value is {max}", {"max": 2.5}) == "Maximum value is 2.5"


class TestGetValidationMessage:
    """Default templates, overrides and the translate hook."""

    def test_every_code_has_a_default(self):
        """Each code resolves to a non-empty message."""
        for code in VALIDATION_MESSAGES:
            assert get_validation_message(code, {"label": "X", "min": 1, "max": 2})

    def test_default(self):
        """Without hooks the built-in template is used."""
        assert get_validation_message("REQUIRED", {"label": "Name"}) == "Name is required"

    def test_override(self):
        """A configured override replaces the template."""
        message = get_validation_message("REQUIRED", {"label": "Name"}, overrides={"REQUIRED": "Fill {label}"})
        assert message == "Fill Name"

    def test_translate_receives_key_and_default(self):
        """The hook gets the namespaced key and the untranslated template."""
        seen = []

        def translate(key, fallback):
            seen.append((key, fallback))
            return "Min {min}"

        assert get_validation_message("MIN_LENGTH", {"min": 2}, translate=translate) == "Min 2"
        assert seen == [("validation.MIN_LENGTH", "Minimum length is {min}")]

    def test_translation_with_renamed_placeholder(self):
        """A placeholder the params do not provide is blanked out."""
        message = get_validation_message(
            "MIN_LENGTH", {"min": 2}, translate=lambda key, fallback: "Au moins {minimum}"
        )
        assert message == "Au moins "

    def test_empty_translation_falls_back(self):
        """An empty translation keeps the default template."""
        assert get_validation_message("PATTERN", translate=lambda key, fallback: "") == "Invalid format"
