"""Tests for prompt template loading."""

import pytest

from flowsmith.generation.prompts.loader import extract_variables, format_prompt, load_prompt


class TestPromptLoader:
    def test_workflow_generator_template(self):
        template = load_prompt("workflow_generator")

        assert not template.startswith("#")
        assert extract_variables(template) == {
            "tier_guidance",
            "process_description",
            "business_context",
            "complexity_summary",
            "opportunities",
            "pattern_name",
            "working_example",
            "documentation",
        }

    def test_missing_prompt(self):
        with pytest.raises(FileNotFoundError):
            load_prompt("does_not_exist")

    def test_format_fills_placeholders(self):
        assert format_prompt("Hi {{name}}!", {"name": "Ada"}) == "Hi Ada!"

    def test_values_with_placeholders_are_not_expanded(self):
        result = format_prompt("{{a}} {{b}}", {"a": "{{b}}", "b": "x"})
        assert result == "{{b}} x"

    def test_unused_variable_rejected(self):
        with pytest.raises(ValueError, match="not in template"):
            format_prompt("{{a}}", {"a": 1, "b": 2})

    def test_missing_variable_rejected(self):
        with pytest.raises(KeyError, match="Missing required variables"):
            format_prompt("{{a}} {{b}}", {"a": 1})
