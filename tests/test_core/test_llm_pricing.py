"""Test LLM pricing calculations."""

import pytest

from flowsmith.core.llm_pricing import (
    MODEL_ALIASES,
    MODEL_PRICING,
    PRICING_VERSION,
    calculate_llm_cost,
    get_model_pricing,
    project_call_cost,
)


class TestLLMPricing:
    """Test LLM pricing calculations."""

    def test_regular_token_pricing(self):
        """Test basic input/output token pricing."""
        cost = calculate_llm_cost(
            model="anthropic/claude-sonnet-4-5",
            input_tokens=1000,
            output_tokens=500,
        )

        # Sonnet: $3/1M input, $15/1M output
        # 1000 input = 0.003, 500 output = 0.0075
        assert cost["input_cost"] == 0.003
        assert cost["output_cost"] == 0.0075
        assert cost["total_cost_usd"] == 0.0105
        assert cost["pricing_model"] == "anthropic/claude-sonnet-4-5"
        assert cost["pricing_version"] == PRICING_VERSION

    def test_advanced_model_pricing(self):
        """Opus is five times the price of Sonnet."""
        cost = calculate_llm_cost("anthropic/claude-opus-4-1-20250805", input_tokens=1000, output_tokens=1000)

        # 1000 * 15/1M + 1000 * 75/1M
        assert cost["total_cost_usd"] == 0.09

    def test_alias_resolves_to_canonical_model(self):
        """Aliases are priced and reported as their canonical model."""
        cost = calculate_llm_cost("4o", input_tokens=1_000_000)

        assert cost["input_cost"] == 5.0
        assert cost["pricing_model"] == "gpt-4o"

    def test_zero_tokens_cost_nothing(self):
        assert calculate_llm_cost("gpt-4o")["total_cost_usd"] == 0.0

    def test_unknown_model_raises_with_suggestions(self):
        """Unknown models fail loudly instead of being priced at zero."""
        with pytest.raises(ValueError) as exc_info:
            get_model_pricing("claude")

        message = str(exc_info.value)
        assert "Unknown model 'claude'" in message
        assert "Did you mean" in message

    def test_unknown_model_without_suggestions(self):
        with pytest.raises(ValueError) as exc_info:
            get_model_pricing("llama-local")

        assert "Did you mean" not in str(exc_info.value)

    def test_every_alias_points_at_priced_model(self):
        for alias, canonical in MODEL_ALIASES.items():
            assert canonical in MODEL_PRICING, alias


class TestProjectedCost:
    """Projected cost is the worst case: full prompt plus the output ceiling."""

    def test_projection_uses_output_ceiling(self):
        projected = project_call_cost("anthropic/claude-sonnet-4-5", prompt_tokens=3500, max_output_tokens=3000)

        # 3500 * 3/1M + 3000 * 15/1M = 0.0105 + 0.045
        assert projected == 0.0555

    def test_projection_is_upper_bound_of_actual(self):
        projected = project_call_cost("gpt-4o", 1000, 3000)
        actual = calculate_llm_cost("gpt-4o", 1000, 1200)["total_cost_usd"]

        assert actual <= projected
