"""Centralized LLM pricing - single source of truth for generation cost calculations.

All cost figures in flowsmith (projected costs used for authorization and
actual costs recorded after a call) come from this module.
"""

from typing import Any

# Version tracking for pricing updates
PRICING_VERSION = "2025-12-19"

# Prices are in USD per million tokens for input and output
MODEL_PRICING: dict[str, dict[str, float]] = {
    # Anthropic models
    "anthropic/claude-3-5-sonnet-20241022": {"input": 3.00, "output": 15.00},
    "anthropic/claude-3-7-sonnet-20250219": {"input": 3.00, "output": 15.00},
    "anthropic/claude-sonnet-4-0": {"input": 3.00, "output": 15.00},
    "anthropic/claude-sonnet-4-5": {"input": 3.00, "output": 15.00},
    "anthropic/claude-opus-4-1-20250805": {"input": 15.00, "output": 75.00},
    "anthropic/claude-haiku-4-5-20251001": {"input": 1.00, "output": 5.00},
    # OpenAI models
    "gpt-4o": {"input": 5.0, "output": 15.0},
    "gpt-4o-mini": {"input": 0.15, "output": 0.60},
    "gpt-4-turbo": {"input": 10.0, "output": 30.0},
}

# Maps common aliases to their canonical names
MODEL_ALIASES = {
    "claude-3.5-sonnet": "anthropic/claude-3-5-sonnet-20241022",
    "claude-3.7-sonnet": "anthropic/claude-3-7-sonnet-20250219",
    "claude-4-sonnet": "anthropic/claude-sonnet-4-0",
    "claude-sonnet-4.5": "anthropic/claude-sonnet-4-5",
    "claude-opus-4.1": "anthropic/claude-opus-4-1-20250805",
    "claude-haiku-4.5": "anthropic/claude-haiku-4-5-20251001",
    "4o": "gpt-4o",
    "4o-mini": "gpt-4o-mini",
    "4t": "gpt-4-turbo",
}


def get_model_pricing(model: str) -> dict[str, float]:
    """Get pricing for a specific model.

    Args:
        model: Model identifier (supports aliases)

    Returns:
        Dictionary with "input" and "output" prices per million tokens

    Raises:
        ValueError: If model is not in the pricing table
    """
    canonical_model = MODEL_ALIASES.get(model, model)

    if canonical_model not in MODEL_PRICING:
        suggestions = [m for m in MODEL_PRICING if model.lower() in m.lower()][:3]

        error_msg = f"Unknown model '{model}' - pricing not available. "
        if suggestions:
            error_msg += f"Did you mean one of: {', '.join(suggestions)}? "
        error_msg += "Add it to MODEL_PRICING or configure a known model."

        raise ValueError(error_msg)

    return MODEL_PRICING[canonical_model]


def calculate_llm_cost(model: str, input_tokens: int = 0, output_tokens: int = 0) -> dict[str, Any]:
    """Calculate the cost breakdown for one LLM call.

    Args:
        model: Model identifier (e.g., "anthropic/claude-sonnet-4-5")
        input_tokens: Number of prompt tokens
        output_tokens: Number of completion tokens

    Returns:
        Dictionary with input_cost, output_cost, total_cost_usd, pricing_model
        and pricing_version
    """
    pricing = get_model_pricing(model)

    input_cost = (input_tokens / 1_000_000) * pricing["input"]
    output_cost = (output_tokens / 1_000_000) * pricing["output"]

    return {
        "input_cost": round(input_cost, 6),
        "output_cost": round(output_cost, 6),
        "total_cost_usd": round(input_cost + output_cost, 6),
        "pricing_model": MODEL_ALIASES.get(model, model),
        "pricing_version": PRICING_VERSION,
    }


def project_call_cost(model: str, prompt_tokens: int, max_output_tokens: int) -> float:
    """Worst-case cost of a call: the full prompt plus the output ceiling."""
    return calculate_llm_cost(model, prompt_tokens, max_output_tokens)["total_cost_usd"]
