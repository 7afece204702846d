"""Tests for the generation invoker and its fallback chain."""

import json
import time

import pytest

from flowsmith.core.budget import BudgetState
from flowsmith.core.cost_monitor import CostMonitor
from flowsmith.core.exceptions import JobCancelledError
from flowsmith.core.llm_pricing import calculate_llm_cost
from flowsmith.core.settings import InvokerSettings
from flowsmith.generation.invoker import (
    BudgetRejected,
    ChainExhausted,
    GenerationInvoker,
    GenerationSuccess,
    GenerationTimeout,
    ProviderFailure,
    RateLimited,
    describe_failure,
)
from flowsmith.generation.model_router import ModelRoute
from flowsmith.generation.prompt_builder import PromptPayload
from tests.shared.llm_mock import DEFAULT_WORKFLOW

SONNET = "anthropic/claude-sonnet-4-5"
OPUS = "anthropic/claude-opus-4-1-20250805"
GPT = "gpt-4o"

CHAIN = [
    ModelRoute(provider="anthropic", tier="standard", model=SONNET),
    ModelRoute(provider="openai", tier="standard", model=GPT),
]


@pytest.fixture
def prompts():
    text = "x" * 4000
    return {"standard": PromptPayload(text=text, estimated_tokens=1000, tier="standard")}


@pytest.fixture
def invoker(settings, cost_monitor):
    return GenerationInvoker(
        cost_monitor, settings.credentials, invoker_settings=settings.invoker, prompt_settings=settings.prompt
    )


def outcomes(cost_monitor):
    return [(a.model, a.outcome) for a in cost_monitor.attempts()]


class TestSuccess:
    def test_first_route_succeeds(self, invoker, prompts, cost_monitor, mock_llm_responses):
        result = invoker.invoke(prompts, CHAIN, job_id="job-1", complexity="simple")

        assert isinstance(result, GenerationSuccess)
        assert result.route == CHAIN[0]
        assert json.loads(result.text) == DEFAULT_WORKFLOW
        assert mock_llm_responses.models_called() == [SONNET]
        assert outcomes(cost_monitor) == [(SONNET, "success")]

    def test_call_parameters(self, invoker, prompts, mock_llm_responses):
        invoker.invoke(prompts, CHAIN)

        call = mock_llm_responses.call_history[0]
        assert call["kwargs"]["key"] == "test-anthropic-key"
        assert call["kwargs"]["max_tokens"] == 3000
        assert call["temperature"] == 0.1

    def test_cost_uses_reported_usage(self, invoker, prompts, cost_monitor):
        result = invoker.invoke(prompts, CHAIN, job_id="job-1")

        expected = calculate_llm_cost(SONNET, result.prompt_tokens, result.completion_tokens)["total_cost_usd"]
        assert result.prompt_tokens == 1000
        assert result.cost_usd == expected
        assert cost_monitor.job_cost("job-1") == expected
        assert cost_monitor.budget.reserved_usd == 0.0

    def test_route_without_prompt_is_skipped(self, invoker, prompts, mock_llm_responses):
        chain = [ModelRoute(provider="anthropic", tier="advanced", model=OPUS), *CHAIN]

        result = invoker.invoke(prompts, chain)

        assert result.route.tier == "standard"
        assert mock_llm_responses.models_called() == [SONNET]


class TestFallback:
    def test_provider_error_advances_chain(self, invoker, prompts, cost_monitor, mock_llm_responses):
        mock_llm_responses.set_response(SONNET, RuntimeError("500 internal server error"))

        result = invoker.invoke(prompts, CHAIN, job_id="job-1")

        assert isinstance(result, GenerationSuccess)
        assert result.route.model == GPT
        assert outcomes(cost_monitor) == [(SONNET, "error"), (GPT, "success")]
        assert cost_monitor.job_attempts("job-1")[0].cost_usd == 0.0

    def test_rate_limit_advances_chain(self, invoker, prompts, cost_monitor, mock_llm_responses):
        mock_llm_responses.set_response(SONNET, RuntimeError("429 Too Many Requests"))

        result = invoker.invoke(prompts, CHAIN)

        assert result.route.model == GPT
        assert outcomes(cost_monitor)[0] == (SONNET, "rate_limited")

    def test_timeout_abandons_call(self, settings, cost_monitor, prompts, mock_llm_responses):
        invoker = GenerationInvoker(
            cost_monitor, settings.credentials, invoker_settings=InvokerSettings(timeout_seconds=0.05)
        )
        mock_llm_responses.set_delay(SONNET, 5.0)

        started = time.monotonic()
        result = invoker.invoke(prompts, CHAIN, job_id="job-1")
        elapsed = time.monotonic() - started

        assert elapsed < 2.0
        assert result.route.model == GPT
        timeout_attempt = cost_monitor.job_attempts("job-1")[0]
        assert timeout_attempt.outcome == "timeout"
        # Charged for the prompt it consumed
        assert timeout_attempt.cost_usd == calculate_llm_cost(SONNET, 1000, 0)["total_cost_usd"]

    def test_every_route_failing_exhausts_chain(self, invoker, prompts, cost_monitor, mock_llm_responses):
        mock_llm_responses.set_response(SONNET, RuntimeError("503 Service Unavailable"))
        mock_llm_responses.set_response(GPT, RuntimeError("Rate limit exceeded"))

        result = invoker.invoke(prompts, CHAIN)

        assert isinstance(result, ChainExhausted)
        assert [type(f) for f in result.failures] == [ProviderFailure, RateLimited]
        assert result.failures[0].code == "service_unavailable"
        assert not result.all_budget_rejected

        described = [describe_failure(f) for f in result.failures]
        assert [d["kind"] for d in described] == ["error", "rate_limited"]
        assert described[0]["category"] == "service_unavailable"
        assert described[1]["retry_suggestion"] is True
        assert described[0]["route"].startswith("anthropic/standard")

    def test_each_route_attempted_once(self, invoker, prompts, mock_llm_responses):
        mock_llm_responses.set_response(SONNET, RuntimeError("boom"))
        mock_llm_responses.set_response(GPT, RuntimeError("boom"))

        invoker.invoke(prompts, CHAIN)

        assert mock_llm_responses.models_called() == [SONNET, GPT]

    def test_empty_chain(self, invoker, prompts):
        result = invoker.invoke(prompts, [])

        assert isinstance(result, ChainExhausted)
        assert result.failures == ()
        assert not result.all_budget_rejected


class TestBudget:
    def test_per_call_limit_skips_routes_without_calling(self, settings, prompts, mock_llm_responses):
        monitor = CostMonitor(BudgetState(daily_limit_usd=10.0, per_call_limit_usd=0.0001))
        invoker = GenerationInvoker(monitor, settings.credentials)

        result = invoker.invoke(prompts, CHAIN, job_id="job-1")

        assert isinstance(result, ChainExhausted)
        assert result.all_budget_rejected
        assert all(isinstance(f, BudgetRejected) and f.reason == "per_call_limit" for f in result.failures)
        assert mock_llm_responses.models_called() == []
        assert [a.outcome for a in monitor.attempts()] == ["skipped", "skipped"]

    def test_daily_limit_rejects_after_spend(self, settings, prompts, mock_llm_responses):
        budget = BudgetState(daily_limit_usd=0.01, per_call_limit_usd=1.0)
        budget.record_spend(0.01)
        invoker = GenerationInvoker(CostMonitor(budget), settings.credentials)

        result = invoker.invoke(prompts, CHAIN)

        assert result.all_budget_rejected
        assert {f.reason for f in result.failures} == {"daily_limit"}

    def test_rejected_route_falls_through_to_cheaper_one(self, settings, prompts, mock_llm_responses):
        # Opus standard-tier projection: 1000 * 15/1M + 3000 * 75/1M = 0.24
        monitor = CostMonitor(BudgetState(daily_limit_usd=10.0, per_call_limit_usd=0.1))
        invoker = GenerationInvoker(monitor, settings.credentials)
        chain = [ModelRoute(provider="anthropic", tier="standard", model=OPUS), CHAIN[1]]

        result = invoker.invoke(prompts, chain)

        assert isinstance(result, GenerationSuccess)
        assert result.route.model == GPT
        assert mock_llm_responses.models_called() == [GPT]


class TestCancellation:
    def test_cancelled_before_first_route(self, invoker, prompts, cancel_event, mock_llm_responses):
        cancel_event.set()

        with pytest.raises(JobCancelledError):
            invoker.invoke(prompts, CHAIN, job_id="job-1", cancel_event=cancel_event)

        assert mock_llm_responses.models_called() == []

    def test_cancel_observed_between_routes(self, invoker, prompts, cancel_event, mock_llm_responses, monkeypatch):
        original = mock_llm_responses.get_response

        def cancel_during_first_call(model):
            if model == SONNET:
                cancel_event.set()
                return RuntimeError("500 internal server error")
            return original(model)

        monkeypatch.setattr(mock_llm_responses, "get_response", cancel_during_first_call)

        with pytest.raises(JobCancelledError, match="job-1"):
            invoker.invoke(prompts, CHAIN, job_id="job-1", cancel_event=cancel_event)

        assert mock_llm_responses.models_called() == [SONNET]
