"""Generation invoker: walks the route chain until one provider call succeeds.

Every route is attempted at most once, in chain order. Before each route the
invoker checks for cancellation and asks the cost monitor to authorize the
projected cost. Calls run in a worker thread with a hard timeout; on timeout
the in-flight call is abandoned and the chain advances. Every attempt,
including budget-skipped routes, is recorded with the cost monitor.

Results are tagged values rather than exceptions:

- ``GenerationSuccess`` when a route returned text
- ``ChainExhausted`` with one tagged failure per route otherwise
"""

import logging
import threading
import time
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import Any, Optional, Union

import llm

from flowsmith.core.cost_monitor import Authorization, CostMonitor
from flowsmith.core.exceptions import JobCancelledError
from flowsmith.core.models import AttemptOutcome, Classification, GenerationAttempt, Tier
from flowsmith.core.settings import InvokerSettings, PromptSettings
from flowsmith.generation.error_handler import ErrorCategory, ProviderError, classify_error
from flowsmith.generation.model_router import ModelRoute
from flowsmith.generation.prompt_builder import PromptPayload, estimate_tokens
from flowsmith.generation.utils.llm_helpers import response_text, response_usage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationSuccess:
    route: ModelRoute
    text: str
    prompt_tokens: int
    completion_tokens: int
    cost_usd: float
    duration_ms: float


@dataclass(frozen=True)
class GenerationTimeout:
    route: ModelRoute
    timeout_seconds: float


@dataclass(frozen=True)
class ProviderFailure:
    route: ModelRoute
    code: str
    message: str
    error: Optional[ProviderError] = field(default=None, compare=False)


@dataclass(frozen=True)
class RateLimited:
    route: ModelRoute
    message: str
    error: Optional[ProviderError] = field(default=None, compare=False)


@dataclass(frozen=True)
class BudgetRejected:
    route: ModelRoute
    reason: str
    projected_cost_usd: float


RouteFailure = Union[GenerationTimeout, ProviderFailure, RateLimited, BudgetRejected]


@dataclass(frozen=True)
class ChainExhausted:
    failures: tuple[RouteFailure, ...]

    @property
    def all_budget_rejected(self) -> bool:
        """True when every route was refused by the budget (and at least one existed)."""
        return bool(self.failures) and all(isinstance(f, BudgetRejected) for f in self.failures)


GenerationResult = Union[GenerationSuccess, ChainExhausted]


def describe_failure(failure: RouteFailure) -> dict[str, Any]:
    """Plain-dict form of a route failure for job results."""
    data: dict[str, Any] = {"route": str(failure.route)}
    if isinstance(failure, GenerationTimeout):
        data.update(kind="timeout", message=f"No response within {failure.timeout_seconds:g}s")
    elif isinstance(failure, BudgetRejected):
        data.update(kind="budget_rejected", message=f"Projected ${failure.projected_cost_usd:.4f} ({failure.reason})")
    else:
        data["kind"] = "rate_limited" if isinstance(failure, RateLimited) else "error"
        if failure.error is not None:
            data.update(failure.error.to_dict())
        else:
            data["message"] = failure.message
    return data


@dataclass(frozen=True)
class _CallOutput:
    text: str
    prompt_tokens: int
    completion_tokens: int


class GenerationInvoker:
    """Calls LLM providers through the ``llm`` library along a route chain."""

    def __init__(
        self,
        cost_monitor: CostMonitor,
        credentials: Mapping[str, str],
        invoker_settings: Optional[InvokerSettings] = None,
        prompt_settings: Optional[PromptSettings] = None,
    ):
        self.cost_monitor = cost_monitor
        self.credentials = credentials
        self.invoker_settings = invoker_settings or InvokerSettings()
        self.prompt_settings = prompt_settings or PromptSettings()

    @property
    def timeout_seconds(self) -> float:
        return self.invoker_settings.timeout_seconds

    def invoke(
        self,
        prompts: Mapping[Tier, PromptPayload],
        chain: list[ModelRoute],
        job_id: Optional[str] = None,
        complexity: Optional[Classification] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> GenerationResult:
        """Attempt each route in order until one returns text.

        Args:
            prompts: Rendered prompt per tier; routes whose tier has no prompt are skipped
            chain: Ordered routes from the model router
            job_id: Job id for attempt records
            complexity: Job classification for attempt records
            cancel_event: Set when the job is cancelled

        Raises:
            JobCancelledError: If cancellation is observed before a route
        """
        failures: list[RouteFailure] = []
        for route in chain:
            if cancel_event is not None and cancel_event.is_set():
                raise JobCancelledError(job_id or "unknown", stage=f"route {route}")

            payload = prompts.get(route.tier)
            if payload is None:
                logger.debug(f"No prompt for tier '{route.tier}', skipping {route}")
                continue

            max_output = self.prompt_settings.output_ceiling(route.tier)
            authorization = self.cost_monitor.authorize(route.model, payload.estimated_tokens, max_output)
            if not authorization.approved:
                failures.append(
                    BudgetRejected(route, authorization.reason or "rejected", authorization.projected_cost_usd)
                )
                self._record(route, payload, "skipped", 0, 0.0, 0.0, job_id, complexity, authorization.reason)
                continue

            result = self._attempt(route, payload, max_output, authorization, job_id, complexity)
            if isinstance(result, GenerationSuccess):
                return result
            failures.append(result)

        logger.warning(f"All {len(chain)} routes failed for job {job_id}")
        return ChainExhausted(failures=tuple(failures))

    def _attempt(
        self,
        route: ModelRoute,
        payload: PromptPayload,
        max_output: int,
        authorization: Authorization,
        job_id: Optional[str],
        complexity: Optional[Classification],
    ) -> Union[GenerationSuccess, RouteFailure]:
        started = time.perf_counter()
        # Do not use `with ThreadPoolExecutor`: its __exit__ waits for the
        # abandoned call to finish, which would defeat the timeout.
        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="flowsmith-llm")
        future = pool.submit(self._call_provider, route, payload, max_output)
        try:
            output = future.result(timeout=self.timeout_seconds)
        except FutureTimeoutError:
            duration_ms = (time.perf_counter() - started) * 1000
            # Charged at prompt-input cost: the provider has consumed the prompt
            cost = self._safe_cost(route.model, payload.estimated_tokens, 0)
            logger.warning(f"{route} timed out after {self.timeout_seconds}s")
            self._record(route, payload, "timeout", 0, cost, duration_ms, job_id, complexity, None, authorization)
            return GenerationTimeout(route, self.timeout_seconds)
        except Exception as e:
            duration_ms = (time.perf_counter() - started) * 1000
            return self._failure(route, payload, e, duration_ms, job_id, complexity, authorization)
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        duration_ms = (time.perf_counter() - started) * 1000
        cost = self._safe_cost(route.model, output.prompt_tokens, output.completion_tokens)
        self._record(
            route,
            payload,
            "success",
            output.completion_tokens,
            cost,
            duration_ms,
            job_id,
            complexity,
            None,
            authorization,
            prompt_tokens=output.prompt_tokens,
        )
        return GenerationSuccess(
            route=route,
            text=output.text,
            prompt_tokens=output.prompt_tokens,
            completion_tokens=output.completion_tokens,
            cost_usd=cost,
            duration_ms=duration_ms,
        )

    def _call_provider(self, route: ModelRoute, payload: PromptPayload, max_output: int) -> _CallOutput:
        """Make the provider call. Runs in the worker thread; exceptions propagate."""
        model = llm.get_model(route.model)
        response = model.prompt(
            payload.text,
            key=self.credentials.get(route.provider),
            temperature=self.invoker_settings.temperature,
            max_tokens=max_output,
        )
        # CRITICAL: text() forces evaluation of the lazy response
        text = response_text(response)
        input_tokens, output_tokens = response_usage(response)
        return _CallOutput(
            text=text,
            prompt_tokens=input_tokens or payload.estimated_tokens,
            completion_tokens=output_tokens or estimate_tokens(text),
        )

    def _failure(
        self,
        route: ModelRoute,
        payload: PromptPayload,
        exc: Exception,
        duration_ms: float,
        job_id: Optional[str],
        complexity: Optional[Classification],
        authorization: Authorization,
    ) -> RouteFailure:
        error = classify_error(exc, context=str(route))
        logger.warning(f"{route} failed ({error.category.value}): {error.message}")

        failure: RouteFailure
        outcome: AttemptOutcome
        if error.category == ErrorCategory.QUOTA_LIMIT:
            failure, outcome = RateLimited(route, error.message, error), "rate_limited"
        elif error.is_timeout:
            failure, outcome = GenerationTimeout(route, self.timeout_seconds), "timeout"
        else:
            failure, outcome = ProviderFailure(route, error.category.value, error.message, error), "error"

        self._record(route, payload, outcome, 0, 0.0, duration_ms, job_id, complexity, error.category.value, authorization)
        return failure

    def _safe_cost(self, model: str, prompt_tokens: int, completion_tokens: int) -> float:
        try:
            return self.cost_monitor.calculate_cost(model, prompt_tokens, completion_tokens)
        except ValueError as e:
            logger.warning(f"Cannot price model '{model}': {e}")
            return 0.0

    def _record(
        self,
        route: ModelRoute,
        payload: PromptPayload,
        outcome: AttemptOutcome,
        completion_tokens: int,
        cost: float,
        duration_ms: float,
        job_id: Optional[str],
        complexity: Optional[Classification],
        detail: Optional[str],
        authorization: Optional[Authorization] = None,
        prompt_tokens: Optional[int] = None,
    ) -> None:
        attempt = GenerationAttempt(
            tier=route.tier,
            provider=route.provider,
            model=route.model,
            prompt_tokens=prompt_tokens if prompt_tokens is not None else payload.estimated_tokens,
            completion_tokens=completion_tokens,
            cost_usd=cost,
            duration_ms=round(duration_ms, 2),
            outcome=outcome,
            job_id=job_id,
            complexity=complexity,
            detail=detail,
        )
        self.cost_monitor.record(attempt, authorization)
