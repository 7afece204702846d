"""Cost tracking and budget enforcement for generation calls."""

import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Any, Literal, Optional

from flowsmith.core.budget import BudgetState
from flowsmith.core.llm_pricing import calculate_llm_cost, project_call_cost
from flowsmith.core.models import GenerationAttempt

logger = logging.getLogger(__name__)

RejectionReason = Literal["per_call_limit", "daily_limit", "unknown_pricing"]

# Recommendation thresholds
HIGH_AVERAGE_ADVANCED_COST_USD = 0.50
SIMPLE_SHARE_FOR_STANDARD_DEFAULT = 0.6
MAX_RECORDED_ATTEMPTS = 1000


@dataclass(frozen=True)
class Authorization:
    """Outcome of a pre-call budget check."""

    approved: bool
    model: str
    projected_cost_usd: float
    reason: Optional[RejectionReason] = None


class CostMonitor:
    """Computes call costs, authorizes calls against budgets and keeps the attempt log."""

    def __init__(self, budget: BudgetState, warning_ratio: float = 0.8):
        self.budget = budget
        self.warning_ratio = warning_ratio
        self._attempts: deque[GenerationAttempt] = deque(maxlen=MAX_RECORDED_ATTEMPTS)
        self._lock = threading.Lock()
        self._warned = False

    def calculate_cost(self, model: str, prompt_tokens: int, completion_tokens: int) -> float:
        """Actual cost of a finished call, in USD."""
        cost: float = calculate_llm_cost(model, prompt_tokens, completion_tokens)["total_cost_usd"]
        return cost

    def authorize(self, model: str, prompt_tokens: int, max_output_tokens: int) -> Authorization:
        """Check the per-call and daily budgets before a call and reserve its projected cost.

        An approved authorization holds a reservation that must be passed back
        to ``record`` (after the call) or ``release`` (if the call is skipped).
        """
        try:
            projected = project_call_cost(model, prompt_tokens, max_output_tokens)
        except ValueError as e:
            logger.warning(f"Cannot price model '{model}': {e}")
            return Authorization(False, model, 0.0, "unknown_pricing")

        if projected > self.budget.per_call_limit_usd:
            logger.info(
                f"Rejected call to {model}: projected ${projected:.4f} exceeds "
                f"per-call limit ${self.budget.per_call_limit_usd:.2f}"
            )
            return Authorization(False, model, projected, "per_call_limit")

        if not self.budget.try_reserve(projected):
            logger.info(f"Rejected call to {model}: daily budget ${self.budget.daily_limit_usd:.2f} is committed")
            return Authorization(False, model, projected, "daily_limit")

        return Authorization(True, model, projected)

    def release(self, authorization: Authorization) -> None:
        if authorization.approved:
            self.budget.release(authorization.projected_cost_usd)

    def record(self, attempt: GenerationAttempt, authorization: Optional[Authorization] = None) -> None:
        """Append an attempt to the log and settle its reservation with the actual cost."""
        if authorization is not None and authorization.approved:
            self.budget.settle(authorization.projected_cost_usd, attempt.cost_usd)
        elif attempt.cost_usd > 0:
            self.budget.record_spend(attempt.cost_usd)

        with self._lock:
            self._attempts.append(attempt)

        logger.info(
            f"Generation attempt: {attempt.provider}/{attempt.model} tier={attempt.tier} "
            f"outcome={attempt.outcome} tokens={attempt.prompt_tokens}+{attempt.completion_tokens} "
            f"cost=${attempt.cost_usd:.6f}",
            extra={"job_id": attempt.job_id, "complexity": attempt.complexity},
        )
        self._warn_if_near_limit()

    def _warn_if_near_limit(self) -> None:
        spend = self.budget.daily_spend_usd
        limit = self.budget.daily_limit_usd
        if limit <= 0:
            if not self._warned:
                logger.warning("Daily budget is $0.00; every model call will be refused")
                self._warned = True
            return
        if spend >= limit * self.warning_ratio:
            if not self._warned:
                logger.warning(f"Daily spend ${spend:.4f} is at {spend / limit:.0%} of the ${limit:.2f} budget")
                self._warned = True
        else:
            self._warned = False

    def advanced_tier_allowed(self) -> bool:
        """The advanced tier is off limits once the daily budget is spent."""
        return not self.budget.is_exhausted()

    def attempts(self) -> list[GenerationAttempt]:
        with self._lock:
            return list(self._attempts)

    def job_attempts(self, job_id: str) -> list[GenerationAttempt]:
        return [a for a in self.attempts() if a.job_id == job_id]

    def job_cost(self, job_id: str) -> float:
        """Total cost of every attempt recorded for one job."""
        return round(sum(a.cost_usd for a in self.job_attempts(job_id)), 6)

    def check_budget(self) -> dict[str, Any]:
        """Current budget status with human-readable warnings."""
        spend = self.budget.daily_spend_usd
        limit = self.budget.daily_limit_usd
        warnings = []
        if limit <= 0:
            warnings.append("Daily budget is $0.00; model generation is disabled")
        elif spend > limit:
            warnings.append(f"Daily budget ${limit:.2f} exceeded! Current: ${spend:.5f}")
        elif spend > limit * self.warning_ratio:
            warnings.append(f"Daily usage ${spend:.5f} approaching budget ${limit:.2f}")

        return {
            "within_budget": spend < limit,
            "warnings": warnings,
            "daily_total_usd": spend,
            "daily_limit_usd": limit,
            "per_call_limit_usd": self.budget.per_call_limit_usd,
            "reserved_usd": self.budget.reserved_usd,
        }

    def summary(self) -> dict[str, Any]:
        """Totals plus per-model and per-complexity breakdowns of recorded attempts."""
        attempts = [a for a in self.attempts() if a.outcome != "skipped"]
        if not attempts:
            return {
                "total_calls": 0,
                "total_cost_usd": 0.0,
                "average_cost_usd": 0.0,
                "model_breakdown": {},
                "complexity_breakdown": {},
            }

        total_cost = sum(a.cost_usd for a in attempts)
        model_breakdown: dict[str, dict[str, Any]] = {}
        complexity_breakdown: dict[str, dict[str, Any]] = {}
        for attempt in attempts:
            _accumulate(model_breakdown, attempt.model, attempt.cost_usd)
            _accumulate(complexity_breakdown, attempt.complexity or "unknown", attempt.cost_usd)

        return {
            "total_calls": len(attempts),
            "total_cost_usd": round(total_cost, 6),
            "average_cost_usd": round(total_cost / len(attempts), 6),
            "model_breakdown": model_breakdown,
            "complexity_breakdown": complexity_breakdown,
            "time_range": {"start": attempts[0].recorded_at, "end": attempts[-1].recorded_at},
        }

    def recommendations(self) -> list[dict[str, str]]:
        """Cost optimization hints derived from the attempt log."""
        attempts = [a for a in self.attempts() if a.outcome != "skipped"]
        if not attempts:
            return []

        recommendations = []
        advanced = [a for a in attempts if a.tier == "advanced"]
        if advanced:
            average = sum(a.cost_usd for a in advanced) / len(advanced)
            if average > HIGH_AVERAGE_ADVANCED_COST_USD:
                recommendations.append(
                    {
                        "type": "cost-reduction",
                        "message": f"Advanced tier averaging ${average:.3f} per call - consider reducing context size",
                        "action": "reduce-context",
                    }
                )

        simple_share = sum(1 for a in attempts if a.complexity == "simple") / len(attempts)
        if simple_share > SIMPLE_SHARE_FOR_STANDARD_DEFAULT:
            recommendations.append(
                {
                    "type": "model-optimization",
                    "message": f"{simple_share:.0%} simple workflows - consider defaulting to the standard tier",
                    "action": "prefer-standard",
                }
            )
        return recommendations


def _accumulate(breakdown: dict[str, dict[str, Any]], key: str, cost: float) -> None:
    entry = breakdown.setdefault(key, {"calls": 0, "cost_usd": 0.0})
    entry["calls"] += 1
    entry["cost_usd"] = round(entry["cost_usd"] + cost, 6)
