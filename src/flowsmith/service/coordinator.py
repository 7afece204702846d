"""Coordinator: the entry point that runs one job through the generation flow."""

import logging
import threading
from typing import Any, Optional

from flowsmith.catalog import NodeCatalog, StaticNodeCatalog
from flowsmith.core.budget import BudgetState
from flowsmith.core.cost_monitor import CostMonitor
from flowsmith.core.exceptions import JobCancelledError
from flowsmith.core.models import ComplexityAnalysis, Job
from flowsmith.core.settings import FlowsmithSettings, load_settings
from flowsmith.generation.complexity import analyze_complexity
from flowsmith.generation.context_builder import DocumentationContextBuilder
from flowsmith.generation.flow import create_generation_flow
from flowsmith.generation.invoker import GenerationInvoker
from flowsmith.generation.model_router import ModelRouter
from flowsmith.generation.nodes import CANCELLED, ProgressCallback
from flowsmith.generation.validator import WorkflowValidator

logger = logging.getLogger(__name__)


class Coordinator:
    """Wires the pipeline components together and runs jobs through them.

    One coordinator owns one ``BudgetState``; every job it runs shares that
    budget. Jobs may run concurrently from different threads.
    """

    def __init__(
        self,
        settings: Optional[FlowsmithSettings] = None,
        catalog: Optional[NodeCatalog] = None,
        budget: Optional[BudgetState] = None,
    ):
        self.settings = settings or load_settings()
        self.budget = budget or BudgetState(
            daily_limit_usd=self.settings.budget.daily_limit_usd,
            per_call_limit_usd=self.settings.budget.per_call_limit_usd,
            window_hours=self.settings.budget.window_hours,
        )
        self.cost_monitor = CostMonitor(self.budget, warning_ratio=self.settings.budget.warning_ratio)
        self.catalog = catalog or StaticNodeCatalog()
        self.router = ModelRouter(self.settings, self.cost_monitor)
        self.invoker = GenerationInvoker(
            self.cost_monitor,
            self.settings.credentials,
            invoker_settings=self.settings.invoker,
            prompt_settings=self.settings.prompt,
        )
        self.validator = WorkflowValidator()
        self.flow = create_generation_flow(
            self.settings,
            self.cost_monitor,
            DocumentationContextBuilder(self.catalog, self.settings.context),
            self.router,
            self.invoker,
            self.validator,
        )

    def analyze(self, job: Job) -> ComplexityAnalysis:
        """Score a job without generating anything."""
        return analyze_complexity(job, self.settings.complexity)

    def generate(
        self,
        job: Job,
        cancel_event: Optional[threading.Event] = None,
        progress_callback: Optional[ProgressCallback] = None,
        pattern_hint: Optional[str] = None,
    ) -> dict[str, Any]:
        """Run a job end to end.

        Args:
            job: Validated job
            cancel_event: Set to cancel the job between stages
            progress_callback: Called with (percent, stage) at 10/30/70/100
            pattern_hint: Workflow pattern that overrides detection

        Returns:
            Result dict with ``status`` ``completed`` (and ``workflow``),
            ``failed`` or ``cancelled`` (with ``reasonCode`` and ``error``)
        """
        shared: dict[str, Any] = {
            "job": job,
            "cancel_event": cancel_event,
            "progress_callback": progress_callback,
            "pattern_hint": pattern_hint,
        }
        logger.info(f"Generating workflow for job {job.id}")
        try:
            self.flow.run(shared)
        except JobCancelledError as e:
            logger.info(str(e))
            return {
                "jobId": job.id,
                "status": "cancelled",
                "reasonCode": CANCELLED,
                "error": str(e),
                "metadata": {"costUsd": self.cost_monitor.job_cost(job.id)},
            }
        result: dict[str, Any] = shared["result"]
        return result

    def cost_report(self) -> dict[str, Any]:
        """Budget status, cost summary and optimization recommendations."""
        return {
            "budget": self.cost_monitor.check_budget(),
            "summary": self.cost_monitor.summary(),
            "recommendations": self.cost_monitor.recommendations(),
        }
