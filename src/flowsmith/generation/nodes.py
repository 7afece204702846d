"""Pipeline nodes for the generation flow.

Each node reads what it needs from the shared store in ``prep``, does its work
in ``exec`` and routes with the action string returned from ``post``.

Shared store keys:

- ``job``, ``cancel_event``, ``progress_callback`` (inputs)
- ``analysis``, ``documentation``, ``routes``, ``prompts`` (intermediate)
- ``draft``, ``generation``, ``generation_path``, ``validation`` (outputs)
- ``blueprint_attempted``, ``pending_failure``, ``failure``, ``route_failures`` (path bookkeeping)
- ``result`` (final output, set by ``ResultNode``)
"""

import logging
import threading
from typing import Any, Callable, Optional

from flowsmith.core.cost_monitor import CostMonitor
from flowsmith.core.exceptions import JobCancelledError, PromptBudgetError
from flowsmith.core.models import ComplexityAnalysis, Job, Tier
from flowsmith.core.security_utils import redact_parameters
from flowsmith.core.settings import FlowsmithSettings
from flowsmith.generation.blueprints import generate_blueprint
from flowsmith.generation.complexity import analyze_complexity
from flowsmith.generation.context_builder import DocumentationContextBuilder
from flowsmith.generation.invoker import ChainExhausted, GenerationInvoker, GenerationSuccess, describe_failure
from flowsmith.generation.model_router import ModelRouter
from flowsmith.generation.prompt_builder import PromptBuilder, PromptPayload
from flowsmith.generation.utils.llm_helpers import generate_workflow_name
from flowsmith.generation.validator import WorkflowValidator
from pocketflow import Node

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, str], None]

# Machine-readable reasons a job can fail with
NO_BLUEPRINT_MATCH = "no_blueprint_match"
CHAIN_EXHAUSTED = "chain_exhausted"
BUDGET_EXCEEDED = "budget_exceeded"
VALIDATION_FAILED = "validation_failed"
CANCELLED = "cancelled"


def check_cancelled(shared: dict[str, Any], stage: str) -> None:
    """Raise JobCancelledError if the job's cancel event is set."""
    event: Optional[threading.Event] = shared.get("cancel_event")
    if event is not None and event.is_set():
        job: Job = shared["job"]
        raise JobCancelledError(job.id, stage=stage)


def report_progress(shared: dict[str, Any], percent: int, stage: str) -> None:
    callback: Optional[ProgressCallback] = shared.get("progress_callback")
    if callback is not None:
        callback(percent, stage)


def fail_or_fallback(shared: dict[str, Any], reason_code: str, message: str) -> str:
    """Fall back to the blueprint path once; fail the job if it was already tried."""
    failure = {"reason_code": reason_code, "message": message}
    if shared.get("blueprint_attempted"):
        shared["failure"] = failure
        return "failed"
    shared["pending_failure"] = failure
    return "blueprint"


class ComplexityAnalysisNode(Node):
    """Scores the job and picks the first path.

    Simple jobs try the blueprint path first. Complex jobs go straight to the
    model path unless ``blueprint_for_complex`` is enabled.
    """

    def __init__(self, settings: FlowsmithSettings) -> None:
        super().__init__()
        self.settings = settings

    def prep(self, shared: dict[str, Any]) -> Job:
        check_cancelled(shared, "complexity analysis")
        job: Job = shared["job"]
        return job

    def exec(self, prep_res: Job) -> ComplexityAnalysis:
        return analyze_complexity(prep_res, self.settings.complexity)

    def post(self, shared: dict[str, Any], prep_res: Job, exec_res: ComplexityAnalysis) -> str:
        shared["analysis"] = exec_res
        logger.info(f"Job {prep_res.id} scored {exec_res.score} ({exec_res.classification})")
        report_progress(shared, 10, "analyzed")

        if exec_res.is_complex and not self.settings.features.blueprint_for_complex:
            return "model"
        return "blueprint"


class BlueprintNode(Node):
    """Emits a deterministic workflow when the job matches a registered shape."""

    def prep(self, shared: dict[str, Any]) -> Job:
        check_cancelled(shared, "blueprint generation")
        job: Job = shared["job"]
        return job

    def exec(self, prep_res: Job) -> Optional[dict[str, Any]]:
        draft = generate_blueprint(prep_res)
        return draft.to_dict() if draft is not None else None

    def post(self, shared: dict[str, Any], prep_res: Job, exec_res: Optional[dict[str, Any]]) -> str:
        shared["blueprint_attempted"] = True

        if exec_res is not None:
            shared["draft"] = exec_res
            shared["generation_path"] = "blueprint"
            report_progress(shared, 70, "generated")
            return "validate"

        pending = shared.pop("pending_failure", None)
        if pending is not None:
            # Model path already failed; the blueprint was the last resort
            shared["failure"] = pending
            return "failed"
        logger.debug(f"No blueprint for job {prep_res.id}, continuing with model generation")
        return "model"


class ContextAssemblyNode(Node):
    """Collects node documentation sized to the job's complexity."""

    def __init__(self, builder: DocumentationContextBuilder) -> None:
        super().__init__()
        self.builder = builder

    def prep(self, shared: dict[str, Any]) -> dict[str, Any]:
        check_cancelled(shared, "context assembly")
        return {"job": shared["job"], "analysis": shared["analysis"], "pattern_hint": shared.get("pattern_hint")}

    def exec(self, prep_res: dict[str, Any]) -> Any:
        return self.builder.build(prep_res["job"], prep_res["analysis"], pattern_hint=prep_res["pattern_hint"])

    def post(self, shared: dict[str, Any], prep_res: dict[str, Any], exec_res: Any) -> str:
        shared["documentation"] = exec_res
        report_progress(shared, 30, "context_ready")
        return ""


class ModelSelectionNode(Node):
    """Builds the provider route chain for the recommended tier."""

    def __init__(self, router: ModelRouter) -> None:
        super().__init__()
        self.router = router

    def prep(self, shared: dict[str, Any]) -> ComplexityAnalysis:
        analysis: ComplexityAnalysis = shared["analysis"]
        return analysis

    def exec(self, prep_res: ComplexityAnalysis) -> list[Any]:
        return self.router.route(prep_res.recommended_tier)

    def post(self, shared: dict[str, Any], prep_res: ComplexityAnalysis, exec_res: list[Any]) -> str:
        if not exec_res:
            return fail_or_fallback(shared, NO_BLUEPRINT_MATCH, "No model provider is configured")
        shared["routes"] = exec_res
        return "prompt"


class PromptBuildingNode(Node):
    """Renders one prompt per tier in the route chain.

    A tier whose prompt cannot fit its ceiling is dropped along with its
    routes. If no tier remains, the job is forced onto the blueprint path.
    """

    def __init__(self, builder: PromptBuilder) -> None:
        super().__init__()
        self.builder = builder

    def prep(self, shared: dict[str, Any]) -> dict[str, Any]:
        check_cancelled(shared, "prompt building")
        return {
            "job": shared["job"],
            "analysis": shared["analysis"],
            "documentation": shared["documentation"],
            "routes": shared["routes"],
        }

    def exec(self, prep_res: dict[str, Any]) -> dict[Tier, PromptPayload]:
        prompts: dict[Tier, PromptPayload] = {}
        for tier in dict.fromkeys(route.tier for route in prep_res["routes"]):
            try:
                prompts[tier] = self.builder.build(
                    prep_res["job"], prep_res["analysis"], prep_res["documentation"], tier
                )
            except PromptBudgetError as e:
                logger.warning(f"Dropping tier '{tier}': {e}")
        return prompts

    def post(self, shared: dict[str, Any], prep_res: dict[str, Any], exec_res: dict[Tier, PromptPayload]) -> str:
        routes = [route for route in prep_res["routes"] if route.tier in exec_res]
        if not routes:
            return fail_or_fallback(
                shared, NO_BLUEPRINT_MATCH, "No tier could fit the prompt within its token ceiling"
            )
        shared["prompts"] = exec_res
        shared["routes"] = routes
        return "generate"


class GenerationNode(Node):
    """Walks the route chain through the generation invoker."""

    def __init__(self, invoker: GenerationInvoker) -> None:
        super().__init__()
        self.invoker = invoker

    def prep(self, shared: dict[str, Any]) -> dict[str, Any]:
        return {
            "job": shared["job"],
            "analysis": shared["analysis"],
            "prompts": shared["prompts"],
            "routes": shared["routes"],
            "cancel_event": shared.get("cancel_event"),
        }

    def exec(self, prep_res: dict[str, Any]) -> Any:
        job: Job = prep_res["job"]
        return self.invoker.invoke(
            prep_res["prompts"],
            prep_res["routes"],
            job_id=job.id,
            complexity=prep_res["analysis"].classification,
            cancel_event=prep_res["cancel_event"],
        )

    def post(self, shared: dict[str, Any], prep_res: dict[str, Any], exec_res: Any) -> str:
        if isinstance(exec_res, GenerationSuccess):
            shared["generation"] = exec_res
            shared["generation_path"] = "model"
            report_progress(shared, 70, "generated")
            return "validate"

        assert isinstance(exec_res, ChainExhausted)
        shared["route_failures"] = exec_res.failures
        if exec_res.all_budget_rejected:
            return fail_or_fallback(shared, BUDGET_EXCEEDED, "Every model route would exceed the cost budget")
        kinds = ", ".join(f"{f.route}: {type(f).__name__}" for f in exec_res.failures)
        return fail_or_fallback(shared, CHAIN_EXHAUSTED, f"All model routes failed ({kinds})")


class ValidationNode(Node):
    """Validates (and repairs) the draft from either path."""

    def __init__(self, validator: WorkflowValidator) -> None:
        super().__init__()
        self.validator = validator

    def prep(self, shared: dict[str, Any]) -> dict[str, Any]:
        check_cancelled(shared, "validation")
        generation = shared.get("generation")
        job: Job = shared["job"]
        return {
            "path": shared["generation_path"],
            "draft": shared.get("draft"),
            "text": generation.text if generation is not None else None,
            "default_name": generate_workflow_name(job.process_description),
        }

    def exec(self, prep_res: dict[str, Any]) -> Any:
        if prep_res["path"] == "model":
            return self.validator.validate_text(prep_res["text"], default_name=prep_res["default_name"])
        return self.validator.validate(prep_res["draft"])

    def post(self, shared: dict[str, Any], prep_res: dict[str, Any], exec_res: Any) -> str:
        shared["validation"] = exec_res.result
        if exec_res.valid:
            shared["workflow"] = exec_res.workflow
            return ""

        codes = ", ".join(issue.code for issue in exec_res.result.errors)
        shared["failure"] = {"reason_code": VALIDATION_FAILED, "message": f"Workflow failed validation: {codes}"}
        if exec_res.draft is not None:
            shared["rejected_draft"] = redact_parameters(exec_res.draft)
        return ""


class ResultNode(Node):
    """Assembles the job result from the shared store.

    Every path ends here. A failed job never carries a workflow; the redacted
    rejected draft is included for diagnosis only.
    """

    def __init__(self, cost_monitor: CostMonitor) -> None:
        super().__init__()
        self.cost_monitor = cost_monitor

    def prep(self, shared: dict[str, Any]) -> dict[str, Any]:
        return shared

    def exec(self, prep_res: dict[str, Any]) -> dict[str, Any]:
        job: Job = prep_res["job"]
        analysis: Optional[ComplexityAnalysis] = prep_res.get("analysis")
        documentation = prep_res.get("documentation")
        validation = prep_res.get("validation")
        generation = prep_res.get("generation")

        job_attempts = self.cost_monitor.job_attempts(job.id)
        cost = round(sum(a.cost_usd for a in job_attempts), 6)

        metadata: dict[str, Any] = {
            "generationPath": prep_res.get("generation_path"),
            "complexityScore": analysis.score if analysis else None,
            "complexity": analysis.classification if analysis else None,
            "costUsd": cost,
            "documentationDegraded": bool(documentation and documentation.degraded),
            "attempts": len(job_attempts),
        }
        if isinstance(generation, GenerationSuccess):
            metadata["modelUsed"] = generation.route.model
            metadata["tier"] = generation.route.tier
        if documentation is not None:
            metadata["pattern"] = documentation.pattern.name

        result: dict[str, Any] = {"jobId": job.id, "metadata": metadata}
        if validation is not None:
            result["validation"] = validation.to_dict()

        failure = prep_res.get("failure")
        if failure is not None:
            result.update(status="failed", reasonCode=failure["reason_code"], error=failure["message"])
            if "rejected_draft" in prep_res:
                result["rejectedDraft"] = prep_res["rejected_draft"]
            if prep_res.get("route_failures"):
                result["routeFailures"] = [describe_failure(f) for f in prep_res["route_failures"]]
            return result

        workflow = prep_res["workflow"].to_dict()
        workflow["metadata"] = {**workflow.get("metadata", {}), **metadata}
        result.update(status="completed", workflow=workflow)
        return result

    def post(self, shared: dict[str, Any], prep_res: dict[str, Any], exec_res: dict[str, Any]) -> str:
        shared["result"] = exec_res
        report_progress(shared, 100, exec_res["status"])
        if exec_res["status"] == "failed":
            logger.warning(f"Job {exec_res['jobId']} failed: {exec_res['reasonCode']} ({exec_res['error']})")
        else:
            logger.info(f"Job {exec_res['jobId']} completed via {exec_res['metadata']['generationPath']} path")
        return exec_res["status"]
