"""Deterministic blueprint generation for recognized workflow shapes.

Matching is structural: each opportunity's declared step type is normalized
through ``STEP_TYPE_ALIASES``. One leading trigger step (webhook or schedule)
selects the trigger node, and the remaining functional sequence must equal a
registered shape in ``BLUEPRINT_SHAPES`` exactly. Anything else is a no-match.

Emission is pure. Node ids derive from position and step type, names from the
opportunities, and nothing depends on time or randomness, so the same job
always produces byte-identical JSON. HTTP nodes always carry a retry policy.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Callable, Optional

from flowsmith.core.models import AutomationOpportunity, ConnectionDraft, Job, NodeDraft, WorkflowDraft
from flowsmith.generation.utils.llm_helpers import generate_workflow_name

logger = logging.getLogger(__name__)

TRIGGER_STEP_TYPES = frozenset({"webhook", "schedule"})
DEFAULT_TRIGGER = "webhook"

STEP_TYPE_ALIASES: dict[str, str] = {
    # http
    "http": "http",
    "api": "http",
    "api_call": "http",
    "http_request": "http",
    "httprequest": "http",
    "rest": "http",
    "rest_api": "http",
    "fetch": "http",
    "request": "http",
    # transform
    "transform": "transform",
    "set": "transform",
    "map": "transform",
    "mapping": "transform",
    "data_transform": "transform",
    "format": "transform",
    "function": "transform",
    "code": "transform",
    # email
    "email": "email",
    "send_email": "email",
    "email_send": "email",
    "emailsend": "email",
    "gmail": "email",
    "smtp": "email",
    "notify": "email",
    "notification": "email",
    # sheets
    "sheets": "sheets",
    "google_sheets": "sheets",
    "googlesheets": "sheets",
    "spreadsheet": "sheets",
    "sheets_append": "sheets",
    # triggers
    "webhook": "webhook",
    "webhook_trigger": "webhook",
    "schedule": "schedule",
    "schedule_trigger": "schedule",
    "cron": "schedule",
    "timer": "schedule",
}

BLUEPRINT_SHAPES: dict[str, tuple[str, ...]] = {
    "api-fetch-transform": ("http", "transform"),
    "api-notify": ("http", "email"),
    "transform-notify": ("transform", "email"),
    "sheets-append": ("transform", "sheets"),
    "http-only": ("http",),
    "api-transform-notify": ("http", "transform", "email"),
}

HTTP_RETRY_OPTIONS = {"retryOnFail": True, "maxTries": 3, "waitBetweenTries": 1000}


def normalize_step_type(step_type: Optional[str]) -> Optional[str]:
    """Map a declared step type onto its canonical form, or None if unknown."""
    if not step_type:
        return None
    key = step_type.strip().lower().replace("-", "_").replace(" ", "_")
    return STEP_TYPE_ALIASES.get(key)


@dataclass(frozen=True)
class BlueprintMatch:
    """A job's opportunities matched against a registered shape."""

    blueprint: str
    trigger: str
    steps: tuple[tuple[str, AutomationOpportunity], ...]


def match_blueprint(job: Job) -> Optional[BlueprintMatch]:
    """Match a job's declared step types against the registered shapes."""
    steps: list[tuple[str, AutomationOpportunity]] = []
    for op in job.automation_opportunities:
        step = normalize_step_type(op.step_type)
        if step is None:
            return None
        steps.append((step, op))
    if not steps:
        return None

    trigger = DEFAULT_TRIGGER
    if steps[0][0] in TRIGGER_STEP_TYPES:
        trigger = steps[0][0]
        steps = steps[1:]

    functional = tuple(step for step, _ in steps)
    for name, shape in BLUEPRINT_SHAPES.items():
        if functional == shape:
            return BlueprintMatch(blueprint=name, trigger=trigger, steps=tuple(steps))
    return None


def _label(op: AutomationOpportunity, fallback: str) -> str:
    title = (op.title or "").strip()
    return f"{fallback} - {title}"[:80] if title else fallback


def _trigger_node(trigger: str, workflow_name: str) -> NodeDraft:
    if trigger == "schedule":
        return NodeDraft(
            id="trigger_schedule",
            type="n8n-nodes-base.scheduleTrigger",
            name="Schedule Trigger",
            parameters={"rule": {"interval": [{"field": "hours", "hoursInterval": 1}]}},
        )
    return NodeDraft(
        id="trigger_webhook",
        type="n8n-nodes-base.webhook",
        name="Webhook Trigger",
        parameters={
            "path": workflow_name,
            "httpMethod": "POST",
            "responseMode": "onReceived",
            "responseCode": 200,
        },
    )


def _http_node(node_id: str, op: AutomationOpportunity) -> NodeDraft:
    return NodeDraft(
        id=node_id,
        type="n8n-nodes-base.httpRequest",
        name=_label(op, "HTTP Request"),
        parameters={
            "method": "GET",
            "url": "={{ $env.API_URL }}",
            "authentication": "genericCredentialType",
            "genericAuthType": "httpHeaderAuth",
            "options": dict(HTTP_RETRY_OPTIONS, timeout=30000),
        },
    )


def _transform_node(node_id: str, op: AutomationOpportunity) -> NodeDraft:
    return NodeDraft(
        id=node_id,
        type="n8n-nodes-base.set",
        name=_label(op, "Transform Data"),
        parameters={
            "mode": "manual",
            "includeOtherFields": True,
            "assignments": {"assignments": [{"name": "processedAt", "value": "={{ $now.toISO() }}", "type": "string"}]},
        },
    )


def _email_node(node_id: str, op: AutomationOpportunity) -> NodeDraft:
    return NodeDraft(
        id=node_id,
        type="n8n-nodes-base.emailSend",
        name=_label(op, "Send Email"),
        parameters={
            "fromEmail": "={{ $env.EMAIL_FROM }}",
            "toEmail": "={{ $env.EMAIL_TO }}",
            "subject": (op.title or "Automation update")[:120],
            "emailFormat": "text",
            "text": "={{ JSON.stringify($json, null, 2) }}",
        },
    )


def _sheets_node(node_id: str, op: AutomationOpportunity) -> NodeDraft:
    return NodeDraft(
        id=node_id,
        type="n8n-nodes-base.googleSheets",
        name=_label(op, "Append Row"),
        parameters={
            "operation": "append",
            "documentId": {"mode": "id", "value": "={{ $env.SHEETS_ID }}"},
            "sheetName": {"mode": "name", "value": "Sheet1"},
            "columns": {"mappingMode": "autoMapInputData"},
        },
    )


STEP_BUILDERS: dict[str, Callable[[str, AutomationOpportunity], NodeDraft]] = {
    "http": _http_node,
    "transform": _transform_node,
    "email": _email_node,
    "sheets": _sheets_node,
}


def _dedupe_names(nodes: Sequence[NodeDraft]) -> list[NodeDraft]:
    seen: dict[str, int] = {}
    result = []
    for node in nodes:
        count = seen.get(node.name, 0) + 1
        seen[node.name] = count
        result.append(node if count == 1 else node.model_copy(update={"name": f"{node.name} {count}"}))
    return result


def generate_blueprint(job: Job) -> Optional[WorkflowDraft]:
    """Emit a workflow for a job whose steps match a registered shape.

    Returns:
        WorkflowDraft with one trigger plus one node per functional step, or
        None when the job does not match any shape
    """
    match = match_blueprint(job)
    if match is None:
        logger.debug(f"No blueprint matches job {job.id}")
        return None

    workflow_name = generate_workflow_name(job.process_description)
    nodes = [_trigger_node(match.trigger, workflow_name)]
    for position, (step, op) in enumerate(match.steps, start=1):
        nodes.append(STEP_BUILDERS[step](f"step_{position}_{step}", op))
    nodes = _dedupe_names(nodes)

    connections = [ConnectionDraft(from_node=a.id, to_node=b.id) for a, b in zip(nodes, nodes[1:])]
    metadata: dict[str, Any] = {"generationPath": "blueprint", "blueprint": match.blueprint}

    logger.info(f"Job {job.id} matched blueprint '{match.blueprint}' ({len(nodes)} nodes)")
    return WorkflowDraft(name=workflow_name, nodes=nodes, connections=connections, metadata=metadata)
