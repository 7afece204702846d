"""Workflow validation with bounded automatic repair.

Checks run in a fixed order:

1. schema: ``WORKFLOW_SCHEMA``, duplicate node ids, connection endpoints
2. security: literal credentials in parameters, HTTP nodes without a retry policy
3. referential integrity: no orphan nodes unless the workflow has a single node

Every issue code with a registered repair is repaired at most once per
validation pass, in ``REPAIRS`` order, then the checks run once more.
Whatever remains is terminal and reported itemized. Literal secrets, unknown
connection endpoints and orphan nodes have no repair.
"""

import copy
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from pydantic import ValidationError as PydanticValidationError

from flowsmith.core.models import RepairRecord, ValidationIssue, ValidationResult, WorkflowDraft
from flowsmith.core.security_utils import find_literal_secrets
from flowsmith.core.workflow_schema import schema_issues
from flowsmith.generation.blueprints import HTTP_RETRY_OPTIONS
from flowsmith.generation.utils.llm_helpers import parse_workflow_output

logger = logging.getLogger(__name__)


def _nodes(draft: dict[str, Any]) -> list[dict[str, Any]]:
    nodes = draft.get("nodes")
    if not isinstance(nodes, list):
        return []
    return [node for node in nodes if isinstance(node, dict)]


def _node_id(node: dict[str, Any]) -> Optional[str]:
    node_id = node.get("id")
    return node_id if isinstance(node_id, str) else None


def is_http_node(node: dict[str, Any]) -> bool:
    node_type = node.get("type")
    return isinstance(node_type, str) and node_type.lower().endswith("httprequest")


def has_retry_policy(node: dict[str, Any]) -> bool:
    parameters = node.get("parameters")
    options = parameters.get("options") if isinstance(parameters, dict) else None
    return isinstance(options, dict) and options.get("retryOnFail") is True


def security_issues(draft: dict[str, Any]) -> list[ValidationIssue]:
    issues = []
    for node in _nodes(draft):
        node_id = _node_id(node)
        parameters = node.get("parameters")
        if isinstance(parameters, dict):
            for path, reason in find_literal_secrets(parameters):
                issues.append(
                    ValidationIssue(
                        "literal_secret",
                        f"Node '{node_id}' has a literal credential at parameters.{path} ({reason})",
                        node_id,
                    )
                )
        if is_http_node(node) and not has_retry_policy(node):
            issues.append(
                ValidationIssue("missing_retry_policy", f"HTTP node '{node_id}' declares no retry policy", node_id)
            )
    return issues


def integrity_issues(draft: dict[str, Any]) -> list[ValidationIssue]:
    nodes = _nodes(draft)
    connections = draft.get("connections")
    if len(nodes) <= 1 or not isinstance(connections, list):
        return []

    connected: set[str] = set()
    for connection in connections:
        if isinstance(connection, dict):
            connected.update(v for v in (connection.get("from"), connection.get("to")) if isinstance(v, str))

    issues = []
    for node in nodes:
        node_id = _node_id(node)
        if node_id is not None and node_id not in connected:
            issues.append(ValidationIssue("orphan_node", f"Node '{node_id}' is not connected to the workflow", node_id))
    return issues


def run_checks(draft: dict[str, Any]) -> list[ValidationIssue]:
    """Run every check in order and collect all issues."""
    issues = schema_issues(draft)
    if isinstance(draft, dict):
        issues.extend(security_issues(draft))
        issues.extend(integrity_issues(draft))
    return issues


def _repair_missing_connections(draft: dict[str, Any]) -> str:
    ids = [node_id for node_id in (_node_id(n) for n in _nodes(draft)) if node_id is not None]
    draft["connections"] = [{"from": a, "to": b} for a, b in zip(ids, ids[1:])]
    return f"Connected {len(ids)} nodes linearly in declaration order"


def _repair_missing_parameters(draft: dict[str, Any]) -> str:
    repaired = [n for n in _nodes(draft) if "parameters" not in n]
    for node in repaired:
        node["parameters"] = {}
    return f"Added empty parameters to {len(repaired)} node(s)"


def _repair_missing_node_name(draft: dict[str, Any]) -> str:
    nodes = _nodes(draft)
    taken = {n["name"] for n in nodes if isinstance(n.get("name"), str) and n["name"]}
    repaired = 0
    for node in nodes:
        if isinstance(node.get("name"), str) and node["name"]:
            continue
        node_type = node.get("type") if isinstance(node.get("type"), str) else ""
        base = node_type.rsplit(".", 1)[-1] or _node_id(node) or "Node"
        base = base[:1].upper() + base[1:]
        name, suffix = base, 2
        while name in taken:
            name, suffix = f"{base} {suffix}", suffix + 1
        node["name"] = name
        taken.add(name)
        repaired += 1
    return f"Named {repaired} node(s) after their type"


def _relink(connections: list[Any], old_id: str, new_id: str, before: Optional[str], after: Optional[str]) -> None:
    """Splice a renamed node between its declaration-order neighbours.

    Connections that pointed at the shared id cannot say which copy they
    meant, so the renamed copy takes over the edge between its neighbours.
    """
    connections[:] = [
        c for c in connections if not (isinstance(c, dict) and c.get("from") == old_id and c.get("to") == old_id)
    ]
    for i, connection in enumerate(connections):
        if after is None or not isinstance(connection, dict):
            continue
        if connection.get("from") == before and connection.get("to") == after:
            connections[i : i + 1] = [{"from": before, "to": new_id}, {"from": new_id, "to": after}]
            return
    if before is not None:
        connections.append({"from": before, "to": new_id})
    has_incoming = any(isinstance(c, dict) and c.get("to") == after for c in connections)
    if after is not None and (before is None or not has_incoming):
        connections.append({"from": new_id, "to": after})


def _repair_duplicate_node_id(draft: dict[str, Any]) -> str:
    nodes = _nodes(draft)
    connections = draft.get("connections")
    seen: set[str] = set()
    all_ids = {node_id for node_id in (_node_id(n) for n in nodes) if node_id is not None}
    renamed = []
    for index, node in enumerate(nodes):
        node_id = _node_id(node)
        if node_id is None:
            continue
        if node_id not in seen:
            seen.add(node_id)
            continue
        suffix = 2
        while f"{node_id}_{suffix}" in all_ids:
            suffix += 1
        new_id = f"{node_id}_{suffix}"
        node["id"] = new_id
        all_ids.add(new_id)
        renamed.append(f"{node_id} -> {new_id}")
        if isinstance(connections, list):
            before = _node_id(nodes[index - 1]) if index > 0 else None
            after = _node_id(nodes[index + 1]) if index + 1 < len(nodes) else None
            _relink(connections, node_id, new_id, before, after)
    return f"Renamed duplicate node ids and relinked them in declaration order: {', '.join(renamed)}"


def _repair_missing_retry_policy(draft: dict[str, Any]) -> str:
    repaired = []
    for node in _nodes(draft):
        if is_http_node(node) and not has_retry_policy(node):
            parameters = node.setdefault("parameters", {})
            if not isinstance(parameters, dict):
                continue
            options = parameters.get("options")
            if not isinstance(options, dict):
                options = parameters["options"] = {}
            for key, value in HTTP_RETRY_OPTIONS.items():
                options[key] = value
            repaired.append(str(_node_id(node)))
    return f"Enabled retryOnFail (3 tries) on: {', '.join(repaired)}"


# Fixed, ordered repair table: (issue code, description, repair function)
REPAIRS: tuple[tuple[str, str, Callable[[dict[str, Any]], str]], ...] = (
    ("missing_connections", "Add linear connections", _repair_missing_connections),
    ("missing_parameters", "Add empty parameters", _repair_missing_parameters),
    ("missing_node_name", "Derive node names", _repair_missing_node_name),
    ("duplicate_node_id", "Rename duplicate node ids", _repair_duplicate_node_id),
    ("missing_retry_policy", "Add HTTP retry policy", _repair_missing_retry_policy),
)

REPAIRABLE_CODES = frozenset(code for code, _, _ in REPAIRS)


@dataclass
class ValidationReport:
    """Outcome of one validation pass.

    ``draft`` is the (possibly repaired) raw workflow dict, or None when the
    output could not be parsed. ``workflow`` is set only when the result is valid.
    """

    result: ValidationResult
    draft: Optional[dict[str, Any]] = None
    workflow: Optional[WorkflowDraft] = None

    @property
    def valid(self) -> bool:
        return self.result.valid


class WorkflowValidator:
    """Validates generated workflows and applies the registered repairs."""

    def __init__(self, repairs: tuple[tuple[str, str, Callable[[dict[str, Any]], str]], ...] = REPAIRS):
        self.repairs = repairs

    def validate_text(self, text: str, default_name: Optional[str] = None) -> ValidationReport:
        """Parse raw model output and validate the workflow it contains.

        Args:
            text: Raw model output
            default_name: Workflow name to use when the output has none
        """
        try:
            draft = parse_workflow_output(text)
        except ValueError as e:
            logger.info(f"Model output is not a workflow: {e}")
            issue = ValidationIssue("unparseable_output", f"Model output could not be parsed as a workflow: {e}")
            return ValidationReport(ValidationResult(valid=False, errors=[issue]))
        if default_name and not draft.get("name"):
            draft["name"] = default_name
        return self.validate(draft)

    def validate(self, draft: dict[str, Any]) -> ValidationReport:
        """Validate a workflow dict, repairing what the repair table covers.

        The input is not modified; repairs are applied to a deep copy.
        """
        working = copy.deepcopy(draft)
        issues = run_checks(working)
        repairs: list[RepairRecord] = []

        if isinstance(working, dict):
            present = {issue.code for issue in issues}
            for code, description, repair in self.repairs:
                if code not in present:
                    continue
                detail = repair(working)
                repairs.append(RepairRecord(code=code, description=f"{description}: {detail}"))
                logger.debug(f"Applied repair '{code}': {detail}")
            if repairs:
                issues = run_checks(working)

        if issues:
            logger.info(f"Workflow invalid after {len(repairs)} repair(s): {', '.join(i.code for i in issues)}")
            result = ValidationResult(valid=False, errors=issues, repairs_applied=repairs)
            return ValidationReport(result, draft=working if isinstance(working, dict) else None)

        try:
            workflow = WorkflowDraft.model_validate(working)
        except PydanticValidationError as e:
            issue = ValidationIssue("schema_violation", f"Workflow does not match the draft model: {e.errors()[0]['msg']}")
            result = ValidationResult(valid=False, errors=[issue], repairs_applied=repairs)
            return ValidationReport(result, draft=working)

        return ValidationReport(ValidationResult(valid=True, errors=[], repairs_applied=repairs), working, workflow)
