"""JSON Schema definition for generated workflow drafts.

A workflow draft is the wire format handed back to callers: a named list of
typed nodes plus a list of directed ``{from, to}`` connections between node
ids. Node types are n8n node types (e.g. ``n8n-nodes-base.httpRequest``).

Unlike a raising validator, ``schema_issues`` collects every violation so the
validator can decide which ones are repairable. Each issue carries a stable
code:

- ``missing_connections``: the top-level ``connections`` list is absent
- ``missing_parameters``: a node has no ``parameters`` object
- ``missing_node_name``: a node has no ``name``
- ``missing_field``: any other required field is absent
- ``duplicate_node_id``: two nodes share an id
- ``unknown_connection_endpoint``: a connection references a node id that does not exist
- ``schema_violation``: anything else (wrong types, empty node list, ...)

Example:
    >>> draft = {
    ...     "name": "api-fetch-transform",
    ...     "nodes": [
    ...         {"id": "trigger", "type": "n8n-nodes-base.webhook", "name": "Webhook", "parameters": {}},
    ...     ],
    ...     "connections": [],
    ... }
    >>> schema_issues(draft)
    []
"""

from typing import Any, Optional

import jsonschema
from jsonschema import Draft7Validator
from jsonschema import ValidationError as JsonSchemaValidationError

from flowsmith.core.models import ValidationIssue

NODE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["id", "type", "name", "parameters"],
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "type": {"type": "string", "minLength": 1},
        "name": {"type": "string", "minLength": 1},
        "parameters": {"type": "object"},
    },
}

CONNECTION_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["from", "to"],
    "properties": {
        "from": {"type": "string", "minLength": 1},
        "to": {"type": "string", "minLength": 1},
    },
    "additionalProperties": False,
}

WORKFLOW_SCHEMA: dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "flowsmith workflow draft",
    "type": "object",
    "required": ["name", "nodes", "connections"],
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "nodes": {"type": "array", "minItems": 1, "items": NODE_SCHEMA},
        "connections": {"type": "array", "items": CONNECTION_SCHEMA},
        "metadata": {"type": "object"},
    },
}

_NODE_FIELD_CODES = {
    "parameters": "missing_parameters",
    "name": "missing_node_name",
}

_validator = Draft7Validator(WORKFLOW_SCHEMA)


def check_schema() -> None:
    """Verify the schema itself is a valid Draft 7 schema."""
    try:
        Draft7Validator.check_schema(WORKFLOW_SCHEMA)
    except jsonschema.SchemaError as e:
        raise RuntimeError(f"Schema definition error: {e}") from e


def _format_path(path: list) -> str:
    """Format a jsonschema path into a readable string like "nodes[0].type"."""
    formatted = ""
    for i, component in enumerate(path):
        if isinstance(component, int):
            formatted += f"[{component}]"
        else:
            if i > 0:
                formatted += "."
            formatted += str(component)
    return formatted or "root"


def _node_id_at(data: dict[str, Any], path: list) -> Optional[str]:
    """Return the id of the node an error path points into, if any."""
    if len(path) < 2 or path[0] != "nodes" or not isinstance(path[1], int):
        return None
    nodes = data.get("nodes")
    if not isinstance(nodes, list) or path[1] >= len(nodes):
        return None
    node = nodes[path[1]]
    if isinstance(node, dict) and isinstance(node.get("id"), str):
        return node["id"]
    return None


def _missing_field(error: JsonSchemaValidationError) -> Optional[str]:
    # Message looks like "'field_name' is a required property"
    parts = error.message.split("'")
    return parts[1] if len(parts) >= 2 else None


def _issue_from_error(data: dict[str, Any], error: JsonSchemaValidationError) -> ValidationIssue:
    path = list(error.absolute_path)
    path_str = _format_path(path)
    node_id = _node_id_at(data, path)

    if error.validator == "required":
        field = _missing_field(error)
        if not path and field == "connections":
            return ValidationIssue("missing_connections", "Workflow has no 'connections' list")
        if len(path) == 2 and path[0] == "nodes" and field in _NODE_FIELD_CODES:
            return ValidationIssue(_NODE_FIELD_CODES[field], f"Node at {path_str} has no '{field}'", node_id)
        return ValidationIssue("missing_field", f"Missing required field '{field}' at {path_str}", node_id)

    return ValidationIssue("schema_violation", f"{path_str}: {error.message}", node_id)


def _duplicate_id_issues(data: dict[str, Any]) -> list[ValidationIssue]:
    nodes = data.get("nodes")
    if not isinstance(nodes, list):
        return []

    issues = []
    seen: set[str] = set()
    for node in nodes:
        node_id = node.get("id") if isinstance(node, dict) else None
        if not isinstance(node_id, str):
            continue
        if node_id in seen:
            issues.append(ValidationIssue("duplicate_node_id", f"Duplicate node ID '{node_id}'", node_id))
        seen.add(node_id)
    return issues


def _endpoint_issues(data: dict[str, Any]) -> list[ValidationIssue]:
    nodes = data.get("nodes") or []
    connections = data.get("connections") or []
    if not isinstance(nodes, list) or not isinstance(connections, list):
        return []

    node_ids = {node.get("id") for node in nodes if isinstance(node, dict)}
    issues = []
    for i, connection in enumerate(connections):
        if not isinstance(connection, dict):
            continue
        for end in ("from", "to"):
            target = connection.get(end)
            if isinstance(target, str) and target not in node_ids:
                issues.append(
                    ValidationIssue(
                        "unknown_connection_endpoint",
                        f"connections[{i}].{end} references non-existent node '{target}'",
                        target,
                    )
                )
    return issues


def schema_issues(data: Any) -> list[ValidationIssue]:
    """Collect every structural violation of a raw workflow draft.

    Args:
        data: The raw draft (normally a dict parsed from JSON)

    Returns:
        List of issues, empty if the draft is structurally valid
    """
    if not isinstance(data, dict):
        return [ValidationIssue("schema_violation", f"Workflow must be an object, got {type(data).__name__}")]

    issues = [_issue_from_error(data, error) for error in _validator.iter_errors(data)]
    issues.extend(_duplicate_id_issues(data))
    issues.extend(_endpoint_issues(data))
    return issues
