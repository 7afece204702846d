"""Utility functions for LLM integration in generation.

Shared helpers for turning raw model responses into workflow drafts: text and
usage extraction from ``llm`` responses, tolerant JSON extraction, and
normalization of n8n-style connection objects.
"""

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*\n?(.*?)```", re.DOTALL)


def response_text(response: Any) -> str:
    """Return the text of an ``llm`` response object.

    The llm library normalizes every provider's response behind ``text()``.
    Calling it also forces evaluation of lazy responses.
    """
    if not hasattr(response, "text"):
        raise ValueError("Response object has no text() method")
    text = response.text() if callable(response.text) else response.text
    return text or ""


def response_usage(response: Any) -> tuple[int, int]:
    """Return (input_tokens, output_tokens) reported by a response, or (0, 0)."""
    usage = getattr(response, "usage", None)
    if usage is None:
        return 0, 0
    usage_obj = usage() if callable(usage) else usage
    if not usage_obj:
        return 0, 0

    # Handle both object (with .input attribute) and dict (with ["input"] key)
    if isinstance(usage_obj, dict):
        input_tokens = usage_obj.get("input", usage_obj.get("input_tokens", 0))
        output_tokens = usage_obj.get("output", usage_obj.get("output_tokens", 0))
    else:
        input_tokens = getattr(usage_obj, "input", 0)
        output_tokens = getattr(usage_obj, "output", 0)
    return int(input_tokens or 0), int(output_tokens or 0)


def extract_json_object(text: str) -> dict[str, Any]:
    """Extract the first JSON object from model output.

    Markdown code fences are stripped first; otherwise the first balanced
    ``{...}`` block is decoded.

    Raises:
        ValueError: If no JSON object can be decoded from the text
    """
    if not text or not text.strip():
        raise ValueError("LLM returned empty response")

    candidates = [m.group(1) for m in _FENCE_RE.finditer(text)]
    candidates.append(text)

    decoder = json.JSONDecoder()
    for candidate in candidates:
        start = candidate.find("{")
        while start != -1:
            try:
                result, _ = decoder.raw_decode(candidate, start)
            except json.JSONDecodeError:
                start = candidate.find("{", start + 1)
                continue
            if isinstance(result, dict):
                return result
            start = candidate.find("{", start + 1)

    raise ValueError(f"Response text contains no JSON object: {text[:200]}")


def _resolve_node_ref(ref: str, ids_by_name: dict[str, str]) -> str:
    return ids_by_name.get(ref, ref)


def normalize_connections(draft: dict[str, Any]) -> dict[str, Any]:
    """Convert n8n name-keyed connection objects into ``{from, to}`` lists in place.

    n8n writes connections as::

        {"Webhook": {"main": [[{"node": "HTTP Request", "type": "main", "index": 0}]]}}

    keyed and targeted by node *name*. Names are mapped back to node ids where
    a node with that name exists.
    """
    connections = draft.get("connections")
    if not isinstance(connections, dict):
        return draft

    nodes = draft.get("nodes") if isinstance(draft.get("nodes"), list) else []
    ids_by_name = {
        node["name"]: node["id"]
        for node in nodes
        if isinstance(node, dict) and isinstance(node.get("name"), str) and isinstance(node.get("id"), str)
    }

    normalized = []
    for source, outputs in connections.items():
        if not isinstance(outputs, dict):
            continue
        for branches in outputs.values():
            for branch in branches if isinstance(branches, list) else []:
                for target in branch if isinstance(branch, list) else []:
                    if isinstance(target, dict) and isinstance(target.get("node"), str):
                        normalized.append(
                            {
                                "from": _resolve_node_ref(source, ids_by_name),
                                "to": _resolve_node_ref(target["node"], ids_by_name),
                            }
                        )

    logger.debug(f"Normalized {len(normalized)} n8n-style connections")
    draft["connections"] = normalized
    return draft


def parse_workflow_output(text: str) -> dict[str, Any]:
    """Parse model output into a raw workflow draft dict.

    Raises:
        ValueError: If the output holds no JSON object
    """
    draft = extract_json_object(text)
    # Some models wrap the workflow: {"workflow": {...}}
    if "nodes" not in draft and isinstance(draft.get("workflow"), dict):
        draft = draft["workflow"]
    return normalize_connections(draft)


def generate_workflow_name(user_input: str, max_length: int = 30) -> str:
    """Generate a suggested workflow name from a process description.

    Simple algorithm: take the first few significant words and kebab-case them.

    Args:
        user_input: The process description
        max_length: Maximum characters to consider from input

    Returns:
        Suggested workflow name in kebab-case
    """
    if not user_input:
        return "workflow"

    words = re.findall(r"[a-z0-9]+", user_input.lower()[:max_length])

    # Filter out common words
    stop_words = {"the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by", "from", "it"}
    significant_words = [w for w in words if w not in stop_words][:3]

    if not significant_words:
        return "workflow"

    return "-".join(significant_words)
