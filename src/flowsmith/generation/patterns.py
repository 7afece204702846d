"""Workflow pattern detection.

``PATTERN_TABLE`` is ordered: the first pattern whose trigger keywords,
integrations or solution markers match the job wins, and
``general-automation`` is the default. Each pattern ranks the node types whose
documentation matters most for it and carries a proven node sequence with
best practices that prompts show as a working example.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from flowsmith.core.models import Job
from flowsmith.generation.complexity import named_integrations

logger = logging.getLogger(__name__)

DEFAULT_PATTERN = "general-automation"


@dataclass(frozen=True)
class PatternExample:
    """A proven node sequence for a pattern."""

    node_sequence: tuple[str, ...]
    best_practices: tuple[str, ...]


@dataclass(frozen=True)
class PatternRule:
    """One row of the pattern table."""

    name: str
    # Word-prefix keywords ("classif" matches "classification")
    keywords: tuple[str, ...]
    integrations: tuple[str, ...]
    solution_markers: tuple[str, ...]
    doc_ids: tuple[str, ...]
    focus_areas: tuple[str, ...]
    example: PatternExample


PATTERN_TABLE: tuple[PatternRule, ...] = (
    PatternRule(
        name="email-automation",
        keywords=("email", "e-mail", "inbox", "mailbox"),
        integrations=("gmail", "outlook"),
        solution_markers=("email",),
        doc_ids=(
            "gmail",
            "gmailTrigger",
            "function",
            "openai",
            "switch",
            "merge",
            "emailSend",
            "if",
            "slack",
        ),
        focus_areas=("email handling", "AI responses", "conditional logic"),
        example=PatternExample(
            node_sequence=("gmailTrigger", "function", "switch", "gmail"),
            best_practices=(
                "Use OAuth2 credentials for Gmail, never basic auth",
                "Poll at most once a minute and mark processed messages as read",
                "Route on a classified category with Switch instead of nested If nodes",
            ),
        ),
    ),
    PatternRule(
        name="data-sync",
        keywords=("sync", "synchroniz", "synchronis", "replicat", "mirror"),
        integrations=("sheets", "airtable"),
        solution_markers=("sync",),
        doc_ids=(
            "googleSheets",
            "airtable",
            "webhook",
            "function",
            "merge",
            "json",
            "scheduleTrigger",
            "set",
            "httpRequest",
        ),
        focus_areas=("data transformation", "parallel processing", "error handling"),
        example=PatternExample(
            node_sequence=("scheduleTrigger", "googleSheets", "function", "airtable"),
            best_practices=(
                "Use upsert or appendOrUpdate keyed on a stable id so reruns stay idempotent",
                "Map fields explicitly with Set before writing to the target",
                "Respect target API rate limits when writing in bulk",
            ),
        ),
    ),
    PatternRule(
        name="ai-classification",
        keywords=("classif", "categoriz", "categoris", "sentiment", "triage", "analysis"),
        integrations=("openai", "anthropic"),
        solution_markers=("ai_", "intelligent"),
        doc_ids=(
            "openai",
            "function",
            "switch",
            "webhook",
            "httpRequest",
            "merge",
            "if",
            "set",
            "slack",
        ),
        focus_areas=("AI processing", "conditional routing", "decision logic"),
        example=PatternExample(
            node_sequence=("webhook", "openai", "switch", "httpRequest"),
            best_practices=(
                "Ask the model for a fixed JSON shape and route on its fields",
                "Add a fallback output for low-confidence or unknown categories",
                "Enable retries on the AI node to absorb rate limits",
            ),
        ),
    ),
    PatternRule(
        name="document-processing",
        keywords=("document", "pdf", "invoice", "receipt", "contract", "file", "attachment", "scan"),
        integrations=("dropbox", "drive", "docusign"),
        solution_markers=("document", "ocr"),
        doc_ids=(
            "httpRequest",
            "function",
            "openai",
            "googleSheets",
            "switch",
            "webhook",
            "set",
            "merge",
            "emailSend",
        ),
        focus_areas=("file handling", "content extraction", "document analysis"),
        example=PatternExample(
            node_sequence=("webhook", "httpRequest", "openai", "googleSheets"),
            best_practices=(
                "Download files with HTTP Request in file response format",
                "Extract fields into a flat JSON record before storing",
                "Keep the original file reference alongside extracted data",
            ),
        ),
    ),
    PatternRule(
        name="api-integration",
        keywords=("api", "rest", "endpoint", "webhook", "http", "graphql"),
        integrations=(),
        solution_markers=("api", "webhook"),
        doc_ids=(
            "webhook",
            "httpRequest",
            "function",
            "json",
            "switch",
            "merge",
            "set",
            "if",
            "scheduleTrigger",
        ),
        focus_areas=("API authentication", "error handling", "data transformation"),
        example=PatternExample(
            node_sequence=("webhook", "httpRequest", "set"),
            best_practices=(
                "Enable retryOnFail with 3 tries on every HTTP Request node",
                "Reference credentials through the authentication setting, never literal headers",
                "Check response status with If before using the payload",
            ),
        ),
    ),
    PatternRule(
        name=DEFAULT_PATTERN,
        keywords=(),
        integrations=(),
        solution_markers=(),
        doc_ids=(
            "webhook",
            "function",
            "httpRequest",
            "switch",
            "merge",
            "set",
            "if",
            "scheduleTrigger",
            "emailSend",
        ),
        focus_areas=("workflow orchestration", "error handling", "general integration"),
        example=PatternExample(
            node_sequence=("webhook", "function", "httpRequest"),
            best_practices=(
                "Start from a single trigger and keep the main path linear",
                "Handle errors on every node that talks to an external system",
            ),
        ),
    ),
)

_PATTERNS_BY_NAME = {rule.name: rule for rule in PATTERN_TABLE}


def get_pattern(name: str) -> PatternRule:
    """Look up a pattern by name.

    Raises:
        KeyError: If the pattern is not in the table
    """
    try:
        return _PATTERNS_BY_NAME[name]
    except KeyError:
        raise KeyError(f"Unknown pattern '{name}'. Known patterns: {sorted(_PATTERNS_BY_NAME)}") from None


def _matches(rule: PatternRule, text: str, integrations: frozenset[str], solutions: str) -> bool:
    if any(re.search(r"(?<![\w])" + re.escape(kw), text) for kw in rule.keywords):
        return True
    if integrations.intersection(rule.integrations):
        return True
    return any(marker in solutions for marker in rule.solution_markers)


def detect_pattern(job: Job, hint: Optional[str] = None) -> PatternRule:
    """Return the first matching pattern for a job, or the explicit hint if given."""
    if hint:
        return get_pattern(hint)

    text = job.searchable_text()
    integrations = named_integrations(job)
    solutions = " ".join((op.automation_solution or "").lower() for op in job.automation_opportunities)

    for rule in PATTERN_TABLE:
        if _matches(rule, text, integrations, solutions):
            logger.debug(f"Job {job.id} matched pattern '{rule.name}'")
            return rule
    return _PATTERNS_BY_NAME[DEFAULT_PATTERN]
