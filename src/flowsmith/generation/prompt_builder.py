"""Prompt assembly under per-tier token ceilings.

Prompts are rendered from the ``workflow_generator`` markdown template. When a
rendered prompt is over its tier's ceiling, content is cut in a fixed order
until it fits:

1. documentation items (shortened, then dropped from the end)
2. opportunity descriptions (shortened, then dropped from the end)
3. the process description, never below ``min_description_chars``

If the prompt still does not fit, ``PromptBudgetError`` is raised and the
caller drops the tier.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Optional

from flowsmith.core.exceptions import PromptBudgetError
from flowsmith.core.models import AutomationOpportunity, ComplexityAnalysis, Job, Tier
from flowsmith.core.settings import PromptSettings
from flowsmith.generation.context_builder import DocItem, DocumentationContext, truncate_text
from flowsmith.generation.prompts.loader import format_prompt, load_prompt

logger = logging.getLogger(__name__)

PROMPT_NAME = "workflow_generator"
# Shortest documentation item worth keeping before items are dropped
MIN_DOC_ITEM_CHARS = 150

TIER_GUIDANCE = {
    "standard": (
        "Produce the simplest linear workflow that covers every opportunity. "
        "Prefer built-in nodes over Code nodes."
    ),
    "advanced": (
        "This process is complex. Use Switch or If for branching, Merge to rejoin branches, and add error "
        "handling paths for every external call. Keep each node focused on one responsibility."
    ),
}


def estimate_tokens(text: str) -> int:
    """Rough token estimate (1 token ~= 4 chars)."""
    return len(text) // 4


@dataclass(frozen=True)
class PromptPayload:
    """A rendered prompt ready for one tier."""

    text: str
    estimated_tokens: int
    tier: Tier
    sections: dict[str, int] = field(default_factory=dict)
    truncations: tuple[str, ...] = ()


@dataclass
class _PromptContent:
    """Mutable content that truncation steps cut down."""

    description: str
    opportunities: list[AutomationOpportunity]
    doc_items: list[DocItem]


def _format_business_context(job: Job) -> str:
    context = job.business_context
    lines = [
        f"- {label}: {value}"
        for label, value in (
            ("Industry", context.industry),
            ("Department", context.department),
            ("Volume", context.volume),
            ("SLA notes", context.sla_notes),
        )
        if value
    ]
    return "\n".join(lines) if lines else "Not provided."


def _format_complexity(analysis: ComplexityAnalysis) -> str:
    summary = f"Score {analysis.score} ({analysis.classification})."
    if analysis.reasoning:
        summary += "\n" + "\n".join(f"- {reason}" for reason in analysis.reasoning)
    return summary


def _format_opportunities(opportunities: list[AutomationOpportunity]) -> str:
    if not opportunities:
        return "None listed; derive the steps from the process description."
    blocks = []
    for i, op in enumerate(opportunities, start=1):
        header = f"{i}. {op.title or 'Untitled step'}"
        details = []
        if op.step_type:
            details.append(f"step type: {op.step_type}")
        if op.integrations:
            details.append(f"integrations: {', '.join(op.integrations)}")
        if op.automation_solution:
            details.append(f"solution: {op.automation_solution}")
        if details:
            header += f" ({'; '.join(details)})"
        blocks.append(f"{header}\n   {op.description}" if op.description else header)
    return "\n".join(blocks)


def _format_example(context: DocumentationContext) -> str:
    example = context.pattern.example
    lines = [
        f"Focus areas: {', '.join(context.pattern.focus_areas)}.",
        f"Proven node sequence: {' -> '.join(example.node_sequence)}",
        "Best practices:",
        *(f"- {practice}" for practice in example.best_practices),
    ]
    return "\n".join(lines)


def _format_documentation(items: list[DocItem], degraded: bool) -> str:
    if degraded:
        return "Node documentation is unavailable right now; rely on standard n8n node parameters."
    if not items:
        return "No additional documentation."
    return "\n\n".join(f"### {item.node_type}\n{item.text}" for item in items)


class PromptBuilder:
    """Renders generation prompts and enforces tier token ceilings."""

    def __init__(self, settings: Optional[PromptSettings] = None):
        self.settings = settings or PromptSettings()

    def _render(
        self, job: Job, analysis: ComplexityAnalysis, context: DocumentationContext, content: _PromptContent, tier: Tier
    ) -> tuple[str, dict[str, int]]:
        variables = {
            "tier_guidance": TIER_GUIDANCE[tier],
            "process_description": content.description,
            "business_context": _format_business_context(job),
            "complexity_summary": _format_complexity(analysis),
            "opportunities": _format_opportunities(content.opportunities),
            "pattern_name": context.pattern.name,
            "working_example": _format_example(context),
            "documentation": _format_documentation(content.doc_items, context.degraded),
        }
        text = format_prompt(load_prompt(PROMPT_NAME), variables)
        sections = {name: len(str(value)) for name, value in variables.items()}
        return text, sections

    def build(self, job: Job, analysis: ComplexityAnalysis, context: DocumentationContext, tier: Tier) -> PromptPayload:
        """Render the prompt for one tier, truncating content to fit its ceiling.

        Raises:
            PromptBudgetError: If the prompt cannot be brought under the ceiling
        """
        ceiling = self.settings.input_ceiling(tier)
        content = _PromptContent(
            description=job.process_description,
            opportunities=list(job.automation_opportunities),
            doc_items=list(context.items),
        )
        truncations: list[str] = []

        def render() -> tuple[str, dict[str, int], int]:
            text, sections = self._render(job, analysis, context, content, tier)
            return text, sections, estimate_tokens(text)

        text, sections, tokens = render()
        for step_name, step in (
            ("documentation", self._trim_documentation),
            ("opportunities", self._trim_opportunities),
            ("description", self._trim_description),
        ):
            if tokens <= ceiling:
                break
            over_chars = (tokens - ceiling) * 4 + 4
            while step(content, over_chars):
                truncations.append(step_name)
                text, sections, tokens = render()
                if tokens <= ceiling:
                    break
                over_chars = (tokens - ceiling) * 4 + 4

        if tokens > ceiling:
            raise PromptBudgetError(tier, tokens, ceiling)

        if truncations:
            logger.debug(f"Prompt for job {job.id} ({tier}) truncated: {', '.join(dict.fromkeys(truncations))}")
        return PromptPayload(
            text=text, estimated_tokens=tokens, tier=tier, sections=sections, truncations=tuple(truncations)
        )

    def _trim_documentation(self, content: _PromptContent, over_chars: int) -> bool:
        """Shorten the longest documentation item, or drop the last one once all are short."""
        if not content.doc_items:
            return False
        longest = max(range(len(content.doc_items)), key=lambda i: len(content.doc_items[i].text))
        item = content.doc_items[longest]
        if len(item.text) > MIN_DOC_ITEM_CHARS:
            target = max(MIN_DOC_ITEM_CHARS, len(item.text) - over_chars, len(item.text) // 2)
            content.doc_items[longest] = replace(item, text=truncate_text(item.text, target))
            return True
        content.doc_items.pop()
        return True

    def _trim_opportunities(self, content: _PromptContent, over_chars: int) -> bool:
        """Shorten the longest opportunity description, or drop the last opportunity."""
        if not content.opportunities:
            return False
        floor = self.settings.min_opportunity_chars
        candidates = [i for i, op in enumerate(content.opportunities) if len(op.description or "") > floor]
        if candidates:
            longest = max(candidates, key=lambda i: len(content.opportunities[i].description or ""))
            op = content.opportunities[longest]
            description = op.description or ""
            target = max(floor, len(description) - over_chars, len(description) // 2)
            content.opportunities[longest] = op.model_copy(update={"description": truncate_text(description, target)})
            return True
        content.opportunities.pop()
        return True

    def _trim_description(self, content: _PromptContent, over_chars: int) -> bool:
        """Cut the process description, never below the configured minimum."""
        floor = self.settings.min_description_chars
        if len(content.description) <= floor:
            return False
        target = max(floor, len(content.description) - over_chars)
        content.description = content.description[:target]
        return True
