"""Documentation context assembly sized to job complexity.

The builder picks the job's workflow pattern, then pulls node documentation
from the catalog in the pattern's ranked order. How many items and how many
characters per item depends on the complexity classification:

    simple   4 items x  600 chars  (~2.4K)
    complex  8 items x 1200 chars  (~9.6K)

Catalog outages never fail a job: the builder returns an empty payload marked
``degraded`` and generation continues without documentation.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from flowsmith.catalog.base import NodeCatalog
from flowsmith.core.exceptions import CatalogUnavailableError
from flowsmith.core.models import ComplexityAnalysis, Job
from flowsmith.core.settings import ContextSettings
from flowsmith.generation.patterns import PatternRule, detect_pattern

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocItem:
    """Documentation for one node type, already truncated to its budget."""

    node_type: str
    text: str


@dataclass(frozen=True)
class DocumentationContext:
    """Documentation payload handed to the prompt builder."""

    pattern: PatternRule
    items: tuple[DocItem, ...] = field(default_factory=tuple)
    degraded: bool = False

    @property
    def total_chars(self) -> int:
        return sum(len(item.text) for item in self.items)

    def to_dict(self) -> dict[str, Any]:
        return {
            "pattern": self.pattern.name,
            "items": [{"node_type": item.node_type, "chars": len(item.text)} for item in self.items],
            "degraded": self.degraded,
        }


def truncate_text(text: str, max_chars: int, marker: str = "...") -> str:
    """Cut text to ``max_chars`` including the marker, preferring a word boundary."""
    if len(text) <= max_chars:
        return text
    if max_chars <= len(marker):
        return text[:max_chars]
    cut = text[: max_chars - len(marker)]
    space = cut.rfind(" ")
    if space > len(cut) // 2:
        cut = cut[:space]
    return cut.rstrip() + marker


class DocumentationContextBuilder:
    """Builds documentation context for jobs from a node catalog."""

    def __init__(self, catalog: NodeCatalog, settings: Optional[ContextSettings] = None):
        self.catalog = catalog
        self.settings = settings or ContextSettings()

    def build(
        self, job: Job, analysis: ComplexityAnalysis, pattern_hint: Optional[str] = None
    ) -> DocumentationContext:
        """Assemble documentation for a job.

        Args:
            job: The job being generated
            analysis: Its complexity analysis (selects the scaling row)
            pattern_hint: Explicit pattern name that overrides detection

        Returns:
            DocumentationContext with at most the scaled number of items
        """
        pattern = detect_pattern(job, hint=pattern_hint)
        row = self.settings.for_classification(analysis.classification)

        items: list[DocItem] = []
        try:
            for node_type in pattern.doc_ids:
                if len(items) >= row.item_count:
                    break
                text = self.catalog.get_documentation(node_type)
                if not text:
                    logger.debug(f"Catalog has no documentation for '{node_type}', skipping")
                    continue
                items.append(DocItem(node_type=node_type, text=truncate_text(text, row.chars_per_item)))
        except CatalogUnavailableError as e:
            logger.warning(f"Node catalog unavailable, continuing without documentation: {e}")
            return DocumentationContext(pattern=pattern, items=(), degraded=True)

        context = DocumentationContext(pattern=pattern, items=tuple(items))
        logger.debug(
            f"Documentation for job {job.id}: pattern={pattern.name} items={len(items)} chars={context.total_chars}"
        )
        return context
