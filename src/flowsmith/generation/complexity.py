"""Weighted-factor complexity scoring for generation jobs.

The analyzer is a pure function of the job and the complexity settings: no
I/O, no randomness, and the order of opportunities never changes the result.
Each factor is independent and contributes its configured weight when its
trigger holds. A job is complex when the summed score reaches the threshold,
and complex jobs are recommended the advanced tier.
"""

import logging
import re
from collections.abc import Iterable
from typing import Callable, NamedTuple, Optional

from flowsmith.core.models import AutomationOpportunity, ComplexityAnalysis, FactorContribution, Job
from flowsmith.core.settings import ComplexitySettings

logger = logging.getLogger(__name__)

# Canonical integration names and the spellings that map onto them
INTEGRATION_ALIASES: dict[str, str] = {
    "gmail": "gmail",
    "google mail": "gmail",
    "outlook": "outlook",
    "office 365": "outlook",
    "sheets": "sheets",
    "google sheets": "sheets",
    "googlesheets": "sheets",
    "spreadsheet": "sheets",
    "airtable": "airtable",
    "openai": "openai",
    "chatgpt": "openai",
    "gpt": "openai",
    "anthropic": "anthropic",
    "claude": "anthropic",
    "slack": "slack",
    "microsoft teams": "teams",
    "ms teams": "teams",
    "salesforce": "salesforce",
    "hubspot": "hubspot",
    "stripe": "stripe",
    "shopify": "shopify",
    "notion": "notion",
    "trello": "trello",
    "jira": "jira",
    "asana": "asana",
    "zendesk": "zendesk",
    "mailchimp": "mailchimp",
    "twilio": "twilio",
    "quickbooks": "quickbooks",
    "xero": "xero",
    "dropbox": "dropbox",
    "google drive": "drive",
    "gdrive": "drive",
    "github": "github",
    "postgres": "postgres",
    "postgresql": "postgres",
    "mysql": "mysql",
    "docusign": "docusign",
}

KNOWN_INTEGRATIONS = frozenset(INTEGRATION_ALIASES.values())

AI_KEYWORDS = (
    "ai",
    "a.i.",
    "artificial intelligence",
    "machine learning",
    "ml",
    "llm",
    "gpt",
    "openai",
    "nlp",
    "natural language",
    "classify",
    "classification",
    "classifier",
    "categorize",
    "categorise",
    "categorization",
    "sentiment",
    "summarize",
    "summarise",
    "summarization",
    "predict",
    "prediction",
    "intelligent",
)

AI_SOLUTION_MARKERS = ("ai_", "intelligent")

REGULATED_KEYWORDS = (
    "finance",
    "financial",
    "banking",
    "bank",
    "fintech",
    "insurance",
    "health",
    "healthcare",
    "medical",
    "hospital",
    "pharma",
    "pharmaceutical",
    "legal",
    "law",
    "compliance",
)

HIGH_VOLUME_MARKERS = (r"\bhigh\b", r"\bthousands?\b", r"\bmillions?\b", r"\bbulk\b")

CONDITIONAL_KEYWORDS = (
    "if",
    "otherwise",
    "else",
    "depending on",
    "route",
    "routing",
    "branch",
    "conditional",
    "condition",
    "approve",
    "approval",
    "escalate",
)

CONDITIONAL_STEP_TYPES = frozenset({"condition", "conditional", "switch", "if", "branch", "router"})

PARALLEL_KEYWORDS = (
    "parallel",
    "simultaneous",
    "simultaneously",
    "concurrent",
    "concurrently",
    "at the same time",
    "multi-platform",
    "multiple platforms",
    "cross-platform",
    "sync across",
    "synchronize across",
)


def _word_pattern(phrases: Iterable[str]) -> re.Pattern[str]:
    alternatives = sorted((re.escape(p) for p in phrases), key=len, reverse=True)
    return re.compile(r"(?<![\w.])(?:" + "|".join(alternatives) + r")(?![\w])")


_AI_RE = _word_pattern(AI_KEYWORDS)
_REGULATED_RE = _word_pattern(REGULATED_KEYWORDS)
_CONDITIONAL_RE = _word_pattern(CONDITIONAL_KEYWORDS)
_PARALLEL_RE = _word_pattern(PARALLEL_KEYWORDS)
_INTEGRATION_RE = _word_pattern(INTEGRATION_ALIASES)
_NUMBER_RE = re.compile(r"\d[\d,]*(?:\.\d+)?")


def normalize_integration(name: str) -> str:
    """Map an integration spelling onto its canonical name."""
    key = " ".join(name.strip().lower().replace("_", " ").replace("-", " ").split())
    return INTEGRATION_ALIASES.get(key, key)


def named_integrations(job: Job) -> frozenset[str]:
    """Distinct integrations declared on opportunities or named in the job's text."""
    names = {normalize_integration(i) for op in job.automation_opportunities for i in op.integrations if i.strip()}
    for match in _INTEGRATION_RE.finditer(job.searchable_text()):
        names.add(INTEGRATION_ALIASES[match.group(0)])
    return frozenset(names)


def _first_number(text: str) -> Optional[float]:
    match = _NUMBER_RE.search(text)
    if not match:
        return None
    return float(match.group(0).replace(",", ""))


class _Signals(NamedTuple):
    """Facts about a job shared by several factors."""

    job: Job
    opportunities: tuple[AutomationOpportunity, ...]
    text: str
    integrations: frozenset[str]


def _step_count(s: _Signals, cfg: ComplexitySettings) -> Optional[str]:
    count = len(s.opportunities)
    if count >= cfg.step_count_threshold:
        return f"High step count: {count} automation opportunities"
    return None


def _integrations(s: _Signals, cfg: ComplexitySettings) -> Optional[str]:
    if len(s.integrations) >= cfg.integration_threshold:
        return f"Multi-platform integration: {', '.join(sorted(s.integrations))}"
    return None


def _ai_processing(s: _Signals, cfg: ComplexitySettings) -> Optional[str]:
    match = _AI_RE.search(s.text)
    if match:
        return f"AI processing required ('{match.group(0)}')"
    for op in s.opportunities:
        solution = (op.automation_solution or "").lower()
        if any(marker in solution for marker in AI_SOLUTION_MARKERS):
            return f"AI processing required (solution '{op.automation_solution}')"
    return None


def _regulated_industry(s: _Signals, cfg: ComplexitySettings) -> Optional[str]:
    context = s.job.business_context
    for value in (context.industry, context.department):
        if value and _REGULATED_RE.search(value.lower()):
            return f"High-compliance industry: {value}"
    return None


def _high_volume(s: _Signals, cfg: ComplexitySettings) -> Optional[str]:
    volume = (s.job.business_context.volume or "").strip()
    if not volume:
        return None
    number = _first_number(volume)
    if number is not None and number >= cfg.volume_threshold:
        return f"High volume requirements: {volume}"
    if any(re.search(marker, volume.lower()) for marker in HIGH_VOLUME_MARKERS):
        return f"High volume requirements: {volume}"
    return None


def _conditional_logic(s: _Signals, cfg: ComplexitySettings) -> Optional[str]:
    for op in s.opportunities:
        if op.step_type and op.step_type.strip().lower() in CONDITIONAL_STEP_TYPES:
            return f"Conditional logic required (step type '{op.step_type}')"
    match = _CONDITIONAL_RE.search(s.text)
    if match:
        return f"Conditional logic required ('{match.group(0)}')"
    return None


def _parallel_processing(s: _Signals, cfg: ComplexitySettings) -> Optional[str]:
    if len(s.integrations) >= cfg.parallel_integration_threshold:
        return f"Parallel processing required across {len(s.integrations)} integrations"
    match = _PARALLEL_RE.search(s.text)
    if match:
        return f"Parallel processing required ('{match.group(0)}')"
    return None


Factor = tuple[str, str, Callable[[_Signals, ComplexitySettings], Optional[str]]]

# Fixed, ordered factor list: (name, weight attribute on ComplexitySettings, trigger)
FACTORS: tuple[Factor, ...] = (
    ("step_count", "step_count_weight", _step_count),
    ("integrations", "integrations_weight", _integrations),
    ("ai_processing", "ai_processing_weight", _ai_processing),
    ("regulated_industry", "regulated_industry_weight", _regulated_industry),
    ("high_volume", "high_volume_weight", _high_volume),
    ("conditional_logic", "conditional_logic_weight", _conditional_logic),
    ("parallel_processing", "parallel_processing_weight", _parallel_processing),
)


def analyze_complexity(job: Job, settings: Optional[ComplexitySettings] = None) -> ComplexityAnalysis:
    """Score a job and classify it as simple or complex.

    Args:
        job: The submitted job
        settings: Factor weights and thresholds (defaults if omitted)

    Returns:
        ComplexityAnalysis with one FactorContribution per factor, in factor order
    """
    cfg = settings or ComplexitySettings()
    # Canonical opportunity order so that reasons never depend on submission order
    opportunities = tuple(sorted(job.automation_opportunities, key=lambda op: op.model_dump_json()))
    signals = _Signals(
        job=job,
        opportunities=opportunities,
        text=" ".join([job.process_description.lower(), *(op.text().lower() for op in opportunities)]),
        integrations=named_integrations(job),
    )

    contributions = []
    for name, weight_attr, trigger in FACTORS:
        weight = getattr(cfg, weight_attr)
        reason = trigger(signals, cfg)
        contributions.append(
            FactorContribution(name=name, weight=weight, contribution=weight if reason else 0, reason=reason or "")
        )

    score = sum(c.contribution for c in contributions)
    classification = "complex" if score >= cfg.complex_threshold else "simple"
    analysis = ComplexityAnalysis(
        score=score,
        classification=classification,
        factors=tuple(contributions),
        recommended_tier="advanced" if classification == "complex" else "standard",
    )
    logger.debug(
        f"Complexity for job {job.id}: score={score} ({classification})",
        extra={"factors": [c.name for c in contributions if c.contribution]},
    )
    return analysis
