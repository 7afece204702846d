"""Model selection: builds the ordered fallback chain of provider routes."""

import logging
from dataclasses import dataclass

from flowsmith.core.cost_monitor import CostMonitor
from flowsmith.core.models import Tier
from flowsmith.core.settings import FlowsmithSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelRoute:
    """One entry of the fallback chain."""

    provider: str
    tier: Tier
    model: str

    def __str__(self) -> str:
        return f"{self.provider}/{self.tier} ({self.model})"


class ModelRouter:
    """Orders provider routes for a job.

    Advanced routes lead the chain only when the job recommends the advanced
    tier, the feature flag allows it and the cost monitor reports budget
    headroom. Standard routes follow in provider order (primary first), so a
    non-empty chain always ends with a standard route. Providers without
    credentials are left out.
    """

    def __init__(self, settings: FlowsmithSettings, cost_monitor: CostMonitor):
        self.settings = settings
        self.cost_monitor = cost_monitor

    def advanced_allowed(self) -> bool:
        if not self.settings.features.advanced_tier_enabled:
            return False
        return self.cost_monitor.advanced_tier_allowed()

    def route(self, recommended_tier: Tier) -> list[ModelRoute]:
        providers = [p for p in self.settings.providers if self.settings.has_credentials(p.name)]
        skipped = [p.name for p in self.settings.providers if not self.settings.has_credentials(p.name)]
        if skipped:
            logger.debug(f"Excluding providers without credentials: {', '.join(skipped)}")

        chain: list[ModelRoute] = []
        if recommended_tier == "advanced":
            if self.advanced_allowed():
                chain.extend(
                    ModelRoute(provider=p.name, tier="advanced", model=p.advanced_model)
                    for p in providers
                    if p.advanced_model
                )
            else:
                logger.info("Advanced tier not available (disabled or daily budget spent); using standard tier")
        chain.extend(ModelRoute(provider=p.name, tier="standard", model=p.standard_model) for p in providers)

        if not chain:
            logger.warning("No provider has credentials configured; model generation is unavailable")
        else:
            logger.debug(f"Route chain: {' -> '.join(str(r) for r in chain)}")
        return chain
