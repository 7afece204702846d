"""Core flowsmith modules: data model, settings, budgets and validation schema."""

from .budget import BudgetState
from .cost_monitor import Authorization, CostMonitor
from .exceptions import (
    CatalogUnavailableError,
    FlowsmithError,
    InputValidationError,
    JobCancelledError,
    JobNotFoundError,
    PromptBudgetError,
)
from .llm_pricing import MODEL_PRICING, PRICING_VERSION, calculate_llm_cost, get_model_pricing
from .settings import FlowsmithSettings, SettingsManager, load_settings
from .workflow_schema import WORKFLOW_SCHEMA, schema_issues

__all__ = [
    "MODEL_PRICING",
    "PRICING_VERSION",
    "WORKFLOW_SCHEMA",
    "Authorization",
    "BudgetState",
    "CatalogUnavailableError",
    "CostMonitor",
    "FlowsmithError",
    "FlowsmithSettings",
    "InputValidationError",
    "JobCancelledError",
    "JobNotFoundError",
    "PromptBudgetError",
    "SettingsManager",
    "calculate_llm_cost",
    "get_model_pricing",
    "load_settings",
    "schema_issues",
]
