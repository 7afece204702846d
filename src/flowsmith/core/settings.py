"""Settings management for flowsmith with environment variable override support.

Settings are read once at process start (file, then environment overrides) and
are immutable afterwards. Complexity weights, context scaling, token ceilings
and budgets are configuration, not constants, because they get tuned.
"""

import json
import logging
import os
import threading
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

logger = logging.getLogger(__name__)

_TRUE_VALUES = ("true", "1", "yes", "on")


class ComplexitySettings(BaseModel):
    """Weights and thresholds of the complexity factors."""

    model_config = ConfigDict(frozen=True)

    step_count_weight: int = 3
    step_count_threshold: int = 5
    integrations_weight: int = 2
    integration_threshold: int = 3
    ai_processing_weight: int = 2
    regulated_industry_weight: int = 1
    high_volume_weight: int = 1
    volume_threshold: int = 100
    conditional_logic_weight: int = 1
    parallel_processing_weight: int = 2
    parallel_integration_threshold: int = 3
    complex_threshold: int = 4


class ScalingRow(BaseModel):
    """Documentation budget for one classification."""

    model_config = ConfigDict(frozen=True)

    item_count: int = Field(..., ge=0)
    chars_per_item: int = Field(..., ge=0)

    @property
    def total_chars(self) -> int:
        return self.item_count * self.chars_per_item


class ContextSettings(BaseModel):
    """Documentation scaling table keyed by classification."""

    model_config = ConfigDict(frozen=True)

    simple: ScalingRow = Field(default_factory=lambda: ScalingRow(item_count=4, chars_per_item=600))
    complex: ScalingRow = Field(default_factory=lambda: ScalingRow(item_count=8, chars_per_item=1200))

    def for_classification(self, classification: str) -> ScalingRow:
        return self.complex if classification == "complex" else self.simple


class PromptSettings(BaseModel):
    """Token ceilings for prompt assembly."""

    model_config = ConfigDict(frozen=True)

    standard_max_input_tokens: int = 3500
    advanced_max_input_tokens: int = 4500
    standard_max_output_tokens: int = 3000
    advanced_max_output_tokens: int = 5000
    min_description_chars: int = 400
    min_opportunity_chars: int = 80

    def input_ceiling(self, tier: str) -> int:
        return self.advanced_max_input_tokens if tier == "advanced" else self.standard_max_input_tokens

    def output_ceiling(self, tier: str) -> int:
        return self.advanced_max_output_tokens if tier == "advanced" else self.standard_max_output_tokens


class BudgetSettings(BaseModel):
    """Cost ceilings enforced by the cost monitor."""

    model_config = ConfigDict(frozen=True)

    daily_limit_usd: float = Field(default=10.0, ge=0)
    per_call_limit_usd: float = Field(default=1.0, ge=0)
    window_hours: float = Field(default=24.0, gt=0)
    warning_ratio: float = Field(default=0.8, gt=0, le=1)


class ProviderSettings(BaseModel):
    """One LLM provider and the models it serves per tier."""

    model_config = ConfigDict(frozen=True)

    name: str
    standard_model: str
    advanced_model: Optional[str] = None
    api_key_env: str

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Provider names are lowercase identifiers."""
        v = v.strip().lower()
        if not v:
            raise ValueError("Provider name must not be empty")
        return v


def _default_providers() -> list[ProviderSettings]:
    return [
        ProviderSettings(
            name="anthropic",
            standard_model="anthropic/claude-sonnet-4-5",
            advanced_model="anthropic/claude-opus-4-1-20250805",
            api_key_env="ANTHROPIC_API_KEY",
        ),
        ProviderSettings(
            name="openai",
            standard_model="gpt-4o",
            advanced_model=None,
            api_key_env="OPENAI_API_KEY",
        ),
    ]


class FeatureFlags(BaseModel):
    """Runtime feature switches."""

    model_config = ConfigDict(frozen=True)

    advanced_tier_enabled: bool = True
    # Complex jobs whose steps match a blueprint still go to the model first
    blueprint_for_complex: bool = False


class InvokerSettings(BaseModel):
    """Provider call behaviour."""

    model_config = ConfigDict(frozen=True)

    timeout_seconds: float = Field(default=30.0, gt=0)
    temperature: float = Field(default=0.1, ge=0, le=2)


class FlowsmithSettings(BaseModel):
    """Main settings configuration."""

    model_config = ConfigDict(frozen=True)

    version: str = Field(default="1.0.0")
    complexity: ComplexitySettings = Field(default_factory=ComplexitySettings)
    context: ContextSettings = Field(default_factory=ContextSettings)
    prompt: PromptSettings = Field(default_factory=PromptSettings)
    budget: BudgetSettings = Field(default_factory=BudgetSettings)
    providers: list[ProviderSettings] = Field(default_factory=_default_providers)
    features: FeatureFlags = Field(default_factory=FeatureFlags)
    invoker: InvokerSettings = Field(default_factory=InvokerSettings)
    # Resolved provider credentials (provider name -> key). Never serialized.
    credentials: dict[str, str] = Field(default_factory=dict, exclude=True, repr=False)

    @model_validator(mode="after")
    def validate_providers(self) -> "FlowsmithSettings":
        names = [p.name for p in self.providers]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate provider names in settings: {names}")
        return self

    def provider(self, name: str) -> Optional[ProviderSettings]:
        for provider in self.providers:
            if provider.name == name:
                return provider
        return None

    def has_credentials(self, provider_name: str) -> bool:
        return bool(self.credentials.get(provider_name))


class SettingsManager:
    """Loads flowsmith settings once, with environment variable overrides."""

    def __init__(self, settings_path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None):
        self.settings_path = settings_path or Path.home() / ".flowsmith" / "settings.json"
        self._environ = environ if environ is not None else os.environ
        self._settings: Optional[FlowsmithSettings] = None
        self._lock = threading.Lock()

    def load(self) -> FlowsmithSettings:
        """Load settings on first use; later calls return the same object."""
        with self._lock:
            if self._settings is None:
                data = self._load_from_file()
                self._apply_env_overrides(data)
                self._settings = self._build(data)
            return self._settings

    def _load_from_file(self) -> dict[str, Any]:
        """Load raw settings data from file or return an empty dict."""
        if not self.settings_path.exists():
            return {}
        try:
            with open(self.settings_path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to load settings from {self.settings_path} ({e}); using defaults")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Settings file {self.settings_path} does not contain an object; using defaults")
            return {}
        return data

    def _apply_env_overrides(self, data: dict[str, Any]) -> None:
        """Apply environment variable overrides to raw settings data."""
        budget = dict(data.get("budget") or {})
        self._override_float(budget, "daily_limit_usd", "FLOWSMITH_DAILY_COST_BUDGET")
        self._override_float(budget, "per_call_limit_usd", "FLOWSMITH_SINGLE_CALL_LIMIT")
        data["budget"] = budget

        invoker = dict(data.get("invoker") or {})
        self._override_float(invoker, "timeout_seconds", "FLOWSMITH_TIMEOUT_SECONDS")
        data["invoker"] = invoker

        env_flag = self._environ.get("FLOWSMITH_ADVANCED_TIER_ENABLED")
        if env_flag is not None:
            features = dict(data.get("features") or {})
            features["advanced_tier_enabled"] = env_flag.strip().lower() in _TRUE_VALUES
            data["features"] = features

    def _override_float(self, section: dict[str, Any], key: str, env_var: str) -> None:
        raw = self._environ.get(env_var)
        if raw is None:
            return
        try:
            section[key] = float(raw)
        except ValueError:
            logger.warning(f"Invalid {env_var}: {raw!r}. Keeping configured value")

    def _build(self, data: dict[str, Any]) -> FlowsmithSettings:
        try:
            settings = FlowsmithSettings(**data)
        except ValueError as e:
            logger.warning(f"Invalid settings ({e}); using defaults")
            settings = FlowsmithSettings()

        credentials = {}
        for provider in settings.providers:
            key = self._environ.get(provider.api_key_env, "").strip()
            if key:
                credentials[provider.name] = key
            else:
                logger.debug(f"No credentials for provider '{provider.name}' ({provider.api_key_env} unset)")
        return settings.model_copy(update={"credentials": credentials})


def load_settings(
    settings_path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None
) -> FlowsmithSettings:
    """Convenience wrapper around SettingsManager for one-shot loading."""
    return SettingsManager(settings_path, environ).load()
