"""Tests for settings management."""

import json
import threading
from pathlib import Path

import pytest
from pydantic import ValidationError

from flowsmith.core.settings import (
    ComplexitySettings,
    ContextSettings,
    FlowsmithSettings,
    PromptSettings,
    ProviderSettings,
    SettingsManager,
    load_settings,
)


@pytest.fixture
def settings_path(tmp_path: Path) -> Path:
    return tmp_path / ".flowsmith" / "settings.json"


def write_settings(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data))


class TestDefaults:
    """Default values match the documented configuration."""

    def test_complexity_defaults(self) -> None:
        cfg = ComplexitySettings()
        assert cfg.step_count_weight == 3
        assert cfg.step_count_threshold == 5
        assert cfg.integrations_weight == 2
        assert cfg.integration_threshold == 3
        assert cfg.ai_processing_weight == 2
        assert cfg.parallel_processing_weight == 2
        assert cfg.complex_threshold == 4

    def test_context_scaling_table(self) -> None:
        cfg = ContextSettings()
        assert (cfg.simple.item_count, cfg.simple.chars_per_item) == (4, 600)
        assert (cfg.complex.item_count, cfg.complex.chars_per_item) == (8, 1200)
        assert cfg.for_classification("complex").total_chars == 9600
        assert cfg.for_classification("simple").total_chars == 2400

    def test_prompt_ceilings(self) -> None:
        cfg = PromptSettings()
        assert cfg.input_ceiling("standard") == 3500
        assert cfg.input_ceiling("advanced") == 4500
        assert cfg.min_description_chars == 400

    def test_budget_defaults(self) -> None:
        settings = FlowsmithSettings()
        assert settings.budget.daily_limit_usd == 10.0
        assert settings.budget.per_call_limit_usd == 1.0
        assert settings.budget.window_hours == 24

    def test_default_providers(self) -> None:
        settings = FlowsmithSettings()
        assert [p.name for p in settings.providers] == ["anthropic", "openai"]
        assert settings.provider("anthropic").advanced_model is not None
        assert settings.provider("missing") is None

    def test_settings_are_frozen(self) -> None:
        settings = FlowsmithSettings()
        with pytest.raises(ValidationError):
            settings.version = "2.0.0"


class TestValidation:
    def test_duplicate_provider_names_rejected(self) -> None:
        provider = ProviderSettings(name="anthropic", standard_model="m", api_key_env="KEY")
        with pytest.raises(ValidationError, match="Duplicate provider"):
            FlowsmithSettings(providers=[provider, provider])

    def test_provider_name_normalized(self) -> None:
        provider = ProviderSettings(name="  OpenAI ", standard_model="gpt-4o", api_key_env="OPENAI_API_KEY")
        assert provider.name == "openai"

    def test_credentials_never_serialized(self) -> None:
        settings = FlowsmithSettings(credentials={"anthropic": "sk-ant-secret"})
        assert "credentials" not in settings.model_dump()
        assert "sk-ant-secret" not in repr(settings)


class TestSettingsManager:
    def test_missing_file_gives_defaults(self, settings_path: Path) -> None:
        settings = SettingsManager(settings_path, environ={}).load()
        assert settings.budget.daily_limit_usd == 10.0

    def test_loads_file(self, settings_path: Path) -> None:
        write_settings(settings_path, {"budget": {"daily_limit_usd": 3.5}, "invoker": {"timeout_seconds": 12}})

        settings = SettingsManager(settings_path, environ={}).load()

        assert settings.budget.daily_limit_usd == 3.5
        assert settings.invoker.timeout_seconds == 12

    def test_corrupt_file_falls_back_to_defaults(self, settings_path: Path) -> None:
        settings_path.parent.mkdir(parents=True)
        settings_path.write_text("{not json")

        settings = SettingsManager(settings_path, environ={}).load()

        assert settings == FlowsmithSettings()

    def test_invalid_values_fall_back_to_defaults(self, settings_path: Path) -> None:
        write_settings(settings_path, {"budget": {"daily_limit_usd": -5}})

        settings = SettingsManager(settings_path, environ={}).load()

        assert settings.budget.daily_limit_usd == 10.0

    def test_environment_overrides_file(self, settings_path: Path) -> None:
        write_settings(settings_path, {"budget": {"daily_limit_usd": 3.5}})
        environ = {
            "FLOWSMITH_DAILY_COST_BUDGET": "20",
            "FLOWSMITH_SINGLE_CALL_LIMIT": "0.25",
            "FLOWSMITH_TIMEOUT_SECONDS": "5",
            "FLOWSMITH_ADVANCED_TIER_ENABLED": "false",
        }

        settings = SettingsManager(settings_path, environ=environ).load()

        assert settings.budget.daily_limit_usd == 20.0
        assert settings.budget.per_call_limit_usd == 0.25
        assert settings.invoker.timeout_seconds == 5.0
        assert settings.features.advanced_tier_enabled is False

    def test_invalid_environment_value_ignored(self, settings_path: Path) -> None:
        settings = SettingsManager(settings_path, environ={"FLOWSMITH_DAILY_COST_BUDGET": "lots"}).load()
        assert settings.budget.daily_limit_usd == 10.0

    def test_credentials_resolved_from_environment(self, settings_path: Path) -> None:
        settings = SettingsManager(settings_path, environ={"ANTHROPIC_API_KEY": "sk-ant-test"}).load()

        assert settings.has_credentials("anthropic")
        assert not settings.has_credentials("openai")

    def test_load_is_cached(self, settings_path: Path) -> None:
        manager = SettingsManager(settings_path, environ={})
        assert manager.load() is manager.load()

    def test_concurrent_load_returns_one_object(self, settings_path: Path) -> None:
        manager = SettingsManager(settings_path, environ={})
        results = []

        def load() -> None:
            results.append(manager.load())

        threads = [threading.Thread(target=load) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len({id(r) for r in results}) == 1

    def test_load_settings_helper(self, settings_path: Path) -> None:
        write_settings(settings_path, {"features": {"blueprint_for_complex": True}})
        assert load_settings(settings_path, environ={}).features.blueprint_for_complex is True

    def test_default_path_is_redirected_in_tests(self, tmp_path: Path) -> None:
        write_settings(tmp_path / "flowsmith-settings.json", {"budget": {"daily_limit_usd": 2.5}})

        assert SettingsManager().settings_path == tmp_path / "flowsmith-settings.json"
        assert SettingsManager(None, environ={}).settings_path == tmp_path / "flowsmith-settings.json"
        assert load_settings().budget.daily_limit_usd == 2.5
