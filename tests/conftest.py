"""Root-level test configuration and fixtures."""

import threading

import pytest

from flowsmith.core.budget import BudgetState
from flowsmith.core.cost_monitor import CostMonitor
from flowsmith.core.models import Job
from flowsmith.core.settings import FlowsmithSettings
from tests.shared.llm_mock import create_mock_get_model

PROVIDER_ENV_VARS = [
    "ANTHROPIC_API_KEY",
    "OPENAI_API_KEY",
    "FLOWSMITH_DAILY_COST_BUDGET",
    "FLOWSMITH_SINGLE_CALL_LIMIT",
    "FLOWSMITH_TIMEOUT_SECONDS",
    "FLOWSMITH_ADVANCED_TIER_ENABLED",
]


@pytest.fixture(autouse=True, scope="function")
def mock_llm_calls(monkeypatch, request):
    """Auto-applied fixture that mocks all LLM calls to prevent API usage."""
    mock_get_model = create_mock_get_model()
    monkeypatch.setattr("llm.get_model", mock_get_model)

    # Make the mock available to tests that want to configure it
    request.node.mock_llm = mock_get_model

    yield mock_get_model

    mock_get_model.reset()


@pytest.fixture
def mock_llm_responses(request):
    """Fixture to script LLM responses for specific tests.

    Usage:
        def test_something(mock_llm_responses):
            mock_llm_responses.set_response("anthropic/claude-sonnet-4-5", {"name": ...})
    """
    return request.node.mock_llm


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch, tmp_path):
    """Keep tests away from the real settings file and real provider keys."""
    from flowsmith.core.settings import SettingsManager

    for name in PROVIDER_ENV_VARS:
        monkeypatch.delenv(name, raising=False)

    test_settings_path = tmp_path / "flowsmith-settings.json"
    original_init = SettingsManager.__init__

    def patched_settings_init(self, *args, **kwargs):
        if args:
            if args[0] is None:
                args = (test_settings_path, *args[1:])
        elif kwargs.get("settings_path") is None:
            kwargs["settings_path"] = test_settings_path
        original_init(self, *args, **kwargs)

    monkeypatch.setattr(SettingsManager, "__init__", patched_settings_init)


@pytest.fixture
def settings():
    """Default settings with credentials for both providers and a short timeout."""
    return FlowsmithSettings(
        invoker={"timeout_seconds": 2.0},
        credentials={"anthropic": "test-anthropic-key", "openai": "test-openai-key"},
    )


@pytest.fixture
def budget():
    return BudgetState(daily_limit_usd=10.0, per_call_limit_usd=1.0)


@pytest.fixture
def cost_monitor(budget):
    return CostMonitor(budget)


@pytest.fixture
def cancel_event():
    return threading.Event()


@pytest.fixture
def simple_job():
    """REST fetch plus transform: matches the api-fetch-transform blueprint."""
    return Job.model_validate(
        {
            "processDescription": "Every morning we pull open orders from our REST API and reshape them for reporting.",
            "businessContext": {"industry": "retail", "department": "operations"},
            "automationOpportunities": [
                {"title": "Fetch orders", "description": "GET the open orders endpoint", "stepType": "api"},
                {"title": "Reshape orders", "description": "Keep id, total and status", "stepType": "transform"},
            ],
        }
    )


@pytest.fixture
def complex_job():
    """AI classification across many integrations in a regulated industry."""
    return Job.model_validate(
        {
            "processDescription": (
                "Incoming loan applications arrive by email. We use AI to classify each document, "
                "extract applicant data, check it against Salesforce, update HubSpot and post a summary "
                "to Slack. If the risk score is high, route the application to a senior reviewer; "
                "otherwise sync the approval to all platforms simultaneously."
            ),
            "businessContext": {"industry": "financial services", "department": "lending", "volume": "500 per day"},
            "automationOpportunities": [
                {"title": "Receive applications", "stepType": "email", "integrations": ["gmail"]},
                {
                    "title": "Classify documents",
                    "description": "Use machine learning to classify each attachment",
                    "automationSolution": "ai_classification",
                },
                {"title": "Extract applicant data", "description": "Pull fields from the PDF"},
                {"title": "Check CRM", "integrations": ["salesforce"]},
                {"title": "Update marketing", "integrations": ["hubspot"]},
                {"title": "Notify team", "integrations": ["slack"], "stepType": "notification"},
            ],
        }
    )
