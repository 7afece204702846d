"""Minimal conftest for core tests that don't need the LLM mock."""

import pytest


# Override the root mock_llm_calls with a no-op since core tests don't call LLMs
@pytest.fixture(autouse=True, scope="function")
def mock_llm_calls():
    """No-op override - core tests don't use LLMs."""
    pass
