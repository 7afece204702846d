"""LLM-level mock for testing without API calls.

Replaces ``llm.get_model`` so provider calls never leave the process. Tests
script per-model behaviour: the text to return, an exception to raise, or a
delay that simulates a slow provider.
"""

import json
import threading
from typing import Any, Optional, Union
from unittest.mock import Mock

DEFAULT_WORKFLOW = {
    "name": "mock-workflow",
    "nodes": [
        {"id": "trigger", "type": "n8n-nodes-base.webhook", "name": "Webhook", "parameters": {"path": "mock"}},
        {"id": "shape", "type": "n8n-nodes-base.set", "name": "Shape Data", "parameters": {"values": {}}},
    ],
    "connections": [{"from": "trigger", "to": "shape"}],
}

Script = Union[str, dict[str, Any], BaseException]


class MockLLMModel:
    """Mock LLM model that simulates the llm library's Model interface."""

    def __init__(self, model_name: str, mock_get_model: "MockGetModel"):
        self.model_id = model_name
        self.model_name = model_name
        self._mock_get_model = mock_get_model

    def prompt(self, prompt: str, temperature: float = 0.0, **kwargs: Any) -> Mock:
        """Simulate the llm prompt method."""
        self._mock_get_model.call_history.append(
            {
                "model": self.model_name,
                "prompt": prompt,
                "temperature": temperature,
                "kwargs": kwargs,
            }
        )

        delay = self._mock_get_model.get_delay(self.model_name)
        if delay:
            # Interruptible so abandoned calls finish when the test ends
            self._mock_get_model.release.wait(delay)

        script = self._mock_get_model.get_response(self.model_name)
        if isinstance(script, BaseException):
            raise script

        response = Mock()
        response_text = json.dumps(script) if isinstance(script, dict) else str(script)
        # text() is a method in the llm library
        response.text = Mock(return_value=response_text)

        usage_data = Mock()
        usage_data.input = len(prompt) // 4
        usage_data.output = len(response_text) // 4
        usage_data.details = {}
        response.usage = Mock(return_value=usage_data)
        return response


class MockGetModel:
    """Mock for the llm.get_model function."""

    def __init__(self) -> None:
        self.call_history: list[dict[str, Any]] = []
        self.release = threading.Event()
        self._responses: dict[str, Script] = {}
        self._delays: dict[str, float] = {}

    def __call__(self, model_name: str) -> MockLLMModel:
        return MockLLMModel(model_name, self)

    def set_response(self, model: str, response: Script) -> None:
        """Script what a model returns: text, a workflow dict, or an exception to raise."""
        self._responses[model] = response

    def set_delay(self, model: str, seconds: float) -> None:
        self._delays[model] = seconds

    def get_response(self, model: str) -> Script:
        return self._responses.get(model, DEFAULT_WORKFLOW)

    def get_delay(self, model: str) -> float:
        return self._delays.get(model, 0.0)

    def models_called(self) -> list[str]:
        return [call["model"] for call in self.call_history]

    def last_prompt(self, model: Optional[str] = None) -> str:
        calls = [c for c in self.call_history if model is None or c["model"] == model]
        return calls[-1]["prompt"] if calls else ""

    def reset(self) -> None:
        """Reset mock state and unblock any delayed calls."""
        self.release.set()
        self.call_history.clear()
        self._responses.clear()
        self._delays.clear()


def create_mock_get_model() -> MockGetModel:
    """Factory function to create a mock get_model."""
    return MockGetModel()
