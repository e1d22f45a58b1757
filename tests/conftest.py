"""
Pytest configuration and fixtures for agent runtime tests.
"""

import pytest

from agent_runtime import config_loader
from agent_runtime.models import (
    AgentConfig,
    ConversationState,
    ModelRuntimeConfig,
    TurnConfig,
)
from agent_runtime.orchestration import TurnController


@pytest.fixture
def turn_config():
    """A fully populated turn configuration."""
    return TurnConfig(
        session_id="session-123",
        user_id="user-1",
        model_runtime_config=ModelRuntimeConfig(model="gpt-4o-mini", provider="openai"),
        agent_config=AgentConfig(max_steps=5),
    )


@pytest.fixture
def controller(turn_config):
    """Controller with default dispatch policy."""
    return TurnController(turn_config)


@pytest.fixture
def state():
    """Conversation state with one user message and one tool."""
    return ConversationState(
        messages=[{"role": "user", "content": "hi"}],
        tools=[
            {
                "type": "function",
                "function": {
                    "name": "calculate",
                    "description": "Evaluate a math expression.",
                    "parameters": {"type": "object", "properties": {}},
                },
            }
        ],
    )


@pytest.fixture(autouse=True)
def reset_app_config():
    """Clear the cached app config around each test."""
    config_loader.reset_config_cache()
    yield
    config_loader.reset_config_cache()
