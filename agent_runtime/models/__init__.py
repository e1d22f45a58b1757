"""
Data models for the agent runtime.
"""

from .config import (
    EmptyToolCallsPolicy,
    ModelRuntimeConfig,
    AgentConfig,
    DispatchPolicy,
    TurnConfig,
    LoggingConfig,
    AppConfig,
)
from .state import ConversationState

__all__ = [
    # Config models
    "EmptyToolCallsPolicy",
    "ModelRuntimeConfig",
    "AgentConfig",
    "DispatchPolicy",
    "TurnConfig",
    "LoggingConfig",
    "AppConfig",
    # State
    "ConversationState",
]
