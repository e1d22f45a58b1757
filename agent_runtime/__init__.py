"""
Agent Runtime - turn controller for conversational agent loops.

This package provides:
- TurnController: decides the next orchestration instruction per phase
- AgentRuntime: reference loop executing those instructions
- ToolRegistry: tool implementations for tool executors
- YAML/.env configuration and logging setup
"""

from .models import ConversationState, TurnConfig
from .orchestration import AgentRuntime, TurnController

__all__ = [
    "AgentRuntime",
    "ConversationState",
    "TurnConfig",
    "TurnController",
]

__version__ = "0.1.0"
