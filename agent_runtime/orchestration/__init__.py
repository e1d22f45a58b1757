"""
Turn orchestration.

The controller maps (phase, payload, state) to the next instruction;
the runtime is a reference loop that executes those instructions.
"""

from .tool_calls import to_tool_invocation, to_tool_invocations, tool_call_name
from .controller import TurnController
from .runtime import AgentRuntime, RuntimeResult, RuntimeStep

__all__ = [
    "to_tool_invocation",
    "to_tool_invocations",
    "tool_call_name",
    "TurnController",
    "AgentRuntime",
    "RuntimeResult",
    "RuntimeStep",
]
