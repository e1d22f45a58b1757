"""
Pydantic schemas for execution contexts and controller instructions.
"""

from .context import (
    Phase,
    ToolFunction,
    MessageToolCall,
    ToolInvocationSpec,
    LLMResult,
    LLMResultPayload,
    ToolResultPayload,
    UserInputContext,
    LLMResultContext,
    ToolResultContext,
    ToolsBatchResultContext,
    UnknownPhaseContext,
    ExecutionContext,
    parse_execution_context,
)
from .instructions import (
    FinishReason,
    CallLLMPayload,
    CallLLM,
    CallTool,
    CallToolsBatch,
    Finish,
    Instruction,
    parse_instruction,
)

__all__ = [
    # Context
    "Phase",
    "ToolFunction",
    "MessageToolCall",
    "ToolInvocationSpec",
    "LLMResult",
    "LLMResultPayload",
    "ToolResultPayload",
    "UserInputContext",
    "LLMResultContext",
    "ToolResultContext",
    "ToolsBatchResultContext",
    "UnknownPhaseContext",
    "ExecutionContext",
    "parse_execution_context",
    # Instructions
    "FinishReason",
    "CallLLMPayload",
    "CallLLM",
    "CallTool",
    "CallToolsBatch",
    "Finish",
    "Instruction",
    "parse_instruction",
]
