"""
Instruction schemas emitted by the turn controller.

An instruction tells the orchestrator what to do next. The ``type`` tag
is one of ``call_llm``, ``call_tool``, ``call_tools_batch`` or ``finish``.
"""

from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from .context import ToolInvocationSpec


class FinishReason(str, Enum):
    """Why a turn ended."""

    COMPLETED = "completed"
    ERROR_RECOVERY = "error_recovery"
    MAX_STEPS_EXCEEDED = "max_steps_exceeded"


class InstructionModel(BaseModel):
    """Base for instructions: immutable, serialised with wire aliases."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the orchestrator's wire shape."""
        return self.model_dump(by_alias=True, mode="json")


class CallLLMPayload(InstructionModel):
    messages: list[Any] = Field(default_factory=list)
    model: Optional[str] = None
    provider: Optional[str] = None
    tools: list[Any] = Field(default_factory=list)


class CallLLM(InstructionModel):
    """Ask the model what to do with the current conversation."""

    type: Literal["call_llm"] = "call_llm"
    payload: CallLLMPayload


class CallTool(InstructionModel):
    """Execute a single tool call."""

    type: Literal["call_tool"] = "call_tool"
    tool_call: ToolInvocationSpec = Field(alias="toolCall")


class CallToolsBatch(InstructionModel):
    """Execute several tool calls; the executor may run them together."""

    type: Literal["call_tools_batch"] = "call_tools_batch"
    tools_calling: list[ToolInvocationSpec] = Field(alias="toolsCalling")


class Finish(InstructionModel):
    """Terminate the turn."""

    type: Literal["finish"] = "finish"
    reason: FinishReason
    reason_detail: str = Field(default="", alias="reasonDetail")


Instruction = Annotated[
    Union[CallLLM, CallTool, CallToolsBatch, Finish],
    Field(discriminator="type"),
]

_instruction_adapter = TypeAdapter(Instruction)


def parse_instruction(data: dict) -> Instruction:
    """Parse a wire-shaped instruction dict back into its model."""
    return _instruction_adapter.validate_python(data)
