"""
Execution context schemas.

Each phase of a turn carries its own payload shape. The context is a
union tagged by ``phase`` and validated when it is constructed. Tool
results are typed where they fit and otherwise carried as sent, since the
controller never reads them. Wire names follow the camelCase convention
used by the orchestrator; attributes are snake_case.
"""

import json
from enum import Enum
from typing import Any, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class Phase(str, Enum):
    """Phase tags understood by the controller."""

    USER_INPUT = "user_input"
    LLM_RESULT = "llm_result"
    TOOL_RESULT = "tool_result"
    TOOLS_BATCH_RESULT = "tools_batch_result"


class WireModel(BaseModel):
    """Base for schemas that accept both wire aliases and field names."""

    model_config = ConfigDict(populate_by_name=True)


class ToolFunction(WireModel):
    """Function name and JSON-encoded arguments of a raw tool call."""

    name: str
    arguments: str = "{}"

    @field_validator("arguments", mode="before")
    @classmethod
    def encode_arguments(cls, v):
        """Models sometimes return arguments as an object; keep them as JSON text."""
        if v is None:
            return "{}"
        if isinstance(v, (dict, list)):
            try:
                return json.dumps(v)
            except (TypeError, ValueError) as e:
                raise ValueError(f"arguments are not JSON serializable: {e}") from e
        return v


class MessageToolCall(WireModel):
    """A tool call exactly as the model emitted it."""

    id: str
    type: Literal["function"] = "function"
    function: ToolFunction


class ToolInvocationSpec(WireModel):
    """A tool call resolved to the tool identifier and API it targets."""

    id: str
    identifier: str
    api_name: str = Field(alias="apiName")
    arguments: str = "{}"
    type: str = "default"


class LLMResult(WireModel):
    """Text and raw tool calls returned by one model call."""

    content: str = ""
    tool_calls: list[MessageToolCall] = Field(default_factory=list)

    @field_validator("content", mode="before")
    @classmethod
    def default_content(cls, v):
        return "" if v is None else v

    @field_validator("tool_calls", mode="before")
    @classmethod
    def default_tool_calls(cls, v):
        return [] if v is None else v


class LLMResultPayload(WireModel):
    """Payload of the ``llm_result`` phase."""

    has_tools_calling: bool = Field(default=False, alias="hasToolsCalling")
    result: LLMResult = Field(default_factory=LLMResult)
    tools_calling: list[ToolInvocationSpec] = Field(
        default_factory=list, alias="toolsCalling"
    )

    @field_validator("result", mode="before")
    @classmethod
    def default_result(cls, v):
        return {} if v is None else v

    @field_validator("tools_calling", mode="before")
    @classmethod
    def default_tools_calling(cls, v):
        return [] if v is None else v


class ToolResultPayload(WireModel):
    """Payload of the ``tool_result`` phase (and each entry of a batch)."""

    tool_call: Union[ToolInvocationSpec, MessageToolCall, None] = Field(
        default=None, alias="toolCall", union_mode="left_to_right"
    )
    tool_call_id: str = Field(default="", alias="toolCallId")
    data: Any = None
    is_success: bool = Field(default=True, alias="isSuccess")
    execution_time: Optional[float] = Field(default=0.0, alias="executionTime")


def _read_tool_result(v):
    """Type a tool result where it fits, otherwise carry it as sent."""
    if v is None or isinstance(v, ToolResultPayload):
        return v
    if isinstance(v, list):
        return [_read_tool_result(item) for item in v]
    try:
        return ToolResultPayload.model_validate(v)
    except ValidationError:
        return v


class UserInputContext(WireModel):
    phase: Literal["user_input"] = "user_input"
    payload: Any = None


class LLMResultContext(WireModel):
    phase: Literal["llm_result"] = "llm_result"
    payload: LLMResultPayload


class ToolResultContext(WireModel):
    phase: Literal["tool_result"] = "tool_result"
    payload: Any = None

    @field_validator("payload", mode="before")
    @classmethod
    def read_payload(cls, v):
        return _read_tool_result(v)


class ToolsBatchResultContext(WireModel):
    phase: Literal["tools_batch_result"] = "tools_batch_result"
    payload: Any = None

    @field_validator("payload", mode="before")
    @classmethod
    def read_payload(cls, v):
        return _read_tool_result(v)


class UnknownPhaseContext(WireModel):
    """Any phase tag the controller does not recognise."""

    phase: str
    payload: Any = None


ExecutionContext = Union[
    UserInputContext,
    LLMResultContext,
    ToolResultContext,
    ToolsBatchResultContext,
    UnknownPhaseContext,
]

_CONTEXT_MODELS: dict[str, type[BaseModel]] = {
    Phase.USER_INPUT.value: UserInputContext,
    Phase.LLM_RESULT.value: LLMResultContext,
    Phase.TOOL_RESULT.value: ToolResultContext,
    Phase.TOOLS_BATCH_RESULT.value: ToolsBatchResultContext,
}


def parse_execution_context(data: Mapping[str, Any]) -> ExecutionContext:
    """
    Build the context model matching ``data["phase"]``.

    Unrecognised phases become an ``UnknownPhaseContext``; their payload is
    carried untouched.

    Raises:
        pydantic.ValidationError: If the payload does not match its phase.
    """
    phase = data.get("phase")
    if isinstance(phase, Phase):
        phase = phase.value
    model = _CONTEXT_MODELS.get(phase) if isinstance(phase, str) else None
    if model is None:
        return UnknownPhaseContext(phase=str(phase), payload=data.get("payload"))
    return model.model_validate({**data, "phase": phase})
