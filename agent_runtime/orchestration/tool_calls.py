"""
Conversion from raw model tool calls to tool invocation specs.

Models see tools under a single function name. Plugin tools encode their
identifier, API name and optionally their type in that name, joined by
``TOOL_NAME_SEPARATOR``; plain names refer to the tool of the same name.
"""

from typing import Iterable

from ..schemas import MessageToolCall, ToolInvocationSpec

TOOL_NAME_SEPARATOR = "____"

DEFAULT_TOOL_TYPE = "default"


def to_tool_invocation(call: MessageToolCall) -> ToolInvocationSpec:
    """Resolve one raw tool call into the invocation spec executors consume."""
    name = call.function.name
    parts = name.split(TOOL_NAME_SEPARATOR)
    # "____search" has no identifier segment
    identifier = parts[0] or (parts[1] if len(parts) > 1 else "") or name
    api_name = parts[1] if len(parts) > 1 and parts[1] else identifier
    tool_type = parts[2] if len(parts) > 2 and parts[2] else DEFAULT_TOOL_TYPE

    return ToolInvocationSpec(
        id=call.id,
        identifier=identifier,
        api_name=api_name,
        arguments=call.function.arguments,
        type=tool_type,
    )


def to_tool_invocations(calls: Iterable[MessageToolCall]) -> list[ToolInvocationSpec]:
    """Resolve raw tool calls, preserving their order."""
    return [to_tool_invocation(call) for call in calls]


def tool_call_name(spec: ToolInvocationSpec) -> str:
    """Rebuild the function name the model used for ``spec``."""
    if spec.identifier == spec.api_name and spec.type == DEFAULT_TOOL_TYPE:
        return spec.identifier
    parts = [spec.identifier, spec.api_name]
    if spec.type != DEFAULT_TOOL_TYPE:
        parts.append(spec.type)
    return TOOL_NAME_SEPARATOR.join(parts)
