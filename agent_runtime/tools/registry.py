"""
Tool Registry - tool implementations available to a tool executor.

A registry maps tool names to their metadata and handlers. The turn
controller carries an empty one: it routes calls, it never runs them.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from ..schemas import ToolInvocationSpec, ToolResultPayload

logger = logging.getLogger(__name__)


@dataclass
class ToolDefinition:
    """Metadata for a tool - defined once, used everywhere."""

    name: str
    description: str
    handler: Callable[[dict], Any]
    parameters: dict = field(default_factory=dict)  # JSON schema properties

    def to_tool_descriptor(self) -> dict:
        """Render as an OpenAI function-calling tool definition."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": self.parameters,
                    "required": list(self.parameters.keys()),
                },
            },
        }


class ToolRegistry:
    """Registry of tool implementations, keyed by name."""

    def __init__(self):
        self._tools: dict[str, ToolDefinition] = {}

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def register(
        self,
        name: str,
        description: str,
        handler: Callable[[dict], Any],
        parameters: Optional[dict] = None,
    ) -> None:
        """Register a tool with its metadata."""
        self._tools[name] = ToolDefinition(
            name=name,
            description=description,
            handler=handler,
            parameters=parameters or {},
        )

    def get(self, name: str) -> Optional[ToolDefinition]:
        """Get a tool by name."""
        return self._tools.get(name)

    def all_tools(self) -> dict[str, ToolDefinition]:
        """Get a copy of all registered tools."""
        return self._tools.copy()

    def get_tools_summary(self) -> str:
        """Get formatted summary of all tools for prompts."""
        lines = []
        for name, tool in self._tools.items():
            lines.append(f"- {name}: {tool.description}")
        return "\n".join(lines)

    def to_tool_descriptors(self) -> list[dict]:
        """Tool catalog in the shape ``ConversationState.tools`` expects."""
        return [tool.to_tool_descriptor() for tool in self._tools.values()]

    def execute(self, spec: ToolInvocationSpec) -> ToolResultPayload:
        """
        Run the handler registered under ``spec.api_name``.

        Unknown tools, undecodable arguments and handler exceptions are
        reported as unsuccessful results rather than raised, so the model
        can see the error and recover.

        Args:
            spec: The tool invocation to run.

        Returns:
            ToolResultPayload carrying the handler output or an error.
        """
        start = time.perf_counter()

        def result(data: Any, success: bool) -> ToolResultPayload:
            return ToolResultPayload(
                tool_call=spec,
                tool_call_id=spec.id,
                data=data,
                is_success=success,
                execution_time=time.perf_counter() - start,
            )

        tool_def = self._tools.get(spec.api_name)
        if tool_def is None:
            logger.warning("Unknown tool: %s", spec.api_name)
            return result({"error": f"Unknown tool '{spec.api_name}'"}, False)

        try:
            args = json.loads(spec.arguments) if spec.arguments else {}
        except json.JSONDecodeError as e:
            logger.warning("Invalid arguments for tool '%s': %s", spec.api_name, e)
            return result({"error": f"Invalid JSON arguments: {e}"}, False)
        if not isinstance(args, dict):
            return result({"error": "Tool arguments must be a JSON object"}, False)

        try:
            logger.debug("Executing tool '%s' (call %s)", spec.api_name, spec.id)
            data = tool_def.handler(args)
        except Exception as e:
            logger.error("Tool '%s' execution failed: %s", spec.api_name, e)
            error_msg = str(e)
            if len(error_msg) > 500:
                error_msg = error_msg[:500] + "..."
            return result({"error": error_msg}, False)

        return result(data, True)

    def clear(self) -> None:
        """Remove all registered tools."""
        self._tools.clear()
