"""
Reference orchestration loop around the turn controller.

``AgentRuntime`` drives one turn: it asks the controller for the next
instruction, hands it to the injected model or tool executor, records the
result in the conversation state and feeds it back as the next phase,
until the controller finishes or the step limit is hit.

Per-step flow:
    1. ``controller.decide(context, state)``
    2. ``call_llm``: run the LLM executor, append the assistant message
    3. ``call_tool`` / ``call_tools_batch``: run each call in order,
       append one ``tool`` message per result
    4. ``finish``: stop and return the reason
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, Union

from ..models import ConversationState
from ..schemas import (
    CallLLM,
    CallTool,
    CallToolsBatch,
    ExecutionContext,
    Finish,
    FinishReason,
    Instruction,
    LLMResultContext,
    LLMResultPayload,
    ToolInvocationSpec,
    ToolResultContext,
    ToolResultPayload,
    ToolsBatchResultContext,
    UserInputContext,
)
from ..tools.registry import ToolRegistry
from .controller import TurnController
from .tool_calls import tool_call_name

logger = logging.getLogger(__name__)

# Used when neither the runtime nor the agent config sets a step limit.
DEFAULT_MAX_STEPS = 10

LLMExecutor = Callable[[CallLLM, ConversationState], Union[LLMResultPayload, dict]]
ToolExecutor = Callable[[ToolInvocationSpec], ToolResultPayload]


@dataclass
class RuntimeStep:
    """A single decide-and-execute step of a turn."""

    step_number: int
    phase: str
    instructions: list[Instruction] = field(default_factory=list)
    next_context: Optional[ExecutionContext] = None
    finish: Optional[Finish] = None
    tools_used: list[str] = field(default_factory=list)

    @property
    def is_final(self) -> bool:
        return self.finish is not None


@dataclass
class RuntimeResult:
    """Result from a complete turn."""

    finish: Finish
    state: ConversationState
    steps: list[RuntimeStep] = field(default_factory=list)

    @property
    def content(self) -> str:
        """Content of the last assistant message, if any."""
        for message in reversed(self.state.messages):
            if message.get("role") == "assistant" and message.get("content"):
                return message["content"]
        return ""

    @property
    def tools_used(self) -> list[str]:
        """Unique tool names in call order."""
        seen: set[str] = set()
        result: list[str] = []
        for step in self.steps:
            for name in step.tools_used:
                if name not in seen:
                    seen.add(name)
                    result.append(name)
        return result


class AgentRuntime:
    """
    Orchestrator loop executing the instructions a ``TurnController`` emits.

    Model calls go through ``llm_executor``. Tool calls go through
    ``tool_executor``, or through ``registry.execute`` when only a registry
    is given. Batches run sequentially in their original order.
    """

    def __init__(
        self,
        controller: TurnController,
        llm_executor: LLMExecutor,
        tool_executor: Optional[ToolExecutor] = None,
        registry: Optional[ToolRegistry] = None,
        max_steps: Optional[int] = None,
    ):
        if tool_executor is None:
            if registry is None:
                raise ValueError("Either tool_executor or registry is required")
            tool_executor = registry.execute

        self.controller = controller
        self.llm_executor = llm_executor
        self.tool_executor = tool_executor
        if max_steps is None:
            max_steps = controller.get_config().max_steps
        if max_steps is None:
            max_steps = DEFAULT_MAX_STEPS
        if max_steps < 1:
            raise ValueError(f"max_steps must be at least 1, got {max_steps}")

        self.max_steps = max_steps
        self.session_id = controller.get_config().session_id

    def run(
        self,
        state: ConversationState,
        context: Union[ExecutionContext, Mapping[str, Any], None] = None,
    ) -> RuntimeResult:
        """
        Run a turn until the controller finishes or ``max_steps`` is reached.

        Args:
            state: Conversation state; updated in place as the turn advances.
            context: Starting context. Defaults to ``user_input``.

        Returns:
            RuntimeResult with the finishing instruction and the step trace.
        """
        steps: list[RuntimeStep] = []
        current = context if context is not None else UserInputContext()

        for step_num in range(1, self.max_steps + 1):
            step = self.step(current, state, step_num)
            steps.append(step)
            if step.finish is not None:
                self._log_trace_summary(steps)
                return RuntimeResult(finish=step.finish, state=state, steps=steps)
            current = step.next_context

        logger.warning(
            "[%s] Max steps (%d) reached, finishing turn",
            self.session_id,
            self.max_steps,
        )
        self._log_trace_summary(steps)
        return RuntimeResult(
            finish=Finish(
                reason=FinishReason.MAX_STEPS_EXCEEDED,
                reason_detail=f"Reached maximum steps: {self.max_steps}",
            ),
            state=state,
            steps=steps,
        )

    def step(
        self,
        context: Union[ExecutionContext, Mapping[str, Any]],
        state: ConversationState,
        step_number: int = 1,
    ) -> RuntimeStep:
        """Decide and execute a single step."""
        decision = self.controller.decide(context, state)
        instructions = decision if isinstance(decision, list) else [decision]
        phase = context.get("phase") if isinstance(context, Mapping) else context.phase
        step = RuntimeStep(
            step_number=step_number,
            phase=phase,
            instructions=instructions,
        )

        first = instructions[0]
        if isinstance(first, Finish):
            step.finish = first
        elif isinstance(first, CallLLM):
            self._run_llm(first, state, step)
        else:
            specs: list[ToolInvocationSpec] = []
            for instruction in instructions:
                if isinstance(instruction, CallTool):
                    specs.append(instruction.tool_call)
                elif isinstance(instruction, CallToolsBatch):
                    specs.extend(instruction.tools_calling)
            self._run_tools(specs, state, step, batched=not isinstance(first, CallTool))

        return step

    def _run_llm(
        self, instruction: CallLLM, state: ConversationState, step: RuntimeStep
    ) -> None:
        try:
            logger.debug("[%s] Step %d: calling LLM", self.session_id, step.step_number)
            raw = self.llm_executor(instruction, state)
            payload = (
                raw
                if isinstance(raw, LLMResultPayload)
                else LLMResultPayload.model_validate(raw)
            )
        except Exception as e:
            logger.error(
                "[%s] LLM call failed at step %d: %s",
                self.session_id,
                step.step_number,
                e,
            )
            step.finish = Finish(
                reason=FinishReason.ERROR_RECOVERY,
                reason_detail=f"LLM call failed: {e}",
            )
            return

        message: dict[str, Any] = {
            "role": "assistant",
            "content": payload.result.content,
        }
        if payload.result.tool_calls:
            message["tool_calls"] = [
                call.model_dump() for call in payload.result.tool_calls
            ]
        state.messages.append(message)
        step.next_context = LLMResultContext(payload=payload)

    def _run_tools(
        self,
        specs: list[ToolInvocationSpec],
        state: ConversationState,
        step: RuntimeStep,
        batched: bool,
    ) -> None:
        results: list[ToolResultPayload] = []
        for spec in specs:
            name = tool_call_name(spec)
            step.tools_used.append(name)
            try:
                logger.debug(
                    "[%s] Step %d: executing tool '%s'",
                    self.session_id,
                    step.step_number,
                    name,
                )
                result = self.tool_executor(spec)
            except Exception as e:
                logger.error("[%s] Tool '%s' execution failed: %s", self.session_id, name, e)
                step.finish = Finish(
                    reason=FinishReason.ERROR_RECOVERY,
                    reason_detail=f"Tool '{name}' execution failed: {e}",
                )
                return
            results.append(result)
            state.messages.append(
                {
                    "role": "tool",
                    "tool_call_id": spec.id,
                    "name": name,
                    "content": _format_tool_data(result.data),
                }
            )

        if batched:
            step.next_context = ToolsBatchResultContext(payload=results)
        else:
            step.next_context = ToolResultContext(payload=results[0])

    def _log_trace_summary(self, steps: list[RuntimeStep]) -> None:
        """Log a compact trace summary."""
        logger.info("[%s] %s", self.session_id, "─" * 50)
        logger.info("[%s] TRACE SUMMARY", self.session_id)
        for step in steps:
            kinds = ", ".join(i.type for i in step.instructions)
            if step.is_final:
                logger.info(
                    "[%s] Step %d [FINAL]: %s (%s)",
                    self.session_id,
                    step.step_number,
                    step.finish.reason.value,
                    step.finish.reason_detail,
                )
            else:
                logger.info(
                    "[%s] Step %d: %s -> %s",
                    self.session_id,
                    step.step_number,
                    step.phase,
                    kinds,
                )


def _format_tool_data(data: Any) -> str:
    """Render tool output as message content."""
    if isinstance(data, str):
        return data
    try:
        return json.dumps(data)
    except (TypeError, ValueError):
        return str(data)
