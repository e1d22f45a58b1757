"""
Turn controller: decides the next orchestration step of an agent turn.

Given the phase the orchestrator has reached and the conversation state,
``TurnController.decide`` returns what to do next: call the model, call
one tool, call a batch of tools, or finish. It executes nothing and keeps
no state between calls besides its immutable ``TurnConfig``.

Phase transitions:
    user_input          -> call_llm
    llm_result          -> call_tools_batch | call_tool | finish(completed)
    tool_result         -> call_llm
    tools_batch_result  -> call_llm
    anything else       -> finish(error_recovery)
"""

import logging
from typing import Any, Mapping, Union

from pydantic import ValidationError

from ..models import ConversationState, EmptyToolCallsPolicy, TurnConfig
from ..schemas import (
    CallLLM,
    CallLLMPayload,
    CallTool,
    CallToolsBatch,
    ExecutionContext,
    Finish,
    FinishReason,
    Instruction,
    LLMResultContext,
    LLMResultPayload,
    ToolResultContext,
    ToolsBatchResultContext,
    UnknownPhaseContext,
    UserInputContext,
    parse_execution_context,
)
from ..tools.registry import ToolRegistry
from .tool_calls import to_tool_invocations

logger = logging.getLogger(__name__)

COMPLETED_DETAIL = "General agent completed successfully"
EMPTY_TOOL_CALLS_DETAIL = "LLM signaled tool calls but returned none"

Decision = Union[Instruction, list[Instruction]]


class TurnController:
    """
    Pure router from (phase, payload, state) to the next instruction.

    Never raises from ``decide``: phases it cannot interpret and payloads
    that fail validation produce ``Finish(error_recovery)``.
    """

    def __init__(self, config: TurnConfig):
        self._config = config
        # Routing only; implementations live with the tool executor.
        self.tools = ToolRegistry()

    def get_config(self) -> TurnConfig:
        """Get the configuration this controller was built with."""
        return self._config

    def decide(
        self,
        context: Union[ExecutionContext, Mapping[str, Any]],
        state: ConversationState,
    ) -> Decision:
        """
        Decide the next instruction for the current phase.

        Args:
            context: The execution context, either a validated model or a raw
                ``{"phase": ..., "payload": ...}`` mapping.
            state: Messages and tools for the next model call.

        Returns:
            A single instruction, or a list of ``CallToolsBatch`` when a
            response holds more calls than ``max_batch_size``.
        """
        phase = context.get("phase") if isinstance(context, Mapping) else context.phase
        logger.debug(
            "Processing phase: %s for session %s",
            phase,
            self._config.session_id,
            extra={"session_id": self._config.session_id, "phase": phase},
        )

        if isinstance(context, UnknownPhaseContext):
            context = {"phase": context.phase, "payload": context.payload}
        if isinstance(context, Mapping):
            try:
                context = parse_execution_context(context)
            except ValidationError as e:
                return Finish(
                    reason=FinishReason.ERROR_RECOVERY,
                    reason_detail=(
                        f"Invalid payload for phase {phase}: "
                        f"{e.error_count()} validation error(s)"
                    ),
                )

        if isinstance(context, UserInputContext):
            return self._call_llm(state)

        if isinstance(context, LLMResultContext):
            return self._after_llm_result(context.payload)

        if isinstance(context, (ToolResultContext, ToolsBatchResultContext)):
            return self._call_llm(state)

        return Finish(
            reason=FinishReason.ERROR_RECOVERY,
            reason_detail=f"Unknown phase: {phase}",
        )

    def _call_llm(self, state: ConversationState) -> CallLLM:
        return CallLLM(
            payload=CallLLMPayload(
                messages=list(state.messages),
                model=self._config.model,
                provider=self._config.provider,
                tools=list(state.tools),
            )
        )

    def _after_llm_result(self, payload: LLMResultPayload) -> Decision:
        if not payload.has_tools_calling:
            return Finish(reason=FinishReason.COMPLETED, reason_detail=COMPLETED_DETAIL)

        specs = to_tool_invocations(payload.result.tool_calls)
        if not specs:
            if self._config.dispatch.empty_tool_calls is EmptyToolCallsPolicy.ERROR:
                return Finish(
                    reason=FinishReason.ERROR_RECOVERY,
                    reason_detail=EMPTY_TOOL_CALLS_DETAIL,
                )
            return Finish(reason=FinishReason.COMPLETED, reason_detail=COMPLETED_DETAIL)

        dispatch = self._config.dispatch
        if len(specs) == 1 and not dispatch.always_batch:
            return CallTool(tool_call=specs[0])

        size = dispatch.max_batch_size
        if size is None or len(specs) <= size:
            return CallToolsBatch(tools_calling=specs)

        return [
            CallToolsBatch(tools_calling=specs[i:i + size])
            for i in range(0, len(specs), size)
        ]
