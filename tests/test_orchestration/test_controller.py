"""Tests for the turn controller state machine."""

import logging

import pytest

from agent_runtime.models import (
    ConversationState,
    DispatchPolicy,
    EmptyToolCallsPolicy,
    ModelRuntimeConfig,
    TurnConfig,
)
from agent_runtime.orchestration import TurnController
from agent_runtime.orchestration.controller import (
    COMPLETED_DETAIL,
    EMPTY_TOOL_CALLS_DETAIL,
)
from agent_runtime.schemas import (
    CallLLM,
    CallTool,
    CallToolsBatch,
    Finish,
    FinishReason,
    LLMResultContext,
    LLMResultPayload,
    ToolResultContext,
    ToolsBatchResultContext,
    UnknownPhaseContext,
    UserInputContext,
)


def _tool_call(call_id: str, name: str, arguments: str = "{}") -> dict:
    """Build a raw tool call as the model returns it."""
    return {
        "id": call_id,
        "type": "function",
        "function": {"name": name, "arguments": arguments},
    }


def _llm_result(tool_calls=None, has_tools_calling=None, content: str = "") -> dict:
    """Build a raw llm_result context."""
    tool_calls = tool_calls if tool_calls is not None else []
    if has_tools_calling is None:
        has_tools_calling = bool(tool_calls)
    return {
        "phase": "llm_result",
        "payload": {
            "hasToolsCalling": has_tools_calling,
            "result": {"content": content, "tool_calls": tool_calls},
            "toolsCalling": [],
        },
    }


def _controller(**dispatch) -> TurnController:
    return TurnController(
        TurnConfig(
            session_id="s-1",
            model_runtime_config=ModelRuntimeConfig(model="m", provider="p"),
            dispatch=DispatchPolicy(**dispatch),
        )
    )


class TestUserInput:
    """Tests for the user_input phase."""

    def test_calls_llm_with_state_and_model(self, controller, state):
        """user_input should echo messages/tools and the configured model."""
        instruction = controller.decide({"phase": "user_input"}, state)

        assert isinstance(instruction, CallLLM)
        assert instruction.type == "call_llm"
        assert instruction.payload.messages == state.messages
        assert instruction.payload.tools == state.tools
        assert instruction.payload.model == "gpt-4o-mini"
        assert instruction.payload.provider == "openai"

    def test_accepts_context_model(self, controller, state):
        """A validated context model works like a raw mapping."""
        from_model = controller.decide(UserInputContext(), state)
        from_dict = controller.decide({"phase": "user_input"}, state)
        assert from_model == from_dict

    def test_model_and_provider_none_when_unconfigured(self, state):
        """Without modelRuntimeConfig, model and provider are None."""
        controller = TurnController(TurnConfig(session_id="s-2"))
        instruction = controller.decide({"phase": "user_input"}, state)

        assert instruction.payload.model is None
        assert instruction.payload.provider is None

    def test_scenario_single_user_message(self, controller):
        """A single 'hi' message and no tools."""
        state = ConversationState(messages=[{"role": "user", "content": "hi"}], tools=[])

        instruction = controller.decide({"phase": "user_input"}, state)

        assert instruction.to_dict() == {
            "type": "call_llm",
            "payload": {
                "messages": [{"role": "user", "content": "hi"}],
                "model": "gpt-4o-mini",
                "provider": "openai",
                "tools": [],
            },
        }

    def test_state_is_not_mutated(self, controller, state):
        """The controller must only read the conversation state."""
        messages_before = list(state.messages)
        tools_before = list(state.tools)

        instruction = controller.decide({"phase": "user_input"}, state)
        instruction.payload.messages.append({"role": "user", "content": "x"})

        assert state.messages == messages_before
        assert state.tools == tools_before


class TestLLMResult:
    """Tests for the llm_result phase."""

    def test_no_tools_calling_finishes_completed(self, controller, state):
        """hasToolsCalling false ends the turn successfully."""
        instruction = controller.decide(_llm_result(content="Hello!"), state)

        assert isinstance(instruction, Finish)
        assert instruction.reason == FinishReason.COMPLETED
        assert instruction.reason_detail == COMPLETED_DETAIL

    def test_flag_false_ignores_tool_calls(self, controller, state):
        """hasToolsCalling is authoritative over a non-empty tool_calls list."""
        context = _llm_result([_tool_call("a", "search")], has_tools_calling=False)

        instruction = controller.decide(context, state)

        assert isinstance(instruction, Finish)
        assert instruction.reason == FinishReason.COMPLETED

    def test_single_tool_call(self, controller, state):
        """Exactly one call takes the single-call path."""
        context = _llm_result([_tool_call("call_a", "calculate", '{"x": 1}')])

        instruction = controller.decide(context, state)

        assert isinstance(instruction, CallTool)
        assert instruction.type == "call_tool"
        assert instruction.tool_call.id == "call_a"
        assert instruction.tool_call.api_name == "calculate"
        assert instruction.tool_call.arguments == '{"x": 1}'

    def test_multiple_tool_calls_batched_in_order(self, controller, state):
        """Several calls become one batch with order preserved."""
        calls = [_tool_call(i, f"tool_{i}") for i in ("A", "B", "C")]

        instruction = controller.decide(_llm_result(calls), state)

        assert isinstance(instruction, CallToolsBatch)
        assert instruction.type == "call_tools_batch"
        assert [spec.id for spec in instruction.tools_calling] == ["A", "B", "C"]
        assert [spec.api_name for spec in instruction.tools_calling] == [
            "tool_A",
            "tool_B",
            "tool_C",
        ]

    def test_empty_tool_calls_completes_by_default(self, controller, state):
        """Flag set with no calls falls back to a completed finish."""
        context = _llm_result([], has_tools_calling=True)

        instruction = controller.decide(context, state)

        assert isinstance(instruction, Finish)
        assert instruction.reason == FinishReason.COMPLETED

    def test_missing_tool_calls_treated_as_empty(self, controller, state):
        """A missing or null tool_calls list is coerced to empty."""
        for result in ({"content": ""}, {"content": "", "tool_calls": None}, None):
            context = {
                "phase": "llm_result",
                "payload": {"hasToolsCalling": True, "result": result},
            }
            instruction = controller.decide(context, state)
            assert isinstance(instruction, Finish)
            assert instruction.reason == FinishReason.COMPLETED

    def test_empty_tool_calls_error_policy(self, state):
        """The strict policy reports an empty call list as an error."""
        controller = _controller(empty_tool_calls=EmptyToolCallsPolicy.ERROR)

        instruction = controller.decide(_llm_result([], has_tools_calling=True), state)

        assert isinstance(instruction, Finish)
        assert instruction.reason == FinishReason.ERROR_RECOVERY
        assert instruction.reason_detail == EMPTY_TOOL_CALLS_DETAIL

    def test_llm_result_context_model(self, controller, state):
        """Typed LLMResultContext is routed the same way."""
        payload = LLMResultPayload.model_validate(
            _llm_result([_tool_call("x", "calculate")])["payload"]
        )

        instruction = controller.decide(LLMResultContext(payload=payload), state)

        assert isinstance(instruction, CallTool)


class TestDispatchPolicy:
    """Tests for configurable batching."""

    def test_always_batch_single_call(self, state):
        """always_batch turns a single call into a batch of one."""
        controller = _controller(always_batch=True)

        instruction = controller.decide(_llm_result([_tool_call("a", "t")]), state)

        assert isinstance(instruction, CallToolsBatch)
        assert [s.id for s in instruction.tools_calling] == ["a"]

    def test_max_batch_size_splits_in_order(self, state):
        """Calls beyond max_batch_size are split into ordered batches."""
        controller = _controller(max_batch_size=2)
        calls = [_tool_call(str(i), "t") for i in range(5)]

        decision = controller.decide(_llm_result(calls), state)

        assert isinstance(decision, list)
        assert all(isinstance(i, CallToolsBatch) for i in decision)
        assert [[s.id for s in i.tools_calling] for i in decision] == [
            ["0", "1"],
            ["2", "3"],
            ["4"],
        ]

    def test_max_batch_size_not_exceeded(self, state):
        """Within the limit a single batch is returned."""
        controller = _controller(max_batch_size=3)
        calls = [_tool_call(str(i), "t") for i in range(3)]

        decision = controller.decide(_llm_result(calls), state)

        assert isinstance(decision, CallToolsBatch)

    def test_invalid_max_batch_size(self):
        """max_batch_size below 1 is rejected at construction."""
        with pytest.raises(ValueError, match="max_batch_size"):
            DispatchPolicy(max_batch_size=0)

    def test_policy_from_string(self):
        """Policy names are accepted as strings."""
        policy = DispatchPolicy(empty_tool_calls="error")
        assert policy.empty_tool_calls is EmptyToolCallsPolicy.ERROR

    def test_unknown_policy_name(self):
        """Unknown empty-tool-call policies are rejected."""
        with pytest.raises(ValueError, match="empty_tool_calls"):
            DispatchPolicy(empty_tool_calls="ignore")


class TestToolResults:
    """Tests for tool_result and tools_batch_result phases."""

    @pytest.mark.parametrize("phase", ["tool_result", "tools_batch_result"])
    def test_returns_to_llm(self, controller, state, phase):
        """After tools run, control goes back to the model."""
        instruction = controller.decide({"phase": phase}, state)
        expected = controller.decide({"phase": "user_input"}, state)

        assert isinstance(instruction, CallLLM)
        assert instruction == expected

    def test_unsuccessful_result_still_calls_llm(self, controller, state):
        """isSuccess is not interpreted by the controller."""
        context = {
            "phase": "tool_result",
            "payload": {
                "toolCallId": "a",
                "data": {"error": "boom"},
                "isSuccess": False,
                "executionTime": 12,
            },
        }

        assert isinstance(controller.decide(context, state), CallLLM)

    def test_batch_result_models(self, controller, state):
        """Typed tool result contexts are accepted."""
        assert isinstance(controller.decide(ToolResultContext(), state), CallLLM)
        assert isinstance(
            controller.decide(ToolsBatchResultContext(payload=[]), state), CallLLM
        )

    def test_raw_tool_call_echoed_back(self, controller, state):
        """A result that echoes the model's raw tool call still returns to the model."""
        context = {
            "phase": "tool_result",
            "payload": {
                "toolCall": _tool_call("a", "calculate", '{"expression": "1"}'),
                "toolCallId": "a",
                "data": "1",
            },
        }

        assert isinstance(controller.decide(context, state), CallLLM)

    def test_null_execution_time(self, controller, state):
        context = {
            "phase": "tool_result",
            "payload": {"toolCallId": "a", "data": "ok", "executionTime": None},
        }

        assert isinstance(controller.decide(context, state), CallLLM)

    @pytest.mark.parametrize("phase", ["tool_result", "tools_batch_result"])
    def test_unrecognised_result_shape(self, controller, state, phase):
        """Result payloads are not interpreted, whatever their shape."""
        context = {
            "phase": phase,
            "payload": [{"toolCallId": 7, "isSuccess": "?"}, "raw"],
        }

        assert isinstance(controller.decide(context, state), CallLLM)


class TestUnknownPhase:
    """Tests for phases the controller cannot interpret."""

    @pytest.mark.parametrize("phase", ["bogus_phase", "", "USER_INPUT", "finish"])
    def test_finishes_with_error_recovery(self, controller, state, phase):
        """Unknown phases terminate with a diagnosable reason."""
        instruction = controller.decide({"phase": phase}, state)

        assert isinstance(instruction, Finish)
        assert instruction.reason == FinishReason.ERROR_RECOVERY
        assert instruction.reason_detail == f"Unknown phase: {phase}"

    def test_scenario_bogus_phase(self, controller, state):
        """Wire shape of the unknown phase finish."""
        instruction = controller.decide({"phase": "bogus_phase"}, state)

        assert instruction.to_dict() == {
            "type": "finish",
            "reason": "error_recovery",
            "reasonDetail": "Unknown phase: bogus_phase",
        }

    def test_missing_phase(self, controller, state):
        """A context without a phase is an unknown phase."""
        instruction = controller.decide({"payload": {}}, state)

        assert instruction.reason == FinishReason.ERROR_RECOVERY
        assert instruction.reason_detail == "Unknown phase: None"

    def test_unknown_phase_model_with_known_tag(self, controller, state):
        """An UnknownPhaseContext carrying a known tag is re-validated."""
        context = UnknownPhaseContext(phase="user_input")

        assert isinstance(controller.decide(context, state), CallLLM)


class TestMalformedPayload:
    """Tests for payloads that fail validation."""

    def test_wrong_tool_calls_type(self, controller, state):
        """A non-list tool_calls ends the turn with error_recovery."""
        context = {
            "phase": "llm_result",
            "payload": {
                "hasToolsCalling": True,
                "result": {"content": "", "tool_calls": "not-a-list"},
            },
        }

        instruction = controller.decide(context, state)

        assert isinstance(instruction, Finish)
        assert instruction.reason == FinishReason.ERROR_RECOVERY
        assert instruction.reason_detail.startswith(
            "Invalid payload for phase llm_result"
        )

    def test_missing_llm_payload(self, controller, state):
        """llm_result without a payload is malformed."""
        instruction = controller.decide({"phase": "llm_result"}, state)

        assert instruction.reason == FinishReason.ERROR_RECOVERY

    def test_tool_call_without_function(self, controller, state):
        """A tool call missing its function is malformed."""
        context = _llm_result([{"id": "a", "type": "function"}], has_tools_calling=True)

        instruction = controller.decide(context, state)

        assert instruction.reason == FinishReason.ERROR_RECOVERY

    def test_unserializable_arguments(self, controller, state):
        """Object arguments that JSON cannot encode end the turn, not raise."""
        context = _llm_result(
            [{"id": "a", "function": {"name": "t", "arguments": {"x": {1, 2}}}}],
            has_tools_calling=True,
        )

        instruction = controller.decide(context, state)

        assert isinstance(instruction, Finish)
        assert instruction.reason == FinishReason.ERROR_RECOVERY
        assert instruction.reason_detail.startswith(
            "Invalid payload for phase llm_result"
        )


class TestPurity:
    """Tests for determinism and side effects."""

    def test_idempotent(self, controller, state):
        """Identical inputs give structurally identical outputs."""
        contexts = [
            {"phase": "user_input"},
            _llm_result([_tool_call("a", "t"), _tool_call("b", "t")]),
            _llm_result([_tool_call("a", "t")]),
            _llm_result(),
            {"phase": "tool_result"},
            {"phase": "nope"},
        ]
        for context in contexts:
            assert controller.decide(context, state) == controller.decide(context, state)

    def test_single_log_record_per_call(self, controller, state, caplog):
        """Each decision logs exactly one record with the session id."""
        with caplog.at_level(logging.DEBUG, logger="agent_runtime.orchestration.controller"):
            controller.decide({"phase": "user_input"}, state)

        records = [
            r for r in caplog.records
            if r.name == "agent_runtime.orchestration.controller"
        ]
        assert len(records) == 1
        assert records[0].session_id == "session-123"
        assert records[0].phase == "user_input"
        assert "session-123" in records[0].getMessage()

    def test_registry_is_empty(self, controller):
        """The controller routes only; it has no tool implementations."""
        assert len(controller.tools) == 0

    def test_get_config(self, controller, turn_config):
        """get_config returns the construction config."""
        assert controller.get_config() is turn_config
