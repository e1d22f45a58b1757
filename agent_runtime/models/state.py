"""Conversation state handed to the controller on every decision."""

from dataclasses import dataclass, field


@dataclass
class ConversationState:
    """
    Message history and tool catalog for the next model call.

    Owned by the caller's session. The controller only reads it; the
    orchestrator appends messages as the turn advances.
    """

    messages: list[dict] = field(default_factory=list)
    tools: list[dict] = field(default_factory=list)
