"""
Configuration models for the agent runtime.

Defines the per-session turn configuration handed to the controller and
the dataclasses for the unified YAML configuration file.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional


class EmptyToolCallsPolicy(Enum):
    """What to do when the model flags tool calls but supplies none."""

    COMPLETE = "complete"
    ERROR = "error"


@dataclass(frozen=True)
class ModelRuntimeConfig:
    """Model/provider pair targeted by LLM calls."""

    model: str
    provider: str


@dataclass(frozen=True)
class AgentConfig:
    """Agent-specific options.

    ``max_steps`` and ``options`` are carried for the orchestrator; the
    controller itself never enforces them.
    """

    max_steps: Optional[int] = None
    options: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        object.__setattr__(self, "options", MappingProxyType(dict(self.options)))


@dataclass(frozen=True)
class DispatchPolicy:
    """Controls how tool calls from one model response are dispatched."""

    always_batch: bool = False
    max_batch_size: Optional[int] = None
    empty_tool_calls: EmptyToolCallsPolicy = EmptyToolCallsPolicy.COMPLETE

    def __post_init__(self):
        if self.max_batch_size is not None and self.max_batch_size < 1:
            raise ValueError(
                f"max_batch_size must be at least 1, got {self.max_batch_size}"
            )
        if not isinstance(self.empty_tool_calls, EmptyToolCallsPolicy):
            try:
                policy = EmptyToolCallsPolicy(self.empty_tool_calls)
            except ValueError:
                raise ValueError(
                    f"Unknown empty_tool_calls policy: {self.empty_tool_calls}"
                )
            object.__setattr__(self, "empty_tool_calls", policy)


@dataclass(frozen=True)
class TurnConfig:
    """Immutable per-session configuration captured by the controller."""

    session_id: str
    user_id: Optional[str] = None
    model_runtime_config: Optional[ModelRuntimeConfig] = None
    agent_config: Optional[AgentConfig] = None
    dispatch: DispatchPolicy = field(default_factory=DispatchPolicy)

    def __post_init__(self):
        if not self.session_id:
            raise ValueError("session_id is required")

    @property
    def model(self) -> Optional[str]:
        if self.model_runtime_config is None:
            return None
        return self.model_runtime_config.model

    @property
    def provider(self) -> Optional[str]:
        if self.model_runtime_config is None:
            return None
        return self.model_runtime_config.provider

    @property
    def max_steps(self) -> Optional[int]:
        if self.agent_config is None:
            return None
        return self.agent_config.max_steps

    @classmethod
    def from_dict(
        cls, data: dict, dispatch: Optional[DispatchPolicy] = None
    ) -> "TurnConfig":
        """
        Build a TurnConfig from the camelCase construction payload.

        Accepts ``sessionId``, ``userId``, ``modelRuntimeConfig`` and
        ``agentConfig``. Keys of ``agentConfig`` other than ``maxSteps``
        are kept as extension options.
        """
        runtime_data = data.get("modelRuntimeConfig")
        model_runtime_config = None
        if runtime_data:
            model_runtime_config = ModelRuntimeConfig(
                model=runtime_data["model"],
                provider=runtime_data["provider"],
            )

        agent_data = data.get("agentConfig")
        agent_config = None
        if agent_data is not None:
            options = {k: v for k, v in agent_data.items() if k != "maxSteps"}
            agent_config = AgentConfig(
                max_steps=agent_data.get("maxSteps"),
                options=options,
            )

        return cls(
            session_id=data.get("sessionId", ""),
            user_id=data.get("userId"),
            model_runtime_config=model_runtime_config,
            agent_config=agent_config,
            dispatch=dispatch or DispatchPolicy(),
        )


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"


@dataclass
class AppConfig:
    """
    Unified application configuration container.

    Holds all configuration sections loaded from config/config.yaml.
    """
    version: str = "1.0"
    model_runtime: Optional[ModelRuntimeConfig] = None
    agent: AgentConfig = field(default_factory=AgentConfig)
    dispatch: DispatchPolicy = field(default_factory=DispatchPolicy)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def log_level(self) -> str:
        """Shortcut for logging.level."""
        return self.logging.level
