"""
Configuration loader for the agent runtime.

Loads configuration from YAML files with support for
environment variable interpolation.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml

from .config import CONFIG_PATH_ENV
from .models import (
    AgentConfig,
    AppConfig,
    DispatchPolicy,
    LoggingConfig,
    ModelRuntimeConfig,
    TurnConfig,
)

logger = logging.getLogger(__name__)

# Default config path relative to project root
DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "config.yaml"

# Regex for environment variable interpolation: ${VAR} or ${VAR:-default}
ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")

# Singleton cache for app config
_app_config: Optional[AppConfig] = None


def resolve_env_vars(value: str) -> str:
    """
    Resolve environment variable references in a string.

    Supports ${VAR} and ${VAR:-default} syntax.

    Args:
        value: String potentially containing env var references

    Returns:
        String with env vars resolved
    """

    def replace_match(match: re.Match) -> str:
        var_name = match.group(1)
        default_value = match.group(2) if match.group(2) is not None else ""
        return os.environ.get(var_name, default_value)

    return ENV_VAR_PATTERN.sub(replace_match, value)


def _substitute_env_vars_recursive(data: Any) -> Any:
    """Recursively substitute environment variables in a data structure."""
    if isinstance(data, dict):
        return {k: _substitute_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_substitute_env_vars_recursive(item) for item in data]
    elif isinstance(data, str):
        return resolve_env_vars(data)
    return data


def _parse_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


def _parse_optional_int(value: Any) -> Optional[int]:
    if value is None or value == "" or value == "null":
        return None
    return int(value)


def _parse_model_runtime_config(data: dict) -> Optional[ModelRuntimeConfig]:
    """Parse the model/provider pair; absent or blank means unset."""
    model = data.get("model") or ""
    provider = data.get("provider") or ""
    if not model and not provider:
        return None
    if not model or not provider:
        raise ValueError("model_runtime needs both 'model' and 'provider'")
    return ModelRuntimeConfig(model=model, provider=provider)


def _parse_agent_config(data: dict) -> AgentConfig:
    """Parse agent options; keys other than max_steps are extension options."""
    options = {k: v for k, v in data.items() if k != "max_steps"}
    return AgentConfig(
        max_steps=_parse_optional_int(data.get("max_steps")),
        options=options,
    )


def _parse_dispatch_policy(data: dict) -> DispatchPolicy:
    """Parse tool dispatch policy from dict."""
    return DispatchPolicy(
        always_batch=_parse_bool(data.get("always_batch", False)),
        max_batch_size=_parse_optional_int(data.get("max_batch_size")),
        empty_tool_calls=data.get("empty_tool_calls", "complete"),
    )


def _parse_logging_config(data: dict) -> LoggingConfig:
    """Parse logging configuration from dict."""
    return LoggingConfig(
        level=data.get("level", "INFO"),
    )


def _parse_section(name: str, parser, data: Any):
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid '{name}' section: expected a mapping")
    try:
        return parser(data)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid '{name}' section: {e}") from e


def validate_app_config(app_config: AppConfig) -> list[str]:
    """
    Validate an application configuration.

    Args:
        app_config: Configuration to validate

    Returns:
        List of validation warnings (empty if valid)
    """
    warnings = []

    if app_config.model_runtime is None:
        warnings.append("model_runtime not configured: LLM calls carry no model")
    if app_config.agent.max_steps is not None and app_config.agent.max_steps <= 0:
        warnings.append("agent.max_steps must be positive")
    if getattr(logging, app_config.logging.level.upper(), None) is None:
        warnings.append(f"Unknown logging level: {app_config.logging.level}")

    return warnings


def load_app_config(path: Optional[str] = None, reload: bool = False) -> AppConfig:
    """
    Load unified application configuration from a YAML file.

    Uses a singleton pattern - subsequent calls return the cached config
    unless reload=True is specified.

    Args:
        path: Path to the YAML configuration file. If None, uses the
              AGENT_RUNTIME_CONFIG_PATH env var or config/config.yaml.
        reload: If True, force reload from disk instead of using cache.

    Returns:
        AppConfig with all configuration loaded

    Raises:
        FileNotFoundError: If an explicitly requested config file doesn't exist
        ValueError: If the config is invalid
    """
    global _app_config

    # Return cached config if available and not reloading
    if _app_config is not None and not reload:
        return _app_config

    explicit = path is not None or CONFIG_PATH_ENV in os.environ
    if path is None:
        path = os.environ.get(CONFIG_PATH_ENV, str(DEFAULT_CONFIG_PATH))

    config_path = Path(path)

    if not config_path.exists():
        if explicit:
            raise FileNotFoundError(f"Configuration file not found at {config_path}")
        logger.warning(f"Config not found at {config_path}, using defaults")
        _app_config = AppConfig()
        return _app_config

    logger.info(f"Loading configuration from {config_path}")

    with open(config_path, "r") as f:
        raw_config = yaml.safe_load(f)

    if raw_config is None:
        raw_config = {}
    if not isinstance(raw_config, dict):
        raise ValueError(f"Configuration file {config_path} must contain a mapping")

    # Substitute environment variables throughout the config
    raw_config = _substitute_env_vars_recursive(raw_config)

    app_config = AppConfig(
        version=str(raw_config.get("version", "1.0")),
        model_runtime=_parse_section(
            "model_runtime", _parse_model_runtime_config, raw_config.get("model_runtime")
        ),
        agent=_parse_section("agent", _parse_agent_config, raw_config.get("agent")),
        dispatch=_parse_section(
            "dispatch", _parse_dispatch_policy, raw_config.get("dispatch")
        ),
        logging=_parse_section(
            "logging", _parse_logging_config, raw_config.get("logging")
        ),
    )

    for warning in validate_app_config(app_config):
        logger.warning(f"Config validation warning: {warning}")

    # Cache the config
    _app_config = app_config

    logger.debug(f"Configuration loaded: version={app_config.version}")

    return app_config


def build_turn_config(
    session_id: str,
    user_id: Optional[str] = None,
    app_config: Optional[AppConfig] = None,
) -> TurnConfig:
    """
    Build the per-session TurnConfig from the application configuration.

    Args:
        session_id: Session the controller serves.
        user_id: Optional user the session belongs to.
        app_config: Configuration to use. If None, loads from default.

    Returns:
        TurnConfig ready to hand to a TurnController
    """
    if app_config is None:
        app_config = load_app_config()

    return TurnConfig(
        session_id=session_id,
        user_id=user_id,
        model_runtime_config=app_config.model_runtime,
        agent_config=app_config.agent,
        dispatch=app_config.dispatch,
    )


def reset_config_cache() -> None:
    """Reset the configuration cache, forcing a reload on next access."""
    global _app_config
    _app_config = None
    logger.debug("Configuration cache reset")
