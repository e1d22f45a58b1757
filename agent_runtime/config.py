"""
Environment configuration for the agent runtime.

Loads a ``.env`` file on import and configures logging. Structured
settings live in the YAML file handled by ``config_loader``.
"""

import logging
import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Env var pointing at an alternative YAML config file.
CONFIG_PATH_ENV = "AGENT_RUNTIME_CONFIG_PATH"


def get_log_level() -> str:
    """Log level from LOG_LEVEL, defaulting to INFO."""
    return os.getenv("LOG_LEVEL", "INFO")


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure root logging and the package logger.

    Args:
        level: Level name such as ``"DEBUG"``. Defaults to LOG_LEVEL.
    """
    level_name = (level or get_log_level()).upper()
    log_level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )
    logging.getLogger("agent_runtime").setLevel(log_level)
