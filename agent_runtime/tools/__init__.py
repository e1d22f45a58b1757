"""
Tool implementations registry used by tool executors.
"""

from .registry import ToolDefinition, ToolRegistry

__all__ = [
    "ToolDefinition",
    "ToolRegistry",
]
