"""Tool definitions, registry and execution."""

from tooltalk.toolkit.executor import DEFAULT_TOOL_TIMEOUT, ToolExecutor, render_value
from tooltalk.toolkit.models import ToolDefinition, ToolParameter, ToolResult
from tooltalk.toolkit.registry import ToolRegistry

__all__ = [
    "DEFAULT_TOOL_TIMEOUT",
    "ToolDefinition",
    "ToolExecutor",
    "ToolParameter",
    "ToolRegistry",
    "ToolResult",
    "render_value",
]
