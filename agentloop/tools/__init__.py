"""Tools package for agentloop."""

from agentloop.tools.registry import (
    SKIPPED_RESULT,
    FunctionTool,
    MethodTool,
    Tool,
    ToolRegistry,
    ToolResult,
    debug_tool,
    is_debug_tool,
    process_tools,
)
from agentloop.tools.schema import infer_parameters

__all__ = [
    "SKIPPED_RESULT",
    "FunctionTool",
    "MethodTool",
    "Tool",
    "ToolRegistry",
    "ToolResult",
    "debug_tool",
    "infer_parameters",
    "is_debug_tool",
    "process_tools",
]
