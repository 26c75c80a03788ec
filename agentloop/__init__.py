"""agentloop - a tool-calling orchestration loop for completion providers."""

__version__ = "0.1.0"

from agentloop.agent import Agent
from agentloop.breakpoints import (
    BreakpointAction,
    BreakpointDecision,
    ConsoleBreakpointChannel,
    ScriptedBreakpointChannel,
)
from agentloop.config import Config
from agentloop.llm import LLMProvider, LLMResponse, Message, ToolCall, llm_do
from agentloop.tools import FunctionTool, Tool, ToolResult, debug_tool

__all__ = [
    "Agent",
    "BreakpointAction",
    "BreakpointDecision",
    "Config",
    "ConsoleBreakpointChannel",
    "FunctionTool",
    "LLMProvider",
    "LLMResponse",
    "Message",
    "ScriptedBreakpointChannel",
    "Tool",
    "ToolCall",
    "ToolResult",
    "__version__",
    "debug_tool",
    "llm_do",
]
