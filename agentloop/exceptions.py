"""Custom exceptions for agentloop."""


class AgentLoopError(Exception):
    """Base exception for agentloop."""

    pass


class ConfigurationError(AgentLoopError):
    """Configuration-related errors."""

    pass


class LLMError(AgentLoopError):
    """LLM-related errors."""

    pass


class LLMAPIError(LLMError):
    """LLM API errors (rate limit, auth, etc.)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ToolError(AgentLoopError):
    """Tool execution errors."""

    pass


class ToolExecutionError(ToolError):
    """Tool execution failed."""

    def __init__(self, tool_name: str, message: str):
        super().__init__(f"Tool '{tool_name}' failed: {message}")
        self.tool_name = tool_name


class ToolNotFoundError(ToolError):
    """Tool not found in registry."""

    def __init__(self, tool_name: str):
        super().__init__(f"Tool '{tool_name}' not found")
        self.tool_name = tool_name


class ReplayError(AgentLoopError):
    """Nothing in the trace can be replayed."""

    def __init__(self, tool_name: str | None = None):
        if tool_name:
            message = f"No recorded call of tool '{tool_name}' to replay"
        else:
            message = "No recorded tool call to replay"
        super().__init__(message)
        self.tool_name = tool_name


class BreakpointError(AgentLoopError):
    """Breakpoint channel could not produce a decision."""

    pass
