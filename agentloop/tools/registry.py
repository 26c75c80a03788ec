"""Tool registry, tool adapters and tool results."""

import functools
import inspect
import json
from abc import ABC, abstractmethod
from typing import Any, Callable, Iterator, Literal

from pydantic import BaseModel, model_validator

from agentloop.exceptions import ToolExecutionError, ToolNotFoundError
from agentloop.llm import ToolDefinition
from agentloop.logging import get_logger
from agentloop.tools.schema import (
    accepts_var_keyword,
    callable_name,
    describe_callable,
    infer_parameters,
)

log = get_logger(__name__)

DEBUG_ATTR = "__agentloop_debug__"
SKIPPED_RESULT = "[skipped]"

ToolStatus = Literal["success", "error", "not_found"]

_NON_TOOL_TYPES = (str, bytes, bytearray, int, float, complex, bool, dict, set, frozenset)


class ToolResult(BaseModel):
    """Result from a single tool dispatch."""

    status: ToolStatus = "success"
    result: Any = None
    error: str | None = None

    @model_validator(mode="after")
    def _normalize_failure_error(self) -> "ToolResult":
        """Ensure non-success results always provide an error message."""
        if self.status != "success" and not (self.error or "").strip():
            self.error = "Tool not found" if self.status == "not_found" else "Tool execution failed"
        return self

    @property
    def success(self) -> bool:
        return self.status == "success"

    @classmethod
    def ok(cls, value: Any) -> "ToolResult":
        return cls(status="success", result=value)

    @classmethod
    def failed(cls, message: str) -> "ToolResult":
        return cls(status="error", error=message)

    @classmethod
    def missing(cls, tool_name: str) -> "ToolResult":
        return cls(status="not_found", error=str(ToolNotFoundError(tool_name)))

    def to_payload(self) -> dict[str, Any]:
        """Status plus either the value or the error message."""
        if self.success:
            return {"status": self.status, "result": self.result}
        return {"status": self.status, "error": self.error}

    def to_message_content(self) -> str:
        """Serialized form placed in the tool message sent back to the provider."""
        payload = self.to_payload()
        try:
            return json.dumps(payload, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            # Non-string keys or circular references: send the value's text
            payload["result"] = str(self.result)
            return json.dumps(payload, ensure_ascii=False)

    def preview(self) -> str:
        """Plain text used in console and trace renderings."""
        if not self.success:
            return str(self.error)
        if isinstance(self.result, str):
            return self.result
        try:
            return json.dumps(self.result, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            return str(self.result)


class Tool(ABC):
    """Base class for all tools."""

    name: str = ""
    description: str = ""
    parameters: dict[str, Any] = {"type": "object", "properties": {}}
    debug: bool = False

    @abstractmethod
    def run(self, arguments: dict[str, Any]) -> Any:
        """Execute the tool.

        Args:
            arguments: Tool arguments keyed by parameter name

        Returns:
            Any value, or an awaitable resolving to one
        """
        pass

    def get_definition(self) -> dict[str, Any]:
        """Get the tool definition for LLM.

        Returns:
            OpenAI function-style definition
        """
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }

    def validate_arguments(self, arguments: dict[str, Any]) -> None:
        """Check that every required argument is present.

        Raises:
            ToolExecutionError if a required argument is missing
        """
        required = (self.parameters or {}).get("required", [])
        for field in required:
            if field not in arguments:
                raise ToolExecutionError(
                    self.name,
                    f"Missing required argument: {field}",
                )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class FunctionTool(Tool):
    """Tool wrapping a free function (or any plain callable)."""

    def __init__(
        self,
        func: Callable[..., Any],
        *,
        name: str | None = None,
        description: str | None = None,
        parameters: dict[str, Any] | None = None,
        debug: bool | None = None,
    ):
        if not callable(func):
            raise TypeError(f"FunctionTool needs a callable, got {type(func)!r}")
        inferred = infer_parameters(func)
        self.func = func
        self.name = name or callable_name(func)
        self.description = description or describe_callable(func, self.name)
        self.parameters = parameters if parameters is not None else inferred
        self.debug = is_debug_tool(func) if debug is None else bool(debug)
        self._accepts_any_keyword = accepts_var_keyword(func)
        self._accepted_names = set(inferred.get("properties", {}))

    def _keyword_arguments(self, arguments: dict[str, Any]) -> dict[str, Any]:
        if self._accepts_any_keyword:
            return dict(arguments)
        return {key: value for key, value in arguments.items() if key in self._accepted_names}

    def run(self, arguments: dict[str, Any]) -> Any:
        return self.func(**self._keyword_arguments(arguments or {}))


class MethodTool(FunctionTool):
    """Tool bound to one public method of an object.

    The bound method keeps the owner's state across calls.
    """

    def __init__(self, owner: Any, method_name: str, **overrides: Any):
        method = getattr(owner, method_name)
        overrides.setdefault("name", method_name)
        super().__init__(method, **overrides)
        self.owner = owner
        self.method_name = method_name


def debug_tool(func: Any) -> Any:
    """Flag a callable or tool so it pauses at a breakpoint before running."""
    if isinstance(func, Tool):
        func.debug = True
        return func
    try:
        setattr(func, DEBUG_ATTR, True)
    except (AttributeError, TypeError):
        # Builtins and other read-only callables get wrapped instead
        return FunctionTool(func, debug=True)
    return func


def is_debug_tool(obj: Any) -> bool:
    """Whether a callable or tool is flagged for breakpoints."""
    if isinstance(obj, functools.partial):
        return is_debug_tool(obj.func)
    return getattr(obj, DEBUG_ATTR, False) is True or (
        isinstance(obj, Tool) and bool(obj.debug)
    )


def _is_conformant_tool(obj: Any) -> bool:
    """Duck-typed check for objects that already expose the tool contract."""
    return (
        isinstance(getattr(obj, "name", None), str)
        and callable(getattr(obj, "run", None))
        and callable(getattr(obj, "get_definition", None))
    )


def _is_plain_callable(obj: Any) -> bool:
    return inspect.isroutine(obj) or isinstance(obj, functools.partial)


def _public_method_names(instance: Any) -> list[str]:
    """Public callable members in definition order (instance first, then MRO)."""
    namespaces: list[dict[str, Any]] = []
    if hasattr(instance, "__dict__"):
        namespaces.append(vars(instance))
    namespaces.extend(vars(klass) for klass in type(instance).__mro__ if klass is not object)

    names: list[str] = []
    for namespace in namespaces:
        for attr in namespace:
            if attr.startswith("_") or attr in names:
                continue
            static = inspect.getattr_static(instance, attr, None)
            if isinstance(static, (property, functools.cached_property)):
                continue
            member = getattr(instance, attr, None)
            if inspect.ismethod(member) or inspect.isfunction(member):
                names.append(attr)
    return names


def _adapt(item: Any) -> list[Tool]:
    if isinstance(item, Tool) or _is_conformant_tool(item):
        return [item]
    if _is_plain_callable(item):
        return [FunctionTool(item)]
    if (
        item is None
        or isinstance(item, _NON_TOOL_TYPES)
        or inspect.isclass(item)
        or inspect.ismodule(item)
    ):
        raise TypeError(f"Unsupported tool type: {type(item)!r}")

    method_names = _public_method_names(item)
    if method_names:
        return [MethodTool(item, attr) for attr in method_names]
    if callable(item):
        return [FunctionTool(item)]
    raise TypeError(f"{type(item).__name__!r} instance exposes no public methods to use as tools")


def process_tools(raw: Any) -> list[Tool]:
    """Normalize functions, objects, tools or (nested) lists of them into tools."""
    if raw is None:
        return []
    items = raw if isinstance(raw, (list, tuple)) else [raw]
    processed: list[Tool] = []
    for item in items:
        if isinstance(item, (list, tuple)):
            processed.extend(process_tools(item))
        else:
            processed.extend(_adapt(item))
    return processed


class ToolRegistry:
    """Name-keyed registry of the tools available to one agent."""

    def __init__(self, tools: Any = None):
        self._tools: dict[str, Tool] = {}
        if tools is not None:
            self.register(tools)

    def register(self, raw: Any) -> list[Tool]:
        """Register one or more tools.

        Args:
            raw: Function, object with public methods, Tool, or a list of these

        Returns:
            The tools that were registered, in order
        """
        processed = process_tools(raw)
        for tool in processed:
            if not tool.name:
                raise ValueError("Tool must have a name")
            if tool.name in self._tools:
                log.debug("Replacing tool", tool=tool.name)
                del self._tools[tool.name]
            else:
                log.debug("Registering tool", tool=tool.name)
            self._tools[tool.name] = tool
        return processed

    def unregister(self, name: str) -> bool:
        """Remove a tool by name; returns whether it was registered."""
        if name not in self._tools:
            return False
        del self._tools[name]
        log.debug("Unregistered tool", tool=name)
        return True

    def get(self, name: str) -> Tool | None:
        """Look up a tool by name."""
        return self._tools.get(name)

    def require(self, name: str) -> Tool:
        """Look up a tool by name.

        Raises:
            ToolNotFoundError if not found
        """
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(name)
        return tool

    def has_tool(self, name: str) -> bool:
        """Return whether a tool name is currently registered."""
        return name in self._tools

    def all(self) -> list[Tool]:
        """All registered tools in registration order."""
        return list(self._tools.values())

    def list_tools(self) -> list[str]:
        """List all registered tool names."""
        return list(self._tools)

    def get_definitions(self) -> list[ToolDefinition]:
        """Get all tool definitions for the provider."""
        definitions: list[ToolDefinition] = []
        for tool in self._tools.values():
            raw = tool.get_definition()
            definitions.append(
                ToolDefinition(
                    name=str(raw.get("name") or tool.name),
                    description=str(raw.get("description") or ""),
                    parameters=dict(raw.get("parameters") or {}),
                )
            )
        return definitions

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[Tool]:
        return iter(list(self._tools.values()))
