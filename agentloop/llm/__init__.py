"""Provider contract: conversation types and the abstract completion capability."""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from agentloop.exceptions import LLMError
from agentloop.logging import get_logger

log = get_logger(__name__)


@dataclass
class ToolCall:
    """A tool call requested by the LLM."""

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Some providers deliver arguments as a JSON string
        if isinstance(self.arguments, str):
            raw = self.arguments
            try:
                decoded = json.loads(raw) if raw.strip() else {}
            except json.JSONDecodeError:
                decoded = {"raw": raw}
            self.arguments = decoded if isinstance(decoded, dict) else {"raw": raw}
        elif self.arguments is None:
            self.arguments = {}

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "arguments": dict(self.arguments)}


@dataclass
class Message:
    """A message in the conversation."""

    role: str  # "system", "user", "assistant", "tool"
    content: str
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None
    tool_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dict, dropping unset optional fields."""
        data: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            data["tool_calls"] = [call.to_dict() for call in self.tool_calls]
        if self.tool_call_id is not None:
            data["tool_call_id"] = self.tool_call_id
        if self.tool_name is not None:
            data["tool_name"] = self.tool_name
        return data


@dataclass
class LLMResponse:
    """Response from the LLM."""

    content: str | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)
    model: str = ""
    usage: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "tool_calls": [call.to_dict() for call in self.tool_calls],
            "model": self.model,
            "usage": dict(self.usage),
        }


@dataclass
class ToolDefinition:
    """Definition of a tool for the LLM."""

    name: str
    description: str
    parameters: dict[str, Any]  # JSON Schema


class LLMProvider(ABC):
    """Abstract base class for completion providers.

    Implementations receive the full conversation and the available tool
    definitions, and must not mutate the message list they are given.
    """

    @abstractmethod
    async def complete(
        self,
        messages: list[Message],
        tools: list[ToolDefinition] | None = None,
    ) -> LLMResponse:
        pass


class NoopProvider(LLMProvider):
    """Placeholder provider that fails with a descriptive message."""

    def __init__(self, reason: str | None = None):
        self.reason = reason or (
            "No LLM provider configured. Pass an LLMProvider instance as `llm=`."
        )

    async def complete(
        self,
        messages: list[Message],
        tools: list[ToolDefinition] | None = None,
    ) -> LLMResponse:
        raise LLMError(self.reason)


async def llm_do(
    prompt: str,
    provider: LLMProvider,
    system: str | None = None,
) -> str:
    """Run a single completion without tools and return its text.

    Args:
        prompt: User prompt
        provider: Provider to call
        system: Optional system message placed before the prompt

    Returns:
        Response content, or an empty string when the provider returned none
    """
    messages: list[Message] = []
    if system:
        messages.append(Message(role="system", content=system))
    messages.append(Message(role="user", content=prompt))

    log.debug("One-shot completion", msg_count=len(messages))
    response = await provider.complete(messages)
    return response.content or ""


__all__ = [
    "LLMProvider",
    "LLMResponse",
    "Message",
    "NoopProvider",
    "ToolCall",
    "ToolDefinition",
    "llm_do",
]
