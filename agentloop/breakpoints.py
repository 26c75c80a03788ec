"""Interactive breakpoints that pause before flagged tools run."""

import asyncio
import json
from abc import ABC, abstractmethod
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Iterable

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from agentloop.exceptions import BreakpointError
from agentloop.llm import Message
from agentloop.logging import get_logger

log = get_logger(__name__)


class BreakpointAction(str, Enum):
    """Commands accepted while paused at a breakpoint."""

    CONTINUE = "continue"
    EDIT = "edit"
    SKIP = "skip"

    @classmethod
    def parse(cls, value: "BreakpointAction | str") -> "BreakpointAction":
        if isinstance(value, BreakpointAction):
            return value
        cleaned = str(value or "").strip().lower()
        for action in cls:
            if cleaned in (action.value, action.value[0]):
                return action
        raise BreakpointError(f"Unknown breakpoint command: {value!r}")


@dataclass
class BreakpointDecision:
    """What the caller chose to do at a breakpoint."""

    action: BreakpointAction
    # Replacement arguments for EDIT, as a mapping or JSON text
    arguments: dict[str, Any] | str | None = None

    def __post_init__(self) -> None:
        self.action = BreakpointAction.parse(self.action)

    @classmethod
    def proceed(cls) -> "BreakpointDecision":
        return cls(BreakpointAction.CONTINUE)

    @classmethod
    def edit(cls, arguments: dict[str, Any] | str) -> "BreakpointDecision":
        return cls(BreakpointAction.EDIT, arguments)

    @classmethod
    def skip(cls) -> "BreakpointDecision":
        return cls(BreakpointAction.SKIP)


@dataclass
class BreakpointContext:
    """Conversational state visible while one flagged tool call is paused."""

    agent_name: str
    tool_name: str
    call_id: str
    arguments: dict[str, Any]
    prompt: str
    iteration_index: int
    messages: list[Message] = field(default_factory=list)
    previous_tools: list[str] = field(default_factory=list)


@dataclass
class BreakpointOutcome:
    """Resolved decision: whether to skip and which arguments to run with."""

    action: BreakpointAction
    arguments: dict[str, Any]

    @property
    def skipped(self) -> bool:
        return self.action is BreakpointAction.SKIP


def resolve_edited_arguments(
    replacement: dict[str, Any] | str | None,
    original: dict[str, Any],
) -> dict[str, Any]:
    """Parse replacement arguments, keeping the originals when they are unusable."""
    if isinstance(replacement, dict):
        return dict(replacement)
    if isinstance(replacement, str) and replacement.strip():
        try:
            parsed = json.loads(replacement)
        except json.JSONDecodeError as e:
            log.warning("Edited arguments are not valid JSON, keeping originals", error=str(e))
            return dict(original)
        if isinstance(parsed, dict):
            return parsed
        log.warning("Edited arguments must be a JSON object, keeping originals", got=type(parsed).__name__)
        return dict(original)
    log.warning("No edited arguments supplied, keeping originals")
    return dict(original)


class BreakpointChannel(ABC):
    """Source of breakpoint decisions."""

    @abstractmethod
    async def request(self, context: BreakpointContext) -> BreakpointDecision:
        pass


class ScriptedBreakpointChannel(BreakpointChannel):
    """Answers breakpoints from a queue; continues once the queue is empty."""

    def __init__(self, decisions: Iterable[BreakpointDecision | str] | None = None):
        self._pending: deque[BreakpointDecision] = deque()
        self.requests: list[BreakpointContext] = []
        for decision in decisions or []:
            self.push(decision)

    def push(self, decision: BreakpointDecision | str) -> None:
        if not isinstance(decision, BreakpointDecision):
            decision = BreakpointDecision(BreakpointAction.parse(decision))
        self._pending.append(decision)

    async def request(self, context: BreakpointContext) -> BreakpointDecision:
        self.requests.append(context)
        if self._pending:
            return self._pending.popleft()
        return BreakpointDecision.proceed()


class ConsoleBreakpointChannel(BreakpointChannel):
    """Prompts on the terminal with rich."""

    def __init__(self, console: Console | None = None, preview_chars: int = 120):
        self.console = console or Console(stderr=True)
        self.preview_chars = preview_chars

    async def request(self, context: BreakpointContext) -> BreakpointDecision:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._ask, context)

    def _render(self, context: BreakpointContext) -> Panel:
        table = Table.grid(padding=(0, 2))
        table.add_column(style="bold")
        table.add_column()
        table.add_row("agent", context.agent_name)
        table.add_row("task", context.prompt[: self.preview_chars])
        table.add_row("turn", str(context.iteration_index + 1))
        table.add_row("previous tools", ", ".join(context.previous_tools) or "-")
        for key, value in context.arguments.items():
            text = value if isinstance(value, str) else json.dumps(value, default=str)
            table.add_row(f"arg {key}", text[: self.preview_chars])
        return Panel(table, title=f"Breakpoint: {context.tool_name}", border_style="cyan")

    def _ask(self, context: BreakpointContext) -> BreakpointDecision:
        self.console.print(self._render(context))
        try:
            choice = Prompt.ask(
                "[c]ontinue, [e]dit arguments, [s]kip",
                choices=["c", "e", "s"],
                default="c",
                console=self.console,
            )
            action = BreakpointAction.parse(choice)
            if action is not BreakpointAction.EDIT:
                return BreakpointDecision(action)
            edited = Prompt.ask(
                "Arguments (JSON object)",
                default=json.dumps(context.arguments, default=str),
                console=self.console,
            )
        except (EOFError, KeyboardInterrupt) as e:
            raise BreakpointError("Breakpoint input closed") from e
        return BreakpointDecision.edit(edited)


class BreakpointSession:
    """Single breakpoint slot per agent.

    Holds the context of the flagged call currently paused or running. The
    lock serializes flagged calls, so concurrent calls in one turn wait for
    each other instead of sharing the prompt.
    """

    def __init__(self, channel: BreakpointChannel):
        self.channel = channel
        self._lock = asyncio.Lock()
        self._context: BreakpointContext | None = None

    @property
    def context(self) -> BreakpointContext | None:
        return self._context

    @property
    def active(self) -> bool:
        return self._context is not None

    @asynccontextmanager
    async def pause(self, context: BreakpointContext) -> AsyncIterator[BreakpointOutcome]:
        """Ask for a decision and keep the context set until the block exits."""
        async with self._lock:
            self._context = context
            try:
                decision = await self.channel.request(context)
                outcome = self._resolve(decision, context)
                log.info(
                    "Breakpoint decision",
                    tool=context.tool_name,
                    call_id=context.call_id,
                    action=outcome.action.value,
                )
                yield outcome
            finally:
                self._context = None

    @staticmethod
    def _resolve(decision: BreakpointDecision, context: BreakpointContext) -> BreakpointOutcome:
        if decision.action is BreakpointAction.EDIT:
            arguments = resolve_edited_arguments(decision.arguments, context.arguments)
        else:
            arguments = dict(context.arguments)
        return BreakpointOutcome(action=decision.action, arguments=arguments)
