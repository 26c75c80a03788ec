"""Agent: drives the provider / tool turn-taking loop."""

import asyncio
import inspect
import json
import time
from pathlib import Path
from typing import Any

from agentloop.breakpoints import (
    BreakpointChannel,
    BreakpointContext,
    BreakpointSession,
    ConsoleBreakpointChannel,
)
from agentloop.config import get_config
from agentloop.console import AgentConsole
from agentloop.exceptions import ReplayError
from agentloop.history import BehaviorLog
from agentloop.llm import LLMProvider, LLMResponse, Message, NoopProvider, ToolCall
from agentloop.logging import agent_log_context, get_logger
from agentloop.tools.registry import SKIPPED_RESULT, Tool, ToolRegistry, ToolResult
from agentloop.trace import ExecutionTracer, TraceEntry, format_elapsed, truncate

log = get_logger(__name__)


class Agent:
    """Tool-using agent over a stateless completion provider.

    Each call to :meth:`input` appends the prompt to the conversation, then
    alternates provider calls and concurrent tool dispatch until the provider
    answers without tool calls or the iteration cap is reached.

    Example::

        def add(a: int, b: int) -> int:
            return a + b

        agent = Agent("calculator", tools=[add], llm=provider)
        answer = await agent.input("What is 5 plus 3?")
    """

    def __init__(
        self,
        name: str,
        tools: Any = None,
        llm: LLMProvider | None = None,
        system_prompt: str | None = None,
        max_iterations: int | None = None,
        debug: bool | None = None,
        breakpoint_channel: BreakpointChannel | None = None,
        history: bool | Path | str | None = None,
        log: bool | Path | str | None = None,
    ):
        """Create an agent.

        Args:
            name: Agent name, used for the behavior log location and console output
            tools: Functions, objects with public methods, Tool instances, or a list of these
            llm: Completion provider; without one every provider call fails
            system_prompt: System message; defaults to the configured template
            max_iterations: Default turn cap per input() call
            debug: Enable breakpoints for debug-flagged tools
            breakpoint_channel: Where breakpoint decisions come from (terminal by default)
            history: False disables the behavior log, a path overrides its location
            log: True writes ``./<name>.log``, a path writes there, False disables
        """
        cfg = get_config()
        self.name = name
        self.system_prompt = system_prompt or cfg.render_system_prompt(name)
        self.max_iterations = max_iterations or cfg.agent.max_iterations
        self.debug = cfg.debug.enabled if debug is None else bool(debug)

        self.llm: LLMProvider = llm or NoopProvider()
        self.tools = ToolRegistry(tools)
        self.trace = ExecutionTracer()
        self.messages: list[Message] = []

        if history is False:
            self.history = BehaviorLog(name, enabled=False)
        elif isinstance(history, (str, Path)):
            self.history = BehaviorLog(name, path=history, enabled=True)
        else:
            self.history = BehaviorLog(name)

        self.console = AgentConsole(log_file=self._resolve_log_file(log))
        self.breakpoints = BreakpointSession(
            breakpoint_channel
            or ConsoleBreakpointChannel(
                console=self.console.console,
                preview_chars=self.console.verbose_preview_chars,
            )
        )

        self._current_prompt = ""
        self._current_iteration = 0

    def _resolve_log_file(self, log_option: bool | Path | str | None) -> Path | None:
        if log_option is False:
            return None
        if log_option is True:
            return Path.cwd() / f"{self.name}.log"
        if isinstance(log_option, (str, Path)) and str(log_option):
            return Path(log_option)
        log_dir = get_config().console.log_dir
        if log_dir:
            return Path(log_dir).expanduser() / f"{self.name}.log"
        return None

    # Conversation loop

    async def input(self, prompt: str, max_iterations: int | None = None) -> str:
        """Process a prompt and return the final answer.

        Args:
            prompt: The user's input
            max_iterations: Turn cap for this call only

        Returns:
            The provider's final text, or an empty string when the cap was
            reached while the provider kept requesting tools
        """
        iterations = max_iterations or self.max_iterations
        with agent_log_context(self.name):
            self.history.add_input(prompt)
            self.console.print(f"INPUT: {truncate(prompt, 100)}")
            log.info("Agent input", max_iterations=iterations, tools=len(self.tools))

            if not self.messages:
                self.messages.append(Message(role="system", content=self.system_prompt))
            self.messages.append(Message(role="user", content=prompt))
            self._current_prompt = prompt

            try:
                final_response, completed = await self._run_turns(iterations)
            except Exception as e:
                self.history.add_output("", error=_error_text(e))
                self.console.print(f"✗ Failed: {_error_text(e)}")
                log.error("Agent input failed", error=str(e))
                raise

            if not completed:
                log.warning("Iteration cap reached without final answer", max_iterations=iterations)

            self.history.add_output(final_response)
            self.console.print(f"✓ Complete ({len(self.trace)} tool calls traced)")
            log.info("Agent output", completed=completed, chars=len(final_response))
            return final_response

    async def _run_turns(self, iterations: int) -> tuple[str, bool]:
        """Alternate provider calls and tool dispatch; returns (answer, completed)."""
        for iteration in range(iterations):
            self._current_iteration = iteration
            response = await self._request_completion(iteration)

            if response.tool_calls:
                self.messages.append(
                    Message(
                        role="assistant",
                        content=response.content or "",
                        tool_calls=list(response.tool_calls),
                    )
                )
                results = await self._execute_tool_calls(response.tool_calls, iteration)
                for call, result in zip(response.tool_calls, results):
                    self.messages.append(
                        Message(
                            role="tool",
                            content=result.to_message_content(),
                            tool_call_id=call.id,
                            tool_name=call.name,
                        )
                    )
                continue

            final_response = response.content or ""
            if final_response:
                self.messages.append(Message(role="assistant", content=final_response))
            return final_response, True
        return "", False

    async def _request_completion(self, iteration: int) -> LLMResponse:
        """Call the provider with a snapshot of the conversation."""
        definitions = self.tools.get_definitions()
        self.console.print(
            f"→ LLM request (turn {iteration + 1}, {len(self.messages)} messages, {len(definitions)} tools)"
        )
        started = time.perf_counter()
        try:
            response = await self.llm.complete(list(self.messages), definitions or None)
        except Exception as e:
            log.error("Provider call failed", iteration=iteration, error=str(e))
            raise
        elapsed_ms = (time.perf_counter() - started) * 1000.0

        self.history.add_llm_response(response.to_dict())
        if response.tool_calls:
            names = ", ".join(call.name for call in response.tool_calls)
            self.console.print(f"← LLM response ({format_elapsed(elapsed_ms)}): {names}")
        else:
            self.console.print(f"← LLM response ({format_elapsed(elapsed_ms)})")
        return response

    async def _execute_tool_calls(self, tool_calls: list[ToolCall], iteration: int) -> list[ToolResult]:
        """Run every call of one turn concurrently; results follow call order."""
        return list(
            await asyncio.gather(
                *(
                    self._dispatch(call.name, call.arguments, call.id, iteration)
                    for call in tool_calls
                )
            )
        )

    # Single dispatch

    async def dispatch(
        self,
        name: str,
        arguments: dict[str, Any] | None = None,
        call_id: str = "manual",
    ) -> ToolResult:
        """Execute one tool call outside the loop, with tracing and breakpoints."""
        return await self._dispatch(name, arguments or {}, call_id, self._current_iteration)

    async def _dispatch(
        self,
        name: str,
        arguments: dict[str, Any],
        call_id: str,
        iteration: int,
    ) -> ToolResult:
        arguments = dict(arguments or {})
        self.console.print(f"→ Tool: {name}({truncate(_json_preview(arguments), self.console.preview_chars)})")

        tool = self.tools.get(name)
        if tool is None:
            result = ToolResult.missing(name)
            self.console.print(f"✗ {result.error}")
            return self._record(name, arguments, call_id, result, 0.0, iteration)

        paused = self.debug and bool(getattr(tool, "debug", False))
        if not paused:
            result, elapsed_ms = await self._run_tool(tool, arguments)
            self._report(name, arguments, result, elapsed_ms)
            return self._record(name, arguments, call_id, result, elapsed_ms, iteration)

        context = BreakpointContext(
            agent_name=self.name,
            tool_name=name,
            call_id=call_id,
            arguments=dict(arguments),
            prompt=self._current_prompt,
            iteration_index=iteration,
            messages=list(self.messages),
            previous_tools=self.trace.tool_names(),
        )
        elapsed_ms = 0.0
        try:
            async with self.breakpoints.pause(context) as outcome:
                arguments = outcome.arguments
                if outcome.skipped:
                    result = ToolResult.ok(SKIPPED_RESULT)
                else:
                    result, elapsed_ms = await self._run_tool(tool, arguments)
        except Exception as e:
            log.error("Breakpoint failed", tool=name, call_id=call_id, error=str(e))
            result = ToolResult.failed(_error_text(e))

        self.console.print_debug(
            name,
            arguments,
            result.preview(),
            elapsed_ms,
            agent=self.name,
            iteration_index=iteration,
            prompt=self._current_prompt,
        )
        return self._record(name, arguments, call_id, result, elapsed_ms, iteration)

    async def _run_tool(self, tool: Tool, arguments: dict[str, Any]) -> tuple[ToolResult, float]:
        """Run a tool, converting any exception into an error result."""
        started = time.perf_counter()
        try:
            validate = getattr(tool, "validate_arguments", None)
            if callable(validate):
                validate(arguments)
            output = tool.run(arguments)
            if inspect.isawaitable(output):
                output = await output
            result = ToolResult.ok(output)
        except Exception as e:
            log.warning("Tool raised", tool=tool.name, error=str(e))
            result = ToolResult.failed(_error_text(e))
        return result, (time.perf_counter() - started) * 1000.0

    def _report(self, name: str, arguments: dict[str, Any], result: ToolResult, elapsed_ms: float) -> None:
        timing = format_elapsed(elapsed_ms)
        if result.success:
            self.console.print(f"← Result ({timing}): {truncate(result.preview(), self.console.preview_chars)}")
        else:
            self.console.print(f"✗ Error ({timing}): {result.error}")

    def _record(
        self,
        name: str,
        arguments: dict[str, Any],
        call_id: str,
        result: ToolResult,
        elapsed_ms: float,
        iteration: int,
    ) -> ToolResult:
        self.trace.record(
            TraceEntry(
                tool_name=name,
                arguments=dict(arguments),
                call_id=call_id,
                result=result,
                elapsed_ms=elapsed_ms,
                iteration_index=iteration,
            )
        )
        self.history.add_tool_call(name, dict(arguments), result.to_payload(), call_id)
        return result

    # Replay

    async def replay(self, tool_name: str | None = None, /, **overrides: Any) -> ToolResult:
        """Re-dispatch the most recent traced call with some arguments overridden.

        ``tool_name`` is positional only, so a keyword of that name overrides
        the tool argument of the same name.

        Raises:
            ReplayError if the trace holds no matching call
        """
        previous = self.trace.last_call(tool_name)
        if previous is None:
            raise ReplayError(tool_name)
        arguments = {**previous.arguments, **overrides}
        log.info("Replaying tool call", tool=previous.tool_name, overrides=sorted(overrides))
        return await self._dispatch(
            previous.tool_name,
            arguments,
            f"replay:{previous.call_id}",
            previous.iteration_index,
        )

    # Tools and state

    def add_tool(self, tool: Any) -> list[Tool]:
        """Register more tools; same-named tools are replaced."""
        return self.tools.register(tool)

    def remove_tool(self, name: str) -> bool:
        """Remove a tool by name; returns whether it existed."""
        return self.tools.unregister(name)

    def get_tools(self) -> list[Tool]:
        return self.tools.all()

    def tool_names_called(self) -> list[str]:
        """Names of every traced dispatch, in order."""
        return self.trace.tool_names()

    def get_history(self) -> list[dict[str, Any]]:
        """Behavior events recorded for this agent."""
        return self.history.behaviors()

    def clear_history(self) -> None:
        self.history.clear()

    def reset(self) -> None:
        """Forget the conversation; the next input() starts a new one."""
        self.messages = []
        self._current_prompt = ""
        self._current_iteration = 0

    def render_trace(self) -> str:
        return self.trace.render(self.console.preview_chars)


def _error_text(error: BaseException) -> str:
    return str(error) or type(error).__name__


def _json_preview(arguments: dict[str, Any]) -> str:
    try:
        return json.dumps(arguments, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(arguments)
