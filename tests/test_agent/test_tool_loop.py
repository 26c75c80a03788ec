import asyncio
import json

import pytest

from agentloop.agent import Agent
from agentloop.exceptions import LLMAPIError, LLMError
from agentloop.llm import LLMProvider, LLMResponse, Message, ToolCall, ToolDefinition


class ScriptedProvider(LLMProvider):
    def __init__(self, responses: list[LLMResponse]):
        self.responses = list(responses)
        self.calls: list[dict] = []

    async def complete(
        self,
        messages: list[Message],
        tools: list[ToolDefinition] | None = None,
    ) -> LLMResponse:
        self.calls.append({"messages": list(messages), "tools": tools})
        if self.responses:
            return self.responses.pop(0)
        return LLMResponse(content="default")


class LoopingProvider(LLMProvider):
    def __init__(self):
        self.call_count = 0

    async def complete(
        self,
        messages: list[Message],
        tools: list[ToolDefinition] | None = None,
    ) -> LLMResponse:
        self.call_count += 1
        return LLMResponse(
            content=None,
            tool_calls=[ToolCall(id=f"call_{self.call_count}", name="noop", arguments={})],
        )


class FailingProvider(LLMProvider):
    async def complete(
        self,
        messages: list[Message],
        tools: list[ToolDefinition] | None = None,
    ) -> LLMResponse:
        raise LLMAPIError("API error 500: Internal Server Error", status_code=500)


def add(a: int, b: int) -> int:
    """Add two numbers."""
    return a + b


def tool_messages(messages: list[Message]) -> list[Message]:
    return [msg for msg in messages if msg.role == "tool"]


@pytest.mark.asyncio
async def test_input_stops_at_iteration_cap_and_returns_empty_string():
    provider = LoopingProvider()
    agent = Agent("looper", tools=[lambda: "ok"], llm=provider, max_iterations=3)

    result = await agent.input("keep calling tools")

    assert result == ""
    assert provider.call_count == 3


@pytest.mark.asyncio
async def test_per_call_iteration_cap_overrides_agent_default():
    provider = LoopingProvider()
    agent = Agent("looper", llm=provider, max_iterations=10)

    result = await agent.input("keep calling tools", max_iterations=2)

    assert result == ""
    assert provider.call_count == 2


@pytest.mark.asyncio
async def test_text_response_terminates_after_one_call():
    provider = ScriptedProvider([LLMResponse(content="Hello, I am a test response")])
    agent = Agent("greeter", llm=provider)

    result = await agent.input("Hello")

    assert result == "Hello, I am a test response"
    assert len(provider.calls) == 1


@pytest.mark.asyncio
async def test_empty_response_is_an_empty_final_answer():
    provider = ScriptedProvider([LLMResponse(content=None)])
    agent = Agent("quiet", llm=provider)

    assert await agent.input("anything?") == ""
    assert len(provider.calls) == 1


@pytest.mark.asyncio
async def test_tool_result_message_precedes_second_provider_call():
    provider = ScriptedProvider(
        [
            LLMResponse(
                content=None,
                tool_calls=[ToolCall(id="call_1", name="add", arguments={"a": 5, "b": 3})],
            ),
            LLMResponse(content="5 plus 3 equals 8"),
        ]
    )
    agent = Agent("calculator", tools=[add], llm=provider)

    result = await agent.input("What is 5 plus 3?")

    assert result == "5 plus 3 equals 8"
    second_call = provider.calls[1]["messages"]
    assert [msg.role for msg in second_call] == ["system", "user", "assistant", "tool"]
    assistant, tool_msg = second_call[2], second_call[3]
    assert assistant.tool_calls is not None
    assert assistant.tool_calls[0].id == "call_1"
    assert tool_msg.tool_call_id == "call_1"
    assert json.loads(tool_msg.content) == {"status": "success", "result": 8}


@pytest.mark.asyncio
async def test_provider_receives_tool_definitions():
    provider = ScriptedProvider([LLMResponse(content="ok")])
    agent = Agent("calculator", tools=[add], llm=provider)

    await agent.input("hi")

    tools = provider.calls[0]["tools"]
    assert tools is not None
    assert [tool.name for tool in tools] == ["add"]
    assert tools[0].description == "Add two numbers."
    assert tools[0].parameters["required"] == ["a", "b"]


@pytest.mark.asyncio
async def test_provider_receives_none_when_no_tools_registered():
    provider = ScriptedProvider([LLMResponse(content="ok")])
    agent = Agent("bare", llm=provider)

    await agent.input("hi")

    assert provider.calls[0]["tools"] is None


@pytest.mark.asyncio
async def test_unknown_tool_yields_not_found_message_without_raising():
    provider = ScriptedProvider(
        [
            LLMResponse(tool_calls=[ToolCall(id="call_1", name="nonExistentTool", arguments={})]),
            LLMResponse(content="That tool does not exist"),
        ]
    )
    agent = Agent("lost", tools=[add], llm=provider)

    result = await agent.input("use a missing tool")

    assert result == "That tool does not exist"
    [tool_msg] = tool_messages(provider.calls[1]["messages"])
    payload = json.loads(tool_msg.content)
    assert payload["status"] == "not_found"
    assert "nonExistentTool" in payload["error"]


@pytest.mark.asyncio
async def test_tool_exception_does_not_abort_input():
    def error_tool() -> str:
        raise RuntimeError("Tool error")

    provider = ScriptedProvider(
        [
            LLMResponse(tool_calls=[ToolCall(id="call_1", name="error_tool", arguments={})]),
            LLMResponse(content="Handled the error"),
        ]
    )
    agent = Agent("fragile", tools=[error_tool], llm=provider)

    result = await agent.input("Use the error tool")

    assert result == "Handled the error"
    [tool_msg] = tool_messages(provider.calls[1]["messages"])
    assert json.loads(tool_msg.content) == {"status": "error", "error": "Tool error"}


@pytest.mark.asyncio
async def test_missing_required_argument_becomes_error_result():
    provider = ScriptedProvider(
        [
            LLMResponse(tool_calls=[ToolCall(id="call_1", name="add", arguments={"a": 1})]),
            LLMResponse(content="done"),
        ]
    )
    agent = Agent("calculator", tools=[add], llm=provider)

    await agent.input("add one")

    [entry] = agent.trace.entries()
    assert entry.status == "error"
    assert "Missing required argument: b" in (entry.result.error or "")


@pytest.mark.asyncio
async def test_parallel_calls_fan_in_before_next_provider_call():
    async def slow(value: str) -> str:
        await asyncio.sleep(0.05)
        return f"slow:{value}"

    async def fast(value: str) -> str:
        return f"fast:{value}"

    provider = ScriptedProvider(
        [
            LLMResponse(
                tool_calls=[
                    ToolCall(id="c1", name="slow", arguments={"value": "a"}),
                    ToolCall(id="c2", name="fast", arguments={"value": "b"}),
                ]
            ),
            LLMResponse(content="done"),
        ]
    )
    agent = Agent("parallel", tools=[slow, fast], llm=provider)

    result = await agent.input("run both")

    assert result == "done"
    messages = tool_messages(provider.calls[1]["messages"])
    assert [msg.tool_call_id for msg in messages] == ["c1", "c2"]
    assert [json.loads(msg.content)["result"] for msg in messages] == ["slow:a", "fast:b"]
    assert sorted(entry.tool_name for entry in agent.trace.entries()) == ["fast", "slow"]


@pytest.mark.asyncio
async def test_calls_in_one_turn_run_concurrently():
    second_started = asyncio.Event()

    async def first() -> str:
        # Only completes if second() runs while first() is still waiting
        await asyncio.wait_for(second_started.wait(), timeout=1.0)
        return "first done"

    async def second() -> str:
        second_started.set()
        return "second done"

    provider = ScriptedProvider(
        [
            LLMResponse(
                tool_calls=[
                    ToolCall(id="c1", name="first", arguments={}),
                    ToolCall(id="c2", name="second", arguments={}),
                ]
            ),
            LLMResponse(content="done"),
        ]
    )
    agent = Agent("parallel", tools=[first, second], llm=provider)

    await agent.input("run both")

    assert {entry.status for entry in agent.trace.entries()} == {"success"}


@pytest.mark.asyncio
async def test_provider_failure_propagates_to_caller():
    agent = Agent("broken", tools=[add], llm=FailingProvider())

    with pytest.raises(LLMAPIError, match="500"):
        await agent.input("hi")


@pytest.mark.asyncio
async def test_agent_without_provider_raises_llm_error():
    agent = Agent("unconfigured")

    with pytest.raises(LLMError, match="No LLM provider configured"):
        await agent.input("hi")


@pytest.mark.asyncio
async def test_conversation_persists_across_inputs_until_reset():
    provider = ScriptedProvider(
        [
            LLMResponse(content="first answer"),
            LLMResponse(content="second answer"),
            LLMResponse(content="third answer"),
        ]
    )
    agent = Agent("chatty", llm=provider, system_prompt="Be brief.")

    await agent.input("first")
    await agent.input("second")

    second_messages = provider.calls[1]["messages"]
    assert [msg.role for msg in second_messages] == ["system", "user", "assistant", "user"]
    assert second_messages[0].content == "Be brief."
    assert second_messages[2].content == "first answer"

    agent.reset()
    await agent.input("third")

    third_messages = provider.calls[2]["messages"]
    assert [(msg.role, msg.content) for msg in third_messages] == [
        ("system", "Be brief."),
        ("user", "third"),
    ]


@pytest.mark.asyncio
async def test_default_system_prompt_names_the_agent():
    provider = ScriptedProvider([LLMResponse(content="ok")])
    agent = Agent("helper", llm=provider)

    await agent.input("hi")

    assert provider.calls[0]["messages"][0].content == "You are helper, a helpful AI assistant."


@pytest.mark.asyncio
async def test_tools_can_be_added_and_removed_between_inputs():
    provider = ScriptedProvider([LLMResponse(content="ok"), LLMResponse(content="ok")])
    agent = Agent("dynamic", llm=provider)

    def new_tool() -> str:
        return "new"

    assert agent.get_tools() == []
    agent.add_tool(new_tool)
    await agent.input("first")
    assert [tool.name for tool in provider.calls[0]["tools"]] == ["new_tool"]

    assert agent.remove_tool("new_tool") is True
    assert agent.remove_tool("new_tool") is False
    await agent.input("second")
    assert provider.calls[1]["tools"] is None


@pytest.mark.asyncio
async def test_unserializable_tool_values_stay_in_the_conversation():
    def tuple_keys() -> dict:
        return {(1, 2): "x"}

    def circular() -> dict:
        looped: dict = {"name": "loop"}
        looped["self"] = looped
        return looped

    provider = ScriptedProvider(
        [
            LLMResponse(
                tool_calls=[
                    ToolCall(id="c1", name="tuple_keys", arguments={}),
                    ToolCall(id="c2", name="circular", arguments={}),
                ]
            ),
            LLMResponse(content="done"),
        ]
    )
    agent = Agent("odd_values", tools=[tuple_keys, circular], llm=provider)

    result = await agent.input("go")

    assert result == "done"
    messages = tool_messages(provider.calls[1]["messages"])
    payloads = [json.loads(msg.content) for msg in messages]
    assert [payload["status"] for payload in payloads] == ["success", "success"]
    assert payloads[0]["result"] == "{(1, 2): 'x'}"
    assert [entry["type"] for entry in agent.get_history()][-1] == "output"


@pytest.mark.asyncio
async def test_provider_failure_still_records_output_event():
    agent = Agent("broken", llm=FailingProvider())

    with pytest.raises(LLMAPIError):
        await agent.input("hi")

    history = agent.get_history()
    assert [entry["type"] for entry in history] == ["input", "output"]
    assert history[-1]["data"] == {"output": "", "error": "API error 500: Internal Server Error"}
