import json

from agentloop.tools.registry import ToolResult


def test_failure_without_message_gets_default_error() -> None:
    assert ToolResult(status="error").error == "Tool execution failed"
    assert ToolResult(status="not_found", error="  ").error == "Tool not found"


def test_failure_keeps_explicit_error() -> None:
    result = ToolResult.failed("disk full")

    assert result.success is False
    assert result.error == "disk full"


def test_missing_names_the_tool() -> None:
    result = ToolResult.missing("nonExistentTool")

    assert result.status == "not_found"
    assert result.error == "Tool 'nonExistentTool' not found"


def test_message_content_carries_status_and_value() -> None:
    assert json.loads(ToolResult.ok({"temp": 21}).to_message_content()) == {
        "status": "success",
        "result": {"temp": 21},
    }
    assert json.loads(ToolResult.failed("boom").to_message_content()) == {
        "status": "error",
        "error": "boom",
    }


def test_message_content_stringifies_unserializable_values() -> None:
    class Opaque:
        def __str__(self) -> str:
            return "<opaque>"

    payload = json.loads(ToolResult.ok(Opaque()).to_message_content())

    assert payload["result"] == "<opaque>"


def test_preview_prefers_plain_strings() -> None:
    assert ToolResult.ok("plain").preview() == "plain"
    assert ToolResult.ok([1, 2]).preview() == "[1, 2]"
    assert ToolResult.failed("bad").preview() == "bad"


def test_message_content_survives_non_string_keys() -> None:
    payload = json.loads(ToolResult.ok({(1, 2): "x"}).to_message_content())

    assert payload == {"status": "success", "result": "{(1, 2): 'x'}"}


def test_message_content_survives_circular_values() -> None:
    looped: dict = {"name": "loop"}
    looped["self"] = looped

    payload = json.loads(ToolResult.ok(looped).to_message_content())

    assert payload["status"] == "success"
    assert payload["result"].startswith("{'name': 'loop'")
