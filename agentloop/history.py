"""Persistent behavior log: input, provider responses, tool calls and output."""

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Literal

from agentloop.config import get_config
from agentloop.logging import get_logger

log = get_logger(__name__)

BehaviorType = Literal["input", "llm_response", "tool_call", "output"]
BEHAVIOR_FILENAME = "behavior.json"


def default_behavior_path(agent_name: str) -> Path:
    """``<history.path>/<agent name>/behavior.json`` from the global config."""
    root = Path(get_config().history.path).expanduser()
    return root / agent_name / BEHAVIOR_FILENAME


def load_behaviors(path: Path | str) -> list[dict[str, Any]]:
    """Read a persisted behavior array; anything else yields an empty list."""
    behavior_path = Path(path).expanduser()
    if not behavior_path.exists():
        return []
    try:
        payload = json.loads(behavior_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        log.warning("Failed to load existing behaviors", path=str(behavior_path), error=str(e))
        return []
    if not isinstance(payload, list):
        log.warning("Behavior file does not contain an array, starting empty", path=str(behavior_path))
        return []
    return payload


class BehaviorLog:
    """Timestamped behavior events for one agent, saved after every event."""

    def __init__(
        self,
        agent_name: str,
        path: Path | str | None = None,
        enabled: bool | None = None,
    ):
        self.agent_name = agent_name
        self.enabled = get_config().history.enabled if enabled is None else bool(enabled)
        self.path: Path | None = None
        self._behaviors: list[dict[str, Any]] = []
        if self.enabled:
            self.path = Path(path).expanduser() if path else default_behavior_path(agent_name)
            self._behaviors = load_behaviors(self.path)

    def add(self, behavior_type: BehaviorType, data: Any) -> dict[str, Any]:
        entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "type": behavior_type,
            "data": data,
        }
        try:
            json.dumps(entry, ensure_ascii=False, default=str)
        except (TypeError, ValueError) as e:
            # Stored entries must always serialize, or every later save fails
            log.error("Behavior data is not serializable, storing its text", type=behavior_type, error=str(e))
            entry["data"] = str(data)
        self._behaviors.append(entry)
        self._save()
        return entry

    def add_input(self, prompt: str) -> None:
        self.add("input", {"prompt": prompt})

    def add_llm_response(self, response: dict[str, Any]) -> None:
        self.add("llm_response", response)

    def add_tool_call(self, name: str, arguments: dict[str, Any], result: dict[str, Any], call_id: str) -> None:
        self.add(
            "tool_call",
            {
                "name": name,
                "arguments": arguments,
                "result": result,
                "call_id": call_id,
            },
        )

    def add_output(self, output: str, error: str | None = None) -> None:
        data: dict[str, Any] = {"output": output}
        if error is not None:
            data["error"] = error
        self.add("output", data)

    def behaviors(self) -> list[dict[str, Any]]:
        return list(self._behaviors)

    def clear(self) -> None:
        self._behaviors = []
        self._save()

    def _save(self) -> None:
        if not self.enabled or self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(
                json.dumps(self._behaviors, indent=2, ensure_ascii=False, default=str),
                encoding="utf-8",
            )
        except (OSError, TypeError, ValueError) as e:
            log.error("Failed to save behaviors", path=str(self.path), error=str(e))
