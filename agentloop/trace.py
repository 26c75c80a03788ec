"""Append-only record of tool dispatches."""

import json
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field, computed_field

from agentloop.tools.registry import ToolResult, ToolStatus

STATUS_GLYPHS: dict[str, str] = {
    "success": "✓",
    "error": "✗",
    "not_found": "?",
}


def _utcnow_iso() -> str:
    """Return current UTC timestamp in ISO format."""
    return datetime.now(UTC).isoformat()


def truncate(text: str, limit: int) -> str:
    """Cut text to ``limit`` characters, marking the cut with an ellipsis."""
    if limit <= 0 or len(text) <= limit:
        return text
    return text[:limit] + "..."


def format_elapsed(elapsed_ms: float) -> str:
    """Seconds with four decimals under 100 ms, one decimal otherwise."""
    seconds = elapsed_ms / 1000.0
    if elapsed_ms < 100:
        return f"{seconds:.4f}s"
    return f"{seconds:.1f}s"


class TraceEntry(BaseModel):
    """One tool dispatch."""

    tool_name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    call_id: str = ""
    result: ToolResult
    elapsed_ms: float = 0.0
    iteration_index: int = 0
    timestamp: str = Field(default_factory=_utcnow_iso)

    @computed_field
    @property
    def status(self) -> ToolStatus:
        return self.result.status

    def arguments_preview(self, limit: int = 50) -> str:
        try:
            text = json.dumps(self.arguments, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            text = str(self.arguments)
        return truncate(text, limit)

    def result_preview(self, limit: int = 50) -> str:
        return truncate(self.result.preview(), limit)


class ExecutionTracer:
    """Append-only list of trace entries owned by one agent."""

    def __init__(self) -> None:
        self._entries: list[TraceEntry] = []

    def record(self, entry: TraceEntry) -> TraceEntry:
        self._entries.append(entry)
        return entry

    def entries(self) -> list[TraceEntry]:
        """Entries in dispatch order (a copy; the trace itself is never edited)."""
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def last_call(self, tool_name: str | None = None) -> TraceEntry | None:
        """Most recent entry, optionally restricted to one tool."""
        for entry in reversed(self._entries):
            if tool_name is None or entry.tool_name == tool_name:
                return entry
        return None

    def tool_names(self) -> list[str]:
        """Names of dispatched tools in order, repeats included."""
        return [entry.tool_name for entry in self._entries]

    def render(self, preview_chars: int = 50) -> str:
        """Numbered, human-readable listing of the trace."""
        if not self._entries:
            return "(no tool calls recorded)"
        lines: list[str] = []
        for position, entry in enumerate(self._entries, start=1):
            glyph = STATUS_GLYPHS.get(entry.status, "?")
            outcome = entry.result_preview(preview_chars)
            if entry.status != "success":
                outcome = f"{entry.status}: {outcome}"
            lines.append(
                f"{position}. {glyph} {entry.tool_name}({entry.arguments_preview(preview_chars)})"
                f" -> {outcome} [{format_elapsed(entry.elapsed_ms)}, turn {entry.iteration_index + 1}]"
            )
        return "\n".join(lines)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(list(self._entries))
