"""Line-oriented progress output on the terminal, mirrored to an optional log file."""

from datetime import datetime
from pathlib import Path
from typing import Any, TextIO

from rich.console import Console
from rich.text import Text

from agentloop.config import get_config
from agentloop.logging import get_logger

log = get_logger(__name__)

_PREFIX_STYLES: tuple[tuple[str, str], ...] = (
    ("→", "yellow"),
    ("←", "green"),
    ("✓", "green"),
    ("✗", "red"),
    ("@debug", "cyan"),
    ("INPUT:", "bold"),
)

_PLAIN_REPLACEMENTS: tuple[tuple[str, str], ...] = (
    ("→", "->"),
    ("←", "<-"),
    ("✓", "[OK]"),
    ("✗", "[ERROR]"),
)


def to_plain(message: str) -> str:
    """ASCII-only version of a console line for log files."""
    for glyph, replacement in _PLAIN_REPLACEMENTS:
        message = message.replace(glyph, replacement)
    return message


def _style_for(message: str) -> str | None:
    for prefix, style in _PREFIX_STYLES:
        if message.startswith(prefix):
            return style
    return None


class AgentConsole:
    """Progress printer used by the agent loop."""

    def __init__(
        self,
        log_file: Path | str | None = None,
        enabled: bool | None = None,
        colors: bool | None = None,
        file: TextIO | None = None,
    ):
        cfg = get_config().console
        self.enabled = cfg.enabled if enabled is None else bool(enabled)
        use_colors = cfg.colors if colors is None else bool(colors)
        self.preview_chars = cfg.preview_chars
        self.verbose_preview_chars = cfg.verbose_preview_chars
        self.console = Console(
            file=file,
            stderr=file is None,
            highlight=False,
            no_color=not use_colors,
        )
        self.log_path: Path | None = Path(log_file).expanduser() if log_file else None
        if self.log_path is not None:
            self._init_log_file()

    def _init_log_file(self) -> None:
        header = (
            "\n" + "=" * 60 + "\n"
            f"Session started: {datetime.now().isoformat()}\n"
            + "=" * 60 + "\n\n"
        )
        self._append(header)

    def _append(self, text: str) -> None:
        if self.log_path is None:
            return
        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(text)
        except OSError as e:
            log.warning("Failed to write console log", path=str(self.log_path), error=str(e))

    def print(self, message: str) -> None:
        """Print one timestamped progress line."""
        timestamp = datetime.now().strftime("%H:%M:%S")
        if self.enabled:
            self.console.print(
                Text.assemble((timestamp, "dim"), " ", (message, _style_for(message) or "")),
                soft_wrap=True,
            )
        self._append(f"[{timestamp}] {to_plain(message)}\n")

    def print_debug(
        self,
        tool_name: str,
        arguments: dict[str, Any],
        result: str,
        elapsed_ms: float,
        *,
        agent: str | None = None,
        iteration_index: int | None = None,
        prompt: str | None = None,
    ) -> None:
        """Verbose per-field block for breakpoint-flagged tools."""
        limit = self.verbose_preview_chars
        self.print(f"@debug: {tool_name}")
        if agent:
            self.print(f"  agent: {agent}")
        if prompt:
            self.print(f"  task: {prompt[:80]}")
        if iteration_index is not None:
            self.print(f"  turn: {iteration_index + 1}")
        for key, value in (arguments or {}).items():
            text = str(value)
            self.print(f"  {key}: {text[:limit] + '...' if len(text) > limit else text}")
        self.print(f"  result: {result[:limit] + '...' if len(result) > limit else result}")
        self.print(f"  timing: {elapsed_ms:.1f}ms")
