"""Command line entry point for agentloop."""

import json
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from agentloop.config import Config, get_config, set_config
from agentloop.history import default_behavior_path, load_behaviors
from agentloop.logging import configure_logging

app = typer.Typer(
    help="agentloop - inspect agent behavior logs and configuration",
    no_args_is_help=True,
)


def _clip(text: str, limit: int = 80) -> str:
    text = " ".join(str(text).split())
    return text if len(text) <= limit else text[:limit] + "..."


def summarize_behavior(entry: dict[str, Any]) -> str:
    """One-line summary of a behavior event."""
    data = entry.get("data") or {}
    kind = entry.get("type")
    if not isinstance(data, dict):
        return _clip(json.dumps(data, default=str))
    if kind == "input":
        return _clip(data.get("prompt", ""))
    if kind == "output":
        if data.get("error"):
            return _clip(f"failed: {data['error']}")
        return _clip(data.get("output", "")) or "(empty)"
    if kind == "llm_response":
        calls = data.get("tool_calls") or []
        if calls:
            return "tool calls: " + ", ".join(str(call.get("name", "?")) for call in calls)
        return _clip(data.get("content") or "") or "(empty)"
    if kind == "tool_call":
        result = data.get("result") or {}
        status = result.get("status", "?") if isinstance(result, dict) else "?"
        if isinstance(result, dict) and status == "success":
            outcome = json.dumps(result.get("result"), default=str)
        elif isinstance(result, dict):
            outcome = str(result.get("error", ""))
        else:
            outcome = str(result)
        arguments = json.dumps(data.get("arguments", {}), default=str)
        return _clip(f"{data.get('name', '?')}({arguments}) -> {status}: {outcome}")
    return _clip(json.dumps(data, default=str))


@app.callback()
def main(
    config: str = typer.Option("", "-c", "--config", help="Path to config file"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Debug logging"),
) -> None:
    """Load configuration and set up logging for every command."""
    if config:
        set_config(Config.from_yaml(config))
    configure_logging("DEBUG" if verbose else None)


@app.command()
def history(
    agent: str = typer.Argument(..., help="Agent name"),
    path: str = typer.Option("", "-p", "--path", help="Behavior file to read instead of the default"),
    event_type: list[str] = typer.Option([], "-t", "--type", help="Only show these event types"),
    limit: int = typer.Option(0, "-n", "--limit", help="Show only the last N events"),
) -> None:
    """Render an agent's persisted behavior log."""
    console = Console()
    behavior_path = Path(path).expanduser() if path else default_behavior_path(agent)
    if not behavior_path.exists():
        console.print(f"No behavior log at {behavior_path}")
        raise typer.Exit(code=1)

    behaviors = load_behaviors(behavior_path)
    if event_type:
        behaviors = [entry for entry in behaviors if entry.get("type") in event_type]
    if limit > 0:
        behaviors = behaviors[-limit:]

    table = Table(title=f"Behavior log: {agent}")
    table.add_column("#", justify="right")
    table.add_column("Time")
    table.add_column("Type")
    table.add_column("Summary", overflow="fold")
    for position, entry in enumerate(behaviors, start=1):
        table.add_row(
            str(position),
            str(entry.get("timestamp", ""))[:19],
            str(entry.get("type", "")),
            summarize_behavior(entry),
        )
    console.print(table)


@app.command("config")
def show_config() -> None:
    """Print the effective configuration as YAML."""
    typer.echo(get_config().to_yaml())


@app.command()
def version() -> None:
    """Show version information."""
    from agentloop import __version__

    typer.echo(f"agentloop v{__version__}")


if __name__ == "__main__":
    app()
