# src/eventgear/cli.py
"""EventGear Command Line Interface.

Entry point for the ``eventgear`` tool:

- ``simulate``: drive an engine with a synthetic event stream in real time
  and print what it measured
- ``check-config``: validate a settings file and the bridges it names
"""

from __future__ import annotations

import json
import time
from dataclasses import asdict
from pathlib import Path
from typing import Any

import numpy as np
import typer
import yaml

from eventgear import __version__
from eventgear.bridges.manager import create_bridges
from eventgear.contracts.errors import BridgeError, SettingsError
from eventgear.core.config import EventGearSettings, load_settings
from eventgear.core.logging import configure_logging
from eventgear.engine.engine import TelemetryEngine

__all__ = ["app"]

app = typer.Typer(
    name="eventgear",
    help="EventGear: event telemetry and alarm engine.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"eventgear version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """EventGear: event telemetry and alarm engine."""


def _format_error(title: str, message: str, hint: str | None = None, details: list[str] | None = None) -> None:
    """Display a formatted error panel on stderr."""
    from rich.console import Console
    from rich.panel import Panel
    from rich.text import Text

    content = Text()
    content.append(message, style="white")
    if details:
        content.append("\n\n")
        for detail in details:
            content.append(f"  - {detail}\n", style="dim")
    if hint:
        content.append("\n")
        content.append("Hint: ", style="yellow bold")
        content.append(hint, style="yellow")

    Console(stderr=True).print(Panel(content, title=f"[red bold]{title}[/]", border_style="red", padding=(0, 1)))


def _load_or_exit(path: Path) -> EventGearSettings:
    try:
        return load_settings(path)
    except FileNotFoundError:
        _format_error("File Not Found", f"Settings file does not exist: {path}", hint="Check the path.")
        raise typer.Exit(1) from None
    except SettingsError as e:
        _format_error(
            "Configuration Validation Failed",
            f"Invalid settings in {path.name}",
            details=str(e).splitlines()[1:] or [str(e)],
            hint="Check field names, types, and required values.",
        )
        raise typer.Exit(1) from None


def _summary(engine: TelemetryEngine) -> dict[str, Any]:
    return {
        "events": engine.event_count_total,
        "running_time": round(engine.total_running_time, 3),
        "total_frequency": round(engine.total_frequency, 3),
        "frequency_max": round(engine.frequency_max, 3),
        "short_term_frequency": round(engine.short_term_frequency, 3),
        "short_term_jitter_ms": round(engine.short_term_jitter, 3),
        "events_in_last_second": engine.event_count_last_second,
        "timeframes": engine.timeframe_count,
        "history": [
            {
                "index": entry.timeframe_index,
                "events": entry.events,
                "frequency": round(entry.frequency, 3),
                "jitter_ms": round(entry.jitter, 3),
            }
            for entry in engine.frame_history
        ],
        "exceedances": asdict(engine.exceedances),
    }


@app.command()
def simulate(
    rate: float = typer.Option(50.0, "--rate", "-r", min=0.1, help="Mean events per second."),
    duration: float = typer.Option(3.0, "--duration", "-d", min=0.0, help="Seconds to run."),
    frame: float | None = typer.Option(
        None, "--frame", "-f", min=0.0, help="Timeframe length in seconds, 0 disables (default: settings or 1.0)."
    ),
    jitter: float = typer.Option(0.0, "--jitter", "-j", min=0.0, help="Std deviation of event spacing in ms."),
    settings: Path | None = typer.Option(None, "--settings", "-s", help="Settings YAML file."),
    seed: int | None = typer.Option(None, "--seed", help="Random seed for the event spacing."),
    json_output: bool = typer.Option(False, "--json", help="Print the summary as JSON."),
    log_level: str | None = typer.Option(None, "--log-level", help="Log level (default: settings or WARNING)."),
) -> None:
    """Feed a synthetic event stream to an engine and print its metrics."""
    config = _load_or_exit(settings.expanduser()) if settings is not None else None
    level = log_level or (config.logging.level if config is not None else "WARNING")
    try:
        configure_logging(json_output=config.logging.json_output if config is not None else False, level=level)
    except ValueError as e:
        _format_error("Invalid Option", str(e))
        raise typer.Exit(1) from None

    try:
        if config is not None:
            engine = TelemetryEngine.from_settings(config)
        else:
            engine = TelemetryEngine(frame_duration=1.0 if frame is None else frame)
    except BridgeError as e:
        _format_error("Bridge Error", str(e))
        raise typer.Exit(1) from None
    if config is not None and frame is not None:
        engine.set_frame_duration(frame)

    rng = np.random.default_rng(seed)
    spacing = 1.0 / rate
    engine.start()
    try:
        started = time.monotonic()
        next_at = started
        sequence = 0
        while next_at - started < duration:
            delay = next_at - time.monotonic()
            if delay > 0:
                time.sleep(delay)
            sequence += 1
            engine.register_event({"sequence": sequence})
            next_at += max(spacing + rng.normal(0.0, jitter / 1000) if jitter else spacing, 0.0)
    finally:
        engine.stop()

    summary = _summary(engine)
    if json_output:
        typer.echo(json.dumps(summary, indent=2))
    else:
        typer.echo(yaml.safe_dump(summary, sort_keys=False).rstrip())


@app.command("check-config")
def check_config(
    settings: Path = typer.Argument(..., help="Settings YAML file."),
) -> None:
    """Validate a settings file without running anything."""
    path = settings.expanduser()
    config = _load_or_exit(path)
    try:
        bridges = create_bridges(config.bridges)
    except BridgeError as e:
        _format_error("Bridge Error", str(e), hint="Bridges must be built in or installed as eventgear plugins.")
        raise typer.Exit(1) from None
    for bridge in bridges:
        bridge.close()

    typer.echo(f"Configuration valid: {path.name}")
    typer.echo(yaml.safe_dump({"engine": config.engine.model_dump(), "bridges": [b.name for b in bridges]}).rstrip())


if __name__ == "__main__":
    app()
