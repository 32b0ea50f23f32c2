"""
CLI interface for Claude Pulse.

Renders usage snapshots built from local session logs.
"""

import dataclasses
import json
import math
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from claude_pulse.cli.format import (
    format_currency,
    format_relative_time,
    format_token_count,
    usage_level,
    usage_percent,
)
from claude_pulse.config.loader import AppSettings, load_settings, parse_theme, save_settings
from claude_pulse.config.logging import configure_logging
from claude_pulse.core.aggregator import build_snapshot, snapshot_from_disk
from claude_pulse.core.scanner import collection_cutoff, default_corpus_root
from claude_pulse.core.snapshot import UsageSnapshot
from claude_pulse.core.watcher import ShardWatcher
from claude_pulse.storage.cache import ShardCache

app = typer.Typer()
settings_app = typer.Typer(help="Show or change persisted settings.")
app.add_typer(settings_app, name="settings")
console = Console()

EXIT_CODE_OK = 0
EXIT_CODE_ERROR = 1

LEVEL_STYLES = {"normal": "green", "warning": "yellow", "critical": "red"}


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    log_level: str = typer.Option("WARNING", "--log-level", help="Log level for diagnostics"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit logs as JSON lines"),
):
    """Claude Pulse CLI."""
    configure_logging(log_level=log_level, json_logs=json_logs)
    if ctx.invoked_subcommand is None:
        console.print("Claude Pulse - Use --help to see available commands")


def _load_settings_or_exit(path: Optional[Path]) -> AppSettings:
    try:
        return load_settings(path)
    except (ValueError, yaml.YAMLError, OSError) as e:
        console.print(f"[red]Error loading settings:[/] {str(e)}")
        sys.exit(EXIT_CODE_ERROR)


def _resolve_window_hours(window_hours: Optional[float], settings: AppSettings) -> float:
    if window_hours is None:
        return settings.window_hours
    if not math.isfinite(window_hours) or window_hours <= 0:
        console.print("[red]Error:[/] --window-hours must be a finite number > 0")
        sys.exit(EXIT_CODE_ERROR)
    return window_hours


@app.command()
def snapshot(
    root: Optional[Path] = typer.Option(
        None,
        "--root",
        "-r",
        help="Corpus root (defaults to ~/.claude/projects)"
    ),
    window_hours: Optional[float] = typer.Option(
        None,
        "--window-hours",
        "-w",
        help="Rolling window length in hours (overrides settings)"
    ),
    settings_path: Optional[Path] = typer.Option(
        None,
        "--settings",
        "-s",
        help="Settings file path"
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Print the snapshot as JSON"
    ),
    workers: int = typer.Option(
        1,
        "--workers",
        help="Parse shards on this many threads"
    ),
):
    """
    Show token usage and estimated cost.

    Covers the rolling window, the current calendar week (Monday 00:00 UTC
    to now) with a daily breakdown, and a per-model breakdown.
    """
    settings = _load_settings_or_exit(settings_path)
    hours = _resolve_window_hours(window_hours, settings)
    corpus_root = root if root is not None else default_corpus_root()

    result = snapshot_from_disk(corpus_root, window_hours=hours, max_workers=workers)

    if json_output:
        typer.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(EXIT_CODE_OK)

    if result.is_empty:
        console.print("\n[bold yellow]No usage data found[/]")
        console.print(f"\nLooked for session logs under: {corpus_root}\n")
        sys.exit(EXIT_CODE_OK)

    _display_snapshot(result, settings, hours)
    sys.exit(EXIT_CODE_OK)


@app.command()
def watch(
    root: Optional[Path] = typer.Option(
        None,
        "--root",
        "-r",
        help="Corpus root (defaults to ~/.claude/projects)"
    ),
    settings_path: Optional[Path] = typer.Option(
        None,
        "--settings",
        "-s",
        help="Settings file path"
    ),
    poll_interval: float = typer.Option(
        2.0,
        "--poll-interval",
        help="Seconds between checks for changed session files"
    ),
):
    """
    Re-render the snapshot whenever session files change.

    Also refreshes every refresh_interval_secs. Press Ctrl-C to exit.
    """
    settings = _load_settings_or_exit(settings_path)
    corpus_root = root if root is not None else default_corpus_root()
    cache = ShardCache()

    try:
        with ShardWatcher(corpus_root, poll_interval=poll_interval) as watcher:
            while True:
                now = datetime.now(timezone.utc)
                cutoff = collection_cutoff(now, settings.window_hours)
                records = cache.records(corpus_root, min_modified_time=cutoff)
                result = build_snapshot(records, now, settings.window_hours)
                console.clear()
                _display_snapshot(result, settings, settings.window_hours)
                if watcher.get(timeout=settings.refresh_interval_secs) is not None:
                    # Coalesce a burst of changes into one re-render
                    while watcher.get(timeout=0) is not None:
                        pass
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped watching[/]")
    sys.exit(EXIT_CODE_OK)


@settings_app.command("show")
def settings_show(
    settings_path: Optional[Path] = typer.Option(
        None,
        "--settings",
        "-s",
        help="Settings file path"
    ),
):
    """Print the effective settings."""
    settings = _load_settings_or_exit(settings_path)
    table = Table(title="Settings")
    table.add_column("Key")
    table.add_column("Value", justify="right")
    for key, value in settings.to_dict().items():
        table.add_row(key, "-" if value is None else str(value))
    console.print(table)


@settings_app.command("set")
def settings_set(
    settings_path: Optional[Path] = typer.Option(
        None,
        "--settings",
        "-s",
        help="Settings file path"
    ),
    window_hours: Optional[float] = typer.Option(
        None,
        "--window-hours",
        help="Rolling window length in hours"
    ),
    refresh_interval: Optional[int] = typer.Option(
        None,
        "--refresh-interval",
        help="Refresh interval in seconds"
    ),
    usage_limit: Optional[int] = typer.Option(
        None,
        "--usage-limit",
        help="Token limit shown as a usage meter (0 clears it)"
    ),
    theme: Optional[str] = typer.Option(
        None,
        "--theme",
        help="light, dark or system"
    ),
):
    """Update and persist settings."""
    settings = _load_settings_or_exit(settings_path)
    changes = {}
    if window_hours is not None:
        changes["window_hours"] = window_hours
    if refresh_interval is not None:
        changes["refresh_interval_secs"] = refresh_interval
    if usage_limit is not None:
        changes["usage_limit_tokens"] = usage_limit or None

    try:
        if theme is not None:
            changes["theme"] = parse_theme(theme)
        updated = dataclasses.replace(settings, **changes)
        written = save_settings(updated, settings_path)
    except (ValueError, OSError) as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_ERROR)

    console.print(f"[green]✓[/] Settings saved to {written}")
    sys.exit(EXIT_CODE_OK)


def _display_snapshot(result: UsageSnapshot, settings: AppSettings, window_hours: float):
    """Display a snapshot as window, weekly, model and cost sections."""
    window = result.window
    window_tokens = window.total_tokens

    console.print(f"\n[bold]Rolling Window[/bold] [dim]({window_hours:g}h)[/]")
    console.print("-" * 40)
    console.print(f"Input tokens:       {format_token_count(window.total_input_tokens)}")
    console.print(f"Output tokens:      {format_token_count(window.total_output_tokens)}")
    console.print(f"Cache read tokens:  {format_token_count(window.total_cache_read_tokens)}")
    console.print(f"Cache write tokens: {format_token_count(window.total_cache_creation_tokens)}")
    console.print(f"Messages: {window.message_count:,}  Sessions: {window.session_count:,}")
    console.print(f"Estimated cost: {format_currency(result.cost_estimate.window_cost_usd)}")

    if settings.usage_limit_tokens:
        percent = usage_percent(window_tokens, settings.usage_limit_tokens)
        style = LEVEL_STYLES[usage_level(percent)]
        filled = int(percent / 100 * 25)
        console.print(
            f"[{style}]{'━' * filled}[/][dim]{'━' * (25 - filled)}[/] "
            f"{format_token_count(window_tokens)} / "
            f"{format_token_count(settings.usage_limit_tokens)} ({percent:.0f}%)"
        )

    weekly = result.weekly
    console.print("\n[bold]This Week[/bold]")
    console.print("-" * 40)
    console.print(
        f"Messages: {weekly.message_count:,}  Sessions: {weekly.session_count:,}  "
        f"Cost: {format_currency(result.cost_estimate.weekly_cost_usd)}"
    )
    daily = Table(show_header=True, header_style="bold")
    daily.add_column("Day")
    daily.add_column("Input", justify="right")
    daily.add_column("Output", justify="right")
    daily.add_column("Msgs", justify="right")
    for day in weekly.daily_breakdown:
        daily.add_row(
            day.date.strftime("%a %b %d"),
            format_token_count(day.input_tokens),
            format_token_count(day.output_tokens),
            f"{day.message_count:,}",
        )
    console.print(daily)

    if result.models:
        models = Table(title="Models (window)", show_header=True, header_style="bold")
        models.add_column("Model", style="cyan")
        models.add_column("Input", justify="right")
        models.add_column("Output", justify="right")
        models.add_column("Msgs", justify="right")
        for model in result.models:
            models.add_row(
                model.display_name,
                format_token_count(model.input_tokens),
                format_token_count(model.output_tokens),
                f"{model.message_count:,}",
            )
        console.print(models)

    if result.cost_estimate.by_model:
        costs = Table(title="Cost by Model (week)", show_header=True, header_style="bold")
        costs.add_column("Model", style="cyan")
        costs.add_column("Cost", justify="right", style="green")
        for cost in result.cost_estimate.by_model:
            costs.add_row(cost.display_name, format_currency(cost.cost_usd))
        console.print(costs)

    console.print(f"\n[dim]Updated {format_relative_time(result.last_updated)}[/]")


if __name__ == "__main__":
    app()
