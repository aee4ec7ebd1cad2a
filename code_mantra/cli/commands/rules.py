"""CLI — Rule validation commands."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from code_mantra.config import Settings
from code_mantra.exceptions import ConfigurationError, RuleValidationError
from code_mantra.rules.models import TriggerKind, validate_rule

app = typer.Typer(help="Check configured reminder rules.")
console = Console()


@app.command("validate")
def validate_rules(
    config: Path | None = typer.Option(None, "--config", "-c", help="YAML configuration file."),
) -> None:
    """Validate every configured rule.  Exits 1 if any rule would be skipped."""
    try:
        settings = Settings.load(config_file=config)
    except ConfigurationError as exc:
        console.print(f"[red]Error: {exc.message}[/red]")
        raise typer.Exit(1)

    table = Table(title="Reminder Rules")
    table.add_column("#", justify="right")
    table.add_column("Trigger", style="cyan")
    table.add_column("Pattern / cadence")
    table.add_column("Enabled")
    table.add_column("Status")

    invalid = 0
    for index, raw in enumerate(settings.rules):
        try:
            rule = validate_rule(raw, index)
        except RuleValidationError as exc:
            invalid += 1
            trigger = str(raw.get("trigger", "?")) if isinstance(raw, dict) else "?"
            table.add_row(str(index), trigger, "-", "-", f"[red]skipped: {exc.summary()}[/red]")
            continue
        if rule.trigger == TriggerKind.ON_TIMER:
            detail = f"every {rule.duration_minutes} min"
        elif rule.trigger == TriggerKind.ON_IDLE:
            detail = f"after {rule.idle_duration} min idle"
        else:
            detail = rule.file_pattern or "all files"
        table.add_row(
            str(index),
            rule.trigger.value,
            detail,
            "yes" if rule.enabled else "[dim]no[/dim]",
            "[green]ok[/green]",
        )

    console.print(table)
    if invalid:
        console.print(f"[red]{invalid} rule(s) will be skipped.[/red]")
        raise typer.Exit(1)
