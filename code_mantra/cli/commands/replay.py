"""CLI — Replay a recorded host event log under virtual time."""

from __future__ import annotations

import random
from pathlib import Path

import typer
from rich.console import Console

from code_mantra.config import Settings
from code_mantra.exceptions import MantraError
from code_mantra.logging import configure_logging, set_log_clock

console = Console()


def replay_command(
    events_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON-lines event log."),
    config: Path | None = typer.Option(None, "--config", "-c", help="YAML configuration file."),
    seed: int | None = typer.Option(None, "--seed", help="Seed for rule selection."),
    until: float | None = typer.Option(
        None, "--until", help="Virtual time (seconds) to run to. Default: last event plus settle time."
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Override the configured log level."),
) -> None:
    """Replay EVENTS_FILE through the engine and print every reminder it fires."""
    from code_mantra.daemon import MantraDaemon
    from code_mantra.notify import ConsoleSink
    from code_mantra.replay import load_events, replay
    from code_mantra.scheduling import ManualScheduler

    try:
        settings = Settings.load(config_file=config)
        events = load_events(events_file)
    except MantraError as exc:
        console.print(f"[red]Error: {exc.message}[/red]")
        raise typer.Exit(1)

    configure_logging(
        level=log_level or settings.logging.level,
        format=settings.logging.format,
        log_file=str(settings.logging.file) if settings.logging.file else None,
    )

    scheduler = ManualScheduler()
    sink = ConsoleSink(console, clock=scheduler.now)
    daemon = MantraDaemon(
        settings_provider=lambda: settings,
        sink=sink,
        scheduler=scheduler,
        rng=random.Random(seed),
    )
    settle = settings.triggers.on_edit.delay_ms / 1000.0 + 1.0
    set_log_clock(scheduler.now)
    try:
        daemon.activate()
        end = replay(daemon, scheduler, events, until=until, settle_seconds=settle)
        daemon.deactivate()
    finally:
        set_log_clock(None)

    console.print(
        f"[bold]{len(events)}[/bold] events replayed over [bold]{end:.1f}s[/bold] virtual time; "
        f"[green]{daemon.notifier.sent}[/green] reminders shown"
        + (f", [red]{daemon.notifier.failed} failed[/red]" if daemon.notifier.failed else "")
    )
