"""Event-log replay — drive a daemon from a recorded host event stream.

A log is JSON lines, one host event per line, stamped with the virtual time
(seconds since the start of the log) at which the host delivered it::

    {"at": 0.0, "type": "open", "path": "/src/a.ts", "language": "typescript", "lineCount": 250}
    {"at": 4.2, "type": "change", "path": "/src/a.ts", "changes": [[10, 170, 0]], "lineCount": 90}
    {"at": 5.0, "type": "save", "path": "/src/a.ts"}

Replays run on a :class:`ManualScheduler`, so a log covering hours of
editing (timers, idle episodes) replays instantly and deterministically.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from code_mantra.daemon import MantraDaemon
from code_mantra.exceptions import MantraError
from code_mantra.logging import get_logger
from code_mantra.scheduling import ManualScheduler

log = get_logger(__name__)

EventType = Literal["open", "close", "save", "change", "focus", "create", "delete"]


class HostEvent(BaseModel):
    """One recorded host event."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    at: float = Field(ge=0.0)
    type: EventType
    path: str | None = None
    language: str | None = None
    line_count: int | None = Field(default=None, ge=0)
    changes: list[tuple[int, int, int]] = Field(default_factory=list)


class EventLogError(MantraError):
    """A line of an event log could not be parsed."""

    def __init__(self, line_no: int, reason: str) -> None:
        super().__init__(
            f"Invalid event on line {line_no}: {reason}",
            context={"line": line_no, "reason": reason},
        )
        self.line_no = line_no


def read_events(lines: Iterable[str]) -> list[HostEvent]:
    """Parse JSON lines; blank lines and ``#`` comments are skipped.

    Events are returned ordered by ``at``; equal timestamps keep file order.

    Raises:
        EventLogError: on malformed JSON or an invalid event.
    """
    events: list[HostEvent] = []
    for line_no, raw in enumerate(lines, start=1):
        text = raw.strip()
        if not text or text.startswith("#"):
            continue
        try:
            event = HostEvent.model_validate(json.loads(text))
        except json.JSONDecodeError as exc:
            raise EventLogError(line_no, exc.msg) from exc
        except ValidationError as exc:
            first = exc.errors(include_url=False)[0]
            loc = ".".join(str(p) for p in first["loc"])
            raise EventLogError(line_no, f"{loc}: {first['msg']}" if loc else first["msg"]) from exc
        if event.type != "focus" and event.path is None:
            raise EventLogError(line_no, f"'{event.type}' events need a path")
        events.append(event)
    return sorted(events, key=lambda e: e.at)


def load_events(path: Path) -> list[HostEvent]:
    with path.open(encoding="utf-8") as f:
        return read_events(f)


def dispatch(daemon: MantraDaemon, event: HostEvent) -> None:
    """Deliver one host event to the matching daemon entry point."""
    path = event.path
    if event.type == "open":
        daemon.on_document_open(path, event.language, event.line_count)  # type: ignore[arg-type]
    elif event.type == "close":
        daemon.on_document_close(path)  # type: ignore[arg-type]
    elif event.type == "save":
        daemon.on_document_save(path, event.language)  # type: ignore[arg-type]
    elif event.type == "change":
        daemon.on_document_change(path, event.changes, event.line_count, event.language)  # type: ignore[arg-type]
    elif event.type == "focus":
        daemon.on_editor_focus(path, event.language)
    elif event.type == "create":
        daemon.on_file_create(path)  # type: ignore[arg-type]
    elif event.type == "delete":
        daemon.on_file_delete(path)  # type: ignore[arg-type]


def replay(
    daemon: MantraDaemon,
    scheduler: ManualScheduler,
    events: Iterable[HostEvent],
    until: float | None = None,
    settle_seconds: float = 0.0,
) -> float:
    """Replay *events* in order, advancing virtual time before each one.

    After the last event the clock advances to *until* when given, otherwise
    by *settle_seconds* so pending debounces get to run.  Returns the final
    virtual time.
    """
    last = scheduler.now()
    for event in events:
        if until is not None and event.at > until:
            break
        scheduler.advance_to(event.at)
        log.debug("replay_event", at=event.at, type=event.type, path=event.path)
        dispatch(daemon, event)
        last = event.at
    scheduler.advance_to(until if until is not None else last + settle_seconds)
    return scheduler.now()
