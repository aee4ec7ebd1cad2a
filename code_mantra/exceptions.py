"""Code Mantra — Exception hierarchy.

All exceptions raised by the engine inherit from MantraError so that callers
can catch the full family with a single except clause when needed.

Hierarchy:
    MantraError
    ├── ConfigurationError
    ├── RuleValidationError
    ├── PatternCompileError
    ├── NotificationError
    └── SchedulerError
"""

from __future__ import annotations

from typing import Any


class MantraError(Exception):
    """Base exception for all Code Mantra errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = context or {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context})"


class ConfigurationError(MantraError):
    """A configuration file could not be read or parsed."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(
            f"Cannot load configuration from '{path}': {reason}",
            context={"path": path, "reason": reason},
        )
        self.path = path


class RuleValidationError(MantraError):
    """A rule entry failed validation (unknown trigger, bad range, empty message)."""

    def __init__(
        self,
        index: int | None,
        errors: list[dict[str, Any]] | None = None,
    ) -> None:
        where = f"Rule #{index}" if index is not None else "Rule"
        super().__init__(
            f"{where} is malformed",
            context={"index": index, "validation_errors": errors or []},
        )
        self.index = index
        self.errors = errors or []

    def summary(self) -> str:
        """One-line description of the first validation error."""
        if not self.errors:
            return self.message
        first = self.errors[0]
        loc = ".".join(str(part) for part in first.get("loc", ()))
        msg = first.get("msg", "invalid")
        return f"{loc}: {msg}" if loc else msg


class PatternCompileError(MantraError):
    """A file glob could not be translated into a matcher."""

    def __init__(self, pattern: str, reason: str) -> None:
        super().__init__(
            f"Invalid file pattern '{pattern}': {reason}",
            context={"pattern": pattern, "reason": reason},
        )
        self.pattern = pattern


class NotificationError(MantraError):
    """The presentation collaborator rejected a notification."""

    def __init__(self, message_text: str, reason: str) -> None:
        super().__init__(
            f"Notification could not be shown: {reason}",
            context={"notification": message_text, "reason": reason},
        )


class SchedulerError(MantraError):
    """A delayed callback could not be scheduled."""
