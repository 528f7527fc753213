"""Append-only activity log kept for the life of one tester."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from egressprobe.logging import bind_context


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class ActivityLogEntry:
    timestamp: datetime
    context: str
    stack_name: str
    message: str

    def render(self) -> str:
        stamp = self.timestamp.isoformat(timespec="seconds")
        return (
            f"{stamp}: Context: '{self.context}', "
            f"StackName: '{self.stack_name}', Message: '{self.message}'"
        )


class ActivityLog:
    """Ordered record of what a tester did.

    Entries are ordered by append order; timestamps are informational.
    Each entry is also emitted through structlog.
    """

    def __init__(self, context: str, clock: Callable[[], datetime] = _utcnow) -> None:
        self.context = context
        self._clock = clock
        self._entries: list[ActivityLogEntry] = []
        self._logger = bind_context(context=context)

    def append(self, message: str, stack_name: str = "") -> ActivityLogEntry:
        entry = ActivityLogEntry(
            timestamp=self._clock(),
            context=self.context,
            stack_name=stack_name,
            message=message,
        )
        self._entries.append(entry)
        self._logger.info("activity", stack_name=stack_name, message=message)
        return entry

    @property
    def entries(self) -> tuple[ActivityLogEntry, ...]:
        return tuple(self._entries)

    def messages(self) -> list[str]:
        return [entry.message for entry in self._entries]

    def render(self) -> str:
        """Return the whole log as one newline-joined report."""
        return "\n".join(entry.render() for entry in self._entries)

    def __len__(self) -> int:
        return len(self._entries)
