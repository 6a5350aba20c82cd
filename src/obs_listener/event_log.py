"""Event log - append-only record of everything that crosses the wire.

Every inbound event, outbound request, response and lifecycle change is
recorded as a LogEntry. Entries are immutable; the log only grows
until it is explicitly cleared. Each entry is also mirrored to the
standard logging system at a matching level.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .protocol.commands import Command

logger = logging.getLogger(__name__)

SERIALIZATION_FAILED = {"error": "Failed to serialize data"}


class LogKind(str, Enum):
    """Kinds of log entries."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    EVENT = "event"
    REQUEST = "request"
    RESPONSE = "response"


_LEVELS: dict[LogKind, int] = {
    LogKind.INFO: logging.INFO,
    LogKind.WARNING: logging.WARNING,
    LogKind.ERROR: logging.ERROR,
    LogKind.EVENT: logging.DEBUG,
    LogKind.REQUEST: logging.DEBUG,
    LogKind.RESPONSE: logging.DEBUG,
}


class LogEntry(BaseModel):
    """A single timestamped log record.

    `command` is present when the entry describes something that can be
    rerun, typically a state-changing server event.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: f"log_{uuid.uuid4().hex[:12]}")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    kind: LogKind
    message: str
    data: dict[str, Any] | None = None
    command: Command | None = None

    @property
    def is_rerunnable(self) -> bool:
        return self.command is not None


# Type for log listeners
LogListener = Callable[[LogEntry], None]


def snapshot_data(data: Any) -> dict[str, Any] | None:
    """Deep-copy arbitrary payload data into a JSON-safe mapping.

    Values that cannot be serialized degrade to a marker instead of
    raising, so logging never interrupts event processing.
    """
    if data is None:
        return None

    if isinstance(data, BaseException):
        return {"error": str(data), "type": type(data).__name__}

    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")

    if isinstance(data, (Mapping, list, tuple)):
        try:
            copied = json.loads(json.dumps(data))
        except (TypeError, ValueError):
            return dict(SERIALIZATION_FAILED)
        return copied if isinstance(copied, dict) else {"value": copied}

    return {"value": str(data)}


class EventLog:
    """Ordered, append-only log of entries.

    Entries are kept in insertion order. Listeners are notified
    synchronously after each append; a failing listener is logged and
    does not affect the log or other listeners.
    """

    def __init__(self) -> None:
        self._entries: list[LogEntry] = []
        self._listeners: list[LogListener] = []

    @property
    def entries(self) -> tuple[LogEntry, ...]:
        """Snapshot of all entries, oldest first."""
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def add(
        self,
        kind: LogKind | str,
        message: str,
        data: Any = None,
        command: Command | None = None,
    ) -> LogEntry:
        """Append a new entry.

        Args:
            kind: Entry kind
            message: Human-readable message
            data: Optional payload; deep-copied into a JSON-safe mapping
            command: Optional rerunnable command

        Returns:
            The created entry
        """
        entry = LogEntry(
            kind=LogKind(kind),
            message=message,
            data=snapshot_data(data),
            command=command.model_copy(deep=True) if command is not None else None,
        )
        self._entries.append(entry)

        logger.log(_LEVELS[entry.kind], f"[{entry.kind.value}] {entry.message}")

        for listener in list(self._listeners):
            try:
                listener(entry)
            except Exception:
                logger.exception("Error in log listener")

        return entry

    def info(self, message: str, data: Any = None) -> LogEntry:
        return self.add(LogKind.INFO, message, data)

    def warning(self, message: str, data: Any = None) -> LogEntry:
        return self.add(LogKind.WARNING, message, data)

    def error(self, message: str, data: Any = None) -> LogEntry:
        return self.add(LogKind.ERROR, message, data)

    def subscribe(self, listener: LogListener) -> Callable[[], None]:
        """Register a listener called with every new entry.

        Returns:
            Unsubscribe function
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def clear(self) -> None:
        """Drop all entries."""
        self._entries = []

    def filter(
        self,
        kind: LogKind | str | None = None,
        search: str | None = None,
    ) -> list[LogEntry]:
        """Select entries by kind and case-insensitive search term.

        The search term matches against the message and the serialized data.
        """
        wanted = LogKind(kind) if kind not in (None, "all") else None
        needle = search.lower() if search else None

        results = []
        for entry in self._entries:
            if wanted is not None and entry.kind != wanted:
                continue
            if needle:
                in_message = needle in entry.message.lower()
                in_data = entry.data is not None and needle in json.dumps(entry.data).lower()
                if not in_message and not in_data:
                    continue
            results.append(entry)
        return results

    def export(self) -> str:
        """Serialize all entries to a JSON array."""
        return json.dumps(
            [entry.model_dump(mode="json") for entry in self._entries],
            indent=2,
            ensure_ascii=False,
        )
