"""Orchestrator - the surface exposed to user interfaces.

Composes the event log, command history, connection controller and
executor into one object. Server events flow through the translator
into the log; reruns flow through the executor into history.

Usage:
    async with Orchestrator(settings, transport_factory) as obs:
        await obs.connect()
        for item in obs.get_frequent_commands(8):
            await obs.execute_command(item.command)
"""

from __future__ import annotations

import logging
from typing import Any

from .config import Settings
from .connection import ConnectionController, ConnectionState
from .event_log import EventLog, LogEntry, LogKind
from .executor import CommandExecutor
from .history import CommandHistoryItem, CommandHistoryStore
from .protocol.commands import Command
from .storage import FileKeyValueStorage, KeyValueStorage
from .translator import describe_event, translate
from .transport import TransportFactory

logger = logging.getLogger(__name__)


class Orchestrator:
    """Owns every component for one process run (a session)."""

    def __init__(
        self,
        settings: Settings,
        transport_factory: TransportFactory,
        *,
        storage: KeyValueStorage | None = None,
        event_log: EventLog | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            settings: Startup settings (read once)
            transport_factory: Creates transports for the controller
            storage: History storage (defaults to files under settings.storage_dir)
            event_log: Shared log (a new one is created if omitted)
        """
        self.settings = settings
        self.event_log = event_log or EventLog()
        self.history = CommandHistoryStore(
            storage if storage is not None else FileKeyValueStorage(settings.storage_dir)
        )
        self.connection = ConnectionController(
            transport_factory,
            self.event_log,
            settings.connection,
            auto_connect=settings.auto_connect,
            settle_delay=settings.settle_delay,
            event_handler=self._on_server_event,
        )
        self.executor = CommandExecutor(self.connection, self.event_log, self.history)
        self._started = False

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self, *, auto_connect: bool = True) -> None:
        """Load history and schedule the automatic connection attempt."""
        if self._started:
            return
        self._started = True
        self.history.load()
        if auto_connect:
            self.connection.schedule_auto_connect()
        logger.info(f"Session started with {len(self.history)} known command(s)")

    async def close(self) -> None:
        """Cancel pending work and drop the connection."""
        await self.connection.close()

    async def __aenter__(self) -> Orchestrator:
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    # =========================================================================
    # Server events
    # =========================================================================

    def _on_server_event(self, event_name: str, payload: dict[str, Any]) -> LogEntry:
        command = translate(event_name, payload)
        return self.event_log.add(
            LogKind.EVENT,
            describe_event(event_name, payload),
            payload,
            command,
        )

    # =========================================================================
    # Read-only state
    # =========================================================================

    @property
    def connection_state(self) -> ConnectionState:
        return self.connection.state

    @property
    def is_connected(self) -> bool:
        return self.connection.is_connected

    @property
    def log_entries(self) -> tuple[LogEntry, ...]:
        return self.event_log.entries

    @property
    def validation_errors(self) -> list[str]:
        return self.connection.validation_errors

    # =========================================================================
    # Queries
    # =========================================================================

    def get_frequent_commands(self, limit: int = 10) -> list[CommandHistoryItem]:
        return self.history.get_frequent(limit)

    def get_recent_commands(self, limit: int = 10) -> list[CommandHistoryItem]:
        return self.history.get_recent(limit)

    def total_lifetime_executions(self) -> int:
        return self.history.total_executions()

    def session_executions(self) -> int:
        return self.history.session_executions()

    def filter_logs(
        self, kind: LogKind | str | None = None, search: str | None = None
    ) -> list[LogEntry]:
        """Entries matching a kind ("all" for any) and a search term."""
        return self.event_log.filter(kind, search)

    # =========================================================================
    # Actions
    # =========================================================================

    async def connect(self) -> bool:
        return await self.connection.connect()

    async def disconnect(self) -> None:
        await self.connection.disconnect()

    async def execute_command(self, command: Command) -> bool:
        """Run a command (manual or replayed from a log entry)."""
        return await self.executor.execute(command)

    async def rerun(self, entry: LogEntry) -> bool:
        """Replay the command attached to a log entry."""
        if entry.command is None:
            self.event_log.warning(f"Log entry has no rerunnable command: {entry.message}")
            return False
        return await self.executor.execute(entry.command)

    def clear_history(self) -> None:
        self.history.clear_all()

    def reset_session_counts(self) -> None:
        self.history.clear_session_counts()

    def clear_logs(self) -> None:
        self.event_log.clear()

    def export_logs(self) -> str:
        """Serialized snapshot of the log (JSON array)."""
        return self.event_log.export()
