"""OBS Listener - event log, replay and command history for OBS Studio.

Mirrors every server event and request into an append-only log, turns
state-changing events into re-executable commands, and keeps a
usage-ranked history of everything that was run.
"""

from .config import ConnectionConfig, Settings, load_settings
from .connection import ConnectionController, ConnectionState
from .event_log import EventLog, LogEntry, LogKind
from .executor import CommandExecutor
from .history import CommandHistoryItem, CommandHistoryStore
from .orchestrator import Orchestrator
from .protocol import Command, CommandType, EventName
from .translator import describe_event, translate
from .transport import MockTransport, Transport

__version__ = "0.1.0"

__all__ = [
    "Command",
    "CommandType",
    "EventName",
    "ConnectionConfig",
    "Settings",
    "load_settings",
    "ConnectionController",
    "ConnectionState",
    "EventLog",
    "LogEntry",
    "LogKind",
    "CommandExecutor",
    "CommandHistoryItem",
    "CommandHistoryStore",
    "Orchestrator",
    "translate",
    "describe_event",
    "Transport",
    "MockTransport",
]
