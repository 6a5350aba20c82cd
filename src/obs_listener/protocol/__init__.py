"""Command and event vocabulary.

Key concepts:
- Commands: re-executable requests with a canonical identity
- Events: server-pushed notifications from a closed set of names
- Connection events: lifecycle notifications raised by the transport
"""

from .commands import Command, CommandType, canonical_params
from .events import ConnectionEvent, EventName

__all__ = [
    "Command",
    "CommandType",
    "canonical_params",
    "ConnectionEvent",
    "EventName",
]
