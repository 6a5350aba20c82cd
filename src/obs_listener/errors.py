"""Exception hierarchy for obs-listener.

Most of these are reported as log entries rather than raised to callers:
the controller, executor and history store catch them at their boundaries
so that no single failure takes the process down.
"""

from __future__ import annotations


class ObsListenerError(Exception):
    """Base class for all obs-listener errors."""


class ConfigValidationError(ObsListenerError):
    """Connection configuration failed validation."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__(", ".join(self.errors))


class ConfigurationLockedError(ObsListenerError):
    """Configuration was changed while a transport is live."""


class TransportError(ObsListenerError):
    """A transport connect, call or disconnect failed."""


class UnknownCommandError(ObsListenerError):
    """Command type is not in the dispatch table."""

    def __init__(self, command_type: str) -> None:
        self.command_type = command_type
        super().__init__(f"Unknown command type: {command_type}")


class PersistenceError(ObsListenerError):
    """Durable storage could not be read or written."""
