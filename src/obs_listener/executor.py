"""Command executor.

Dispatches Commands over the live transport and records the outcome.

Dispatch is a closed table: the commands the translator produces plus
the manual-only kinds (CreateScene, RemoveScene, SetInputVolume).
Anything else is rejected with a warning before any I/O happens.
"""

from __future__ import annotations

import logging
from typing import Any

from .connection import ConnectionController
from .errors import UnknownCommandError
from .event_log import EventLog, LogKind
from .history import CommandHistoryStore
from .protocol.commands import Command, CommandType
from .transport import Transport

logger = logging.getLogger(__name__)

# Closed dispatch table: command kind -> whether its request carries params
DISPATCH_TABLE: dict[CommandType, bool] = {
    CommandType.SET_CURRENT_PROGRAM_SCENE: True,
    CommandType.SET_SCENE_ITEM_ENABLED: True,
    CommandType.START_STREAM: False,
    CommandType.STOP_STREAM: False,
    CommandType.START_RECORD: False,
    CommandType.STOP_RECORD: False,
    CommandType.START_VIRTUALCAM: False,
    CommandType.STOP_VIRTUALCAM: False,
    CommandType.SET_INPUT_MUTE: True,
    CommandType.SET_INPUT_VOLUME: True,
    CommandType.CREATE_SCENE: True,
    CommandType.REMOVE_SCENE: True,
}


def success_message(command_type: CommandType, params: dict[str, Any]) -> str:
    """Human-readable confirmation for a completed command."""
    match command_type:
        case CommandType.SET_CURRENT_PROGRAM_SCENE:
            return f"Scene changed to: {params.get('sceneName')}"
        case CommandType.SET_SCENE_ITEM_ENABLED:
            action = "shown" if params.get("sceneItemEnabled") else "hidden"
            return f"Scene item {action} in {params.get('sceneName')}"
        case CommandType.START_STREAM:
            return "Stream started"
        case CommandType.STOP_STREAM:
            return "Stream stopped"
        case CommandType.START_RECORD:
            return "Recording started"
        case CommandType.STOP_RECORD:
            return "Recording stopped"
        case CommandType.START_VIRTUALCAM:
            return "Virtual camera started"
        case CommandType.STOP_VIRTUALCAM:
            return "Virtual camera stopped"
        case CommandType.SET_INPUT_MUTE:
            action = "muted" if params.get("inputMuted") else "unmuted"
            return f"{params.get('inputName')} {action}"
        case CommandType.SET_INPUT_VOLUME:
            return f"Volume set for {params.get('inputName')}"
        case CommandType.CREATE_SCENE:
            return f"Scene created: {params.get('sceneName')}"
        case CommandType.REMOVE_SCENE:
            return f"Scene removed: {params.get('sceneName')}"


def resolve_command_type(command: Command) -> CommandType:
    """Look up a command's dispatchable type.

    Raises:
        UnknownCommandError: If the type is not in the dispatch table
    """
    command_type = command.command_type
    if command_type is None or command_type not in DISPATCH_TABLE:
        raise UnknownCommandError(command.type)
    return command_type


class CommandExecutor:
    """Runs commands against the connected control server.

    Every execute() that reaches the transport records exactly one
    history update, whether the request succeeded or failed. Rejected
    commands (not connected, unknown type) leave history untouched.
    """

    def __init__(
        self,
        connection: ConnectionController,
        event_log: EventLog,
        history: CommandHistoryStore,
    ) -> None:
        self._connection = connection
        self._log = event_log
        self._history = history

    async def execute(self, command: Command, transport: Transport | None = None) -> bool:
        """Execute a command.

        Args:
            command: The command to run
            transport: Open transport to use instead of the controller's

        Returns:
            True if the server accepted the request
        """
        if transport is None and self._connection.is_connected:
            transport = self._connection.transport
        if transport is None:
            self._log.error("Cannot execute command: not connected to OBS")
            return False

        try:
            command_type = resolve_command_type(command)
        except UnknownCommandError as e:
            self._log.warning(str(e))
            return False

        params = dict(command.params) if DISPATCH_TABLE[command_type] else {}
        self._log.add(LogKind.REQUEST, f"Executing command: {command.description}", params)

        try:
            result = await transport.call(command_type.value, params or None)
        except Exception as e:
            logger.debug(f"{command_type.value} failed: {e}")
            self._log.error(f"Failed to execute command: {command.description}", e)
            self._history.add_execution(command)
            return False

        self._log.info(success_message(command_type, command.params), result)
        self._history.add_execution(command)
        return True
