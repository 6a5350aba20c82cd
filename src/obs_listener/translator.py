"""Event translator.

Maps a server-pushed event onto a re-executable Command. Only
state-changing events produce a command; the command carries just the
fields needed to replay the action. The mapping is pure: the same
event name and payload always yield an equal Command.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .protocol.commands import Command, CommandType
from .protocol.events import EventName


def translate(event_name: str, payload: Mapping[str, Any] | None) -> Command | None:
    """Derive a replay command from an event.

    Args:
        event_name: Name of the server event
        payload: Event data as delivered by the transport

    Returns:
        The normalized Command, or None for events that are not rerunnable
    """
    data = payload or {}

    match EventName.parse(event_name):
        case EventName.CURRENT_PROGRAM_SCENE_CHANGED:
            scene_name = data.get("sceneName")
            return Command.create(
                CommandType.SET_CURRENT_PROGRAM_SCENE,
                {"sceneName": scene_name},
                f'Switch to scene "{scene_name}"',
            )

        case EventName.SCENE_ITEM_ENABLE_STATE_CHANGED:
            scene_name = data.get("sceneName")
            enabled = data.get("sceneItemEnabled")
            return Command.create(
                CommandType.SET_SCENE_ITEM_ENABLED,
                {
                    "sceneName": scene_name,
                    "sceneItemId": data.get("sceneItemId"),
                    "sceneItemEnabled": enabled,
                },
                f'{"Show" if enabled else "Hide"} scene item in "{scene_name}"',
            )

        case EventName.STREAM_STATE_CHANGED:
            if data.get("outputActive"):
                return Command.create(CommandType.START_STREAM, {}, "Start streaming")
            return Command.create(CommandType.STOP_STREAM, {}, "Stop streaming")

        case EventName.RECORD_STATE_CHANGED:
            if data.get("outputActive"):
                return Command.create(CommandType.START_RECORD, {}, "Start recording")
            return Command.create(CommandType.STOP_RECORD, {}, "Stop recording")

        case EventName.VIRTUALCAM_STATE_CHANGED:
            if data.get("outputActive"):
                return Command.create(
                    CommandType.START_VIRTUALCAM, {}, "Start virtual camera"
                )
            return Command.create(CommandType.STOP_VIRTUALCAM, {}, "Stop virtual camera")

        case EventName.INPUT_MUTE_STATE_CHANGED:
            input_name = data.get("inputName")
            muted = data.get("inputMuted")
            return Command.create(
                CommandType.SET_INPUT_MUTE,
                {"inputName": input_name, "inputMuted": muted},
                f'{"Mute" if muted else "Unmute"} "{input_name}"',
            )

        case _:
            return None


def describe_event(event_name: str, payload: Mapping[str, Any] | None) -> str:
    """Build the human-readable log message for an event."""
    data = payload or {}

    match EventName.parse(event_name):
        case EventName.CURRENT_PROGRAM_SCENE_CHANGED:
            return f"Scene changed to: {data.get('sceneName')}"
        case EventName.SCENE_CREATED:
            return f"Scene created: {data.get('sceneName')}"
        case EventName.SCENE_REMOVED:
            return f"Scene removed: {data.get('sceneName')}"
        case EventName.SCENE_ITEM_ENABLE_STATE_CHANGED:
            action = "shown" if data.get("sceneItemEnabled") else "hidden"
            return f"Scene item {action} in {data.get('sceneName')}"
        case EventName.SCENE_ITEM_CREATED:
            return f"Scene item created in {data.get('sceneName')}"
        case EventName.SCENE_ITEM_REMOVED:
            return f"Scene item removed from {data.get('sceneName')}"
        case EventName.STREAM_STATE_CHANGED:
            return f"Stream {_output_status(data)} ({data.get('outputState')})"
        case EventName.RECORD_STATE_CHANGED:
            return f"Recording {_output_status(data)} ({data.get('outputState')})"
        case EventName.VIRTUALCAM_STATE_CHANGED:
            return f"Virtual camera {_output_status(data)} ({data.get('outputState')})"
        case EventName.INPUT_CREATED:
            return f"Input created: {data.get('inputName')} ({data.get('inputKind')})"
        case EventName.INPUT_REMOVED:
            return f"Input removed: {data.get('inputName')}"
        case EventName.INPUT_MUTE_STATE_CHANGED:
            status = "muted" if data.get("inputMuted") else "unmuted"
            return f"{data.get('inputName')} {status}"
        case EventName.INPUT_VOLUME_CHANGED:
            return _describe_volume(data)
        case EventName.MEDIA_INPUT_PLAYBACK_STARTED:
            return f"Media playback started: {data.get('inputName')}"
        case EventName.MEDIA_INPUT_PLAYBACK_ENDED:
            return f"Media playback ended: {data.get('inputName')}"
        case _:
            return f"Event: {event_name}"


def _output_status(data: Mapping[str, Any]) -> str:
    return "started" if data.get("outputActive") else "stopped"


def _describe_volume(data: Mapping[str, Any]) -> str:
    name = data.get("inputName")
    mul = data.get("inputVolumeMul")
    db = data.get("inputVolumeDb")
    if not isinstance(mul, (int, float)) or not isinstance(db, (int, float)):
        return f"{name} volume changed"
    return f"{name} volume: {round(mul * 100)}% ({db:.1f} dB)"
