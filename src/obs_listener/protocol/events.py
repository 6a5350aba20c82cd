"""Event vocabulary pushed by the OBS control server.

The set of events the listener subscribes to is closed: anything the
transport delivers outside of it is treated as unrecognized and logged
as a plain event.
"""

from __future__ import annotations

from enum import Enum


class EventName(str, Enum):
    """All server events the listener subscribes to."""

    # Scenes
    CURRENT_PROGRAM_SCENE_CHANGED = "CurrentProgramSceneChanged"
    SCENE_CREATED = "SceneCreated"
    SCENE_REMOVED = "SceneRemoved"

    # Scene items
    SCENE_ITEM_ENABLE_STATE_CHANGED = "SceneItemEnableStateChanged"
    SCENE_ITEM_CREATED = "SceneItemCreated"
    SCENE_ITEM_REMOVED = "SceneItemRemoved"

    # Outputs
    STREAM_STATE_CHANGED = "StreamStateChanged"
    RECORD_STATE_CHANGED = "RecordStateChanged"
    VIRTUALCAM_STATE_CHANGED = "VirtualcamStateChanged"

    # Inputs
    INPUT_CREATED = "InputCreated"
    INPUT_REMOVED = "InputRemoved"
    INPUT_MUTE_STATE_CHANGED = "InputMuteStateChanged"
    INPUT_VOLUME_CHANGED = "InputVolumeChanged"

    # Media
    MEDIA_INPUT_PLAYBACK_STARTED = "MediaInputPlaybackStarted"
    MEDIA_INPUT_PLAYBACK_ENDED = "MediaInputPlaybackEnded"

    @classmethod
    def parse(cls, name: str) -> EventName | None:
        """Return the matching EventName, or None if unrecognized."""
        try:
            return cls(name)
        except ValueError:
            return None


class ConnectionEvent(str, Enum):
    """Lifecycle notifications emitted by the transport itself."""

    CLOSED = "ConnectionClosed"
    ERROR = "ConnectionError"
