"""Command definitions for the replay layer.

Commands are re-executable requests against the OBS control server.
They are produced by translating inbound events or built manually, and
every command has a canonical identity used to deduplicate history.
"""

from __future__ import annotations

import copy
import json
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CommandType(str, Enum):
    """All supported command types.

    Values double as the obs-websocket request names.
    """

    # Scenes
    SET_CURRENT_PROGRAM_SCENE = "SetCurrentProgramScene"
    CREATE_SCENE = "CreateScene"
    REMOVE_SCENE = "RemoveScene"

    # Scene items
    SET_SCENE_ITEM_ENABLED = "SetSceneItemEnabled"

    # Outputs
    START_STREAM = "StartStream"
    STOP_STREAM = "StopStream"
    START_RECORD = "StartRecord"
    STOP_RECORD = "StopRecord"
    START_VIRTUALCAM = "StartVirtualCam"
    STOP_VIRTUALCAM = "StopVirtualCam"

    # Inputs
    SET_INPUT_MUTE = "SetInputMute"
    SET_INPUT_VOLUME = "SetInputVolume"


def canonical_params(params: dict[str, Any]) -> str:
    """Encode params deterministically, independent of key insertion order."""
    return json.dumps(params, sort_keys=True, separators=(",", ":"))


class Command(BaseModel):
    """A re-executable request.

    Example:
        {
            "type": "SetCurrentProgramScene",
            "params": {"sceneName": "Intro"},
            "description": "Switch to scene \\"Intro\\""
        }

    `type` is kept as a plain string so commands read back from storage
    with a kind this build no longer knows can still be loaded; the
    executor rejects them at dispatch time.
    """

    model_config = ConfigDict(frozen=True)

    type: str
    params: dict[str, Any] = Field(default_factory=dict)
    description: str = ""

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value: Any) -> Any:
        return value.value if isinstance(value, CommandType) else value

    @field_validator("params", mode="before")
    @classmethod
    def _copy_params(cls, value: Any) -> Any:
        if value is None:
            return {}
        try:
            json.dumps(value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"params must be JSON-serializable: {e}") from e
        return copy.deepcopy(value)

    @property
    def identity(self) -> str:
        """Canonical identity: type plus key-sorted params."""
        return f"{self.type}-{canonical_params(self.params)}"

    @property
    def command_type(self) -> CommandType | None:
        """The known CommandType, or None for foreign types."""
        try:
            return CommandType(self.type)
        except ValueError:
            return None

    def get_param(self, key: str, default: Any = None) -> Any:
        """Get a parameter with optional default."""
        return self.params.get(key, default)

    @classmethod
    def create(
        cls,
        command_type: str | CommandType,
        params: dict[str, Any] | None = None,
        description: str = "",
    ) -> Command:
        """Factory method for creating commands."""
        return cls(type=command_type, params=params or {}, description=description)

    # Convenience factories for manual commands
    @classmethod
    def set_current_program_scene(cls, scene_name: str) -> Command:
        """Create a scene switch command."""
        return cls.create(
            CommandType.SET_CURRENT_PROGRAM_SCENE,
            {"sceneName": scene_name},
            f'Switch to scene "{scene_name}"',
        )

    @classmethod
    def create_scene(cls, scene_name: str) -> Command:
        """Create a CreateScene command."""
        return cls.create(
            CommandType.CREATE_SCENE,
            {"sceneName": scene_name},
            f'Create scene "{scene_name}"',
        )

    @classmethod
    def remove_scene(cls, scene_name: str) -> Command:
        """Create a RemoveScene command."""
        return cls.create(
            CommandType.REMOVE_SCENE,
            {"sceneName": scene_name},
            f'Remove scene "{scene_name}"',
        )

    @classmethod
    def set_input_volume(
        cls,
        input_name: str,
        volume_db: float | None = None,
        volume_mul: float | None = None,
    ) -> Command:
        """Create a SetInputVolume command.

        Exactly one of volume_db / volume_mul should be given.
        """
        params: dict[str, Any] = {"inputName": input_name}
        if volume_db is not None:
            params["inputVolumeDb"] = volume_db
        if volume_mul is not None:
            params["inputVolumeMul"] = volume_mul
        return cls.create(
            CommandType.SET_INPUT_VOLUME,
            params,
            f'Set volume of "{input_name}"',
        )
