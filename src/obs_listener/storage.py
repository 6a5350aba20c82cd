"""Durable key-value storage backends.

Storage location: ~/.obs-listener/<key>.json by default.

The history store only needs three synchronous operations (get, set,
remove) on string values, so any backend satisfying KeyValueStorage
can be plugged in.
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Protocol, runtime_checkable

from .errors import PersistenceError

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_DIR = Path.home() / ".obs-listener"

_SAFE_KEY = re.compile(r"^[A-Za-z0-9._-]+$")


@runtime_checkable
class KeyValueStorage(Protocol):
    """Protocol for synchronous string storage.

    Any method may raise; callers are responsible for catching.
    """

    def get(self, key: str) -> str | None:
        """Return the stored value, or None if absent."""
        ...

    def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""
        ...

    def remove(self, key: str) -> None:
        """Delete a value. Removing an absent key is not an error."""
        ...


class MemoryKeyValueStorage:
    """In-process storage, used for tests and ephemeral runs."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._data


class FileKeyValueStorage:
    """
    Stores each key as a UTF-8 file in a directory.

    Contract:
    - Inputs: key (str, restricted to [A-Za-z0-9._-]), value (str)
    - Outputs: stored value or None
    - Side Effects: Filesystem writes under storage_dir
    - Errors: PersistenceError for invalid keys or disk issues
    """

    def __init__(self, storage_dir: Path | None = None):
        """Initialize with base directory.

        Args:
            storage_dir: Directory holding one file per key.
                        Defaults to ~/.obs-listener/
        """
        self.storage_dir = storage_dir if storage_dir is not None else DEFAULT_STORAGE_DIR

    def _path(self, key: str) -> Path:
        if not key or not _SAFE_KEY.match(key) or key in (".", ".."):
            raise PersistenceError(f"Invalid storage key: {key!r}")
        return self.storage_dir / f"{key}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise PersistenceError(f"Failed to read {path}: {e}") from e

    def set(self, key: str, value: str) -> None:
        """Write atomically via a temp file in the same directory."""
        path = self._path(key)
        try:
            self.storage_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.storage_dir, prefix=f".{key}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(value)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise PersistenceError(f"Failed to write {path}: {e}") from e
        logger.debug(f"Stored {key} ({len(value)} chars)")

    def remove(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(f"Failed to remove {path}: {e}") from e
