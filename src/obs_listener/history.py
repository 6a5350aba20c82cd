"""
Command history persistence.

Keeps a usage-ranked catalog of every executed command, keyed by the
command's canonical identity so logically identical commands share a
single item. The full catalog is written to storage after every
mutation as one JSON array under STORAGE_KEY.

Lifetime counters (use_count) accumulate across runs; session counters
(session_count) are reset whenever the store is loaded.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError

from .protocol.commands import Command
from .storage import KeyValueStorage

logger = logging.getLogger(__name__)

STORAGE_KEY = "obs-listener-command-history"


class CommandHistoryItem(BaseModel):
    """Usage record for one canonical command."""

    model_config = ConfigDict(frozen=True)

    id: str
    command: Command
    first_used: datetime
    last_used: datetime
    use_count: int = 1
    session_count: int = 1

    @property
    def description(self) -> str:
        return self.command.description


_ITEMS_ADAPTER = TypeAdapter(list[CommandHistoryItem])


def _utcnow() -> datetime:
    return datetime.now(UTC)


class CommandHistoryStore:
    """
    Usage-ranked, persisted command catalog.

    Contract:
    - Inputs: Command objects
    - Outputs: CommandHistoryItem snapshots, ordered by frequency or recency
    - Side Effects: storage.set/remove on every mutation
    - Errors: none raised; storage failures are logged and in-memory
      state stays authoritative
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize with a storage backend.

        Args:
            storage: Durable key-value storage
            clock: Source of "now" (defaults to UTC wall clock)
        """
        self._storage = storage
        self._clock = clock or _utcnow
        self._items: dict[str, CommandHistoryItem] = {}

    # =========================================================================
    # Loading and persistence
    # =========================================================================

    def load(self) -> None:
        """Load persisted items and start a new session.

        Missing or corrupt storage yields an empty store.
        """
        self._items = {}

        try:
            raw = self._storage.get(STORAGE_KEY)
        except Exception as e:
            logger.warning(f"Failed to read command history: {e}")
            return

        if not raw:
            return

        try:
            items = _ITEMS_ADAPTER.validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding corrupt command history: {e.error_count()} error(s)")
            return

        for item in items:
            # Re-key by the current canonical identity; older files may
            # hold several spellings of the same command.
            identity = item.command.identity
            existing = self._items.get(identity)
            if existing is None:
                self._items[identity] = item.model_copy(
                    update={"id": identity, "session_count": 0}
                )
            else:
                self._items[identity] = existing.model_copy(
                    update={
                        "use_count": existing.use_count + item.use_count,
                        "first_used": min(existing.first_used, item.first_used),
                        "last_used": max(existing.last_used, item.last_used),
                    }
                )

        logger.debug(f"Loaded {len(self._items)} command history item(s)")

    def _persist(self) -> None:
        try:
            payload = json.dumps(
                [item.model_dump(mode="json") for item in self._items.values()],
                ensure_ascii=False,
            )
            self._storage.set(STORAGE_KEY, payload)
        except Exception as e:
            logger.warning(f"Failed to save command history: {e}")

    # =========================================================================
    # Mutations
    # =========================================================================

    def add_execution(self, command: Command) -> CommandHistoryItem:
        """Record one execution of a command.

        Args:
            command: The executed command

        Returns:
            The created or updated item
        """
        # Detach from the caller's params dict
        command = command.model_copy(deep=True)
        identity = command.identity
        now = self._clock()

        existing = self._items.get(identity)
        if existing is None:
            item = CommandHistoryItem(
                id=identity,
                command=command,
                first_used=now,
                last_used=now,
                use_count=1,
                session_count=1,
            )
        else:
            item = existing.model_copy(
                update={
                    "last_used": now,
                    "use_count": existing.use_count + 1,
                    "session_count": existing.session_count + 1,
                }
            )

        self._items[identity] = item
        self._persist()
        return item

    def clear_all(self) -> None:
        """Remove every item and erase persisted state."""
        self._items = {}
        try:
            self._storage.remove(STORAGE_KEY)
        except Exception as e:
            logger.warning(f"Failed to clear command history: {e}")
        logger.info("Command history cleared")

    def clear_session_counts(self) -> None:
        """Zero session counters, keeping lifetime counts and timestamps."""
        self._items = {
            identity: item.model_copy(update={"session_count": 0})
            for identity, item in self._items.items()
        }
        self._persist()

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def items(self) -> list[CommandHistoryItem]:
        """All items in first-seen order."""
        return list(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def get(self, identity: str) -> CommandHistoryItem | None:
        return self._items.get(identity)

    def find(self, partial_id: str) -> CommandHistoryItem:
        """Find an item by identity prefix.

        Raises:
            KeyError: If no item matches
            ValueError: If several items match (ambiguous)
        """
        if partial_id in self._items:
            return self._items[partial_id]

        matches = [item for identity, item in self._items.items() if identity.startswith(partial_id)]
        if not matches:
            raise KeyError(f"No command found matching '{partial_id}'")
        if len(matches) > 1:
            raise ValueError(
                f"Ambiguous command id '{partial_id}' matches {len(matches)} commands"
            )
        return matches[0]

    def get_frequent(self, limit: int = 10) -> list[CommandHistoryItem]:
        """Items by lifetime use count, most used first."""
        if limit <= 0:
            return []
        ranked = sorted(self._items.values(), key=lambda item: item.use_count, reverse=True)
        return ranked[:limit]

    def get_recent(self, limit: int = 10) -> list[CommandHistoryItem]:
        """Items by last use, most recent first."""
        if limit <= 0:
            return []
        ranked = sorted(self._items.values(), key=lambda item: item.last_used, reverse=True)
        return ranked[:limit]

    def total_executions(self) -> int:
        """Sum of lifetime use counts."""
        return sum(item.use_count for item in self._items.values())

    def session_executions(self) -> int:
        """Sum of session counts for the current run."""
        return sum(item.session_count for item in self._items.values())
