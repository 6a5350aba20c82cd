"""Connection controller.

Owns the single logical connection to the control server and drives
its lifecycle:

    disconnected --connect()--> connecting --success--> connected
                                connecting --failure--> error
    connected --remote close / disconnect()--> disconnected
    error --connect()--> connecting

At most one transport is live at any time. A new connect() first tears
down whatever transport is currently held, and the swap happens under
a lock so overlapping connect()/disconnect() calls never leave two
transports open.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

from .config import DEFAULT_SETTLE_DELAY, ConnectionConfig
from .errors import ConfigurationLockedError
from .event_log import EventLog
from .protocol.events import ConnectionEvent, EventName
from .transport import Transport, TransportFactory

logger = logging.getLogger(__name__)

# Callback for server events: (event_name, payload)
ServerEventHandler = Callable[[str, dict[str, Any]], Awaitable[None] | None]


class ConnectionState(str, Enum):
    """Connection state machine."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class ConnectionController:
    """Manages one transport connection and its state.

    Every state transition and every connect/disconnect outcome is
    recorded as exactly one entry in the event log.

    Usage:
        controller = ConnectionController(create_transport, event_log, config)
        if await controller.connect():
            await controller.transport.call("GetVersion")
        await controller.disconnect()
    """

    def __init__(
        self,
        transport_factory: TransportFactory,
        event_log: EventLog,
        config: ConnectionConfig | None = None,
        *,
        auto_connect: bool = True,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
        event_handler: ServerEventHandler | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            transport_factory: Creates a fresh transport per connection attempt
            event_log: Log receiving lifecycle entries
            config: Connection settings (defaults to localhost:4455)
            auto_connect: Whether schedule_auto_connect() may connect
            settle_delay: Seconds to wait before the automatic attempt
            event_handler: Receives every subscribed server event
        """
        self._transport_factory = transport_factory
        self._log = event_log
        self._config = config or ConnectionConfig()
        self._auto_connect = auto_connect
        self._settle_delay = settle_delay
        self._event_handler = event_handler

        self._state = ConnectionState.DISCONNECTED
        self._transport: Transport | None = None
        self._validation_errors: list[str] = []
        self._lock = asyncio.Lock()
        self._auto_connect_task: asyncio.Task[None] | None = None

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED and self._transport is not None

    @property
    def transport(self) -> Transport | None:
        """The currently held transport, if any."""
        return self._transport

    @property
    def config(self) -> ConnectionConfig:
        return self._config

    @property
    def validation_errors(self) -> list[str]:
        """Errors from the most recent validation."""
        return list(self._validation_errors)

    @property
    def auto_connect_enabled(self) -> bool:
        return self._auto_connect

    def update_config(self, **changes: Any) -> ConnectionConfig:
        """Replace connection settings.

        Raises:
            ConfigurationLockedError: If a connection is open or opening
            pydantic.ValidationError: On unknown fields or wrong types
        """
        if self._state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
            raise ConfigurationLockedError(
                f"Cannot change configuration while {self._state.value}"
            )
        self._config = self._config.replace(**changes)
        return self._config

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def connect(self) -> bool:
        """Open a new connection, replacing any existing one.

        Returns:
            True if the connection is now open
        """
        errors = self._config.validate_fields()
        if errors:
            self._validation_errors = errors
            self._log.error(f"Configuration validation failed: {', '.join(errors)}")
            return False
        self._validation_errors = []

        async with self._lock:
            if self._transport is not None:
                await self._teardown_existing()

            url = self._config.url
            self._state = ConnectionState.CONNECTING
            self._log.info(f"Attempting to connect to {url}")

            try:
                transport = self._transport_factory()
                self._subscribe(transport)
                self._transport = transport
                await transport.connect(url, self._config.password or None)
            except Exception as e:
                self._state = ConnectionState.ERROR
                self._log.error("Failed to connect to OBS", e)
                return False

            self._state = ConnectionState.CONNECTED
            self._log.info("Successfully connected to OBS")
            return True

    async def disconnect(self) -> None:
        """Close the connection from any state.

        Teardown failures are logged as warnings; the controller always
        ends up disconnected.
        """
        async with self._lock:
            transport = self._transport
            self._transport = None
            self._state = ConnectionState.DISCONNECTED

            if transport is not None:
                try:
                    await transport.disconnect()
                except Exception as e:
                    self._log.warning("Error during disconnect", e)
                    return

            self._log.info("Disconnected from OBS")

    async def _teardown_existing(self) -> None:
        transport = self._transport
        self._transport = None
        self._state = ConnectionState.DISCONNECTED
        if transport is None:
            return

        try:
            await transport.disconnect()
        except Exception as e:
            self._log.warning("Error disconnecting existing connection", e)
        else:
            self._log.info("Disconnecting existing connection...")

    # =========================================================================
    # Auto-connect
    # =========================================================================

    def schedule_auto_connect(self) -> asyncio.Task[None] | None:
        """Start the one-shot automatic connection attempt.

        Must be called from a running event loop. Subsequent calls return
        the already scheduled task.
        """
        if self._auto_connect_task is None:
            self._auto_connect_task = asyncio.create_task(self._auto_connect_after_delay())
        return self._auto_connect_task

    async def cancel_auto_connect(self) -> None:
        task = self._auto_connect_task
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _auto_connect_after_delay(self) -> None:
        await asyncio.sleep(self._settle_delay)

        if not self._auto_connect:
            self._log.info("Automatic connection disabled")
            return

        # A manual connect may have started while we were waiting
        if self._state != ConnectionState.DISCONNECTED or self._lock.locked():
            logger.debug(f"Skipping automatic connection (state={self._state.value})")
            return

        errors = self._config.validate_fields()
        if errors:
            self._validation_errors = errors
            self._log.warning("Automatic connection skipped due to configuration issues")
            return

        self._log.info("Attempting automatic connection...")
        await self.connect()

    async def close(self) -> None:
        """Cancel pending auto-connect and drop any transport."""
        await self.cancel_auto_connect()
        if self._transport is not None or self._state != ConnectionState.DISCONNECTED:
            await self.disconnect()

    # =========================================================================
    # Transport events
    # =========================================================================

    def _subscribe(self, transport: Transport) -> None:
        """Register lifecycle and server-event handlers on a new transport."""

        async def on_closed(payload: dict[str, Any]) -> None:
            await self._on_closed(transport, payload)

        async def on_error(payload: dict[str, Any]) -> None:
            if transport is self._transport:
                self._log.error("Connection error", payload)

        transport.on(ConnectionEvent.CLOSED.value, on_closed)
        transport.on(ConnectionEvent.ERROR.value, on_error)

        for event_name in EventName:
            transport.on(event_name.value, self._make_event_forwarder(transport, event_name.value))

    def _make_event_forwarder(
        self, transport: Transport, event_name: str
    ) -> Callable[[dict[str, Any]], Awaitable[None]]:
        async def forward(payload: dict[str, Any]) -> None:
            # Events from a transport we have already replaced are stale
            if transport is not self._transport or self._event_handler is None:
                return
            try:
                result = self._event_handler(event_name, payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Error handling event {event_name}")

        return forward

    async def _on_closed(self, transport: Transport, payload: dict[str, Any]) -> None:
        if transport is not self._transport or self._state != ConnectionState.CONNECTED:
            return
        self._transport = None
        self._state = ConnectionState.DISCONNECTED
        self._log.warning("WebSocket connection closed", payload or None)
