"""Client-side transport abstraction.

The listener never speaks the wire protocol itself. It consumes an
already-authenticating transport that exposes four primitives:

- connect(url, password): suspends until the connection is open
- call(request, params): sends a request and returns its result
- on(event_name, handler): subscribes to server events
- disconnect(): suspends until the connection is closed

Concrete transports are supplied by the host application, either
directly or as a "module:attribute" factory path. MockTransport is an
in-memory implementation for tests and dry runs.
"""

from __future__ import annotations

import asyncio
import importlib
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, runtime_checkable

from .errors import TransportError

logger = logging.getLogger(__name__)

# Event handlers may be plain functions or coroutines
EventHandler = Callable[[dict[str, Any]], Awaitable[None] | None]


@runtime_checkable
class Transport(Protocol):
    """Protocol for control-server transports.

    Timeouts are the transport's responsibility; every method either
    completes or raises.
    """

    async def connect(self, url: str, password: str | None = None) -> None:
        """Open the connection.

        Raises:
            Exception: If the connection cannot be established
        """
        ...

    async def call(self, request: str, params: dict[str, Any] | None = None) -> Any:
        """Send a request and return its response data."""
        ...

    def on(self, event_name: str, handler: EventHandler) -> None:
        """Register a handler for a server event."""
        ...

    async def disconnect(self) -> None:
        """Close the connection."""
        ...


TransportFactory = Callable[[], Transport]


async def invoke_handler(handler: EventHandler, payload: dict[str, Any]) -> None:
    """Call a handler and await it if it returned an awaitable."""
    result = handler(payload)
    if inspect.isawaitable(result):
        await result


class MockTransport:
    """Mock transport for testing.

    Allows injecting canned responses and failures and recording calls.
    No actual I/O - everything is in-memory.

    Usage:
        transport = MockTransport()
        transport.set_response("GetVersion", {"obsVersion": "30.0.0"})

        await transport.connect("ws://localhost:4455")
        await transport.call("GetVersion")

        assert transport.recorded_calls[0] == ("GetVersion", {})
    """

    def __init__(
        self,
        *,
        fail_connect: Exception | None = None,
        fail_disconnect: Exception | None = None,
    ) -> None:
        self.fail_connect = fail_connect
        self.fail_disconnect = fail_disconnect
        self.connected = False
        self.url: str | None = None
        self.password: str | None = None
        self.connect_count = 0
        self.disconnect_count = 0
        self._handlers: dict[str, list[EventHandler]] = {}
        self._responses: dict[str, Any] = {}
        self._failures: dict[str, Exception] = {}
        self._recorded_calls: list[tuple[str, dict[str, Any]]] = []
        self._emit_lock = asyncio.Lock()

    @property
    def recorded_calls(self) -> list[tuple[str, dict[str, Any]]]:
        """Get all requests sent through this transport."""
        return self._recorded_calls.copy()

    def set_response(self, request: str, result: Any) -> None:
        """Set the canned result for a request."""
        self._responses[request] = result

    def set_failure(self, request: str, error: Exception) -> None:
        """Make a request raise the given error."""
        self._failures[request] = error

    def handler_count(self, event_name: str) -> int:
        return len(self._handlers.get(event_name, []))

    async def connect(self, url: str, password: str | None = None) -> None:
        self.connect_count += 1
        self.url = url
        self.password = password
        if self.fail_connect is not None:
            raise self.fail_connect
        self.connected = True

    async def call(self, request: str, params: dict[str, Any] | None = None) -> Any:
        if not self.connected:
            raise TransportError("Transport not connected")
        self._recorded_calls.append((request, dict(params or {})))
        if request in self._failures:
            raise self._failures[request]
        return self._responses.get(request)

    def on(self, event_name: str, handler: EventHandler) -> None:
        self._handlers.setdefault(event_name, []).append(handler)

    async def disconnect(self) -> None:
        self.disconnect_count += 1
        if self.fail_disconnect is not None:
            raise self.fail_disconnect
        was_connected = self.connected
        self.connected = False
        if was_connected:
            await self.emit("ConnectionClosed", {})

    async def emit(self, event_name: str, payload: dict[str, Any] | None = None) -> None:
        """Deliver an event to registered handlers, one at a time."""
        async with self._emit_lock:
            for handler in list(self._handlers.get(event_name, [])):
                await invoke_handler(handler, dict(payload or {}))

    async def drop(self) -> None:
        """Simulate the server closing the connection."""
        self.connected = False
        await self.emit("ConnectionClosed", {"code": 1006})


def load_transport_factory(path: str) -> TransportFactory:
    """Import a transport factory from a "module:attribute" path.

    Args:
        path: Dotted module path and attribute, e.g. "myapp.obs:create_transport"

    Returns:
        The callable found at that location

    Raises:
        ValueError: If the path is malformed or does not name a callable
    """
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Transport factory must look like 'module:attribute', got {path!r}")

    module = importlib.import_module(module_name)
    factory = getattr(module, attr, None)
    if factory is None or not callable(factory):
        raise ValueError(f"{path!r} is not a callable transport factory")

    logger.debug(f"Loaded transport factory {path}")
    return factory


def create_mock_transport() -> MockTransport:
    """Factory usable as "obs_listener.transport:create_mock_transport"."""
    return MockTransport()
