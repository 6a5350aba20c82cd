"""Unit tests for the transport abstraction and MockTransport."""

import pytest

from obs_listener.errors import TransportError
from obs_listener.transport import (
    MockTransport,
    Transport,
    create_mock_transport,
    load_transport_factory,
)


class TestMockTransport:
    """Test the in-memory transport."""

    def test_satisfies_protocol(self):
        assert isinstance(MockTransport(), Transport)

    @pytest.mark.asyncio
    async def test_connect_records_url_and_password(self):
        transport = MockTransport()
        await transport.connect("ws://localhost:4455", "secret")

        assert transport.connected
        assert transport.url == "ws://localhost:4455"
        assert transport.password == "secret"
        assert transport.connect_count == 1

    @pytest.mark.asyncio
    async def test_connect_failure(self):
        transport = MockTransport(fail_connect=ConnectionRefusedError("refused"))

        with pytest.raises(ConnectionRefusedError):
            await transport.connect("ws://localhost:4455")

        assert not transport.connected

    @pytest.mark.asyncio
    async def test_call_requires_connection(self):
        with pytest.raises(TransportError):
            await MockTransport().call("GetVersion")

    @pytest.mark.asyncio
    async def test_call_records_and_responds(self):
        transport = MockTransport()
        transport.set_response("GetVersion", {"obsVersion": "30.0.0"})
        await transport.connect("ws://localhost:4455")

        result = await transport.call("GetVersion")
        await transport.call("SetInputMute", {"inputName": "Mic", "inputMuted": True})

        assert result == {"obsVersion": "30.0.0"}
        assert transport.recorded_calls == [
            ("GetVersion", {}),
            ("SetInputMute", {"inputName": "Mic", "inputMuted": True}),
        ]

    @pytest.mark.asyncio
    async def test_call_failure(self):
        transport = MockTransport()
        transport.set_failure("StartStream", RuntimeError("already streaming"))
        await transport.connect("ws://localhost:4455")

        with pytest.raises(RuntimeError, match="already streaming"):
            await transport.call("StartStream")

        assert transport.recorded_calls == [("StartStream", {})]

    @pytest.mark.asyncio
    async def test_emit_calls_sync_and_async_handlers(self):
        transport = MockTransport()
        received = []

        async def async_handler(payload):
            received.append(("async", payload))

        transport.on("SceneCreated", lambda payload: received.append(("sync", payload)))
        transport.on("SceneCreated", async_handler)

        await transport.emit("SceneCreated", {"sceneName": "New"})

        assert received == [("sync", {"sceneName": "New"}), ("async", {"sceneName": "New"})]
        assert transport.handler_count("SceneCreated") == 2

    @pytest.mark.asyncio
    async def test_disconnect_emits_closed(self):
        transport = MockTransport()
        closed = []
        transport.on("ConnectionClosed", closed.append)
        await transport.connect("ws://localhost:4455")

        await transport.disconnect()
        await transport.disconnect()

        assert not transport.connected
        assert transport.disconnect_count == 2
        assert closed == [{}]

    @pytest.mark.asyncio
    async def test_drop(self):
        transport = MockTransport()
        closed = []
        transport.on("ConnectionClosed", closed.append)
        await transport.connect("ws://localhost:4455")

        await transport.drop()

        assert not transport.connected
        assert closed == [{"code": 1006}]


class TestLoadTransportFactory:
    """Test resolving "module:attribute" paths."""

    def test_load(self):
        assert load_transport_factory("obs_listener.transport:create_mock_transport") is (
            create_mock_transport
        )

    @pytest.mark.parametrize("path", ["no_colon", ":attr", "module:"])
    def test_malformed(self, path):
        with pytest.raises(ValueError):
            load_transport_factory(path)

    def test_missing_attribute(self):
        with pytest.raises(ValueError):
            load_transport_factory("obs_listener.transport:does_not_exist")

    def test_not_callable(self):
        with pytest.raises(ValueError):
            load_transport_factory("obs_listener.history:STORAGE_KEY")

    def test_missing_module(self):
        with pytest.raises(ImportError):
            load_transport_factory("obs_listener.nowhere:factory")
