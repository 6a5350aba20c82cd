"""Unit tests for the Orchestrator surface."""

import json

import pytest
import pytest_asyncio

from obs_listener.config import Settings
from obs_listener.connection import ConnectionState
from obs_listener.event_log import LogKind
from obs_listener.history import STORAGE_KEY
from obs_listener.orchestrator import Orchestrator
from obs_listener.protocol.commands import Command, CommandType


@pytest.fixture
def settings(tmp_path):
    return Settings(settle_delay=0, storage_dir=tmp_path)


@pytest.fixture
def orchestrator(settings, factory, storage):
    return Orchestrator(settings, factory, storage=storage)


class TestLifecycle:
    """Test start/close and the context manager."""

    @pytest.mark.asyncio
    async def test_start_schedules_auto_connect(self, orchestrator):
        await orchestrator.start()
        await orchestrator.connection.schedule_auto_connect()

        assert orchestrator.connection_state == ConnectionState.CONNECTED
        await orchestrator.close()
        assert orchestrator.connection_state == ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_start_without_auto_connect(self, orchestrator, factory):
        await orchestrator.start(auto_connect=False)
        await orchestrator.close()

        assert factory.created == []

    @pytest.mark.asyncio
    async def test_start_loads_history(self, settings, factory, storage):
        first = Orchestrator(settings, factory, storage=storage)
        await first.start(auto_connect=False)
        await first.connect()
        await first.execute_command(Command.create(CommandType.START_STREAM))
        await first.close()

        second = Orchestrator(settings, factory, storage=storage)
        await second.start(auto_connect=False)

        assert second.total_lifetime_executions() == 1
        assert second.session_executions() == 0

    @pytest.mark.asyncio
    async def test_context_manager(self, settings, factory, storage):
        async with Orchestrator(settings, factory, storage=storage) as obs:
            await obs.connection.schedule_auto_connect()
            assert obs.is_connected

        assert not obs.is_connected

    @pytest.mark.asyncio
    async def test_default_storage_is_file_backed(self, settings, factory):
        obs = Orchestrator(settings, factory)
        await obs.start(auto_connect=False)
        await obs.connect()
        await obs.execute_command(Command.create(CommandType.START_RECORD))
        await obs.close()

        stored = json.loads((settings.storage_dir / f"{STORAGE_KEY}.json").read_text())
        assert stored[0]["command"]["type"] == "StartRecord"


class TestServerEvents:
    """Test events flowing into the log."""

    @pytest.mark.asyncio
    async def test_event_is_logged_with_command(self, orchestrator, factory):
        await orchestrator.start(auto_connect=False)
        await orchestrator.connect()

        await factory.last.emit("CurrentProgramSceneChanged", {"sceneName": "Intro"})

        entry = orchestrator.log_entries[-1]
        assert entry.kind == LogKind.EVENT
        assert entry.message == "Scene changed to: Intro"
        assert entry.data == {"sceneName": "Intro"}
        assert entry.command == Command.set_current_program_scene("Intro")

    @pytest.mark.asyncio
    async def test_informational_event_has_no_command(self, orchestrator, factory):
        await orchestrator.start(auto_connect=False)
        await orchestrator.connect()

        await factory.last.emit("SceneCreated", {"sceneName": "New", "isGroup": False})

        entry = orchestrator.log_entries[-1]
        assert entry.message == "Scene created: New"
        assert not entry.is_rerunnable

    @pytest.mark.asyncio
    async def test_events_do_not_touch_history(self, orchestrator, factory):
        await orchestrator.start(auto_connect=False)
        await orchestrator.connect()

        await factory.last.emit("StreamStateChanged", {"outputActive": True})

        assert orchestrator.total_lifetime_executions() == 0


class TestRerun:
    """Test replaying commands from log entries."""

    @pytest.mark.asyncio
    async def test_rerun_event(self, orchestrator, factory):
        await orchestrator.start(auto_connect=False)
        await orchestrator.connect()
        transport = factory.last
        await transport.emit(
            "InputMuteStateChanged", {"inputName": "Mic", "inputMuted": True}
        )
        entry = orchestrator.log_entries[-1]

        assert await orchestrator.rerun(entry) is True

        assert transport.recorded_calls == [
            ("SetInputMute", {"inputName": "Mic", "inputMuted": True})
        ]
        assert orchestrator.log_entries[-1].message == "Mic muted"
        assert [i.command for i in orchestrator.get_frequent_commands()] == [entry.command]

    @pytest.mark.asyncio
    async def test_rerun_without_command(self, orchestrator):
        entry = orchestrator.event_log.info("just a note")

        assert await orchestrator.rerun(entry) is False

        last = orchestrator.log_entries[-1]
        assert last.kind == LogKind.WARNING
        assert last.message == "Log entry has no rerunnable command: just a note"


class TestQueriesAndActions:
    """Test pass-through queries and maintenance actions."""

    @pytest_asyncio.fixture
    async def busy(self, orchestrator):
        await orchestrator.start(auto_connect=False)
        await orchestrator.connect()
        for name in ["A", "B", "A"]:
            await orchestrator.execute_command(Command.set_current_program_scene(name))
        return orchestrator

    @pytest.mark.asyncio
    async def test_rankings(self, busy):
        frequent = busy.get_frequent_commands()
        recent = busy.get_recent_commands()

        assert [i.command.params["sceneName"] for i in frequent] == ["A", "B"]
        assert [i.command.params["sceneName"] for i in recent] == ["A", "B"]
        assert busy.total_lifetime_executions() == 3
        assert busy.session_executions() == 3

    @pytest.mark.asyncio
    async def test_reset_session_counts(self, busy):
        busy.reset_session_counts()

        assert busy.session_executions() == 0
        assert busy.total_lifetime_executions() == 3

    @pytest.mark.asyncio
    async def test_clear_history(self, busy, storage):
        busy.clear_history()

        assert busy.get_frequent_commands() == []
        assert STORAGE_KEY not in storage

    @pytest.mark.asyncio
    async def test_filter_and_clear_logs(self, busy):
        requests = busy.filter_logs(LogKind.REQUEST)
        assert len(requests) == 3
        assert len(busy.filter_logs("all", search="scene changed to: b")) == 1

        busy.clear_logs()

        assert busy.log_entries == ()

    @pytest.mark.asyncio
    async def test_export_logs(self, busy):
        exported = json.loads(busy.export_logs())

        assert exported[0]["message"] == "Attempting to connect to ws://localhost:4455"

    @pytest.mark.asyncio
    async def test_validation_errors(self, factory, storage):
        settings = Settings.model_validate({"connection": {"port": "0"}, "settle_delay": 0})
        obs = Orchestrator(settings, factory, storage=storage)

        assert await obs.connect() is False
        assert obs.validation_errors == ["Port must be a valid number between 1 and 65535"]

    @pytest.mark.asyncio
    async def test_disconnect(self, busy):
        await busy.disconnect()

        assert busy.connection_state == ConnectionState.DISCONNECTED
        assert await busy.execute_command(Command.create(CommandType.START_STREAM)) is False
