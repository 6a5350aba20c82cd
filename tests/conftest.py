"""Pytest configuration and shared fixtures."""

from datetime import UTC, datetime, timedelta

import pytest

from obs_listener.connection import ConnectionController
from obs_listener.event_log import EventLog
from obs_listener.history import CommandHistoryStore
from obs_listener.storage import MemoryKeyValueStorage
from obs_listener.transport import MockTransport


class StepClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        current = self.now
        self.now = current + timedelta(seconds=1)
        return current


class TransportRecorder:
    """Transport factory that remembers every transport it creates."""

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.created: list[MockTransport] = []

    def __call__(self) -> MockTransport:
        transport = MockTransport(**self.kwargs)
        self.created.append(transport)
        return transport

    @property
    def last(self) -> MockTransport:
        return self.created[-1]


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def storage():
    return MemoryKeyValueStorage()


@pytest.fixture
def event_log():
    return EventLog()


@pytest.fixture
def history(storage, clock):
    store = CommandHistoryStore(storage, clock=clock)
    store.load()
    return store


@pytest.fixture
def factory():
    return TransportRecorder()


@pytest.fixture
def controller(factory, event_log):
    return ConnectionController(factory, event_log, settle_delay=0)
