"""
Shared test doubles for the telemetry pipeline

Provides a scriptable REST client, a scriptable push-channel manager and
an in-memory WebSocket session.
"""

import asyncio
import json
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Dict, List, Optional

import aiohttp
import pytest

from streamhealth.telemetry.models import ConnectionState, Sample

BASE_TIME = datetime(2026, 1, 16, 12, 0, 0, tzinfo=timezone.utc)


def make_samples(bitrates, start: datetime = BASE_TIME, step_sec: float = 5.0) -> List[Sample]:
    """Build samples 5 seconds apart from a list of bitrates"""
    return [
        Sample(timestamp=start + timedelta(seconds=i * step_sec), bitrate=float(b))
        for i, b in enumerate(bitrates)
    ]


class FakeStreamAPI:
    """
    Scriptable stand-in for StreamAPIClient

    ``history`` maps username to a list of results consumed one per call;
    the last result repeats. A username present in ``gates`` blocks until
    its event is set.
    """

    def __init__(self):
        self.history: Dict[str, list] = {}
        self.current: Dict[str, Optional[Sample]] = {}
        self.stats: Dict[str, dict] = {}
        self.gates: Dict[str, asyncio.Event] = {}
        self.history_calls: List[tuple] = []
        self.current_calls: List[str] = []

    async def fetch_history(self, username, minutes=5):
        self.history_calls.append((username, minutes))
        gate = self.gates.get(username)
        if gate is not None:
            await gate.wait()

        results = self.history.get(username, [[]])
        if len(results) > 1:
            return results.pop(0)
        return results[0]

    async def fetch_current(self, username):
        self.current_calls.append(username)
        return self.current.get(username)

    async def fetch_stats(self, username):
        return self.stats.get(username)


class FakeConnection:
    """Push channel manager driven by the test instead of a socket"""

    def __init__(self, username, on_sample, on_state_change=None, api_config=None):
        self.username = username
        self.on_sample = on_sample
        self.on_state_change = on_state_change
        self.api_config = api_config
        self.state = ConnectionState.DISCONNECTED
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.disconnect_delay = 0.0

    def _set(self, state):
        self.state = state
        if self.on_state_change:
            self.on_state_change(state)

    def connect(self):
        self.connect_calls += 1
        self._set(ConnectionState.CONNECTING)

    def open(self):
        self._set(ConnectionState.CONNECTED)

    def drop(self):
        self._set(ConnectionState.DISCONNECTED)

    def push(self, bitrate, when: datetime = None):
        self.on_sample(Sample(timestamp=when or datetime.now(timezone.utc), bitrate=float(bitrate)))

    async def disconnect(self):
        if self.disconnect_delay:
            await asyncio.sleep(self.disconnect_delay)
        self.disconnect_calls += 1
        self._set(ConnectionState.DISCONNECTED)


class FakeWebSocket:
    """In-memory WebSocket yielding queued messages until closed"""

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self.sent: List[dict] = []
        self.closed = False

    def feed(self, payload):
        """Queue a JSON text frame (str payloads are sent verbatim)"""
        data = payload if isinstance(payload, str) else json.dumps(payload)
        self._queue.put_nowait(SimpleNamespace(type=aiohttp.WSMsgType.TEXT, data=data))

    def drop(self):
        """Simulate the server closing the connection"""
        self._queue.put_nowait(None)

    async def send_json(self, data):
        if self.closed:
            raise ConnectionResetError("socket closed")
        self.sent.append(data)

    async def close(self):
        self.closed = True
        self._queue.put_nowait(None)

    def exception(self):
        return None

    def __aiter__(self):
        return self

    async def __anext__(self):
        msg = await self._queue.get()
        if msg is None:
            self.closed = True
            raise StopAsyncIteration
        return msg


class FakeWSSession:
    """
    In-memory aiohttp.ClientSession for ws_connect

    ``outcomes`` is consumed per connect attempt: a FakeWebSocket is
    returned, an exception is raised, 'hang' never completes. Once empty,
    every attempt is refused.
    """

    def __init__(self, outcomes=()):
        self.outcomes = list(outcomes)
        self.urls: List[str] = []
        self.closed = False

    @property
    def connect_calls(self) -> int:
        return len(self.urls)

    async def ws_connect(self, url):
        self.urls.append(url)
        outcome = self.outcomes.pop(0) if self.outcomes else aiohttp.ClientConnectionError("refused")
        if outcome == 'hang':
            await asyncio.sleep(3600)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_api():
    return FakeStreamAPI()


@pytest.fixture
def connections():
    """Factory building FakeConnection instances; created ones are in .created"""
    created = []

    def factory(**kwargs):
        connection = FakeConnection(**kwargs)
        created.append(connection)
        return connection

    factory.created = created
    return factory


@pytest.fixture
def fake_ws_factory():
    """Return builders for FakeWebSocket and FakeWSSession"""
    return SimpleNamespace(socket=FakeWebSocket, session=FakeWSSession)


@pytest.fixture
def sample_factory():
    return make_samples
