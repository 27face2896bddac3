import sys
import tempfile
from concurrent.futures import Future
from pathlib import Path

import pytest
import requests

sys.path.insert(0, str(Path(__file__).parent.parent))

from nightride.logging_config import ChannelUnavailable
from nightride.player import PlayerBackend
from nightride.stations import Station, StationRegistry


class FakeBackend(PlayerBackend):
    """Records commands instead of talking to mpv."""

    def __init__(self):
        super().__init__("fake-player")
        self.active = False
        self.calls = []
        self.volume = None
        self.spawn_count = 0
        self.spawn_error = None
        self.fail_next = 0
        self.dead = False
        self.closed = False

    def spawn(self):
        if self.spawn_error is not None:
            raise self.spawn_error
        self.spawn_count += 1
        self.active = True
        self.closed = False

    def is_active(self):
        return self.active

    def _send(self, *call):
        if self.dead:
            raise ChannelUnavailable("connection refused")
        if self.fail_next > 0:
            self.fail_next -= 1
            raise ChannelUnavailable("broken pipe")
        self.calls.append(call)

    def load(self, url):
        self._send("load", url)

    def play(self):
        self._send("play")

    def pause(self):
        self._send("pause")

    def set_volume(self, volume):
        self._send("set_volume", volume)
        self.volume = volume

    def get_volume(self):
        self._send("get_volume")
        return self.volume

    def stop(self):
        self._send("stop")

    def close(self):
        self.active = False
        self.closed = True


class ImmediateExecutor:
    """Runs submitted work on the calling thread."""

    def __init__(self):
        self.submitted = 0

    def submit(self, fn, *args, **kwargs):
        self.submitted += 1
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future

    def shutdown(self, wait=True, cancel_futures=False):
        pass


class PendingExecutor:
    """Hands out futures that only complete when the test says so."""

    def __init__(self):
        self.futures = []

    def submit(self, fn, *args, **kwargs):
        future = Future()
        self.futures.append(future)
        return future

    def shutdown(self, wait=True, cancel_futures=False):
        pass


class FakeResponse:
    def __init__(self, payload=None, status_code=200, text=None):
        self.payload = payload
        self.status_code = status_code
        self.text = text

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")

    def json(self):
        if self.text is not None:
            raise ValueError(f"Expecting value: {self.text[:20]}")
        return self.payload


class FakeSession:
    """Serves queued responses, keyed by nothing but call order."""

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.requested = []
        self.closed = False

    def get(self, url, timeout=None):
        self.requested.append(url)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def close(self):
        self.closed = True


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def make_station(station_id):
    return Station(
        id=station_id,
        name=station_id.capitalize(),
        stream_url=f"http://stream.example/{station_id}.ogg",
        metadata_url=f"http://meta.example/{station_id}",
    )


@pytest.fixture
def stations():
    return [make_station(s) for s in ("nightride", "chillsynth", "datawave")]


@pytest.fixture
def registry(stations):
    return StationRegistry(stations)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for session and config files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)
