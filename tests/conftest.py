"""Shared pytest fixtures: in-memory serial transports and config builders."""

import threading

import pytest

from serial_recorder.config import Config, PortSpec
from serial_recorder.errors import PortOpenError

FIXED_TIME = 1700000000


class FakeTransport:
    """Replays queued chunks, then raises ``error`` or signals end of input."""

    def __init__(self, chunks=(), error: OSError | None = None):
        self._chunks = list(chunks)
        self._error = error
        self.closed = False

    def readline(self):
        if self._chunks:
            return self._chunks.pop(0)
        if self._error is not None:
            raise self._error
        return None

    def close(self):
        self.closed = True


class SilentTransport:
    """A port that never sends anything, like a pyserial read timing out."""

    def __init__(self, chunks=(), timeout: float = 0.01):
        self._chunks = list(chunks)
        self._timeout = timeout
        self._idle = threading.Event()
        self.closed = False

    def readline(self):
        if self._chunks:
            return self._chunks.pop(0)
        self._idle.wait(self._timeout)
        return b""

    def close(self):
        self.closed = True


class StuckTransport:
    """A read that blocks until released, ignoring stop requests."""

    def __init__(self):
        self.release = threading.Event()
        self.entered = threading.Event()
        self.closed = False

    def readline(self):
        self.entered.set()
        self.release.wait()
        return None

    def close(self):
        self.closed = True


def _make_opener(transports: dict, failing=()):
    calls = []

    def opener(spec: PortSpec, read_timeout: float):
        calls.append(spec)
        if spec.identifier in failing:
            raise PortOpenError(spec.identifier, "No such file or directory")
        return transports[spec.identifier]

    opener.calls = calls
    return opener


def _lines(*texts: str) -> list[bytes]:
    return [f"{t}\n".encode("utf-8") for t in texts]


@pytest.fixture
def make_opener():
    return _make_opener


@pytest.fixture
def lines():
    return _lines


@pytest.fixture
def fixed_time():
    return lambda: FIXED_TIME


@pytest.fixture
def make_config(tmp_path):
    def _build(*ports: PortSpec, **overrides) -> Config:
        values = {
            "directory": str(tmp_path / "out"),
            "ports": tuple(ports),
            "read_timeout": 0.05,
        }
        values.update(overrides)
        return Config(**values)

    return _build


@pytest.fixture
def fake_transport():
    return FakeTransport


@pytest.fixture
def silent_transport():
    return SilentTransport


@pytest.fixture
def stuck_transport():
    return StuckTransport
