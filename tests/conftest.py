import time

import numpy as np
import pytest

from smartsensors.interface import IStream


class FakeSerial:
    """Stands in for serial.Serial: serves a fixed byte string, then times out."""

    def __init__(self, data=b""):
        self._buf = bytearray(data)
        self.closed = False
        self.reads = 0

    def read(self, size=1):
        self.reads += 1
        if not self._buf:
            time.sleep(0.001)
            return b""
        out = bytes(self._buf[:size])
        del self._buf[:size]
        return out

    def close(self):
        self.closed = True


class FakePin:
    def __init__(self, value=None):
        self.value = value
        self.reporting = 0

    def enable_reporting(self):
        self.reporting += 1

    def read(self):
        return self.value


class FakeBoard:
    """pyFirmata2-like board with six analog pins."""

    def __init__(self, device, version=(2, 5)):
        self.device = device
        self.analog = [FakePin() for _ in range(6)]
        self.version = version
        self.iterations = 0
        self.exited = False
        self._pending = 3

    def get_firmata_version(self):
        return self.version

    def bytes_available(self):
        return self._pending

    def iterate(self):
        self.iterations += 1
        self._pending = max(0, self._pending - 1)

    def exit(self):
        self.exited = True


class FakeAudioStream:
    """Records the sounddevice.InputStream arguments and lifecycle calls."""

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.callback = kwargs["callback"]
        self.started = False
        self.closed = False

    def start(self):
        self.started = True

    def stop(self):
        self.started = False

    def close(self):
        self.closed = True


class FakeSocket:
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail
        self.closed = False

    def sendall(self, data):
        if self.fail:
            raise OSError("connection reset")
        self.sent.append(data)

    def close(self):
        self.closed = True


class ManualStream(IStream):
    """Stream driven by the test: ``push`` emits a frame synchronously."""

    def __init__(self, dims=1, normalizer=None):
        super().__init__(normalizer=normalizer)
        self.dims = dims
        self.closed = False

    def start(self):
        self._running.set()

    def stop(self):
        self._running.clear()

    def close(self):
        self.stop()
        self.closed = True

    def get_num_input_dimensions(self):
        return self.dims

    def push(self, frame):
        self._emit(np.atleast_2d(np.asarray(frame, dtype=np.float64)))


@pytest.fixture
def wait_until():
    def _wait(predicate, timeout=2.0):
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(0.005)
        return predicate()
    return _wait


@pytest.fixture
def frames():
    """A list plus a callback that appends to it."""
    collected = []
    return collected, collected.append
