import logging
import time

import numpy as np
import pytest
import serial

from smartsensors.interface import (
    ASCIISerialStream, AudioStream, FirmataStream, SerialStream,
    parse_ascii_line, read_interval_ms, resolve_port,
)
from smartsensors.interface import _serial as serial_mod
from conftest import FakeAudioStream, FakeBoard, FakeSerial


def _factory(fake):
    opened = []

    def make(device, baud, timeout=None):
        opened.append((device, baud, timeout))
        return fake
    make.opened = opened
    return make


# ---------- helpers ----------

def test_read_interval_ms():
    assert read_interval_ms(4, 115200) == 0
    assert read_interval_ms(64, 9600) == 66
    assert read_interval_ms(1152, 115200) == 100


def test_parse_ascii_line():
    assert parse_ascii_line("1.0 2.0 3.0\n") == [1.0, 2.0, 3.0]
    assert parse_ascii_line("   \r\n") == []
    assert parse_ascii_line("4 5 x 6") == [4.0, 5.0]
    assert parse_ascii_line("abc") == []
    assert parse_ascii_line("1 nan 2") == [1.0]
    assert parse_ascii_line("inf 1") == []
    assert parse_ascii_line("2 1_0 3") == [2.0]
    assert parse_ascii_line("-1.5e2 +3") == [-150.0, 3.0]


def test_resolve_port(monkeypatch):
    monkeypatch.setattr(serial_mod, "list_serial_devices", lambda: ["/dev/ttyACM0", "/dev/ttyUSB0"])
    assert resolve_port(1) == "/dev/ttyUSB0"
    assert resolve_port(5) is None
    assert resolve_port(-1) is None
    assert resolve_port(None) is None
    assert resolve_port(" COM3 ") == "COM3"


# ---------- raw serial ----------

def test_serial_stream_emits_blocks(frames, wait_until):
    out, cb = frames
    fake = FakeSerial(bytes(range(8)))
    stream = SerialStream("/dev/fake", 115200, buffer_size=4, serial_factory=_factory(fake))
    stream.on_data_ready(cb)
    stream.start()
    assert wait_until(lambda: len(out) >= 2)
    stream.stop()

    assert out[0].shape == (4, 1)
    np.testing.assert_array_equal(out[0].ravel(), [0, 1, 2, 3])
    np.testing.assert_array_equal(out[1].ravel(), [4, 5, 6, 7])
    assert fake.closed


def test_serial_stream_normalizer(frames, wait_until):
    out, cb = frames
    fake = FakeSerial(bytes([0, 255]))
    stream = SerialStream("/dev/fake", buffer_size=2, normalizer=lambda v: v / 255.0,
                          serial_factory=_factory(fake))
    stream.on_data_ready(cb)
    with stream:
        assert wait_until(lambda: len(out) == 1)
    np.testing.assert_allclose(out[0].ravel(), [0.0, 1.0])


def test_serial_stream_ignores_vector_normalizer(frames, wait_until, caplog):
    out, cb = frames
    stream = SerialStream("/dev/fake", buffer_size=2, serial_factory=_factory(FakeSerial(bytes([3, 4]))))
    with caplog.at_level(logging.WARNING, logger="smartsensors"):
        stream.use_vector_normalizer(lambda x: [x.sum()])
    assert "ignores vector normalizers" in caplog.text
    stream.on_data_ready(cb)
    with stream:
        assert wait_until(lambda: len(out) == 1)
    assert out[0].shape == (2, 1)
    np.testing.assert_array_equal(out[0].ravel(), [3.0, 4.0])


def test_start_is_idempotent_and_stop_joins():
    fake = FakeSerial()
    factory = _factory(fake)
    stream = SerialStream("/dev/fake", serial_factory=factory)
    stream.start()
    thread = stream._thread
    stream.start()
    assert stream._thread is thread
    assert len(factory.opened) == 1
    assert stream.has_started

    stream.stop()
    assert not stream.has_started
    assert not thread.is_alive()
    stream.stop()


def test_stop_interrupts_pending_block():
    fake = FakeSerial(b"\x01")
    stream = SerialStream("/dev/fake", buffer_size=64, serial_factory=_factory(fake))
    stream.start()
    time.sleep(0.05)
    t0 = time.monotonic()
    stream.stop()
    assert time.monotonic() - t0 < 1.0
    assert not stream.is_alive()


def test_unset_port_does_not_start(caplog):
    stream = SerialStream(None)
    with caplog.at_level(logging.ERROR, logger="smartsensors"):
        stream.start()
    assert not stream.has_started
    assert "USB Port has not been properly set" in caplog.text


def test_open_failure_does_not_start(caplog):
    def broken(*args, **kwargs):
        raise serial.SerialException("busy")

    stream = SerialStream("/dev/fake", serial_factory=broken)
    with caplog.at_level(logging.ERROR, logger="smartsensors"):
        stream.start()
    assert not stream.has_started
    assert "busy" in caplog.text


def test_read_error_is_logged_and_loop_continues(caplog, frames, wait_until):
    out, cb = frames

    class Flaky(FakeSerial):
        def __init__(self):
            super().__init__(b"\x05\x06")
            self.failed = False

        def read(self, size=1):
            if not self.failed:
                self.failed = True
                raise serial.SerialException("glitch")
            return super().read(size)

    stream = SerialStream("/dev/fake", buffer_size=2, serial_factory=_factory(Flaky()))
    stream.on_data_ready(cb)
    with caplog.at_level(logging.ERROR, logger="smartsensors"):
        with stream:
            assert wait_until(lambda: len(out) == 1)
    assert "glitch" in caplog.text


# ---------- ASCII serial ----------

def test_ascii_stream_parses_lines(frames, wait_until):
    out, cb = frames
    fake = FakeSerial(b"1.0 2.0 3.0\n   \r\nabc\n4 5 x 6\n")
    stream = ASCIISerialStream("/dev/fake", 9600, 3, serial_factory=_factory(fake))
    stream.on_data_ready(cb)
    with stream:
        assert wait_until(lambda: len(out) == 2)
        time.sleep(0.02)
    assert len(out) == 2
    np.testing.assert_array_equal(out[0], [[1.0, 2.0, 3.0]])
    np.testing.assert_array_equal(out[1], [[4.0, 5.0]])


def test_ascii_stream_scalar_normalizer(frames, wait_until):
    out, cb = frames
    stream = ASCIISerialStream("/dev/fake", 9600, 2, serial_factory=_factory(FakeSerial(b"3 4\n")))
    stream.use_normalizer(lambda v: v * 2)
    stream.on_data_ready(cb)
    with stream:
        assert wait_until(lambda: len(out) == 1)
    np.testing.assert_allclose(out[0], [[6.0, 8.0]])


def test_ascii_stream_vector_normalizer(frames, wait_until):
    out, cb = frames
    stream = ASCIISerialStream("/dev/fake", 9600, 2, serial_factory=_factory(FakeSerial(b"3 4\n")))
    stream.use_vector_normalizer(lambda x: x / np.linalg.norm(x))
    stream.on_data_ready(cb)
    with stream:
        assert wait_until(lambda: len(out) == 1)
    np.testing.assert_allclose(out[0], [[0.6, 0.8]])


def test_labels_and_dimensions():
    stream = ASCIISerialStream("/dev/fake", 9600, 3)
    assert stream.get_num_input_dimensions() == 3
    assert stream.get_num_output_dimensions() == 3
    stream.set_labels_for_all_dimensions(["x", "y"])
    assert stream.get_labels() == []
    stream.set_labels_for_all_dimensions(["x", "y", "z"])
    assert stream.get_labels() == ["x", "y", "z"]
    stream.use_vector_normalizer(lambda x: x[:1])
    assert stream.get_num_output_dimensions() == 3


def test_callback_exception_is_logged(caplog):
    stream = ASCIISerialStream("/dev/fake", 9600, 1)

    def boom(frame):
        raise RuntimeError("sink failed")

    stream.on_data_ready(boom)
    with caplog.at_level(logging.ERROR, logger="smartsensors"):
        stream._emit(np.zeros((1, 1)))
    assert "Data-ready callback failed" in caplog.text


def test_ascii_start_is_idempotent_and_stop_joins():
    fake = FakeSerial()
    factory = _factory(fake)
    stream = ASCIISerialStream("/dev/fake", 9600, 3, serial_factory=factory)
    stream.start()
    thread = stream._thread
    stream.start()
    assert stream._thread is thread
    assert len(factory.opened) == 1

    stream.stop()
    assert not stream.has_started
    assert not thread.is_alive()
    assert fake.closed


# ---------- Firmata ----------

def test_firmata_requires_pins(caplog):
    stream = FirmataStream("/dev/fake", board_factory=FakeBoard)
    with caplog.at_level(logging.ERROR, logger="smartsensors"):
        stream.start()
    assert not stream.has_started
    assert "Pin has not been properly set" in caplog.text


def test_firmata_enables_reporting_once_then_emits(frames, wait_until):
    out, cb = frames
    boards = []

    def factory(device):
        board = FakeBoard(device)
        board.analog[0].value = 0.5
        boards.append(board)
        return board

    stream = FirmataStream("/dev/fake", update_interval=0.001, board_factory=factory)
    stream.use_analog_pin(0)
    stream.use_analog_pin(2)
    assert stream.get_num_input_dimensions() == 2
    stream.on_data_ready(cb)
    with stream:
        assert wait_until(lambda: len(out) >= 3)
        stream.use_analog_pin(3)
    board = boards[0]

    assert stream.pins == [0, 2]
    assert board.analog[0].reporting == 1
    assert board.analog[2].reporting == 1
    assert board.analog[1].reporting == 0
    assert board.iterations >= 3
    assert board.exited
    assert out[0].shape == (1, 2)
    assert out[0][0, 0] == pytest.approx(0.5 * 1023)
    assert np.isnan(out[0][0, 1])


def test_firmata_waits_for_board_version(frames):
    out, cb = frames
    stream = FirmataStream("/dev/fake", update_interval=0.001,
                           board_factory=lambda d: FakeBoard(d, version=None))
    stream.use_analog_pin(0)
    stream.on_data_ready(cb)
    with stream:
        time.sleep(0.05)
        assert not stream.configured
    assert out == []


def test_firmata_start_is_idempotent_and_stop_joins():
    boards = []

    def factory(device):
        boards.append(FakeBoard(device))
        return boards[-1]

    stream = FirmataStream("/dev/fake", update_interval=0.001, board_factory=factory)
    stream.use_analog_pin(0)
    stream.start()
    thread = stream._thread
    stream.start()
    assert stream._thread is thread
    assert len(boards) == 1

    stream.stop()
    assert not stream.has_started
    assert not thread.is_alive()
    assert boards[0].exited


def test_firmata_rejects_missing_pin(caplog):
    boards = []

    def factory(device):
        boards.append(FakeBoard(device))
        return boards[-1]

    stream = FirmataStream("/dev/fake", update_interval=0.001, board_factory=factory)
    stream.use_analog_pin(0)
    stream.use_analog_pin(9)
    with caplog.at_level(logging.ERROR, logger="smartsensors"):
        stream.start()
    assert not stream.has_started
    assert not stream.is_alive()
    assert "[9]" in caplog.text
    assert boards[0].exited


# ---------- audio ----------

def test_audio_stream_downsamples_first_channel(frames):
    out, cb = frames
    made = []

    def factory(**kwargs):
        made.append(FakeAudioStream(**kwargs))
        return made[-1]

    stream = AudioStream(downsample=2, stream_factory=factory)
    stream.on_data_ready(cb)
    stream.start()
    assert stream.has_started
    driver = made[0]
    assert driver.started
    assert driver.kwargs["samplerate"] == 44100
    assert driver.kwargs["blocksize"] == 256
    assert driver.kwargs["channels"] == 2

    indata = np.column_stack([np.arange(256), -np.arange(256)]).astype(np.float32)
    driver.callback(indata, 256, None, None)
    assert out[0].shape == (128, 1)
    np.testing.assert_array_equal(out[0].ravel(), np.arange(0, 256, 2))

    stream.audio_in(indata[:255], 255)
    assert out[1].shape == (127, 1)

    stream.close()
    assert not stream.has_started
    assert driver.closed


def test_audio_stream_rejects_bad_downsample():
    with pytest.raises(ValueError):
        AudioStream(downsample=0)
