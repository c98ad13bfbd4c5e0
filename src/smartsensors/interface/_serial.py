"""
Serial-port input streams.

``SerialStream`` reads fixed-size blocks of raw bytes; ``ASCIISerialStream``
reads newline-terminated lines of whitespace-separated numbers, the format an
Arduino sketch produces with ``Serial.print(x); Serial.print(" "); ...
Serial.println()``.
"""
from __future__ import annotations

import time
from typing import Callable, List, Optional, Union

import numpy as np
import serial
from serial.tools import list_ports

from smartsensors.logging import get_logger
from smartsensors.processing._normalizers import VectorNormalizer
from .base import ThreadedStream

log = get_logger("interface.serial")

PortId = Union[str, int, None]

DEFAULT_BUFFER_SIZE = 64


def list_serial_devices() -> List[str]:
    """Device paths of the serial ports visible to the OS, in enumeration order."""
    return [p.device for p in list_ports.comports()]


def resolve_port(port: PortId) -> Optional[str]:
    """
    Turn a port identifier into a device path.

    Strings are used as-is. Integers index into ``list_serial_devices()``;
    ``None`` and negative indices mean "not set".
    """
    if port is None:
        return None
    if isinstance(port, (int, np.integer)) and not isinstance(port, bool):
        if port < 0:
            return None
        devices = list_serial_devices()
        if port >= len(devices):
            log.error("Serial device index %d out of range; found %s", port, devices or "no devices")
            return None
        return devices[port]
    port = str(port).strip()
    return port or None


def read_interval_ms(buffer_size: int, baud: int) -> int:
    """
    Time (integer ms) a device needs to send ``buffer_size`` bytes at ``baud``,
    assuming 10 bits on the wire per byte.
    """
    return int(buffer_size) * 1000 // (int(baud) // 10)


def parse_ascii_line(line: str) -> List[float]:
    """
    Parse leading whitespace-separated floats; stops at the first bad token.

    Only finite decimal numbers count: ``nan``, ``inf`` and digit-grouping
    underscores end the line like any other non-number.
    """
    values: List[float] = []
    for token in line.split():
        if "_" in token:
            break
        try:
            value = float(token)
        except ValueError:
            break
        if not np.isfinite(value):
            break
        values.append(value)
    return values


class _SerialPortStream(ThreadedStream):
    """Port opening/closing shared by the serial streams."""

    def __init__(
        self,
        port: PortId,
        baud: int,
        read_timeout: float,
        normalizer=None,
        serial_factory: Optional[Callable[..., serial.Serial]] = None,
    ) -> None:
        super().__init__(normalizer=normalizer)
        if int(baud) < 10:
            raise ValueError("baud must be >= 10")
        self.port = port
        self.baud = int(baud)
        self.read_timeout = float(read_timeout)
        self._serial_factory = serial_factory or serial.Serial
        self._serial: Optional[serial.Serial] = None

    def _open(self) -> bool:
        device = resolve_port(self.port)
        if device is None:
            log.error("USB Port has not been properly set")
            return False
        try:
            self._serial = self._serial_factory(device, self.baud, timeout=self.read_timeout)
        except serial.SerialException as e:
            log.error("Could not open serial port %s: %s", device, e)
            return False
        log.info("%s opened %s at %d baud", type(self).__name__, device, self.baud)
        return True

    def _close(self) -> None:
        ser, self._serial = self._serial, None
        if ser is None:
            return
        try:
            ser.close()
        except serial.SerialException as e:
            log.warning("Error closing serial port: %s", e)


class SerialStream(_SerialPortStream):
    """
    Raw byte stream: every ``buffer_size`` bytes become one (buffer_size, 1) frame.

    Parameters
    ----------
    port : str | int
        Device path, or index into ``list_serial_devices()``.
    baud : int
        Baud rate (default 115200).
    buffer_size : int
        Bytes per frame.
    read_timeout : float
        Driver read timeout in seconds. A timed-out read counts as "no data";
        the stop flag is checked between reads.
    """

    thread_name = "SerialStream"

    def __init__(
        self,
        port: PortId,
        baud: int = 115200,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        read_timeout: float = 0.1,
        normalizer=None,
        serial_factory=None,
    ) -> None:
        super().__init__(port, baud, read_timeout, normalizer=normalizer, serial_factory=serial_factory)
        if int(buffer_size) < 1:
            raise ValueError("buffer_size must be >= 1")
        self.buffer_size = int(buffer_size)

    def get_num_input_dimensions(self) -> int:
        return 1

    def use_vector_normalizer(self, fn) -> None:
        log.warning("SerialStream ignores vector normalizers; bytes are normalized one at a time")
        super().use_vector_normalizer(fn)

    def _run(self) -> None:
        sleep_ms = read_interval_ms(self.buffer_size, self.baud)
        log.info("Serial port will be read every %d ms", sleep_ms)
        while self.has_started:
            if sleep_ms > 0:
                time.sleep(sleep_ms / 1000.0)
            block = self._read_block()
            if block is None:
                continue
            raw = np.frombuffer(block, dtype=np.uint8).astype(np.float64)
            self._emit(self._normalize_bytes(raw).reshape(-1, 1))

    def _normalize_bytes(self, raw: np.ndarray) -> np.ndarray:
        # bytes are independent samples; a vector normalizer does not apply
        if isinstance(self._normalizer, VectorNormalizer):
            return raw
        return np.asarray(self._normalizer(raw), dtype=np.float64)

    def _read_block(self) -> Optional[bytes]:
        """Collect exactly ``buffer_size`` bytes; None if stopped or the read failed."""
        buf = bytearray()
        while len(buf) < self.buffer_size:
            if not self.has_started:
                return None
            try:
                chunk = self._serial.read(self.buffer_size - len(buf))
            except serial.SerialException as e:
                log.error("Error reading from serial: %s", e)
                return None
            if chunk:
                buf.extend(chunk)
        return bytes(buf)


class ASCIISerialStream(_SerialPortStream):
    """
    Line-oriented stream: each "v1 v2 ... vn\\n" line becomes one (1, n) frame.

    ``num_dimensions`` is what the stream advertises downstream; it is not
    checked against the number of values a line actually carries.
    """

    thread_name = "ASCIISerialStream"

    def __init__(
        self,
        port: PortId,
        baud: int = 9600,
        num_dimensions: int = 1,
        poll_interval: float = 0.01,
        normalizer=None,
        serial_factory=None,
    ) -> None:
        super().__init__(port, baud, poll_interval, normalizer=normalizer, serial_factory=serial_factory)
        if int(num_dimensions) < 1:
            raise ValueError("num_dimensions must be >= 1")
        self.num_dimensions = int(num_dimensions)

    def get_num_input_dimensions(self) -> int:
        return self.num_dimensions

    def _run(self) -> None:
        log.info("Serial port will be read every %d ms", int(self.read_timeout * 1000))
        line = bytearray()
        while self.has_started:
            try:
                byte = self._serial.read(1)
            except serial.SerialException as e:
                log.error("Error reading from serial: %s", e)
                line.clear()
                time.sleep(self.read_timeout)
                continue
            if not byte:
                continue
            line.extend(byte)
            if byte == b"\n":
                self._handle_line(bytes(line))
                line.clear()

    def _handle_line(self, raw: bytes) -> None:
        values = parse_ascii_line(raw.decode("ascii", errors="ignore"))
        if not values:
            return
        data = self.normalize(np.asarray(values, dtype=np.float64))
        self._emit(np.atleast_2d(np.asarray(data, dtype=np.float64)))
