from __future__ import annotations

import time
from typing import Any, Callable, List, Optional

import numpy as np
import serial

from smartsensors._optional import optional_import
from smartsensors.logging import get_logger
from ._serial import PortId, resolve_port
from .base import ThreadedStream

log = get_logger("interface.firmata")

# pyFirmata2 reports analog pins as value / 1023
ANALOG_FULL_SCALE = 1023.0


class FirmataStream(ThreadedStream):
    """
    Poll analog pins of a Firmata-speaking board (StandardFirmata sketch).

    The update thread pumps the protocol driver every ``update_interval``
    seconds. Until the board has answered with its Firmata version nothing
    is sent; then analog reporting is enabled once for every pin and, from
    the next cycle on, each cycle emits one (1, n_pins) frame of raw 10-bit
    ADC counts (``nan`` for a pin that has not reported yet).

    Parameters
    ----------
    port : str | int
        Device path, or index into the serial device list.
    update_interval : float
        Seconds between polls.
    board_factory : callable
        ``board_factory(device_path)`` returning a pyFirmata2-compatible board.
        Defaults to ``pyfirmata2.Arduino``.
    """

    thread_name = "FirmataStream"

    def __init__(
        self,
        port: PortId,
        update_interval: float = 0.01,
        normalizer=None,
        board_factory: Optional[Callable[[str], Any]] = None,
    ) -> None:
        super().__init__(normalizer=normalizer)
        self.port = port
        self.update_interval = float(update_interval)
        self.pins: List[int] = []
        self._board_factory = board_factory
        self._board = None
        self._configured = False

    def use_analog_pin(self, pin: int) -> None:
        if self.has_started:
            log.warning("Cannot add analog pin %d while streaming", pin)
            return
        self.pins.append(int(pin))

    def get_num_input_dimensions(self) -> int:
        return len(self.pins)

    @property
    def configured(self) -> bool:
        return self._configured

    # -------------- ThreadedStream hooks ----------------

    def _open(self) -> bool:
        device = resolve_port(self.port)
        if device is None:
            log.error("USB Port has not been properly set")
            return False
        if not self.pins:
            log.error("Pin has not been properly set")
            return False

        factory = self._board_factory
        if factory is None:
            pyfirmata2, _ = optional_import("pyfirmata2")
            factory = pyfirmata2.Arduino
        try:
            self._board = factory(device)
        except serial.SerialException as e:
            log.error("Could not connect to Firmata board on %s: %s", device, e)
            return False
        n_analog = len(self._board.analog)
        bad = [pin for pin in self.pins if not 0 <= pin < n_analog]
        if bad:
            log.error("Analog pin(s) %s not on the board (it has %d)", bad, n_analog)
            self._close()
            return False
        self._configured = False
        return True

    def _run(self) -> None:
        log.info("Firmata board will be polled every %d ms", int(self.update_interval * 1000))
        while self.has_started:
            time.sleep(self.update_interval)
            try:
                self._pump()
            except serial.SerialException as e:
                log.error("Error reading from Firmata board: %s", e)
                continue

            if self._configured:
                self._emit(self._read_pins())
            elif self._board.get_firmata_version() is not None:
                log.info("Configuring Arduino.")
                for pin in self.pins:
                    self._board.analog[pin].enable_reporting()
                self._configured = True

    def _close(self) -> None:
        board, self._board = self._board, None
        if board is None:
            return
        try:
            board.exit()
        except serial.SerialException as e:
            log.warning("Error closing Firmata board: %s", e)

    # -------------- internals ----------------

    def _pump(self) -> None:
        board = self._board
        while board.bytes_available():
            board.iterate()

    def _read_pins(self) -> np.ndarray:
        raw = np.empty(len(self.pins), dtype=np.float64)
        for i in range(len(self.pins)):
            value = self._board.analog[self.pins[i]].read()
            raw[i] = np.nan if value is None else float(value) * ANALOG_FULL_SCALE
        return np.atleast_2d(np.asarray(self.normalize(raw), dtype=np.float64))
