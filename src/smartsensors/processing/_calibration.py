from __future__ import annotations

from typing import Callable, List, Optional, Union

import numpy as np

from smartsensors.logging import get_logger

log = get_logger("processing.calibration")


class CalibrateProcess:
    """
    One calibration step: the user holds the sensor in a known state while
    samples are collected, then ``callback(data)`` derives constants from the
    (rows, dims) matrix.
    """

    def __init__(self, name: str, description: str, callback: Callable[[np.ndarray], None]) -> None:
        self.name = str(name)
        self.description = str(description)
        self.callback = callback
        self.data: Optional[np.ndarray] = None

    @property
    def done(self) -> bool:
        return self.data is not None

    def set_data(self, data) -> None:
        data = np.atleast_2d(np.asarray(data, dtype=np.float64))
        if data.shape[0] == 0:
            raise ValueError(f"Calibration '{self.name}' received no samples")
        self.callback(data)
        self.data = data
        log.info("Calibration '%s' done with %d samples", self.name, data.shape[0])

    def reset(self) -> None:
        self.data = None


class Calibrator:
    """Ordered calibration steps plus the function that applies their result."""

    def __init__(self, calibrate_function: Optional[Callable] = None) -> None:
        self._calibrate_function = calibrate_function
        self.processes: List[CalibrateProcess] = []

    def set_calibrate_function(self, fn: Callable) -> None:
        self._calibrate_function = fn

    def add_calibrate_process(
        self,
        name_or_process: Union[str, CalibrateProcess],
        description: str = "",
        callback: Optional[Callable[[np.ndarray], None]] = None,
    ) -> CalibrateProcess:
        if isinstance(name_or_process, CalibrateProcess):
            process = name_or_process
        else:
            if callback is None:
                raise ValueError("A calibration callback is required")
            process = CalibrateProcess(name_or_process, description, callback)
        self.processes.append(process)
        return process

    def process(self, index: int) -> CalibrateProcess:
        return self.processes[index]

    def is_calibrated(self) -> bool:
        return all(p.done for p in self.processes)

    def reset(self) -> None:
        for p in self.processes:
            p.reset()

    def calibrate(self, sample) -> np.ndarray:
        sample = np.asarray(sample, dtype=np.float64)
        if self._calibrate_function is None:
            return sample
        return np.asarray(self._calibrate_function(sample), dtype=np.float64)
