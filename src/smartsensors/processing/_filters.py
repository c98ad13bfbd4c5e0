from __future__ import annotations

from collections import deque

import numpy as np
from scipy.signal import butter, sosfilt, sosfilt_zi


class MovingAverageFilter:
    """
    Per-dimension moving average over the last ``window_size`` samples.

    During warm-up the mean covers however many samples have arrived.
    """

    def __init__(self, window_size: int = 5, num_dimensions: int = 1) -> None:
        if int(window_size) < 1:
            raise ValueError("window_size must be >= 1")
        if int(num_dimensions) < 1:
            raise ValueError("num_dimensions must be >= 1")
        self.window_size = int(window_size)
        self.num_input_dimensions = int(num_dimensions)
        self.num_output_dimensions = int(num_dimensions)
        self._buf: deque = deque(maxlen=self.window_size)

    def reset(self) -> None:
        self._buf.clear()

    def process(self, x) -> np.ndarray:
        x = np.asarray(x, dtype=np.float64).ravel()
        if x.size != self.num_input_dimensions:
            raise ValueError(f"Expected {self.num_input_dimensions} values, got {x.size}")
        self._buf.append(x)
        return np.mean(np.stack(self._buf), axis=0)

    __call__ = process


class LowPassFilter:
    """
    Stateful Butterworth low-pass applied one sample at a time.

    Parameters
    ----------
    cutoff_hz : float
        Cutoff frequency in Hz; must lie below fs / 2.
    fs : float
        Rate at which samples arrive.
    num_dimensions : int
        Channels filtered independently, each with its own state.
    order : int
        Butterworth order.
    """

    def __init__(self, cutoff_hz: float, fs: float, num_dimensions: int = 1, order: int = 2) -> None:
        fs = float(fs)
        if fs <= 0:
            raise ValueError("Sampling rate fs must be > 0.")
        if not (0 < float(cutoff_hz) < fs / 2):
            raise ValueError("cutoff_hz must be in (0, fs/2)")
        self.cutoff_hz = float(cutoff_hz)
        self.fs = fs
        self.order = int(order)
        self.num_input_dimensions = int(num_dimensions)
        self.num_output_dimensions = int(num_dimensions)
        self._sos = butter(self.order, self.cutoff_hz, btype="low", fs=self.fs, output="sos")
        self._zi = None

    def reset(self) -> None:
        self._zi = None

    def process(self, x) -> np.ndarray:
        x = np.asarray(x, dtype=np.float64).ravel()
        if x.size != self.num_input_dimensions:
            raise ValueError(f"Expected {self.num_input_dimensions} values, got {x.size}")
        if self._zi is None:
            # start settled at the first sample to avoid a step transient
            zi_single = sosfilt_zi(self._sos)
            self._zi = zi_single[None, :, :] * x[:, None, None]
        y = np.empty_like(x)
        for c in range(x.size):
            out, self._zi[c] = sosfilt(self._sos, x[c:c + 1], zi=self._zi[c])
            y[c] = out[0]
        return y

    __call__ = process
