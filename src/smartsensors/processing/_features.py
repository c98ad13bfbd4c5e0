from __future__ import annotations

from collections import deque

import numpy as np


class TimeDomainFeatures:
    """
    Windowed time-domain features over a rolling buffer.

    The last ``buffer_length`` samples are split into ``num_frames`` equal
    segments (oldest first). For every dimension and every segment the enabled
    features are emitted in the order mean, standard deviation, euclidean norm,
    RMS, so the output width is ``num_dimensions * num_frames * n_enabled``.

    Until the buffer is full ``is_ready`` is False and ``process`` returns
    zeros.

    Parameters
    ----------
    buffer_length : int
        Samples kept in the rolling buffer; must be divisible by num_frames.
    num_frames : int
        Number of segments the buffer is split into.
    num_dimensions : int
        Width of each input sample.
    offset_input : bool
        Subtract the oldest buffered sample before computing features.
    """

    def __init__(
        self,
        buffer_length: int = 100,
        num_frames: int = 10,
        num_dimensions: int = 1,
        offset_input: bool = False,
        use_mean: bool = True,
        use_std_dev: bool = True,
        use_euclidean_norm: bool = True,
        use_rms: bool = True,
    ) -> None:
        buffer_length, num_frames = int(buffer_length), int(num_frames)
        if num_frames < 1 or buffer_length < num_frames:
            raise ValueError("buffer_length must be >= num_frames >= 1")
        if buffer_length % num_frames:
            raise ValueError("buffer_length must be divisible by num_frames")
        self.buffer_length = buffer_length
        self.num_frames = num_frames
        self.num_input_dimensions = int(num_dimensions)
        self.offset_input = bool(offset_input)
        self.use_mean = bool(use_mean)
        self.use_std_dev = bool(use_std_dev)
        self.use_euclidean_norm = bool(use_euclidean_norm)
        self.use_rms = bool(use_rms)

        n_enabled = sum((self.use_mean, self.use_std_dev, self.use_euclidean_norm, self.use_rms))
        if n_enabled == 0:
            raise ValueError("At least one feature must be enabled")
        self.num_output_dimensions = self.num_input_dimensions * self.num_frames * n_enabled
        self._buf: deque = deque(maxlen=self.buffer_length)
        self._features = np.zeros(self.num_output_dimensions)

    @property
    def is_ready(self) -> bool:
        return len(self._buf) == self.buffer_length

    def reset(self) -> None:
        self._buf.clear()
        self._features = np.zeros(self.num_output_dimensions)

    def process(self, x) -> np.ndarray:
        x = np.asarray(x, dtype=np.float64).ravel()
        if x.size != self.num_input_dimensions:
            raise ValueError(f"Expected {self.num_input_dimensions} values, got {x.size}")
        self._buf.append(x)
        if self.is_ready:
            self._features = self._compute(np.stack(self._buf))
        return self._features.copy()

    __call__ = process

    def _compute(self, buf: np.ndarray) -> np.ndarray:
        # buf: (buffer_length, dims)
        if self.offset_input:
            buf = buf - buf[0]
        frames = buf.reshape(self.num_frames, -1, buf.shape[1])  # (frames, frame_len, dims)
        per_feature = []
        if self.use_mean:
            per_feature.append(frames.mean(axis=1))
        if self.use_std_dev:
            per_feature.append(frames.std(axis=1, ddof=1) if frames.shape[1] > 1 else np.zeros(frames.shape[::2]))
        if self.use_euclidean_norm:
            per_feature.append(np.sqrt(np.sum(frames ** 2, axis=1)))
        if self.use_rms:
            per_feature.append(np.sqrt(np.mean(frames ** 2, axis=1)))
        # (n_enabled, frames, dims) -> dims-major, then frames, then feature
        stacked = np.stack(per_feature)
        return stacked.transpose(2, 1, 0).ravel()
