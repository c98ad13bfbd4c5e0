from __future__ import annotations

from typing import Any, Callable, Optional

import numpy as np

from smartsensors._optional import optional_import
from smartsensors.logging import get_logger
from .base import IStream

log = get_logger("interface.audio")

SAMPLE_RATE = 44100
BUFFER_SIZE = 256
N_INPUT_CHANNELS = 2


class AudioStream(IStream):
    """
    Sound-card input. Each driver buffer becomes one frame holding the first
    (left) channel thinned by ``downsample``: shape (blocksize // downsample, 1).

    There is no acquisition thread; frames are emitted on the PortAudio
    callback thread, so the data-ready callback must not block.

    Parameters
    ----------
    downsample : int
        Keep every ``downsample``-th sample, starting at index 0.
    stream_factory : callable
        Builds the input stream; defaults to ``sounddevice.InputStream``.
    """

    def __init__(
        self,
        downsample: int = 1,
        sample_rate: int = SAMPLE_RATE,
        buffer_size: int = BUFFER_SIZE,
        device: Optional[Any] = None,
        stream_factory: Optional[Callable[..., Any]] = None,
        normalizer=None,
    ) -> None:
        super().__init__(normalizer=normalizer)
        if int(downsample) < 1:
            raise ValueError("downsample must be >= 1")
        self._downsample = int(downsample)
        self.sample_rate = int(sample_rate)
        self.buffer_size = int(buffer_size)
        self.device = device
        self._stream_factory = stream_factory
        self._stream = None

    @property
    def downsample(self) -> int:
        return self._downsample

    def get_num_input_dimensions(self) -> int:
        return 1

    def start(self) -> None:
        if self.has_started:
            return
        if self._stream is None:
            self._stream = self._open_stream()
        self._stream.start()
        self._running.set()

    def stop(self) -> None:
        if not self.has_started:
            return
        self._stream.stop()
        self._running.clear()

    def close(self) -> None:
        self.stop()
        if self._stream is not None:
            self._stream.close()
            self._stream = None

    def audio_in(self, indata: np.ndarray, frames: int, time_info=None, status=None) -> None:
        """PortAudio callback: ``indata`` is (frames, channels) float32."""
        if status:
            log.debug("Audio driver status: %s", status)
        n = frames // self._downsample
        samples = indata[: n * self._downsample : self._downsample, 0]
        self._emit(np.asarray(samples, dtype=np.float64).reshape(n, 1))

    def _open_stream(self):
        factory = self._stream_factory
        if factory is None:
            sd, _ = optional_import("sounddevice")
            factory = sd.InputStream
        log.info(
            "Opening audio input: %d Hz, %d samples per buffer, downsample %d",
            self.sample_rate, self.buffer_size, self._downsample,
        )
        return factory(
            samplerate=self.sample_rate,
            blocksize=self.buffer_size,
            channels=N_INPUT_CHANNELS,
            dtype="float32",
            device=self.device,
            callback=self.audio_in,
        )
