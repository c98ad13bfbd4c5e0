from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Sequence
import threading

import numpy as np

from smartsensors.logging import get_logger
from smartsensors.processing._normalizers import (
    Normalizer,
    ScalarNormalizer,
    VectorNormalizer,
    as_normalizer,
)

log = get_logger("interface")

DataReadyCallback = Callable[[np.ndarray], None]


class IStream(ABC):
    """
    Acquisition contract shared by every input stream.

    A stream produces frames, 2-D float arrays shaped (rows, dims), and hands
    each complete frame to a single registered data-ready callback. The
    callback runs on whichever thread produced the frame (acquisition thread
    or audio driver thread), so it must return quickly.

    Parameters
    ----------
    normalizer : callable | ScalarNormalizer | VectorNormalizer | None
        Normalizer injected at construction. A bare callable is applied
        element-wise. ``use_normalizer`` / ``use_vector_normalizer`` replace it.
    """

    def __init__(self, normalizer=None) -> None:
        self._running = threading.Event()
        self._data_ready_callback: Optional[DataReadyCallback] = None
        self._normalizer: Normalizer = as_normalizer(normalizer)
        self._labels: List[str] = []

    # -------------- lifecycle ----------------

    @abstractmethod
    def start(self) -> None:
        ...

    @abstractmethod
    def stop(self) -> None:
        ...

    @property
    def has_started(self) -> bool:
        return self._running.is_set()

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()

    # -------------- shape / metadata ----------------

    @abstractmethod
    def get_num_input_dimensions(self) -> int:
        ...

    def get_num_output_dimensions(self) -> int:
        return self.get_num_input_dimensions()

    def set_labels_for_all_dimensions(self, labels: Sequence[str]) -> None:
        labels = [str(l) for l in labels]
        if len(labels) != self.get_num_output_dimensions():
            log.warning(
                "Ignoring %d labels for a stream with %d dimensions",
                len(labels), self.get_num_output_dimensions(),
            )
            return
        self._labels = labels

    def get_labels(self) -> List[str]:
        return list(self._labels)

    # -------------- normalization ----------------

    def use_normalizer(self, fn: Callable[[float], float]) -> None:
        """Register a scalar normalizer applied to every element."""
        self._normalizer = ScalarNormalizer(fn)

    def use_vector_normalizer(self, fn: Callable[[np.ndarray], Sequence[float]]) -> None:
        """Register a normalizer that maps the whole sample vector."""
        self._normalizer = VectorNormalizer(fn)

    @property
    def normalizer(self) -> Normalizer:
        return self._normalizer

    def normalize(self, sample) -> np.ndarray:
        return self._normalizer(sample)

    # -------------- delivery ----------------

    def on_data_ready(self, callback: Optional[DataReadyCallback]) -> None:
        """Register the single frame sink (``None`` unregisters)."""
        self._data_ready_callback = callback

    def _emit(self, frame: np.ndarray) -> None:
        callback = self._data_ready_callback
        if callback is None:
            return
        try:
            callback(frame)
        except Exception:
            log.exception("Data-ready callback failed; frame dropped")


class ThreadedStream(IStream):
    """
    IStream that owns exactly one acquisition thread.

    Subclasses implement ``_open`` (return False to abort ``start``),
    ``_run`` (the acquisition loop, which must return once ``has_started`` is
    cleared) and ``_close``.
    """

    thread_name = "IStream"

    def __init__(self, normalizer=None) -> None:
        super().__init__(normalizer=normalizer)
        self._thread: Optional[threading.Thread] = None
        self._lifecycle_lock = threading.Lock()

    def start(self) -> None:
        with self._lifecycle_lock:
            if self.has_started:
                return
            if not self._open():
                return
            self._running.set()
            self._thread = threading.Thread(target=self._run, name=self.thread_name, daemon=True)
            self._thread.start()

    def stop(self) -> None:
        with self._lifecycle_lock:
            if not self.has_started and self._thread is None:
                return
            self._running.clear()
            thread, self._thread = self._thread, None
            if thread is not None and thread is not threading.current_thread():
                thread.join()
            self._close()

    def is_alive(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    @abstractmethod
    def _open(self) -> bool:
        ...

    @abstractmethod
    def _run(self) -> None:
        ...

    @abstractmethod
    def _close(self) -> None:
        ...
