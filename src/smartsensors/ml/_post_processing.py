from __future__ import annotations

import time
from typing import Callable, Optional

from ._classifiers import NULL_LABEL


class ClassLabelTimeoutFilter:
    """
    Suppress repeated triggers: once a non-null label passes, every label in
    the following ``timeout_ms`` milliseconds is replaced by the null label.
    A longer timeout filters more aggressively.
    """

    def __init__(self, timeout_ms: float = 500.0, clock: Optional[Callable[[], float]] = None) -> None:
        if timeout_ms < 0:
            raise ValueError("timeout_ms must be >= 0")
        self.timeout_ms = float(timeout_ms)
        self._clock = clock or time.monotonic
        self._last_trigger: Optional[float] = None

    def reset(self) -> None:
        self._last_trigger = None

    def process(self, label: int) -> int:
        label = int(label)
        now = self._clock()
        if self._last_trigger is not None and (now - self._last_trigger) * 1000.0 < self.timeout_ms:
            return NULL_LABEL
        if label != NULL_LABEL:
            self._last_trigger = now
        return label

    __call__ = process
