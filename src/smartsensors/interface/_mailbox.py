from __future__ import annotations

import threading
from collections import deque
from typing import List, Optional

import numpy as np


POLICIES = ("drop_oldest", "drop_newest", "block")


class FrameMailbox:
    """
    Bounded hand-off between a stream's producer thread and the UI thread.

    Parameters
    ----------
    maxsize : int
        Number of frames held before the overflow policy applies.
    policy : str
        "drop_oldest" discards the oldest pending frame (``maxsize=1`` gives
        last-write-wins), "drop_newest" discards the incoming frame, "block"
        makes the producer wait for room.
    """

    def __init__(self, maxsize: int = 64, policy: str = "drop_oldest") -> None:
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")
        if policy not in POLICIES:
            raise ValueError(f"Unknown policy {policy!r}; expected one of {POLICIES}")
        self.maxsize = int(maxsize)
        self.policy = policy
        self._frames: deque = deque()
        self._cond = threading.Condition()
        self.dropped = 0

    def put(self, frame: np.ndarray, timeout: Optional[float] = None) -> bool:
        """Queue a frame. Returns False when the frame itself was discarded."""
        with self._cond:
            if len(self._frames) >= self.maxsize:
                if self.policy == "drop_newest":
                    self.dropped += 1
                    return False
                if self.policy == "drop_oldest":
                    self._frames.popleft()
                    self.dropped += 1
                else:
                    if not self._cond.wait_for(lambda: len(self._frames) < self.maxsize, timeout):
                        self.dropped += 1
                        return False
            self._frames.append(frame)
            self._cond.notify_all()
            return True

    def get(self, timeout: Optional[float] = None) -> Optional[np.ndarray]:
        """Pop the oldest frame, waiting up to ``timeout`` seconds; None if empty."""
        with self._cond:
            if not self._cond.wait_for(lambda: len(self._frames) > 0, timeout):
                return None
            frame = self._frames.popleft()
            self._cond.notify_all()
            return frame

    def drain(self) -> List[np.ndarray]:
        """Return every pending frame in arrival order and empty the mailbox."""
        with self._cond:
            frames = list(self._frames)
            self._frames.clear()
            self._cond.notify_all()
            return frames

    def clear(self) -> None:
        with self._cond:
            self._frames.clear()
            self._cond.notify_all()

    def __len__(self) -> int:
        with self._cond:
            return len(self._frames)
