from __future__ import annotations

import socket
import threading
from typing import Callable, Optional, Sequence

from smartsensors.logging import get_logger

log = get_logger("interface.ostream")


class TcpOStream:
    """
    Forward predicted class labels to a TCP listener as short strings.

    Label ``k`` (1-based) is sent as ``label_strings[k - 1]``; the null label
    0 and labels without a mapping send nothing. Typical use is driving a
    key-press helper: ``TcpOStream("localhost", 5204, ["l", "r", " "])``.
    """

    def __init__(
        self,
        host: str,
        port: int,
        label_strings: Sequence[str],
        timeout: float = 1.0,
        connect: Optional[Callable[..., socket.socket]] = None,
    ) -> None:
        self.host = str(host)
        self.port = int(port)
        self.label_strings = [str(s) for s in label_strings]
        self.timeout = float(timeout)
        self._connect = connect or socket.create_connection
        self._sock: Optional[socket.socket] = None
        self._lock = threading.Lock()

    @property
    def connected(self) -> bool:
        return self._sock is not None

    def start(self) -> bool:
        with self._lock:
            return self._ensure_connected()

    def send(self, label: int) -> bool:
        """Send the string mapped to ``label``. Returns True if bytes were written."""
        label = int(label)
        if label < 1 or label > len(self.label_strings):
            return False
        payload = self.label_strings[label - 1].encode("utf-8")
        with self._lock:
            if not self._ensure_connected():
                return False
            try:
                self._sock.sendall(payload)
            except OSError as e:
                log.error("Lost connection to %s:%d: %s", self.host, self.port, e)
                self._drop()
                return False
        return True

    def close(self) -> None:
        with self._lock:
            self._drop()

    def _ensure_connected(self) -> bool:
        if self._sock is not None:
            return True
        try:
            self._sock = self._connect((self.host, self.port), timeout=self.timeout)
        except OSError as e:
            log.error("Could not connect to %s:%d: %s", self.host, self.port, e)
            return False
        log.info("Output stream connected to %s:%d", self.host, self.port)
        return True

    def _drop(self) -> None:
        sock, self._sock = self._sock, None
        if sock is not None:
            try:
                sock.close()
            except OSError:
                pass
