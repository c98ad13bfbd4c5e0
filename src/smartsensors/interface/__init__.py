from .base import IStream, ThreadedStream
from ._mailbox import FrameMailbox
from ._audio import AudioStream
from ._serial import (
    SerialStream,
    ASCIISerialStream,
    list_serial_devices,
    resolve_port,
    read_interval_ms,
    parse_ascii_line,
)
from ._firmata import FirmataStream
from ._ostream import TcpOStream

__all__ = [
    "IStream",
    "ThreadedStream",
    "FrameMailbox",
    "AudioStream",
    "SerialStream",
    "ASCIISerialStream",
    "FirmataStream",
    "TcpOStream",
    "list_serial_devices",
    "resolve_port",
    "read_interval_ms",
    "parse_ascii_line",
]
