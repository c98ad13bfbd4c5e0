"""
Helpers to keep device drivers out of the import path until a stream needs them.

Usage pattern:

    from smartsensors._optional import optional_import

    sd, _ = optional_import("sounddevice")  # raises a clean ImportError
    firmata, have_firmata = optional_import("pyfirmata2", allow_none=True)

sounddevice loads the PortAudio shared library at import time, so it is only
imported when an AudioStream actually opens the sound card.
"""

from __future__ import annotations

from importlib import import_module
from typing import Tuple, Any


def optional_import(modname: str, *, allow_none: bool = False) -> Tuple[Any, bool]:
    """
    Attempt to import `modname`. Return (module_or_None, available_flag).

    If allow_none=False and the import fails, raises ImportError with a friendly message.
    """
    try:
        mod = import_module(modname)
        return mod, True
    except Exception as e:  # pragma: no cover - env dependent
        if allow_none:
            return None, False
        raise ImportError(
            f"Device dependency '{modname}' could not be loaded. "
            f"Install it (pip install smartsensors) and make sure its system "
            f"library is present (PortAudio for sounddevice). Original error: {e}"
        )
