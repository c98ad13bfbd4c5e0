from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from smartsensors.interface import IStream, TcpOStream
from smartsensors.io import load_simple_config, load_user_config, save_simple_config, tuneables_path
from smartsensors.logging import get_logger
from smartsensors.ml import GestureRecognitionPipeline
from smartsensors.processing import Calibrator

log = get_logger("applications.session")


@dataclass
class Tuneable:
    """A user-adjustable parameter shown in the GUI. The default fixes the type."""
    name: str
    value: Any
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    description: str = ""

    def coerce(self, value):
        if isinstance(self.value, bool):
            if isinstance(value, str):
                return value.strip().lower() in ("1", "true", "yes", "on")
            return bool(value)
        if isinstance(self.value, int):
            value = int(round(float(value)))
        else:
            value = float(value)
        if self.minimum is not None:
            value = max(value, type(value)(self.minimum))
        if self.maximum is not None:
            value = min(value, type(value)(self.maximum))
        return value

    def set(self, value):
        self.value = self.coerce(value)
        return self.value


class Session:
    """
    What a user setup module configures.

    A setup module defines ``setup(session)`` and calls ``use_stream``,
    ``use_pipeline``, ``use_calibrator``, ``use_ostream`` and
    ``register_tuneable`` on it. Tuneables survive ``run_setup`` so a changed
    value is picked up the next time setup runs.
    """

    def __init__(self, setup: Optional[Callable[["Session"], None]] = None) -> None:
        self.stream: Optional[IStream] = None
        self.pipeline: Optional[GestureRecognitionPipeline] = None
        self.calibrator: Optional[Calibrator] = None
        self.ostreams: List[TcpOStream] = []
        self.tuneables: Dict[str, Tuneable] = {}
        self._setup = setup
        self.config_path: Optional[Path] = None

    @classmethod
    def from_config_file(cls, path) -> "Session":
        module = load_user_config(path)
        session = cls(setup=module.setup)
        session.config_path = Path(path)
        return session

    # -------------- setup surface ----------------

    def use_stream(self, stream: IStream) -> None:
        self.stream = stream

    def use_pipeline(self, pipeline: GestureRecognitionPipeline) -> None:
        self.pipeline = pipeline

    def use_calibrator(self, calibrator: Calibrator) -> None:
        self.calibrator = calibrator

    def use_ostream(self, ostream: TcpOStream) -> None:
        self.ostreams.append(ostream)

    def register_tuneable(self, name: str, default, minimum: Optional[float] = None,
                          maximum: Optional[float] = None, description: str = ""):
        """Declare a tuneable and return its current value (the default on first use)."""
        existing = self.tuneables.get(name)
        if existing is not None:
            existing.minimum, existing.maximum, existing.description = minimum, maximum, description
            return existing.set(existing.value)
        tuneable = Tuneable(name, default, minimum, maximum, description)
        tuneable.set(default)
        self.tuneables[name] = tuneable
        return tuneable.value

    def set_tuneable(self, name: str, value):
        if name not in self.tuneables:
            raise KeyError(f"Unknown tuneable {name!r}")
        return self.tuneables[name].set(value)

    def tuneable_values(self) -> Dict[str, Any]:
        return {name: t.value for name, t in self.tuneables.items()}

    # -------------- lifecycle ----------------

    def run_setup(self) -> None:
        """(Re)build stream, pipeline, calibrator and outputs from the setup function."""
        if self._setup is None:
            raise RuntimeError("Session has no setup function")
        self.close_outputs()
        self.stream = None
        self.pipeline = None
        self.calibrator = None
        self.ostreams = []
        self._setup(self)
        if self.stream is None:
            log.error("setup() did not call use_stream(); nothing to acquire")
        if self.pipeline is None:
            log.warning("setup() did not call use_pipeline(); training and prediction are disabled")

    def close_outputs(self) -> None:
        for ostream in self.ostreams:
            ostream.close()

    # -------------- persistence ----------------

    def save_tuneables(self, path=None) -> Optional[Path]:
        """Write tuneable values to ``path`` (default: ``<config>.cfg``)."""
        path = path or (tuneables_path(self.config_path) if self.config_path else None)
        if path is None:
            return None
        save_simple_config(self.tuneable_values(), path, header="Tuneables")
        return Path(path)

    def restore_tuneables(self, path=None) -> int:
        """Apply saved values to registered tuneables; unknown keys are ignored."""
        path = path or (tuneables_path(self.config_path) if self.config_path else None)
        if path is None:
            return 0
        n = 0
        for name, value in load_simple_config(path).items():
            if name not in self.tuneables:
                log.warning("Ignoring saved value for unknown tuneable '%s'", name)
                continue
            self.set_tuneable(name, value)
            n += 1
        return n


def load_session(config_path) -> Session:
    """Import a setup module, run it, and re-run it with any saved tuneables."""
    session = Session.from_config_file(config_path)
    session.run_setup()
    if session.restore_tuneables():
        session.run_setup()
    return session
