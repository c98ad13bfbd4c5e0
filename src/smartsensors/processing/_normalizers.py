"""
Normalizers map raw stream samples to the values the pipeline works with.

A stream holds exactly one normalizer. ``ScalarNormalizer`` applies a
float -> float function to every element, ``VectorNormalizer`` maps the whole
sample vector at once (and may change its width).
"""
from __future__ import annotations

from typing import Callable, Sequence, Union

import numpy as np

ScalarFn = Callable[[float], float]
VectorFn = Callable[[np.ndarray], Sequence[float]]


class IdentityNormalizer:
    """Returns the input unchanged (as a float array)."""

    def __call__(self, sample) -> np.ndarray:
        return np.asarray(sample, dtype=np.float64)

    def __repr__(self) -> str:
        return "IdentityNormalizer()"


class ScalarNormalizer:
    """Apply ``fn`` element-wise."""

    def __init__(self, fn: ScalarFn) -> None:
        if not callable(fn):
            raise ValueError("ScalarNormalizer expects a callable")
        self.fn = fn

    def __call__(self, sample) -> np.ndarray:
        x = np.asarray(sample, dtype=np.float64)
        out = np.fromiter((self.fn(float(v)) for v in x.ravel()), dtype=np.float64, count=x.size)
        return out.reshape(x.shape)

    def __repr__(self) -> str:
        return f"ScalarNormalizer({getattr(self.fn, '__name__', self.fn)!r})"


class VectorNormalizer:
    """Apply ``fn`` to the whole sample vector."""

    def __init__(self, fn: VectorFn) -> None:
        if not callable(fn):
            raise ValueError("VectorNormalizer expects a callable")
        self.fn = fn

    def __call__(self, sample) -> np.ndarray:
        x = np.asarray(sample, dtype=np.float64)
        return np.asarray(self.fn(x), dtype=np.float64)

    def __repr__(self) -> str:
        return f"VectorNormalizer({getattr(self.fn, '__name__', self.fn)!r})"


Normalizer = Union[IdentityNormalizer, ScalarNormalizer, VectorNormalizer]


def as_normalizer(obj) -> Normalizer:
    """Coerce ``None``, a normalizer object or a plain callable into a normalizer.

    Plain callables are treated as scalar (element-wise) functions.
    """
    if obj is None:
        return IdentityNormalizer()
    if isinstance(obj, (IdentityNormalizer, ScalarNormalizer, VectorNormalizer)):
        return obj
    return ScalarNormalizer(obj)


# ---------- common sensor conversions ----------

def analog_read_to_voltage(value: float, vref: float = 5.0, resolution: int = 1024) -> float:
    """Convert a raw ADC count to volts."""
    return value / float(resolution) * vref


def normalize_adxl335(value: float) -> float:
    """
    ADXL335 accelerometer axis on a 5 V, 10-bit ADC: ~1.66 V at 0 g, 0.333 V/g.

    Returns acceleration in g.
    """
    return (analog_read_to_voltage(value) - 1.66) / 0.333


def normalize_arduino101(value: float) -> float:
    """Arduino 101 reports 12-bit readings."""
    return value / 4096.0


def unit_magnitude(sample: np.ndarray) -> np.ndarray:
    """Divide each dimension by the vector magnitude (zero vectors pass through)."""
    x = np.asarray(sample, dtype=np.float64)
    magnitude = float(np.linalg.norm(x))
    if magnitude == 0.0:
        return x
    return x / magnitude
