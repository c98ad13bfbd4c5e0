"""
smartsensors: capture sensor data, train gesture classifiers and predict live.

This package includes modules for:
- Acquiring frames from audio, raw serial, ASCII serial and Firmata devices
- Normalizing, filtering and extracting time-domain features in real time
- Training and running gesture recognition pipelines
- A Qt front-end driven by a small user setup module
"""

__version__ = "0.1.0"
__license__ = "MIT"
__description__ = "Sensor acquisition and real-time gesture recognition"

import importlib as _importlib

submodules = [
    'applications',
    'interface',
    'io',
    'ml',
    'processing',
]

__all__ = submodules + [
    '__version__',
]


def __dir__():
    return __all__


def __getattr__(name):
    if name in submodules:
        return _importlib.import_module(f'smartsensors.{name}')
    raise AttributeError(f"module 'smartsensors' has no attribute {name!r}")
