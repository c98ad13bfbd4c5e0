"""
Configuration utilities: ``key=value`` settings files and user setup modules.
"""
from __future__ import annotations

import importlib.util
import os
from pathlib import Path
from types import ModuleType
from typing import Dict, Any


def _coerce(value: str):
    if value.lower() in ('true', 'false'):
        return value.lower() == 'true'
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        return value


def load_simple_config(config_path: Path | str) -> Dict[str, Any]:
    config = {}
    config_path = Path(config_path)

    if not config_path.exists():
        return config

    with open(config_path, 'r', encoding='utf-8') as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith('#') and '=' in line:
                key, value = line.split('=', 1)
                config[key.strip()] = _coerce(value.strip())
    return config


def save_simple_config(config: Dict[str, Any], config_path: Path | str, header: str = "Configuration File"):
    config_path = Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, 'w', encoding='utf-8') as f:
        f.write(f"# {header}\n")
        f.write("# Automatically generated - edit as needed\n\n")
        for key, value in config.items():
            if isinstance(value, bool):
                value = str(value).lower()
            f.write(f"{key}={value}\n")


def load_user_config(path: Path | str) -> ModuleType:
    """
    Import a user setup module from a file path.

    The module must define ``setup(session)``; it is where a deployment picks
    its stream, normalizer, pipeline, calibration steps and tuneables.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"User config not found: {path}")
    name = f"smartsensors_user_{path.stem}"
    spec = importlib.util.spec_from_file_location(name, os.fspath(path))
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot import user config {path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    if not callable(getattr(module, "setup", None)):
        raise AttributeError(f"{path} must define setup(session)")
    return module


def tuneables_path(user_config: Path | str) -> Path:
    """Settings file stored beside a user config: ``foo.py`` -> ``foo.cfg``."""
    return Path(user_config).with_suffix(".cfg")
