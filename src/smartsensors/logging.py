from __future__ import annotations
import logging
from pathlib import Path
from typing import Optional

_LOGGER_NAME = "smartsensors"
_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure(level: str = "INFO", log_file: Optional[str] = None) -> logging.Logger:
    """
    Set up the ``smartsensors`` logger for the app: one console handler and,
    optionally, one file handler. Calling it again only changes the level
    (and adds the file handler if it is new).
    """
    logger = logging.getLogger(_LOGGER_NAME)
    formatter = logging.Formatter(_FORMAT)
    if not any(type(h) is logging.StreamHandler for h in logger.handlers):
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        logger.addHandler(console)
    if log_file is not None:
        path = str(Path(log_file).resolve())
        if not any(isinstance(h, logging.FileHandler) and h.baseFilename == path for h in logger.handlers):
            Path(path).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(path, encoding="utf-8")
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    return logger


def get_logger(child: Optional[str] = None) -> logging.Logger:
    """
    Namespaced logger, e.g. get_logger("interface.serial") -> "smartsensors.interface.serial"
    """
    name = _LOGGER_NAME if not child else f"{_LOGGER_NAME}.{child}"
    return logging.getLogger(name)
