from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Union

FILE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
CONSOLE_FORMAT = "%(levelname)s %(message)s"


def resolve_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).strip().upper())
    if not isinstance(value, int):
        raise ValueError(f"unknown log level: {level!r}")
    return value


def setup_logging(log_dir: str = "logs", *, level: Union[int, str] = logging.INFO, filename: str = "erp.log") -> logging.Logger:
    """
    Configure the `erp` logger: a rotating file in `log_dir` plus console output.

    Calling it again adds no duplicate handlers; it only applies the new level.
    The host calls it once before config is read and again with the
    configured `log_level`.
    """
    os.makedirs(log_dir, exist_ok=True)
    lvl = resolve_level(level)

    logger = logging.getLogger("erp")
    logger.setLevel(lvl)
    logger.propagate = False

    file_path = os.path.abspath(os.path.join(log_dir, filename))
    if not any(isinstance(h, RotatingFileHandler) and h.baseFilename == file_path for h in logger.handlers):
        fh = RotatingFileHandler(file_path, maxBytes=1_000_000, backupCount=5, encoding="utf-8")
        fh.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(fh)

    # FileHandler subclasses StreamHandler; match the console handler exactly
    if not any(type(h) is logging.StreamHandler for h in logger.handlers):
        sh = logging.StreamHandler()
        sh.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        logger.addHandler(sh)

    return logger


def get_logger(name: str = "modules") -> logging.Logger:
    """Child of the `erp` logger; handlers come from setup_logging()."""
    return logging.getLogger(f"erp.{name}")
