"""Logging configuration for PRF cloud sync.

Console + plain log file + JSONL file of structured sync events.  Event
fields that look like credentials are masked before they reach any handler.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

LOGGER_NAME = "prf_sync"
LOG_FILE = "prf_sync.log"
JSONL_FILE = "prf_sync.jsonl"

_SECRET_KEYS = ("token", "secret", "password", "authorization")


class JsonlHandler(logging.Handler):
    """Appends one JSON object per record; ``event_data`` goes under "data"."""

    def __init__(self, path: str):
        super().__init__()
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        self.path = path

    def emit(self, record):
        try:
            entry = {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "message": record.getMessage(),
            }
            if hasattr(record, "event_data"):
                entry["data"] = record.event_data
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, default=str) + "\n")
        except Exception:
            self.handleError(record)


def setup_logging(log_dir: str = "./logs", level: str = "INFO",
                  console: bool = True) -> logging.Logger:
    """Configure the ``prf_sync`` logger. Safe to call more than once."""
    os.makedirs(log_dir, exist_ok=True)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if logger.handlers:
        return logger

    fmt = logging.Formatter(
        "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if console:
        ch = logging.StreamHandler(sys.stdout)
        ch.setLevel(logging.INFO)
        ch.setFormatter(fmt)
        logger.addHandler(ch)

    fh = logging.FileHandler(os.path.join(log_dir, LOG_FILE), encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(fmt)
    logger.addHandler(fh)

    jh = JsonlHandler(os.path.join(log_dir, JSONL_FILE))
    jh.setLevel(logging.DEBUG)
    logger.addHandler(jh)

    return logger


def redact(data: dict) -> dict:
    """Mask values whose key names a credential."""
    clean = {}
    for key, value in data.items():
        if any(marker in key.lower() for marker in _SECRET_KEYS):
            clean[key] = "***"
        elif isinstance(value, dict):
            clean[key] = redact(value)
        else:
            clean[key] = value
    return clean


def log_event(logger: logging.Logger, level: str, message: str, **data):
    """Log a sync event with structured fields (sheet, row, prf_no, ...)."""
    levelno = getattr(logging, level.upper(), logging.INFO)
    if not logger.isEnabledFor(levelno):
        return
    record = logger.makeRecord(
        name=logger.name,
        level=levelno,
        fn="",
        lno=0,
        msg=message,
        args=(),
        exc_info=None,
    )
    record.event_data = redact(data)
    logger.handle(record)
