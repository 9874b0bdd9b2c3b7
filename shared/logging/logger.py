import logging
import os
from datetime import datetime
from pathlib import Path

LOG_DIR = Path(os.getenv("AD2DC_LOG_DIR", "logs"))
LOG_DIR.mkdir(parents=True, exist_ok=True)

_LOGGERS = {}


def get_logger(
    name: str,
    *,
    runtime: str = "ad2dc",
) -> logging.Logger:
    """
    Create or retrieve a named logger.

    Parameters:
    - name: logger namespace (e.g. core.bridge, dartcounter.consumer)
    - runtime: log file prefix (ad2dc | bridge_ctl)

    Producer and consumer run as separate processes against the same
    working directory, so the pid is part of the log file name.
    """
    cache_key = f"{runtime}:{name}"
    if cache_key in _LOGGERS:
        return _LOGGERS[cache_key]

    logger = logging.getLogger(cache_key)
    logger.setLevel(logging.DEBUG)

    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    )

    # ------------------------------
    # Console handler
    # ------------------------------
    console = logging.StreamHandler()
    console.setFormatter(formatter)
    logger.addHandler(console)

    # ------------------------------
    # File handler (one per run)
    # ------------------------------
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    logfile = LOG_DIR / f"{runtime}-{os.getpid()}-{timestamp}.log"

    file_handler = logging.FileHandler(logfile, encoding="utf-8")
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    logger.propagate = False
    _LOGGERS[cache_key] = logger

    return logger
