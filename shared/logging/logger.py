import logging
import os
from datetime import datetime
from pathlib import Path

LOG_DIR = Path(os.getenv("TILERACE_LOG_DIR", "logs"))
LOG_LEVEL = os.getenv("TILERACE_LOG_LEVEL", "DEBUG").upper()
FILE_LOGGING = os.getenv("TILERACE_LOG_TO_FILE", "1").lower() in {"1", "true", "yes", "on"}

_LOGGERS = {}
_RUN_STAMP = datetime.now().strftime("%Y%m%d-%H%M%S")


def get_logger(
    name: str,
    *,
    runtime: str = "tilerace",
) -> logging.Logger:
    """
    Create or retrieve a named logger.

    Parameters:
    - name: logger namespace (e.g. core.race.store, discord.client)
    - runtime: log file prefix (tilerace | discord | observer)

    Every logger of one runtime writes to the same per-run file:
    logs/<runtime>-<YYYYmmdd-HHMMSS>.log
    """
    cache_key = f"{runtime}:{name}"
    if cache_key in _LOGGERS:
        return _LOGGERS[cache_key]

    logger = logging.getLogger(cache_key)
    logger.setLevel(getattr(logging, LOG_LEVEL, logging.DEBUG))

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
    # File handler (one per run, per runtime)
    # ------------------------------
    if FILE_LOGGING:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        logfile = LOG_DIR / f"{runtime}-{_RUN_STAMP}.log"

        file_handler = logging.FileHandler(logfile, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False
    _LOGGERS[cache_key] = logger

    return logger
