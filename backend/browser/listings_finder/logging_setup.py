from __future__ import annotations

import datetime
import logging
import pathlib

from .config import get_config

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def init_service_logger(name: str = "listings_finder") -> logging.Logger:
    """Initialise the service logger with a console handler and a dated log file."""
    config = get_config()
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    try:
        base_dir = pathlib.Path(config.system.log_root) / "listings_finder"
        base_dir.mkdir(parents=True, exist_ok=True)
        today = datetime.date.today().isoformat()
        handlers.append(logging.FileHandler(base_dir / f"{today}.log"))
    except OSError as e:
        logger.warning(f"⚠️ File logging disabled ({config.system.log_root}): {e}")

    logger.setLevel(getattr(logging, config.system.log_level, logging.INFO))
    formatter = logging.Formatter(LOG_FORMAT)
    for h in handlers:
        h.setFormatter(formatter)
        logger.addHandler(h)

    return logger
