from __future__ import annotations

import logging
from typing import Callable, Optional

from .constants import LOGGER_NAME


def get_bridge_logger() -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("[%(asctime)s] %(levelname)s %(message)s", "%Y-%m-%d %H:%M:%S"))
        handler.setLevel(logging.INFO)
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
        logger.propagate = False
    return logger


def compose_log(log_callback: Optional[Callable[[str], None]]) -> Callable[[str], None]:
    """Return a logger function that mirrors messages to ``log_callback``.

    Errors raised by the callback are logged and never reach the caller.
    """
    logger = get_bridge_logger()

    def _log(message: str) -> None:
        text = str(message)
        if log_callback is not None:
            try:
                log_callback(text)
            except Exception:
                logger.exception("Bridge log callback raised an error.")
        logger.info(text)

    return _log
