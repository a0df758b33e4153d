"""Application loggers under the ``receivables`` namespace.

``main.py`` applies ``LOGGING_CONFIG`` (third-party loggers, root handler)
and then calls ``setup_logging`` for our own namespace. Modules only ever
call ``get_logger(__name__)``.
"""

import logging
import sys

NAMESPACE = "receivables"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-30s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_HANDLER_NAME = "receivables-console"


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Attach the console handler to the namespace logger and set its level.

    Safe to call again (tests, uvicorn reload): the handler is attached once
    and later calls only change the level. An unknown level name falls back
    to INFO.
    """
    logger = logging.getLogger(NAMESPACE)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if not any(h.get_name() == _HANDLER_NAME for h in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.set_name(_HANDLER_NAME)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)

    # The root handler from LOGGING_CONFIG would print every line twice
    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    """``get_logger("app.services.store")`` -> ``receivables.services.store``."""
    if name.startswith("app."):
        name = name[len("app."):]
    return logging.getLogger(f"{NAMESPACE}.{name}")
