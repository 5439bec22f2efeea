import logging
import sys

ROOT_LOGGER = "journal_auth"
_FORMAT = "%(asctime)s level=%(levelname)s logger=%(name)s msg=%(message)s"


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach a single stream handler to the package logger.

    Safe to call more than once; later calls only adjust the level.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level.upper())
    if not any(getattr(h, "_journal_auth", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._journal_auth = True
        logger.addHandler(handler)
    return logger
