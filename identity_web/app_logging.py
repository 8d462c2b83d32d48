"""Log handler setup."""

import logging
from pythonjsonlogger import jsonlogger


def setup_logger(level: int = logging.INFO, json: bool = False) -> None:
    """Attach a single stream handler to the root logger."""
    logger = logging.getLogger()
    for handler in list(logger.handlers):
        if getattr(handler, '_identity_web', False):
            logger.removeHandler(handler)

    log_handler = logging.StreamHandler()
    log_handler._identity_web = True  # type: ignore
    if json:
        formatter: logging.Formatter = jsonlogger.JsonFormatter(
            '%(asctime)s %(levelname)s %(name)s %(message)s',
            rename_fields={'levelname': 'level', 'asctime': 'timestamp'}
        )
    else:
        formatter = logging.Formatter(
            '%(asctime)s %(levelname)s %(name)s: %(message)s'
        )
    log_handler.setFormatter(formatter)
    logger.addHandler(log_handler)
    logger.setLevel(level)
