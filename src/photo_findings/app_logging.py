"""Logging setup shared by the API process and the standalone worker."""

import logging

_APP_LOGGER = "photo_findings"
_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
# SDK loggers that emit a line per HTTP request at INFO.
_CHATTY_LOGGERS = ("httpx", "openai", "botocore", "boto3", "urllib3")


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach one stream handler to the app logger; repeat calls only relevel."""
    logger = logging.getLogger(_APP_LOGGER)
    logger.setLevel(level.upper())
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False
    return logger
