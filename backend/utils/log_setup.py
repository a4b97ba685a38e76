import logging
from typing import Optional

LOGGER_NAME = "linguist"
LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

_configured = False


def setup_logging(debug: bool = False) -> logging.Logger:
    """Attach a single stream handler to the application logger."""
    global _configured
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)

    if not _configured:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        _configured = True

    return logger


def get_logger(area: Optional[str] = None) -> logging.Logger:
    if area:
        return logging.getLogger(f"{LOGGER_NAME}.{area}")
    return logging.getLogger(LOGGER_NAME)
