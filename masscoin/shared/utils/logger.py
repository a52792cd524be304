import logging
import os

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Module logger with a single stream handler; level from LOG_LEVEL"""
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter(fmt=os.getenv("LOG_FORMAT", DEFAULT_FORMAT))
    )
    logger.addHandler(handler)
    return logger
