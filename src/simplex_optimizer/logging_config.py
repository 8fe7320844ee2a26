import logging
import sys

LOG_FORMAT = "[%(asctime)s] [%(levelname)-8s] [%(module)-15s] - %(message)s"


def configure_logging(level: int = logging.INFO) -> logging.Logger:
    """
    Attach a stdout handler to the package logger.
    Calling it again replaces the handler instead of stacking a second one.
    """
    logger = logging.getLogger("simplex_optimizer")
    logger.setLevel(level)

    if logger.hasHandlers():
        logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(handler)
    logger.propagate = False
    return logger
