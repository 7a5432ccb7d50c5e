import logging
import sys


def setup_logger(name: str = "waterops", level=logging.INFO):
    """
    Sets up the service logger that outputs to Console (stdout).
    Module loggers (``logging.getLogger(__name__)``) under ``waterops``
    propagate here, so this only needs to run once at startup.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Avoid duplicate logs if setup is called multiple times
    if logger.handlers:
        return logger

    # Format: timestamp - component - level - message
    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    return logger
