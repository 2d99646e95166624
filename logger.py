import logging
import sys

def setup_logger(name: str = "chancellor", level_name: str = "INFO"):
    """Configure the simulation logger with a configurable level."""
    level_map = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL
    }
    logger = logging.getLogger(name)

    if not logger.handlers:
        logger.setLevel(level_map.get(level_name.upper(), logging.INFO))
        handler = logging.StreamHandler(sys.stdout)
        formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s', datefmt='%H:%M:%S')
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def set_level(level_name: str, name: str = "chancellor"):
    """Change the level of an already configured logger."""
    logger = setup_logger(name)
    logger.setLevel(getattr(logging, level_name.upper(), logging.INFO))
    return logger
