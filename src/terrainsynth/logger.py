import logging
import os
import sys
from datetime import datetime
from typing import Optional


def setup_logger(
    level: int = logging.INFO,
    log_dir: Optional[str] = None,
    log_name: str = "terrainsynth"
) -> logging.Logger:
    """
    Configure the ``terrainsynth`` logger.

    Writes to the console and, when ``log_dir`` is given, to a timestamped
    file in that directory. Module loggers (``terrainsynth.*``) inherit
    these handlers.

    Args:
        level: Logging level for the package logger and its handlers
        log_dir: Directory for a timestamped log file, or None for console only
        log_name: Prefix of the log file name

    Returns:
        The configured package logger
    """

    logger = logging.getLogger("terrainsynth")
    logger.setLevel(level)

    # Avoid duplicate handlers when called more than once in one process
    if logger.hasHandlers():
        logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    logger.addHandler(console_handler)

    if log_dir is not None:
        os.makedirs(log_dir, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        filename = os.path.join(log_dir, f"{log_name}_{timestamp}.log")

        file_handler = logging.FileHandler(filename, mode="w")
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        logger.addHandler(file_handler)
        logger.info("Logging initialized. Writing to: %s", filename)

    return logger
