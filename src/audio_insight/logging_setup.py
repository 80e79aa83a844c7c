import logging
import os
from typing import Optional

from .settings import ServiceSettings


def configure_logging(cfg: ServiceSettings, *, log_file: Optional[str] = None) -> logging.Logger:
    """
    Sets up the root logger from the service settings.

    A file handler is attached when ``log_file`` (or the ``LOG_FILE``
    environment variable) is provided.
    """
    level = (cfg.log_level or "INFO").upper()
    logging.basicConfig(level=level, format=cfg.log_format)

    target = log_file or os.getenv("LOG_FILE")
    if target:
        root = logging.getLogger()
        path = os.path.abspath(target)
        already_attached = any(
            isinstance(handler, logging.FileHandler) and handler.baseFilename == path
            for handler in root.handlers
        )
        if not already_attached:
            file_handler = logging.FileHandler(path)
            file_handler.setFormatter(logging.Formatter(cfg.log_format))
            root.addHandler(file_handler)

    return logging.getLogger(cfg.name)
