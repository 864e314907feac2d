"""
Module for application-wide logging configuration.

Contains:
- setup_logging: console handler plus optional UTF-8 file handler
"""
import logging
import os

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def setup_logging(level: str = "INFO", log_file: str | None = None) -> None:
    """
    Configure the root logger once.

    Args:
        level: Logging level name (DEBUG, INFO, ...)
        log_file: Optional path of a log file; its directory is created if missing
    """
    root = logging.getLogger()
    if getattr(root, "_itcook_configured", False):
        root.setLevel(level.upper())
        return

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    if log_file:
        log_dir = os.path.dirname(os.path.abspath(log_file))
        os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    root.setLevel(level.upper())
    root._itcook_configured = True

    # APScheduler logs every job run at INFO
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
