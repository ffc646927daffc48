# truthgate/utils/logging.py
import logging
import logging.config
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

LOGGER_NAME = "truthgate"

def setup_logging(
    log_dir: Optional[Union[str, Path]] = None,
    console: bool = True,
    level: str = "INFO",
    quiet_console: bool = False,
    console_level: Optional[str] = None,
) -> tuple:
    """
    Setup logging with an optional file handler and optional console handlers.

    Args:
        log_dir: Directory for log files; None keeps logs off disk
        console: Whether to enable console logging
        level: Package logging level
        quiet_console: If True, only errors reach the console
        console_level: Separate level for console (defaults to level)
    """
    name = LOGGER_NAME
    log_path = None
    if log_dir is not None:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        ts = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_path = str(Path(log_dir) / f"{name}_{ts}.log")

    handlers = {}
    if log_path:
        handlers["file"] = {
            "class": "logging.FileHandler",
            "formatter": "plain",
            "filename": log_path,
            "encoding": "utf-8",
            "mode": "w",
            "level": "DEBUG",   # capture everything in file
        }

    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "plain": {
                "format": "{asctime} {levelname:<7} {name} - {message}",
                "style": "{",
            },
            "console": {
                "format": "{levelname:<7} {message}",
                "style": "{",
            }
        },
        "handlers": handlers,
        "loggers": {
            name: {
                "level": level,
                "handlers": list(handlers),
                "propagate": False,
            },
        },
        "root": {"handlers": []},  # keep root empty
    }

    logging.config.dictConfig(config)
    logging.captureWarnings(True)

    logger = logging.getLogger(name)
    console_formatter = logging.Formatter("{levelname:<7} {message}", style="{")

    summary_logger = logging.getLogger(f"{name}.summary")
    summary_logger.setLevel(logging.INFO)
    summary_logger.propagate = False
    for handler in list(summary_logger.handlers):
        summary_logger.removeHandler(handler)
        handler.close()

    if log_path:
        fh_summary = logging.FileHandler(log_path, encoding="utf-8", mode="a")
        fh_summary.setLevel(logging.INFO)
        fh_summary.setFormatter(logging.Formatter("{asctime} SUMMARY - {message}", style="{"))
        summary_logger.addHandler(fh_summary)

    if console and not quiet_console:
        console_handler = logging.StreamHandler()
        console_level = console_level or level
        console_handler.setLevel(getattr(logging, console_level.upper()))
        console_handler.setFormatter(console_formatter)

        logger.addHandler(console_handler)
        summary_logger.addHandler(console_handler)
    elif console and quiet_console:
        # Minimal console output - only errors and critical
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.ERROR)
        console_handler.setFormatter(console_formatter)
        summary_logger.addHandler(console_handler)

    if log_path:
        logger.info("Logging initialised. File: %s", log_path)
    return logger, summary_logger
