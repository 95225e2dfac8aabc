import logging
import os
from typing import Optional

from colorama import Fore, Style, init

init(autoreset=True)


class ColoredFormatter(logging.Formatter):
    """Colored formatter for console output with pipeline stage highlighting"""

    COLORS = {
        "DEBUG": Fore.CYAN,
        "INFO": Fore.BLUE,
        "WARNING": Fore.YELLOW,
        "ERROR": Fore.RED,
        "CRITICAL": Fore.MAGENTA + Style.BRIGHT,
    }

    STAGE_COLORS = {
        "resolve": Fore.CYAN,
        "scrape": Fore.GREEN,
        "enrich": Fore.MAGENTA,
        "report": Fore.YELLOW,
        "general": Fore.WHITE,
    }

    def format(self, record):
        record.levelname_colored = (
            self.COLORS.get(record.levelname, Fore.WHITE)
            + record.levelname
            + Style.RESET_ALL
        )

        stage = getattr(record, "stage", "general")
        record.stage_colored = (
            self.STAGE_COLORS.get(stage, Fore.WHITE) + stage.upper() + Style.RESET_ALL
        )

        return super().format(record)


class DefaultStageFilter(logging.Filter):
    """Ensure log records carry the ``stage`` attribute expected by formatters."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "stage"):
            record.stage = "general"
        return True


def setup_logger(
    name="catalog_parser",
    level=logging.INFO,
    log_file: Optional[str] = None,
    console=True,
):
    """Setup logger with optional file and console handlers"""

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Avoid duplicate handlers
    if logger.hasHandlers():
        logger.handlers.clear()

    logger.addFilter(DefaultStageFilter())

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.addFilter(DefaultStageFilter())
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - [%(stage)s] - %(message)s"
            )
        )
        logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.addFilter(DefaultStageFilter())
        console_handler.setFormatter(
            ColoredFormatter(
                "%(asctime)s - %(levelname_colored)s - [%(stage_colored)s] - %(message)s"
            )
        )
        logger.addHandler(console_handler)

    return logger


def configure_logging(level: str = "INFO", log_file: str = "") -> logging.Logger:
    """Attach handlers to the root logger so every module logger inherits them."""
    log_level = getattr(logging, level.upper(), logging.INFO)
    return setup_logger("", log_level, log_file or None, True)


def get_logger(name: str) -> logging.Logger:
    """Get logger instance for the given name.

    Module loggers propagate to the root logger configured by
    ``configure_logging``; nothing is attached here.
    """
    return logging.getLogger(name)
