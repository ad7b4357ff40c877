"""
Logging configuration for ckload.

Every component logs through a CkloadLogger named ``ckload.<component>``.
Console output is colored by level; ``start``/``success`` lines get their
own colors. Set ``settings.logging.file`` to also write plain lines to a
file.
"""
import logging
import sys
from pathlib import Path
from typing import Optional

import colorama

from .settings import settings

# Initialize colorama for cross-platform color support
colorama.init()

_START = logging.INFO + 1
_OK = logging.INFO + 2
logging.addLevelName(_START, "START")
logging.addLevelName(_OK, "OK")


class ColorFormatter(logging.Formatter):
    """Colors the level name, and the whole line for START and OK."""

    COLORS = {
        logging.DEBUG: colorama.Fore.BLUE,
        logging.INFO: colorama.Fore.GREEN,
        _START: colorama.Fore.CYAN,
        _OK: colorama.Fore.GREEN,
        logging.WARNING: colorama.Fore.YELLOW,
        logging.ERROR: colorama.Fore.RED,
    }

    def format(self, record):
        line = super().format(record)
        color = self.COLORS.get(record.levelno)
        if color is None:
            return line
        if record.levelno in (_START, _OK):
            return f"{color}{line}{colorama.Style.RESET_ALL}"
        return line.replace(
            record.levelname,
            f"{color}{record.levelname}{colorama.Style.RESET_ALL}",
            1,
        )


class CkloadLogger:
    """Central logging class for ckload"""

    class Style:
        """ANSI color codes for paths"""
        CYAN = colorama.Fore.CYAN
        YELLOW = colorama.Fore.YELLOW
        RESET = colorama.Style.RESET_ALL

    LOAD_TEMPLATE = "Loaded {:,} rows into {} in {:.1f}s ({:,.0f} rows/s)"

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)
        self.style = self.Style()

        # Only set up handlers if they haven't been set up already
        if not self.logger.handlers:
            self.logger.setLevel(settings.logging.level.upper())

            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(logging.DEBUG)
            console_handler.setFormatter(
                ColorFormatter(
                    "%(asctime)s  %(levelname)s  %(message)s", datefmt="%H:%M:%S"
                )
            )
            self.logger.addHandler(console_handler)

            if settings.logging.file:
                log_file = Path(settings.logging.file)
                log_file.parent.mkdir(parents=True, exist_ok=True)
                file_handler = logging.FileHandler(log_file, encoding="utf-8")
                file_handler.setLevel(logging.DEBUG)
                file_handler.setFormatter(
                    logging.Formatter(
                        "%(asctime)s  %(levelname)s  %(name)s  %(message)s",
                        datefmt="%H:%M:%S",
                    )
                )
                self.logger.addHandler(file_handler)

            # Prevent logs from being passed to root logger
            self.logger.propagate = False

    def info(self, msg: str) -> None:
        self.logger.info(msg)

    def start(self, msg: str) -> None:
        """Log the beginning of a long-running step in cyan"""
        self.logger.log(_START, msg)

    def success(self, msg: str) -> None:
        """Log a completed step in green"""
        self.logger.log(_OK, msg)

    def error(self, msg: str) -> None:
        self.logger.error(msg)

    def warning(self, msg: str) -> None:
        self.logger.warning(msg)

    def debug(self, msg: str) -> None:
        self.logger.debug(msg)

    def path(self, path: str, color: Optional[str] = None) -> str:
        """Format a path with color"""
        return f"{color or self.style.CYAN}{path}{self.style.RESET}"


def get_logger(name: str) -> CkloadLogger:
    """Get a configured logger instance."""
    return CkloadLogger(name)
