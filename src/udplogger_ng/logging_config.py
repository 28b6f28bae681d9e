from __future__ import annotations

import logging
import sys

class LoggingFormatter(logging.Formatter):
    """Uses the source location format for DEBUG records and the short one otherwise."""
    def __init__(self, fmt_debug: str, fmt_info: str):
        super().__init__()
        self.fmt_debug = fmt_debug
        self.fmt_info = fmt_info
        self._style._fmt = self.fmt_info

    def format(self, record: logging.LogRecord) -> str:
        original_format = self._style._fmt
        self._style._fmt = self.fmt_debug if record.levelno == logging.DEBUG else self.fmt_info
        try:
            return super().format(record)
        finally:
            self._style._fmt = original_format

def setup_logging(is_debug: bool, is_quiet: bool, log_file: str | None = None) -> None:
    """
    Configure the receiver's own diagnostic logging.

    Diagnostics go to stderr so they never mix with the banner on stdout, and
    never into the date-named record files.

    Args:
        is_debug: If True, set the logging level to DEBUG.
        is_quiet: If True, only CRITICAL records reach the console.
        log_file: If provided, also append every record to this file.
    """
    handlers = []

    fmt_debug = "[%(asctime)s] [DEBUG] [%(filename)s:%(lineno)d] %(message)s"
    fmt_info = "[%(asctime)s] [%(levelname)s] %(message)s"
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(LoggingFormatter(fmt_debug, fmt_info))
    if is_quiet:
        console_handler.setLevel(logging.CRITICAL)
    handlers.append(console_handler)

    if log_file:
        fmt_file = "[%(asctime)s] [%(levelname)s] [%(filename)s:%(lineno)d] %(message)s"
        file_handler = logging.FileHandler(log_file, mode='a')
        file_handler.setFormatter(logging.Formatter(fmt_file))
        handlers.append(file_handler)

    if is_debug:
        log_level = logging.DEBUG
    elif is_quiet and not log_file:
        log_level = logging.CRITICAL
    else:
        log_level = logging.INFO

    logging.basicConfig(
        handlers=handlers,
        level=log_level,
        force=True
    )
