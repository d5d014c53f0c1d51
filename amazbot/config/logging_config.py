# amazbot/config/logging_config.py

"""Per-run timestamped logging configuration for amazbot.

Each bot launch creates a dedicated log file inside ``logs/``, named
with the launch timestamp (e.g. ``logs/run_20260214_153045.log``).
All ``amazbot.*`` loggers route through this file handler so that
every module's output lands in the same per-run log.

Operational problems are also forwarded to the bot administrator's
Telegram chat by :class:`AdminAlertHandler`, attached once the
notifier exists.
"""

import logging
import sys
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from amazbot.config.settings import Settings

# Reusable format strings --------------------------------------------------

_DETAILED_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | %(module)s:%(funcName)s:%(lineno)d | "
    "%(message)s"
)

_CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"

_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

ROOT_LOGGER = "amazbot"

# Records emitted while delivering a message must not be forwarded again
_NOTIFIER_LOGGERS = ("amazbot.notifier", "amazbot.telegram")


def setup_logging() -> Path:
    """Initialise the root ``amazbot`` logger for the current run.

    Returns:
        The :class:`~pathlib.Path` to the log file created for this run.
    """
    logs_dir: Path = Settings.LOGS_DIR
    logs_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = logs_dir / f"run_{timestamp}.log"

    # --- Root project logger -----------------------------------------------
    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(logging.DEBUG)

    # Prevent duplicate handlers on repeated calls (e.g. tests)
    if root_logger.handlers:
        return log_file

    # --- File handler (DEBUG+) – captures everything -----------------------
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(_DETAILED_FORMAT, datefmt=_DATE_FORMAT)
    )

    # --- Console handler (WARNING+) – only important messages --------------
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(
        logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT)
    )

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    root_logger.info(
        "Logging initialised, log file: %s", log_file
    )

    return log_file


class AdminAlertHandler(logging.Handler):
    """Forward operational log records to the administrator chat.

    WARNING and above are always forwarded; lower records only when
    logged with ``extra={"notify_admin": True}``.
    """

    def __init__(self, send: Callable[[str], None]) -> None:
        super().__init__(level=logging.DEBUG)
        self._send = send
        self.setFormatter(logging.Formatter("%(message)s"))

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name.startswith(_NOTIFIER_LOGGERS):
            return False
        if record.levelno >= logging.WARNING:
            return True
        return bool(getattr(record, "notify_admin", False))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self._send(self.format(record))
        except Exception:
            self.handleError(record)


def attach_admin_alerts(send: Callable[[str], None]) -> AdminAlertHandler:
    """Attach an :class:`AdminAlertHandler` to the root ``amazbot`` logger."""
    root_logger = logging.getLogger(ROOT_LOGGER)
    for handler in root_logger.handlers:
        if isinstance(handler, AdminAlertHandler):
            root_logger.removeHandler(handler)
    handler = AdminAlertHandler(send)
    root_logger.addHandler(handler)
    return handler
