"""Logging configuration for the knowledge base engine.

All modules log through the "kb_engine" logger handed out by HelperConfig. Console
lines can be colored per call with color=<name>; the optional file handler under
$ROOT_DIR/logs stays plain. Timestamps are rendered in $TIMEZONE.
"""

import logging
import logging.config
import os
from datetime import datetime

from pytz import timezone

LOGGER_NAME = "kb_engine"
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE = "app.log"

ANSI_COLORS: dict[str, str] = {
    "red": "\033[31m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "blue": "\033[34m",
    "magenta": "\033[35m",
    "cyan": "\033[36m",
}
ANSI_RESET = "\033[0m"

LEVEL_MARKERS = {logging.WARNING: "⚠️ ", logging.ERROR: "⛔ ", logging.CRITICAL: "⛔ "}


class ZonedFormatter(logging.Formatter):
    """Formatter with timestamps in a fixed timezone and a marker for warnings and errors."""

    def __init__(self, tz_name: str, colored: bool = False, **kwargs):
        super().__init__(**kwargs)
        self.tz = timezone(tz_name)
        self.colored = colored

    def formatTime(self, record, datefmt=None):
        moment = datetime.fromtimestamp(record.created, self.tz)
        return moment.strftime(datefmt) if datefmt else moment.isoformat()

    def format(self, record) -> str:
        # work on a copy, other handlers share the record
        record = logging.makeLogRecord(record.__dict__)
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            message = str(record.msg)
        record.msg = LEVEL_MARKERS.get(record.levelno, "") + message
        record.args = ()

        line = super().format(record)
        ansi = ANSI_COLORS.get(getattr(record, "color", None) or "") if self.colored else None
        return f"{ansi}{line}{ANSI_RESET}" if ansi else line


class ColorLogger:
    """Logger wrapper whose log methods accept an optional color= keyword.

        logger.info("Ingested %s", doc_id, color="green")
    """

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    def log(self, level: int, msg, *args, color: str | None = None, **kwargs) -> None:
        if color is not None:
            kwargs["extra"] = {**(kwargs.get("extra") or {}), "color": color}
        self._logger.log(level, msg, *args, **kwargs)

    def debug(self, msg, *args, **kwargs) -> None:
        self.log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg, *args, **kwargs) -> None:
        self.log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg, *args, **kwargs) -> None:
        self.log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg, *args, **kwargs) -> None:
        self.log(logging.ERROR, msg, *args, **kwargs)

    def exception(self, msg, *args, **kwargs) -> None:
        kwargs.setdefault("exc_info", True)
        self.log(logging.ERROR, msg, *args, **kwargs)

    def __getattr__(self, name):
        # setLevel, handlers, isEnabledFor, ...
        return getattr(self._logger, name)


def setup_logging(log_level: str | None = None) -> ColorLogger:
    """Configure root logging and return the engine logger.

    Args:
        log_level (str | None): "debug", "info", "warning" or "error". Falls back
            to $LOG_LEVEL, then "info".

    Returns:
        ColorLogger: The engine logger.
    """
    level_name = (log_level or os.getenv("LOG_LEVEL", "info")).upper()
    level = getattr(logging, level_name, logging.INFO)
    tz_name = os.getenv("TIMEZONE", "Europe/Berlin")

    def formatter(colored: bool) -> dict:
        return {"()": ZonedFormatter, "fmt": LOG_FORMAT, "datefmt": DATE_FORMAT, "tz_name": tz_name, "colored": colored}

    handlers: dict = {
        "console": {"class": "logging.StreamHandler", "formatter": "colored", "stream": "ext://sys.stdout"},
    }
    root_dir = os.getenv("ROOT_DIR")
    if root_dir:
        log_dir = os.path.join(root_dir, "logs")
        os.makedirs(log_dir, exist_ok=True)
        handlers["file"] = {
            "class": "logging.FileHandler",
            "formatter": "plain",
            "filename": os.path.join(log_dir, LOG_FILE),
            "encoding": "utf-8",
        }

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"plain": formatter(False), "colored": formatter(True)},
            "handlers": handlers,
            "root": {"handlers": list(handlers), "level": level},
        }
    )

    # httpx logs every request at info
    logging.getLogger("httpx").setLevel(logging.DEBUG if level == logging.DEBUG else logging.WARNING)

    return ColorLogger(logging.getLogger(LOGGER_NAME))
