from datetime import datetime
from pytz import timezone
import logging.config
import logging
import os
from logging import Logger

APP_LOGGER_NAME = "pdf_ingest_worker"
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# accepted values of the color= keyword
_ANSI_RESET = "\033[0m"
_COLOR_MAP: dict[str, str] = {
    "cyan":    "\033[36m",
    "green":   "\033[32m",
    "yellow":  "\033[33m",
    "red":     "\033[31m",
    "magenta": "\033[35m",
    "blue":    "\033[34m",
    "white":   "\033[37m",
}

_LEVEL_PREFIX: dict[int, str] = {
    logging.WARNING: "⚠️ ",
    logging.ERROR: "⛔ ",
    logging.CRITICAL: "⛔ ",
}


class TimezoneFormatter(logging.Formatter):
    """Renders timestamps in a fixed timezone and marks warnings and errors with an emoji."""

    def __init__(self, tz_name, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.tz = timezone(tz_name)

    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, self.tz)
        return dt.strftime(datefmt) if datefmt else dt.isoformat()

    def format(self, record):
        # handlers share the record, so the prefix goes on a copy
        record = logging.makeLogRecord(record.__dict__)
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            message = str(record.msg)
        record.msg = _LEVEL_PREFIX.get(record.levelno, "") + message
        record.args = ()
        return super().format(record)


class ConsoleFormatter(TimezoneFormatter):
    """Adds the ANSI color requested via ColorLogger's color= keyword."""

    def format(self, record) -> str:
        line = super().format(record)
        ansi = _COLOR_MAP.get(getattr(record, "color", None) or "", "")
        return f"{ansi}{line}{_ANSI_RESET}" if ansi else line


class ColorLogger:
    """Wraps a Logger so every log method accepts color=<name>.

    Only the console handler renders the color; the log file stays plain.
    """

    def __init__(self, logger: Logger):
        self._logger = logger

    def _log(self, level: int, msg, args, color: str | None, kwargs: dict) -> None:
        if color is not None:
            kwargs["extra"] = {**(kwargs.get("extra") or {}), "color": color}
        kwargs.setdefault("stacklevel", 3)
        self._logger.log(level, msg, *args, **kwargs)

    def debug(self, msg, *args, color: str | None = None, **kwargs):
        self._log(logging.DEBUG, msg, args, color, kwargs)

    def info(self, msg, *args, color: str | None = None, **kwargs):
        self._log(logging.INFO, msg, args, color, kwargs)

    def warning(self, msg, *args, color: str | None = None, **kwargs):
        self._log(logging.WARNING, msg, args, color, kwargs)

    def error(self, msg, *args, color: str | None = None, **kwargs):
        self._log(logging.ERROR, msg, args, color, kwargs)

    def exception(self, msg, *args, color: str | None = None, **kwargs):
        kwargs.setdefault("exc_info", True)
        self._log(logging.ERROR, msg, args, color, kwargs)

    def __getattr__(self, name):
        return getattr(self._logger, name)


def build_logging_config(log_path: str, tz_name: str, level: int) -> dict:
    """dictConfig schema with a colored console handler and a plain UTF-8 file handler."""
    formatter = {"format": LOG_FORMAT, "datefmt": DATE_FORMAT, "tz_name": tz_name}
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "plain": {"()": TimezoneFormatter, **formatter},
            "colored": {"()": ConsoleFormatter, **formatter},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "colored",
                "level": level,
                "stream": "ext://sys.stdout",
            },
            "file": {
                "class": "logging.FileHandler",
                "formatter": "plain",
                "level": level,
                "filename": log_path,
                "encoding": "utf-8",
            },
        },
        "root": {"handlers": ["console", "file"], "level": level},
    }


def setup_logging(log_file: str = "worker.log") -> ColorLogger:
    """Configure process-wide logging from LOG_LEVEL, TIMEZONE and ROOT_DIR.

    Args:
        log_file (str): File name below $ROOT_DIR/logs.

    Returns:
        ColorLogger: The worker's logger.
    """
    debug_mode = os.getenv("LOG_LEVEL", "info").strip().lower() == "debug"
    level = logging.DEBUG if debug_mode else logging.INFO
    log_dir = os.path.join(os.getenv("ROOT_DIR", os.getcwd()), "logs")
    os.makedirs(log_dir, exist_ok=True)

    logging.config.dictConfig(
        build_logging_config(os.path.join(log_dir, log_file), os.getenv("TIMEZONE", "Europe/Berlin"), level)
    )

    # per-request and per-defect noise
    logging.getLogger("httpx").setLevel(logging.DEBUG if debug_mode else logging.WARNING)
    logging.getLogger("pypdf").setLevel(logging.DEBUG if debug_mode else logging.ERROR)

    return get_logger()


def get_logger() -> ColorLogger:
    """The worker's logger, without touching the logging configuration."""
    return ColorLogger(logging.getLogger(APP_LOGGER_NAME))
