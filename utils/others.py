import logging
import os
import re
from datetime import datetime

from pytz import timezone as pytz_timezone

from definitions import LOGS_DIR

logger = logging.getLogger(__name__)

DISPLAY_TIME_FORMAT = "%Y-%m-%d %I:%M:%S %p"

# full-date "T" partial-time time-offset, e.g. 2024-01-15T17:30:00.123Z
RFC3339_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}[Tt]\d{2}:\d{2}:\d{2}(?:\.\d+)?(?:[Zz]|[+-]\d{2}:\d{2})")


class ColoredFormatter(logging.Formatter):
    COLORS = {
        "DEBUG": "\033[38;5;244m",  # gray
        "INFO": "\033[38;5;120m",  # soft mint green
        "WARNING": "\033[38;5;221m",  # warm yellow
        "ERROR": "\033[38;5;196m",  # bright red
        "CRITICAL": "\033[1;38;5;196;48;5;232m",  # bold bright red on dark bg
    }
    RESET = "\033[0m"

    def format(self, record):
        level = record.levelname
        if level in self.COLORS:
            record.levelname = f"{self.COLORS[level]}{level}{self.RESET}"
        return super().format(record)


def setup_logging(config, console=False, debug=False):
    """
    Sets up the logging configuration based on provided settings.

    Args:
        config (dict): The configuration dictionary containing script settings.
        console (bool): If True, log to console instead of a file.
        debug (bool): If True, set the logging level to DEBUG; otherwise, INFO.
    """
    script_config = config.get("script", {}) or {}
    log_file_name_base = script_config.get("log_file_name", "bskyview")
    log_file_name_time = datetime.now().strftime("%Y%m%d%H%M%S")
    log_file_path = os.path.join(LOGS_DIR, f"{log_file_name_base}-{log_file_name_time}.log")

    logger_level = logging.DEBUG if debug else logging.INFO

    log_format = "%(asctime)s [%(name)s.%(funcName)s:%(lineno)d] %(levelname)s - %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    if console:
        handler = logging.StreamHandler()
        handler.setFormatter(ColoredFormatter(log_format, datefmt=date_format))
    else:
        os.makedirs(LOGS_DIR, exist_ok=True)
        handler = logging.FileHandler(log_file_path)
        handler.setFormatter(logging.Formatter(log_format, date_format))

    logging.basicConfig(level=logger_level, handlers=[handler])

    # httpx logs every request at INFO; keep that for --debug only
    logging.getLogger("httpx").setLevel(logging.DEBUG if debug else logging.WARNING)

    logger.info("Logging initialized.")
    if console:
        logger.info("Logging to console.")
    else:
        logger.info(f"Logging to file: {log_file_path}")


def log_startup_info(args, config):
    """
    Log startup information, including arguments and (non-secret) configuration details.
    """
    logger.info("#" * 80)
    logger.info("New instance of bskyview started.")
    logger.info("TIME: %s", datetime.now())
    logger.info("Startup Parameters:")

    for arg, value in vars(args).items():
        logger.info(f"  ARG - {arg}: {value}")

    bluesky_config = config.get("bluesky", {}) or {}
    logger.info("  BLUESKY - service_url: %s", bluesky_config.get("service_url", "default"))
    logger.info("#" * 80)


def parse_rfc3339(value):
    """
    Parse an RFC 3339 date-time ("2023-05-01T12:34:56.789Z", "...+02:00").

    Returns a timezone-aware datetime, or None when the string is not a valid
    RFC 3339 timestamp. ISO 8601 forms that fromisoformat would also accept
    (space separator, basic format, no offset) are rejected.
    """
    if not isinstance(value, str) or not RFC3339_PATTERN.fullmatch(value):
        return None
    try:
        return datetime.fromisoformat(value.upper())
    except ValueError:
        return None


def to_local_time(dt, tz_name=None):
    """
    Convert an aware datetime to wall-clock time.

    Args:
        dt (datetime): A timezone-aware datetime.
        tz_name (str | None): A tz database name (e.g. "US/Eastern"); the host's
            local zone is used when omitted.
    """
    if tz_name:
        return dt.astimezone(pytz_timezone(tz_name))
    return dt.astimezone()
