import os

import pytz
import yaml

from bsky.client import DEFAULT_SERVICE_URL, BskyConfig
from bsky.session import LOCK_TIMEOUT, TIMEOUT

USERNAME_ENV = "BSKY_USERNAME"
PASSWORD_ENV = "BSKY_APP_PASS"


class MissingCredentials(Exception):
    """Raised when no Bluesky account / app password is configured anywhere."""

    pass


class InvalidTimezone(Exception):
    """Raised when --timezone / script.timezone is not a tz database name."""

    pass


def load_config(config_file: str):
    """
    Load configuration settings from a YAML file.

    Args:
        config_file (str): The file path to the YAML configuration file.

    Returns:
        dict: A dictionary containing the parsed configuration data (empty for an empty file).

    Raises:
        Exception: If the file is missing or is not valid YAML.

    Example Usage:
        config = load_config("config/config.yaml")
        print(config["bluesky"]["service_url"])
    """
    try:
        with open(config_file) as file:
            config = yaml.safe_load(file)
            return config or {}
    except FileNotFoundError:
        raise Exception(f"Configuration file {config_file} not found.")
    except yaml.YAMLError as e:
        raise Exception(f"Error parsing YAML file: {e}")


def build_bsky_config(config: dict, environ=None) -> BskyConfig:
    """
    Resolve client settings with clear precedence:
      1) ENV (BSKY_USERNAME / BSKY_APP_PASS) for credentials
      2) YAML (bluesky.account / bluesky.password, bluesky.service_url, ...)
      3) defaults
    """
    environ = os.environ if environ is None else environ
    bluesky_cfg = config.get("bluesky", {}) or {}

    identifier = environ.get(USERNAME_ENV) or bluesky_cfg.get("account")
    password = environ.get(PASSWORD_ENV) or bluesky_cfg.get("password")

    if not identifier:
        raise MissingCredentials(f"put your bluesky username in the {USERNAME_ENV} environment variable")
    if not password:
        raise MissingCredentials(
            f"put an app password (NOT your real password) in the {PASSWORD_ENV} environment variable"
        )

    return BskyConfig(
        identifier=identifier,
        app_password=password,
        service_url=bluesky_cfg.get("service_url") or DEFAULT_SERVICE_URL,
        timeout=float(bluesky_cfg.get("timeout", TIMEOUT)),
        lock_timeout=float(bluesky_cfg.get("lock_timeout", LOCK_TIMEOUT)),
    )


def resolve_timezone(config: dict, override=None):
    """
    Pick the display timezone: --timezone, then script.timezone, then None (host local time).

    Raises:
        InvalidTimezone: If the chosen name is not known to pytz.
    """
    tz_name = override or (config.get("script", {}) or {}).get("timezone")
    if not tz_name:
        return None
    try:
        pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        raise InvalidTimezone(f"Unknown timezone {tz_name!r}; use a tz database name like US/Eastern")
    return tz_name
