"""
Configuration loader.
Reads settings from .env file and makes them available to the rest of the app.
"""

import os
from collections import OrderedDict
from dotenv import load_dotenv

load_dotenv()


class ConfigError(Exception):
    """Raised when a required setting is missing or malformed."""
    pass


# Storefronts checked when nothing else is configured, in this order
DEFAULT_COUNTRIES = OrderedDict([
    ("ru", "Russia"),
    ("us", "US"),
    ("ua", "Ukraine"),
    ("by", "Belarus"),
])


def parse_countries(raw: str) -> "OrderedDict[str, str]":
    """
    Turn "us:US,gb:United Kingdom" into an ordered code -> display name mapping.
    An empty string gives the default storefront set.
    """
    if not raw or not raw.strip():
        return OrderedDict(DEFAULT_COUNTRIES)

    countries = OrderedDict()
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        code, sep, name = item.partition(":")
        code, name = code.strip().lower(), name.strip()
        if not sep or not code or not name:
            raise ConfigError(f"Bad country entry '{item}', expected 'code:Name'")
        countries[code] = name
    return countries


def _int_setting(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got '{value}'")


# Application being watched (numeric App Store id)
APP_ID = os.getenv("REVIEWER_APP_ID", "")

# Slack incoming webhook
SLACK_WEBHOOK_URL = os.getenv("SLACK_WEBHOOK_URL", "")
SLACK_CHANNEL = os.getenv("SLACK_CHANNEL") or None
SLACK_USERNAME = os.getenv("SLACK_USERNAME", "App Reviewer")
SLACK_ICON_URL = os.getenv("SLACK_ICON_URL", "https://i.imgur.com/GX1ASZy.png")

LOG_LEVEL = os.getenv("REVIEWER_LOG_LEVEL", "INFO")

# Seen-review state: each app gets its own SQLite file inside this folder
STORAGE_DIR = os.getenv(
    "REVIEWER_STORAGE_DIR",
    os.path.join(os.path.dirname(os.path.dirname(__file__)), "data", "storage"),
)


# Settings below are parsed when asked for, so a bad value raises ConfigError
# at the call site instead of at import time.

def get_max_pages() -> int:
    return _int_setting("REVIEWER_MAX_PAGES", 3)


def get_countries() -> "OrderedDict[str, str]":
    return parse_countries(os.getenv("REVIEWER_COUNTRIES", ""))


def get_timeout() -> tuple:
    """(connect, read) HTTP timeout in seconds."""
    return (
        _int_setting("REVIEWER_CONNECT_TIMEOUT", 10),
        _int_setting("REVIEWER_READ_TIMEOUT", 20),
    )


def get_max_workers() -> int:
    """Parallel feed requests."""
    return _int_setting("REVIEWER_MAX_WORKERS", 8)
