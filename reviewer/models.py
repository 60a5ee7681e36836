"""
Data models: the structure of our data.
Every review pulled from a storefront feed gets converted into these shapes.
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Optional

from reviewer.config import ConfigError, DEFAULT_COUNTRIES


@dataclass
class Author:
    """Who wrote the review."""
    uri: str
    name: str


@dataclass
class Application:
    """App metadata attached to every review of a feed page."""
    name: str = ""
    image: str = ""             # Largest icon URL from the feed
    link: Optional[str] = None  # Store page URL, not always present
    version: str = ""           # App version the review was written against


@dataclass
class Review:
    """A single customer review from one App Store country."""
    id: int
    author: Author
    title: str
    content: str
    rating: int                 # 1 to 5 stars
    country: str                # Display name, e.g. "US"
    application: Application


@dataclass
class AppQuery:
    """What to check during one run: one app, some storefronts, some pages."""
    app_id: int
    max_pages: int = 3
    countries: "OrderedDict[str, str]" = field(
        default_factory=lambda: OrderedDict(DEFAULT_COUNTRIES)
    )

    def __post_init__(self):
        try:
            self.app_id = int(self.app_id)
        except (TypeError, ValueError):
            raise ConfigError(f"App id must be a number, got '{self.app_id}'")
        if self.app_id <= 0:
            raise ConfigError(f"App id must be positive, got {self.app_id}")

        self.max_pages = max(1, int(self.max_pages))
        self.countries = OrderedDict(self.countries)


@dataclass
class NotificationConfig:
    """Where and as whom review notifications are posted."""
    endpoint: Optional[str] = None
    channel: Optional[str] = None
    username: str = "App Reviewer"
    icon_url: Optional[str] = None
