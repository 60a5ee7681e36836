"""
Review scraper: fetches pages of the public iTunes customer reviews RSS feed.

One call = one page of one country's feed. Failures are returned inside the
page result instead of being raised, so one bad page never stops the others.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

import requests

from reviewer.models import Application

logger = logging.getLogger(__name__)

FEED_URL = (
    "https://itunes.apple.com/{country_code}/rss/customerreviews/"
    "page={page}/id={app_id}/sortBy=mostRecent/json"
)


class FetchError(Exception):
    """A feed page could not be downloaded or decoded."""
    pass


@dataclass
class FeedPage:
    """Outcome of fetching one page: either entries or an error."""
    country_code: str
    page: int
    entries: list[dict] = field(default_factory=list)
    error: Optional[FetchError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def feed_url(country_code: str, app_id: int, page: int) -> str:
    return FEED_URL.format(country_code=country_code, page=page, app_id=app_id)


def parse_page(data) -> list[dict]:
    """
    Pull the entry list out of Apple's nested JSON.

    An empty feed comes back without an "entry" key at all, and a feed with a
    single item returns it as an object rather than a list.

    Raises:
        FetchError: the payload does not have the feed shape.
    """
    if not isinstance(data, dict):
        raise FetchError(f"Unexpected feed payload type: {type(data).__name__}")

    feed = data.get("feed") or {}
    if not isinstance(feed, dict):
        raise FetchError(f"Unexpected 'feed' type: {type(feed).__name__}")

    entries = feed.get("entry") or []
    if isinstance(entries, dict):
        entries = [entries]
    if not isinstance(entries, list):
        raise FetchError(f"Unexpected 'entry' type: {type(entries).__name__}")
    return [entry for entry in entries if isinstance(entry, dict)]


def fetch_page(session: requests.Session, country_code: str, app_id: int, page: int,
               timeout: tuple = (10, 20)) -> FeedPage:
    """
    Download and decode one page of the feed.

    Args:
        session:      Shared requests session (thread-safe for GETs).
        country_code: Storefront code, e.g. "us".
        app_id:       Numeric App Store id.
        page:         1-based page number.
        timeout:      (connect, read) seconds.

    Returns:
        FeedPage with entries, or with .error set. Zero entries is not an error.
    """
    url = feed_url(country_code, app_id, page)

    try:
        response = session.get(url, timeout=timeout)
        response.raise_for_status()  # 4xx/5xx become RequestException
        data = response.json()
        entries = parse_page(data)
    except requests.RequestException as e:
        return FeedPage(country_code, page, error=FetchError(f"{url}: {e}"))
    except ValueError as e:
        # Invalid JSON body
        return FeedPage(country_code, page, error=FetchError(f"{url}: bad JSON ({e})"))
    except FetchError as e:
        return FeedPage(country_code, page, error=e)

    return FeedPage(country_code, page, entries=entries)


def _label(entry, key: str, default=None):
    """Apple wraps every value as {"label": ...}."""
    if not isinstance(entry, dict):
        return default
    value = entry.get(key)
    if isinstance(value, dict):
        return value.get("label", default)
    return default


def is_app_metadata(entry: dict) -> bool:
    """The first entry of each page describes the app itself, not a review."""
    return "im:name" in entry and "im:image" in entry


def parse_application(entry: dict) -> Application:
    """Build app metadata from the feed's synthetic first entry."""
    images = entry.get("im:image") or []
    if isinstance(images, dict):
        images = [images]
    if not isinstance(images, list):
        images = []
    images = [image for image in images if isinstance(image, dict)]
    # Icons are listed smallest first
    image = images[-1].get("label", "") if images else ""

    link = entry.get("link")
    if isinstance(link, list):
        link = link[0] if link else None
    attributes = link.get("attributes") if isinstance(link, dict) else None
    href = attributes.get("href") if isinstance(attributes, dict) else None

    return Application(
        name=_label(entry, "im:name", ""),
        image=image,
        link=href,
    )


def parse_review_fields(entry: dict) -> dict:
    """
    Extract the raw review fields from one feed entry.

    Raises:
        KeyError / ValueError / TypeError / AttributeError when the entry is malformed.
    """
    author = entry["author"]
    return {
        "id": int(entry["id"]["label"]),
        "author_uri": _label(author, "uri", ""),
        "author_name": _label(author, "name", ""),
        "title": _label(entry, "title", ""),
        "content": _label(entry, "content", ""),
        "rating": int(entry["im:rating"]["label"]),
        "version": _label(entry, "im:version", ""),
    }
