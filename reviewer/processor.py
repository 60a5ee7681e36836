"""
Review processor: turns feed pages into a list of reviews nobody has seen yet.

Key design decisions:
    1. Every (country, page) pair is fetched in parallel: they are independent reads.
    2. Pages are processed afterwards in a fixed order (countries as configured,
       pages ascending) so the output order does not depend on network timing.
    3. Inside a page, entries are walked in feed order: the app metadata entry
       comes first and is attached to the reviews that follow it.
    4. A failed page or a malformed entry is logged and skipped, never fatal.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Optional

import requests

from reviewer.database import SeenStore
from reviewer.models import AppQuery, Application, Author, Review
from reviewer.scraper import (
    FeedPage,
    fetch_page,
    is_app_metadata,
    parse_application,
    parse_review_fields,
)

logger = logging.getLogger(__name__)


def build_review(fields: dict, application: Application, country_name: str) -> Review:
    """Merge an entry's own fields with its page's app metadata."""
    return Review(
        id=fields["id"],
        author=Author(uri=fields["author_uri"], name=fields["author_name"]),
        title=fields["title"],
        content=fields["content"],
        rating=fields["rating"],
        country=country_name,
        application=Application(
            name=application.name,
            image=application.image,
            link=application.link,
            version=fields["version"],
        ),
    )


def collect_page_reviews(page: FeedPage, app_id: int, country_name: str,
                         store: SeenStore, log: Optional[logging.Logger] = None) -> list[Review]:
    """
    Unseen reviews from one fetched page.

    A failed page contributes nothing. Reviews already in the store are
    dropped silently.
    """
    log = log or logger

    if not page.ok:
        log.error("#%s: Failed to fetch page %s in %s", app_id, page.page, country_name,
                  exc_info=page.error)
        return []

    if not page.entries:
        log.debug("#%s: Received 0 entries for page %s in %s", app_id, page.page, country_name)
        return []

    application = None
    reviews = []
    review_entries = 0

    for entry in page.entries:
        if application is None and is_app_metadata(entry):
            application = parse_application(entry)
            continue

        review_entries += 1
        try:
            fields = parse_review_fields(entry)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            log.debug("#%s: Skipping malformed entry on page %s in %s: %r",
                      app_id, page.page, country_name, e)
            continue

        if store.has(fields["id"]):
            continue

        reviews.append(build_review(fields, application or Application(), country_name))

    log.debug("#%s: Received %s entries for page %s in %s",
              app_id, review_entries, page.page, country_name)
    return reviews


def fetch_pages(session: requests.Session, query: AppQuery, country_codes: list[str],
                max_workers: int = 8, timeout: tuple = (10, 20)) -> dict:
    """
    Fetch every (country, page) combination concurrently.

    Returns:
        {(country_code, page): FeedPage} for all requested pages.
    """
    jobs = [(code, page) for code in country_codes for page in range(1, query.max_pages + 1)]
    results = {}
    if not jobs:
        return results

    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(jobs)))) as executor:
        futures = {
            executor.submit(fetch_page, session, code, query.app_id, page, timeout): (code, page)
            for code, page in jobs
        }
        for future in as_completed(futures):
            results[futures[future]] = future.result()

    return results


def fetch_new_reviews(session: requests.Session, query: AppQuery, store: SeenStore,
                      max_workers: int = 8, timeout: tuple = (10, 20),
                      log: Optional[logging.Logger] = None) -> list[Review]:
    """
    All reviews of the app, across the configured countries and pages,
    that are not in the store yet.
    """
    pages = fetch_pages(session, query, list(query.countries), max_workers, timeout)

    reviews = []
    for code, country_name in query.countries.items():
        for page_number in range(1, query.max_pages + 1):
            page = pages[(code, page_number)]
            reviews.extend(collect_page_reviews(page, query.app_id, country_name, store, log))

    return reviews
