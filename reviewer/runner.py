"""
Reviewer: sends fresh App Store reviews of one app to a Slack channel.

One call to run() is one pass: fetch -> skip seen -> post -> remember.
Scheduling (cron, systemd timer, ...) is left to the caller.
"""

import logging
from typing import Optional

import requests

from reviewer import config as settings
from reviewer.config import ConfigError
from reviewer.database import SeenStore, StorageInitError
from reviewer.models import AppQuery, NotificationConfig, Review
from reviewer.notifier import DispatchSummary, SlackWebhook, dispatch
from reviewer.processor import fetch_new_reviews

logger = logging.getLogger(__name__)


class Reviewer:
    """
    Usage:
        reviewer = Reviewer(284882215, max_pages=3)
        reviewer.set_slack_settings("https://hooks.slack.com/services/...", "#reviews")
        reviewer.set_logger(logging.getLogger("reviews"))
        reviewer.run()
        reviewer.close()

    or as a context manager:
        with Reviewer(284882215) as reviewer:
            reviewer.run(notification)
    """

    def __init__(self, app_id: int, max_pages: int = 3, countries: Optional[dict] = None,
                 storage_dir: Optional[str] = None, session: Optional[requests.Session] = None,
                 logger: Optional[logging.Logger] = None, max_workers: Optional[int] = None,
                 timeout: Optional[tuple] = None):
        query_kwargs = {"app_id": app_id, "max_pages": max_pages}
        if countries is not None:
            query_kwargs["countries"] = countries
        self.query = AppQuery(**query_kwargs)

        self.max_workers = max_workers or settings.get_max_workers()
        self.timeout = timeout or settings.get_timeout()
        self._owns_session = session is None
        self.session = session or requests.Session()
        self.notification = NotificationConfig(
            username=settings.SLACK_USERNAME,
            icon_url=settings.SLACK_ICON_URL,
        )

        self._logger = None
        self._init_error = None  # Reported once a logger is attached

        self.store = None
        self.first_time = False
        try:
            self.store = SeenStore.open(storage_dir or settings.STORAGE_DIR, self.query.app_id)
            self.first_time = self.store.first_time
        except StorageInitError as e:
            self._init_error = e

        if logger is not None:
            self.set_logger(logger)

    def close(self) -> None:
        """Release the HTTP session if the reviewer created it."""
        if self._owns_session:
            self.session.close()

    def __enter__(self) -> "Reviewer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def app_id(self) -> int:
        return self.query.app_id

    @property
    def countries(self) -> dict:
        return self.query.countries

    @property
    def logger(self) -> logging.Logger:
        return self._logger or logger

    def set_slack_settings(self, endpoint: Optional[str], channel: Optional[str] = None) -> "Reviewer":
        self.notification.endpoint = endpoint
        self.notification.channel = channel
        return self

    def set_logger(self, logger: logging.Logger) -> "Reviewer":
        self._logger = logger

        if self._init_error is not None:
            self._logger.error("Reviewer: exception while init", exc_info=self._init_error)
            self._init_error = None

        return self

    def get_reviews_by_country(self, country_code: str, country_name: str) -> list[Review]:
        """New reviews from a single storefront."""
        query = AppQuery(self.app_id, self.query.max_pages, {country_code: country_name})
        return self._fetch(query)

    def get_reviews(self) -> list[Review]:
        """New reviews from every configured storefront."""
        return self._fetch(self.query)

    def _fetch(self, query: AppQuery) -> list[Review]:
        if self.store is None:
            self.logger.error("Reviewer: review storage is unavailable, skipping fetch")
            return []
        return fetch_new_reviews(self.session, query, self.store, max_workers=self.max_workers,
                                 timeout=self.timeout, log=self.logger)

    def dispatch(self, reviews: list[Review]) -> DispatchSummary:
        """
        Post reviews and mark them seen.

        Raises:
            ConfigError: no Slack endpoint set.
        """
        webhook = None
        if self.notification.endpoint:
            webhook = SlackWebhook.from_config(self.notification, session=self.session,
                                               timeout=self.timeout)
        return dispatch(reviews, self.notification, self.store, self.first_time,
                        webhook=webhook, log=self.logger)

    def send_reviews(self, reviews: list[Review]) -> bool:
        """False when there was nothing to do or Slack is not configured."""
        if not reviews:
            return False
        try:
            self.dispatch(reviews)
        except ConfigError as e:
            self.logger.error("Reviewer: %s", e)
            return False
        return True

    def run(self, notification: Optional[NotificationConfig] = None) -> DispatchSummary:
        """Putting all the work together."""
        if notification is not None:
            self.notification = notification

        if self.store is None:
            self.logger.error("Reviewer: review storage is unavailable, nothing to do")
            return DispatchSummary()

        reviews = self.get_reviews()
        summary = DispatchSummary()
        try:
            summary = self.dispatch(reviews)
        except ConfigError as e:
            self.logger.error("Reviewer: %s", e)

        self.logger.info("Sent %s reviews (%s new, %s failed, %s held back on first run)",
                         summary.sent, len(reviews), summary.failed, summary.suppressed)
        return summary

    start = run
