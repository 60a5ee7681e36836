"""
Notifier: posts reviews to a Slack incoming webhook, one at a time.

A review is written to the seen store only after Slack accepted it (or after
it was deliberately held back on the first run). A review whose send failed
stays unseen and is picked up again on the next run.
"""

import logging
import sqlite3
from dataclasses import dataclass
from typing import Optional

import requests

from reviewer.config import ConfigError
from reviewer.database import SeenStore
from reviewer.formatter import format_review
from reviewer.models import NotificationConfig, Review

logger = logging.getLogger(__name__)


class SendError(Exception):
    """Slack did not accept a message."""
    pass


@dataclass
class DispatchSummary:
    """What happened to the reviews of one run."""
    sent: int = 0
    suppressed: int = 0     # First run: stored as seen but not posted
    failed: int = 0

    @property
    def delivered(self) -> int:
        return self.sent + self.suppressed


class SlackWebhook:
    """
    Minimal client for a Slack incoming webhook.

    Usage:
        hook = SlackWebhook("https://hooks.slack.com/services/...", channel="#reviews")
        error = hook.send(attachment)
        if error:
            ...
    """

    def __init__(self, endpoint: str, channel: Optional[str] = None,
                 username: str = "App Reviewer", icon_url: Optional[str] = None,
                 session: Optional[requests.Session] = None, timeout: tuple = (10, 20)):
        self.endpoint = endpoint
        self.channel = channel
        self.username = username
        self.icon_url = icon_url
        self._owns_session = session is None
        self.session = session or requests.Session()
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: NotificationConfig, session: Optional[requests.Session] = None,
                    timeout: tuple = (10, 20)) -> "SlackWebhook":
        return cls(config.endpoint, channel=config.channel, username=config.username,
                   icon_url=config.icon_url, session=session, timeout=timeout)

    def close(self) -> None:
        """Release the HTTP session if this client created it."""
        if self._owns_session:
            self.session.close()

    def build_message(self, attachment: dict) -> dict:
        message = {
            "username": self.username,
            "text": "",
            "attachments": [attachment],
        }
        if self.icon_url:
            message["icon_url"] = self.icon_url
        if self.channel:
            message["channel"] = self.channel
        return message

    def send(self, attachment: dict) -> Optional[SendError]:
        """Post one attachment. Returns None on success, the error otherwise."""
        try:
            response = self.session.post(self.endpoint, json=self.build_message(attachment),
                                         timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            return SendError(str(e))
        return None


def dispatch(reviews: list[Review], config: NotificationConfig, store: SeenStore,
             first_time: bool, webhook: Optional[SlackWebhook] = None,
             log: Optional[logging.Logger] = None) -> DispatchSummary:
    """
    Send reviews in order and record each delivered one as seen.

    Args:
        first_time: No seen-state existed before this run. Everything is stored
                    as seen but nothing is posted, so turning the bot on does not
                    flood the channel with the whole review history.

    Raises:
        ConfigError: no webhook endpoint configured. Nothing is sent or stored.
    """
    log = log or logger
    summary = DispatchSummary()

    if not reviews:
        return summary

    if not config.endpoint:
        raise ConfigError("You should set endpoint in Slack settings")

    own_webhook = webhook is None
    webhook = webhook or SlackWebhook.from_config(config)

    try:
        for review in reviews:
            _deliver(review, webhook, store, first_time, summary, log)
    finally:
        if own_webhook:
            webhook.close()

    if first_time:
        log.info("First run: stored %s reviews without posting them", summary.suppressed)
    return summary


def _deliver(review: Review, webhook: SlackWebhook, store: SeenStore, first_time: bool,
             summary: DispatchSummary, log: logging.Logger) -> None:
    attachment = format_review(review)

    if not first_time:
        error = webhook.send(attachment)
        if error is not None:
            summary.failed += 1
            log.error("Failed to send review %s", review.id, exc_info=error)
            return

    try:
        store.mark_seen(review.id)
    except sqlite3.Error as e:
        # Posted but not recorded: it will be posted again next run
        summary.failed += 1
        log.error("Failed to store review %s as seen", review.id, exc_info=e)
        return

    if first_time:
        summary.suppressed += 1
    else:
        summary.sent += 1
