import sqlite3

import pytest
import requests

from conftest import FakeSession, make_review
from reviewer.config import ConfigError
from reviewer.models import NotificationConfig
from reviewer.notifier import SendError, SlackWebhook, dispatch

ENDPOINT = "https://hooks.slack.com/services/T/B/X"


def make_hook(session, **kwargs):
    return SlackWebhook(ENDPOINT, session=session, **kwargs)


def titled(review_id, title):
    review = make_review(review_id)
    review.title = title
    return review


def test_sends_and_marks_seen(seeded_store):
    session = FakeSession()
    config = NotificationConfig(endpoint=ENDPOINT)

    summary = dispatch([make_review(42, rating=5)], config, seeded_store, first_time=False,
                       webhook=make_hook(session))

    assert summary.sent == 1
    assert summary.delivered == 1
    assert seeded_store.has(42)

    url, message, _ = session.posted[0]
    assert url == ENDPOINT
    attachment = message["attachments"][0]
    assert attachment["color"] == "good"
    assert attachment["fields"][1]["value"] == "★★★★★"


def test_first_run_stores_without_sending(store):
    session = FakeSession()
    reviews = [make_review(1), make_review(2)]

    summary = dispatch(reviews, NotificationConfig(endpoint=ENDPOINT), store, first_time=True,
                       webhook=make_hook(session))

    assert session.posted == []
    assert summary.suppressed == 2
    assert summary.sent == 0
    assert store.has(1) and store.has(2)


def test_failed_send_is_isolated_and_left_unseen(seeded_store):
    session = FakeSession(fail_posts={"A"})
    reviews = [titled(1, "A"), titled(2, "B")]

    summary = dispatch(reviews, NotificationConfig(endpoint=ENDPOINT), seeded_store,
                       first_time=False, webhook=make_hook(session))

    assert (summary.sent, summary.failed) == (1, 1)
    assert not seeded_store.has(1)
    assert seeded_store.has(2)
    assert [m["attachments"][0]["fields"][0]["title"] for _, m, _ in session.posted] == ["B"]


def test_missing_endpoint_fails_before_any_write(seeded_store):
    session = FakeSession()

    with pytest.raises(ConfigError):
        dispatch([make_review(1)], NotificationConfig(), seeded_store, first_time=False,
                 webhook=make_hook(session))

    assert session.posted == []
    assert not seeded_store.has(1)


def test_empty_list_is_a_no_op(seeded_store):
    summary = dispatch([], NotificationConfig(), seeded_store, first_time=False)

    assert summary.delivered == 0


def test_message_identity_and_channel():
    hook = SlackWebhook(ENDPOINT, channel="#reviews", username="Bot",
                        icon_url="https://example.com/bot.png")

    message = hook.build_message({"fallback": "x"})

    assert message["username"] == "Bot"
    assert message["channel"] == "#reviews"
    assert message["icon_url"] == "https://example.com/bot.png"
    assert message["attachments"] == [{"fallback": "x"}]


def test_message_without_channel_override():
    assert "channel" not in SlackWebhook(ENDPOINT).build_message({})


def test_send_returns_error_instead_of_raising():
    session = FakeSession(fail_posts={"Title"})

    error = make_hook(session).send({"fields": [{"title": "Title"}]})

    assert isinstance(error, SendError)


def test_send_uses_timeout():
    session = FakeSession()

    assert make_hook(session, timeout=(3, 7)).send({"fields": [{"title": "T"}]}) is None
    assert session.posted[0][2] == (3, 7)


class LockedStore:
    """Seen store whose writes fail for some ids."""

    def __init__(self, locked_ids):
        self.locked_ids = set(locked_ids)
        self.seen = set()

    def mark_seen(self, review_id):
        if review_id in self.locked_ids:
            raise sqlite3.OperationalError("database is locked")
        self.seen.add(review_id)


def test_storage_error_on_one_review_does_not_stop_the_rest():
    session = FakeSession()
    store = LockedStore({1})
    reviews = [titled(1, "A"), titled(2, "B")]

    summary = dispatch(reviews, NotificationConfig(endpoint=ENDPOINT), store, first_time=False,
                       webhook=make_hook(session))

    assert (summary.sent, summary.failed) == (1, 1)
    assert store.seen == {2}
    assert len(session.posted) == 2


def test_dispatch_closes_the_webhook_it_created(seeded_store, monkeypatch):
    created = []

    def make_session():
        session = FakeSession()
        created.append(session)
        return session

    monkeypatch.setattr(requests, "Session", make_session)

    dispatch([make_review(1)], NotificationConfig(endpoint=ENDPOINT), seeded_store, first_time=False)

    assert len(created) == 1
    assert created[0].closed
    assert len(created[0].posted) == 1
