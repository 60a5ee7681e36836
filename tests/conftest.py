import pytest
import requests

from reviewer.database import SeenStore
from reviewer.models import Application, Author, Review


def app_entry(name="Spotify", link="https://apps.apple.com/app/id123"):
    entry = {
        "im:name": {"label": name},
        "im:image": [
            {"label": "https://example.com/icon53.png"},
            {"label": "https://example.com/icon100.png"},
        ],
    }
    if link:
        entry["link"] = {"attributes": {"rel": "alternate", "href": link}}
    return entry


def review_entry(review_id, rating=5, title="Great", content="Love it", version="1.2"):
    return {
        "id": {"label": str(review_id)},
        "author": {
            "uri": {"label": f"https://itunes.apple.com/user/{review_id}"},
            "name": {"label": f"user{review_id}"},
        },
        "title": {"label": title},
        "content": {"label": content, "attributes": {"type": "text"}},
        "im:rating": {"label": str(rating)},
        "im:version": {"label": version},
    }


def feed(*entries):
    return {"feed": {"entry": list(entries)}}


def make_review(review_id=42, rating=5, country="US"):
    return Review(
        id=review_id,
        author=Author(uri="https://itunes.apple.com/user/1", name="Ann"),
        title="Title",
        content="Content",
        rating=rating,
        country=country,
        application=Application(name="App", image="https://example.com/i.png",
                                link="https://apps.apple.com/app/id1", version="2.0"),
    )


class FakeResponse:
    def __init__(self, payload=None, status=200, body_error=None):
        self.payload = payload
        self.status_code = status
        self.body_error = body_error

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if self.body_error:
            raise self.body_error
        return self.payload


class FakeSession:
    """
    Stands in for requests.Session.

    pages: {(country_code, page): payload | FakeResponse | Exception}
    Missing pages return an empty feed.
    fail_posts: review titles whose POST should fail.
    """

    def __init__(self, pages=None, fail_posts=()):
        self.pages = pages or {}
        self.fail_posts = set(fail_posts)
        self.requested = []
        self.posted = []
        self.closed = False

    def get(self, url, timeout=None):
        self.requested.append((url, timeout))
        for (code, page), result in self.pages.items():
            if f"/{code}/rss/" in url and f"page={page}/" in url:
                if isinstance(result, Exception):
                    raise result
                if isinstance(result, FakeResponse):
                    return result
                return FakeResponse(result)
        return FakeResponse({"feed": {}})

    def post(self, url, json=None, timeout=None):
        title = json["attachments"][0]["fields"][0]["title"]
        if title in self.fail_posts:
            raise requests.ConnectionError(f"cannot post {title}")
        self.posted.append((url, json, timeout))
        return FakeResponse({}, status=200)

    def close(self):
        self.closed = True


@pytest.fixture
def store(tmp_path):
    return SeenStore.open(str(tmp_path), app_id=123)


def seed_store(path, app_id=123, review_id=999999):
    """Leave a store with history behind, so the next open is not a first run."""
    SeenStore.open(str(path), app_id=app_id).mark_seen(review_id)


@pytest.fixture
def seeded_store(tmp_path):
    """A store that already had history before the run (not a first run)."""
    seed_store(tmp_path)
    return SeenStore.open(str(tmp_path), app_id=123)
