"""
Turns a review into a Slack message attachment.
Pure functions: no network, no storage.
"""

from reviewer.models import Review

FILLED_STAR = "★"
EMPTY_STAR = "☆"


def rating_glyphs(rating: int) -> str:
    """Always 5 characters, e.g. 3 -> "★★★☆☆"."""
    filled = max(0, min(5, int(rating)))
    return FILLED_STAR * filled + EMPTY_STAR * (5 - filled)


def rating_color(rating: int) -> str:
    """Slack attachment color: green for 4-5 stars, yellow for 3, red below."""
    if rating >= 4:
        return "good"
    if rating == 3:
        return "warning"
    return "danger"


def format_review(review: Review) -> dict:
    """
    Build the attachment for one review.
    Title and content are passed through untouched.
    """
    stars = rating_glyphs(review.rating)
    app = review.application

    attachment = {
        "fallback": f"{stars} {review.title} — {review.content}",
        "author_name": app.name,
        "author_icon": app.image,
        "color": rating_color(review.rating),
        "fields": [
            {"title": review.title, "value": review.content},
            {"title": "Rating", "value": stars, "short": True},
            {"title": "Author", "value": f"<{review.author.uri}|{review.author.name}>", "short": True},
            {"title": "Version", "value": app.version, "short": True},
            {"title": "Country", "value": review.country, "short": True},
        ],
    }
    if app.link:
        attachment["author_link"] = app.link

    return attachment
