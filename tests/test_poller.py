import httpx
import pytest

from crosspost.db import models
from crosspost.db.models import Post
from crosspost.services import poller
from crosspost.services.poller import poll_account


def account_handler(ids, broken=()):
    """Graph API for one account: `/U1/media` lists `ids`; media in `broken` cannot be read."""
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.endswith("/U1/media"):
            limit = int(request.url.params["limit"])
            return httpx.Response(200, json={"data": [{"id": i} for i in ids[:limit]]})
        media_id = path.rsplit("/", 1)[-1]
        if media_id in broken:
            return httpx.Response(400, json={"error": {"message": "Media not available", "code": 10}})
        return httpx.Response(200, json={
            "id": media_id, "media_type": "IMAGE",
            "media_url": f"https://cdn.example.com/{media_id}.jpg", "caption": media_id,
        })
    return handler


@pytest.fixture
def ig_account(user, connect):
    connect(user.id, models.TWITTER)
    return connect(user.id, models.INSTAGRAM, platform_user_id="U1", token="ig-token")


def test_counts_only_new_posts(db, user, ig_account, make_post, dispatcher, mock_http):
    make_post(user.id, source_media_id="p2")
    make_post(user.id, source_media_id="p4")
    mock_http(account_handler(["p1", "p2", "p3", "p4", "p5"]))

    assert poll_account(db, ig_account, dispatcher=dispatcher) == 3
    assert db.query(Post).count() == 5
    assert len(dispatcher.jobs) == 3


def test_failed_ingest_is_not_counted(db, ig_account, dispatcher, mock_http):
    mock_http(account_handler(["p1", "p2", "p3"], broken={"p2"}))

    assert poll_account(db, ig_account, dispatcher=dispatcher) == 2


def test_page_size_limits_items(db, ig_account, dispatcher, mock_http):
    mock_http(account_handler([f"p{i}" for i in range(12)]))

    assert poll_account(db, ig_account, dispatcher=dispatcher) == 5


def test_listing_error_yields_zero(db, ig_account, dispatcher, mock_http):
    mock_http(lambda request: httpx.Response(400, json={"error": {"message": "Invalid OAuth access token", "code": 190}}))

    assert poll_account(db, ig_account, dispatcher=dispatcher) == 0


def test_undecryptable_token_yields_zero(db, ig_account, dispatcher, monkeypatch):
    ig_account.access_token_encrypted = "garbage"
    db.commit()

    def never(*args, **kwargs):
        raise AssertionError("should not list media without a token")
    monkeypatch.setattr(poller.instagram_api, "list_recent_media", never)

    assert poll_account(db, ig_account, dispatcher=dispatcher) == 0
