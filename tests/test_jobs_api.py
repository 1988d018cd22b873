from datetime import timedelta

import httpx
import pytest
from sqlalchemy.exc import OperationalError

from crosspost.auth.session import create_access_token
from crosspost.config import settings
from crosspost.db import models
from crosspost.services import cron as cron_service


def test_retry_requires_auth(client):
    assert client.post("/retry", json={"status_id": 1}).status_code == 401
    resp = client.post("/retry", json={"status_id": 1}, headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


def test_retry_rejects_expired_token(client, user):
    token = create_access_token(user.id, ttl_seconds=-60)
    resp = client.post("/retry", json={"status_id": 1}, headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


def test_retry_unknown_job(client, user, auth_header):
    resp = client.post("/retry", json={"status_id": 999}, headers=auth_header(user.id))
    assert resp.status_code == 404


def test_retry_someone_elses_job(client, user, other_user, make_post, make_status, auth_header, dispatcher):
    status = make_status(make_post(other_user.id), state=models.FAILED)
    resp = client.post("/retry", json={"status_id": status.id}, headers=auth_header(user.id))
    assert resp.status_code == 403
    assert dispatcher.jobs == []


def test_retry_failed_job(client, db, user, make_post, make_status, auth_header, dispatcher):
    status = make_status(make_post(user.id), state=models.FAILED, error_message="boom")

    resp = client.post("/retry", json={"status_id": status.id}, headers=auth_header(user.id))

    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "Retry triggered"}
    assert dispatcher.jobs == [status.id]
    db.refresh(status)
    assert status.state == models.PENDING
    assert status.error_message is None
    assert status.retry_count == 1


def test_retry_ignores_automatic_ceiling(client, user, make_post, make_status, auth_header, dispatcher):
    status = make_status(make_post(user.id), state=models.FAILED, retry_count=7)
    resp = client.post("/retry", json={"status_id": status.id}, headers=auth_header(user.id))
    assert resp.status_code == 200
    assert dispatcher.jobs == [status.id]


@pytest.mark.parametrize("fields", [
    {"state": models.PROCESSING},
    {"state": models.FAILED, "retryable": False},
])
def test_retry_conflicts(client, user, make_post, make_status, auth_header, dispatcher, fields):
    status = make_status(make_post(user.id), **fields)
    resp = client.post("/retry", json={"status_id": status.id}, headers=auth_header(user.id))
    assert resp.status_code == 409
    assert dispatcher.jobs == []


def test_status_lists_own_jobs_newest_first(client, user, other_user, make_post, make_status, auth_header):
    old = make_status(make_post(user.id), age=timedelta(hours=2))
    new = make_status(make_post(user.id), state=models.FAILED, error_message="nope")
    make_status(make_post(other_user.id))

    resp = client.get("/status", headers=auth_header(user.id))

    assert resp.status_code == 200
    body = resp.json()
    assert [row["id"] for row in body] == [new.id, old.id]
    assert body[0]["status"] == "failed"
    assert body[0]["last_error"] == "nope"
    assert body[0]["platform"] == "twitter"
    assert body[0]["instagram_media_id"].startswith("media-")
    assert body[1]["last_error"] is None


def test_status_requires_auth(client):
    assert client.get("/status").status_code == 401


def test_status_check(client, user, other_user, make_post, make_status):
    for _ in range(6):
        make_status(make_post(user.id))
    for _ in range(6):
        make_status(make_post(other_user.id))

    resp = client.get("/status-check")

    assert resp.status_code == 200
    assert resp.json()["count"] == 10
    assert len(resp.json()["statuses"]) == 10


def test_reset_stuck(client, db, user, make_post, make_status, auth_header):
    post = make_post(user.id)
    stuck = make_status(post, platform=models.TWITTER, state=models.PROCESSING, age=timedelta(minutes=6))
    make_status(post, platform=models.YOUTUBE, state=models.PROCESSING, age=timedelta(minutes=3))

    resp = client.post("/reset-stuck", headers=auth_header(user.id))

    assert resp.status_code == 200
    assert resp.json() == {"success": True, "reset_count": 1, "jobs": [{"id": stuck.id, "platform": "twitter"}]}
    db.refresh(stuck)
    assert stuck.state == models.FAILED
    assert stuck.error_message == "Job timed out after 5 minutes"


def test_cron_runs_full_cycle(client, db, user, connect, make_post, make_status, dispatcher, mock_http):
    connect(user.id, models.TWITTER)
    connect(user.id, models.INSTAGRAM, platform_user_id="U1", token="ig-token")
    post = make_post(user.id)
    stuck = make_status(post, platform=models.TWITTER, state=models.PROCESSING, age=timedelta(minutes=15))
    uploading = make_status(post, platform=models.YOUTUBE, state=models.PROCESSING, age=timedelta(minutes=3))
    earlier_failure = make_status(make_post(user.id), state=models.FAILED, age=timedelta(hours=1))

    def handler(request):
        if request.url.path.endswith("/U1/media"):
            return httpx.Response(200, json={"data": [{"id": "fresh"}]})
        return httpx.Response(200, json={
            "id": "fresh", "media_type": "IMAGE", "media_url": "https://cdn.example.com/f.jpg",
        })
    mock_http(handler)

    resp = client.get("/cron/import-instagram")

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["message"] == "Polling complete"
    assert body["cleaned_jobs"] == 1
    assert body["retried_jobs"] == 1
    assert body["polled_accounts"] == 1
    assert body["new_posts"] == 1
    assert body["details"] == [{"user": user.id, "platform_id": "U1", "new_posts": 1}]
    assert earlier_failure.id in dispatcher.jobs
    # reaped in this cycle: left failed until a later cycle, never re-dispatched while it may still be running
    assert stuck.id not in dispatcher.jobs
    db.refresh(stuck)
    db.refresh(uploading)
    assert stuck.state == models.FAILED
    assert stuck.retry_count == 0
    assert uploading.state == models.PROCESSING


def test_cron_leaves_slow_job_alone(client, db, user, make_post, make_status, dispatcher):
    running = make_status(make_post(user.id), state=models.PROCESSING, age=timedelta(minutes=3))

    body = client.get("/cron/import-instagram").json()

    assert body["cleaned_jobs"] == 0
    assert body["retried_jobs"] == 0
    assert dispatcher.jobs == []
    db.refresh(running)
    assert running.state == models.PROCESSING
    assert running.retry_count == 0


def test_cron_survives_storage_errors(client, monkeypatch):
    def broken(*args, **kwargs):
        raise OperationalError("UPDATE post_statuses", {}, Exception("database is locked"))

    monkeypatch.setattr(cron_service, "reap_stale_jobs", broken)
    monkeypatch.setattr(cron_service, "retry_failed_jobs", broken)

    resp = client.get("/cron/import-instagram")

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["cleaned_jobs"] == 0
    assert body["retried_jobs"] == 0


def test_cron_secret(client, monkeypatch):
    monkeypatch.setattr(settings, "cron_secret", "s3cret")
    assert client.get("/cron/import-instagram").status_code == 401
    resp = client.get("/cron/import-instagram", headers={"Authorization": "Bearer s3cret"})
    assert resp.status_code == 200
    assert resp.json()["polled_accounts"] == 0


def test_root(client):
    assert client.get("/").json() == {"message": "Crosspost API is running!"}
