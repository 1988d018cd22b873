# crosspost/services/twitter_api.py
import json
import logging
from typing import Any, Dict, List, Optional
import httpx
from crosspost.config import settings
from crosspost.errors import PublishError
from crosspost.services import http_client

logger = logging.getLogger(__name__)

UPLOAD_URL = "https://upload.twitter.com/1.1/media/upload.json"
TWEETS_URL = "https://api.twitter.com/2/tweets"
TOKEN_URL = "https://api.twitter.com/2/oauth2/token"

def _auth(access_token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {access_token}"}

def _json_or_fail(r: httpx.Response, context: str) -> Dict[str, Any]:
    try:
        data = r.json()
    except ValueError:
        raise PublishError("twitter", f"{context} returned non-JSON: {r.text[:200]}...", details=r.text)
    if not isinstance(data, dict):
        raise PublishError("twitter", f"{context} returned unexpected payload: {json.dumps(data)[:200]}", details=data)
    return data

# --- chunked media upload: INIT -> APPEND -> FINALIZE ---

def media_upload_init(access_token: str, total_bytes: int, media_type: str, media_category: str) -> str:
    with http_client.client(http_client.UPLOAD_TIMEOUT) as c:
        r = c.post(
            UPLOAD_URL,
            headers=_auth(access_token),
            data={
                "command": "INIT",
                "total_bytes": str(total_bytes),
                "media_type": media_type,
                "media_category": media_category,
            },
        )
    data = _json_or_fail(r, "Twitter Media Init")
    media_id = data.get("media_id_string")
    if not media_id:
        raise PublishError("twitter", f"Twitter Media Init Failed: {json.dumps(data)}", details=data)
    return media_id

def media_upload_append(access_token: str, media_id: str, content: bytes, filename: str) -> None:
    with http_client.client(http_client.UPLOAD_TIMEOUT) as c:
        r = c.post(
            UPLOAD_URL,
            headers=_auth(access_token),
            data={"command": "APPEND", "media_id": media_id, "segment_index": "0"},
            files={"media": (filename, content, "application/octet-stream")},
        )
    if r.status_code >= 400:
        raise PublishError("twitter", f"Twitter Media Append Failed ({r.status_code}): {r.text[:200]}", details=r.text)

def media_upload_finalize(access_token: str, media_id: str) -> Dict[str, Any]:
    with http_client.client(http_client.UPLOAD_TIMEOUT) as c:
        r = c.post(
            UPLOAD_URL,
            headers=_auth(access_token),
            data={"command": "FINALIZE", "media_id": media_id},
        )
    data = _json_or_fail(r, "Twitter Media Finalize")
    if data.get("errors") or data.get("error"):
        raise PublishError("twitter", f"Twitter Media Finalize Failed: {json.dumps(data)}", details=data)
    return data

def create_tweet(access_token: str, text: str, media_ids: Optional[List[str]] = None) -> str:
    body: Dict[str, Any] = {"text": text}
    if media_ids:
        body["media"] = {"media_ids": media_ids}
    with http_client.client() as c:
        r = c.post(
            TWEETS_URL,
            headers={**_auth(access_token), "Content-Type": "application/json"},
            json=body,
        )
    data = _json_or_fail(r, "Twitter API")
    tweet = data.get("data")
    if not tweet or not tweet.get("id"):
        raise PublishError("twitter", data.get("detail") or json.dumps(data), details=data)
    return str(tweet["id"])

def refresh_access_token(refresh_token: str) -> Dict[str, Any]:
    # confidential client: basic auth with the app credentials
    resp = http_client.request_with_retry(
        "POST", TOKEN_URL,
        auth=(settings.twitter_client_id, settings.twitter_client_secret),
        data={
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": settings.twitter_client_id,
        },
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    resp.raise_for_status()
    return resp.json()
