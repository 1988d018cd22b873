# crosspost/services/youtube_api.py
import json
import logging
from typing import Any, Dict
from crosspost.config import settings
from crosspost.errors import PublishError
from crosspost.services import http_client

logger = logging.getLogger(__name__)

UPLOAD_URL = "https://www.googleapis.com/upload/youtube/v3/videos?uploadType=resumable&part=snippet,status"
TOKEN_URL = "https://oauth2.googleapis.com/token"

def start_resumable_upload(access_token: str, size: int, content_type: str, metadata: Dict[str, Any]) -> str:
    """Open an upload session and return its Location."""
    with http_client.client(http_client.UPLOAD_TIMEOUT) as c:
        r = c.post(
            UPLOAD_URL,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Content-Type": "application/json",
                "X-Upload-Content-Length": str(size),
                "X-Upload-Content-Type": content_type,
            },
            json=metadata,
        )
    if not r.is_success:
        raise PublishError("youtube", f"YouTube Init Failed: {r.text}", details={"status": r.status_code, "body": r.text})
    location = r.headers.get("Location")
    if not location:
        raise PublishError("youtube", "YouTube API did not return upload Location header", details=dict(r.headers))
    return location

def upload_video_bytes(location: str, content: bytes, content_type: str) -> str:
    with http_client.client(http_client.UPLOAD_TIMEOUT) as c:
        r = c.put(
            location,
            headers={"Content-Length": str(len(content)), "Content-Type": content_type},
            content=content,
        )
    try:
        data = r.json()
    except ValueError:
        raise PublishError("youtube", f"YouTube upload returned non-JSON ({r.status_code}): {r.text[:200]}", details=r.text)
    video_id = data.get("id") if isinstance(data, dict) else None
    if not video_id:
        raise PublishError("youtube", json.dumps(data), details=data)
    return str(video_id)

def refresh_access_token(refresh_token: str) -> Dict[str, Any]:
    resp = http_client.request_with_retry(
        "POST", TOKEN_URL,
        data={
            "client_id": settings.google_client_id,
            "client_secret": settings.google_client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        },
    )
    resp.raise_for_status()
    return resp.json()
