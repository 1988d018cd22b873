# crosspost/services/instagram_api.py
import logging
from typing import Any, Dict, List, Optional
from crosspost.config import settings
from crosspost.errors import InstagramAPIError
from crosspost.services import http_client

logger = logging.getLogger(__name__)

GRAPH_URL = f"https://graph.facebook.com/{settings.instagram_graph_version}"
MEDIA_FIELDS = "media_url,caption,media_type,timestamp,permalink,thumbnail_url,media_product_type"

def _graph_get(path: str, access_token: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    query = dict(params or {})
    query["access_token"] = access_token
    r = http_client.request_with_retry("GET", f"{GRAPH_URL}/{path}", params=query)
    try:
        data = r.json()
    except ValueError:
        raise InstagramAPIError(f"Instagram API returned non-JSON ({r.status_code}): {r.text[:200]}")
    if not isinstance(data, dict):
        raise InstagramAPIError(f"Unexpected Instagram API payload: {str(data)[:200]}")
    err = data.get("error")
    if err:
        if isinstance(err, dict):
            raise InstagramAPIError(err.get("message") or str(err), code=err.get("code"))
        raise InstagramAPIError(str(err))
    return data

def can_access_media(media_id: str, access_token: str) -> bool:
    """Cheap probe: does this token see the media at all?"""
    try:
        _graph_get(media_id, access_token, {"fields": "id"})
        return True
    except InstagramAPIError as e:
        logger.debug("[instagram] probe for %s refused: %s", media_id, e)
        return False

def get_media(media_id: str, access_token: str) -> Dict[str, Any]:
    return _graph_get(media_id, access_token, {"fields": MEDIA_FIELDS})

def list_recent_media(ig_user_id: str, access_token: str, limit: int = 5) -> List[Dict[str, Any]]:
    data = _graph_get(f"{ig_user_id}/media", access_token, {"limit": limit})
    return list(data.get("data") or [])
