# crosspost/services/webhooks.py
import logging
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

def _media_id_for_change(field: Optional[str], value: Dict[str, Any]) -> Optional[str]:
    if field == "mentions":
        return value.get("media_id")
    if field == "comments":
        media = value.get("media")
        return media.get("id") if isinstance(media, dict) else None
    if field in ("media", "media_product_type"):
        return value.get("id")
    logger.info("[webhook] unknown change field: %s", field)
    return None

def extract_media_events(payload: Dict[str, Any]) -> List[Tuple[str, Optional[str]]]:
    """(media_id, ig_user_id) pairs from an Instagram webhook delivery, in delivery order."""
    events: List[Tuple[str, Optional[str]]] = []
    entries = payload.get("entry") or []
    if not isinstance(entries, list):
        return events
    for entry in entries:
        if not isinstance(entry, dict):
            logger.warning("[webhook] skipping malformed entry: %r", entry)
            continue
        ig_user_id = entry.get("id")
        changes = entry.get("changes") or []
        if not isinstance(changes, list):
            logger.warning("[webhook] skipping malformed changes for %s", ig_user_id)
            continue
        for change in changes:
            if not isinstance(change, dict):
                continue
            value = change.get("value") or {}
            if not isinstance(value, dict):
                continue
            media_id = _media_id_for_change(change.get("field"), value)
            if media_id:
                events.append((str(media_id), str(ig_user_id) if ig_user_id is not None else None))
            else:
                logger.info("[webhook] no media id in %s change", change.get("field"))
    return events
