# crosspost/routers/instagram_webhook.py
import logging
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import PlainTextResponse
from typing import Optional

from crosspost.config import settings
from crosspost.deps import get_dispatcher
from crosspost.services.dispatch import JobDispatcher
from crosspost.services.webhooks import extract_media_events

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks/instagram", tags=["webhooks"])

@router.get("", response_class=PlainTextResponse)
def verify(
    mode: Optional[str] = Query(None, alias="hub.mode"),
    token: Optional[str] = Query(None, alias="hub.verify_token"),
    challenge: Optional[str] = Query(None, alias="hub.challenge"),
):
    if mode == "subscribe" and token == settings.instagram_webhook_verify_token:
        logger.info("[webhook] verified")
        return PlainTextResponse(challenge or "", status_code=200)
    return PlainTextResponse("Verification failed", status_code=403)

@router.post("", response_class=PlainTextResponse)
async def receive(request: Request, dispatcher: JobDispatcher = Depends(get_dispatcher)):
    try:
        payload = await request.json()
    except ValueError:
        logger.error("[webhook] body is not JSON")
        return PlainTextResponse("Webhook Error", status_code=500)

    if not isinstance(payload, dict) or payload.get("object") != "instagram":
        obj = payload.get("object") if isinstance(payload, dict) else None
        logger.warning("[webhook] payload object is not instagram: %s", obj)
        return PlainTextResponse("Not an instagram event", status_code=404)

    try:
        events = extract_media_events(payload)
    except (AttributeError, TypeError, KeyError):
        logger.exception("[webhook] could not read delivery")
        return PlainTextResponse("Webhook Error", status_code=500)

    for media_id, ig_user_id in events:
        try:
            dispatcher.submit_ingest(media_id, ig_user_id)
        except Exception:
            logger.exception("[webhook] could not submit ingestion for media %s", media_id)

    return PlainTextResponse("EVENT_RECEIVED", status_code=200)
