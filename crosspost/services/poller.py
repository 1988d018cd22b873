# crosspost/services/poller.py
import logging
from sqlalchemy.orm import Session
from crosspost.config import settings
from crosspost.db import crud, token_crypto
from crosspost.db.models import Account
from crosspost.services import instagram_api
from crosspost.services.ingestion import ingest_media

logger = logging.getLogger(__name__)

def poll_account(db: Session, account: Account, dispatcher=None) -> int:
    """Import the newest media of one Instagram account; returns how many items were newly ingested."""
    try:
        access_token = token_crypto.decrypt_token(account.access_token_encrypted)
        if not access_token:
            logger.error("[poll] cannot decrypt token for account %s", account.id)
            return 0

        items = instagram_api.list_recent_media(account.platform_user_id, access_token, limit=settings.poll_page_size)

        new_count = 0
        for item in items:
            media_id = item.get("id")
            # ingestion re-checks this; skipping here just saves the metadata fetch
            if not media_id or crud.post_exists(db, media_id):
                continue
            result = ingest_media(db, media_id, account.platform_user_id, account=account, dispatcher=dispatcher)
            if result is not None and result.created:
                new_count += 1
        return new_count
    except Exception as e:
        db.rollback()
        logger.error("[poll] polling failed for account %s: %s", account.platform_user_id, e)
        return 0
