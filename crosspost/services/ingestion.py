"""
Instagram media ingestion.

Turns one Instagram media id into a stored Post plus one publish job per
eligible destination. Nothing raised in here reaches the caller: failures are
logged and reported as a None result.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from crosspost.db.base import SessionLocal
from crosspost.db import crud, crud_accounts, models, token_crypto
from crosspost.db.models import Account, Post, PostStatus
from crosspost.errors import InstagramAPIError
from crosspost.services import instagram_api

logger = logging.getLogger(__name__)

RESTRICTED_VIDEO_MESSAGE = "Video contains copyrighted audio - Instagram API blocks download"
# Restricted videos are only reported against twitter; youtube would reject them anyway.
RESTRICTED_VIDEO_DESTINATIONS = (models.TWITTER,)
INVALID_IG_USER_IDS = ("", "0")  # "0" is what Meta's dashboard test webhooks send


@dataclass
class IngestResult:
    post: Post
    statuses: List[PostStatus] = field(default_factory=list)
    restricted: bool = False
    created: bool = True


def destinations_for(media_type: Optional[str]) -> List[str]:
    if media_type == models.VIDEO:
        return [models.TWITTER, models.YOUTUBE]
    return [models.TWITTER]


def _parse_timestamp(raw: Optional[str]) -> Optional[datetime]:
    # Graph API format: 2024-05-01T12:34:56+0000
    if not raw:
        return None
    try:
        ts = datetime.strptime(raw, "%Y-%m-%dT%H:%M:%S%z")
    except ValueError:
        logger.warning("[ingest] unparseable media timestamp %r", raw)
        return None
    return ts.astimezone(timezone.utc).replace(tzinfo=None)


def _find_account_for_media(db: Session, media_id: str) -> Optional[Account]:
    for acc in crud_accounts.list_active_accounts(db, models.INSTAGRAM):
        token = token_crypto.decrypt_token(acc.access_token_encrypted)
        if not token:
            continue
        try:
            if instagram_api.can_access_media(media_id, token):
                logger.info("[ingest] account %s can access media %s", acc.platform_user_id, media_id)
                return acc
        except httpx.HTTPError as e:
            logger.warning("[ingest] probe with account %s failed: %s", acc.platform_user_id, e)
    return None


def resolve_source_account(db: Session, media_id: str, ig_user_id: Optional[str] = None) -> Optional[Account]:
    if ig_user_id is None or str(ig_user_id) in INVALID_IG_USER_IDS:
        logger.info("[ingest] no usable IG user id (test webhook?), probing all Instagram accounts")
        return _find_account_for_media(db, media_id)
    return crud_accounts.get_account_by_platform_user_id(db, models.INSTAGRAM, str(ig_user_id))


def _post_data(account: Account, media_id: str, media: Dict[str, Any], media_url: Optional[str]) -> Dict[str, Any]:
    return {
        "user_id": account.user_id,
        "source_platform": models.INSTAGRAM,
        "source_media_id": media_id,
        "media_url": media_url,
        "permalink": media.get("permalink"),
        "caption": media.get("caption") or "",
        "media_type": media.get("media_type") or models.IMAGE,
        "media_product_type": media.get("media_product_type") or models.FEED,
        "source_timestamp": _parse_timestamp(media.get("timestamp")),
    }


def _ingest(db: Session, media_id: str, ig_user_id: Optional[str], account: Optional[Account], dispatcher) -> Optional[IngestResult]:
    if account is None:
        account = resolve_source_account(db, media_id, ig_user_id)
    if account is None:
        logger.error("[ingest] no connected Instagram account can access media %s (ig user %s)", media_id, ig_user_id)
        return None

    access_token = token_crypto.decrypt_token(account.access_token_encrypted)
    if not access_token:
        logger.error("[ingest] failed to decrypt access token for account %s", account.id)
        return None

    try:
        media = instagram_api.get_media(media_id, access_token)
    except InstagramAPIError as e:
        logger.error("[ingest] IG media fetch error (%s): %s", media_id, e.message)
        return None

    existing = crud.get_post_by_source(db, media_id)
    if existing:
        logger.info("[ingest] post %s already imported, skipping", media_id)
        return IngestResult(post=existing, created=False)

    if media.get("media_type") == models.VIDEO and not media.get("media_url"):
        return _record_restricted(db, account, media_id, media)

    post, created = crud.create_post(
        db, _post_data(account, media_id, media, media.get("media_url") or media.get("thumbnail_url"))
    )
    if not created:
        # lost the insert race to a concurrent delivery; that one fans out
        return IngestResult(post=post, created=False)
    logger.info("[ingest] imported Instagram post %s as %s", media_id, post.id)

    statuses: List[PostStatus] = []
    for platform in destinations_for(post.media_type):
        if not crud_accounts.get_active_account(db, post.user_id, platform):
            continue
        status, new = crud.create_status(db, post.id, platform)
        if not new:
            continue
        statuses.append(status)
        try:
            dispatcher.submit_job(status.id)
        except Exception:
            logger.exception("[ingest] could not submit job %s for %s", status.id, platform)
    return IngestResult(post=post, statuses=statuses)


def _record_restricted(db: Session, account: Account, media_id: str, media: Dict[str, Any]) -> IngestResult:
    logger.warning(
        "[ingest] video %s has no media_url (restricted content), recording only. Permalink: %s",
        media_id, media.get("permalink"),
    )
    post, created = crud.create_post(
        db, _post_data(account, media_id, media, media.get("thumbnail_url") or media.get("permalink"))
    )
    if not created:
        return IngestResult(post=post, restricted=True, created=False)

    statuses: List[PostStatus] = []
    for platform in RESTRICTED_VIDEO_DESTINATIONS:
        if crud_accounts.get_active_account(db, post.user_id, platform):
            status, _ = crud.create_status(
                db, post.id, platform,
                state=models.FAILED, error_message=RESTRICTED_VIDEO_MESSAGE, retryable=False,
            )
            statuses.append(status)
    return IngestResult(post=post, statuses=statuses, restricted=True)


def ingest_media(
    db: Session,
    media_id: str,
    ig_user_id: Optional[str] = None,
    account: Optional[Account] = None,
    dispatcher=None,
) -> Optional[IngestResult]:
    """
    Import one Instagram media item and fan out publish jobs.

    Args:
        media_id: Instagram media id
        ig_user_id: owning IG user id from the webhook entry; None or "0" triggers probing
        account: already-resolved source account (poller path)
        dispatcher: job submission target, defaults to the process dispatcher

    Returns:
        IngestResult, or None when the media could not be fetched or stored.
    """
    if dispatcher is None:
        from crosspost.services.dispatch import get_dispatcher
        dispatcher = get_dispatcher()
    try:
        return _ingest(db, media_id, ig_user_id, account, dispatcher)
    except (httpx.HTTPError, InstagramAPIError, SQLAlchemyError) as e:
        db.rollback()
        logger.error("[ingest] media %s failed: %r", media_id, e)
        return None
    except Exception:
        # configuration faults (e.g. no FERNET_KEY) land here
        db.rollback()
        logger.exception("[ingest] unexpected error for media %s", media_id)
        return None


def run_ingest(media_id: str, ig_user_id: Optional[str] = None) -> None:
    """Dispatcher entry point for webhook deliveries."""
    db = SessionLocal()
    try:
        ingest_media(db, media_id, ig_user_id)
    finally:
        db.close()
