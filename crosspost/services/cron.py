import logging
from typing import Any, Dict, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from crosspost.db.base import SessionLocal
from crosspost.db import crud_accounts, models
from crosspost.services.poller import poll_account
from crosspost.services.recovery import reap_stale_jobs, retry_failed_jobs

logger = logging.getLogger(__name__)

def poll_cycle(db: Session, dispatcher=None) -> Dict[str, Any]:
    """One bounded maintenance + import pass: reap, retry, then poll every active Instagram account."""
    try:
        cleaned = reap_stale_jobs(db)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("[cron] stale job reaping failed: %s", e)
        cleaned = []

    try:
        retried = retry_failed_jobs(db, dispatcher=dispatcher, exclude_ids=[s.id for s in cleaned])
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("[cron] retry sweep failed: %s", e)
        retried = []

    details = []
    for account in crud_accounts.list_active_accounts(db, models.INSTAGRAM):
        count = poll_account(db, account, dispatcher=dispatcher)
        details.append({
            "user": account.user_id,
            "platform_id": account.platform_user_id,
            "new_posts": count,
        })

    logger.info(
        "[cron] cleaned=%d retried=%d accounts=%d new=%d",
        len(cleaned), len(retried), len(details), sum(d["new_posts"] for d in details),
    )
    return {
        "success": True,
        "message": "Polling complete",
        "cleaned_jobs": len(cleaned),
        "retried_jobs": len(retried),
        "polled_accounts": len(details),
        "new_posts": sum(d["new_posts"] for d in details),
        "details": details,
    }

def run_poll_cycle(dispatcher: Optional[Any] = None) -> Dict[str, Any]:
    # each scheduled run gets its own session
    db = SessionLocal()
    try:
        return poll_cycle(db, dispatcher=dispatcher)
    finally:
        db.close()
