"""
Maintenance for the job table: reap jobs stuck in processing and re-submit
recent failures for a bounded number of automatic retries. Both actions are
idempotent and safe to run on any schedule.
"""

import logging
from datetime import timedelta
from typing import Iterable, List, Optional
from sqlalchemy.orm import Session
from crosspost.config import settings
from crosspost.db import crud, models
from crosspost.db.models import Post, PostStatus, utcnow

logger = logging.getLogger(__name__)

STALE_JOB_TIMEOUT = timedelta(minutes=settings.stale_job_minutes)
TIMED_OUT_MESSAGE = "Job timed out"
MAX_RETRIES = settings.max_retries
RETRY_WINDOW = timedelta(hours=settings.retry_window_hours)
RETRY_BATCH_SIZE = settings.retry_batch_size


def reap_stale_jobs(
    db: Session,
    older_than: timedelta = STALE_JOB_TIMEOUT,
    user_id: Optional[int] = None,
    message: str = TIMED_OUT_MESSAGE,
) -> List[PostStatus]:
    """Force jobs stuck in processing past the threshold to failed."""
    cutoff = utcnow() - older_than
    q = db.query(PostStatus).filter(
        PostStatus.state == models.PROCESSING,
        PostStatus.updated_at < cutoff,
    )
    if user_id is not None:
        q = q.join(Post).filter(Post.user_id == user_id)

    reaped = []
    for status in q.all():
        # conditional on the state so a job finishing right now is left alone
        updated = (
            db.query(PostStatus)
            .filter(PostStatus.id == status.id, PostStatus.state == models.PROCESSING)
            .update(
                {PostStatus.state: models.FAILED, PostStatus.error_message: message, PostStatus.updated_at: utcnow()},
                synchronize_session=False,
            )
        )
        if updated:
            reaped.append(status)
    db.commit()
    for status in reaped:
        db.refresh(status)
    if reaped:
        logger.info("[recovery] reaped %d stuck jobs", len(reaped))
    return reaped


def retry_failed_jobs(
    db: Session,
    dispatcher=None,
    max_retries: int = MAX_RETRIES,
    window: timedelta = RETRY_WINDOW,
    batch_size: int = RETRY_BATCH_SIZE,
    exclude_ids: Iterable[int] = (),
) -> List[PostStatus]:
    """Re-submit recent pending/failed jobs that are still under the retry ceiling."""
    if dispatcher is None:
        from crosspost.services.dispatch import get_dispatcher
        dispatcher = get_dispatcher()

    q = db.query(PostStatus).filter(
        PostStatus.state.in_((models.PENDING, models.FAILED)),
        PostStatus.retryable.is_(True),
        PostStatus.retry_count < max_retries,
        PostStatus.updated_at >= utcnow() - window,
    )
    exclude_ids = list(exclude_ids)
    if exclude_ids:
        # reaped this cycle: the first run may still be publishing
        q = q.filter(PostStatus.id.notin_(exclude_ids))
    candidates = (
        q.order_by(PostStatus.updated_at.asc(), PostStatus.id.asc())
        .limit(batch_size)
        .all()
    )

    retried = []
    for status in candidates:
        crud.reset_for_retry(db, status)
        try:
            dispatcher.submit_job(status.id)
        except Exception:
            logger.exception("[recovery] could not submit retry for job %s", status.id)
            continue
        retried.append(status)
    if retried:
        logger.info("[recovery] re-submitted %d jobs", len(retried))
    return retried
