# crosspost/services/worker.py
import logging
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from crosspost.db.base import SessionLocal
from crosspost.db import crud, crud_accounts, models
from crosspost.db.models import PostStatus
from crosspost.services import publishers, tokens

logger = logging.getLogger(__name__)

def execute_job(db: Session, status_id: int) -> Optional[PostStatus]:
    """
    Drive one PostStatus from pending to a terminal state.

    Returns None without side effects when the job is missing or not pending,
    so duplicate or concurrent invocations are harmless. Publisher failures
    are recorded on the job, never raised.
    """
    if not crud.claim_status(db, status_id):
        logger.info("[worker] job %s is not pending, skipping", status_id)
        return None

    status = crud.get_status(db, status_id)
    post = status.post
    account = crud_accounts.get_active_account(db, post.user_id, status.platform)
    if not account:
        return crud.mark_failed(db, status, f"No connected account found for {status.platform}")

    try:
        publisher = publishers.get_publisher(status.platform)
        access_token = tokens.get_valid_token(db, account)
        external_id = publisher.publish(post, access_token)
    except Exception as e:
        logger.error("[worker] post %s to %s failed: %s", post.id, status.platform, e)
        db.rollback()
        return crud.mark_failed(db, status, str(e) or e.__class__.__name__)

    status = crud.mark_success(db, status, external_id)
    if status.state != models.SUCCESS:
        logger.warning(
            "[worker] job %s was %s before publish finished; %s id %s not recorded",
            status_id, status.state, status.platform, external_id,
        )
    return status

def run_job(status_id: int) -> None:
    """Dispatcher entry point: one session per job run."""
    db = SessionLocal()
    try:
        execute_job(db, status_id)
    except SQLAlchemyError:
        # the job stays in processing and is reaped by the recovery sweep
        logger.exception("[worker] storage error while running job %s", status_id)
    finally:
        db.close()
