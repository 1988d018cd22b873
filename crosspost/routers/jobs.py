# crosspost/routers/jobs.py
import logging
from datetime import timedelta
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from typing import Any, Dict, List
from sqlalchemy.orm import Session

from crosspost.deps import get_current_user_id, get_db, get_dispatcher
from crosspost.db import crud, models
from crosspost.db.models import PostStatus
from crosspost.services.dispatch import JobDispatcher
from crosspost.services.recovery import reap_stale_jobs

logger = logging.getLogger(__name__)

router = APIRouter(tags=["jobs"])

USER_STUCK_THRESHOLD = timedelta(minutes=5)
STATUS_PAGE_SIZE = 50
STATUS_CHECK_PAGE_SIZE = 10

class RetryIn(BaseModel):
    status_id: int

def _status_out(s: PostStatus) -> Dict[str, Any]:
    return {
        "id": s.id,
        "platform": s.platform,
        "status": s.state,
        "instagram_media_id": s.post.source_media_id if s.post else "",
        "external_post_id": s.external_post_id,
        "last_error": s.error_message or None,
        "retry_count": s.retry_count,
        "created_at": s.created_at.isoformat() if s.created_at else None,
        "updated_at": s.updated_at.isoformat() if s.updated_at else None,
    }

@router.post("/retry")
def retry(
    body: RetryIn,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    dispatcher: JobDispatcher = Depends(get_dispatcher),
) -> Dict[str, Any]:
    status = crud.get_status(db, body.status_id)
    if not status:
        raise HTTPException(404, "Status not found")
    if status.post.user_id != user_id:
        raise HTTPException(403, "Unauthorized")
    if not status.retryable:
        raise HTTPException(409, "This job cannot be retried")
    if status.state == models.PROCESSING:
        raise HTTPException(409, "Job is already processing")

    crud.reset_for_retry(db, status)
    dispatcher.submit_job(status.id)
    logger.info("[retry] job %s re-queued by user %s (retry %d)", status.id, user_id, status.retry_count)
    return {"success": True, "message": "Retry triggered"}

@router.post("/reset-stuck")
def reset_stuck(user_id: int = Depends(get_current_user_id), db: Session = Depends(get_db)) -> Dict[str, Any]:
    reset = reap_stale_jobs(
        db, older_than=USER_STUCK_THRESHOLD, user_id=user_id,
        message="Job timed out after 5 minutes",
    )
    return {
        "success": True,
        "reset_count": len(reset),
        "jobs": [{"id": s.id, "platform": s.platform} for s in reset],
    }

@router.get("/status")
def status(user_id: int = Depends(get_current_user_id), db: Session = Depends(get_db)) -> List[Dict[str, Any]]:
    rows = crud.list_statuses(db, user_id=user_id, limit=STATUS_PAGE_SIZE)
    return [_status_out(s) for s in rows]

@router.get("/status-check")
def status_check(db: Session = Depends(get_db)) -> Dict[str, Any]:
    rows = crud.list_statuses(db, limit=STATUS_CHECK_PAGE_SIZE)
    return {"count": len(rows), "statuses": [_status_out(s) for s in rows]}
