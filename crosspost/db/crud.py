from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload
from typing import Optional, List, Dict, Any, Tuple
from crosspost.db import models
from crosspost.db.models import Post, PostStatus, utcnow

# --- posts ---

def get_post_by_source(db: Session, media_id: str, source_platform: str = models.INSTAGRAM) -> Optional[Post]:
    return (
        db.query(Post)
        .filter(Post.source_platform == source_platform, Post.source_media_id == media_id)
        .first()
    )

def post_exists(db: Session, media_id: str, source_platform: str = models.INSTAGRAM) -> bool:
    q = db.query(Post.id).filter(Post.source_platform == source_platform, Post.source_media_id == media_id)
    return db.query(q.exists()).scalar()

def create_post(db: Session, data: Dict[str, Any]) -> Tuple[Post, bool]:
    """Insert a Post; on a (source_platform, source_media_id) conflict return the stored row instead."""
    obj = Post(**data)
    db.add(obj)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        existing = get_post_by_source(db, data["source_media_id"], data.get("source_platform", models.INSTAGRAM))
        if existing is None:
            raise
        return existing, False
    db.refresh(obj)
    return obj, True

# --- statuses (jobs) ---

def create_status(
    db: Session,
    post_id: int,
    platform: str,
    state: str = models.PENDING,
    error_message: Optional[str] = None,
    retryable: bool = True,
) -> Tuple[PostStatus, bool]:
    obj = PostStatus(
        post_id=post_id, platform=platform, state=state,
        error_message=error_message, retryable=retryable,
    )
    db.add(obj)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        existing = (
            db.query(PostStatus)
            .filter(PostStatus.post_id == post_id, PostStatus.platform == platform)
            .first()
        )
        if existing is None:
            raise
        return existing, False
    db.refresh(obj)
    return obj, True

def get_status(db: Session, status_id: int) -> Optional[PostStatus]:
    return db.get(PostStatus, status_id, populate_existing=True)

def claim_status(db: Session, status_id: int) -> bool:
    """pending -> processing as a single conditional UPDATE; True only for the caller that won."""
    updated = (
        db.query(PostStatus)
        .filter(PostStatus.id == status_id, PostStatus.state == models.PENDING)
        .update(
            {PostStatus.state: models.PROCESSING, PostStatus.updated_at: utcnow()},
            synchronize_session=False,
        )
    )
    db.commit()
    return updated == 1

def _finish(db: Session, status: PostStatus, values: Dict[Any, Any]) -> PostStatus:
    # only the run that still owns the job may write its outcome
    values[PostStatus.updated_at] = utcnow()
    (
        db.query(PostStatus)
        .filter(PostStatus.id == status.id, PostStatus.state == models.PROCESSING)
        .update(values, synchronize_session=False)
    )
    db.commit()
    db.refresh(status)
    return status

def mark_success(db: Session, status: PostStatus, external_post_id: str) -> PostStatus:
    return _finish(db, status, {
        PostStatus.state: models.SUCCESS,
        PostStatus.external_post_id: external_post_id,
        PostStatus.error_message: None,
    })

def mark_failed(db: Session, status: PostStatus, message: str) -> PostStatus:
    return _finish(db, status, {
        PostStatus.state: models.FAILED,
        PostStatus.error_message: message,
    })

def reset_for_retry(db: Session, status: PostStatus) -> PostStatus:
    status.state = models.PENDING
    status.error_message = None
    status.retry_count = (status.retry_count or 0) + 1
    db.add(status)
    db.commit()
    return status

def list_statuses(db: Session, user_id: Optional[int] = None, limit: int = 50) -> List[PostStatus]:
    q = db.query(PostStatus).join(Post).options(joinedload(PostStatus.post))
    if user_id is not None:
        q = q.filter(Post.user_id == user_id)
    return q.order_by(PostStatus.created_at.desc(), PostStatus.id.desc()).limit(limit).all()
