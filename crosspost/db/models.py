from datetime import datetime, timezone
from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from crosspost.db.base import Base

# platform tags
INSTAGRAM = "instagram"
TWITTER = "twitter"
YOUTUBE = "youtube"

# PostStatus.state: pending -> processing -> success | failed
PENDING = "pending"
PROCESSING = "processing"
SUCCESS = "success"
FAILED = "failed"

# Instagram media types
IMAGE = "IMAGE"
VIDEO = "VIDEO"
CAROUSEL_ALBUM = "CAROUSEL_ALBUM"
REELS = "REELS"
FEED = "FEED"


def utcnow() -> datetime:
    # naive UTC, matching what SQLite hands back
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(320), unique=True, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Account(Base):
    __tablename__ = "accounts"
    __table_args__ = (UniqueConstraint("user_id", "platform", name="uq_account_user_platform"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    platform = Column(String(32), nullable=False, index=True)
    platform_user_id = Column(String(128), nullable=False, index=True)  # IG user id, tweet author id, channel id
    username = Column(String(256), nullable=True)
    access_token_encrypted = Column(Text, nullable=False)
    refresh_token_encrypted = Column(Text, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class Post(Base):
    __tablename__ = "posts"
    __table_args__ = (UniqueConstraint("source_platform", "source_media_id", name="uq_post_source_media"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    source_platform = Column(String(32), nullable=False, default=INSTAGRAM)
    source_media_id = Column(String(128), nullable=False, index=True)
    media_url = Column(Text, nullable=True)
    permalink = Column(String(1024), nullable=True)
    caption = Column(Text, default="")
    media_type = Column(String(32), nullable=False)
    media_product_type = Column(String(32), default=FEED)
    source_timestamp = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    statuses = relationship("PostStatus", back_populates="post")


class PostStatus(Base):
    __tablename__ = "post_statuses"
    __table_args__ = (UniqueConstraint("post_id", "platform", name="uq_status_post_platform"),)

    id = Column(Integer, primary_key=True, index=True)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=False, index=True)
    platform = Column(String(32), nullable=False)
    state = Column(String(16), nullable=False, default=PENDING, index=True)
    external_post_id = Column(String(256), nullable=True)
    error_message = Column(Text, nullable=True)
    retry_count = Column(Integer, nullable=False, default=0)
    retryable = Column(Boolean, nullable=False, default=True)  # False for content-policy failures
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, index=True)

    post = relationship("Post", back_populates="statuses")
