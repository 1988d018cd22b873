"""
Destination publishers.

Each publisher turns a canonical Post into one artifact on its platform and
returns the platform-assigned id. Every failure is raised as PublishError (or
lets a network/media error through); the job executor records it on the job.
"""

import logging
import re
import time
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional
from crosspost.db import models
from crosspost.db.models import Post
from crosspost.errors import PublishError
from crosspost.services import media, twitter_api, youtube_api

logger = logging.getLogger(__name__)

TWEET_MAX_CHARS = 280
YOUTUBE_TITLE_MAX_CHARS = 100
YOUTUBE_CATEGORY_ID = "22"  # People & Blogs
YOUTUBE_TAGS = ["crossposting"]
SHORTS_TAG = "#Shorts"

# everything from U+1000 up: emoji, symbols, most non-latin scripts
_TITLE_STRIP_RE = re.compile("[\u1000-\U0010FFFF]+")


class Publisher:
    platform: str = ""

    def publish(self, post: Post, access_token: str) -> str:
        raise NotImplementedError


class TwitterPublisher(Publisher):
    platform = models.TWITTER

    def publish(self, post: Post, access_token: str) -> str:
        caption = (post.caption or "")[:TWEET_MAX_CHARS]
        media_ids = None

        if post.media_url and post.media_type in (models.IMAGE, models.VIDEO):
            logger.info("[twitter] downloading media for post %s", post.id)
            content, content_type = media.download_media(post.media_url)
            is_video = content_type.startswith("video")
            media_id = twitter_api.media_upload_init(
                access_token,
                total_bytes=len(content),
                media_type=content_type,
                media_category="tweet_video" if is_video else "tweet_image",
            )
            twitter_api.media_upload_append(
                access_token, media_id, content, filename="media.mp4" if is_video else "media.jpg"
            )
            fin = twitter_api.media_upload_finalize(access_token, media_id)
            if fin.get("processing_info"):
                # Not polled to completion; large videos may still be processing when the tweet is created.
                logger.warning("[twitter] media %s still processing: %s", media_id, fin["processing_info"])
            media_ids = [media_id]

        tweet_id = twitter_api.create_tweet(access_token, caption, media_ids)
        logger.info("[twitter] posted %s for post %s", tweet_id, post.id)
        return tweet_id


def youtube_title(caption: Optional[str], today: Optional[datetime] = None) -> str:
    clean = _TITLE_STRIP_RE.sub("", caption or "").strip()
    clean = clean.split("\n")[0].strip()
    title = clean[:YOUTUBE_TITLE_MAX_CHARS]
    if len(title) < 2:
        d = today or datetime.now()
        title = f"New Instagram Video {d.month}/{d.day}/{d.year}"
    return title


def with_shorts_tag(title: str, description: str):
    suffix = f" {SHORTS_TAG}"
    if SHORTS_TAG not in title:
        title = title[:YOUTUBE_TITLE_MAX_CHARS - len(suffix)] + suffix
    if SHORTS_TAG not in description:
        description += suffix
    return title, description


class YouTubePublisher(Publisher):
    platform = models.YOUTUBE

    def publish(self, post: Post, access_token: str) -> str:
        title = youtube_title(post.caption)
        description = post.caption or ""
        temp_video: Optional[Path] = None
        if not post.media_url:
            raise PublishError(self.platform, "Post has no media to upload")

        try:
            logger.info("[youtube] processing media for post %s", post.id)
            content, content_type = media.download_media(post.media_url)
            is_short = False

            if post.media_type == models.IMAGE:
                try:
                    temp_video = media.convert_image_to_video(
                        content, f"ig_post_{post.source_media_id}_{int(time.time() * 1000)}"
                    )
                    content = temp_video.read_bytes()
                except (media.MediaError, OSError) as e:
                    raise PublishError(self.platform, f"Image Conversion Failed: {e}") from e
                content_type = "video/mp4"
                is_short = True
            elif post.media_type == models.VIDEO and post.media_product_type == models.REELS:
                is_short = True

            if is_short:
                title, description = with_shorts_tag(title, description)

            metadata = {
                "snippet": {
                    "title": title,
                    "description": description,
                    "categoryId": YOUTUBE_CATEGORY_ID,
                    "tags": YOUTUBE_TAGS,
                },
                "status": {
                    "privacyStatus": "public",
                    "selfDeclaredMadeForKids": False,
                },
            }
            location = youtube_api.start_resumable_upload(access_token, len(content), content_type, metadata)
            video_id = youtube_api.upload_video_bytes(location, content, content_type)
            logger.info("[youtube] posted as %s: %s", "Short" if is_short else "Video", video_id)
            return video_id
        finally:
            if temp_video is not None:
                try:
                    temp_video.unlink(missing_ok=True)
                except OSError as e:
                    logger.error("[youtube] cleanup of %s failed: %s", temp_video, e)


PUBLISHERS: Dict[str, Publisher] = {
    p.platform: p for p in (TwitterPublisher(), YouTubePublisher())
}

def get_publisher(platform: str) -> Publisher:
    publisher = PUBLISHERS.get(platform)
    if publisher is None:
        raise PublishError(platform, f"No publisher registered for platform '{platform}'")
    return publisher
