# crosspost/services/media.py
import logging
import subprocess
import tempfile
from pathlib import Path
from typing import Tuple
from crosspost.config import settings
from crosspost.errors import CrosspostError
from crosspost.services import http_client

logger = logging.getLogger(__name__)

SHORT_DURATION_SECONDS = 5


class MediaError(CrosspostError):
    pass


def download_media(url: str) -> Tuple[bytes, str]:
    """Fetch source media; returns (bytes, content type)."""
    resp = http_client.request_with_retry("GET", url, timeout=http_client.UPLOAD_TIMEOUT)
    if not resp.is_success:
        raise MediaError(f"Failed to download media: {resp.status_code} {resp.reason_phrase}")
    content_type = (resp.headers.get("content-type") or "application/octet-stream").split(";")[0].strip()
    return resp.content, content_type


def convert_image_to_video(image_bytes: bytes, name: str, duration: int = SHORT_DURATION_SECONDS) -> Path:
    """
    Render a still image into a silent mp4 of `duration` seconds.

    The returned file lives in the system temp dir; the caller owns it and
    must delete it.
    """
    out_path = Path(tempfile.gettempdir()) / f"{name}.mp4"
    with tempfile.TemporaryDirectory() as work_dir:
        image_path = Path(work_dir) / f"{name}.img"
        image_path.write_bytes(image_bytes)
        cmd = [
            settings.ffmpeg_path,
            "-y",
            "-loop", "1",
            "-i", str(image_path),
            "-t", str(duration),
            "-r", "30",
            # even dimensions are required by libx264
            "-vf", "scale=trunc(iw/2)*2:trunc(ih/2)*2,format=yuv420p",
            "-c:v", "libx264",
            "-preset", "fast",
            "-movflags", "+faststart",
            str(out_path),
        ]
        logger.info("[media] converting image to %ds video: %s", duration, out_path.name)
        try:
            proc = subprocess.run(cmd, capture_output=True, timeout=120)
        except (OSError, subprocess.TimeoutExpired) as e:
            out_path.unlink(missing_ok=True)
            raise MediaError(f"ffmpeg could not run: {e}") from e
    if proc.returncode != 0 or not out_path.exists():
        out_path.unlink(missing_ok=True)
        stderr = proc.stderr.decode(errors="replace")[-500:]
        raise MediaError(f"ffmpeg exited with {proc.returncode}: {stderr}")
    return out_path
