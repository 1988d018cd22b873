# crosspost/services/http_client.py
import logging
import time
import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = httpx.Timeout(30, connect=5)
UPLOAD_TIMEOUT = httpx.Timeout(300, connect=10)
RETRY_STATUSES = (429, 500, 502, 503, 504)

def client(timeout: httpx.Timeout = DEFAULT_TIMEOUT) -> httpx.Client:
    """Every outbound platform call goes through here (tests swap in a MockTransport)."""
    return httpx.Client(timeout=timeout, follow_redirects=True)

# Only for idempotent calls: metadata reads, media downloads, token refresh.
def request_with_retry(method: str, url: str, max_attempts: int = 3, backoff: float = 2.0, **kwargs) -> httpx.Response:
    timeout = kwargs.pop("timeout", DEFAULT_TIMEOUT)
    for attempt in range(1, max_attempts + 1):
        try:
            with client(timeout) as c:
                resp = c.request(method, url, **kwargs)
            if resp.status_code in RETRY_STATUSES and attempt < max_attempts:
                logger.warning("[http] %s attempt %d got %d, retrying", url.split("?")[0], attempt, resp.status_code)
                time.sleep(backoff * attempt)
                continue
            return resp
        except httpx.TransportError as e:
            logger.warning("[http] request error on %s: %s", url.split("?")[0], e)
            if attempt < max_attempts:
                time.sleep(backoff * attempt)
                continue
            raise
    raise RuntimeError(f"{method} {url} failed after {max_attempts} attempts")
