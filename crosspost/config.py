import os
from dotenv import load_dotenv

load_dotenv()

class Settings:
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./crosspost.db")
    fernet_key: str = os.getenv("FERNET_KEY", "")
    # Caller sessions are HS256 JWTs issued by the front-end login flow.
    jwt_secret: str = os.getenv("JWT_SECRET", "")
    jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")

    instagram_webhook_verify_token: str = os.getenv("INSTAGRAM_WEBHOOK_VERIFY_TOKEN", "crossposting_verify_token")
    instagram_graph_version: str = os.getenv("INSTAGRAM_GRAPH_VERSION", "v19.0")
    twitter_client_id: str = os.getenv("TWITTER_CLIENT_ID", "")
    twitter_client_secret: str = os.getenv("TWITTER_CLIENT_SECRET", "")
    google_client_id: str = os.getenv("GOOGLE_CLIENT_ID", "")
    google_client_secret: str = os.getenv("GOOGLE_CLIENT_SECRET", "")

    cron_secret: str = os.getenv("CRON_SECRET", "")
    ffmpeg_path: str = os.getenv("FFMPEG_PATH", "ffmpeg")

    worker_concurrency: int = int(os.getenv("WORKER_CONCURRENCY", "4"))
    poll_page_size: int = int(os.getenv("POLL_PAGE_SIZE", "5"))
    stale_job_minutes: int = int(os.getenv("STALE_JOB_MINUTES", "10"))
    max_retries: int = int(os.getenv("MAX_RETRIES", "3"))
    retry_batch_size: int = int(os.getenv("RETRY_BATCH_SIZE", "5"))
    retry_window_hours: int = int(os.getenv("RETRY_WINDOW_HOURS", "24"))

    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()

settings = Settings()
