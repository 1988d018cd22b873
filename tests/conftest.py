import httpx
import pytest
from cryptography.fernet import Fernet
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from crosspost.auth.session import create_access_token
from crosspost.config import settings
from crosspost.db.base import Base
from crosspost.db import crud, crud_accounts, models
from crosspost.db.models import PostStatus, utcnow
from crosspost.deps import get_db, get_dispatcher
from crosspost.main import app
from crosspost.services import http_client


class RecordingDispatcher:
    """Stands in for the thread pool: remembers submissions, runs nothing."""

    def __init__(self):
        self.jobs = []
        self.ingests = []

    def submit_job(self, status_id):
        self.jobs.append(status_id)

    def submit_ingest(self, media_id, ig_user_id=None):
        self.ingests.append((media_id, ig_user_id))


@pytest.fixture(autouse=True)
def _secrets(monkeypatch):
    monkeypatch.setattr(settings, "fernet_key", Fernet.generate_key().decode())
    monkeypatch.setattr(settings, "jwt_secret", "test-jwt-secret")
    monkeypatch.setattr(settings, "cron_secret", "")


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
    session = Session()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def client(db, dispatcher):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def mock_http(monkeypatch):
    """Route every outbound platform call to `handler(request) -> httpx.Response`."""
    def install(handler):
        transport = httpx.MockTransport(handler)
        monkeypatch.setattr(
            http_client, "client",
            lambda timeout=http_client.DEFAULT_TIMEOUT: httpx.Client(transport=transport),
        )
    return install


@pytest.fixture
def user(db):
    return crud_accounts.create_user(db, email="owner@example.com")


@pytest.fixture
def other_user(db):
    return crud_accounts.create_user(db, email="someone-else@example.com")


@pytest.fixture
def connect(db):
    def _connect(user_id, platform, platform_user_id=None, token=None, **kwargs):
        return crud_accounts.upsert_account(
            db, user_id, platform,
            platform_user_id=platform_user_id or f"{platform}-{user_id}",
            access_token=token or f"{platform}-token-{user_id}",
            **kwargs,
        )
    return _connect


@pytest.fixture
def make_post(db):
    counter = {"n": 0}

    def _make_post(user_id, media_type=models.VIDEO, **overrides):
        counter["n"] += 1
        data = {
            "user_id": user_id,
            "source_platform": models.INSTAGRAM,
            "source_media_id": f"media-{counter['n']}",
            "media_url": "https://cdn.example.com/media.mp4",
            "caption": "hello world",
            "media_type": media_type,
            "media_product_type": models.FEED,
        }
        data.update(overrides)
        post, _ = crud.create_post(db, data)
        return post
    return _make_post


@pytest.fixture
def make_status(db):
    def _make_status(post, platform=models.TWITTER, state=models.PENDING, age=None, **fields):
        when = utcnow() - age if age is not None else utcnow()
        status = PostStatus(
            post_id=post.id, platform=platform, state=state,
            created_at=when, updated_at=when, **fields,
        )
        db.add(status)
        db.commit()
        db.refresh(status)
        return status
    return _make_status


@pytest.fixture
def auth_header():
    def _header(user_id):
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}
    return _header
