from typing import Generator, Optional
from fastapi import Header, HTTPException
from crosspost.db.base import SessionLocal, engine, Base
from crosspost.db import models  # noqa: F401  (registers tables on Base)
from crosspost.auth.session import user_id_from_authorization
from crosspost.services.dispatch import JobDispatcher, get_dispatcher as _get_dispatcher

def init_db() -> None:
    Base.metadata.create_all(bind=engine)

def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def get_dispatcher() -> JobDispatcher:
    return _get_dispatcher()

def get_current_user_id(authorization: Optional[str] = Header(None)) -> int:
    if not authorization:
        raise HTTPException(401, "Unauthorized")
    user_id = user_id_from_authorization(authorization)
    if user_id is None:
        raise HTTPException(401, "Invalid token")
    return user_id
