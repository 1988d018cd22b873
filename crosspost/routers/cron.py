# crosspost/routers/cron.py
from fastapi import APIRouter, Depends, Header, HTTPException
from typing import Any, Dict, Optional
from sqlalchemy.orm import Session

from crosspost.config import settings
from crosspost.deps import get_db, get_dispatcher
from crosspost.services.cron import poll_cycle
from crosspost.services.dispatch import JobDispatcher

router = APIRouter(prefix="/cron", tags=["cron"])

@router.get("/import-instagram")
def import_instagram(
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    dispatcher: JobDispatcher = Depends(get_dispatcher),
) -> Dict[str, Any]:
    if settings.cron_secret and authorization != f"Bearer {settings.cron_secret}":
        raise HTTPException(401, "Unauthorized")
    return poll_cycle(db, dispatcher=dispatcher)
