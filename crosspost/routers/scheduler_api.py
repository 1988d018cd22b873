from fastapi import APIRouter, Depends, Query
from typing import Dict, Any
from crosspost.deps import get_dispatcher
from crosspost.services.dispatch import JobDispatcher

router = APIRouter(prefix="/scheduler", tags=["scheduler"])

@router.post("/start")
def start(
    minutes: int = Query(5, ge=1, le=1440),
    dispatcher: JobDispatcher = Depends(get_dispatcher),
) -> Dict[str, Any]:
    # periodic reap + retry + poll inside this process
    if dispatcher.poll_scheduled():
        return {"status": "already-running"}
    dispatcher.start()
    dispatcher.schedule_poll(minutes)
    return {"status": "started", "every_minutes": minutes}

@router.post("/stop")
def stop(dispatcher: JobDispatcher = Depends(get_dispatcher)) -> Dict[str, Any]:
    if dispatcher.unschedule_poll():
        return {"status": "stopped"}
    return {"status": "not-running"}

@router.get("/status")
def status(dispatcher: JobDispatcher = Depends(get_dispatcher)) -> Dict[str, Any]:
    return {"running": dispatcher.running, "polling": dispatcher.poll_scheduled()}
