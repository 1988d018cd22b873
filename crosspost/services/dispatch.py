# crosspost/services/dispatch.py
import logging
from typing import Any, Callable, Optional
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from crosspost.config import settings

logger = logging.getLogger(__name__)

POLL_JOB_ID = "instagram_poll"

class JobDispatcher:
    """
    Owns background execution. Callers submit work and return immediately;
    outcomes are observed through the persisted job state.
    """

    def __init__(self, max_workers: Optional[int] = None):
        self.scheduler = BackgroundScheduler(
            timezone="UTC",
            executors={"default": ThreadPoolExecutor(max_workers or settings.worker_concurrency)},
            job_defaults={"misfire_grace_time": None, "coalesce": False},
        )

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()

    def shutdown(self, wait: bool = False) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)

    def submit(self, func: Callable[..., Any], *args: Any) -> None:
        # no trigger: run once, as soon as a worker thread is free
        self.scheduler.add_job(func, args=list(args))

    def submit_job(self, status_id: int) -> None:
        from crosspost.services.worker import run_job
        self.submit(run_job, status_id)

    def submit_ingest(self, media_id: str, ig_user_id: Optional[str] = None) -> None:
        from crosspost.services.ingestion import run_ingest
        self.submit(run_ingest, media_id, ig_user_id)

    def schedule_poll(self, minutes: int) -> None:
        from crosspost.services.cron import run_poll_cycle
        self.scheduler.add_job(
            run_poll_cycle, IntervalTrigger(minutes=minutes),
            id=POLL_JOB_ID, replace_existing=True, max_instances=1, coalesce=True,
        )

    def unschedule_poll(self) -> bool:
        if self.scheduler.get_job(POLL_JOB_ID) is None:
            return False
        self.scheduler.remove_job(POLL_JOB_ID)
        return True

    def poll_scheduled(self) -> bool:
        return self.scheduler.get_job(POLL_JOB_ID) is not None


dispatcher = JobDispatcher()

def get_dispatcher() -> JobDispatcher:
    return dispatcher
