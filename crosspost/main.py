import logging
from fastapi import FastAPI
from crosspost.config import settings
from crosspost.deps import init_db
from crosspost.services.dispatch import dispatcher

# Routers
from crosspost.routers import instagram_webhook, cron, jobs, scheduler_api

logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")

app = FastAPI(title="Crosspost API", version="0.6.0")

@app.on_event("startup")
def _startup():
    init_db()
    dispatcher.start()

@app.on_event("shutdown")
def _shutdown():
    dispatcher.shutdown(wait=False)

@app.get("/")
def root():
    return {"message": "Crosspost API is running!"}

# Mount routes
app.include_router(instagram_webhook.router)  # /webhooks/instagram
app.include_router(cron.router)               # /cron/*
app.include_router(jobs.router)               # /retry, /reset-stuck, /status*
app.include_router(scheduler_api.router)      # /scheduler/*
