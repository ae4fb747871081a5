from __future__ import annotations

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from hireflow.jobs.tasks import run_scorecard_reminders
from hireflow.services.collaborators import Collaborators


def start_scheduler(collaborators: Collaborators) -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_job(
        run_scorecard_reminders,
        IntervalTrigger(minutes=30),
        kwargs={"collaborators": collaborators},
        id="scorecard_reminders",
        replace_existing=True,
    )
    scheduler.start()
    return scheduler
