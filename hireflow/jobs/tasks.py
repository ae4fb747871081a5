from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy import exists, select

from hireflow.core.config import settings
from hireflow.core.datetime_utils import utcnow_naive
from hireflow.core.workflow import InterviewStatus, ScorecardState
from hireflow.models.application import Application
from hireflow.models.event import WorkflowEvent
from hireflow.models.interview import Interview, Scorecard
from hireflow.models.job import JobRequisition
from hireflow.services.collaborators import Collaborators, NotificationEvent
from hireflow.services.events import log_event

logger = logging.getLogger("hireflow.workflow")

REMINDER_ACTION = "scorecard_reminder"


def reminder_due(scheduled_at: datetime, duration_minutes: int | None, *, now: datetime, grace_hours: int) -> bool:
    ends_at = scheduled_at + timedelta(minutes=duration_minutes or 0)
    return ends_at + timedelta(hours=grace_hours) < now


async def run_scorecard_reminders(
    *,
    collaborators: Collaborators,
    session_factory: Callable | None = None,
    now: datetime | None = None,
) -> int:
    """Nudge interviewers whose interview ended without a final scorecard. Never changes workflow state."""
    if session_factory is None:
        from hireflow.db.session import SessionLocal

        session_factory = SessionLocal
    now = now or utcnow_naive()
    grace_hours = int(settings.scorecard_reminder_hours)
    reminded: list[tuple[int, int, int]] = []

    async with session_factory() as session:
        has_final = exists().where(
            Scorecard.interview_id == Interview.id,
            Scorecard.is_final == ScorecardState.FINAL.value,
        )
        already_reminded = exists().where(
            WorkflowEvent.entity_type == "interview",
            WorkflowEvent.entity_id == Interview.id,
            WorkflowEvent.action_type == REMINDER_ACTION,
        )
        rows = (
            await session.execute(
                select(Interview, JobRequisition.company_id)
                .join(Application, Application.id == Interview.application_id)
                .join(JobRequisition, JobRequisition.id == Application.job_id)
                .where(
                    Interview.status == InterviewStatus.SCHEDULED.value,
                    Interview.scheduled_at < now - timedelta(hours=grace_hours),
                    ~has_final,
                    ~already_reminded,
                )
                .order_by(Interview.scheduled_at.asc())
            )
        ).all()
        for interview, company_id in rows:
            if not reminder_due(interview.scheduled_at, interview.duration_minutes, now=now, grace_hours=grace_hours):
                continue
            await log_event(
                session,
                entity_type="interview",
                entity_id=interview.id,
                company_id=company_id,
                action_type=REMINDER_ACTION,
                meta_json={"interviewer_id": interview.interviewer_id, "scheduled_at": interview.scheduled_at},
            )
            reminded.append((interview.id, interview.application_id, company_id))
        await session.commit()

    for interview_id, application_id, company_id in reminded:
        collaborators.notifications.dispatch(
            NotificationEvent.SCORECARD_REMINDER,
            {"interview_id": interview_id, "application_id": application_id, "company_id": company_id},
            "HireFlow scheduler",
        )
    if reminded:
        logger.info("scorecard_reminders_sent", extra={"count": len(reminded)})
    return len(reminded)
