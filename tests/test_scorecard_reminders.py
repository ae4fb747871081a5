from __future__ import annotations

from datetime import timedelta

from hireflow.core.datetime_utils import utcnow_naive
from hireflow.core.roles import Role
from hireflow.core.workflow import ApplicationStatus, InterviewStatus, ScorecardState
from hireflow.jobs.tasks import REMINDER_ACTION, reminder_due, run_scorecard_reminders
from hireflow.models import Interview, Scorecard, WorkflowEvent


def test_reminder_due_counts_duration_and_grace():
    now = utcnow_naive()
    assert reminder_due(now - timedelta(hours=30), 60, now=now, grace_hours=24) is True
    assert reminder_due(now - timedelta(hours=30), 480, now=now, grace_hours=24) is False
    assert reminder_due(now - timedelta(hours=2), None, now=now, grace_hours=1) is True


async def test_reminders_are_sent_once_per_interview(db_session, seed, tenant, session_factory, collaborators, notifier):
    job_id = await seed.job(tenant.company_id, tenant.hr, positions_count=4)
    now = utcnow_naive()

    async def interview(**kwargs) -> int:
        candidate = await seed.user(None, Role.CANDIDATE)
        application_id = await seed.application(job_id, candidate, status=ApplicationStatus.INTERVIEW)
        return await seed.interview(application_id, tenant.interviewer, **kwargs)

    overdue = await interview(scheduled_at=now - timedelta(hours=30))
    scored = await interview(scheduled_at=now - timedelta(hours=30))
    long_panel = await interview(scheduled_at=now - timedelta(hours=30), duration_minutes=480)
    recent = await interview(scheduled_at=now - timedelta(hours=2))
    cancelled = await interview(scheduled_at=now - timedelta(hours=30), status=InterviewStatus.CANCELLED)

    db_session.add(
        Scorecard(
            interview_id=scored,
            interviewer_id=tenant.interviewer.user_id,
            recommendation="hire",
            is_final=ScorecardState.FINAL.value,
        )
    )
    await db_session.commit()

    sent = await run_scorecard_reminders(collaborators=collaborators, session_factory=session_factory, now=now)
    assert sent == 1
    assert await seed.count(WorkflowEvent, WorkflowEvent.action_type == REMINDER_ACTION) == 1
    reminded = await seed.count(
        WorkflowEvent, WorkflowEvent.action_type == REMINDER_ACTION, WorkflowEvent.entity_id == overdue
    )
    assert reminded == 1

    again = await run_scorecard_reminders(collaborators=collaborators, session_factory=session_factory, now=now)
    assert again == 0

    await collaborators.notifications.drain()
    assert notifier.events() == ["scorecard_reminder"]
    assert notifier.calls[0][1] == {
        "interview_id": overdue,
        "application_id": await seed.value(Interview, overdue, "application_id"),
        "company_id": tenant.company_id,
    }
    assert notifier.calls[0][2] == "HireFlow scheduler"

    # reminders never change workflow state
    for interview_id in (overdue, scored, long_panel, recent):
        assert await seed.value(Interview, interview_id) == InterviewStatus.SCHEDULED.value
    assert await seed.value(Interview, cancelled) == InterviewStatus.CANCELLED.value
