from __future__ import annotations

from datetime import datetime, timedelta, timezone

from hireflow.core.outcomes import ErrorCode
from hireflow.core.roles import Role
from hireflow.core.workflow import ApplicationStatus, InterviewStatus, JobStatus, OfferStatus
from hireflow.models import Application, Interview, JobRequisition, Offer
from hireflow.services.applications import apply_for_job, final_decision, screen_application
from hireflow.services.events import list_entity_events
from hireflow.services.interviews import finalize_scorecard, schedule_interview, submit_scorecard
from hireflow.services.jobs import create_job_draft, decide_job_approval, submit_job
from hireflow.services.offers import accept_offer, create_offer, send_offer


async def test_single_seat_requisition_from_draft_to_hire(db_session, seed, tenant, candidate, collaborators, notifier):
    draft = await create_job_draft(
        db_session,
        actor=tenant.hr,
        title="Staff Engineer",
        positions_count=1,
        details={"department": "Platform", "location": "Remote"},
    )
    job_id = draft.entity_id
    assert (
        await submit_job(
            db_session, actor=tenant.hr, job_id=job_id, approver_id=tenant.manager.user_id, collaborators=collaborators
        )
    ).ok
    assert (
        await decide_job_approval(db_session, actor=tenant.manager, job_id=job_id, approve=True, collaborators=collaborators)
    ).ok

    applied = await apply_for_job(db_session, actor=candidate, job_id=job_id, collaborators=collaborators)
    application_id = applied.entity_id
    runner_up = await seed.user(None, Role.CANDIDATE, first_name="Robin")
    runner_up_id = (await apply_for_job(db_session, actor=runner_up, job_id=job_id, collaborators=collaborators)).entity_id

    assert (
        await screen_application(
            db_session, actor=tenant.hr, application_id=application_id, decision="interview", collaborators=collaborators
        )
    ).ok
    scheduled = await schedule_interview(
        db_session,
        actor=tenant.hr,
        application_id=application_id,
        interviewer_id=tenant.interviewer.user_id,
        scheduled_at=datetime.now(timezone.utc) + timedelta(days=2),
        collaborators=collaborators,
    )
    interview_id = scheduled.entity_id

    scorecard = await submit_scorecard(
        db_session,
        actor=tenant.interviewer,
        interview_id=interview_id,
        recommendation="strong hire",
        ratings={"system_design": 5, "communication": 4},
    )
    assert (
        await finalize_scorecard(
            db_session, actor=tenant.interviewer, scorecard_id=scorecard.entity_id, collaborators=collaborators
        )
    ).ok
    assert await seed.value(Interview, interview_id) == InterviewStatus.COMPLETED.value

    assert (
        await final_decision(
            db_session, actor=tenant.manager, application_id=application_id, decision="selected", collaborators=collaborators
        )
    ).ok
    offer = await create_offer(
        db_session,
        actor=tenant.hr,
        application_id=application_id,
        collaborators=collaborators,
        offer_details={"offered_ctc": "150000"},
    )
    assert (await send_offer(db_session, actor=tenant.hr, offer_id=offer.entity_id, collaborators=collaborators)).ok
    assert (await accept_offer(db_session, actor=candidate, offer_id=offer.entity_id, collaborators=collaborators)).ok
    assert await seed.value(Offer, offer.entity_id) == OfferStatus.ACCEPTED.value

    hired = await final_decision(
        db_session, actor=tenant.manager, application_id=application_id, decision="hired", collaborators=collaborators
    )
    assert hired.ok
    assert await seed.value(Application, application_id) == ApplicationStatus.HIRED.value
    assert await seed.value(JobRequisition, job_id) == JobStatus.CLOSED.value
    assert await seed.value(JobRequisition, job_id, "positions_count") == 0

    # the filled requisition turns away new applicants
    late = await seed.user(None, Role.CANDIDATE)
    outcome = await apply_for_job(db_session, actor=late, job_id=job_id, collaborators=collaborators)
    assert outcome.error_code == ErrorCode.NO_OPENINGS
    assert await seed.value(Application, runner_up_id) == ApplicationStatus.APPLIED.value

    history = [
        (event.action_type, event.to_status)
        for event in await list_entity_events(
            db_session, entity_type="application", entity_id=application_id, company_id=tenant.company_id
        )
    ]
    assert history == [
        ("application_submitted", "applied"),
        ("application_screened", "interview"),
        ("application_scored", "interview score submited"),
        ("application_final_decision", "selected"),
        ("offer_letter_sent", "offer_letter_sent"),
        ("offer_accepted", "offer accecepted"),
        ("application_hired", "hired"),
    ]

    await collaborators.notifications.drain()
    assert notifier.events() == [
        "job_approval_requested",
        "job_approval_decided",
        "application_submitted",
        "application_submitted",
        "application_status_changed",
        "interview_assigned",
        "score_submitted",
        "application_status_changed",
        "application_status_changed",
        "offer_accepted",
        "application_status_changed",
    ]
