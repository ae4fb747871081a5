from __future__ import annotations

from hireflow.core.outcomes import ConsistencyFault, ErrorCode, OutcomeStatus
from hireflow.core.roles import Role
from hireflow.core.workflow import ApplicationStatus, JobStatus
from hireflow.models import Application, JobRequisition, WorkflowEvent
from hireflow.services.applications import (
    application_stats,
    apply_for_job,
    final_decision,
    list_candidate_applications,
    move_application_stage,
    recommend_offer,
    screen_application,
)


async def test_apply_to_published_job(db_session, seed, tenant, candidate, collaborators, notifier):
    job_id = await seed.job(tenant.company_id, tenant.hr, positions_count=2)

    outcome = await apply_for_job(
        db_session, actor=candidate, job_id=job_id, collaborators=collaborators, cover_letter="Hello"
    )
    assert outcome.ok
    assert await seed.value(Application, outcome.entity_id) == ApplicationStatus.APPLIED.value
    assert await seed.value(Application, outcome.entity_id, "cover_letter") == "Hello"

    pairs = await list_candidate_applications(db_session, candidate_id=candidate.user_id)
    assert [(application.id, job.id) for application, job in pairs] == [(outcome.entity_id, job_id)]

    await collaborators.notifications.drain()
    assert notifier.calls[0][0] == "application_submitted"
    assert notifier.calls[0][1]["company_id"] == tenant.company_id


async def test_apply_without_seats_closes_the_job(db_session, seed, tenant, candidate, collaborators):
    job_id = await seed.job(tenant.company_id, tenant.hr, positions_count=0)

    outcome = await apply_for_job(db_session, actor=candidate, job_id=job_id, collaborators=collaborators)
    assert outcome.status == OutcomeStatus.ERROR
    assert outcome.error_code == ErrorCode.NO_OPENINGS
    assert outcome.message == "No openings left"
    assert await seed.value(JobRequisition, job_id) == JobStatus.CLOSED.value
    assert await seed.count(Application) == 0

    # closing is idempotent; the second attempt still reports no openings
    again = await apply_for_job(db_session, actor=candidate, job_id=job_id, collaborators=collaborators)
    assert again.error_code == ErrorCode.NO_OPENINGS
    assert await seed.count(WorkflowEvent, WorkflowEvent.action_type == "job_closed") == 1


async def test_apply_rejects_duplicates_and_closed_jobs(db_session, seed, tenant, candidate, collaborators):
    job_id = await seed.job(tenant.company_id, tenant.hr)
    draft_id = await seed.job(tenant.company_id, tenant.hr, status=JobStatus.DRAFT)

    assert (await apply_for_job(db_session, actor=candidate, job_id=job_id, collaborators=collaborators)).ok
    duplicate = await apply_for_job(db_session, actor=candidate, job_id=job_id, collaborators=collaborators)
    assert duplicate.error_code == ErrorCode.VALIDATION
    assert await seed.count(Application, Application.job_id == job_id) == 1

    not_open = await apply_for_job(db_session, actor=candidate, job_id=draft_id, collaborators=collaborators)
    assert not_open.error_code == ErrorCode.NOT_OPEN

    missing = await apply_for_job(db_session, actor=candidate, job_id=9999, collaborators=collaborators)
    assert missing.status == OutcomeStatus.NOT_FOUND


async def test_screen_decision_is_validated_first(db_session, seed, tenant, candidate, collaborators, notifier):
    job_id = await seed.job(tenant.company_id, tenant.hr)
    application_id = await seed.application(job_id, candidate)

    outcome = await screen_application(
        db_session, actor=tenant.hr, application_id=application_id, decision="hired", collaborators=collaborators
    )
    assert outcome.error_code == ErrorCode.VALIDATION

    outcome = await screen_application(
        db_session, actor=tenant.hr, application_id=application_id, decision=" Interview ", collaborators=collaborators
    )
    assert outcome.ok
    assert outcome.data["status"] == ApplicationStatus.INTERVIEW.value
    assert await seed.value(Application, application_id, "screening_decision_at") is not None

    outcome = await screen_application(
        db_session, actor=tenant.hr, application_id=application_id, decision="rejected", collaborators=collaborators
    )
    assert outcome.ok
    assert await seed.value(Application, application_id) == ApplicationStatus.REJECTED.value

    outcome = await screen_application(
        db_session, actor=tenant.hr, application_id=application_id, decision="interview", collaborators=collaborators
    )
    assert outcome.status == OutcomeStatus.NOT_FOUND

    await collaborators.notifications.drain()
    assert notifier.events() == ["application_status_changed", "application_status_changed"]


async def test_other_company_cannot_screen(db_session, seed, tenant, candidate, collaborators):
    job_id = await seed.job(tenant.company_id, tenant.hr)
    application_id = await seed.application(job_id, candidate)
    other_company = await seed.company("Globex")
    other_hr = await seed.user(other_company, Role.HR)

    outcome = await screen_application(
        db_session, actor=other_hr, application_id=application_id, decision="interview", collaborators=collaborators
    )
    assert outcome.status == OutcomeStatus.NOT_FOUND
    assert outcome.message == "Application not found"
    assert await seed.value(Application, application_id) == ApplicationStatus.APPLIED.value


async def test_move_stage(db_session, seed, tenant, candidate, collaborators):
    job_id = await seed.job(tenant.company_id, tenant.hr)
    application_id = await seed.application(job_id, candidate)

    outcome = await move_application_stage(
        db_session,
        actor=tenant.hr,
        application_id=application_id,
        status="selected",
        current_stage_id=3,
        collaborators=collaborators,
    )
    assert outcome.ok
    assert await seed.value(Application, application_id) == ApplicationStatus.SELECTED.value
    assert await seed.value(Application, application_id, "current_stage_id") == 3

    hired = await move_application_stage(
        db_session, actor=tenant.hr, application_id=application_id, status="hired", collaborators=collaborators
    )
    assert hired.error_code == ErrorCode.VALIDATION

    rejected_id = await seed.application(job_id, await seed.user(None, Role.CANDIDATE), status=ApplicationStatus.REJECTED)
    outcome = await move_application_stage(
        db_session, actor=tenant.hr, application_id=rejected_id, status="applied", collaborators=collaborators
    )
    assert outcome.status == OutcomeStatus.NOT_FOUND


async def test_final_decision_select_and_reject(db_session, seed, tenant, candidate, collaborators):
    job_id = await seed.job(tenant.company_id, tenant.hr)
    application_id = await seed.application(job_id, candidate, status=ApplicationStatus.SCORE_SUBMITTED)

    outcome = await final_decision(
        db_session, actor=tenant.manager, application_id=application_id, decision="selected", collaborators=collaborators
    )
    assert outcome.ok
    assert await seed.value(Application, application_id) == ApplicationStatus.SELECTED.value

    # hire requires an accepted offer
    outcome = await final_decision(
        db_session, actor=tenant.manager, application_id=application_id, decision="hired", collaborators=collaborators
    )
    assert outcome.status == OutcomeStatus.NOT_FOUND

    outcome = await final_decision(
        db_session, actor=tenant.manager, application_id=application_id, decision="maybe", collaborators=collaborators
    )
    assert outcome.error_code == ErrorCode.VALIDATION


async def test_last_seat_is_hired_exactly_once(db_session, seed, tenant, collaborators):
    job_id = await seed.job(tenant.company_id, tenant.hr, positions_count=1)
    first = await seed.application(
        job_id, await seed.user(None, Role.CANDIDATE), status=ApplicationStatus.OFFER_ACCEPTED
    )
    second = await seed.application(
        job_id, await seed.user(None, Role.CANDIDATE), status=ApplicationStatus.OFFER_ACCEPTED
    )

    outcome = await final_decision(
        db_session, actor=tenant.manager, application_id=first, decision="hired", collaborators=collaborators
    )
    assert outcome.ok
    assert outcome.data["positions_remaining"] == 0
    assert await seed.value(JobRequisition, job_id) == JobStatus.CLOSED.value
    assert await seed.value(JobRequisition, job_id, "positions_count") == 0

    outcome = await final_decision(
        db_session, actor=tenant.manager, application_id=second, decision="hired", collaborators=collaborators
    )
    assert outcome.error_code == ErrorCode.NO_OPENINGS
    assert outcome.message == "No openings left"
    assert await seed.value(Application, second) == ApplicationStatus.OFFER_ACCEPTED.value
    assert await seed.count(Application, Application.status == ApplicationStatus.HIRED.value) == 1
    assert await seed.value(JobRequisition, job_id, "positions_count") == 0


async def test_hire_rolls_back_when_seat_update_misses(db_session, seed, tenant, candidate, collaborators, monkeypatch):
    job_id = await seed.job(tenant.company_id, tenant.hr, positions_count=1)
    application_id = await seed.application(job_id, candidate, status=ApplicationStatus.OFFER_ACCEPTED)

    async def seat_lost(session, *, job_id):
        raise ConsistencyFault(f"Job #{job_id} seat update matched no row")

    monkeypatch.setattr("hireflow.services.applications.consume_seat", seat_lost)

    outcome = await final_decision(
        db_session, actor=tenant.manager, application_id=application_id, decision="hired", collaborators=collaborators
    )
    assert outcome.status == OutcomeStatus.ERROR
    assert outcome.error_code == ErrorCode.CONSISTENCY
    assert await seed.value(Application, application_id) == ApplicationStatus.OFFER_ACCEPTED.value
    assert await seed.value(JobRequisition, job_id, "positions_count") == 1
    assert await seed.value(JobRequisition, job_id) == JobStatus.PUBLISHED.value
    assert await seed.count(WorkflowEvent, WorkflowEvent.action_type == "application_hired") == 0


async def test_one_seat_among_many_accepted_offers(db_session, seed, tenant, collaborators):
    job_id = await seed.job(tenant.company_id, tenant.hr, positions_count=1)
    applications = [
        await seed.application(job_id, await seed.user(None, Role.CANDIDATE), status=ApplicationStatus.OFFER_ACCEPTED)
        for _ in range(4)
    ]

    outcomes = [
        await final_decision(
            db_session, actor=tenant.manager, application_id=application_id, decision="hired", collaborators=collaborators
        )
        for application_id in applications
    ]
    assert [outcome.ok for outcome in outcomes] == [True, False, False, False]
    assert {outcome.error_code for outcome in outcomes[1:]} == {ErrorCode.NO_OPENINGS}
    assert await seed.count(Application, Application.status == ApplicationStatus.HIRED.value) == 1
    assert await seed.value(JobRequisition, job_id) == JobStatus.CLOSED.value
    assert await seed.value(JobRequisition, job_id, "positions_count") == 0


async def test_hire_keeps_job_open_while_seats_remain(db_session, seed, tenant, candidate, collaborators):
    job_id = await seed.job(tenant.company_id, tenant.hr, positions_count=3)
    application_id = await seed.application(job_id, candidate, status=ApplicationStatus.OFFER_ACCEPTED)

    outcome = await final_decision(
        db_session, actor=tenant.admin, application_id=application_id, decision="hired", collaborators=collaborators
    )
    assert outcome.ok
    assert outcome.data["positions_remaining"] == 2
    assert await seed.value(JobRequisition, job_id) == JobStatus.PUBLISHED.value


async def test_recommend_offer_only_before_offer(db_session, seed, tenant, candidate):
    job_id = await seed.job(tenant.company_id, tenant.hr)
    ready = await seed.application(job_id, candidate, status=ApplicationStatus.SELECTED)
    early = await seed.application(job_id, await seed.user(None, Role.CANDIDATE))

    assert (await recommend_offer(db_session, actor=tenant.manager, application_id=ready)).ok
    assert await seed.value(Application, ready, "offer_recommended") == 1
    assert (await recommend_offer(db_session, actor=tenant.manager, application_id=early)).status == OutcomeStatus.NOT_FOUND


async def test_application_stats_counts_every_status(db_session, seed, tenant):
    job_id = await seed.job(tenant.company_id, tenant.hr, positions_count=5)
    for status in (ApplicationStatus.APPLIED, ApplicationStatus.APPLIED, ApplicationStatus.OFFER_ACCEPTED):
        await seed.application(job_id, await seed.user(None, Role.CANDIDATE), status=status)

    stats = await application_stats(db_session, company_id=tenant.company_id, job_id=job_id)
    assert stats["applied"] == 2
    assert stats["offer accecepted"] == 1
    assert stats["hired"] == 0
    assert set(stats) == {status.value for status in ApplicationStatus}

    other_company = await seed.company("Globex")
    assert sum((await application_stats(db_session, company_id=other_company, job_id=job_id)).values()) == 0
