from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hireflow.core.outcomes import (
    BusinessRuleViolation,
    ConsistencyFault,
    ErrorCode,
    NoOpeningsLeft,
    PreconditionFailed,
    WorkflowOutcome,
    WorkflowValidationError,
    outcome_boundary,
)
from hireflow.core.workflow import (
    APPLICATION_TABLE,
    FINAL_DECISION_EVENTS,
    MOVE_STAGE_SOURCES,
    MOVE_STAGE_TARGETS,
    PRE_OFFER_STATES,
    SCREEN_EVENTS,
    ApplicationEvent,
    ApplicationStatus,
    JobStatus,
    can_move_stage,
)
from hireflow.db.gateway import atomic, fire_transition, guarded_update, lock_first, lock_one, try_transition
from hireflow.models.application import Application
from hireflow.models.job import JobRequisition
from hireflow.schemas.user import UserContext
from hireflow.services.collaborators import Collaborators, NotificationEvent
from hireflow.services.events import log_event
from hireflow.services.jobs import close_exhausted_job, consume_seat
from hireflow.services.scope import company_jobs, company_of

APPLICATION_NOT_FOUND = "Application not found"


def _coerce_status(raw: object, *, allowed, message: str) -> ApplicationStatus:
    status = APPLICATION_TABLE.coerce(raw.strip().lower() if isinstance(raw, str) else raw)
    if status is None or status not in allowed:
        raise WorkflowValidationError(message)
    return status


def _in_company(company_id: int):
    return Application.job_id.in_(company_jobs(company_id))


def _status_changed(collaborators: Collaborators, actor: UserContext, application_id: int, company_id: int | None) -> None:
    collaborators.notifications.dispatch(
        NotificationEvent.APPLICATION_STATUS_CHANGED,
        {"application_id": application_id, "company_id": company_id},
        actor.label(),
    )


@outcome_boundary
async def apply_for_job(
    session: AsyncSession,
    *,
    actor: UserContext,
    job_id: int,
    collaborators: Collaborators,
    resume_url: str | None = None,
    cover_letter: str | None = None,
) -> WorkflowOutcome:
    candidate_id = actor.user_id
    company_id: int | None = None
    try:
        async with atomic(session):
            # Serializes concurrent applicants against the same requisition.
            job = await lock_one(session, select(JobRequisition).where(JobRequisition.id == job_id))
            if job is None:
                raise PreconditionFailed("Job not found")
            company_id = job.company_id
            if job.positions_count <= 0:
                raise NoOpeningsLeft()
            if job.status != JobStatus.PUBLISHED.value:
                raise BusinessRuleViolation(ErrorCode.NOT_OPEN, "Job is not open for applications")
            existing = (
                await session.execute(
                    select(Application.id).where(Application.job_id == job_id, Application.candidate_id == candidate_id)
                )
            ).scalar_one_or_none()
            if existing is not None:
                raise WorkflowValidationError("You have already applied to this job")
            application = Application(
                job_id=job_id,
                candidate_id=candidate_id,
                status=ApplicationStatus.APPLIED.value,
                resume_url=resume_url,
                cover_letter=cover_letter,
            )
            session.add(application)
            await session.flush()
            await log_event(
                session,
                entity_type="application",
                entity_id=application.id,
                company_id=company_id,
                action_type="application_submitted",
                to_status=ApplicationStatus.APPLIED,
                performed_by=candidate_id,
                meta_json={"job_id": job_id},
            )
            application_id = application.id
    except NoOpeningsLeft:
        async with atomic(session):
            await close_exhausted_job(session, job_id=job_id, company_id=company_id, performed_by=candidate_id)
        raise
    collaborators.notifications.dispatch(
        NotificationEvent.APPLICATION_SUBMITTED,
        {"application_id": application_id, "job_id": job_id, "company_id": company_id},
        actor.label(),
    )
    return WorkflowOutcome.success(application_id, "Application submitted")


@outcome_boundary
async def screen_application(
    session: AsyncSession,
    *,
    actor: UserContext,
    application_id: int,
    decision: str,
    collaborators: Collaborators,
) -> WorkflowOutcome:
    target = _coerce_status(
        decision,
        allowed=SCREEN_EVENTS,
        message="Screen decision must be 'rejected' or 'interview'",
    )
    company_id = company_of(actor, APPLICATION_NOT_FOUND)
    async with atomic(session):
        from_state, to_state = await fire_transition(
            session,
            table=APPLICATION_TABLE,
            model=Application,
            entity_id=application_id,
            event=SCREEN_EVENTS[target],
            where=(_in_company(company_id),),
            values={"screening_decision_at": func.now()},
            missing=APPLICATION_NOT_FOUND,
        )
        await log_event(
            session,
            entity_type="application",
            entity_id=application_id,
            company_id=company_id,
            action_type="application_screened",
            from_status=from_state,
            to_status=to_state,
            performed_by=actor.user_id,
        )
    _status_changed(collaborators, actor, application_id, company_id)
    return WorkflowOutcome.success(application_id, "Screening decision recorded", status=to_state.value)


@outcome_boundary
async def move_application_stage(
    session: AsyncSession,
    *,
    actor: UserContext,
    application_id: int,
    status: str,
    current_stage_id: int | None = None,
    collaborators: Collaborators,
) -> WorkflowOutcome:
    target = _coerce_status(
        status,
        allowed=MOVE_STAGE_TARGETS,
        message="Unknown status; hires go through the final decision",
    )
    company_id = company_of(actor, APPLICATION_NOT_FOUND)
    async with atomic(session):
        current = (
            await session.execute(
                select(Application.status).where(Application.id == application_id, _in_company(company_id))
            )
        ).scalar_one_or_none()
        if current is None or not can_move_stage(current, target):
            raise PreconditionFailed(APPLICATION_NOT_FOUND)
        changed = await try_transition(
            session,
            Application,
            application_id,
            MOVE_STAGE_SOURCES,
            target,
            where=(_in_company(company_id),),
            values={"current_stage_id": current_stage_id},
        )
        if changed != 1:
            raise PreconditionFailed(APPLICATION_NOT_FOUND)
        await log_event(
            session,
            entity_type="application",
            entity_id=application_id,
            company_id=company_id,
            action_type="application_stage_moved",
            from_status=current,
            to_status=target,
            performed_by=actor.user_id,
            meta_json={"current_stage_id": current_stage_id},
        )
    if current != target.value:
        _status_changed(collaborators, actor, application_id, company_id)
    return WorkflowOutcome.success(application_id, "Application moved", status=target.value)


@outcome_boundary
async def final_decision(
    session: AsyncSession,
    *,
    actor: UserContext,
    application_id: int,
    decision: str,
    collaborators: Collaborators,
) -> WorkflowOutcome:
    target = _coerce_status(
        decision,
        allowed=FINAL_DECISION_EVENTS,
        message="Final decision must be one of 'selected', 'rejected' or 'hired'",
    )
    company_id = company_of(actor, APPLICATION_NOT_FOUND)
    if target is ApplicationStatus.HIRED:
        return await _hire(session, actor=actor, company_id=company_id, application_id=application_id, collaborators=collaborators)
    async with atomic(session):
        from_state, to_state = await fire_transition(
            session,
            table=APPLICATION_TABLE,
            model=Application,
            entity_id=application_id,
            event=FINAL_DECISION_EVENTS[target],
            where=(_in_company(company_id),),
            values={"final_decision_at": func.now()},
            missing=APPLICATION_NOT_FOUND,
        )
        await log_event(
            session,
            entity_type="application",
            entity_id=application_id,
            company_id=company_id,
            action_type="application_final_decision",
            from_status=from_state,
            to_status=to_state,
            performed_by=actor.user_id,
        )
    _status_changed(collaborators, actor, application_id, company_id)
    return WorkflowOutcome.success(application_id, "Final decision recorded", status=to_state.value)


async def _hire(
    session: AsyncSession,
    *,
    actor: UserContext,
    company_id: int,
    application_id: int,
    collaborators: Collaborators,
) -> WorkflowOutcome:
    exhausted = False
    remaining: int | None = None
    async with atomic(session):
        row = await lock_first(
            session,
            select(Application, JobRequisition)
            .join(JobRequisition, JobRequisition.id == Application.job_id)
            .where(Application.id == application_id, JobRequisition.company_id == company_id),
        )
        if row is None:
            raise PreconditionFailed(APPLICATION_NOT_FOUND)
        application, job = row
        if not APPLICATION_TABLE.can_fire(application.status, ApplicationEvent.HIRE):
            raise PreconditionFailed(APPLICATION_NOT_FOUND)
        if job.positions_count <= 0:
            await close_exhausted_job(session, job_id=job.id, company_id=company_id, performed_by=actor.user_id)
            exhausted = True
        else:
            hired = await try_transition(
                session,
                Application,
                application.id,
                APPLICATION_TABLE.sources(ApplicationEvent.HIRE),
                ApplicationStatus.HIRED,
                values={"final_decision_at": func.now()},
            )
            if hired != 1:
                raise ConsistencyFault(f"Locked application #{application.id} could not be marked hired")
            remaining = await consume_seat(session, job_id=job.id)
            if remaining == 0:
                await close_exhausted_job(session, job_id=job.id, company_id=company_id, performed_by=actor.user_id)
            await log_event(
                session,
                entity_type="application",
                entity_id=application.id,
                company_id=company_id,
                action_type="application_hired",
                from_status=ApplicationStatus.OFFER_ACCEPTED,
                to_status=ApplicationStatus.HIRED,
                performed_by=actor.user_id,
                meta_json={"job_id": job.id, "positions_remaining": remaining},
            )
    if exhausted:
        raise NoOpeningsLeft()
    _status_changed(collaborators, actor, application_id, company_id)
    return WorkflowOutcome.success(
        application_id,
        "Candidate hired",
        status=ApplicationStatus.HIRED.value,
        positions_remaining=remaining,
    )


@outcome_boundary
async def recommend_offer(session: AsyncSession, *, actor: UserContext, application_id: int) -> WorkflowOutcome:
    company_id = company_of(actor, APPLICATION_NOT_FOUND)
    async with atomic(session):
        changed = await guarded_update(
            session,
            Application,
            application_id,
            PRE_OFFER_STATES,
            {"offer_recommended": 1},
            where=(_in_company(company_id),),
        )
        if changed != 1:
            raise PreconditionFailed(APPLICATION_NOT_FOUND)
        await log_event(
            session,
            entity_type="application",
            entity_id=application_id,
            company_id=company_id,
            action_type="offer_recommended",
            performed_by=actor.user_id,
        )
    return WorkflowOutcome.success(application_id, "Offer recommended")


async def application_stats(session: AsyncSession, *, company_id: int, job_id: int) -> dict[str, int]:
    rows = await session.execute(
        select(Application.status, func.count(Application.id))
        .join(JobRequisition, JobRequisition.id == Application.job_id)
        .where(Application.job_id == job_id, JobRequisition.company_id == company_id)
        .group_by(Application.status)
    )
    counts = {status.value: 0 for status in ApplicationStatus}
    for status, count in rows.all():
        counts[status] = int(count)
    return counts


async def list_job_applications(
    session: AsyncSession,
    *,
    company_id: int,
    job_id: int,
    status: str | None = None,
) -> list[Application]:
    stmt = select(Application).where(Application.job_id == job_id, _in_company(company_id))
    if status:
        stmt = stmt.where(Application.status == status)
    rows = await session.execute(stmt.order_by(Application.applied_at.desc(), Application.id.desc()))
    return list(rows.scalars().all())


async def get_application(session: AsyncSession, *, company_id: int, application_id: int) -> Application | None:
    return (
        await session.execute(select(Application).where(Application.id == application_id, _in_company(company_id)))
    ).scalar_one_or_none()


async def list_candidate_applications(session: AsyncSession, *, candidate_id: int) -> list[tuple[Application, JobRequisition]]:
    rows = await session.execute(
        select(Application, JobRequisition)
        .join(JobRequisition, JobRequisition.id == Application.job_id)
        .where(Application.candidate_id == candidate_id)
        .order_by(Application.applied_at.desc())
    )
    return [(application, job) for application, job in rows.all()]
