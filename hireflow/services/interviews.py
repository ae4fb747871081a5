from __future__ import annotations

from datetime import datetime
from numbers import Number
from typing import Any
from urllib.parse import urlparse

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from hireflow.core.config import settings
from hireflow.core.datetime_utils import is_strictly_future, to_utc_naive
from hireflow.core.outcomes import (
    BusinessRuleViolation,
    ErrorCode,
    PreconditionFailed,
    WorkflowOutcome,
    WorkflowValidationError,
    outcome_boundary,
)
from hireflow.core.roles import RECRUITER_ROLES, Role
from hireflow.core.workflow import (
    APPLICATION_TABLE,
    INTERVIEW_STATUS_EVENTS,
    INTERVIEW_TABLE,
    SCORECARD_TABLE,
    ApplicationEvent,
    ApplicationStatus,
    InterviewEvent,
    InterviewStatus,
    ScorecardEvent,
    ScorecardState,
)
from hireflow.db.gateway import atomic, fire_transition, guarded_update, lock_first, try_transition
from hireflow.models.application import Application
from hireflow.models.company import Company
from hireflow.models.interview import Interview, Scorecard
from hireflow.models.job import JobRequisition
from hireflow.models.user import User
from hireflow.schemas.user import UserContext
from hireflow.services.collaborators import Collaborators, NotificationEvent
from hireflow.services.events import log_event
from hireflow.services.scope import company_applications, company_of

INTERVIEW_NOT_FOUND = "Interview not found"
SCORECARD_NOT_FOUND = "Scorecard not found"

MIN_DURATION_MINUTES = 15
MAX_DURATION_MINUTES = 480


def validate_meeting_link(link: str | None) -> str | None:
    if link is None:
        return None
    link = link.strip()
    if not link:
        return None
    parsed = urlparse(link)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise WorkflowValidationError("Meeting link must be an http(s) URL")
    return link


def validate_ratings(ratings: Any) -> dict[str, float] | None:
    if ratings is None:
        return None
    if not isinstance(ratings, dict):
        raise WorkflowValidationError("Ratings must be an object of criterion to score")
    clean: dict[str, float] = {}
    for key, value in ratings.items():
        name = str(key).strip()
        if not name:
            raise WorkflowValidationError("Rating criteria must be named")
        if isinstance(value, bool) or not isinstance(value, Number):
            raise WorkflowValidationError(f"Rating for '{name}' must be a number")
        if not 1 <= value <= 5:
            raise WorkflowValidationError(f"Rating for '{name}' must be between 1 and 5")
        clean[name] = value
    return clean


def _interview_scope(actor: UserContext) -> tuple[Any, ...]:
    company_id = company_of(actor, INTERVIEW_NOT_FOUND)
    clauses: tuple[Any, ...] = (Interview.application_id.in_(company_applications(company_id)),)
    if actor.has_role(*RECRUITER_ROLES):
        return clauses
    return clauses + (Interview.interviewer_id == actor.user_id,)


@outcome_boundary
async def schedule_interview(
    session: AsyncSession,
    *,
    actor: UserContext,
    application_id: int,
    interviewer_id: int,
    scheduled_at: datetime,
    collaborators: Collaborators,
    duration_minutes: int | None = None,
    meeting_link: str | None = None,
    notes: str | None = None,
) -> WorkflowOutcome:
    if not interviewer_id:
        raise WorkflowValidationError("interviewer_id is required")
    if not isinstance(scheduled_at, datetime):
        raise WorkflowValidationError("scheduled_at must be a datetime")
    if not is_strictly_future(scheduled_at):
        raise WorkflowValidationError("Interview time must be in the future")
    duration = settings.default_interview_minutes if duration_minutes is None else int(duration_minutes)
    if not MIN_DURATION_MINUTES <= duration <= MAX_DURATION_MINUTES:
        raise WorkflowValidationError(
            f"duration_minutes must be between {MIN_DURATION_MINUTES} and {MAX_DURATION_MINUTES}"
        )
    link = validate_meeting_link(meeting_link)
    company_id = company_of(actor, "Application not found")

    candidate = aliased(User, name="candidate")
    async with atomic(session):
        interviewer = (
            await session.execute(
                select(User).where(
                    User.id == interviewer_id,
                    User.company_id == company_id,
                    User.is_active == 1,
                    User.role == Role.INTERVIEWER.value,
                )
            )
        ).scalar_one_or_none()
        if interviewer is None:
            raise WorkflowValidationError("Interviewer not found in company")

        # Serializes concurrent schedules for the same application.
        row = await lock_first(
            session,
            select(Application, JobRequisition, candidate)
            .join(JobRequisition, JobRequisition.id == Application.job_id)
            .join(candidate, candidate.id == Application.candidate_id)
            .where(Application.id == application_id, JobRequisition.company_id == company_id),
        )
        if row is None:
            raise PreconditionFailed("Application not found")
        application, job, candidate_user = row
        if application.status != ApplicationStatus.INTERVIEW.value:
            raise PreconditionFailed("Application not found")

        already_scheduled = (
            await session.execute(
                select(func.count(Interview.id)).where(
                    Interview.application_id == application_id,
                    Interview.status == InterviewStatus.SCHEDULED.value,
                )
            )
        ).scalar_one()
        if already_scheduled:
            raise BusinessRuleViolation(ErrorCode.CONFLICT, "Application already has a scheduled interview")

        if link is None:
            company_name = (
                await session.execute(select(Company.name).where(Company.id == company_id))
            ).scalar_one_or_none()
            link = await collaborators.meetings.create_meeting(
                [candidate_user.email, interviewer.email],
                scheduled_at,
                duration,
                f"Interview: {job.title} | {company_name or 'HireFlow'}",
            )

        interview = Interview(
            application_id=application_id,
            interviewer_id=interviewer_id,
            scheduled_at=to_utc_naive(scheduled_at),
            duration_minutes=duration,
            status=InterviewStatus.SCHEDULED.value,
            meeting_link=link,
            notes=notes,
        )
        session.add(interview)
        await session.flush()
        await log_event(
            session,
            entity_type="interview",
            entity_id=interview.id,
            company_id=company_id,
            action_type="interview_scheduled",
            to_status=InterviewStatus.SCHEDULED,
            performed_by=actor.user_id,
            meta_json={"application_id": application_id, "interviewer_id": interviewer_id},
        )
        interview_id = interview.id
    collaborators.notifications.dispatch(
        NotificationEvent.INTERVIEW_ASSIGNED,
        {"interview_id": interview_id, "application_id": application_id, "company_id": company_id},
        actor.label(),
    )
    return WorkflowOutcome.success(interview_id, "Interview scheduled", meeting_link=link)


@outcome_boundary
async def update_interview(
    session: AsyncSession,
    *,
    actor: UserContext,
    interview_id: int,
    status: str | None = None,
    notes: str | None = None,
) -> WorkflowOutcome:
    if status is None and notes is None:
        raise WorkflowValidationError("Nothing to update")
    event: InterviewEvent | None = None
    if status is not None:
        target = INTERVIEW_TABLE.coerce(status.strip().lower())
        if target not in INTERVIEW_STATUS_EVENTS:
            raise WorkflowValidationError("Interview status must be 'completed' or 'cancelled'")
        event = INTERVIEW_STATUS_EVENTS[target]
    scope = _interview_scope(actor)
    values = {"notes": notes} if notes is not None else {}
    async with atomic(session):
        if event is not None:
            from_state, to_state = await fire_transition(
                session,
                table=INTERVIEW_TABLE,
                model=Interview,
                entity_id=interview_id,
                event=event,
                where=scope,
                values=values,
                missing=INTERVIEW_NOT_FOUND,
            )
        else:
            changed = await guarded_update(session, Interview, interview_id, InterviewStatus, values, where=scope)
            if changed != 1:
                raise PreconditionFailed(INTERVIEW_NOT_FOUND)
            from_state = to_state = None
        await log_event(
            session,
            entity_type="interview",
            entity_id=interview_id,
            company_id=actor.company_id,
            action_type="interview_updated",
            from_status=from_state,
            to_status=to_state,
            performed_by=actor.user_id,
            meta_json={"notes_changed": notes is not None},
        )
    return WorkflowOutcome.success(interview_id, "Interview updated")


@outcome_boundary
async def submit_scorecard(
    session: AsyncSession,
    *,
    actor: UserContext,
    interview_id: int,
    recommendation: str,
    ratings: dict[str, Any] | None = None,
    comments: str | None = None,
) -> WorkflowOutcome:
    recommendation = (recommendation or "").strip()
    if not recommendation:
        raise WorkflowValidationError("recommendation is required")
    clean_ratings = validate_ratings(ratings)
    company_id = company_of(actor, INTERVIEW_NOT_FOUND)
    async with atomic(session):
        current = (
            await session.execute(
                select(Interview.status).where(
                    Interview.id == interview_id,
                    Interview.interviewer_id == actor.user_id,
                    Interview.application_id.in_(company_applications(company_id)),
                )
            )
        ).scalar_one_or_none()
        if current != InterviewStatus.SCHEDULED.value:
            raise PreconditionFailed(INTERVIEW_NOT_FOUND)
        scorecard = Scorecard(
            interview_id=interview_id,
            interviewer_id=actor.user_id,
            ratings=clean_ratings,
            comments=comments,
            recommendation=recommendation,
            is_final=ScorecardState.DRAFT.value,
        )
        session.add(scorecard)
        await session.flush()
        await log_event(
            session,
            entity_type="scorecard",
            entity_id=scorecard.id,
            company_id=company_id,
            action_type="scorecard_submitted",
            to_status="draft",
            performed_by=actor.user_id,
            meta_json={"interview_id": interview_id, "recommendation": recommendation},
        )
        scorecard_id = scorecard.id
    return WorkflowOutcome.success(scorecard_id, "Scorecard saved")


@outcome_boundary
async def finalize_scorecard(
    session: AsyncSession,
    *,
    actor: UserContext,
    scorecard_id: int,
    collaborators: Collaborators,
) -> WorkflowOutcome:
    company_id = company_of(actor, SCORECARD_NOT_FOUND)
    async with atomic(session):
        row = await lock_first(
            session,
            select(Scorecard, Interview, Application)
            .join(Interview, Interview.id == Scorecard.interview_id)
            .join(Application, Application.id == Interview.application_id)
            .where(
                Scorecard.id == scorecard_id,
                Scorecard.interviewer_id == actor.user_id,
                Interview.interviewer_id == actor.user_id,
                Application.id.in_(company_applications(company_id)),
            ),
        )
        if row is None:
            raise PreconditionFailed(SCORECARD_NOT_FOUND)
        scorecard, interview, application = row
        if not (
            SCORECARD_TABLE.can_fire(scorecard.is_final, ScorecardEvent.FINALIZE)
            and INTERVIEW_TABLE.can_fire(interview.status, InterviewEvent.COMPLETE)
            and APPLICATION_TABLE.can_fire(application.status, ApplicationEvent.SUBMIT_SCORE)
        ):
            raise PreconditionFailed(SCORECARD_NOT_FOUND)

        steps = (
            (
                Scorecard,
                scorecard.id,
                SCORECARD_TABLE.sources(ScorecardEvent.FINALIZE),
                ScorecardState.FINAL,
                "is_final",
                {"submitted_at": func.now()},
            ),
            (
                Interview,
                interview.id,
                INTERVIEW_TABLE.sources(InterviewEvent.COMPLETE),
                InterviewStatus.COMPLETED,
                "status",
                None,
            ),
            (
                Application,
                application.id,
                APPLICATION_TABLE.sources(ApplicationEvent.SUBMIT_SCORE),
                ApplicationStatus.SCORE_SUBMITTED,
                "status",
                None,
            ),
        )
        for model, entity_id, expected, new_state, column, values in steps:
            changed = await try_transition(session, model, entity_id, expected, new_state, column=column, values=values)
            if changed != 1:
                raise PreconditionFailed(SCORECARD_NOT_FOUND)

        await log_event(
            session,
            entity_type="scorecard",
            entity_id=scorecard.id,
            company_id=company_id,
            action_type="scorecard_finalized",
            from_status="draft",
            to_status="final",
            performed_by=actor.user_id,
            meta_json={"interview_id": interview.id, "application_id": application.id},
        )
        await log_event(
            session,
            entity_type="application",
            entity_id=application.id,
            company_id=company_id,
            action_type="application_scored",
            from_status=ApplicationStatus.INTERVIEW,
            to_status=ApplicationStatus.SCORE_SUBMITTED,
            performed_by=actor.user_id,
        )
        interview_id = interview.id
        application_id = application.id
    collaborators.notifications.dispatch(
        NotificationEvent.SCORE_SUBMITTED,
        {
            "scorecard_id": scorecard_id,
            "interview_id": interview_id,
            "application_id": application_id,
            "company_id": company_id,
        },
        actor.label(),
    )
    return WorkflowOutcome.success(scorecard_id, "Scorecard finalized", application_status=ApplicationStatus.SCORE_SUBMITTED.value)


async def list_application_interviews(session: AsyncSession, *, company_id: int, application_id: int) -> list[Interview]:
    rows = await session.execute(
        select(Interview)
        .where(
            Interview.application_id == application_id,
            Interview.application_id.in_(company_applications(company_id)),
        )
        .order_by(Interview.scheduled_at.asc())
    )
    return list(rows.scalars().all())


async def list_my_interviews(session: AsyncSession, *, interviewer_id: int, status: str | None = None) -> list[Interview]:
    stmt = select(Interview).where(Interview.interviewer_id == interviewer_id)
    if status:
        stmt = stmt.where(Interview.status == status)
    rows = await session.execute(stmt.order_by(Interview.scheduled_at.asc()))
    return list(rows.scalars().all())


async def list_interview_scorecards(session: AsyncSession, *, company_id: int, interview_id: int) -> list[Scorecard]:
    rows = await session.execute(
        select(Scorecard)
        .join(Interview, Interview.id == Scorecard.interview_id)
        .where(
            Scorecard.interview_id == interview_id,
            Interview.application_id.in_(company_applications(company_id)),
        )
        .order_by(Scorecard.id.asc())
    )
    return list(rows.scalars().all())
