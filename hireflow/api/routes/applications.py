from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from hireflow.api import deps
from hireflow.api.outcomes import outcome_or_raise
from hireflow.core.auth import require_roles
from hireflow.core.roles import RECRUITER_ROLES, STAFF_ROLES, Role
from hireflow.schemas.application import (
    ApplicationOut,
    ApplicationStatsOut,
    ApplyIn,
    FinalDecisionIn,
    MoveStageIn,
    ScreenIn,
)
from hireflow.schemas.common import OutcomeOut
from hireflow.schemas.event import WorkflowEventOut
from hireflow.schemas.interview import InterviewOut
from hireflow.schemas.offer import OfferOut
from hireflow.schemas.user import UserContext
from hireflow.services.applications import (
    application_stats,
    apply_for_job,
    final_decision,
    get_application,
    list_job_applications,
    move_application_stage,
    recommend_offer,
    screen_application,
)
from hireflow.services.collaborators import Collaborators
from hireflow.services.events import list_entity_events
from hireflow.services.interviews import list_application_interviews
from hireflow.services.jobs import get_job
from hireflow.services.offers import list_application_offers

router = APIRouter(tags=["applications"])

DECIDER_ROLES = [Role.HR, Role.COMPANY_ADMIN, Role.HIRING_MANAGER]


async def _company_application(session: AsyncSession, user: UserContext, application_id: int):
    application = await get_application(
        session,
        company_id=deps.company_id_of(user, "Application not found"),
        application_id=application_id,
    )
    if not application:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Application not found")
    return application


@router.post("/jobs/{job_id}/apply", response_model=OutcomeOut, status_code=status.HTTP_201_CREATED)
async def apply(
    job_id: int,
    payload: ApplyIn | None = None,
    session: AsyncSession = Depends(deps.get_db_session),
    collaborators: Collaborators = Depends(deps.get_collaborators),
    user: UserContext = Depends(require_roles([Role.CANDIDATE])),
):
    payload = payload or ApplyIn()
    outcome = await apply_for_job(
        session,
        actor=user,
        job_id=job_id,
        collaborators=collaborators,
        resume_url=payload.resume_url,
        cover_letter=payload.cover_letter,
    )
    return outcome_or_raise(outcome)


@router.get("/jobs/{job_id}/applications", response_model=list[ApplicationOut])
async def job_applications(
    job_id: int,
    status_filter: str | None = Query(default=None, alias="status"),
    session: AsyncSession = Depends(deps.get_db_session),
    user: UserContext = Depends(require_roles(STAFF_ROLES)),
):
    company_id = deps.company_id_of(user, "Job not found")
    if not await get_job(session, company_id=company_id, job_id=job_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    applications = await list_job_applications(session, company_id=company_id, job_id=job_id, status=status_filter)
    return [ApplicationOut.model_validate(application) for application in applications]


@router.get("/jobs/{job_id}/applications/stats", response_model=ApplicationStatsOut)
async def job_application_stats(
    job_id: int,
    session: AsyncSession = Depends(deps.get_db_session),
    user: UserContext = Depends(require_roles(STAFF_ROLES)),
):
    company_id = deps.company_id_of(user, "Job not found")
    if not await get_job(session, company_id=company_id, job_id=job_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    counts = await application_stats(session, company_id=company_id, job_id=job_id)
    return ApplicationStatsOut(job_id=job_id, total=sum(counts.values()), by_status=counts)


@router.get("/applications/{application_id}", response_model=ApplicationOut)
async def application_detail(
    application_id: int,
    session: AsyncSession = Depends(deps.get_db_session),
    user: UserContext = Depends(require_roles(STAFF_ROLES)),
):
    return ApplicationOut.model_validate(await _company_application(session, user, application_id))


@router.post("/applications/{application_id}/screen", response_model=OutcomeOut)
async def screen(
    application_id: int,
    payload: ScreenIn,
    session: AsyncSession = Depends(deps.get_db_session),
    collaborators: Collaborators = Depends(deps.get_collaborators),
    user: UserContext = Depends(require_roles(RECRUITER_ROLES)),
):
    outcome = await screen_application(
        session,
        actor=user,
        application_id=application_id,
        decision=payload.decision,
        collaborators=collaborators,
    )
    return outcome_or_raise(outcome)


@router.post("/applications/{application_id}/move-stage", response_model=OutcomeOut)
async def move_stage(
    application_id: int,
    payload: MoveStageIn,
    session: AsyncSession = Depends(deps.get_db_session),
    collaborators: Collaborators = Depends(deps.get_collaborators),
    user: UserContext = Depends(require_roles(RECRUITER_ROLES)),
):
    outcome = await move_application_stage(
        session,
        actor=user,
        application_id=application_id,
        status=payload.status,
        current_stage_id=payload.current_stage_id,
        collaborators=collaborators,
    )
    return outcome_or_raise(outcome)


@router.post("/applications/{application_id}/final-decision", response_model=OutcomeOut)
async def decide(
    application_id: int,
    payload: FinalDecisionIn,
    session: AsyncSession = Depends(deps.get_db_session),
    collaborators: Collaborators = Depends(deps.get_collaborators),
    user: UserContext = Depends(require_roles(DECIDER_ROLES)),
):
    outcome = await final_decision(
        session,
        actor=user,
        application_id=application_id,
        decision=payload.decision,
        collaborators=collaborators,
    )
    return outcome_or_raise(outcome)


@router.post("/applications/{application_id}/recommend-offer", response_model=OutcomeOut)
async def recommend(
    application_id: int,
    session: AsyncSession = Depends(deps.get_db_session),
    user: UserContext = Depends(require_roles([Role.HIRING_MANAGER])),
):
    return outcome_or_raise(await recommend_offer(session, actor=user, application_id=application_id))


@router.get("/applications/{application_id}/events", response_model=list[WorkflowEventOut])
async def application_events(
    application_id: int,
    session: AsyncSession = Depends(deps.get_db_session),
    user: UserContext = Depends(require_roles(STAFF_ROLES)),
):
    application = await _company_application(session, user, application_id)
    events = await list_entity_events(
        session,
        entity_type="application",
        entity_id=application.id,
        company_id=user.company_id,
    )
    return [WorkflowEventOut.model_validate(event) for event in events]


@router.get("/applications/{application_id}/interviews", response_model=list[InterviewOut])
async def application_interviews(
    application_id: int,
    session: AsyncSession = Depends(deps.get_db_session),
    user: UserContext = Depends(require_roles(STAFF_ROLES)),
):
    application = await _company_application(session, user, application_id)
    interviews = await list_application_interviews(session, company_id=user.company_id, application_id=application.id)
    return [InterviewOut.model_validate(interview) for interview in interviews]


@router.get("/applications/{application_id}/offers", response_model=list[OfferOut])
async def application_offers(
    application_id: int,
    session: AsyncSession = Depends(deps.get_db_session),
    user: UserContext = Depends(require_roles(STAFF_ROLES)),
):
    application = await _company_application(session, user, application_id)
    offers = await list_application_offers(session, company_id=user.company_id, application_id=application.id)
    return [OfferOut.model_validate(offer) for offer in offers]
