from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from hireflow.api import deps
from hireflow.api.outcomes import outcome_or_raise
from hireflow.core.auth import require_roles
from hireflow.core.roles import STAFF_ROLES, Role
from hireflow.schemas.common import OutcomeOut
from hireflow.schemas.interview import InterviewCreate, InterviewOut, InterviewUpdate, ScorecardOut
from hireflow.schemas.user import UserContext
from hireflow.services.collaborators import Collaborators
from hireflow.services.interviews import (
    list_interview_scorecards,
    list_my_interviews,
    schedule_interview,
    update_interview,
)

router = APIRouter(prefix="/interviews", tags=["interviews"])

SCHEDULER_ROLES = [Role.HR, Role.COMPANY_ADMIN, Role.HIRING_MANAGER]


@router.post("", response_model=OutcomeOut, status_code=status.HTTP_201_CREATED)
async def schedule(
    payload: InterviewCreate,
    session: AsyncSession = Depends(deps.get_db_session),
    collaborators: Collaborators = Depends(deps.get_collaborators),
    user: UserContext = Depends(require_roles(SCHEDULER_ROLES)),
):
    outcome = await schedule_interview(
        session,
        actor=user,
        application_id=payload.application_id,
        interviewer_id=payload.interviewer_id,
        scheduled_at=payload.scheduled_at,
        duration_minutes=payload.duration_minutes,
        meeting_link=payload.meeting_link,
        notes=payload.notes,
        collaborators=collaborators,
    )
    return outcome_or_raise(outcome)


@router.get("/mine", response_model=list[InterviewOut])
async def my_interviews(
    status_filter: str | None = Query(default=None, alias="status"),
    session: AsyncSession = Depends(deps.get_db_session),
    user: UserContext = Depends(require_roles([Role.INTERVIEWER])),
):
    interviews = await list_my_interviews(session, interviewer_id=user.user_id, status=status_filter)
    return [InterviewOut.model_validate(interview) for interview in interviews]


@router.patch("/{interview_id}", response_model=OutcomeOut)
async def edit_interview(
    interview_id: int,
    payload: InterviewUpdate,
    session: AsyncSession = Depends(deps.get_db_session),
    user: UserContext = Depends(require_roles([Role.INTERVIEWER, Role.HR, Role.COMPANY_ADMIN])),
):
    outcome = await update_interview(
        session,
        actor=user,
        interview_id=interview_id,
        status=payload.status,
        notes=payload.notes,
    )
    return outcome_or_raise(outcome)


@router.get("/{interview_id}/scorecards", response_model=list[ScorecardOut])
async def interview_scorecards(
    interview_id: int,
    session: AsyncSession = Depends(deps.get_db_session),
    user: UserContext = Depends(require_roles(STAFF_ROLES)),
):
    scorecards = await list_interview_scorecards(
        session,
        company_id=deps.company_id_of(user, "Interview not found"),
        interview_id=interview_id,
    )
    return [ScorecardOut.model_validate(scorecard) for scorecard in scorecards]
