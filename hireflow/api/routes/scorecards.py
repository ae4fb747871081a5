from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from hireflow.api import deps
from hireflow.api.outcomes import outcome_or_raise
from hireflow.core.auth import require_roles
from hireflow.core.roles import Role
from hireflow.schemas.common import OutcomeOut
from hireflow.schemas.interview import ScorecardCreate
from hireflow.schemas.user import UserContext
from hireflow.services.collaborators import Collaborators
from hireflow.services.interviews import finalize_scorecard, submit_scorecard

router = APIRouter(prefix="/scorecards", tags=["scorecards"])


@router.post("", response_model=OutcomeOut, status_code=status.HTTP_201_CREATED)
async def create_scorecard(
    payload: ScorecardCreate,
    session: AsyncSession = Depends(deps.get_db_session),
    user: UserContext = Depends(require_roles([Role.INTERVIEWER])),
):
    outcome = await submit_scorecard(
        session,
        actor=user,
        interview_id=payload.interview_id,
        recommendation=payload.recommendation,
        ratings=payload.ratings,
        comments=payload.comments,
    )
    return outcome_or_raise(outcome)


@router.post("/{scorecard_id}/finalize", response_model=OutcomeOut)
async def finalize(
    scorecard_id: int,
    session: AsyncSession = Depends(deps.get_db_session),
    collaborators: Collaborators = Depends(deps.get_collaborators),
    user: UserContext = Depends(require_roles([Role.INTERVIEWER])),
):
    outcome = await finalize_scorecard(session, actor=user, scorecard_id=scorecard_id, collaborators=collaborators)
    return outcome_or_raise(outcome)
