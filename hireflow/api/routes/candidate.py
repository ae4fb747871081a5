from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from hireflow.api import deps
from hireflow.api.outcomes import outcome_or_raise
from hireflow.core.auth import require_roles
from hireflow.core.roles import Role
from hireflow.schemas.application import CandidateApplicationOut
from hireflow.schemas.common import OutcomeOut
from hireflow.schemas.offer import OfferOut
from hireflow.schemas.user import UserContext
from hireflow.services.applications import list_candidate_applications
from hireflow.services.collaborators import Collaborators
from hireflow.services.offers import accept_offer, decline_offer, list_candidate_offers

router = APIRouter(prefix="/me", tags=["candidate"])

candidate_only = require_roles([Role.CANDIDATE])


@router.get("", response_model=UserContext)
async def me(user: UserContext = Depends(deps.get_user)):
    return user


@router.get("/applications", response_model=list[CandidateApplicationOut])
async def my_applications(
    session: AsyncSession = Depends(deps.get_db_session),
    user: UserContext = Depends(candidate_only),
):
    rows = await list_candidate_applications(session, candidate_id=user.user_id)
    return [
        CandidateApplicationOut(
            id=application.id,
            job_id=job.id,
            job_title=job.title,
            company_id=job.company_id,
            status=application.status,
            applied_at=application.applied_at,
        )
        for application, job in rows
    ]


@router.get("/offers", response_model=list[OfferOut])
async def my_offers(
    session: AsyncSession = Depends(deps.get_db_session),
    user: UserContext = Depends(candidate_only),
):
    offers = await list_candidate_offers(session, candidate_id=user.user_id)
    return [OfferOut.model_validate(offer) for offer in offers]


@router.post("/offers/{offer_id}/accept", response_model=OutcomeOut)
async def accept(
    offer_id: int,
    session: AsyncSession = Depends(deps.get_db_session),
    collaborators: Collaborators = Depends(deps.get_collaborators),
    user: UserContext = Depends(candidate_only),
):
    return outcome_or_raise(
        await accept_offer(session, actor=user, offer_id=offer_id, collaborators=collaborators)
    )


@router.post("/offers/{offer_id}/decline", response_model=OutcomeOut)
async def decline(
    offer_id: int,
    session: AsyncSession = Depends(deps.get_db_session),
    collaborators: Collaborators = Depends(deps.get_collaborators),
    user: UserContext = Depends(candidate_only),
):
    return outcome_or_raise(
        await decline_offer(session, actor=user, offer_id=offer_id, collaborators=collaborators)
    )
