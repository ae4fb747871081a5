from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from hireflow.api import deps
from hireflow.api.outcomes import outcome_or_raise
from hireflow.core.auth import require_roles
from hireflow.core.roles import RECRUITER_ROLES
from hireflow.schemas.common import OutcomeOut
from hireflow.schemas.offer import OfferCreateIn, OfferSendIn
from hireflow.schemas.user import UserContext
from hireflow.services.collaborators import Collaborators
from hireflow.services.offers import create_offer, send_offer

router = APIRouter(prefix="/offers", tags=["offers"])


@router.post("", response_model=OutcomeOut, status_code=status.HTTP_201_CREATED)
async def draft_offer(
    payload: OfferCreateIn,
    session: AsyncSession = Depends(deps.get_db_session),
    collaborators: Collaborators = Depends(deps.get_collaborators),
    user: UserContext = Depends(require_roles(RECRUITER_ROLES)),
):
    outcome = await create_offer(
        session,
        actor=user,
        application_id=payload.application_id,
        offer_details=payload.offer_details,
        collaborators=collaborators,
    )
    return outcome_or_raise(outcome)


@router.post("/{offer_id}/send", response_model=OutcomeOut)
async def send(
    offer_id: int,
    payload: OfferSendIn | None = None,
    session: AsyncSession = Depends(deps.get_db_session),
    collaborators: Collaborators = Depends(deps.get_collaborators),
    user: UserContext = Depends(require_roles(RECRUITER_ROLES)),
):
    outcome = await send_offer(
        session,
        actor=user,
        offer_id=offer_id,
        esign_link=payload.esign_link if payload else None,
        collaborators=collaborators,
    )
    return outcome_or_raise(outcome)
