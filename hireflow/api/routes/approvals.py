from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from hireflow.api import deps
from hireflow.api.outcomes import outcome_or_raise
from hireflow.core.auth import require_roles
from hireflow.core.roles import APPROVER_ROLES
from hireflow.schemas.common import OutcomeOut
from hireflow.schemas.job import ApprovalDecisionIn, PendingApprovalOut
from hireflow.schemas.user import UserContext
from hireflow.services.collaborators import Collaborators
from hireflow.services.jobs import decide_job_approval, list_pending_approvals

router = APIRouter(prefix="/approvals", tags=["approvals"])


@router.get("/pending", response_model=list[PendingApprovalOut])
async def pending_approvals(
    session: AsyncSession = Depends(deps.get_db_session),
    user: UserContext = Depends(require_roles(APPROVER_ROLES)),
):
    rows = await list_pending_approvals(
        session,
        company_id=deps.company_id_of(user, "Company not found"),
        approver_id=user.user_id,
    )
    return [
        PendingApprovalOut(
            approval_id=approval.id,
            job_id=job.id,
            job_title=job.title,
            job_status=job.status,
            positions_count=job.positions_count,
            requested_by=job.created_by,
            created_at=approval.created_at,
        )
        for approval, job in rows
    ]


@router.post("/{job_id}/approve", response_model=OutcomeOut)
async def approve(
    job_id: int,
    payload: ApprovalDecisionIn | None = None,
    session: AsyncSession = Depends(deps.get_db_session),
    collaborators: Collaborators = Depends(deps.get_collaborators),
    user: UserContext = Depends(require_roles(APPROVER_ROLES)),
):
    outcome = await decide_job_approval(
        session,
        actor=user,
        job_id=job_id,
        approve=True,
        comments=payload.comments if payload else None,
        collaborators=collaborators,
    )
    return outcome_or_raise(outcome)


@router.post("/{job_id}/reject", response_model=OutcomeOut)
async def reject(
    job_id: int,
    payload: ApprovalDecisionIn | None = None,
    session: AsyncSession = Depends(deps.get_db_session),
    collaborators: Collaborators = Depends(deps.get_collaborators),
    user: UserContext = Depends(require_roles(APPROVER_ROLES)),
):
    outcome = await decide_job_approval(
        session,
        actor=user,
        job_id=job_id,
        approve=False,
        comments=payload.comments if payload else None,
        collaborators=collaborators,
    )
    return outcome_or_raise(outcome)
