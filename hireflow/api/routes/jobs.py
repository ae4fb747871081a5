from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from hireflow.api import deps
from hireflow.api.outcomes import outcome_or_raise
from hireflow.core.auth import require_roles
from hireflow.core.roles import JOB_AUTHOR_ROLES, STAFF_ROLES, Role
from hireflow.schemas.common import OutcomeOut
from hireflow.schemas.job import JobCreate, JobOut, JobSubmitIn, JobUpdate, PublicJobOut
from hireflow.schemas.user import UserContext
from hireflow.services.collaborators import Collaborators
from hireflow.services.jobs import (
    close_job,
    create_job_draft,
    get_job,
    list_jobs,
    list_public_jobs,
    publish_job,
    submit_job,
    update_job,
)

router = APIRouter(prefix="/jobs", tags=["jobs"])
public_router = APIRouter(prefix="/public", tags=["jobs-public"])

PUBLISHER_ROLES = [Role.COMPANY_ADMIN, Role.HIRING_MANAGER]


@router.post("", response_model=OutcomeOut, status_code=status.HTTP_201_CREATED)
async def create_job(
    payload: JobCreate,
    session: AsyncSession = Depends(deps.get_db_session),
    user: UserContext = Depends(require_roles(JOB_AUTHOR_ROLES)),
):
    details = payload.model_dump(exclude_none=True, exclude={"title", "positions_count"})
    outcome = await create_job_draft(
        session,
        actor=user,
        title=payload.title,
        positions_count=payload.positions_count,
        details=details,
    )
    return outcome_or_raise(outcome)


@router.get("", response_model=list[JobOut])
async def list_company_jobs(
    status_filter: str | None = Query(default=None, alias="status"),
    session: AsyncSession = Depends(deps.get_db_session),
    user: UserContext = Depends(require_roles(STAFF_ROLES)),
):
    company_id = deps.company_id_of(user, "Company not found")
    jobs = await list_jobs(session, company_id=company_id, status=status_filter)
    return [JobOut.model_validate(job) for job in jobs]


@router.get("/{job_id}", response_model=JobOut)
async def get_company_job(
    job_id: int,
    session: AsyncSession = Depends(deps.get_db_session),
    user: UserContext = Depends(require_roles(STAFF_ROLES)),
):
    job = await get_job(session, company_id=deps.company_id_of(user, "Job not found"), job_id=job_id)
    if not job:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    return JobOut.model_validate(job)


@router.patch("/{job_id}", response_model=OutcomeOut)
async def edit_job(
    job_id: int,
    payload: JobUpdate,
    session: AsyncSession = Depends(deps.get_db_session),
    user: UserContext = Depends(require_roles(JOB_AUTHOR_ROLES)),
):
    outcome = await update_job(session, actor=user, job_id=job_id, changes=payload.model_dump(exclude_unset=True))
    return outcome_or_raise(outcome)


@router.post("/{job_id}/submit", response_model=OutcomeOut)
async def submit_for_approval(
    job_id: int,
    payload: JobSubmitIn,
    session: AsyncSession = Depends(deps.get_db_session),
    collaborators: Collaborators = Depends(deps.get_collaborators),
    user: UserContext = Depends(require_roles(JOB_AUTHOR_ROLES)),
):
    outcome = await submit_job(
        session,
        actor=user,
        job_id=job_id,
        approver_id=payload.approver_id,
        collaborators=collaborators,
    )
    return outcome_or_raise(outcome)


@router.post("/{job_id}/publish", response_model=OutcomeOut)
async def publish(
    job_id: int,
    session: AsyncSession = Depends(deps.get_db_session),
    user: UserContext = Depends(require_roles(PUBLISHER_ROLES)),
):
    return outcome_or_raise(await publish_job(session, actor=user, job_id=job_id))


@router.post("/{job_id}/close", response_model=OutcomeOut)
async def close(
    job_id: int,
    session: AsyncSession = Depends(deps.get_db_session),
    user: UserContext = Depends(require_roles(PUBLISHER_ROLES)),
):
    return outcome_or_raise(await close_job(session, actor=user, job_id=job_id))


@public_router.get("/jobs", response_model=list[PublicJobOut])
async def public_jobs(
    session: AsyncSession = Depends(deps.get_db_session),
    _user: UserContext = Depends(deps.get_user),
):
    jobs = await list_public_jobs(session)
    return [PublicJobOut.model_validate(job) for job in jobs]
