from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from hireflow.core.outcomes import (
    ConsistencyFault,
    PreconditionFailed,
    WorkflowOutcome,
    WorkflowValidationError,
    outcome_boundary,
)
from hireflow.core.roles import APPROVER_ROLES
from hireflow.core.workflow import (
    APPROVAL_TABLE,
    EDITABLE_JOB_STATES,
    JOB_TABLE,
    ApprovalEvent,
    ApprovalStatus,
    JobEvent,
    JobStatus,
)
from hireflow.db.gateway import atomic, fire_transition, guarded_update, lock_one, try_transition
from hireflow.models.job import JobApproval, JobRequisition
from hireflow.models.user import User
from hireflow.schemas.user import UserContext
from hireflow.services.collaborators import Collaborators, NotificationEvent
from hireflow.services.events import log_event
from hireflow.services.scope import company_of

JOB_DETAIL_FIELDS = (
    "description",
    "requirements",
    "location",
    "department",
    "employment_type",
    "experience_level",
    "salary_min",
    "salary_max",
    "application_deadline",
)
EDITABLE_FIELDS = frozenset({"title", "positions_count", *JOB_DETAIL_FIELDS})

JOB_NOT_FOUND = "Job not found"


def _validate_details(values: dict[str, Any]) -> dict[str, Any]:
    unknown = set(values) - EDITABLE_FIELDS
    if unknown:
        raise WorkflowValidationError(f"Unknown job fields: {', '.join(sorted(unknown))}")
    clean = dict(values)
    if "title" in clean:
        title = (clean["title"] or "").strip()
        if not title:
            raise WorkflowValidationError("Job title is required")
        clean["title"] = title
    if "positions_count" in clean:
        try:
            seats = int(clean["positions_count"])
        except (TypeError, ValueError):
            raise WorkflowValidationError("positions_count must be an integer")
        if seats < 1:
            raise WorkflowValidationError("positions_count must be at least 1")
        clean["positions_count"] = seats
    if "employment_type" in clean and not clean["employment_type"]:
        clean["employment_type"] = "Full-time"
    salaries = {}
    for key in ("salary_min", "salary_max"):
        if clean.get(key) is None:
            continue
        try:
            salaries[key] = Decimal(str(clean[key]))
        except InvalidOperation:
            raise WorkflowValidationError(f"{key} must be a number")
        if salaries[key] < 0:
            raise WorkflowValidationError(f"{key} cannot be negative")
    if len(salaries) == 2 and salaries["salary_min"] > salaries["salary_max"]:
        raise WorkflowValidationError("salary_min cannot exceed salary_max")
    return clean


@outcome_boundary
async def create_job_draft(
    session: AsyncSession,
    *,
    actor: UserContext,
    title: str,
    positions_count: int = 1,
    details: dict[str, Any] | None = None,
) -> WorkflowOutcome:
    values = _validate_details({"title": title, "positions_count": positions_count, **(details or {})})
    company_id = company_of(actor, "Company not found")
    values.setdefault("employment_type", "Full-time")
    async with atomic(session):
        job = JobRequisition(
            company_id=company_id,
            created_by=actor.user_id,
            status=JobStatus.DRAFT.value,
            **values,
        )
        session.add(job)
        await session.flush()
        await log_event(
            session,
            entity_type="job",
            entity_id=job.id,
            company_id=company_id,
            action_type="job_created",
            to_status=JobStatus.DRAFT,
            performed_by=actor.user_id,
        )
    return WorkflowOutcome.success(job.id, "Job draft created")


@outcome_boundary
async def update_job(session: AsyncSession, *, actor: UserContext, job_id: int, changes: dict[str, Any]) -> WorkflowOutcome:
    if not changes:
        raise WorkflowValidationError("No changes supplied")
    values = _validate_details(changes)
    company_id = company_of(actor, JOB_NOT_FOUND)
    async with atomic(session):
        changed = await guarded_update(
            session,
            JobRequisition,
            job_id,
            EDITABLE_JOB_STATES,
            values,
            where=(JobRequisition.company_id == company_id,),
        )
        if changed != 1:
            raise PreconditionFailed(JOB_NOT_FOUND)
        await log_event(
            session,
            entity_type="job",
            entity_id=job_id,
            company_id=company_id,
            action_type="job_updated",
            performed_by=actor.user_id,
            meta_json={"fields": sorted(values)},
        )
    return WorkflowOutcome.success(job_id, "Job updated")


async def _reset_or_create_approval(session: AsyncSession, *, job_id: int, approver_id: int) -> JobApproval:
    approval = await lock_one(
        session,
        select(JobApproval).where(JobApproval.job_id == job_id, JobApproval.approver_id == approver_id),
    )
    if approval is None:
        approval = JobApproval(job_id=job_id, approver_id=approver_id, status=ApprovalStatus.PENDING.value)
        session.add(approval)
        await session.flush()
        return approval
    target = APPROVAL_TABLE.target(approval.status, ApprovalEvent.RESET)
    if target is None:
        raise ConsistencyFault(f"Approval #{approval.id} is in an unknown state")
    approval.status = target.value
    approval.comments = None
    approval.approved_at = None
    await session.flush()
    return approval


@outcome_boundary
async def submit_job(
    session: AsyncSession,
    *,
    actor: UserContext,
    job_id: int,
    approver_id: int,
    collaborators: Collaborators,
) -> WorkflowOutcome:
    if not approver_id:
        raise WorkflowValidationError("approver_id is required")
    company_id = company_of(actor, JOB_NOT_FOUND)
    async with atomic(session):
        approver = (
            await session.execute(
                select(User.id).where(
                    User.id == approver_id,
                    User.company_id == company_id,
                    User.is_active == 1,
                    User.role.in_([r.value for r in APPROVER_ROLES]),
                )
            )
        ).scalar_one_or_none()
        if approver is None:
            raise WorkflowValidationError("Approver not found in company")
        from_state, to_state = await fire_transition(
            session,
            table=JOB_TABLE,
            model=JobRequisition,
            entity_id=job_id,
            event=JobEvent.SUBMIT,
            where=(JobRequisition.company_id == company_id,),
            missing=JOB_NOT_FOUND,
        )
        approval = await _reset_or_create_approval(session, job_id=job_id, approver_id=approver_id)
        await log_event(
            session,
            entity_type="job",
            entity_id=job_id,
            company_id=company_id,
            action_type="job_submitted",
            from_status=from_state,
            to_status=to_state,
            performed_by=actor.user_id,
            meta_json={"approval_id": approval.id, "approver_id": approver_id},
        )
        approval_id = approval.id
    collaborators.notifications.dispatch(
        NotificationEvent.JOB_APPROVAL_REQUESTED,
        {"job_id": job_id, "approval_id": approval_id, "company_id": company_id},
        actor.label(),
    )
    return WorkflowOutcome.success(job_id, "Job submitted for approval", approval_id=approval_id)


@outcome_boundary
async def decide_job_approval(
    session: AsyncSession,
    *,
    actor: UserContext,
    job_id: int,
    approve: bool,
    comments: str | None = None,
    collaborators: Collaborators,
) -> WorkflowOutcome:
    missing = "Approval not found"
    company_id = company_of(actor, missing)
    approval_event = ApprovalEvent.APPROVE if approve else ApprovalEvent.REJECT
    job_event = JobEvent.APPROVE if approve else JobEvent.REJECT
    async with atomic(session):
        approval = await lock_one(
            session,
            select(JobApproval)
            .join(JobRequisition, JobRequisition.id == JobApproval.job_id)
            .where(
                JobApproval.job_id == job_id,
                JobApproval.approver_id == actor.user_id,
                JobRequisition.company_id == company_id,
            ),
        )
        if approval is None:
            raise PreconditionFailed(missing)
        approval_target = APPROVAL_TABLE.target(approval.status, approval_event)
        if approval_target is None:
            raise PreconditionFailed(missing)
        changed = await try_transition(
            session,
            JobApproval,
            approval.id,
            APPROVAL_TABLE.sources(approval_event),
            approval_target,
            values={"comments": comments, "approved_at": func.now() if approve else None},
        )
        if changed != 1:
            raise PreconditionFailed(missing)
        job_values = {"published_at": func.now()} if approve else None
        from_state, to_state = await fire_transition(
            session,
            table=JOB_TABLE,
            model=JobRequisition,
            entity_id=job_id,
            event=job_event,
            where=(JobRequisition.company_id == company_id,),
            values=job_values,
            missing=missing,
        )
        await log_event(
            session,
            entity_type="job",
            entity_id=job_id,
            company_id=company_id,
            action_type="job_approved" if approve else "job_rejected",
            from_status=from_state,
            to_status=to_state,
            performed_by=actor.user_id,
            meta_json={"approval_id": approval.id, "comments": comments},
        )
        approval_id = approval.id
    collaborators.notifications.dispatch(
        NotificationEvent.JOB_APPROVAL_DECIDED,
        {"job_id": job_id, "approval_id": approval_id, "company_id": company_id},
        actor.label(),
    )
    return WorkflowOutcome.success(job_id, "Job approved" if approve else "Job rejected", approval_id=approval_id)


async def _direct_transition(
    session: AsyncSession,
    *,
    actor: UserContext,
    job_id: int,
    event: JobEvent,
    values: dict[str, Any],
    action_type: str,
) -> tuple[JobStatus, JobStatus]:
    company_id = company_of(actor, JOB_NOT_FOUND)
    async with atomic(session):
        from_state, to_state = await fire_transition(
            session,
            table=JOB_TABLE,
            model=JobRequisition,
            entity_id=job_id,
            event=event,
            where=(JobRequisition.company_id == company_id,),
            values=values,
            missing=JOB_NOT_FOUND,
        )
        await log_event(
            session,
            entity_type="job",
            entity_id=job_id,
            company_id=company_id,
            action_type=action_type,
            from_status=from_state,
            to_status=to_state,
            performed_by=actor.user_id,
        )
    return from_state, to_state


@outcome_boundary
async def publish_job(session: AsyncSession, *, actor: UserContext, job_id: int) -> WorkflowOutcome:
    await _direct_transition(
        session,
        actor=actor,
        job_id=job_id,
        event=JobEvent.PUBLISH,
        values={"published_at": func.now()},
        action_type="job_published",
    )
    return WorkflowOutcome.success(job_id, "Job published")


@outcome_boundary
async def close_job(session: AsyncSession, *, actor: UserContext, job_id: int) -> WorkflowOutcome:
    await _direct_transition(
        session,
        actor=actor,
        job_id=job_id,
        event=JobEvent.CLOSE,
        values={"closed_at": func.now()},
        action_type="job_closed",
    )
    return WorkflowOutcome.success(job_id, "Job closed")


async def close_exhausted_job(
    session: AsyncSession,
    *,
    job_id: int,
    company_id: int | None = None,
    performed_by: int | None = None,
) -> bool:
    """Close the job unless it is already closed. Runs inside the caller's transaction."""
    changed = await try_transition(
        session,
        JobRequisition,
        job_id,
        JOB_TABLE.sources(JobEvent.CLOSE),
        JobStatus.CLOSED,
        values={"closed_at": func.now()},
    )
    if changed:
        await log_event(
            session,
            entity_type="job",
            entity_id=job_id,
            company_id=company_id,
            action_type="job_closed",
            to_status=JobStatus.CLOSED,
            performed_by=performed_by,
            meta_json={"reason": "no_openings_left"},
        )
    return bool(changed)


async def consume_seat(session: AsyncSession, *, job_id: int) -> int:
    """Decrement positions_count by one, guarded on a seat remaining; returns the seats left."""
    result = await session.execute(
        update(JobRequisition)
        .where(JobRequisition.id == job_id, JobRequisition.positions_count > 0)
        .values(positions_count=JobRequisition.positions_count - 1)
        .execution_options(synchronize_session=False)
    )
    if (result.rowcount or 0) != 1:
        raise ConsistencyFault(f"Seat decrement for job #{job_id} affected no rows")
    remaining = (
        await session.execute(select(JobRequisition.positions_count).where(JobRequisition.id == job_id))
    ).scalar_one()
    return int(remaining)


async def list_jobs(session: AsyncSession, *, company_id: int, status: str | None = None) -> list[JobRequisition]:
    stmt = select(JobRequisition).where(JobRequisition.company_id == company_id)
    if status:
        stmt = stmt.where(JobRequisition.status == status)
    rows = await session.execute(stmt.order_by(JobRequisition.created_at.desc(), JobRequisition.id.desc()))
    return list(rows.scalars().all())


async def get_job(session: AsyncSession, *, company_id: int, job_id: int) -> JobRequisition | None:
    return (
        await session.execute(
            select(JobRequisition).where(JobRequisition.id == job_id, JobRequisition.company_id == company_id)
        )
    ).scalar_one_or_none()


async def list_public_jobs(session: AsyncSession) -> list[JobRequisition]:
    rows = await session.execute(
        select(JobRequisition)
        .where(JobRequisition.status == JobStatus.PUBLISHED.value, JobRequisition.positions_count > 0)
        .order_by(JobRequisition.published_at.desc(), JobRequisition.id.desc())
    )
    return list(rows.scalars().all())


async def list_pending_approvals(session: AsyncSession, *, company_id: int, approver_id: int) -> list[tuple[JobApproval, JobRequisition]]:
    rows = await session.execute(
        select(JobApproval, JobRequisition)
        .join(JobRequisition, JobRequisition.id == JobApproval.job_id)
        .where(
            JobApproval.approver_id == approver_id,
            JobApproval.status == ApprovalStatus.PENDING.value,
            JobRequisition.company_id == company_id,
            JobRequisition.status == JobStatus.PENDING.value,
        )
        .order_by(JobApproval.created_at.asc())
    )
    return [(approval, job) for approval, job in rows.all()]
