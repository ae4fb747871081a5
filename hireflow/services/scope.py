from __future__ import annotations

from sqlalchemy import Select, select

from hireflow.core.outcomes import PreconditionFailed
from hireflow.models.application import Application
from hireflow.models.job import JobRequisition
from hireflow.schemas.user import UserContext


def company_of(actor: UserContext, missing: str = "Not found") -> int:
    """Company the actor works for. Actors without one can reach no company-owned entity."""
    if actor.company_id is None:
        raise PreconditionFailed(missing)
    return actor.company_id


def company_jobs(company_id: int) -> Select:
    return select(JobRequisition.id).where(JobRequisition.company_id == company_id)


def company_applications(company_id: int) -> Select:
    return select(Application.id).where(Application.job_id.in_(company_jobs(company_id)))
