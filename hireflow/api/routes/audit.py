from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hireflow.api import deps
from hireflow.core.auth import require_roles
from hireflow.core.roles import Role
from hireflow.schemas.audit import AuditLogOut
from hireflow.schemas.user import UserContext
from hireflow.services.audit import list_audit_trail

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("", response_model=list[AuditLogOut])
async def audit_trail(
    entity_type: Optional[str] = Query(default=None),
    entity_id: Optional[int] = Query(default=None, ge=1),
    limit: int = Query(default=200, ge=1, le=1000),
    session: AsyncSession = Depends(deps.get_db_session),
    user: UserContext = Depends(require_roles([Role.COMPANY_ADMIN])),
):
    rows = await list_audit_trail(
        session,
        company_id=deps.company_id_of(user, "Company not found"),
        entity_type=entity_type,
        entity_id=entity_id,
        limit=limit,
    )
    return [AuditLogOut.model_validate(row) for row in rows]
