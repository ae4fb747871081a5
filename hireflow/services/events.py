from __future__ import annotations

import json
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hireflow.models.event import WorkflowEvent


def _text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


async def log_event(
    session: AsyncSession,
    *,
    entity_type: str,
    entity_id: int | None,
    action_type: str,
    company_id: int | None = None,
    from_status: Any = None,
    to_status: Any = None,
    performed_by: int | None = None,
    meta_json: Dict[str, Any] | None = None,
) -> WorkflowEvent:
    meta_text: Optional[str] = None
    if meta_json is not None:
        meta_text = json.dumps(meta_json, ensure_ascii=False, separators=(",", ":"), default=str)

    event = WorkflowEvent(
        company_id=company_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action_type=action_type,
        from_status=_text(from_status),
        to_status=_text(to_status),
        performed_by=performed_by,
        meta_json=meta_text,
    )
    session.add(event)
    await session.flush()
    return event


async def list_entity_events(
    session: AsyncSession,
    *,
    entity_type: str,
    entity_id: int,
    company_id: int | None = None,
) -> list[WorkflowEvent]:
    stmt = select(WorkflowEvent).where(WorkflowEvent.entity_type == entity_type, WorkflowEvent.entity_id == entity_id)
    if company_id is not None:
        stmt = stmt.where(WorkflowEvent.company_id == company_id)
    rows = await session.execute(stmt.order_by(WorkflowEvent.created_at.asc(), WorkflowEvent.id.asc()))
    return list(rows.scalars().all())
