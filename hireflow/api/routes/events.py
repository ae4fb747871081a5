from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, Request
from starlette.responses import StreamingResponse

from hireflow.api import deps
from hireflow.core.auth import require_roles
from hireflow.core.roles import STAFF_ROLES
from hireflow.schemas.user import UserContext
from hireflow.services.event_bus import event_bus

router = APIRouter(prefix="/events", tags=["events"])


@router.get("/stream")
async def stream_events(
    request: Request,
    user: UserContext = Depends(require_roles(STAFF_ROLES)),
):
    queue = await event_bus.subscribe(deps.company_id_of(user, "Company not found"))

    async def event_generator():
        try:
            while True:
                if await request.is_disconnected():
                    break
                try:
                    data = await asyncio.wait_for(queue.get(), timeout=15)
                except asyncio.TimeoutError:
                    yield "event: ping\ndata: {}\n\n"
                    continue
                yield f"data: {data}\n\n"
        finally:
            event_bus.unsubscribe(queue)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )
