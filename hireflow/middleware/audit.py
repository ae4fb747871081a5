from __future__ import annotations

import json
import logging
from typing import Any, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from hireflow.core.config import settings
from hireflow.request_context import get_request_context
from hireflow.services.audit import (
    build_action,
    infer_entity_id,
    infer_entity_type,
    resolve_company_id,
    sanitize_for_audit,
    write_audit_log,
)

logger = logging.getLogger("hireflow.audit")

MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


def should_audit(method: str, path: str, status_code: int) -> bool:
    if method not in MUTATING_METHODS:
        return False
    if not path.startswith("/api/") or path.rstrip("/").endswith("/health"):
        return False
    return 200 <= status_code < 400


def _parse_json(raw: bytes) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return None


class AuditMiddleware(BaseHTTPMiddleware):
    """Writes one AuditLog row per successful mutating API call, after the response is produced."""

    def __init__(self, app, session_factory: Callable | None = None) -> None:
        super().__init__(app)
        self._session_factory = session_factory

    def _sessions(self):
        if self._session_factory is None:
            from hireflow.db.session import SessionLocal

            self._session_factory = SessionLocal
        return self._session_factory()

    async def dispatch(self, request: Request, call_next):
        if not settings.audit_enabled or request.method not in MUTATING_METHODS:
            return await call_next(request)

        request_body = _parse_json(await request.body())
        response = await call_next(request)
        if not should_audit(request.method, request.url.path, response.status_code):
            return response

        chunks = [chunk async for chunk in response.body_iterator]
        raw = b"".join(chunk if isinstance(chunk, bytes) else chunk.encode("utf-8") for chunk in chunks)
        try:
            await self._record(request, response.status_code, request_body, _parse_json(raw))
        except Exception:  # noqa: BLE001
            logger.warning(
                "audit_write_failed",
                extra={"path": request.url.path, "method": request.method},
                exc_info=True,
            )
        return Response(
            content=raw,
            status_code=response.status_code,
            headers=dict(response.headers),
            media_type=response.media_type,
            background=response.background,
        )

    async def _record(self, request: Request, status_code: int, request_body: Any, response_body: Any) -> None:
        path = request.url.path
        actor = getattr(request.state, "user", None)
        entity_type = infer_entity_type(path)
        entity_id = infer_entity_id(path, request_body, response_body)
        limit = settings.audit_max_value_length
        async with self._sessions() as session:
            company_id = await resolve_company_id(
                session,
                actor=actor,
                entity_type=entity_type,
                entity_id=entity_id,
                request_body=request_body,
            )
            payload = {
                "status_code": status_code,
                "route": path,
                "query": sanitize_for_audit(dict(request.query_params), max_length=limit),
                "request_body": sanitize_for_audit(request_body, max_length=limit),
                "response_body": sanitize_for_audit(response_body, max_length=limit),
            }
            await write_audit_log(
                session,
                actor=actor,
                method=request.method,
                path=path,
                status_code=status_code,
                action=build_action(request.method, path, entity_type, entity_id, request_body),
                entity_type=entity_type,
                entity_id=entity_id,
                company_id=company_id,
                payload=payload,
                context=get_request_context(request),
            )
            await session.commit()
        logger.info(
            "audit_recorded",
            extra={"path": path, "entity_type": entity_type, "entity_id": entity_id, "company_id": company_id},
        )
