from __future__ import annotations

from typing import Any, Mapping

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hireflow.models.application import Application
from hireflow.models.audit import AuditLog
from hireflow.models.interview import Interview, Scorecard
from hireflow.models.job import JobApproval, JobRequisition
from hireflow.models.offer import Offer
from hireflow.request_context import RequestContext
from hireflow.schemas.user import UserContext

REDACT_KEYS = frozenset({"password", "password_hash", "token", "refresh_token", "access_token", "id_token"})

AUDITED_RESOURCES = {
    "jobs": "jobs",
    "approvals": "jobs",
    "applications": "applications",
    "interviews": "interviews",
    "scorecards": "scorecards",
    "offers": "offers",
}

ID_KEYS = ("entity_id", "id", "application_id", "job_id", "offer_id", "interview_id", "scorecard_id")

MAX_ITEMS = 20
MAX_KEYS = 40
MAX_DEPTH = 3

_ENDPOINT_VERBS = {
    "publish": "Published",
    "close": "Closed",
    "approve": "Approved",
    "reject": "Rejected",
    "send": "Sent",
    "accept": "Accepted",
    "decline": "Declined",
    "finalize": "Finalized",
    "apply": "Applied to",
}


def _positive_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return None
    return parsed if parsed > 0 else None


def sanitize_for_audit(value: Any, *, max_length: int = 500, depth: int = 0) -> Any:
    if value is None:
        return None
    if depth > MAX_DEPTH:
        return "[truncated]"
    if isinstance(value, list):
        items = [sanitize_for_audit(item, max_length=max_length, depth=depth + 1) for item in value[:MAX_ITEMS]]
        if len(value) > MAX_ITEMS:
            items.append(f"[+{len(value) - MAX_ITEMS} more]")
        return items
    if isinstance(value, dict):
        output: dict[str, Any] = {}
        for key, item in list(value.items())[:MAX_KEYS]:
            if str(key).lower() in REDACT_KEYS:
                output[key] = "[redacted]"
            else:
                output[key] = sanitize_for_audit(item, max_length=max_length, depth=depth + 1)
        if len(value) > MAX_KEYS:
            output["__truncated_keys__"] = len(value) - MAX_KEYS
        return output
    if isinstance(value, str) and len(value) > max_length:
        return f"{value[:max_length]}...[truncated]"
    return value


def _segments(path: str) -> list[str]:
    parts = [part for part in path.split("?", 1)[0].split("/") if part]
    if parts and parts[0] == "api":
        parts = parts[1:]
    return parts


def infer_entity_type(path: str) -> str | None:
    parts = _segments(path)
    if parts and parts[0] == "me":
        parts = parts[1:]
    if not parts:
        return None
    return AUDITED_RESOURCES.get(parts[0], parts[0].replace("-", "_"))


def _pick_id(value: Any) -> int | None:
    if not isinstance(value, Mapping):
        return None
    for key in ID_KEYS:
        found = _positive_int(value.get(key))
        if found:
            return found
    return _pick_id(value.get("data"))


def infer_entity_id(path: str, request_body: Any = None, response_body: Any = None) -> int | None:
    parts = _segments(path)
    if parts and parts[0] == "me":
        parts = parts[1:]
    if len(parts) >= 2:
        path_id = _positive_int(parts[1])
        if path_id:
            return path_id
    return _pick_id(response_body) or _pick_id(request_body)


def _singular(entity_type: str | None) -> str:
    word = (entity_type or "record").strip()
    if word.endswith("ies"):
        return f"{word[:-3]}y"
    if word.endswith("s"):
        return word[:-1]
    return word


def _humanize(value: Any) -> str:
    return " ".join(str(value or "").replace("_", " ").replace("-", " ").split())


def build_action(method: str, path: str, entity_type: str | None, entity_id: int | None, body: Any = None) -> str:
    parts = _segments(path)
    endpoint = parts[-1] if parts else ""
    label = _humanize(_singular(entity_type))
    target = f"{label} #{entity_id}" if entity_id else label
    body = body if isinstance(body, Mapping) else {}
    requested = _humanize(body.get("status") or body.get("decision")).lower()

    if endpoint == "submit":
        return f"Submitted {target} for approval"
    if endpoint == "recommend-offer":
        return f"Recommended offer for {target}"
    if endpoint == "move-stage":
        return f"Moved {target} to {requested}" if requested else f"Moved stage for {target}"
    if endpoint == "screen":
        if requested:
            return f"Updated screening decision to {requested} for {target}"
        return f"Updated screening decision for {target}"
    if endpoint == "final-decision":
        return f"Set final decision to {requested} for {target}" if requested else f"Set final decision for {target}"
    if endpoint in _ENDPOINT_VERBS:
        return f"{_ENDPOINT_VERBS[endpoint]} {target}"

    if method == "POST" and label == "interview" and _positive_int(body.get("application_id")):
        return f"Scheduled interview for application #{_positive_int(body.get('application_id'))}"
    if method == "POST" and label == "scorecard" and _positive_int(body.get("interview_id")):
        return f"Submitted scorecard for interview #{_positive_int(body.get('interview_id'))}"
    if method == "POST" and label == "offer" and _positive_int(body.get("application_id")):
        return f"Created offer for application #{_positive_int(body.get('application_id'))}"
    if method == "DELETE":
        return f"Deleted {target}"

    verb = "Created" if method == "POST" else "Updated"
    if requested and method in {"PUT", "PATCH", "POST"}:
        return f"{verb} {target} to {requested}"
    return f"{verb} {target}"


async def resolve_company_id(
    session: AsyncSession,
    *,
    actor: UserContext | None,
    entity_type: str | None,
    entity_id: int | None,
    request_body: Any = None,
) -> int | None:
    if actor is not None and actor.company_id:
        return actor.company_id
    body = request_body if isinstance(request_body, Mapping) else {}
    job_id = _positive_int(body.get("job_id"))
    if job_id:
        found = await _scalar(session, select(JobRequisition.company_id).where(JobRequisition.id == job_id))
        if found:
            return found
    if not entity_id:
        return None

    if entity_type == "jobs":
        stmt = select(JobRequisition.company_id).where(JobRequisition.id == entity_id)
    elif entity_type == "job_approvals":
        stmt = (
            select(JobRequisition.company_id)
            .join(JobApproval, JobApproval.job_id == JobRequisition.id)
            .where(JobApproval.id == entity_id)
        )
    elif entity_type == "applications":
        stmt = (
            select(JobRequisition.company_id)
            .join(Application, Application.job_id == JobRequisition.id)
            .where(Application.id == entity_id)
        )
    elif entity_type == "interviews":
        stmt = (
            select(JobRequisition.company_id)
            .join(Application, Application.job_id == JobRequisition.id)
            .join(Interview, Interview.application_id == Application.id)
            .where(Interview.id == entity_id)
        )
    elif entity_type == "scorecards":
        stmt = (
            select(JobRequisition.company_id)
            .join(Application, Application.job_id == JobRequisition.id)
            .join(Interview, Interview.application_id == Application.id)
            .join(Scorecard, Scorecard.interview_id == Interview.id)
            .where(Scorecard.id == entity_id)
        )
    elif entity_type == "offers":
        stmt = (
            select(JobRequisition.company_id)
            .join(Application, Application.job_id == JobRequisition.id)
            .join(Offer, Offer.application_id == Application.id)
            .where(Offer.id == entity_id)
        )
    else:
        return None
    return await _scalar(session, stmt)


async def _scalar(session: AsyncSession, stmt) -> int | None:
    return (await session.execute(stmt.limit(1))).scalar_one_or_none()


async def write_audit_log(
    session: AsyncSession,
    *,
    actor: UserContext | None,
    method: str,
    path: str,
    status_code: int,
    action: str,
    entity_type: str | None,
    entity_id: int | None,
    company_id: int | None,
    payload: dict | None,
    context: RequestContext | None,
) -> AuditLog:
    role = actor.primary_role if actor else None
    entry = AuditLog(
        company_id=company_id,
        user_id=actor.user_id if actor else None,
        role=role.value if role else None,
        method=method,
        path=path[:500],
        entity_type=entity_type,
        entity_id=entity_id,
        action=action[:255],
        status_code=status_code,
        ip=context.ip if context else None,
        user_agent=context.user_agent if context else None,
        request_id=context.request_id if context else None,
        payload_json=payload,
    )
    session.add(entry)
    return entry


async def list_audit_trail(
    session: AsyncSession,
    *,
    company_id: int,
    entity_type: str | None = None,
    entity_id: int | None = None,
    limit: int = 200,
) -> list[AuditLog]:
    """Audit rows for one company, newest first."""
    stmt = select(AuditLog).where(AuditLog.company_id == company_id)
    if entity_type:
        stmt = stmt.where(AuditLog.entity_type == entity_type)
    if entity_id:
        stmt = stmt.where(AuditLog.entity_id == entity_id)
    rows = await session.execute(stmt.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit))
    return list(rows.scalars().all())
