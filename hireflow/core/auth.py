from __future__ import annotations

from typing import Iterable, Optional

from fastapi import Depends, HTTPException, Request, status
import urllib3
from google.auth.transport.urllib3 import Request as GoogleAuthRequest
from google.oauth2 import id_token as google_id_token
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from hireflow.core.config import settings
from hireflow.core.roles import Role, has_required_role, parse_role
from hireflow.models.user import User
from hireflow.schemas.user import UserContext


async def get_current_user(request: Request) -> UserContext:
    user = await _resolve_user(request)
    # Read back by the audit middleware once the response is produced.
    request.state.user = user
    return user


async def _resolve_user(request: Request) -> UserContext:
    # A bearer token always wins, even in dev mode.
    bearer = _read_bearer_token(request)
    if bearer:
        token_info = _verify_google_id_token(bearer)
        email = str(token_info.get("email", "")).lower()
        if not email:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token (missing email)")

        if settings.google_workspace_domain:
            hosted_domain = token_info.get("hd")
            if hosted_domain != settings.google_workspace_domain:
                raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User not in allowed workspace domain")

        try:
            user = await _load_user_by_email(email)
        except SQLAlchemyError as exc:
            detail = "User lookup failed"
            if settings.environment != "production":
                detail = f"User lookup failed: {exc}"
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)
        if user is None:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User not registered")
        if not user.is_active:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User is not active")
        role = parse_role(user.role)
        if role is None:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access restricted")
        return UserContext(
            user_id=user.id,
            email=user.email,
            roles=[role],
            company_id=user.company_id,
            full_name=user.full_name,
        )

    if settings.auth_mode == "google":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")

    # Dev-mode user context:
    # - X-User-Id: 12
    # - X-User-Email: user@company.com
    # - X-User-Roles: hr,interviewer
    # - X-Company-Id: 3 (omitted for candidates)
    raw_user_id = (request.headers.get("x-user-id") or "").strip()
    if not raw_user_id.isdigit():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-User-Id header")
    user_id = int(raw_user_id)
    email = request.headers.get("x-user-email") or f"user{user_id}@example.com"
    full_name = request.headers.get("x-user-name") or _derive_name_from_email(email)
    roles: list[Role] = []
    for raw in (request.headers.get("x-user-roles") or "").split(","):
        role = parse_role(raw)
        if role is not None and role not in roles:
            roles.append(role)
    if not roles:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access restricted")

    raw_company = (request.headers.get("x-company-id") or "").strip()
    company_id: Optional[int] = int(raw_company) if raw_company.isdigit() else None

    return UserContext(
        user_id=user_id,
        email=email,
        roles=roles,
        company_id=company_id,
        full_name=full_name,
    )


async def _load_user_by_email(email: str) -> Optional[User]:
    from hireflow.db.session import SessionLocal

    async with SessionLocal() as session:
        return (await session.execute(select(User).where(User.email == email))).scalar_one_or_none()


def _read_bearer_token(request: Request) -> Optional[str]:
    auth = request.headers.get("authorization") or ""
    prefix = "bearer "
    if auth.lower().startswith(prefix):
        return auth[len(prefix) :].strip()
    return None


def _verify_google_id_token(token: str) -> dict:
    client_id = settings.google_client_id
    if not client_id:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Missing Google OAuth client_id")
    try:
        req = GoogleAuthRequest(urllib3.PoolManager())
        return google_id_token.verify_oauth2_token(
            token,
            req,
            audience=client_id,
            clock_skew_in_seconds=int(settings.google_clock_skew_seconds),
        )
    except Exception as exc:
        detail = "Invalid Google token"
        if settings.environment != "production":
            detail = f"Invalid Google token: {exc}"
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def _derive_name_from_email(email: str) -> str:
    local = email.split("@", 1)[0].strip()
    if not local:
        return email
    parts = [p for p in local.replace("_", ".").split(".") if p]
    if not parts:
        return local
    return " ".join(p[:1].upper() + p[1:] for p in parts)


def require_roles(required: Iterable[Role]):
    required = tuple(required)

    async def dependency(user: UserContext = Depends(get_current_user)) -> UserContext:
        if not has_required_role(user.roles, required):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return user

    return dependency
