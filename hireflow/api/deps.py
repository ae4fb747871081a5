from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from hireflow.core.auth import get_current_user
from hireflow.db.session import get_session
from hireflow.schemas.user import UserContext
from hireflow.services.collaborators import Collaborators


async def get_db_session() -> AsyncSession:
    async for session in get_session():
        yield session


async def get_user(user: UserContext = Depends(get_current_user)) -> UserContext:
    return user


def get_collaborators(request: Request) -> Collaborators:
    return request.app.state.collaborators


def company_id_of(user: UserContext, detail: str = "Not found") -> int:
    if user.company_id is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)
    return user.company_id
