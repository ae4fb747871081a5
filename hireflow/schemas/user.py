from typing import List, Optional

from pydantic import BaseModel, EmailStr

from hireflow.core.roles import Role


class UserContext(BaseModel):
    user_id: int
    email: EmailStr
    roles: List[Role]
    company_id: Optional[int] = None
    full_name: Optional[str] = None

    @property
    def primary_role(self) -> Optional[Role]:
        return self.roles[0] if self.roles else None

    def has_role(self, *roles: Role) -> bool:
        return any(role in self.roles for role in roles)

    def label(self) -> str:
        name = self.full_name or str(self.email)
        role = self.primary_role
        return f"{name} ({role.value})" if role else name
