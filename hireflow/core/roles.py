from enum import Enum
from typing import Iterable


class Role(str, Enum):
    PLATFORM_ADMIN = "platform_admin"
    COMPANY_ADMIN = "company_admin"
    HR = "hr"
    HIRING_MANAGER = "hiring_manager"
    INTERVIEWER = "interviewer"
    CANDIDATE = "candidate"


STAFF_ROLES = frozenset({Role.COMPANY_ADMIN, Role.HR, Role.HIRING_MANAGER, Role.INTERVIEWER})
RECRUITER_ROLES = frozenset({Role.COMPANY_ADMIN, Role.HR})
APPROVER_ROLES = frozenset({Role.COMPANY_ADMIN, Role.HIRING_MANAGER})
JOB_AUTHOR_ROLES = frozenset({Role.COMPANY_ADMIN, Role.HR, Role.HIRING_MANAGER})


def parse_role(value: str) -> Role | None:
    raw = (value or "").strip().lower().replace("-", "_").replace(" ", "_")
    if raw in {"companyadmin", "admin"}:
        raw = Role.COMPANY_ADMIN.value
    if raw == "hiringmanager":
        raw = Role.HIRING_MANAGER.value
    if raw == "platformadmin":
        raw = Role.PLATFORM_ADMIN.value
    try:
        return Role(raw)
    except ValueError:
        return None


def has_required_role(user_roles: Iterable[Role], required: Iterable[Role]) -> bool:
    user_roles_set = {Role(r) for r in user_roles}
    required_set = {Role(r) for r in required}
    return bool(user_roles_set & required_set)
