from hireflow.core.roles import APPROVER_ROLES, RECRUITER_ROLES, Role, has_required_role, parse_role
from hireflow.schemas.user import UserContext


def test_recruiter_roles():
    assert has_required_role([Role.HR], RECRUITER_ROLES) is True
    assert has_required_role([Role.COMPANY_ADMIN], RECRUITER_ROLES) is True
    assert has_required_role([Role.HIRING_MANAGER], RECRUITER_ROLES) is False


def test_approver_roles():
    assert has_required_role([Role.HIRING_MANAGER], APPROVER_ROLES) is True
    assert has_required_role([Role.HR], APPROVER_ROLES) is False


def test_candidate_is_not_staff():
    assert has_required_role([Role.CANDIDATE], [Role.INTERVIEWER, Role.HR]) is False


def test_parse_role_accepts_header_spellings():
    assert parse_role("hiring-manager") == Role.HIRING_MANAGER
    assert parse_role(" Company Admin ") == Role.COMPANY_ADMIN
    assert parse_role("admin") == Role.COMPANY_ADMIN
    assert parse_role("superuser") is None
    assert parse_role("") is None


def test_actor_label_uses_name_and_primary_role():
    user = UserContext(user_id=4, email="dana@example.com", roles=[Role.HR], company_id=1, full_name="Dana Lee")
    assert user.label() == "Dana Lee (hr)"
    assert user.has_role(Role.HR, Role.COMPANY_ADMIN) is True
