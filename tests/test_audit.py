from hireflow.middleware.audit import should_audit
from hireflow.models import AuditLog
from hireflow.services.audit import (
    build_action,
    infer_entity_id,
    infer_entity_type,
    list_audit_trail,
    sanitize_for_audit,
)


def test_only_successful_mutating_api_calls_are_audited():
    assert should_audit("POST", "/api/jobs", 201) is True
    assert should_audit("GET", "/api/jobs", 200) is False
    assert should_audit("POST", "/api/jobs", 409) is False
    assert should_audit("POST", "/health", 200) is False


def test_entity_inference_from_path_and_bodies():
    assert infer_entity_type("/api/jobs/12/submit") == "jobs"
    assert infer_entity_type("/api/approvals/12/approve") == "jobs"
    assert infer_entity_type("/api/me/offers/5/accept") == "offers"
    assert infer_entity_id("/api/jobs/12/submit") == 12
    assert infer_entity_id("/api/me/offers/5/accept") == 5
    assert infer_entity_id("/api/interviews", {"application_id": 8}, {"entity_id": 31}) == 31
    assert infer_entity_id("/api/interviews", {"application_id": 8}, None) == 8
    assert infer_entity_id("/api/jobs", None, {"status": "ok", "data": {"id": 4}}) == 4


def test_build_action_reads_like_a_sentence():
    assert build_action("POST", "/api/jobs/12/submit", "jobs", 12) == "Submitted job #12 for approval"
    assert build_action("POST", "/api/approvals/12/reject", "jobs", 12) == "Rejected job #12"
    assert (
        build_action("POST", "/api/applications/3/move-stage", "applications", 3, {"status": "offer_letter_sent"})
        == "Moved application #3 to offer letter sent"
    )
    assert (
        build_action("POST", "/api/applications/3/final-decision", "applications", 3, {"decision": "hired"})
        == "Set final decision to hired for application #3"
    )
    assert (
        build_action("POST", "/api/interviews", "interviews", 9, {"application_id": 3})
        == "Scheduled interview for application #3"
    )
    assert build_action("PATCH", "/api/jobs/12", "jobs", 12) == "Updated job #12"


def test_sanitize_redacts_and_truncates():
    payload = {
        "token": "secret",
        "notes": "x" * 20,
        "items": list(range(25)),
        "nested": {"a": {"b": {"c": {"d": 1}}}},
    }
    clean = sanitize_for_audit(payload, max_length=10)
    assert clean["token"] == "[redacted]"
    assert clean["notes"] == "xxxxxxxxxx...[truncated]"
    assert clean["items"][-1] == "[+5 more]"
    assert len(clean["items"]) == 21
    assert clean["nested"]["a"]["b"] == {"c": "[truncated]"}


def _entry(company_id, entity_type, entity_id, action):
    return AuditLog(
        company_id=company_id,
        method="POST",
        path=f"/api/{entity_type}/{entity_id}",
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        status_code=200,
    )


async def test_audit_trail_is_company_scoped_and_newest_first(db_session, seed, tenant):
    other_company = await seed.company("Globex")
    await seed._add(_entry(tenant.company_id, "jobs", 1, "Created job #1"))
    await seed._add(_entry(tenant.company_id, "applications", 7, "Applied to job #1"))
    await seed._add(_entry(tenant.company_id, "jobs", 1, "Published job #1"))
    await seed._add(_entry(other_company, "jobs", 2, "Created job #2"))

    rows = await list_audit_trail(db_session, company_id=tenant.company_id)
    assert [row.action for row in rows] == ["Published job #1", "Applied to job #1", "Created job #1"]

    rows = await list_audit_trail(db_session, company_id=tenant.company_id, entity_type="jobs", entity_id=1)
    assert [row.action for row in rows] == ["Published job #1", "Created job #1"]

    rows = await list_audit_trail(db_session, company_id=tenant.company_id, entity_type="jobs", entity_id=2)
    assert rows == []
    assert [row.action for row in await list_audit_trail(db_session, company_id=other_company)] == ["Created job #2"]
