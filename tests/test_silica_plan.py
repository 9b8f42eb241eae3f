"""
Tests for the silica exposure plan and the one-time-submission guard.

Covers:
  - Submit → 201 with the plan and its persisted PDF
  - Second submit → 409 ALREADY_SUBMITTED with the terminal view and next step
  - The unique constraint still answers 409 when the existence check is raced
  - Check endpoint before and after submission
  - Vocabulary validation (work types, location, cutting time, APF 10, water)
  - Submission guard existence query
  - Operators cannot submit for jobs that are not theirs
"""

import pytest

from fieldops.models import db
from fieldops.models.silica import SilicaExposurePlan
from fieldops.services import submission_guard

pytestmark = pytest.mark.integration


def _url(job):
    return f"/api/v1/jobs/{job.id}/silica-plan"


# ── Submission ───────────────────────────────────────────────────────────────


def test_submit_creates_plan_and_document(client, started_job, operator_headers, silica_payload):
    res = client.post(_url(started_job), json=silica_payload, headers=operator_headers)

    assert res.status_code == 201
    data = res.get_json()
    assert data["plan"]["job_order_id"] == started_job.id
    assert data["plan"]["work_types"] == ["Core Drilling", "Wall Sawing or Wire Sawing"]
    assert data["document"]["kind"] == "silica_plan"
    assert data["document_error"] is None


def test_second_submit_returns_already_submitted(client, started_job, operator_headers, silica_payload):
    first = client.post(_url(started_job), json=silica_payload, headers=operator_headers)
    assert first.status_code == 201

    changed = dict(silica_payload, employee_name="Someone Else")
    res = client.post(_url(started_job), json=changed, headers=operator_headers)

    assert res.status_code == 409
    body = res.get_json()
    assert body["code"] == "ALREADY_SUBMITTED"
    assert body["view"] == "already_submitted"
    assert body["next_step"] == "work_performed"
    assert SilicaExposurePlan.query.filter_by(job_order_id=started_job.id).count() == 1
    plan = SilicaExposurePlan.query.filter_by(job_order_id=started_job.id).one()
    assert plan.employee_name == "Dana Cutter"


def test_unique_constraint_catches_concurrent_submit(
    client, started_job, operator_headers, silica_payload, monkeypatch
):
    first = client.post(_url(started_job), json=silica_payload, headers=operator_headers)
    assert first.status_code == 201

    # A racing request that checked before the first one committed
    monkeypatch.setattr(submission_guard, "exists", lambda job_id, kind: False)
    res = client.post(_url(started_job), json=silica_payload, headers=operator_headers)

    assert res.status_code == 409
    assert res.get_json()["code"] == "ALREADY_SUBMITTED"
    assert res.get_json()["view"] == "already_submitted"
    db.session.expire_all()
    assert SilicaExposurePlan.query.filter_by(job_order_id=started_job.id).count() == 1


def test_check_before_and_after(client, started_job, operator_headers, silica_payload):
    res = client.get(f"{_url(started_job)}/check", headers=operator_headers)
    assert res.get_json() == {
        "job_id": started_job.id,
        "exists": False,
        "view": "form",
        "next_step": "silica_plan",
    }

    client.post(_url(started_job), json=silica_payload, headers=operator_headers)

    res = client.get(f"{_url(started_job)}/check", headers=operator_headers)
    data = res.get_json()
    assert data["exists"] is True
    assert data["view"] == "already_submitted"
    assert data["next_step"] == "work_performed"


def test_get_plan(client, started_job, operator_headers, silica_payload):
    res = client.get(_url(started_job), headers=operator_headers)
    assert res.status_code == 404

    client.post(_url(started_job), json=silica_payload, headers=operator_headers)

    res = client.get(_url(started_job), headers=operator_headers)
    assert res.status_code == 200
    assert res.get_json()["apf10_required"] == "No"


def test_submission_guard_exists(started_job, client, operator_headers, silica_payload):
    assert submission_guard.exists(started_job.id, "silica_plan") is False
    client.post(_url(started_job), json=silica_payload, headers=operator_headers)
    assert submission_guard.exists(started_job.id, "silica_plan") is True


def test_submission_guard_unknown_kind():
    with pytest.raises(ValueError):
        submission_guard.exists(1, "invoice")


# ── Validation ───────────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    "field,value,expected",
    [
        ("work_types", ["Sandblasting"], "invalid"),
        ("work_types", [], "required"),
        ("work_location", "underground", "invalid"),
        ("cutting_time", "About an hour", "invalid"),
        ("apf10_required", "Maybe", "invalid"),
        ("water_delivery_integrated", "yes", "required"),
        ("signature", "", "required"),
        ("signature_date", None, "required"),
        ("employee_name", "  ", "required"),
        ("employee_name", 42, "invalid"),
        ("work_location", ["indoor"], "invalid"),
        ("signature", {"strokes": []}, "invalid"),
        ("employee_phone", 5551234, "invalid"),
    ],
)
def test_invalid_answers_rejected(client, started_job, operator_headers, silica_payload, field, value, expected):
    payload = dict(silica_payload, **{field: value})
    res = client.post(_url(started_job), json=payload, headers=operator_headers)

    assert res.status_code == 422
    assert res.get_json()["details"][field] == expected
    assert submission_guard.exists(started_job.id, "silica_plan") is False


def test_location_is_case_insensitive(client, started_job, operator_headers, silica_payload):
    payload = dict(silica_payload, work_location="Outdoor")
    res = client.post(_url(started_job), json=payload, headers=operator_headers)

    assert res.status_code == 201
    assert res.get_json()["plan"]["work_location"] == "outdoor"


def test_completed_job_rejects_first_submission(client, admin_headers, operator, make_job, silica_payload):
    job = make_job(operator=operator, status="completed")

    res = client.post(_url(job), json=silica_payload, headers=admin_headers)

    assert res.status_code == 422


def test_operator_cannot_submit_for_other_job(client, operator, operator_headers, make_job, silica_payload):
    other = make_job()
    res = client.post(_url(other), json=silica_payload, headers=operator_headers)

    assert res.status_code == 404
    db.session.expire_all()
    assert SilicaExposurePlan.query.count() == 0
