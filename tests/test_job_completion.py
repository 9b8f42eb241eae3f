"""
Tests for the on-site flow from start of work to customer sign-off.

Covers:
  - Start work: arrival stamp, status → in_progress, guards
  - Work performed: silica plan first, append-only, read-only after completion
  - Workflow endpoint reflects recorded steps
  - Completion with signature + ratings, and with the contact not on site
  - Ratings required and range-checked when the customer signs
  - Status never regresses; completed jobs reject further field actions
  - Operator metrics and running rating means after completion
  - End Day on a multi-day job keeps it in progress
"""

from decimal import Decimal

import pytest

from fieldops.core.exceptions import ValidationError
from fieldops.models import db
from fieldops.models.job import DailyJobLog
from fieldops.models.worklog import WorkDraft
from fieldops.services.job_service import advance_status

pytestmark = pytest.mark.integration

CUT_ITEM = {
    "item_name": "Slab cut",
    "quantity": 1,
    "details_kind": "cut",
    "details": {"cuts": [{"linear_feet": 10, "depth_in": 6, "cut_type": "slab"}]},
}


def _workflow(client, job, headers):
    return client.get(f"/api/v1/jobs/{job.id}/workflow", headers=headers).get_json()


# ── Start work ───────────────────────────────────────────────────────────────


def test_start_work_sets_arrival_and_status(client, operator, operator_headers, make_job):
    job = make_job(operator=operator)

    res = client.post(
        f"/api/v1/jobs/{job.id}/start",
        json={"latitude": 40.7, "longitude": -74.0},
        headers=operator_headers,
    )

    assert res.status_code == 200
    data = res.get_json()
    assert data["status"] == "in_progress"
    assert data["arrival_time"] is not None
    assert data["work_started_at"] is not None


def test_start_work_twice_rejected(client, started_job, operator_headers):
    res = client.post(f"/api/v1/jobs/{started_job.id}/start", json={}, headers=operator_headers)

    assert res.status_code == 422
    assert res.get_json()["details"] == {"work_started_at": "set"}


def test_start_unassigned_job_rejected(client, admin_headers, make_job):
    job = make_job()

    res = client.post(f"/api/v1/jobs/{job.id}/start", json={}, headers=admin_headers)

    assert res.status_code == 422
    assert res.get_json()["details"] == {"status": "unassigned"}


def test_bad_coordinates_do_not_block_start(client, operator, operator_headers, make_job):
    job = make_job(operator=operator)

    res = client.post(
        f"/api/v1/jobs/{job.id}/start",
        json={"latitude": 123.0, "longitude": "east"},
        headers=operator_headers,
    )

    assert res.status_code == 200
    db.session.expire_all()
    assert job.work_start_latitude is None


# ── Work performed ───────────────────────────────────────────────────────────


def test_work_requires_silica_plan(client, started_job, operator_headers):
    res = client.post(
        f"/api/v1/jobs/{started_job.id}/work-performed", json={"items": [CUT_ITEM]}, headers=operator_headers
    )

    assert res.status_code == 422
    assert res.get_json()["details"]["blocked_by"] == ["silica_plan"]


def test_work_requires_started_job(client, operator, operator_headers, make_job):
    job = make_job(operator=operator)

    res = client.post(f"/api/v1/jobs/{job.id}/work-performed", json={"items": [CUT_ITEM]}, headers=operator_headers)

    assert res.status_code == 422
    assert res.get_json()["details"] == {"status": "scheduled"}


def test_work_entries_append(client, ready_job, operator_headers):
    res = client.post(
        f"/api/v1/jobs/{ready_job.id}/work-performed", json={"items": [CUT_ITEM, CUT_ITEM]}, headers=operator_headers
    )
    assert res.status_code == 201
    assert res.get_json()["total"] == 2

    res = client.get(f"/api/v1/jobs/{ready_job.id}/work-performed", headers=operator_headers)
    assert res.get_json()["total"] == 3


@pytest.mark.parametrize(
    "item,field",
    [
        ({"quantity": 1}, "item_name"),
        ({"item_name": "x", "quantity": 0}, "quantity"),
        ({"item_name": "x", "details_kind": "blast"}, "details_kind"),
        ({"item_name": "x", "details_kind": "hole", "details": {"holes": []}}, "holes"),
        ({"item_name": "x", "details_kind": "cut", "details": {"cuts": [{"linear_feet": -3}]}}, "linear_feet"),
        ({"item_name": "x", "details_kind": "cut", "details": {"cuts": [{"linear_feet": "NaN"}]}}, "linear_feet"),
        ({"item_name": "x", "details_kind": "cut", "details": {"cuts": [{"linear_feet": "Infinity"}]}}, "linear_feet"),
        ({"item_name": "x", "details_kind": "hole", "details": {"holes": [{"quantity": 1, "depth_in": "1e400"}]}}, "depth_in"),
        ({"item_name": "x", "details_kind": "cut", "details": {"cuts": [{"linear_feet": 4, "cut_type": 5}]}}, "cut_type"),
        ({"item_name": "x", "details_kind": "general", "details": {"duration_hours": True}}, "duration_hours"),
        ({"item_name": 42}, "item_name"),
        ({"item_name": "x", "notes": ["first", "second"]}, "notes"),
    ],
)
def test_invalid_work_items(client, ready_job, operator_headers, item, field):
    res = client.post(f"/api/v1/jobs/{ready_job.id}/work-performed", json={"items": [item]}, headers=operator_headers)

    assert res.status_code == 422
    assert field in res.get_json()["details"]


def test_rejected_non_finite_cut_leaves_job_completable(
    client, ready_job, operator_headers, complete_payload, operator
):
    bad = dict(CUT_ITEM, details={"cuts": [{"linear_feet": "NaN", "depth_in": 6}]})
    res = client.post(f"/api/v1/jobs/{ready_job.id}/work-performed", json={"items": [bad]}, headers=operator_headers)
    assert res.status_code == 422

    res = client.post(f"/api/v1/jobs/{ready_job.id}/complete", json=complete_payload, headers=operator_headers)

    assert res.status_code == 200
    db.session.expire_all()
    assert operator.linear_feet_cut == Decimal("24.00")


def test_workflow_endpoint_after_work(client, ready_job, operator_headers):
    data = _workflow(client, ready_job, operator_headers)

    assert data["status"] == "in_progress"
    assert data["next_step"] == "signature"
    assert data["actions"]["complete_job"] is True
    assert data["actions"]["end_day"] is False


# ── Completion ───────────────────────────────────────────────────────────────


def test_complete_job_with_signature(client, ready_job, operator_headers, complete_payload):
    res = client.post(f"/api/v1/jobs/{ready_job.id}/complete", json=complete_payload, headers=operator_headers)

    assert res.status_code == 200
    data = res.get_json()
    assert data["job"]["status"] == "completed"
    assert data["job"]["completion_signer_name"] == "Pat Foreman"
    assert data["job"]["completion_signed_at"] is not None
    assert data["job"]["customer_overall_rating"] == 9
    assert data["job"]["work_started_at"] is None
    assert data["document"]["kind"] == "completion_agreement"
    assert data["document_error"] is None
    assert data["job"]["documents"]["completion_agreement"]["ref"] == data["document"]["storage_key"]


def test_complete_requires_ratings_when_signing(client, ready_job, operator_headers, complete_payload):
    payload = {k: v for k, v in complete_payload.items() if not k.endswith("_rating")}

    res = client.post(f"/api/v1/jobs/{ready_job.id}/complete", json=payload, headers=operator_headers)

    assert res.status_code == 422
    assert set(res.get_json()["details"]) == {"overall_rating", "cleanliness_rating", "communication_rating"}
    db.session.expire_all()
    assert ready_job.status == "in_progress"


def test_complete_rating_out_of_range(client, ready_job, operator_headers, complete_payload):
    payload = dict(complete_payload, cleanliness_rating=11)

    res = client.post(f"/api/v1/jobs/{ready_job.id}/complete", json=payload, headers=operator_headers)

    assert res.status_code == 422
    assert res.get_json()["details"] == {"cleanliness_rating": "out_of_range"}


def test_complete_requires_signature_and_signer(client, ready_job, operator_headers):
    res = client.post(f"/api/v1/jobs/{ready_job.id}/complete", json={}, headers=operator_headers)

    assert res.status_code == 422
    assert res.get_json()["details"] == {"signature": "required", "signer_name": "required"}


def test_complete_contact_not_on_site(client, ready_job, operator_headers, operator):
    res = client.post(
        f"/api/v1/jobs/{ready_job.id}/complete",
        json={"contact_not_on_site": True, "notes": "Gate code left with super"},
        headers=operator_headers,
    )

    assert res.status_code == 200
    job = res.get_json()["job"]
    assert job["status"] == "completed"
    assert job["contact_not_on_site"] is True
    assert job["completion_signed_at"] is None
    assert job["completed_at"] is not None
    assert job["customer_overall_rating"] is None

    db.session.expire_all()
    assert operator.jobs_completed == 1
    assert operator.total_ratings_received == 0


def test_complete_contact_flag_string_false_still_needs_signature(client, ready_job, operator_headers):
    res = client.post(
        f"/api/v1/jobs/{ready_job.id}/complete", json={"contact_not_on_site": "false"}, headers=operator_headers
    )

    assert res.status_code == 422
    assert res.get_json()["details"] == {"signature": "required", "signer_name": "required"}
    db.session.expire_all()
    assert ready_job.status == "in_progress"
    assert ready_job.contact_not_on_site is not True


@pytest.mark.parametrize("flag", ["0", "yes", 1, ["true"]])
def test_complete_contact_flag_must_be_boolean(client, ready_job, operator_headers, flag):
    res = client.post(
        f"/api/v1/jobs/{ready_job.id}/complete", json={"contact_not_on_site": flag}, headers=operator_headers
    )

    assert res.status_code == 422
    assert res.get_json()["details"] == {"contact_not_on_site": "invalid"}
    db.session.expire_all()
    assert ready_job.status == "in_progress"


def test_complete_blocked_before_work(client, started_job, operator_headers, silica_payload, complete_payload):
    client.post(f"/api/v1/jobs/{started_job.id}/silica-plan", json=silica_payload, headers=operator_headers)

    res = client.post(f"/api/v1/jobs/{started_job.id}/complete", json=complete_payload, headers=operator_headers)

    assert res.status_code == 422
    assert res.get_json()["details"]["blocked_by"] == ["work_performed"]


def test_operator_metrics_updated(client, ready_job, operator_headers, complete_payload, operator):
    client.post(f"/api/v1/jobs/{ready_job.id}/complete", json=complete_payload, headers=operator_headers)

    db.session.expire_all()
    assert operator.jobs_completed == 1
    assert operator.revenue_generated == Decimal("1000.00")
    assert operator.linear_feet_cut == Decimal("24.00")
    assert operator.avg_overall_rating == 9.0
    assert operator.avg_communication_rating == 10.0
    assert operator.total_ratings_received == 1


def test_draft_cleared_on_completion(client, ready_job, operator_headers, complete_payload):
    client.put(
        f"/api/v1/jobs/{ready_job.id}/work-performed/draft",
        json={"items": [CUT_ITEM]},
        headers=operator_headers,
    )
    assert WorkDraft.query.filter_by(job_order_id=ready_job.id).count() == 1

    client.post(f"/api/v1/jobs/{ready_job.id}/complete", json=complete_payload, headers=operator_headers)

    assert WorkDraft.query.filter_by(job_order_id=ready_job.id).count() == 0


# ── After completion ─────────────────────────────────────────────────────────


@pytest.fixture()
def completed_job(client, ready_job, operator_headers, complete_payload):
    res = client.post(f"/api/v1/jobs/{ready_job.id}/complete", json=complete_payload, headers=operator_headers)
    assert res.status_code == 200
    return ready_job


def test_completed_job_is_read_only(client, completed_job, operator_headers):
    res = client.post(
        f"/api/v1/jobs/{completed_job.id}/work-performed", json={"items": [CUT_ITEM]}, headers=operator_headers
    )
    assert res.status_code == 422
    assert res.get_json()["details"] == {"status": "completed"}

    res = client.get(f"/api/v1/jobs/{completed_job.id}/work-performed", headers=operator_headers)
    assert res.status_code == 200
    assert res.get_json()["total"] == 1


def test_completed_job_cannot_restart_or_complete_again(client, completed_job, operator_headers, complete_payload):
    assert client.post(
        f"/api/v1/jobs/{completed_job.id}/start", json={}, headers=operator_headers
    ).status_code == 422
    assert client.post(
        f"/api/v1/jobs/{completed_job.id}/complete", json=complete_payload, headers=operator_headers
    ).status_code == 422
    assert client.post(
        f"/api/v1/jobs/{completed_job.id}/standby/start", json={"reason": "Late"}, headers=operator_headers
    ).status_code == 422


def test_completed_workflow_is_locked(client, completed_job, operator_headers):
    data = _workflow(client, completed_job, operator_headers)

    assert data["next_step"] is None
    assert data["actions"] == {"complete_job": False, "end_day": False}


def test_status_never_regresses(completed_job):
    with pytest.raises(ValidationError) as exc_info:
        advance_status(completed_job, "in_progress")

    assert exc_info.value.details == {"status": "regression"}
    assert completed_job.status == "completed"


def test_advance_status_same_status_is_noop(make_job):
    job = make_job()
    advance_status(job, "unassigned")
    assert job.status == "unassigned"


# ── End Day ──────────────────────────────────────────────────────────────────


@pytest.fixture()
def multi_day_job(client, operator, operator_headers, make_job, silica_payload):
    job = make_job(operator=operator, estimated_days=2)
    client.post(f"/api/v1/jobs/{job.id}/start", json={}, headers=operator_headers)
    client.post(f"/api/v1/jobs/{job.id}/silica-plan", json=silica_payload, headers=operator_headers)
    client.post(f"/api/v1/jobs/{job.id}/work-performed", json={"items": [CUT_ITEM]}, headers=operator_headers)
    return job


def test_end_day_keeps_job_in_progress(client, multi_day_job, operator_headers):
    assert _workflow(client, multi_day_job, operator_headers)["actions"]["end_day"] is True

    res = client.post(
        f"/api/v1/jobs/{multi_day_job.id}/end-day",
        json={"notes": "Back tomorrow", "signer_name": "Pat Foreman"},
        headers=operator_headers,
    )

    assert res.status_code == 201
    log = res.get_json()
    assert log["job_order_id"] == multi_day_job.id
    assert log["work_summary"] == [{"item_name": "Slab cut", "quantity": "1.00"}]

    db.session.expire_all()
    assert multi_day_job.status == "in_progress"
    assert multi_day_job.is_multi_day is True
    assert multi_day_job.work_started_at is None
    assert DailyJobLog.query.filter_by(job_order_id=multi_day_job.id).count() == 1


def test_end_day_excludes_completion_same_day(client, multi_day_job, operator_headers, complete_payload):
    client.post(f"/api/v1/jobs/{multi_day_job.id}/end-day", json={}, headers=operator_headers)

    data = _workflow(client, multi_day_job, operator_headers)
    assert data["actions"] == {"complete_job": False, "end_day": False}

    res = client.post(f"/api/v1/jobs/{multi_day_job.id}/complete", json=complete_payload, headers=operator_headers)
    assert res.status_code == 422
    assert client.post(
        f"/api/v1/jobs/{multi_day_job.id}/end-day", json={}, headers=operator_headers
    ).status_code == 422


def test_end_day_unavailable_for_single_day_job(client, ready_job, operator_headers):
    res = client.post(f"/api/v1/jobs/{ready_job.id}/end-day", json={}, headers=operator_headers)

    assert res.status_code == 422
    assert res.get_json()["details"]["end_day"] == "unavailable"


def test_daily_logs_listing(client, multi_day_job, operator_headers):
    client.post(f"/api/v1/jobs/{multi_day_job.id}/end-day", json={}, headers=operator_headers)

    res = client.get(f"/api/v1/jobs/{multi_day_job.id}/daily-logs", headers=operator_headers)

    assert res.status_code == 200
    assert res.get_json()["total"] == 1
