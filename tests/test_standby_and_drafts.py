"""
Tests for standby logs and work-performed drafts.

Covers:
  - Standby: reason required, one active log per job, end computes duration
  - Open standby blocks completion and End Day
  - Drafts: save / load / replace / discard, keyed per job + operator
  - Draft commit turns items into entries and clears the draft
  - Draft commit keeps the draft when prerequisites are not met
"""

import pytest

from fieldops.models import db
from fieldops.models.worklog import StandbyLog, WorkDraft, WorkPerformedEntry

pytestmark = pytest.mark.integration

DRAFT_ITEMS = [
    {
        "item_name": "Core holes",
        "quantity": 4,
        "details_kind": "hole",
        "details": {"holes": [{"quantity": 4, "diameter_in": 6, "depth_in": 12}]},
    },
    {"item_name": "Haul-off", "quantity": 1, "details_kind": "general", "details": {"duration_hours": 1.5}},
]


# ── Standby ──────────────────────────────────────────────────────────────────


def test_standby_requires_reason(client, started_job, operator_headers):
    res = client.post(f"/api/v1/jobs/{started_job.id}/standby/start", json={}, headers=operator_headers)

    assert res.status_code == 422
    assert res.get_json()["details"] == {"reason": "required"}


def test_standby_start_and_end(client, started_job, operator_headers):
    res = client.post(
        f"/api/v1/jobs/{started_job.id}/standby/start",
        json={"reason": "Waiting on electrician", "client_name": "Acme"},
        headers=operator_headers,
    )
    assert res.status_code == 201
    assert res.get_json()["status"] == "active"

    res = client.post(f"/api/v1/jobs/{started_job.id}/standby/end", json={"notes": "Power off"}, headers=operator_headers)
    assert res.status_code == 200
    log = res.get_json()
    assert log["status"] == "completed"
    assert log["ended_at"] is not None
    assert log["duration_hours"] is not None
    assert log["notes"] == "Power off"


def test_only_one_active_standby(client, started_job, operator_headers):
    url = f"/api/v1/jobs/{started_job.id}/standby/start"
    assert client.post(url, json={"reason": "Rain"}, headers=operator_headers).status_code == 201

    res = client.post(url, json={"reason": "Still raining"}, headers=operator_headers)

    assert res.status_code == 409
    assert res.get_json()["code"] == "ERR_CONFLICT_DUPLICATE"
    assert res.get_json()["job_order_id"] == started_job.id
    assert StandbyLog.query.filter_by(job_order_id=started_job.id).count() == 1


def test_end_without_active_standby(client, started_job, operator_headers):
    res = client.post(f"/api/v1/jobs/{started_job.id}/standby/end", json={}, headers=operator_headers)

    assert res.status_code == 422
    assert res.get_json()["details"] == {"standby": "none_active"}


def test_active_standby_blocks_completion(client, ready_job, operator_headers, complete_payload):
    client.post(f"/api/v1/jobs/{ready_job.id}/standby/start", json={"reason": "Inspector"}, headers=operator_headers)

    workflow = client.get(f"/api/v1/jobs/{ready_job.id}/workflow", headers=operator_headers).get_json()
    assert workflow["next_step"] == "standby"

    res = client.post(f"/api/v1/jobs/{ready_job.id}/complete", json=complete_payload, headers=operator_headers)
    assert res.status_code == 422
    assert "standby" in res.get_json()["details"]["blocked_by"]

    client.post(f"/api/v1/jobs/{ready_job.id}/standby/end", json={}, headers=operator_headers)
    res = client.post(f"/api/v1/jobs/{ready_job.id}/complete", json=complete_payload, headers=operator_headers)
    assert res.status_code == 200


def test_standby_listing(client, started_job, operator_headers):
    client.post(f"/api/v1/jobs/{started_job.id}/standby/start", json={"reason": "Rain"}, headers=operator_headers)
    client.post(f"/api/v1/jobs/{started_job.id}/standby/end", json={}, headers=operator_headers)
    client.post(f"/api/v1/jobs/{started_job.id}/standby/start", json={"reason": "Lunch truck"}, headers=operator_headers)

    res = client.get(f"/api/v1/jobs/{started_job.id}/standby", headers=operator_headers)

    assert res.get_json()["total"] == 2
    assert [log["status"] for log in res.get_json()["items"]] == ["completed", "active"]


# ── Drafts ───────────────────────────────────────────────────────────────────


def _draft_url(job):
    return f"/api/v1/jobs/{job.id}/work-performed/draft"


def test_empty_draft(client, started_job, operator_headers):
    res = client.get(_draft_url(started_job), headers=operator_headers)

    assert res.status_code == 200
    assert res.get_json()["items"] == []


def test_save_and_replace_draft(client, started_job, operator_headers):
    client.put(_draft_url(started_job), json={"items": DRAFT_ITEMS, "notes": "half done"}, headers=operator_headers)
    res = client.get(_draft_url(started_job), headers=operator_headers)
    assert len(res.get_json()["items"]) == 2
    assert res.get_json()["notes"] == "half done"

    client.put(_draft_url(started_job), json={"items": DRAFT_ITEMS[:1]}, headers=operator_headers)
    res = client.get(_draft_url(started_job), headers=operator_headers)
    assert len(res.get_json()["items"]) == 1
    assert WorkDraft.query.filter_by(job_order_id=started_job.id).count() == 1


def test_drafts_are_per_operator(client, started_job, operator_headers, admin_headers):
    client.put(_draft_url(started_job), json={"items": DRAFT_ITEMS}, headers=operator_headers)

    res = client.get(_draft_url(started_job), headers=admin_headers)

    assert res.get_json()["items"] == []


def test_discard_draft(client, started_job, operator_headers):
    client.put(_draft_url(started_job), json={"items": DRAFT_ITEMS}, headers=operator_headers)

    res = client.delete(_draft_url(started_job), headers=operator_headers)

    assert res.status_code == 204
    assert WorkDraft.query.count() == 0


def test_draft_items_must_be_list(client, started_job, operator_headers):
    res = client.put(_draft_url(started_job), json={"items": {"item_name": "x"}}, headers=operator_headers)

    assert res.status_code == 422


def test_commit_draft(client, started_job, operator_headers, silica_payload):
    client.post(f"/api/v1/jobs/{started_job.id}/silica-plan", json=silica_payload, headers=operator_headers)
    client.put(_draft_url(started_job), json={"items": DRAFT_ITEMS}, headers=operator_headers)

    res = client.post(f"{_draft_url(started_job)}/commit", json={}, headers=operator_headers)

    assert res.status_code == 201
    assert res.get_json()["total"] == 2
    assert WorkPerformedEntry.query.filter_by(job_order_id=started_job.id).count() == 2
    assert WorkDraft.query.count() == 0


def test_commit_draft_kept_when_blocked(client, started_job, operator_headers):
    client.put(_draft_url(started_job), json={"items": DRAFT_ITEMS}, headers=operator_headers)

    res = client.post(f"{_draft_url(started_job)}/commit", json={}, headers=operator_headers)

    assert res.status_code == 422
    db.session.expire_all()
    assert WorkDraft.query.count() == 1
    assert WorkPerformedEntry.query.count() == 0


def test_commit_empty_draft(client, started_job, operator_headers):
    res = client.post(f"{_draft_url(started_job)}/commit", json={}, headers=operator_headers)

    assert res.status_code == 422
    assert res.get_json()["details"] == {"draft": "empty"}
