"""
Tests for operator profiles and certifications.

Covers:
  - Admin-only create / edit / deactivate, operators read their own profile
  - hourly_rate serialised for admins only
  - Editor tabs: skills clamped to [1, 10], equipment shorthand, certifications tab refused
  - Certifications: validation, multipart document upload, download, removal;
    a failed save leaves no stored document behind
  - Deactivated operators cannot receive new assignments
"""

import pytest
from sqlalchemy.exc import OperationalError

from fieldops.models import db
from fieldops.models.operator import OperatorCertification, clamp_proficiency
from fieldops.services import storage_service

pytestmark = pytest.mark.integration

BASE = "/api/v1/operators"


@pytest.fixture()
def new_profile(client, admin_headers):
    res = client.post(
        BASE,
        json={
            "user_id": "op-2",
            "full_name": "Sam Driller",
            "phone": "555-0111",
            "hire_date": "2024-04-01",
            "hourly_rate": "42.50",
            "skill_levels": {"core_drilling": 14, "wall_sawing": 0, "slab_sawing": 6.6},
            "equipment_qualifications": {
                "wall_saw": 7,
                "core_rig": {"qualified": False, "proficiency": 3},
            },
        },
        headers=admin_headers,
    )
    assert res.status_code == 201, res.get_json()
    return res.get_json()


# ── Profiles ─────────────────────────────────────────────────────────────────


def test_create_profile(new_profile):
    assert new_profile["full_name"] == "Sam Driller"
    assert new_profile["hire_date"] == "2024-04-01"
    assert new_profile["hourly_rate"] == "42.50"
    assert new_profile["skill_levels"] == {"core_drilling": 10, "wall_sawing": 1, "slab_sawing": 7}
    assert new_profile["equipment_qualifications"] == {
        "wall_saw": {"qualified": True, "proficiency": 7},
        "core_rig": {"qualified": False, "proficiency": 3},
    }
    assert new_profile["metrics"]["jobs_completed"] == 0
    assert new_profile["metrics"]["average_production_rate"] is None


def test_create_requires_user_and_name(client, admin_headers):
    res = client.post(BASE, json={"full_name": "No User"}, headers=admin_headers)
    assert res.status_code == 422
    assert res.get_json()["details"] == {"user_id": "required"}

    res = client.post(BASE, json={"user_id": "op-9"}, headers=admin_headers)
    assert res.status_code == 422
    assert res.get_json()["details"] == {"full_name": "required"}


def test_duplicate_user_id(client, admin_headers, operator):
    res = client.post(BASE, json={"user_id": "op-1", "full_name": "Again"}, headers=admin_headers)

    assert res.status_code == 422
    assert res.get_json()["details"] == {"user_id": "duplicate"}


def test_operator_reads_own_profile_without_rate(client, operator, operator_headers):
    res = client.get(f"{BASE}/{operator.id}", headers=operator_headers)
    assert res.status_code == 200
    assert "hourly_rate" not in res.get_json()

    res = client.get(f"{BASE}/me", headers=operator_headers)
    assert res.status_code == 200
    assert res.get_json()["id"] == operator.id


def test_admin_sees_rate(client, operator, admin_headers):
    res = client.get(f"{BASE}/{operator.id}", headers=admin_headers)

    assert res.get_json()["hourly_rate"] == "50.00"


def test_me_without_profile(client, admin_headers):
    assert client.get(f"{BASE}/me", headers=admin_headers).status_code == 404


def test_operator_cannot_see_other_profiles(client, operator, operator_headers, new_profile):
    res = client.get(f"{BASE}/{new_profile['id']}", headers=operator_headers)

    assert res.status_code == 404
    assert client.get(BASE, headers=operator_headers).status_code == 403


def test_operator_cannot_edit(client, operator, operator_headers):
    res = client.patch(f"{BASE}/{operator.id}", json={"full_name": "Dana C."}, headers=operator_headers)

    assert res.status_code == 403
    assert res.get_json()["required_role"] == "admin"


def test_list_active_only(client, admin_headers, operator, new_profile):
    client.delete(f"{BASE}/{new_profile['id']}", headers=admin_headers)

    everyone = client.get(BASE, headers=admin_headers).get_json()
    active = client.get(f"{BASE}?active=1", headers=admin_headers).get_json()

    assert everyone["total"] == 2
    assert [p["user_id"] for p in active["items"]] == ["op-1"]


# ── Editor tabs ──────────────────────────────────────────────────────────────


def test_basic_tab_updates_fields(client, admin_headers, operator):
    res = client.patch(
        f"{BASE}/{operator.id}?tab=basic",
        json={"full_name": "Dana Cutter-Ray", "hourly_rate": "55.25"},
        headers=admin_headers,
    )

    assert res.status_code == 200
    assert res.get_json()["full_name"] == "Dana Cutter-Ray"
    assert res.get_json()["hourly_rate"] == "55.25"


def test_skills_tab_ignores_basic_fields(client, admin_headers, operator):
    res = client.patch(
        f"{BASE}/{operator.id}?tab=skills",
        json={"full_name": "", "skill_levels": {"wire_sawing": 11}},
        headers=admin_headers,
    )

    assert res.status_code == 200
    assert res.get_json()["full_name"] == "Dana Cutter"
    assert res.get_json()["skill_levels"] == {"wire_sawing": 10}


def test_equipment_tab_shorthand(client, admin_headers, operator):
    res = client.patch(
        f"{BASE}/{operator.id}?tab=equipment",
        json={"equipment_qualifications": {"hand_saw": "4"}},
        headers=admin_headers,
    )

    assert res.get_json()["equipment_qualifications"] == {"hand_saw": {"qualified": True, "proficiency": 4}}


def test_certifications_tab_refused(client, admin_headers, operator):
    res = client.patch(f"{BASE}/{operator.id}?tab=certifications", json={}, headers=admin_headers)

    assert res.status_code == 422
    assert res.get_json()["details"] == {"tab": "certifications"}


def test_unknown_tab(client, admin_headers, operator):
    res = client.patch(f"{BASE}/{operator.id}?tab=payroll", json={}, headers=admin_headers)

    assert res.status_code == 422
    assert res.get_json()["details"] == {"tab": "invalid"}


def test_skill_map_must_be_object(client, admin_headers, operator):
    res = client.patch(
        f"{BASE}/{operator.id}?tab=skills", json={"skill_levels": ["core_drilling"]}, headers=admin_headers
    )

    assert res.status_code == 422


@pytest.mark.parametrize(
    "raw,expected",
    [(0, 1), (1, 1), (5, 5), (10, 10), (99, 10), (-3, 1), ("8", 8), (4.4, 4), (None, 1), ("high", 1)],
)
def test_clamp_proficiency(raw, expected):
    assert clamp_proficiency(raw) == expected


# ── Certifications ───────────────────────────────────────────────────────────


def _certs_url(operator_id):
    return f"{BASE}/{operator_id}/certifications"


def test_certification_validation(client, admin_headers, operator):
    res = client.post(_certs_url(operator.id), json={}, headers=admin_headers)
    assert res.status_code == 422
    assert res.get_json()["details"] == {"name": "required", "issued_date": "required"}

    res = client.post(
        _certs_url(operator.id),
        json={"name": "OSHA 10", "issued_date": "2026-01-10", "expiry_date": "2025-01-01"},
        headers=admin_headers,
    )
    assert res.status_code == 422
    assert res.get_json()["details"] == {"expiry_date": "before_issued_date"}


def test_add_certification_json(client, admin_headers, operator):
    res = client.post(
        _certs_url(operator.id),
        json={"name": "OSHA 10", "issued_date": "2026-01-10", "expiry_date": "2031-01-10"},
        headers=admin_headers,
    )

    assert res.status_code == 201
    assert res.get_json()["document_key"] is None
    profile = client.get(f"{BASE}/{operator.id}", headers=admin_headers).get_json()
    assert [c["name"] for c in profile["certifications"]] == ["OSHA 10"]


def test_certification_document_roundtrip(client, admin_headers, operator_headers, operator, photo):
    upload = photo("card.png")
    expected = upload[0].getvalue()

    res = client.post(
        _certs_url(operator.id),
        data={"name": "Silica Competent Person", "issued_date": "2026-02-01", "document": upload},
        headers=admin_headers,
        content_type="multipart/form-data",
    )
    assert res.status_code == 201, res.get_json()
    cert = res.get_json()
    assert cert["document_filename"] == "card.png"
    assert cert["document_key"].startswith(f"certifications/{operator.id}/")

    res = client.get(f"{_certs_url(operator.id)}/{cert['id']}/document", headers=operator_headers)
    assert res.status_code == 200
    assert res.mimetype == "image/png"
    assert res.data == expected


def test_remove_certification(client, admin_headers, operator, photo):
    cert = client.post(
        _certs_url(operator.id),
        data={"name": "First Aid", "issued_date": "2026-02-01", "document": photo()},
        headers=admin_headers,
        content_type="multipart/form-data",
    ).get_json()

    res = client.delete(f"{_certs_url(operator.id)}/{cert['id']}", headers=admin_headers)

    assert res.status_code == 204
    db.session.expire_all()
    assert OperatorCertification.query.count() == 0
    assert client.get(f"{_certs_url(operator.id)}/{cert['id']}/document", headers=admin_headers).status_code == 404
    assert client.delete(f"{_certs_url(operator.id)}/{cert['id']}", headers=admin_headers).status_code == 404


def test_failed_certification_save_discards_document(client, admin_headers, operator, photo, monkeypatch):
    stored = []
    real_put = storage_service.put

    def recording_put(content, filename, folder="general"):
        key = real_put(content, filename, folder=folder)
        stored.append(key)
        return key

    def failing_commit():
        raise OperationalError("INSERT INTO operator_certifications", {}, Exception("database is locked"))

    monkeypatch.setattr(storage_service, "put", recording_put)
    monkeypatch.setattr(db.session, "commit", failing_commit)

    res = client.post(
        _certs_url(operator.id),
        data={"name": "First Aid", "issued_date": "2026-02-01", "document": photo()},
        headers=admin_headers,
        content_type="multipart/form-data",
    )

    assert res.status_code == 500
    assert len(stored) == 1
    assert storage_service.exists(stored[0]) is False
    monkeypatch.undo()
    assert OperatorCertification.query.count() == 0


def test_operator_cannot_add_certification(client, operator_headers, operator):
    res = client.post(
        _certs_url(operator.id), json={"name": "OSHA 10", "issued_date": "2026-01-10"}, headers=operator_headers
    )

    assert res.status_code == 403


# ── Deactivation ─────────────────────────────────────────────────────────────


def test_deactivated_operator_cannot_be_assigned(client, admin_headers, operator, make_job):
    job = make_job()

    res = client.delete(f"{BASE}/{operator.id}", headers=admin_headers)
    assert res.status_code == 200
    assert res.get_json()["is_active"] is False

    res = client.post(f"/api/v1/jobs/{job.id}/assign", json={"operator_id": operator.id}, headers=admin_headers)
    assert res.status_code == 422
    assert res.get_json()["details"] == {"operator_id": "inactive"}


def test_deactivation_keeps_profile(client, admin_headers, operator):
    client.delete(f"{BASE}/{operator.id}", headers=admin_headers)

    res = client.get(f"{BASE}/{operator.id}", headers=admin_headers)

    assert res.status_code == 200
    assert res.get_json()["is_active"] is False
