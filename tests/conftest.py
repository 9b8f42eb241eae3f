"""
Shared pytest fixtures for the Field Operations Platform test suite.

Provides:
    - app: Flask application (session-scoped), documents stored under a tmp dir
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - admin_headers / operator_headers: bearer tokens for each role
    - operator: OperatorProfile whose user_id matches operator_headers
    - make_job: JobOrder factory
    - silica_payload / complete_payload: valid request bodies
"""

import io
from datetime import date
from decimal import Decimal

import pytest

from fieldops import create_app
from fieldops.models import db as _db
from fieldops.models.job import JobOrder
from fieldops.models.operator import OperatorProfile

ADMIN_USER = "admin-1"
OPERATOR_USER = "op-1"

# Smallest valid PNG (1x1 transparent pixel)
PNG_BYTES = (
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x06\x00\x00\x00"
    b"\x1f\x15\xc4\x89\x00\x00\x00\rIDATx\x9cc\xf8\x0f\x00\x00\x01\x01\x00\x05\x18\xd8N\x00"
    b"\x00\x00\x00IEND\xaeB`\x82"
)


def auth_headers(user_id: str, role: str) -> dict:
    """Open a real session and return its Authorization header."""
    from fieldops.services.session_service import open_session

    token = open_session(user_id, role, issued_by="pytest")["access_token"]
    return {"Authorization": f"Bearer {token}"}


def png_upload(name: str = "photo.png"):
    return (io.BytesIO(PNG_BYTES), name, "image/png")


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app(tmp_path_factory):
    """Create the Flask application once per test session."""
    application = create_app("testing")
    application.config["DOCUMENT_STORAGE_DIR"] = str(tmp_path_factory.mktemp("documents"))
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Sessions ─────────────────────────────────────────────────────────────


@pytest.fixture()
def admin_headers():
    return auth_headers(ADMIN_USER, "admin")


@pytest.fixture()
def operator_headers():
    return auth_headers(OPERATOR_USER, "operator")


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def operator():
    """Operator profile bound to the operator_headers session."""
    profile = OperatorProfile(
        user_id=OPERATOR_USER,
        full_name="Dana Cutter",
        email="dana@example.com",
        hourly_rate=Decimal("50.00"),
        skill_levels={},
        equipment_qualifications={},
    )
    _db.session.add(profile)
    _db.session.commit()
    return profile


@pytest.fixture()
def make_job():
    """Factory: ``make_job(operator=..., status=..., **fields)`` → JobOrder."""
    counter = {"n": 0}

    def _make(operator=None, status=None, **fields):
        counter["n"] += 1
        values = {
            "job_number": f"T-{counter['n']:04d}",
            "customer_name": "Acme Builders",
            "customer_email": "site@acme.example",
            "location": "100 Main St",
            "scheduled_date": date(2026, 3, 2),
            "quoted_amount": Decimal("1000.00"),
        }
        values.update(fields)
        job = JobOrder(**values)
        if operator is not None:
            job.assigned_operator_id = operator.id
            job.status = status or "scheduled"
        else:
            job.status = status or "unassigned"
        _db.session.add(job)
        _db.session.commit()
        return job

    return _make


@pytest.fixture()
def silica_payload():
    return {
        "employee_name": "Dana Cutter",
        "employee_phone": "555-0100",
        "employees_on_job": ["Dana Cutter", "Lee Helper"],
        "work_types": ["Core Drilling", "Wall Sawing or Wire Sawing"],
        "water_delivery_integrated": True,
        "work_location": "indoor",
        "cutting_time": "Less than 4 Hours",
        "apf10_required": "No",
        "other_safety_concerns": "Overhead rebar",
        "signature": "data:image/png;base64,AAAA",
        "signature_date": "2026-03-02",
    }


@pytest.fixture()
def complete_payload():
    return {
        "signature": "data:image/png;base64,BBBB",
        "signer_name": "Pat Foreman",
        "overall_rating": 9,
        "cleanliness_rating": 8,
        "communication_rating": 10,
        "feedback_comments": "Clean work",
    }


@pytest.fixture()
def started_job(client, operator, operator_headers, make_job):
    """A scheduled job the operator has started on site (in_progress)."""
    job = make_job(operator=operator)
    res = client.post(f"/api/v1/jobs/{job.id}/start", json={}, headers=operator_headers)
    assert res.status_code == 200, res.get_json()
    return job


@pytest.fixture()
def ready_job(client, started_job, operator_headers, silica_payload):
    """Started job with the silica plan on file and one cut recorded."""
    job = started_job
    res = client.post(f"/api/v1/jobs/{job.id}/silica-plan", json=silica_payload, headers=operator_headers)
    assert res.status_code == 201, res.get_json()
    res = client.post(
        f"/api/v1/jobs/{job.id}/work-performed",
        json={"items": [{
            "item_name": "Wall saw opening",
            "quantity": 1,
            "details_kind": "cut",
            "details": {"cuts": [{"linear_feet": 24, "depth_in": 8, "cut_type": "wall"}]},
        }]},
        headers=operator_headers,
    )
    assert res.status_code == 201, res.get_json()
    return job


@pytest.fixture()
def make_headers():
    """Factory: ``make_headers(user_id, role)`` → Authorization header dict."""
    return auth_headers


@pytest.fixture()
def photo():
    """Factory for a multipart PNG upload tuple."""
    return png_upload
