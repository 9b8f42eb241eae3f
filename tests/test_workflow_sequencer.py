"""
Unit tests for the on-site step sequencer (``compute_workflow``).

compute_workflow is a pure function over StepFlags, so these tests need no
database rows; the autouse ``session`` fixture only provides the app context.

Covers:
  - Fresh job: silica plan is the next required step, signature locked
  - Silica on file: form replaced by the already-submitted view
  - Signature enterable only after silica + work + start, with no open standby
  - Open standby takes over next_step and blocks signature
  - Multi-day: End Day offered, mutually exclusive with completion on the same day
  - Completed job: everything locked, no next step
"""

from fieldops.services.workflow_service import STEP_ORDER, StepFlags, compute_workflow


def _blocked(state, step):
    return set(state.step(step).blocked_by)


def test_fresh_job_starts_with_silica_plan():
    state = compute_workflow(StepFlags(job_started=True))

    assert [s.step for s in state.steps] == list(STEP_ORDER)
    assert state.next_step == "silica_plan"
    assert state.step("silica_plan").enterable is True
    assert state.step("silica_plan").view == "form"
    assert state.step("work_performed").enterable is False
    assert _blocked(state, "work_performed") == {"silica_plan"}
    assert state.can_complete is False


def test_submitted_silica_plan_shows_terminal_view():
    state = compute_workflow(StepFlags(silica_submitted=True, job_started=True))

    silica = state.step("silica_plan")
    assert silica.complete is True
    assert silica.enterable is False
    assert silica.view == "already_submitted"
    assert state.next_step == "work_performed"
    assert state.step("work_performed").enterable is True


def test_signature_requires_silica_and_work():
    state = compute_workflow(StepFlags(silica_submitted=True, job_started=True))

    assert "work_performed" in _blocked(state, "signature")
    assert state.can_complete is False

    state = compute_workflow(StepFlags(silica_submitted=True, work_recorded=True, job_started=True))
    assert state.step("signature").enterable is True
    assert state.next_step == "signature"
    assert state.can_complete is True


def test_signature_requires_started_job():
    state = compute_workflow(StepFlags(silica_submitted=True, work_recorded=True, job_started=False))

    assert "not_started" in _blocked(state, "signature")
    assert state.can_complete is False


def test_active_standby_blocks_signature_and_becomes_next_step():
    state = compute_workflow(
        StepFlags(silica_submitted=True, work_recorded=True, job_started=True, standby_active=True)
    )

    assert state.next_step == "standby"
    assert state.step("standby").view == "active"
    assert "standby" in _blocked(state, "signature")
    assert state.can_complete is False


def test_standby_is_enterable_before_silica_plan():
    state = compute_workflow(StepFlags(job_started=True))

    assert state.step("standby").enterable is True
    assert state.next_step == "silica_plan"


def test_end_day_offered_only_for_multi_day_jobs():
    single = compute_workflow(StepFlags(silica_submitted=True, work_recorded=True, job_started=True))
    multi = compute_workflow(
        StepFlags(silica_submitted=True, work_recorded=True, job_started=True, multi_day=True)
    )

    assert single.can_end_day is False
    assert multi.can_end_day is True
    assert multi.can_complete is True


def test_end_day_and_completion_are_exclusive_once_day_is_closed():
    state = compute_workflow(
        StepFlags(
            silica_submitted=True,
            work_recorded=True,
            job_started=False,
            multi_day=True,
            day_ended_today=True,
        )
    )

    assert state.can_end_day is False
    assert state.can_complete is False
    assert "day_ended" in _blocked(state, "signature")


def test_end_day_unavailable_while_standby_open():
    state = compute_workflow(
        StepFlags(silica_submitted=True, job_started=True, multi_day=True, standby_active=True)
    )

    assert state.can_end_day is False


def test_completed_job_is_fully_locked():
    state = compute_workflow(StepFlags(silica_submitted=True, work_recorded=True, completed=True))

    assert state.next_step is None
    assert state.can_complete is False
    assert state.can_end_day is False
    assert state.step("signature").view == "complete"
    assert state.step("work_performed").view == "read_only"
    assert state.step("work_performed").enterable is False
    assert state.step("standby").enterable is False


def test_to_dict_shape():
    payload = compute_workflow(StepFlags(job_started=True)).to_dict()

    assert set(payload) == {"steps", "next_step", "actions"}
    assert payload["actions"] == {"complete_job": False, "end_day": False}
    assert isinstance(payload["steps"][0]["blocked_by"], list)
