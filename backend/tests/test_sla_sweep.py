from datetime import timedelta

import pytest
from django.db import OperationalError

from app.models.agent import Agent
from app.models.assignment_record import AssignmentRecord
from app.models.coordination import JobLock
from app.models.lead import Lead
from app.services import (
    assignment_engine, assignment_history, job_locks, lead_service, sla_sweep, task_lifecycle,
)
from app.services.assignment_engine import assign
from app.services.sla_sweep import is_breaching, run_sweep, sweep

WINDOW = timedelta(minutes=30)


@pytest.mark.django_db
def test_end_to_end_breach_reassignment(make_agent, make_lead, now):
    a1 = make_agent("A1")
    lead = make_lead()

    assert assign(lead.id, now=now) == a1.id
    task = task_lifecycle.create_initial_follow_up(lead.id, now=now)
    assert task.due_at == now + timedelta(hours=1)

    a2 = make_agent("A2")
    result = sweep(WINDOW, now=now + timedelta(minutes=31))

    assert result.reassigned == 1
    assert result.errors == []
    lead.refresh_from_db()
    assert lead.assigned_agent_id == a2.id

    records = list(assignment_history.history(lead.id))
    assert [(r.reason, r.previous_agent_id, r.new_agent_id) for r in records] == [
        ("initial", None, a1.id),
        ("sla_breach", a1.id, a2.id),
    ]


@pytest.mark.django_db
def test_second_sweep_in_same_tick_is_a_no_op(make_agent, make_lead, now):
    a1, a2 = make_agent(), make_agent()
    leads = [make_lead(assigned_agent=a1, assigned_at=now - timedelta(hours=1)) for _ in range(3)]

    first = sweep(WINDOW, now=now)
    second = sweep(WINDOW, now=now)

    assert first.reassigned == 3
    assert second.reassigned == 0
    assert second.outcomes == []
    assert AssignmentRecord.objects.filter(lead__in=leads).count() == 3


@pytest.mark.django_db
def test_lead_with_logged_outcome_is_exempt(make_agent, make_lead, now):
    a1, _ = make_agent(), make_agent()
    lead = make_lead(assigned_agent=a1, assigned_at=now - timedelta(hours=2))
    lead_service.log_contact_outcome(lead.id, "no_answer", now=now - timedelta(minutes=90))

    result = sweep(WINDOW, now=now)

    assert result.reassigned == 0
    lead.refresh_from_db()
    assert lead.assigned_agent_id == a1.id


@pytest.mark.django_db
def test_outcome_from_previous_owner_does_not_exempt(make_agent, make_lead, now):
    a1, a2 = make_agent(), make_agent()
    lead = make_lead(
        assigned_agent=a1,
        assigned_at=now - timedelta(hours=1),
        last_outcome_at=now - timedelta(hours=3),
    )

    result = sweep(WINDOW, now=now)

    assert result.reassigned == 1
    lead.refresh_from_db()
    assert lead.assigned_agent_id == a2.id


@pytest.mark.django_db
def test_lead_within_window_is_left_alone(make_agent, make_lead, now):
    a1, _ = make_agent(), make_agent()
    make_lead(assigned_agent=a1, assigned_at=now - timedelta(minutes=29))

    assert sweep(WINDOW, now=now).reassigned == 0


@pytest.mark.django_db
def test_terminal_and_unassigned_leads_are_excluded(make_agent, make_lead, now):
    a1, _ = make_agent(), make_agent()
    make_lead(status="won", assigned_agent=a1, assigned_at=now - timedelta(hours=5))
    make_lead(status="lost", assigned_agent=a1, assigned_at=now - timedelta(hours=5))
    make_lead()

    result = sweep(WINDOW, now=now)
    assert result.outcomes == []


@pytest.mark.django_db
def test_three_strikes_marks_lead_unreachable(make_agent, make_lead, settings, now):
    settings.SLA_MAX_REASSIGNMENTS = 3
    make_agent(), make_agent()
    lead = make_lead()
    assign(lead.id, now=now)

    tick = now
    for _ in range(3):
        tick += timedelta(minutes=31)
        assert sweep(WINDOW, now=tick).reassigned == 1

    lead.refresh_from_db()
    assert lead.reassignment_count == 3
    owner = lead.assigned_agent_id

    tick += timedelta(minutes=31)
    fourth = sweep(WINDOW, now=tick)
    assert fourth.reassigned == 0
    assert fourth.marked_unreachable == 1

    lead.refresh_from_db()
    assert lead.is_unreachable
    assert lead.assigned_agent_id == owner
    assert is_breaching(lead, WINDOW, tick + timedelta(hours=1)) is False

    # still past the window, but no longer considered
    later = sweep(WINDOW, now=tick + timedelta(hours=3))
    assert later.outcomes == []


@pytest.mark.django_db
def test_cleared_lead_rejoins_sweeps(make_agent, make_lead, now):
    a1, _ = make_agent(), make_agent()
    lead = make_lead(
        assigned_agent=a1, assigned_at=now - timedelta(hours=2),
        is_unreachable=True, unreachable_at=now - timedelta(hours=1),
    )
    assert sweep(WINDOW, now=now).outcomes == []

    lead_service.clear_unreachable(lead.id, now=now)

    assert sweep(WINDOW, now=now + timedelta(minutes=10)).reassigned == 0
    assert sweep(WINDOW, now=now + timedelta(minutes=30)).reassigned == 1


@pytest.mark.django_db
def test_per_lead_failures_are_collected_not_raised(make_agent, make_lead, now):
    active = make_agent()
    departed = make_agent(status=Agent.STATUS_INACTIVE)
    stuck = make_lead(assigned_agent=active, assigned_at=now - timedelta(hours=2))
    orphaned = make_lead(assigned_agent=departed, assigned_at=now - timedelta(hours=1))

    result = sweep(WINDOW, now=now)

    assert result.reassigned == 1
    assert [e.lead_id for e in result.errors] == [stuck.id]
    assert "NoEligibleAgent" in result.errors[0].detail

    stuck.refresh_from_db()
    orphaned.refresh_from_db()
    assert stuck.assigned_agent_id == active.id
    assert stuck.reassignment_count == 0
    assert orphaned.assigned_agent_id == active.id


@pytest.mark.django_db
def test_sweep_can_be_stopped_between_leads(make_agent, make_lead, now):
    a1, _ = make_agent(), make_agent()
    for _ in range(3):
        make_lead(assigned_agent=a1, assigned_at=now - timedelta(hours=1))

    checks = {"n": 0}

    def stop_after_first():
        checks["n"] += 1
        return checks["n"] > 1

    result = sweep(WINDOW, now=now, should_stop=stop_after_first)

    assert result.cancelled
    assert result.reassigned == 1
    assert Lead.objects.filter(assigned_agent=a1).count() == 2


@pytest.mark.django_db
def test_run_sweep_skips_while_another_holds_the_lease(make_agent, make_lead, now):
    a1, _ = make_agent(), make_agent()
    make_lead(assigned_agent=a1, assigned_at=now - timedelta(days=1))
    assert job_locks.acquire(sla_sweep.SWEEP_JOB_NAME, "worker-1", timedelta(minutes=10))

    assert run_sweep(WINDOW, holder="worker-2") is None
    assert sla_sweep.run_scheduled_sweep().startswith("skipped")
    assert Lead.objects.filter(assigned_agent=a1).count() == 1

    job_locks.release(sla_sweep.SWEEP_JOB_NAME, "worker-1")
    result = run_sweep(WINDOW, holder="worker-2")
    assert result is not None and result.reassigned == 1
    assert JobLock.objects.get(name=sla_sweep.SWEEP_JOB_NAME).locked_until is None


@pytest.mark.django_db
def test_abandoned_lease_is_taken_over(now):
    assert job_locks.acquire("sla_sweep", "crashed", timedelta(minutes=2), now=now - timedelta(minutes=5))
    assert job_locks.acquire("sla_sweep", "fresh", timedelta(minutes=2), now=now)
    assert JobLock.objects.get(name="sla_sweep").holder == "fresh"


@pytest.mark.django_db
def test_sweep_result_reports_each_lead(make_agent, make_lead, now):
    a1, a2 = make_agent(), make_agent()
    lead = make_lead(assigned_agent=a1, assigned_at=now - timedelta(hours=1))

    payload = sweep(WINDOW, now=now).to_dict()

    assert payload["reassigned"] == 1
    assert payload["outcomes"] == [{
        "lead_id": str(lead.id),
        "outcome": "reassigned",
        "detail": "",
        "agent_id": str(a2.id),
    }]


@pytest.mark.django_db
def test_store_timeouts_are_recorded_per_lead(make_agent, make_lead, monkeypatch, now):
    a1, _ = make_agent(), make_agent()
    leads = [make_lead(assigned_agent=a1, assigned_at=now - timedelta(hours=1)) for _ in range(2)]

    def timed_out(*args, **kwargs):
        raise OperationalError("canceling statement due to lock timeout")

    monkeypatch.setattr(assignment_engine, "_assign_once", timed_out)

    result = sweep(WINDOW, now=now)

    assert result.reassigned == 0
    assert sorted(e.lead_id for e in result.errors) == sorted(lead.id for lead in leads)
    assert all(e.detail.startswith("TransientStoreError") for e in result.errors)
    assert Lead.objects.filter(assigned_agent=a1).count() == 2


@pytest.mark.django_db
def test_clearing_the_flag_starts_a_fresh_strike_count(make_agent, make_lead, settings, now):
    settings.SLA_MAX_REASSIGNMENTS = 3
    a1, _ = make_agent(), make_agent()
    lead = make_lead(
        assigned_agent=a1, assigned_at=now - timedelta(hours=2),
        reassignment_count=3, assignment_version=4,
        is_unreachable=True, unreachable_at=now - timedelta(hours=1),
    )
    lead_service.clear_unreachable(lead.id, now=now)

    tick = now
    for strike in (1, 2, 3):
        tick += timedelta(minutes=31)
        assert sweep(WINDOW, now=tick).reassigned == 1
        lead.refresh_from_db()
        assert lead.strikes_since_review == strike
        assert not lead.is_unreachable

    tick += timedelta(minutes=31)
    assert sweep(WINDOW, now=tick).marked_unreachable == 1
    lead.refresh_from_db()
    assert lead.is_unreachable
    assert lead.reassignment_count == 6
