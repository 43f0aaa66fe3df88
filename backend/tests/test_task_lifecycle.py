import uuid
from datetime import timedelta

import pytest
from django.db import IntegrityError, transaction

from app.models.lead import Lead
from app.models.task import Task
from app.services import lead_service
from app.services.exceptions import InvalidTaskTransition, LeadTerminal
from app.services.task_lifecycle import (
    complete_task,
    create_initial_follow_up,
    create_manual_follow_up,
    followup_offset,
)


def _open_auto(lead):
    return Task.objects.filter(lead=lead, origin=Task.ORIGIN_AUTO_FOLLOWUP, status=Task.STATUS_OPEN)


@pytest.mark.django_db
def test_initial_follow_up_is_due_in_an_hour_for_new_leads(make_lead, now):
    lead = make_lead()

    task = create_initial_follow_up(lead.id, now=now)

    assert task.origin == Task.ORIGIN_AUTO_FOLLOWUP
    assert task.status == Task.STATUS_OPEN
    assert task.due_at == now + timedelta(hours=1)
    assert task.title == f"Follow up with {lead.name}"


@pytest.mark.django_db
def test_initial_follow_up_does_not_open_a_second_slot(make_lead, now):
    lead = make_lead()
    first = create_initial_follow_up(lead.id, now=now)
    again = create_initial_follow_up(lead.id, now=now + timedelta(minutes=5))

    assert again.id == first.id
    assert _open_auto(lead).count() == 1


@pytest.mark.django_db
@pytest.mark.parametrize("status", ["won", "lost"])
def test_initial_follow_up_rejected_on_terminal_lead(make_lead, status):
    lead = make_lead(status=status)
    with pytest.raises(LeadTerminal):
        create_initial_follow_up(lead.id)
    assert not Task.objects.filter(lead=lead).exists()


@pytest.mark.django_db
def test_manual_follow_up_rejected_on_won_lead(make_lead, now):
    lead = make_lead(status="won")

    with pytest.raises(LeadTerminal) as excinfo:
        create_manual_follow_up(lead.id, now + timedelta(days=1))

    assert "workflow ended" in str(excinfo.value)
    assert "manual note" in str(excinfo.value)
    assert not Task.objects.filter(lead=lead).exists()


@pytest.mark.django_db
def test_manual_follow_ups_are_unlimited_on_live_leads(make_lead, now):
    lead = make_lead()
    create_initial_follow_up(lead.id, now=now)
    for days in (1, 2, 3):
        create_manual_follow_up(lead.id, now + timedelta(days=days), title=f"Call #{days}", now=now)

    assert Task.objects.filter(lead=lead, origin=Task.ORIGIN_MANUAL).count() == 3
    assert _open_auto(lead).count() == 1


@pytest.mark.django_db
def test_completing_auto_follow_up_chains_exactly_one_successor(make_lead, now):
    lead = make_lead()
    task = create_initial_follow_up(lead.id, now=now)

    tick = now
    for _ in range(3):
        tick += timedelta(minutes=45)
        completion = complete_task(task.id, now=tick)
        assert completion.completed_task.status == Task.STATUS_COMPLETED
        assert completion.next_task is not None
        assert completion.next_task.due_at == tick + timedelta(hours=1)
        assert list(_open_auto(lead)) == [completion.next_task]
        task = completion.next_task

    assert Task.objects.filter(lead=lead, status=Task.STATUS_COMPLETED).count() == 3


@pytest.mark.django_db
def test_successor_offset_follows_lead_stage(make_lead, now):
    lead = make_lead()
    task = create_initial_follow_up(lead.id, now=now)
    lead_service.change_status(lead.id, "qualified")

    completion = complete_task(task.id, now=now)

    assert completion.next_task.due_at == now + followup_offset("qualified")
    assert followup_offset("qualified") == timedelta(days=1)


@pytest.mark.django_db
def test_no_successor_once_lead_became_terminal(make_lead, now):
    lead = make_lead()
    task = create_initial_follow_up(lead.id, now=now)
    lead_service.change_status(lead.id, "won")

    completion = complete_task(task.id, now=now + timedelta(minutes=30))

    assert completion.next_task is None
    assert completion.completed_task.status == Task.STATUS_COMPLETED
    assert not _open_auto(lead).exists()


@pytest.mark.django_db
def test_completing_auto_follow_up_stops_the_sla_clock(make_lead, now):
    lead = make_lead(assigned_at=now - timedelta(minutes=20))
    task = create_initial_follow_up(lead.id, now=now)

    complete_task(task.id, now=now)

    lead.refresh_from_db()
    assert lead.last_outcome_at == now
    assert lead.outcome_count == 1


@pytest.mark.django_db
def test_manual_task_counts_as_outcome_only_when_reported(make_lead, now):
    lead = make_lead()
    quiet = create_manual_follow_up(lead.id, now + timedelta(hours=2), now=now)
    reported = create_manual_follow_up(lead.id, now + timedelta(hours=3), now=now)

    assert complete_task(quiet.id, now=now).next_task is None
    lead.refresh_from_db()
    assert lead.last_outcome_at is None

    complete_task(reported.id, outcome="callback", now=now + timedelta(minutes=1))
    lead.refresh_from_db()
    assert lead.last_outcome_at == now + timedelta(minutes=1)
    assert lead.last_outcome == "callback"


@pytest.mark.django_db
def test_completion_is_one_way(make_lead, now):
    lead = make_lead()
    task = create_initial_follow_up(lead.id, now=now)
    complete_task(task.id, now=now)

    with pytest.raises(InvalidTaskTransition):
        complete_task(task.id, now=now)

    assert _open_auto(lead).count() == 1


@pytest.mark.django_db
def test_storage_rejects_a_second_open_auto_follow_up(make_lead, now):
    lead = make_lead()
    create_initial_follow_up(lead.id, now=now)

    with pytest.raises(IntegrityError), transaction.atomic():
        Task.objects.create(
            lead=lead, title="dup", origin=Task.ORIGIN_AUTO_FOLLOWUP,
            due_at=now, created_at=now,
        )


@pytest.mark.django_db
def test_unknown_task(now):
    with pytest.raises(Task.DoesNotExist):
        complete_task(uuid.uuid4(), now=now)


@pytest.mark.django_db
def test_outcome_on_terminal_lead_is_rejected(make_lead):
    lead = make_lead(status="lost")
    with pytest.raises(LeadTerminal):
        lead_service.log_contact_outcome(lead.id, "callback")
    assert Lead.objects.get(id=lead.id).last_outcome_at is None
