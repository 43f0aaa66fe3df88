"""
Task Lifecycle Manager

Follow-up tasks move one way: Open → Completed. Rules:

- A won/lost lead accepts no new tasks of any origin (LeadTerminal).
- A lead has at most one Open auto_followup task. Completing it chains
  exactly one successor, due at the stage offset, unless the lead has since
  become terminal — then the chain simply stops.
- Completing an auto_followup task counts as a contact outcome and stops the
  SLA clock; a manual task does so only when an outcome is reported with it.

Every operation locks the lead row first, then the task, so task creation
and completion on the same lead are serialized.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from django.conf import settings
from django.db import transaction
from django.db.models import F

from app.models.event import Event
from app.models.lead import OUTCOME_CHOICES, Lead
from app.models.task import Task
from app.services.exceptions import InvalidTaskTransition, LeadDistributionError, LeadTerminal
from app.utils import store_errors, utcnow

logger = logging.getLogger(__name__)


@dataclass
class TaskCompletion:
    completed_task: Task
    next_task: Task | None = None


def followup_offset(status: str) -> timedelta:
    """Delay before the next auto follow-up for a lead in ``status``."""
    offsets = settings.AUTO_FOLLOWUP_OFFSET_MINUTES
    return timedelta(minutes=offsets.get(status, offsets["new"]))


def _create_task(lead: Lead, origin: str, due_at: datetime, now: datetime, title: str, source: str) -> Task:
    if lead.is_terminal:
        raise LeadTerminal(lead.id, lead.status)

    task = Task.objects.create(
        lead=lead,
        title=title,
        origin=origin,
        status=Task.STATUS_OPEN,
        due_at=due_at,
        created_at=now,
    )
    Event.objects.create(
        lead_id=lead.id,
        event_type="task_created",
        source=source,
        source_id=str(task.id),
        payload={"origin": origin, "due_at": due_at.isoformat()},
        description=f"Created task: {title} - Due: {due_at:%Y-%m-%d %H:%M} UTC",
    )
    return task


def _open_auto_followup(lead: Lead) -> Task | None:
    return lead.tasks.filter(origin=Task.ORIGIN_AUTO_FOLLOWUP, status=Task.STATUS_OPEN).first()


def create_initial_follow_up(lead_id: UUID, now: datetime | None = None) -> Task:
    """
    Seed the lead's auto follow-up chain right after its first assignment.

    If an Open auto follow-up already exists it is returned unchanged, so a
    retried intake never opens a second slot.
    """
    now = now or utcnow()
    with store_errors("create_initial_follow_up"), transaction.atomic():
        lead = Lead.objects.select_for_update().get(id=lead_id)
        if lead.is_terminal:
            raise LeadTerminal(lead.id, lead.status)

        existing = _open_auto_followup(lead)
        if existing is not None:
            logger.info("Lead %s already has open auto follow-up %s", lead.id, existing.id)
            return existing

        task = _create_task(
            lead, Task.ORIGIN_AUTO_FOLLOWUP, now + followup_offset(lead.status), now,
            title=f"Follow up with {lead.name}", source="system",
        )

    logger.info("Seeded auto follow-up %s for lead %s (due %s)", task.id, lead_id, task.due_at)
    return task


def create_manual_follow_up(
    lead_id: UUID,
    due_at: datetime,
    title: str | None = None,
    now: datetime | None = None,
) -> Task:
    """Agent-created task. Rejected with LeadTerminal once the lead is won/lost."""
    now = now or utcnow()
    with store_errors("create_manual_follow_up"), transaction.atomic():
        lead = Lead.objects.select_for_update().get(id=lead_id)
        task = _create_task(
            lead, Task.ORIGIN_MANUAL, due_at, now,
            title=title or f"Follow up with {lead.name}", source="agent",
        )
    return task


def complete_task(task_id: UUID, outcome: str | None = None, now: datetime | None = None) -> TaskCompletion:
    """
    Close an Open task and, for auto follow-ups on a live lead, open its
    successor. Raises InvalidTaskTransition if the task is already Completed.
    """
    if outcome and outcome not in {choice for choice, _ in OUTCOME_CHOICES}:
        raise LeadDistributionError(f"Unknown contact outcome: {outcome}")

    now = now or utcnow()
    with store_errors("complete_task"), transaction.atomic():
        lead_id = Task.objects.values_list("lead_id", flat=True).get(id=task_id)
        lead = Lead.objects.select_for_update().get(id=lead_id)
        task = Task.objects.select_for_update().get(id=task_id)

        if not task.is_open:
            raise InvalidTaskTransition(f"Task {task.id} is already {task.status}", task_id=task.id)

        task.status = Task.STATUS_COMPLETED
        task.completed_at = now
        task.save(update_fields=["status", "completed_at"])

        is_auto = task.origin == Task.ORIGIN_AUTO_FOLLOWUP
        if is_auto or outcome:
            Lead.objects.filter(id=lead.id).update(
                last_outcome_at=now,
                last_outcome=outcome or lead.last_outcome,
                outcome_count=F("outcome_count") + 1,
                updated_at=now,
            )

        Event.objects.create(
            lead_id=lead.id,
            event_type="task_completed",
            source="agent",
            source_id=str(task.id),
            payload={"origin": task.origin, "outcome": outcome},
            description=f"Task completed: {task.title}",
        )

        # The completed row is saved above, so the one-open-slot constraint
        # already sees the slot as free.
        next_task = None
        if is_auto and not lead.is_terminal:
            next_task = _create_task(
                lead, Task.ORIGIN_AUTO_FOLLOWUP, now + followup_offset(lead.status), now,
                title=f"Follow up with {lead.name}", source="system",
            )
        elif is_auto:
            logger.info("Lead %s is %s; auto follow-up chain ends at task %s", lead.id, lead.status, task.id)

    return TaskCompletion(completed_task=task, next_task=next_task)


def open_tasks(lead_id: UUID):
    return Task.objects.filter(lead_id=lead_id, status=Task.STATUS_OPEN).order_by("due_at")
