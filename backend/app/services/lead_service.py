"""
Lead-level operations that sit around the distribution core.

- intake_lead()          — create → assign → seed the auto follow-up chain
- route_lead()           — administrator routing; seeds the chain on first assignment
- log_contact_outcome()  — stamps last_outcome_at (stops the SLA clock) and
                           applies the outcome's pipeline effect
- change_status()        — explicit agent/admin pipeline transition
- clear_unreachable()    — human intervention on a flagged lead

Outcome effects:
  interested, callback      → new leads move to contacted
  no_answer, busy           → counted as missed calls; new leads move to
                              contacted, and OUTCOME_MAX_MISSED_CALLS misses
                              close the lead as lost
  not_interested, invalid   → lost
  other                     → no status change
"""
import logging
from uuid import UUID

from django.conf import settings
from django.db import transaction
from django.db.models import F

from app.models.assignment_record import AssignmentRecord
from app.models.event import Event
from app.models.lead import CLOSING_OUTCOMES, MISSED_CALL_OUTCOMES, OUTCOME_CHOICES, Lead
from app.services import assignment_engine, task_lifecycle
from app.services.exceptions import LeadDistributionError, LeadTerminal
from app.utils import store_errors, utcnow

logger = logging.getLogger(__name__)

VALID_STATUSES = {choice for choice, _ in Lead.STATUS_CHOICES}
VALID_OUTCOMES = {choice for choice, _ in OUTCOME_CHOICES}


def intake_lead(fields: dict, now=None) -> Lead:
    """
    Store a new lead, route it and seed its first follow-up.

    The lead row is committed before routing: if no agent is eligible the
    lead stays unassigned and NoEligibleAgent propagates to the caller.
    """
    now = now or utcnow()
    with store_errors("create lead"), transaction.atomic():
        lead = Lead.objects.create(**fields)
        Event.objects.create(
            lead_id=lead.id,
            event_type="lead_created",
            source="intake",
            payload={"source": lead.source},
            description=f"Lead created: {lead.name}",
        )

    assignment_engine.assign(lead.id, now=now, source="intake")
    task_lifecycle.create_initial_follow_up(lead.id, now=now)

    lead.refresh_from_db()
    return lead


def route_lead(
    lead_id: UUID,
    agent_id: UUID | None = None,
    exclude_agent_id: UUID | None = None,
    now=None,
) -> UUID:
    """
    Manual (re)assignment. A lead that intake could not place gets its first
    assignment here, followed by the initial auto follow-up.
    """
    now = now or utcnow()
    with store_errors("route_lead"):
        previous_agent_id = Lead.objects.values_list("assigned_agent_id", flat=True).get(id=lead_id)

    new_agent_id = assignment_engine.assign(
        lead_id,
        exclude_agent_id=exclude_agent_id,
        reason=AssignmentRecord.REASON_MANUAL,
        target_agent_id=agent_id,
        now=now,
        source="admin",
    )
    if previous_agent_id is None:
        task_lifecycle.create_initial_follow_up(lead_id, now=now)
    return new_agent_id


def status_after_outcome(status: str, outcome: str, missed_calls: int) -> str:
    if outcome in CLOSING_OUTCOMES:
        return "lost"
    if outcome in MISSED_CALL_OUTCOMES and missed_calls >= settings.OUTCOME_MAX_MISSED_CALLS:
        return "lost"
    if outcome != "other" and status == "new":
        return "contacted"
    return status


def log_contact_outcome(lead_id: UUID, outcome: str, notes: str | None = None, now=None) -> Lead:
    """Record that the owning agent reached (or tried to reach) the lead."""
    if outcome not in VALID_OUTCOMES:
        raise LeadDistributionError(f"Unknown contact outcome: {outcome}")

    now = now or utcnow()
    with store_errors("log_contact_outcome"), transaction.atomic():
        lead = Lead.objects.select_for_update().get(id=lead_id)
        if lead.is_terminal:
            raise LeadTerminal(lead.id, lead.status, action="record outcome")

        missed_calls = lead.missed_call_count + (1 if outcome in MISSED_CALL_OUTCOMES else 0)
        Lead.objects.filter(id=lead.id).update(
            last_outcome_at=now,
            last_outcome=outcome,
            outcome_count=F("outcome_count") + 1,
            missed_call_count=missed_calls,
            updated_at=now,
        )
        Event.objects.create(
            lead_id=lead.id,
            event_type="outcome_logged",
            source="agent",
            source_id=str(lead.assigned_agent_id) if lead.assigned_agent_id else None,
            payload={"outcome": outcome, "notes": notes, "missed_calls": missed_calls},
            description=f"Outcome: {outcome}" + (f" — {notes}" if notes else ""),
        )

        new_status = status_after_outcome(lead.status, outcome, missed_calls)
        if new_status != lead.status:
            change_status(lead.id, new_status, source="outcome")

    lead.refresh_from_db()
    return lead


def change_status(lead_id: UUID, status: str, source: str = "agent") -> Lead:
    if status not in VALID_STATUSES:
        raise LeadDistributionError(f"Unknown lead status: {status}")

    with store_errors("change_status"), transaction.atomic():
        lead = Lead.objects.select_for_update().get(id=lead_id)
        old_status = lead.status
        if old_status == status:
            return lead

        lead.status = status
        lead.save(update_fields=["status", "updated_at"])
        Event.objects.create(
            lead_id=lead.id,
            event_type="status_changed",
            source=source,
            payload={"old_status": old_status, "new_status": status},
            description=f"Status changed: {old_status} → {status}",
        )

    if lead.is_terminal:
        logger.info("Lead %s reached terminal status %s; workflow ended", lead.id, status)
    return lead


def clear_unreachable(lead_id: UUID, now=None) -> Lead:
    """
    Put a flagged lead back under SLA monitoring. The SLA clock restarts from
    now so the current agent gets a full window, and the strike count starts
    over from the current reassignment_count.
    """
    now = now or utcnow()
    with store_errors("clear_unreachable"), transaction.atomic():
        lead = Lead.objects.select_for_update().get(id=lead_id)
        if not lead.is_unreachable:
            return lead

        lead.is_unreachable = False
        lead.unreachable_at = None
        lead.assigned_at = now
        lead.reassignments_at_review = lead.reassignment_count
        lead.save(update_fields=[
            "is_unreachable", "unreachable_at", "assigned_at",
            "reassignments_at_review", "updated_at",
        ])
        Event.objects.create(
            lead_id=lead.id,
            event_type="unreachable_cleared",
            source="admin",
            payload={"reassignment_count": lead.reassignment_count},
            description="Unreachable flag cleared; SLA monitoring resumed",
        )
    return lead
