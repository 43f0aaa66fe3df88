"""
Assignment Engine — decides which agent owns a lead.

Selection: least-busy (fewest non-terminal leads) among active agents,
minus an optional excluded agent. A reassignment never picks the current
owner; an administrator may still name a specific other agent. Ties are
broken by a rotating cursor over the stable agent ordering; the cursor moves
on every selection, tie or not, so repeated ties spread evenly instead of
always landing on the first agent.

Concurrency: the whole read-counts → pick → write sequence runs inside one
transaction that first locks the singleton AssignmentCursor row. Every
assignment decision therefore sees the counts committed by the previous
one. The write is also checked against what was read: the lead row by
``assignment_version`` and the agent loads by the cursor ``revision``. A
mismatch on either raises ConcurrencyConflict and the decision is retried up
to ASSIGNMENT_MAX_RETRIES times before surfacing as TransientStoreError.

Effects of a successful assign():
  - lead.assigned_agent / assigned_at / assignment_version updated
  - reassignment_count incremented unless this is the first assignment
  - AssignmentRecord appended (reason "initial" on first assignment)
  - Event written to the lead timeline
  - lead_assigned notification queued for after commit
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Collection
from uuid import UUID

from django.conf import settings
from django.db import transaction
from django.db.models import F

from app.models.agent import Agent
from app.models.assignment_record import AssignmentRecord
from app.models.coordination import AssignmentCursor
from app.models.event import Event
from app.models.lead import Lead
from app.services import agent_directory, assignment_history
from app.services.exceptions import (
    ConcurrencyConflict,
    LeadDistributionError,
    LeadTerminal,
    NoEligibleAgent,
    StaleAssignment,
    TransientStoreError,
)
from app.services.notifications import emit_assignment
from app.utils import store_errors, utcnow

logger = logging.getLogger(__name__)


def pick_agent(
    agents: list[tuple[UUID, int]],
    position: int,
    exclude: Collection[UUID] = (),
) -> tuple[UUID, int]:
    """
    Choose the least-loaded agent, breaking ties with the rotating cursor.

    ``agents`` is the full active roster in stable order as (agent_id, load)
    pairs. The scan starts at ``position`` (mod roster size) and takes the
    first agent outside ``exclude`` carrying the minimum load. Returns the
    chosen agent and the cursor position to store for the next decision (one
    past the chosen slot).
    """
    eligible = [load for agent_id, load in agents if agent_id not in exclude]
    if not eligible:
        raise NoEligibleAgent("No active agent available for assignment")

    lowest = min(eligible)
    size = len(agents)
    start = position % size
    for offset in range(size):
        agent_id, load = agents[(start + offset) % size]
        if agent_id not in exclude and load == lowest:
            return agent_id, position + offset + 1

    # unreachable: `lowest` came from an eligible entry
    raise NoEligibleAgent("No active agent available for assignment")


def _roster() -> list[tuple[UUID, int]]:
    return [(agent.id, agent.active_lead_count) for agent in agent_directory.active_agents()]


@dataclass
class Decision:
    """An assignment chosen against one snapshot of counts and cursor."""

    lead: Lead
    new_agent_id: UUID
    reason: str
    cursor_revision: int
    next_position: int | None = None

    @property
    def previous_agent_id(self) -> UUID | None:
        return self.lead.assigned_agent_id


def _decide(
    lead_id: UUID,
    exclude_agent_id: UUID | None,
    reason: str | None,
    target_agent_id: UUID | None,
    precondition: Callable[[Lead, datetime], bool] | None,
    now: datetime,
) -> Decision:
    cursor, _ = (
        AssignmentCursor.objects
        .select_for_update()
        .get_or_create(id=AssignmentCursor.SINGLETON_ID)
    )
    lead = Lead.objects.select_for_update().get(id=lead_id)

    if lead.is_terminal:
        raise LeadTerminal(lead.id, lead.status, action="reassign lead")
    if precondition is not None and not precondition(lead, now):
        raise StaleAssignment(f"Lead {lead.id} no longer eligible", lead_id=lead.id)

    first_assignment = lead.assigned_agent_id is None
    if first_assignment:
        record_reason = AssignmentRecord.REASON_INITIAL
    elif reason in (None, AssignmentRecord.REASON_INITIAL):
        record_reason = AssignmentRecord.REASON_MANUAL
    else:
        record_reason = reason

    if target_agent_id is not None:
        if target_agent_id == lead.assigned_agent_id:
            raise LeadDistributionError(
                f"Lead {lead.id} is already assigned to agent {target_agent_id}",
                lead_id=lead.id,
            )
        if not Agent.objects.filter(id=target_agent_id, status=Agent.STATUS_ACTIVE).exists():
            raise NoEligibleAgent(
                f"Agent {target_agent_id} is not active", lead_id=lead.id,
            )
        return Decision(lead, target_agent_id, record_reason, cursor.revision)

    # A reassignment always moves the lead away from its current owner
    exclude = {a for a in (exclude_agent_id, lead.assigned_agent_id) if a is not None}
    try:
        new_agent_id, next_position = pick_agent(_roster(), cursor.position, exclude)
    except NoEligibleAgent as exc:
        raise NoEligibleAgent(
            f"No active agent available for lead {lead.id}",
            lead_id=lead.id, excluded_agent_id=exclude_agent_id,
        ) from exc
    return Decision(lead, new_agent_id, record_reason, cursor.revision, next_position)


def _commit(decision: Decision, now: datetime, source: str) -> UUID:
    lead = decision.lead
    previous_agent_id = decision.previous_agent_id
    new_agent_id = decision.new_agent_id
    first_assignment = previous_agent_id is None
    version = lead.assignment_version + 1
    reassignment_count = lead.reassignment_count + (0 if first_assignment else 1)

    changes = {
        "assigned_agent_id": new_agent_id,
        "assigned_at": now,
        "assignment_version": version,
        "reassignment_count": reassignment_count,
        "updated_at": now,
    }
    if decision.reason == AssignmentRecord.REASON_MANUAL:
        # A human re-routing the lead counts as intervention
        changes.update(
            is_unreachable=False,
            unreachable_at=None,
            reassignments_at_review=reassignment_count,
        )

    updated = (
        Lead.objects
        .filter(id=lead.id, assignment_version=lead.assignment_version)
        .update(**changes)
    )
    if updated != 1:
        raise ConcurrencyConflict(
            f"Lead {lead.id} changed during assignment", lead_id=lead.id,
        )

    cursor_changes = {"revision": F("revision") + 1, "updated_at": now}
    if decision.next_position is not None:
        cursor_changes["position"] = decision.next_position
    moved = (
        AssignmentCursor.objects
        .filter(id=AssignmentCursor.SINGLETON_ID, revision=decision.cursor_revision)
        .update(**cursor_changes)
    )
    if moved != 1:
        raise ConcurrencyConflict(
            f"Agent loads changed while placing lead {lead.id}", lead_id=lead.id,
        )

    assignment_history.record(
        lead.id, previous_agent_id, new_agent_id, decision.reason, version, now,
    )

    Event.objects.create(
        lead_id=lead.id,
        event_type="lead_assigned" if first_assignment else "lead_reassigned",
        source=source,
        payload={
            "previous_agent_id": str(previous_agent_id) if previous_agent_id else None,
            "new_agent_id": str(new_agent_id),
            "reason": decision.reason,
            "version": version,
        },
        description=(
            f"Assigned to agent {new_agent_id}" if first_assignment
            else f"Reassigned ({decision.reason}) from {previous_agent_id} to {new_agent_id}"
        ),
    )

    emit_assignment(lead.id, previous_agent_id, new_agent_id, decision.reason)
    return new_agent_id


def _assign_once(
    lead_id: UUID,
    exclude_agent_id: UUID | None,
    reason: str | None,
    target_agent_id: UUID | None,
    precondition: Callable[[Lead, datetime], bool] | None,
    now: datetime,
    source: str,
) -> UUID:
    with transaction.atomic():
        decision = _decide(lead_id, exclude_agent_id, reason, target_agent_id, precondition, now)
        new_agent_id = _commit(decision, now, source)

    logger.info(
        "Lead %s assigned to %s (reason=%s, previous=%s)",
        lead_id, new_agent_id, decision.reason, decision.previous_agent_id,
    )
    return new_agent_id


def assign(
    lead_id: UUID,
    exclude_agent_id: UUID | None = None,
    reason: str | None = None,
    *,
    target_agent_id: UUID | None = None,
    precondition: Callable[[Lead, datetime], bool] | None = None,
    now: datetime | None = None,
    source: str = "system",
) -> UUID:
    """
    Assign (or reassign) a lead and return the new agent id.

    ``reason`` applies to reassignments ("sla_breach" or "manual", default
    manual); a lead's first assignment is always recorded as "initial".
    ``target_agent_id`` bypasses selection for an administrator override.
    ``precondition(lead, now)`` is evaluated on the locked lead row; if it no
    longer holds, StaleAssignment is raised and nothing changes.

    Raises NoEligibleAgent, LeadTerminal, StaleAssignment or
    TransientStoreError; on any error the lead keeps its prior assignment.
    """
    now = now or utcnow()
    max_retries = settings.ASSIGNMENT_MAX_RETRIES

    for attempt in range(1, max_retries + 1):
        try:
            with store_errors("assign"):
                return _assign_once(
                    lead_id, exclude_agent_id, reason, target_agent_id,
                    precondition, now, source,
                )
        except ConcurrencyConflict:
            logger.warning(
                "Assignment conflict for lead %s (attempt %d/%d)",
                lead_id, attempt, max_retries,
            )
        except NoEligibleAgent:
            logger.error(
                "OPERATIONAL ALERT: no eligible agent for lead %s (excluded=%s)",
                lead_id, exclude_agent_id,
            )
            raise

    raise TransientStoreError(
        f"Assignment for lead {lead_id} kept conflicting after {max_retries} attempts",
        lead_id=lead_id,
    )
