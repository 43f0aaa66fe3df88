"""
SLA Sweep Scheduler

A lead breaches SLA when it has sat with its current agent for at least the
SLA window without a contact outcome logged since that assignment began.
Each tick:

- reassign every breaching lead away from its current agent (reason
  "sla_breach"), or
- once the lead has been reassigned SLA_MAX_REASSIGNMENTS times since the
  last human review, flag it unreachable instead; flagged leads drop out of
  sweeps until a human clears the flag, which starts a fresh strike count.

The breach predicate is re-evaluated on the locked lead row right before
each reassignment. A lead that was just reassigned (by an overlapping run,
or earlier in the same one) has a fresh assigned_at and no longer matches,
so it is never moved twice in one tick.

Per-lead failures are collected into the SweepResult and logged; the sweep
always tries every eligible lead. It can be stopped between leads; work
done up to that point stays done.

- sweep()               — one pass over breaching leads
- run_sweep()           — sweep() under the singleton lease (skips if held)
- run_scheduled_sweep() — django-q entry point registered by setup_sla_sweep
"""
import logging
import os
import socket
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable
from uuid import UUID

from django.conf import settings
from django.db import transaction
from django.db.models import F, Q, QuerySet

from app.models.assignment_record import AssignmentRecord
from app.models.event import Event
from app.models.lead import Lead, TERMINAL_STATUSES
from app.services import assignment_engine, job_locks
from app.services.exceptions import LeadDistributionError, StaleAssignment
from app.utils import store_errors, utcnow

logger = logging.getLogger(__name__)

SWEEP_JOB_NAME = "sla_sweep"

OUTCOME_REASSIGNED = "reassigned"
OUTCOME_UNREACHABLE = "marked_unreachable"
OUTCOME_SKIPPED = "skipped"
OUTCOME_ERROR = "error"


@dataclass
class LeadSweepOutcome:
    lead_id: UUID
    outcome: str
    detail: str = ""
    agent_id: UUID | None = None

    def to_dict(self) -> dict:
        return {
            "lead_id": str(self.lead_id),
            "outcome": self.outcome,
            "detail": self.detail,
            "agent_id": str(self.agent_id) if self.agent_id else None,
        }


@dataclass
class SweepResult:
    reassigned: int = 0
    marked_unreachable: int = 0
    cancelled: bool = False
    outcomes: list[LeadSweepOutcome] = field(default_factory=list)

    @property
    def errors(self) -> list[LeadSweepOutcome]:
        return [o for o in self.outcomes if o.outcome == OUTCOME_ERROR]

    def add(self, outcome: LeadSweepOutcome) -> None:
        self.outcomes.append(outcome)
        if outcome.outcome == OUTCOME_REASSIGNED:
            self.reassigned += 1
        elif outcome.outcome == OUTCOME_UNREACHABLE:
            self.marked_unreachable += 1

    def summary(self) -> str:
        text = (
            f"sweep complete: {self.reassigned} reassigned, "
            f"{self.marked_unreachable} marked unreachable, {len(self.errors)} errors"
        )
        return text + " (cancelled)" if self.cancelled else text

    def to_dict(self) -> dict:
        return {
            "reassigned": self.reassigned,
            "marked_unreachable": self.marked_unreachable,
            "cancelled": self.cancelled,
            "errors": len(self.errors),
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


def default_window() -> timedelta:
    return timedelta(minutes=settings.SLA_WINDOW_MINUTES)


def is_breaching(lead: Lead, sla_window: timedelta, now: datetime) -> bool:
    """True if ``lead`` has waited out the SLA window with no outcome logged."""
    if lead.is_terminal or lead.is_unreachable:
        return False
    if lead.assigned_agent_id is None or lead.assigned_at is None:
        return False
    if now - lead.assigned_at < sla_window:
        return False
    return lead.last_outcome_at is None or lead.last_outcome_at < lead.assigned_at


def breaching_leads(sla_window: timedelta, now: datetime) -> QuerySet:
    """Queryset form of is_breaching(), oldest assignment first."""
    return (
        Lead.objects
        .exclude(status__in=TERMINAL_STATUSES)
        .filter(
            is_unreachable=False,
            assigned_agent__isnull=False,
            assigned_at__lte=now - sla_window,
        )
        .filter(Q(last_outcome_at__isnull=True) | Q(last_outcome_at__lt=F("assigned_at")))
        .order_by("assigned_at")
    )


def _mark_unreachable(lead: Lead, now: datetime) -> bool:
    with transaction.atomic():
        updated = (
            Lead.objects
            .filter(id=lead.id, assignment_version=lead.assignment_version, is_unreachable=False)
            .update(is_unreachable=True, unreachable_at=now, updated_at=now)
        )
        if updated:
            Event.objects.create(
                lead_id=lead.id,
                event_type="lead_unreachable",
                source="sla_sweep",
                payload={
                    "reassignment_count": lead.reassignment_count,
                    "strikes_since_review": lead.strikes_since_review,
                    "agent_id": str(lead.assigned_agent_id),
                },
                description=(
                    f"Marked unreachable after {lead.strikes_since_review} reassignments; "
                    "automatic reassignment paused pending review"
                ),
            )
    return bool(updated)


def _sweep_lead(lead_id: UUID, sla_window: timedelta, now: datetime, max_reassignments: int) -> LeadSweepOutcome:
    with store_errors("load lead"):
        lead = Lead.objects.get(id=lead_id)

    if not is_breaching(lead, sla_window, now):
        return LeadSweepOutcome(lead_id, OUTCOME_SKIPPED, "no longer breaching")

    if lead.strikes_since_review >= max_reassignments:
        with store_errors("mark unreachable"):
            marked = _mark_unreachable(lead, now)
        if not marked:
            return LeadSweepOutcome(lead_id, OUTCOME_SKIPPED, "changed before it could be flagged")
        logger.warning(
            "Lead %s marked unreachable after %d reassignments",
            lead_id, lead.strikes_since_review,
        )
        return LeadSweepOutcome(lead_id, OUTCOME_UNREACHABLE, agent_id=lead.assigned_agent_id)

    def still_breaching(locked: Lead, at: datetime) -> bool:
        return (
            locked.assignment_version == lead.assignment_version
            and is_breaching(locked, sla_window, at)
        )

    try:
        new_agent_id = assignment_engine.assign(
            lead.id,
            exclude_agent_id=lead.assigned_agent_id,
            reason=AssignmentRecord.REASON_SLA_BREACH,
            precondition=still_breaching,
            now=now,
            source="sla_sweep",
        )
    except StaleAssignment:
        return LeadSweepOutcome(lead_id, OUTCOME_SKIPPED, "reassigned or contacted concurrently")

    return LeadSweepOutcome(lead_id, OUTCOME_REASSIGNED, agent_id=new_agent_id)


def sweep(
    sla_window: timedelta | None = None,
    now: datetime | None = None,
    should_stop: Callable[[], bool] | None = None,
) -> SweepResult:
    """
    Run one SLA pass. Never raises for per-lead failures; they are returned in
    ``SweepResult.outcomes`` with outcome "error".

    ``now`` pins the clock (tests, replays); by default each lead is judged
    against the current time. ``should_stop`` is polled between leads.
    """
    sla_window = sla_window or default_window()
    max_reassignments = settings.SLA_MAX_REASSIGNMENTS
    clock = (lambda: now) if now is not None else utcnow
    result = SweepResult()

    with store_errors("select breaching leads"):
        candidate_ids = list(breaching_leads(sla_window, clock()).values_list("id", flat=True))

    logger.info("SLA sweep: %d candidate leads (window=%s)", len(candidate_ids), sla_window)

    for lead_id in candidate_ids:
        if should_stop is not None and should_stop():
            result.cancelled = True
            logger.info("SLA sweep stopped early after %d leads", len(result.outcomes))
            break

        try:
            outcome = _sweep_lead(lead_id, sla_window, clock(), max_reassignments)
        except LeadDistributionError as exc:
            logger.warning("SLA sweep could not reassign lead %s: %s", lead_id, exc)
            outcome = LeadSweepOutcome(lead_id, OUTCOME_ERROR, f"{type(exc).__name__}: {exc}")
        except Exception as exc:
            logger.exception("SLA sweep failed on lead %s", lead_id)
            outcome = LeadSweepOutcome(lead_id, OUTCOME_ERROR, f"{type(exc).__name__}: {exc}")

        result.add(outcome)

    logger.info(result.summary())
    return result


def run_sweep(
    sla_window: timedelta | None = None,
    holder: str | None = None,
    budget: timedelta | None = None,
) -> SweepResult | None:
    """
    Run sweep() as a singleton. Returns None, without queuing, when another
    sweep holds the lease. ``budget`` bounds the run; the sweep stops between
    leads once it is spent, ahead of the lease expiring.
    """
    holder = holder or f"{socket.gethostname()}:{os.getpid()}"
    lease = timedelta(seconds=settings.Q_CLUSTER.get("timeout", 120))
    budget = budget or lease * 0.8

    if not job_locks.acquire(SWEEP_JOB_NAME, holder, lease):
        logger.info("SLA sweep already in flight; skipping this tick")
        return None

    deadline = time.monotonic() + budget.total_seconds()
    try:
        return sweep(sla_window, should_stop=lambda: time.monotonic() >= deadline)
    finally:
        job_locks.release(SWEEP_JOB_NAME, holder)


def run_scheduled_sweep() -> str:
    """
    Runs every SLA_SWEEP_INTERVAL_MINUTES via django-q Schedule.
    Returns a short status string for the task log.
    """
    result = run_sweep()
    if result is None:
        return "skipped: previous sweep still running"
    return result.summary()
