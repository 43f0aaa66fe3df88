"""
Agent Directory — read model over agents and their current load.

Active-lead counts are derived from the leads table on every call (leads
assigned to the agent whose status is not terminal). There is no stored
counter, so there is nothing to drift out of sync with reality.

Fails closed: a store failure surfaces as TransientStoreError and callers
must not go on to assign.
"""
from uuid import UUID

from django.db.models import Count, Q, QuerySet

from app.models.agent import Agent
from app.models.lead import TERMINAL_STATUSES
from app.utils import store_errors

_ACTIVE_LEADS = Count("leads", filter=~Q(leads__status__in=TERMINAL_STATUSES))


def _with_load(queryset: QuerySet) -> QuerySet:
    return queryset.annotate(
        active_lead_count=_ACTIVE_LEADS,
        total_lead_count=Count("leads"),
    )


def active_agents() -> list[Agent]:
    """
    Return active agents in stable round-robin order (created_at, id), each
    annotated with ``active_lead_count``.
    """
    with store_errors("active_agents"):
        queryset = _with_load(Agent.objects.filter(status=Agent.STATUS_ACTIVE))
        return list(queryset.order_by("created_at", "id"))


def active_lead_count(agent_id: UUID) -> int:
    """Number of non-terminal leads currently assigned to ``agent_id``."""
    with store_errors("active_lead_count"):
        return (
            Agent.objects.get(id=agent_id)
            .leads.exclude(status__in=TERMINAL_STATUSES)
            .count()
        )


def agent_statistics() -> list[dict]:
    """Per-agent load summary for the admin dashboard."""
    return [
        {
            "agent_id": str(agent.id),
            "name": agent.name,
            "email": agent.email,
            "total_leads": agent.total_lead_count,
            "active_leads": agent.active_lead_count,
        }
        for agent in active_agents()
    ]
