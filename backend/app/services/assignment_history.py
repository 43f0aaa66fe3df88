"""
Assignment History Log — append-only audit trail of ownership decisions.

Writes are never best-effort: a failed insert propagates so the enclosing
assignment transaction rolls back with it. Losing audit history is a hard
error.
"""
from datetime import datetime
from uuid import UUID

from django.db.models import QuerySet

from app.models.assignment_record import AssignmentRecord
from app.utils import store_errors


def record(
    lead_id: UUID,
    previous_agent_id: UUID | None,
    new_agent_id: UUID,
    reason: str,
    version: int,
    at: datetime,
) -> AssignmentRecord:
    with store_errors("record assignment"):
        return AssignmentRecord.objects.create(
            lead_id=lead_id,
            previous_agent_id=previous_agent_id,
            new_agent_id=new_agent_id,
            reason=reason,
            version=version,
            created_at=at,
        )


def history(lead_id: UUID) -> QuerySet:
    """All assignment records for a lead, oldest first."""
    return AssignmentRecord.objects.filter(lead_id=lead_id).order_by("created_at", "version")
