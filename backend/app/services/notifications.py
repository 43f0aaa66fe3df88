"""
Assignment notification hook.

After every committed assignment the core sends ``lead_assigned`` with
lead_id, previous_agent_id, new_agent_id and reason. The notification
dispatcher (in-app, email) connects a receiver; fan-out and delivery are its
concern. Receiver failures are logged and swallowed here — they must never
roll back an assignment that already happened.
"""
import logging
from functools import partial
from uuid import UUID

from django.db import transaction
from django.dispatch import Signal

logger = logging.getLogger(__name__)

lead_assigned = Signal()


def _send(payload: dict) -> None:
    responses = lead_assigned.send_robust(sender="assignment_engine", **payload)
    for receiver, response in responses:
        if isinstance(response, Exception):
            logger.warning(
                "Notification receiver %r failed for lead %s: %s",
                receiver, payload["lead_id"], response,
            )


def emit_assignment(
    lead_id: UUID,
    previous_agent_id: UUID | None,
    new_agent_id: UUID,
    reason: str,
) -> None:
    """Queue the notification to fire once the current transaction commits."""
    payload = {
        "lead_id": str(lead_id),
        "previous_agent_id": str(previous_agent_id) if previous_agent_id else None,
        "new_agent_id": str(new_agent_id),
        "reason": reason,
    }
    transaction.on_commit(partial(_send, payload))
