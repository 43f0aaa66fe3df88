import uuid
from django.db import models


class Event(models.Model):
    """
    Append-only activity log for a lead's timeline.
    Every ownership change, outcome, status change and task transition is
    recorded here so the UI timeline can be rebuilt without joining tables.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    lead = models.ForeignKey("Lead", on_delete=models.CASCADE, related_name="events")

    # Event classification
    event_type = models.CharField(max_length=50, db_index=True)
    # Types: lead_created, lead_assigned, lead_reassigned, lead_unreachable,
    #        unreachable_cleared, outcome_logged, status_changed,
    #        task_created, task_completed

    # What triggered this event
    source = models.CharField(max_length=50)  # "system", "agent", "admin", "sla_sweep"
    source_id = models.CharField(max_length=36, null=True, blank=True)

    # Event payload (flexible JSON for different event types)
    payload = models.JSONField(default=dict, blank=True)

    # Human-readable description
    description = models.TextField()

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "events"
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["lead", "-created_at"], name="idx_event_lead_date"),
        ]

    def __str__(self):
        return f"{self.event_type} for lead={self.lead_id} at {self.created_at}"
