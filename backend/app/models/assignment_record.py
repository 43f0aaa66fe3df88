import uuid
from django.db import models


class AssignmentRecord(models.Model):
    """
    Append-only audit trail of ownership decisions.
    One row per assignment: initial routing, SLA breach, or manual reassignment.
    Rows are never updated or deleted.
    """

    REASON_INITIAL = "initial"
    REASON_SLA_BREACH = "sla_breach"
    REASON_MANUAL = "manual"
    REASON_CHOICES = [
        (REASON_INITIAL, "Initial"),
        (REASON_SLA_BREACH, "SLA breach"),
        (REASON_MANUAL, "Manual"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    lead = models.ForeignKey("Lead", on_delete=models.CASCADE, related_name="assignment_records")

    previous_agent = models.ForeignKey(
        "Agent", on_delete=models.PROTECT, null=True, blank=True, related_name="+"
    )
    new_agent = models.ForeignKey("Agent", on_delete=models.PROTECT, related_name="+")
    reason = models.CharField(max_length=20, choices=REASON_CHOICES)

    # Monotonic per-lead sequence; ties on created_at are ordered by this
    version = models.IntegerField()

    created_at = models.DateTimeField()

    class Meta:
        db_table = "assignment_records"
        ordering = ["created_at", "version"]
        constraints = [
            models.UniqueConstraint(fields=["lead", "version"], name="uniq_assignment_lead_version"),
        ]
        indexes = [
            models.Index(fields=["lead", "created_at"], name="idx_assignment_lead_date"),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("AssignmentRecord is append-only")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("AssignmentRecord is append-only")

    def __str__(self):
        return f"{self.reason}: {self.previous_agent_id} → {self.new_agent_id} for lead={self.lead_id}"
