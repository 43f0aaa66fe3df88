import uuid
from django.db import models
from django.db.models import Q


class Task(models.Model):
    """
    A follow-up task tied to a lead.

    Lifecycle is one-way: Open → Completed. A lead holds at most one Open
    auto_followup task at a time (enforced by the partial unique constraint
    below as well as by the task lifecycle service).
    """

    STATUS_OPEN = "Open"
    STATUS_COMPLETED = "Completed"
    STATUS_CHOICES = [
        (STATUS_OPEN, "Open"),
        (STATUS_COMPLETED, "Completed"),
    ]

    ORIGIN_MANUAL = "manual"
    ORIGIN_AUTO_FOLLOWUP = "auto_followup"
    ORIGIN_CHOICES = [
        (ORIGIN_MANUAL, "Manual"),
        (ORIGIN_AUTO_FOLLOWUP, "Auto follow-up"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    lead = models.ForeignKey("Lead", on_delete=models.CASCADE, related_name="tasks")

    title = models.CharField(max_length=200)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_OPEN)
    origin = models.CharField(max_length=20, choices=ORIGIN_CHOICES)

    due_at = models.DateTimeField(db_index=True)
    created_at = models.DateTimeField()
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "tasks"
        ordering = ["due_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["lead"],
                condition=Q(origin="auto_followup", status="Open"),
                name="uniq_open_auto_followup_per_lead",
            ),
        ]
        indexes = [
            models.Index(fields=["lead", "status"], name="idx_task_lead_status"),
        ]

    @property
    def is_open(self) -> bool:
        return self.status == self.STATUS_OPEN

    def __str__(self):
        return f"{self.title} [{self.origin}] due {self.due_at} ({self.status})"
