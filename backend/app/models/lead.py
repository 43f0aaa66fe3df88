import uuid
from django.db import models

TERMINAL_STATUSES = ("won", "lost")

OUTCOME_CHOICES = [
    ("interested", "Interested"),
    ("callback", "Callback requested"),
    ("no_answer", "No answer"),
    ("busy", "Busy"),
    ("not_interested", "Not interested"),
    ("invalid", "Invalid contact"),
    ("other", "Other"),
]
MISSED_CALL_OUTCOMES = ("no_answer", "busy")
CLOSING_OUTCOMES = ("not_interested", "invalid")


class Lead(models.Model):
    """
    A Lead is a prospective buyer/seller contact owned by one agent at a time.
    This is the aggregate root — tasks, assignment records and events link to a lead.
    """

    STATUS_CHOICES = [
        ("new", "New"),
        ("contacted", "Contacted"),
        ("qualified", "Qualified"),
        ("negotiating", "Negotiating"),
        ("won", "Won"),
        ("lost", "Lost"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Contact info
    name = models.CharField(max_length=200)
    phone = models.CharField(max_length=30, null=True, blank=True)
    email = models.EmailField(null=True, blank=True)
    source = models.CharField(max_length=100, null=True, blank=True)  # website, referral, portal...

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="new", db_index=True)
    # Pipeline: new → contacted → qualified → negotiating → won | lost

    # Ownership (mutated only by the assignment engine)
    assigned_agent = models.ForeignKey(
        "Agent", on_delete=models.PROTECT, null=True, blank=True, related_name="leads"
    )
    assigned_at = models.DateTimeField(null=True, blank=True)
    reassignment_count = models.IntegerField(default=0)
    # reassignment_count at the last human review; strikes count from here
    reassignments_at_review = models.IntegerField(default=0)
    assignment_version = models.IntegerField(default=0)

    # Contact outcomes; the SLA clock stops once an outcome lands after assigned_at
    last_outcome_at = models.DateTimeField(null=True, blank=True)
    last_outcome = models.CharField(max_length=50, choices=OUTCOME_CHOICES, null=True, blank=True)
    outcome_count = models.IntegerField(default=0)
    missed_call_count = models.IntegerField(default=0)  # no_answer + busy

    # Set after repeated SLA breaches; cleared only by a human
    is_unreachable = models.BooleanField(default=False)
    unreachable_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "leads"
        ordering = ["-updated_at"]
        indexes = [
            models.Index(fields=["status", "assigned_at"], name="idx_lead_status_assigned"),
            models.Index(fields=["assigned_agent", "status"], name="idx_lead_agent_status"),
        ]

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def strikes_since_review(self) -> int:
        return self.reassignment_count - self.reassignments_at_review

    def __str__(self):
        return f"{self.name} ({self.status})"
