import uuid
from django.db import models


class Agent(models.Model):
    """
    A sales agent who can own leads.

    Agents are created and deactivated by an administrator; the distribution
    core only reads status. Active-lead counts are never stored here — they
    are derived from the leads table on every read (see agent_directory).
    """

    STATUS_ACTIVE = "active"
    STATUS_INACTIVE = "inactive"
    STATUS_CHOICES = [
        (STATUS_ACTIVE, "Active"),
        (STATUS_INACTIVE, "Inactive"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    name = models.CharField(max_length=200)
    email = models.EmailField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_ACTIVE, db_index=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "agents"
        # Stable order the round-robin cursor walks over
        ordering = ["created_at", "id"]

    def __str__(self):
        return f"{self.name} ({self.status})"
