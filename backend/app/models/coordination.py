from django.db import models


class AssignmentCursor(models.Model):
    """
    Singleton round-robin pointer over the stable agent ordering.

    Its row lock is the serialization point for assignment decisions: every
    assign() takes SELECT ... FOR UPDATE on this row before reading counts.
    ``revision`` moves on every committed assignment; a decision made against
    an older revision is rejected at write time.
    """

    SINGLETON_ID = 1

    id = models.PositiveSmallIntegerField(primary_key=True, default=SINGLETON_ID)
    position = models.BigIntegerField(default=0)
    revision = models.BigIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "assignment_cursor"

    def __str__(self):
        return f"cursor@{self.position}"


class JobLock(models.Model):
    """
    Named lease for singleton background jobs (the SLA sweep).
    A lease past locked_until is considered abandoned and may be taken over.
    """

    name = models.CharField(max_length=100, primary_key=True)
    holder = models.CharField(max_length=100, blank=True, default="")
    locked_until = models.DateTimeField(null=True, blank=True)
    acquired_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "job_locks"

    def __str__(self):
        return f"{self.name} held by {self.holder or '-'} until {self.locked_until}"
