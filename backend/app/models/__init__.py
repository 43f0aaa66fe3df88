from app.models.agent import Agent
from app.models.lead import Lead, TERMINAL_STATUSES
from app.models.assignment_record import AssignmentRecord
from app.models.task import Task
from app.models.event import Event
from app.models.coordination import AssignmentCursor, JobLock

__all__ = [
    "Agent", "Lead", "TERMINAL_STATUSES", "AssignmentRecord",
    "Task", "Event", "AssignmentCursor", "JobLock",
]
