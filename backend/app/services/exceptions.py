"""
Error taxonomy for lead distribution.

- NoEligibleAgent     — staffing problem; needs an administrator, not a retry
- LeadTerminal        — user-visible rejection on a won/lost lead
- TransientStoreError — timeout/connectivity; retry with backoff
- ConcurrencyConflict — lost an optimistic-concurrency race; retried internally
"""


class LeadDistributionError(Exception):
    """Base class for every error raised by the distribution services."""

    retryable = False

    def __init__(self, message: str = "", **context):
        super().__init__(message or self.__class__.__doc__)
        self.context = context


class NoEligibleAgent(LeadDistributionError):
    """No active agent is available for assignment."""


class LeadTerminal(LeadDistributionError):
    """Lead workflow has ended; create a manual note instead."""

    def __init__(self, lead_id=None, status: str = "", action: str = "create follow-up task"):
        message = (
            f"Cannot {action}: lead status is {status} (workflow ended). "
            "Create a manual note instead."
        )
        super().__init__(message, lead_id=lead_id, status=status)
        self.lead_id = lead_id
        self.status = status


class TransientStoreError(LeadDistributionError):
    """The data store timed out or is unreachable."""

    retryable = True


class ConcurrencyConflict(LeadDistributionError):
    """The lead changed underneath an assignment decision."""

    retryable = True


class StaleAssignment(LeadDistributionError):
    """The lead no longer satisfies the precondition the caller selected it on."""


class InvalidTaskTransition(LeadDistributionError):
    """Task is not Open; completion is one-way."""
