"""
Maps distribution errors onto HTTP responses.

LeadTerminal is a user-facing rejection (409 with an actionable message);
NoEligibleAgent is a staffing problem, reported as 503 and logged as an
operational alert by the assignment engine; store trouble is 503 and
retryable.
"""
from rest_framework import status
from rest_framework.response import Response

from app.services.exceptions import (
    InvalidTaskTransition,
    LeadDistributionError,
    LeadTerminal,
    NoEligibleAgent,
    TransientStoreError,
)


def error_response(exc: LeadDistributionError, **extra) -> Response:
    if isinstance(exc, LeadTerminal):
        code, error = status.HTTP_409_CONFLICT, "lead_terminal"
    elif isinstance(exc, InvalidTaskTransition):
        code, error = status.HTTP_409_CONFLICT, "invalid_task_transition"
    elif isinstance(exc, NoEligibleAgent):
        code, error = status.HTTP_503_SERVICE_UNAVAILABLE, "no_eligible_agent"
    elif isinstance(exc, TransientStoreError):
        code, error = status.HTTP_503_SERVICE_UNAVAILABLE, "store_unavailable"
    else:
        code, error = status.HTTP_400_BAD_REQUEST, "distribution_error"

    body = {"error": error, "detail": str(exc), "retryable": exc.retryable}
    body.update(extra)
    return Response(body, status=code)


def not_found(what: str) -> Response:
    return Response({"detail": f"{what} not found"}, status=status.HTTP_404_NOT_FOUND)
