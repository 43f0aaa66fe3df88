"""
Lead API — intake, detail, outcomes, ownership and SLA flags.

Pipeline statuses:
  new → contacted → qualified → negotiating → won | lost
  Terminal: won, lost (no further assignment or task activity)
"""
import logging

from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status

from app.api.responses import error_response, not_found
from app.models.event import Event
from app.models.lead import Lead
from app.models.task import Task
from app.serializers import (
    LeadCreateSerializer, LeadListQuerySerializer, LeadSerializer, LeadSummarySerializer,
    LeadStatusSerializer, ContactOutcomeSerializer, ManualAssignSerializer, AssignmentRecordSerializer,
    TaskSerializer, EventSerializer,
)
from app.services import assignment_history, lead_service
from app.services.exceptions import LeadDistributionError, NoEligibleAgent

logger = logging.getLogger(__name__)


class LeadListCreateView(APIView):
    """List leads and run intake for new ones."""

    def get(self, request):
        params = LeadListQuerySerializer(data=request.query_params)
        params.is_valid(raise_exception=True)
        filters = params.validated_data

        queryset = Lead.objects.all()
        if filters.get("status"):
            queryset = queryset.filter(status=filters["status"])
        if filters.get("agent_id"):
            queryset = queryset.filter(assigned_agent_id=filters["agent_id"])
        if filters["unreachable"]:
            queryset = queryset.filter(is_unreachable=True)

        offset, limit = filters["offset"], filters["limit"]
        queryset = queryset[offset:offset + limit]

        return Response(LeadSummarySerializer(queryset, many=True).data)

    def post(self, request):
        """
        Create a lead, assign it and seed its first follow-up.

        If no agent is available the lead is still stored (unassigned) and the
        response is 503 with the lead id so an administrator can route it.
        """
        serializer = LeadCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            lead = lead_service.intake_lead(serializer.validated_data)
        except NoEligibleAgent as exc:
            return error_response(exc, lead_id=str(exc.context["lead_id"]))
        except LeadDistributionError as exc:
            return error_response(exc)

        return Response(LeadSerializer(lead).data, status=status.HTTP_201_CREATED)


class LeadDetailView(APIView):
    """Full lead detail and explicit status changes."""

    def get(self, request, lead_id):
        try:
            lead = Lead.objects.get(id=lead_id)
        except Lead.DoesNotExist:
            return not_found("Lead")

        tasks = Task.objects.filter(lead_id=lead_id).order_by("-created_at")
        events = Event.objects.filter(lead_id=lead_id).order_by("-created_at")

        data = {
            "lead": LeadSerializer(lead).data,
            "tasks": TaskSerializer(tasks, many=True).data,
            "assignments": AssignmentRecordSerializer(assignment_history.history(lead_id), many=True).data,
            "events": EventSerializer(events, many=True).data,
        }
        return Response(data)

    def patch(self, request, lead_id):
        serializer = LeadStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            lead = lead_service.change_status(lead_id, serializer.validated_data["status"])
        except Lead.DoesNotExist:
            return not_found("Lead")
        except LeadDistributionError as exc:
            return error_response(exc)

        return Response(LeadSerializer(lead).data)


class ContactOutcomeView(APIView):
    """Log a contact outcome; this is what stops the SLA clock."""

    def post(self, request, lead_id):
        serializer = ContactOutcomeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            lead = lead_service.log_contact_outcome(lead_id, data["outcome"], data.get("notes"))
        except Lead.DoesNotExist:
            return not_found("Lead")
        except LeadDistributionError as exc:
            return error_response(exc)

        return Response(LeadSerializer(lead).data)


class LeadAssignView(APIView):
    """
    Manual routing: to a named agent, or least-busy (never the current owner,
    optionally excluding one more). A lead that intake left unassigned gets
    its first follow-up here.
    """

    def post(self, request, lead_id):
        serializer = ManualAssignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            agent_id = lead_service.route_lead(
                lead_id,
                agent_id=data.get("agent_id"),
                exclude_agent_id=data.get("exclude_agent_id"),
            )
        except Lead.DoesNotExist:
            return not_found("Lead")
        except LeadDistributionError as exc:
            return error_response(exc)

        return Response({"lead_id": str(lead_id), "agent_id": str(agent_id)})


class AssignmentHistoryView(APIView):
    """Audit trail of ownership decisions, oldest first."""

    def get(self, request, lead_id):
        if not Lead.objects.filter(id=lead_id).exists():
            return not_found("Lead")
        records = assignment_history.history(lead_id)
        return Response(AssignmentRecordSerializer(records, many=True).data)


class ClearUnreachableView(APIView):
    """Human review of an unreachable lead; resumes SLA monitoring."""

    def post(self, request, lead_id):
        try:
            lead = lead_service.clear_unreachable(lead_id)
        except Lead.DoesNotExist:
            return not_found("Lead")
        except LeadDistributionError as exc:
            return error_response(exc)
        return Response(LeadSerializer(lead).data)
