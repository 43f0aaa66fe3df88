"""
DRF serializers for API request/response validation.
Separates API contract from DB models.
"""
from rest_framework import serializers
from app.models import Agent, Lead, AssignmentRecord, Task, Event
from app.models.lead import OUTCOME_CHOICES


# ─── Agent Serializers ───────────────────────────────────────────────────────

class AgentSerializer(serializers.ModelSerializer):
    active_lead_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = Agent
        fields = ['id', 'name', 'email', 'status', 'active_lead_count', 'created_at']


# ─── Lead Serializers ────────────────────────────────────────────────────────

class LeadCreateSerializer(serializers.ModelSerializer):
    class Meta:
        model = Lead
        fields = ['name', 'phone', 'email', 'source']


class LeadStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[choice for choice, _ in Lead.STATUS_CHOICES])


class LeadSerializer(serializers.ModelSerializer):
    is_terminal = serializers.BooleanField(read_only=True)

    class Meta:
        model = Lead
        fields = [
            'id', 'name', 'phone', 'email', 'source', 'status', 'is_terminal',
            'assigned_agent_id', 'assigned_at', 'reassignment_count',
            'last_outcome_at', 'last_outcome', 'outcome_count', 'missed_call_count',
            'is_unreachable', 'unreachable_at', 'created_at', 'updated_at',
        ]


class LeadListQuerySerializer(serializers.Serializer):
    """Query-string filters for the lead listing."""
    status = serializers.ChoiceField(choices=[choice for choice, _ in Lead.STATUS_CHOICES], required=False)
    agent_id = serializers.UUIDField(required=False)
    unreachable = serializers.BooleanField(required=False, default=False)
    limit = serializers.IntegerField(required=False, default=50, min_value=1, max_value=200)
    offset = serializers.IntegerField(required=False, default=0, min_value=0)


class LeadSummarySerializer(serializers.ModelSerializer):
    """Lightweight lead listing for search/filter results."""
    class Meta:
        model = Lead
        fields = [
            'id', 'name', 'status', 'assigned_agent_id', 'assigned_at',
            'is_unreachable', 'updated_at',
        ]


# ─── Outcome / Assignment Payloads ───────────────────────────────────────────

class ContactOutcomeSerializer(serializers.Serializer):
    outcome = serializers.ChoiceField(choices=OUTCOME_CHOICES)
    notes = serializers.CharField(required=False, allow_null=True, allow_blank=True)


class ManualAssignSerializer(serializers.Serializer):
    """Either route to a specific agent or let the engine pick (optionally excluding one)."""
    agent_id = serializers.UUIDField(required=False, allow_null=True)
    exclude_agent_id = serializers.UUIDField(required=False, allow_null=True)


class AssignmentRecordSerializer(serializers.ModelSerializer):
    class Meta:
        model = AssignmentRecord
        fields = [
            'id', 'lead_id', 'previous_agent_id', 'new_agent_id',
            'reason', 'version', 'created_at',
        ]


# ─── Task Serializers ────────────────────────────────────────────────────────

class ManualFollowUpSerializer(serializers.Serializer):
    due_at = serializers.DateTimeField()
    title = serializers.CharField(max_length=200, required=False, allow_blank=True)


class TaskCompleteSerializer(serializers.Serializer):
    outcome = serializers.ChoiceField(
        choices=OUTCOME_CHOICES, required=False, allow_null=True, allow_blank=True,
    )


class TaskSerializer(serializers.ModelSerializer):
    class Meta:
        model = Task
        fields = [
            'id', 'lead_id', 'title', 'status', 'origin',
            'due_at', 'created_at', 'completed_at',
        ]


# ─── Event Serializers ───────────────────────────────────────────────────────

class EventSerializer(serializers.ModelSerializer):
    class Meta:
        model = Event
        fields = [
            'id', 'lead_id', 'event_type', 'source', 'source_id',
            'payload', 'description', 'created_at',
        ]


# ─── SLA Serializers ─────────────────────────────────────────────────────────

class SweepRequestSerializer(serializers.Serializer):
    window_minutes = serializers.IntegerField(required=False, min_value=1)
