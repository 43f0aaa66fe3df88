"""
Task API — agent-facing follow-up actions.

A won/lost lead rejects new tasks with 409 and the "workflow ended" message
so the UI can steer the agent towards a manual note instead.
"""
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status

from app.api.responses import error_response, not_found
from app.models.lead import Lead
from app.models.task import Task
from app.serializers import ManualFollowUpSerializer, TaskCompleteSerializer, TaskSerializer
from app.services import task_lifecycle
from app.services.exceptions import LeadDistributionError


class LeadTasksView(APIView):
    """List a lead's tasks or create a manual follow-up."""

    def get(self, request, lead_id):
        tasks = Task.objects.filter(lead_id=lead_id)
        if request.query_params.get("status") == Task.STATUS_OPEN:
            tasks = task_lifecycle.open_tasks(lead_id)
        return Response(TaskSerializer(tasks, many=True).data)

    def post(self, request, lead_id):
        serializer = ManualFollowUpSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            task = task_lifecycle.create_manual_follow_up(
                lead_id, data["due_at"], title=data.get("title") or None,
            )
        except Lead.DoesNotExist:
            return not_found("Lead")
        except LeadDistributionError as exc:
            return error_response(exc)

        return Response(TaskSerializer(task).data, status=status.HTTP_201_CREATED)


class TaskCompleteView(APIView):
    """Complete a task; auto follow-ups chain their successor."""

    def post(self, request, task_id):
        serializer = TaskCompleteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            completion = task_lifecycle.complete_task(
                task_id, outcome=serializer.validated_data.get("outcome") or None,
            )
        except Task.DoesNotExist:
            return not_found("Task")
        except LeadDistributionError as exc:
            return error_response(exc)

        return Response({
            "completed_task": TaskSerializer(completion.completed_task).data,
            "next_task": TaskSerializer(completion.next_task).data if completion.next_task else None,
        })
