"""
Agent API — read-only directory with live load for the admin dashboard.
"""
from rest_framework.views import APIView
from rest_framework.response import Response

from app.api.responses import error_response
from app.serializers import AgentSerializer
from app.services import agent_directory
from app.services.exceptions import TransientStoreError


class AgentDirectoryView(APIView):
    """Active agents with their active (non-terminal) lead counts."""

    def get(self, request):
        try:
            agents = agent_directory.active_agents()
        except TransientStoreError as exc:
            return error_response(exc)
        return Response(AgentSerializer(agents, many=True).data)


class AgentStatisticsView(APIView):
    """Total vs active lead counts per active agent."""

    def get(self, request):
        try:
            return Response(agent_directory.agent_statistics())
        except TransientStoreError as exc:
            return error_response(exc)
