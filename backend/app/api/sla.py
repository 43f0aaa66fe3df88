"""
SLA API — manual trigger for the breach sweep.

Goes through the same singleton lease as the scheduled job: if a sweep is
already running the request is rejected with 409 rather than queued.
"""
from datetime import timedelta

from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status

from app.api.responses import error_response
from app.serializers import SweepRequestSerializer
from app.services import sla_sweep
from app.services.exceptions import TransientStoreError


class SLASweepView(APIView):

    def post(self, request):
        serializer = SweepRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        minutes = serializer.validated_data.get("window_minutes")
        window = timedelta(minutes=minutes) if minutes else None

        try:
            result = sla_sweep.run_sweep(window, holder="api")
        except TransientStoreError as exc:
            return error_response(exc)

        if result is None:
            return Response(
                {"detail": "An SLA sweep is already running"},
                status=status.HTTP_409_CONFLICT,
            )
        return Response(result.to_dict())
