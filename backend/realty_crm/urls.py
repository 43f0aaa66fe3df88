"""
Root URL configuration for the Realty CRM lead distribution service.
"""
from django.urls import path, include
from django.http import JsonResponse


def health_check(request):
    return JsonResponse({"status": "healthy"})


urlpatterns = [
    path('api/', include('app.urls')),
    path('health', health_check),
]
